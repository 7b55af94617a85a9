# Copyright (c) 2024 The markupsan authors
#
# This file is a part of `markupsan` project.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <http://www.gnu.org/licenses/>.

"""Exceptions raised by `markupsan`.

Everything here is a `kisstdlib` `Failure`, i.e. it carries a printf-style
message which can be `elaborate`d with more context while propagating.
"""

import typing as _t

from kisstdlib.failure import *

class ParseError(Failure, ValueError):
    """Input can not be turned into a token stream.

    `cause` is the exception that stopped the tokenizer, if any.
    """

    def __init__(self, what : _t.Any, *args : _t.Any, cause : Exception | None = None) -> None:
        super().__init__(what, *args)
        self.cause = cause

def test_Failure_context() -> None:
    e = ParseError("failed to parse `%s`", "x")
    assert str(e) == "failed to parse `x`"
    e.elaborate("while processing `%s`", "in.html")
    e.elaborate("in batch %d", 2)
    assert str(e) == "in batch 2: while processing `in.html`: failed to parse `x`"
    assert str(ParseError("100%% plain")) == "100% plain"

def test_ParseError_is_ValueError() -> None:
    cause = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
    e = ParseError("can't decode input: %s", cause, cause=cause)
    assert isinstance(e, ValueError)
    assert isinstance(e, Failure)
    assert not isinstance(CatastrophicFailure("x"), Failure)
    assert e.cause is cause
