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

"""Streaming tokenization of HTML markup and rendering of tokens back into
markup, on top of `html5lib`'s tokenizer and serializer.

Unlike `html5lib.parse`, nothing here builds a tree: the input is walked
one token at a time and no implicit elements are ever inserted.
"""

import dataclasses as _dc
import enum as _enum
import typing as _t

import html5lib as _h5
import html5lib._tokenizer as _h5tok
import html5lib.serializer as _h5ser

class TokenKind(_enum.Enum):
    START_TAG = 0
    END_TAG = 1
    SELF_CLOSING_TAG = 2
    TEXT = 3
    COMMENT = 4
    DOCTYPE = 5
    # a recoverable complaint from the tokenizer, e.g. `eof-in-tag-name`
    DIAGNOSTIC = 6
    # terminal token, see `Token.at_eof`
    ERROR = 7

tag_kinds = frozenset([TokenKind.START_TAG, TokenKind.END_TAG, TokenKind.SELF_CLOSING_TAG])

Attrs = tuple[tuple[str, str], ...]

@_dc.dataclass(frozen=True)
class Token:
    kind : TokenKind
    name : str = _dc.field(default="")
    attrs : Attrs = _dc.field(default=())
    data : str = _dc.field(default="")
    error : Exception | None = _dc.field(default=None)

    @property
    def is_tag(self) -> bool:
        return self.kind in tag_kinds

    @property
    def at_eof(self) -> bool:
        """Is this the terminal token of a successfully tokenized stream?"""
        return self.kind == TokenKind.ERROR and self.error is None

    def with_attrs(self, attrs : _t.Iterable[tuple[str, str]]) -> "Token":
        return _dc.replace(self, attrs=tuple(attrs))

eof_token = Token(TokenKind.ERROR)

HTML5Token = dict[str, _t.Any]

_h5types = _h5.constants.tokenTypes
htmlns = _h5.constants.namespaces["html"]

def from_html5(token : HTML5Token) -> Token:
    """Convert a raw `html5lib` tokenizer token into a `Token`."""
    typ = token["type"]
    if typ == _h5types["StartTag"] or typ == _h5types["EmptyTag"]:
        # the tokenizer turns attributes of start tags into a dict, first attribute wins
        attrs = tuple(token["data"].items())
        if typ == _h5types["EmptyTag"] or token.get("selfClosing", False):
            return Token(TokenKind.SELF_CLOSING_TAG, token["name"], attrs)
        return Token(TokenKind.START_TAG, token["name"], attrs)
    elif typ == _h5types["EndTag"]:
        # but leaves them as a list of pairs for end tags
        return Token(TokenKind.END_TAG, token["name"], tuple((k, v) for k, v in token["data"]))
    elif typ == _h5types["Characters"] or typ == _h5types["SpaceCharacters"]:
        return Token(TokenKind.TEXT, data=token["data"])
    elif typ == _h5types["Comment"]:
        return Token(TokenKind.COMMENT, data=token["data"])
    elif typ == _h5types["Doctype"]:
        return Token(TokenKind.DOCTYPE, data=token.get("name") or "")
    else:
        return Token(TokenKind.DIAGNOSTIC, data=str(token.get("data", "")))

def tokenize(data : str | bytes, encoding : str = "utf-8") -> _t.Iterator[Token]:
    """Lazily tokenize HTML `data`.

    The stream always ends with exactly one `TokenKind.ERROR` token. Its
    `error` is `None` when the whole input was consumed, or the exception
    that stopped tokenization otherwise. `bytes` are decoded with the given
    `encoding`, no encoding sniffing is done.
    """

    if isinstance(data, bytes):
        try:
            data = data.decode(encoding)
        except (UnicodeError, LookupError) as exc:
            yield Token(TokenKind.ERROR, error=exc)
            return

    it = iter(_h5tok.HTMLTokenizer(data))
    while True:
        try:
            token = next(it)
        except StopIteration:
            break
        except (UnicodeError, OSError) as exc:
            yield Token(TokenKind.ERROR, error=exc)
            return
        yield from_html5(token)

    yield eof_token

def to_html5(token : Token) -> HTML5Token | None:
    """Convert a `Token` into an `html5lib` tree walker token, or `None` if
    it has no textual representation."""
    kind = token.kind
    if kind == TokenKind.START_TAG or kind == TokenKind.SELF_CLOSING_TAG:
        return {"type": "StartTag" if kind == TokenKind.START_TAG else "EmptyTag",
                "name": token.name,
                "namespace": htmlns,
                "data": {(None, k): v for k, v in token.attrs}}
    elif kind == TokenKind.END_TAG:
        # end tags never carry attributes
        return {"type": "EndTag", "name": token.name, "namespace": htmlns}
    elif kind == TokenKind.TEXT:
        return {"type": "Characters", "data": token.data}
    elif kind == TokenKind.COMMENT:
        return {"type": "Comment", "data": token.data}
    elif kind == TokenKind.DOCTYPE:
        return {"type": "Doctype", "name": token.data, "publicId": None, "systemId": None}
    return None

def walk(tokens : _t.Iterable[Token]) -> _t.Iterator[HTML5Token]:
    for token in tokens:
        h5token = to_html5(token)
        if h5token is not None:
            yield h5token

serializer_options : dict[str, _t.Any] = {
    "quote_attr_values": "always",
    "omit_optional_tags": False,
    "minimize_boolean_attributes": False,
    "use_trailing_solidus": False,
    # escape text in `<xmp>`, `<noscript>`, etc too, since we never switch
    # the tokenizer into raw text states
    "escape_rcdata": True,
}

def render(tokens : _t.Iterable[Token]) -> str:
    """Render `tokens` back into HTML markup."""
    # serializers keep per-call state, so never share them
    serializer = _h5ser.HTMLSerializer(**serializer_options)
    return serializer.render(walk(tokens)) # type: ignore

def test_tokenize() -> None:
    res = list(tokenize('<P Class="a">hi there</p ID=x><br/><!-- c --><!DOCTYPE html>'))
    assert res == [
        Token(TokenKind.START_TAG, "p", (("class", "a"),)),
        Token(TokenKind.TEXT, data="hi there"),
        Token(TokenKind.DIAGNOSTIC, data="attributes-in-end-tag"),
        Token(TokenKind.END_TAG, "p", (("id", "x"),)),
        Token(TokenKind.SELF_CLOSING_TAG, "br"),
        Token(TokenKind.COMMENT, data=" c "),
        Token(TokenKind.DOCTYPE, data="html"),
        eof_token,
    ]
    assert res[0].is_tag and not res[1].is_tag
    assert res[-1].at_eof

def test_tokenize_duplicate_attrs() -> None:
    res = list(tokenize('<img SRC="a" src="b" alt=c>'))
    assert res == [
        Token(TokenKind.DIAGNOSTIC, data="duplicate-attribute"),
        Token(TokenKind.START_TAG, "img", (("src", "a"), ("alt", "c"))),
        eof_token,
    ]

def test_tokenize_empty() -> None:
    assert list(tokenize("")) == [eof_token]
    assert list(tokenize(b"")) == [eof_token]

def test_tokenize_bytes() -> None:
    res = list(tokenize("<b>café</b>".encode("latin-1"), "latin-1"))
    assert res[1] == Token(TokenKind.TEXT, data="café")
    assert res[-1].at_eof

def test_tokenize_failure() -> None:
    res = list(tokenize(b"<b>\xff\xfe</b>"))
    assert len(res) == 1
    assert res[0].kind == TokenKind.ERROR
    assert isinstance(res[0].error, UnicodeDecodeError)
    assert not res[0].at_eof

    res = list(tokenize(b"<b>", "no-such-encoding"))
    assert isinstance(res[0].error, LookupError)

def test_render() -> None:
    def check(data : str, expected : str) -> None:
        res = render(tokenize(data))
        if res != expected:
            raise AssertionError(f"while rendering `{data}`, got `{res}`, expected `{expected}`")

    check('<a href="/x?a=1&amp;b=2">a &amp; b</a>', '<a href="/x?a=1&amp;b=2">a &amp; b</a>')
    check("<a href=/x title=''>x</a>", '<a href="/x" title="">x</a>')
    check("""<img alt='say "hi"'>""", """<img alt='say "hi"'>""")
    check("<br/><p/>", "<br><p>")
    check("</p class=x>", "</p>")
    check("<xmp>&lt;b&gt;</xmp>", "<xmp>&lt;b&gt;</xmp>")
    check("<!DOCTYPE html><!--c-->", "<!DOCTYPE html><!--c-->")
    check("<div hidden=hidden>", '<div hidden="hidden">')

def test_render_end_tag_attrs() -> None:
    assert render([Token(TokenKind.END_TAG, "b", (("id", "x"),))]) == "</b>"
    assert render([Token(TokenKind.DIAGNOSTIC, data="x"), eof_token]) == ""
