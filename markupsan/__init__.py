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

"""Sanitizing of untrusted HTML markup, HTML to plain text conversion, and
URL path and file name slugs."""

__version__ = "0.1.0"

from .exceptions import CatastrophicFailure, Failure, ParseError
from .tokens import TokenKind, Token, tokenize, render
from .html import SanitizingOptions, default_options, default_tags, default_attrs, ignored_tags, \
    make_options, clean_attributes, sanitize_tokens, sanitize_html, sanitize_html_with
from .text import html_to_text
from .path import accents, url_path, file_name
