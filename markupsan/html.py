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

"""Sanitizing of untrusted HTML markup.

Walks the token stream produced by `tokens.tokenize` and keeps only the
allowed tags with the allowed attributes, while dropping everything else.
"""

import dataclasses as _dc
import logging as _logging
import re as _re
import typing as _t

from .exceptions import ParseError
from .tokens import TokenKind, Token, eof_token, tokenize, render

# HTML elements whose whole subtree is dropped, regardless of the allowlist
ignored_tags = frozenset([
    "title", "script", "style", "iframe", "frame", "frameset", "noframes",
    "noembed", "embed", "applet", "object", "base",
])

default_tags = frozenset([
    "h1", "h2", "h3", "h4", "h5", "h6", "div", "span", "hr", "p", "br",
    "b", "i", "ol", "ul", "li", "a", "img",
])

default_attrs = frozenset([
    "id", "class", "src", "href", "title", "alt", "name", "rel",
])

@_dc.dataclass(frozen=True)
class SanitizingOptions:
    tags : frozenset[str] = _dc.field(default=default_tags)
    attrs : frozenset[str] = _dc.field(default=default_attrs)
    strict : bool = _dc.field(default=False)

    def __post_init__(self) -> None:
        tags = frozenset(self.tags)
        denied = tags & ignored_tags
        if len(denied) > 0:
            _logging.warning("tags %s are always censored out, removing them from the allowlist",
                             ", ".join([f"`{t}`" for t in sorted(denied)]))
            tags = tags - ignored_tags
        object.__setattr__(self, "tags", tags)
        object.__setattr__(self, "attrs", frozenset(self.attrs))

default_options = SanitizingOptions()

def make_options(tags : _t.Iterable[str] | None = None,
                 attrs : _t.Iterable[str] | None = None,
                 strict : bool = False) -> SanitizingOptions:
    if tags is None and attrs is None and not strict:
        return default_options
    return SanitizingOptions(default_tags if tags is None else frozenset(tags),
                             default_attrs if attrs is None else frozenset(attrs),
                             strict)

# If the value contains `data:` or `javascript:` anywhere, it gets dropped,
# since these are so frequently used for XSS. Browsers ignore whitespace
# inside of these, so we do too. Matched against lowercased values.
illegal_attr_re = _re.compile(r"(d\s*a\s*t\s*a|j\s*a\s*v\s*a\s*s\s*c\s*r\s*i\s*p\s*t\s*)\s*:")

# `href`s must be root-relative paths or use one of these schemes.
# NB: `//example.org` is protocol-relative and `/\example.org` gets
# normalized into one by browsers, hence the lookahead.
legal_href_re = _re.compile(r"/(?![/\\])|mailto://|http://|https://")

def clean_attributes(attrs : _t.Iterable[tuple[str, str]],
                     allowed : _t.Collection[str]) -> list[tuple[str, str]]:
    """Filter `attrs`, keeping only `allowed` attribute keys with harmless
    values, in their original order.

    Values matching `illegal_attr_re` are emptied, so are `href` values not
    matching `legal_href_re`. Attributes with empty values are then
    dropped, including those that were empty to begin with.
    """

    res = []
    for key, value in attrs:
        if key not in allowed:
            continue

        lvalue = value.lower()

        if illegal_attr_re.search(lvalue) is not None:
            value = ""

        if key == "href" and legal_href_re.match(lvalue) is None:
            value = ""

        if value != "":
            res.append((key, value))
    return res

def sanitize_tokens(tokens : _t.Iterable[Token],
                    opts : SanitizingOptions = default_options) -> _t.Iterator[Token]:
    """Sanitizing filter for `Token` streams.

    Yields allowed tags with cleaned attributes, end tags of allowed
    elements without any attributes, and text outside of ignored elements.
    Everything else is dropped silently.

    Subtrees of `ignored_tags` elements are dropped completely. Only one
    such element is tracked at a time: inside of a censored `<script>` a
    `<style>` is dropped like any other tag, and the first `</script>` (or
    `<script/>`) ends censoring, even for nested `<script>`s. An ignored
    element that is never closed censors out the rest of the input.

    Stops at the end-of-stream token, raises `ParseError` on a failure
    token or, when `opts.strict` is set, on any tokenizer diagnostic.
    """

    allowed_tags = opts.tags
    allowed_attrs = opts.attrs
    strict = opts.strict

    ignoring : str | None = None

    for token in tokens:
        kind = token.kind
        if kind == TokenKind.START_TAG:
            name = token.name
            if ignoring is None:
                if name in allowed_tags:
                    yield token.with_attrs(clean_attributes(token.attrs, allowed_attrs))
                elif name in ignored_tags:
                    ignoring = name
        elif kind == TokenKind.SELF_CLOSING_TAG:
            name = token.name
            if ignoring is None and name in allowed_tags:
                yield token.with_attrs(clean_attributes(token.attrs, allowed_attrs))
            elif name == ignoring:
                ignoring = None
        elif kind == TokenKind.END_TAG:
            name = token.name
            if ignoring is None and name in allowed_tags:
                yield Token(TokenKind.END_TAG, name)
            elif name == ignoring:
                ignoring = None
        elif kind == TokenKind.TEXT:
            if ignoring is None:
                yield token
        elif kind == TokenKind.ERROR:
            if token.error is None:
                return
            exc = token.error
            raise ParseError("failed to tokenize input: %s", str(exc), cause=exc) from exc
        elif kind == TokenKind.DIAGNOSTIC:
            if strict:
                raise ParseError("malformed markup: `%s`", token.data)
            _logging.debug("tokenizer complained: `%s`", token.data)
        # else: comments, doctypes, and everything else are dropped

def sanitize_html_with(opts : SanitizingOptions,
                       data : str | bytes,
                       encoding : str = "utf-8") -> str:
    # consume the whole stream before rendering anything, so that a failure
    # never produces partial output
    tokens = list(sanitize_tokens(tokenize(data, encoding), opts))
    return render(tokens)

def sanitize_html(data : str | bytes,
                  tags : _t.Iterable[str] | None = None,
                  attrs : _t.Iterable[str] | None = None,
                  *,
                  strict : bool = False,
                  encoding : str = "utf-8") -> str:
    """Sanitize untrusted HTML `data`, allowing only `tags` with `attrs`.

    `None` means `default_tags` and `default_attrs` respectively. Raises
    `ParseError` if `data` can not be tokenized (e.g. when `bytes` are not
    valid in `encoding`), or, with `strict`, when it is malformed.
    """
    return sanitize_html_with(make_options(tags, attrs, strict), data, encoding)

def check_sanitize(data : str, expected : str, *args : _t.Any, **kwargs : _t.Any) -> None:
    res = sanitize_html(data, *args, **kwargs)
    if res != expected:
        raise AssertionError(f"while sanitizing `{data}`, got `{res}`, expected `{expected}`")

def test_sanitize_html_subtrees() -> None:
    check_sanitize("<script>alert(1)</script>safe text", "safe text")
    check_sanitize("<p>a<style>p { color: red }</style>b</p>", "<p>ab</p>")
    check_sanitize("<title>t</title><iframe src=/x><p>in</p></iframe>out", "out")
    check_sanitize("<script>a<p>b", "")
    check_sanitize("<script>a</p>b<script/>c", "c")
    check_sanitize("<script/>a", "a")
    check_sanitize("<object><embed src=/x>a</object>b", "b")

def test_sanitize_html_single_slot() -> None:
    # a different ignored tag does not change what is being censored
    check_sanitize("<script><style>a</script>b</style>c", "bc")
    check_sanitize("<script><style>a</style>b</script>c", "c")
    # the first matching end tag ends censoring, nesting is not counted
    check_sanitize("<script><script>a</script>b</script>c", "bc")

def test_sanitize_html_attrs() -> None:
    check_sanitize('<a href="javascript:alert(1)">x</a>', "<a>x</a>")
    check_sanitize('<img src="jav a   script:x">', "<img>")
    check_sanitize('<a href="https://example.com">go</a>', '<a href="https://example.com">go</a>')
    check_sanitize('<p onclick="x()" class="c" style="color: red" id=i>t</p>', '<p class="c" id="i">t</p>')
    check_sanitize('<img src="DATA:image/png;base64,AAAA" alt="A">', '<img alt="A">')
    check_sanitize('<img src="/i.png" title="d a t a :">', '<img src="/i.png">')
    check_sanitize('<img alt="">', "<img>")
    check_sanitize('<b>x</b id=y class=z>', "<b>x</b>")
    check_sanitize('<br class="x"/>', '<br class="x">')
    check_sanitize('<hr id=a/>', '<hr id="a/">')
    check_sanitize('<hr id="a"/><p/>', '<hr id="a"><p>')

def test_sanitize_html_hrefs() -> None:
    def check(href : str, keep : bool) -> None:
        data = f'<a href="{href}">x</a>'
        check_sanitize(data, data if keep else "<a>x</a>")

    check("/", True)
    check("/local/path?q=1", True)
    check("HTTP://EXAMPLE.COM/", True)
    check("https://example.com/a", True)
    check("mailto://me@example.com", True)
    check("mailto:me@example.com", False)
    check("//example.com", False)
    check("/\\example.com", False)
    check("ftp://example.com", False)
    check("#fragment", False)
    check("relative/path", False)
    check("https://example.com/?data:x", False)
    check(" /local", False)

def test_sanitize_html_drops() -> None:
    check_sanitize("<!DOCTYPE html><!-- hi --><p>x</p>", "<p>x</p>")
    check_sanitize("<u>under</u><table><tr><td>cell</td></tr></table>", "undercell")
    check_sanitize("&lt;script&gt;alert(1)&lt;/script&gt;", "&lt;script&gt;alert(1)&lt;/script&gt;")
    check_sanitize("a < b & c", "a &lt; b &amp; c")

def test_sanitize_html_custom() -> None:
    check_sanitize("<u class=a id=b>x</u><b>y</b>", '<u id="b">x</u>y', tags=["u"], attrs=["id"])
    # no case folding of allowlists
    check_sanitize("<B>x</B>", "x", tags=["B"])
    check_sanitize("<B>x</B>", "<b>x</b>", tags=["b"])
    # ignored tags can not be allowed
    check_sanitize("<script>x</script><b>y</b>", "<b>y</b>", tags=["script", "b"])
    assert make_options(tags=["script", "b"]).tags == frozenset(["b"])
    assert make_options() is default_options
    assert SanitizingOptions(tags={"style", "i"}).tags == frozenset(["i"])

def test_sanitize_html_errors() -> None:
    try:
        sanitize_html(b"<b>\xff</b>")
    except ParseError as exc:
        assert isinstance(exc.cause, UnicodeDecodeError)
        assert isinstance(exc.__cause__, UnicodeDecodeError)
    else:
        assert False

    check_sanitize("<b>x</b", "<b>x")
    try:
        sanitize_html("<b>x</b", strict=True)
    except ParseError as exc:
        assert exc.cause is None
        assert "eof-in-tag-name" in str(exc)
    else:
        assert False

    assert sanitize_html("<b>x</b>", strict=True) == "<b>x</b>"
    assert sanitize_html("<b>café</b>".encode("utf-8")) == "<b>café</b>"

def test_sanitize_tokens() -> None:
    exc = OSError("boom")
    tokens = [Token(TokenKind.TEXT, data="a"), Token(TokenKind.ERROR, error=exc), Token(TokenKind.TEXT, data="b")]
    res = []
    try:
        for token in sanitize_tokens(tokens):
            res.append(token)
    except ParseError as e:
        assert e.cause is exc
    else:
        assert False
    assert res == [Token(TokenKind.TEXT, data="a")]

    tokens = [Token(TokenKind.TEXT, data="a"), eof_token, Token(TokenKind.TEXT, data="b")]
    assert list(sanitize_tokens(tokens)) == [Token(TokenKind.TEXT, data="a")]

    # unknown kinds are dropped, even when strict
    tokens = [Token(TokenKind.COMMENT, data="c"), Token(TokenKind.DOCTYPE, data="html"), eof_token]
    assert list(sanitize_tokens(tokens, SanitizingOptions(strict=True))) == []

def test_clean_attributes() -> None:
    attrs = (("title", "t"), ("onload", "x"), ("href", "/a"), ("alt", ""), ("src", "java\nscript:x"), ("id", "i"))
    assert clean_attributes(attrs, default_attrs) == [("title", "t"), ("href", "/a"), ("id", "i")]
    assert clean_attributes(attrs, []) == []
    assert clean_attributes([], default_attrs) == []
    assert clean_attributes([("href", "/a")], ["src"]) == []
    assert clean_attributes([("src", "https://x/")], ["src"]) == [("src", "https://x/")]
    # `href` is checked for legality, other attributes are not
    assert clean_attributes([("src", "x.png"), ("href", "x.html")], default_attrs) == [("src", "x.png")]

corpus = [
    "<script>alert(1)</script>safe text",
    '<a href="javascript:alert(1)">x</a>',
    '<a href="https://example.com" onclick="x" target=_blank rel="nofollow">go</a>',
    '<img src="jav a   script:x"><img src=/a.png alt=\'say "hi"\'>',
    "<p>unclosed <b>bold <i>italic</p> a < b && c > d",
    "<div class=x><span id='y'>text</span></div></div></span>",
    "<!-- comment --><!DOCTYPE html><br/><hr/><p/>",
    "&amp;amp; &lt;&gt; &quot; &#39; &nbsp; &copy;",
    '<a href="/x?a=1&amp;b=2" title="a &quot;b&quot; \'c\'">q</a>',
    "<ul><li>1<li>2</ul><ol><li>3</ol>",
    "<h1 name=n>h</h1><xmp><b>x</b></xmp>",
    "<script>a<style>b</script>c</style>d",
    "<b>x</b",
    "text\r\nwith\rbreaks\x00and a NUL",
]

def test_sanitize_html_idempotent() -> None:
    for data in corpus:
        once = sanitize_html(data)
        twice = sanitize_html(once)
        if once != twice:
            raise AssertionError(f"sanitizing `{data}` is not idempotent: `{once}` -> `{twice}`")

def test_sanitize_html_closure() -> None:
    for data in corpus:
        for token in tokenize(sanitize_html(data)):
            if not token.is_tag:
                continue
            assert token.name in default_tags
            assert token.name not in ignored_tags
            if token.kind == TokenKind.END_TAG:
                assert token.attrs == ()
            for key, _ in token.attrs:
                assert key in default_attrs
