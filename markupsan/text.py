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

"""Turning HTML into plain text."""

import html as _html
import io as _io

# these become newlines
_line_breaks = ["</p>", "<br>", "</br>", "<br/>"]

# harmless entities replaced before unescaping, so that the result
# looks more like plain text
_common_entities = [
    ("&#8216;", "'"),
    ("&#8217;", "'"),
    ("&#8220;", '"'),
    ("&#8221;", '"'),
    ("&nbsp;", " "),
    ("&quot;", '"'),
    ("&apos;", "'"),
]

_escapes = str.maketrans({
    "\x00": "\ufffd",
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&#39;",
    '"': "&#34;",
})

# NB: spaces after `&amp;` are significant
_unescapes = [
    ("&#34;", '"'),
    ("&#39;", "'"),
    ("&amp; ", "& "),
    ("&amp;amp; ", "& "),
]

def strip_tags(data : str) -> str:
    """Remove everything between `<` and `>`, both included, ignoring nesting."""
    buf = _io.StringIO()
    in_tag = False
    for c in data:
        if c == "<":
            in_tag = True
        elif c == ">":
            in_tag = False
        elif not in_tag:
            buf.write(c)
    return buf.getvalue()

def html_to_text(data : str) -> str:
    """Strip HTML tags, replace common entities, and escape `<>&'"` in the
    result, keeping paragraph and line breaks as newlines.

    The result is safe to embed as HTML text, though it can still contain
    entities, e.g. `&amp;`.
    """

    if "<" in data or ">" in data:
        # newlines have no meaning in HTML outside of `<pre>`, so this
        # loses `<pre>` formatting, but produces fewer unintentional paragraphs
        data = data.replace("\n", "")
        for br in _line_breaks:
            data = data.replace(br, "\n")
        data = strip_tags(data)

    for entity, c in _common_entities:
        data = data.replace(entity, c)

    data = _html.unescape(data)

    # in case some tags survived the above
    data = data.translate(_escapes)

    for entity, c in _unescapes:
        data = data.replace(entity, c)

    return data

def test_html_to_text() -> None:
    def check(data : str, expected : str) -> None:
        res = html_to_text(data)
        if res != expected:
            raise AssertionError(f"while converting `{data}`, got `{res}`, expected `{expected}`")

    check("", "")
    check("plain text", "plain text")
    check("<p>first\nline</p><p>second<br>third<br/>fourth</br>fifth</p>",
          "firstline\nsecond\nthird\nfourth\nfifth\n")
    check('<a href="x">link</a> and <b>bold</b>', "link and bold")
    check("<<script>>alert(1)<</script>>", "alert(1)")
    check("&#8216;quoted&#8217; &#8220;double&#8221;&nbsp;&quot;q&quot; &apos;a&apos;", "'quoted' \"double\" \"q\" 'a'")
    check("caf&eacute; &copy; 2024", "café © 2024")
    check("fish &amp; chips", "fish & chips")
    check("&amp;&amp;", "&amp;&amp;")
    check("&lt;script&gt;", "&lt;script&gt;")
    check("1 &lt; 2 > 0", "1 &lt; 2  0")
    check("<p>He said \"hi\" & 'bye'</p>", "He said \"hi\" & 'bye'\n")
    check("a\x00b<p>c\x00</p>", "a\ufffdbc\ufffd\n")

def test_html_to_text_never_has_brackets() -> None:
    for data in ["<a<b>c>d", "x &lt;y&gt; z", "&#60;&#62;", "<p>&lt;</p>"]:
        res = html_to_text(data)
        assert "<" not in res and ">" not in res
