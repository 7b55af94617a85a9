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

"""Making strings safe for use as URL paths and file names."""

import posixpath as _pp
import re as _re

# A very limited list of transliterations to catch common European names
# turned into URLs.
transliterations = {
    "À": "A", "Á": "A", "Â": "A", "Ã": "A", "Ä": "A", "Å": "AA", "Æ": "AE",
    "Ç": "C",
    "È": "E", "É": "E", "Ê": "E", "Ë": "E",
    "Ì": "I", "Í": "I", "Î": "I", "Ï": "I",
    "Ð": "D", "Ł": "L", "Ñ": "N",
    "Ò": "O", "Ó": "O", "Ô": "O", "Õ": "O", "Ö": "O", "Ø": "OE",
    "Ù": "U", "Ú": "U", "Ü": "U", "Û": "U",
    "Ý": "Y", "Þ": "Th", "ß": "ss",
    "à": "a", "á": "a", "â": "a", "ã": "a", "ä": "a", "å": "aa", "æ": "ae",
    "ç": "c",
    "è": "e", "é": "e", "ê": "e", "ë": "e",
    "ì": "i", "í": "i", "î": "i", "ï": "i",
    "ð": "d", "ł": "l", "ñ": "n", "ń": "n",
    "ò": "o", "ó": "o", "ô": "o", "õ": "o", "ō": "o", "ö": "o", "ø": "oe",
    "ś": "s",
    "ù": "u", "ú": "u", "û": "u", "ū": "u", "ü": "u",
    "ý": "y", "þ": "th", "ÿ": "y", "ż": "z",
    "Œ": "OE", "œ": "oe",
}

_transliterate = str.maketrans(transliterations)

def accents(text : str) -> str:
    """Replace accented characters with their ASCII equivalents."""
    return text.translate(_transliterate)

# replaced with `-` instead of being removed
separators_re = _re.compile(r"[ &_=+:]")
dashes_re = _re.compile(r"-{2,}")
dots_re = _re.compile(r"\.{2,}")

# NB: ASCII-only on purpose, these are for URL slugs
illegal_path_re = _re.compile(r"[^A-Za-z0-9./-]")
illegal_name_re = _re.compile(r"[^A-Za-z0-9.-]")

def clean_string(s : str, illegal_re : _re.Pattern[str]) -> str:
    """Replace separators with `-` and remove everything matching `illegal_re`."""
    # this way we never end on a `-`
    s = s.strip(" ")
    # flatten accents first, so that removing non-ASCII still leaves something legible
    s = accents(s)
    s = separators_re.sub("-", s)
    s = illegal_re.sub("", s)
    s = dashes_re.sub("-", s)
    s = dots_re.sub(".", s)
    return s

def normpath(path : str) -> str:
    res = _pp.normpath(path)
    # POSIX allows a leading `//` to mean something special, URLs do not
    if res.startswith("//"):
        res = "/" + res.lstrip("/")
    return res

def basename(path : str) -> str:
    """Like `posixpath.basename`, but ignores trailing slashes and never
    returns an empty string."""
    if path == "":
        return "."
    path = path.rstrip("/")
    if path == "":
        return "/"
    return path.rsplit("/", 1)[-1]

def url_path(text : str) -> str:
    """Make `text` safe to use as a URL path.

    NB: the result can be empty, callers must check.
    """
    res = text.lower()
    res = res.replace("..", "")
    res = normpath(res)
    return clean_string(res, illegal_path_re)

def file_name(text : str) -> str:
    """Make the last component of `text` safe to use as a file name.

    NB: the result can be empty, callers must check.
    """
    res = text.lower()
    res = normpath(basename(res))
    return clean_string(res, illegal_name_re)

def test_accents() -> None:
    assert accents("Ærøskøbing Straße") == "AEroeskoebing Strasse"
    assert accents("Łódź, Œuvre, Þór") == "Lodź, OEuvre, Thor"
    assert accents("plain ascii") == "plain ascii"

def test_url_path() -> None:
    def check(text : str, expected : str) -> None:
        res = url_path(text)
        if res != expected:
            raise AssertionError(f"while cleaning `{text}`, got `{res}`, expected `{expected}`")

    check("Hello World/Über Café", "hello-world/uber-cafe")
    check("../../etc/passwd", "/etc/passwd")
    check("a & b = c + d: e_f", "a-b-c-d-e-f")
    check("What?! #1 (new)", "what-1-new")
    check("  trailing  ", "trailing")
    check("a/./b//c/", "a/b/c")
    check("a.!.b", "a.b")
    check("~user/x--y", "user/x-y")
    check("???", "")

def test_file_name() -> None:
    def check(text : str, expected : str) -> None:
        res = file_name(text)
        if res != expected:
            raise AssertionError(f"while cleaning `{text}`, got `{res}`, expected `{expected}`")

    check("Some/Dir/My File.TXT", "my-file.txt")
    check("naïve résumé.pdf", "naive-resume.pdf")
    check("dir/", "dir")
    check("/", "")
    check("a:b=c", "a-b-c")
    check("..", ".")

def test_url_path_alphabet() -> None:
    import random as _random
    rng = _random.Random(0)
    alphabet = [chr(c) for c in range(32, 127)]
    legal_re = _re.compile(r"[A-Za-z0-9._/-]*")
    for _ in range(2000):
        text = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 24)))
        if ".." in text:
            continue
        res = url_path(text)
        assert legal_re.fullmatch(res) is not None, (text, res)
        assert ".." not in res, (text, res)
        assert "--" not in res, (text, res)
