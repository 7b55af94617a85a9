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

import codecs as _codecs
import io as _io
import logging as _logging
import sys as _sys
import traceback as _traceback
import typing as _t

from gettext import gettext, ngettext

from kisstdlib import argparse_ext as argparse
from kisstdlib.failure import *
from kisstdlib.io.stdio import *
from kisstdlib.logging_ext import *

from . import __version__
from .html import default_attrs, default_tags, make_options, sanitize_html_with
from .path import accents, file_name, url_path
from .text import html_to_text

__prog__ = "markupsan"

def str_Exception(exc : Exception) -> str:
    fobj = _io.StringIO()
    _traceback.print_exception(type(exc), exc, exc.__traceback__, 100, fobj)
    return fobj.getvalue()

def check_encoding(encoding : str) -> None:
    try:
        _codecs.lookup(encoding)
    except LookupError:
        raise CatastrophicFailure(gettext("unknown encoding `%s`"), encoding)

def read_input(path : str) -> bytes:
    if path == "-":
        return stdin.read_all_bytes()
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as exc:
        raise Failure(gettext("failed to open `%s`: %s"), path, exc.strerror)

def decode_input(data : bytes, encoding : str) -> str:
    try:
        return data.decode(encoding)
    except UnicodeError as exc:
        raise Failure(gettext("failed to decode input as `%s`: %s"), encoding, str(exc))

def map_inputs(cargs : _t.Any, func : _t.Callable[[bytes], str]) -> None:
    """Apply `func` to each input `PATH` and print the results."""
    paths = cargs.paths if len(cargs.paths) > 0 else ["-"]
    for path in paths:
        try:
            res = func(read_input(path))
        except Failure as exc:
            if cargs.errors == "ignore":
                continue
            exc.elaborate(gettext("while processing `%s`"), path)
            if cargs.errors != "fail":
                error("%s", str(exc))
                continue
            raise exc
        stdout.write_str(res)
        stdout.flush()

def split_names(value : str) -> list[str]:
    return [e.strip() for e in value.split(",") if e.strip() != ""]

def cmd_html(cargs : _t.Any) -> None:
    check_encoding(cargs.encoding)
    opts = make_options(cargs.tags, cargs.attrs, cargs.strict)

    def run(data : bytes) -> str:
        return sanitize_html_with(opts, data, cargs.encoding)

    map_inputs(cargs, run)

def cmd_text(cargs : _t.Any) -> None:
    check_encoding(cargs.encoding)

    def run(data : bytes) -> str:
        return html_to_text(decode_input(data, cargs.encoding))

    map_inputs(cargs, run)

def mk_cmd_strings(func : _t.Callable[[str], str]) -> _t.Callable[[_t.Any], None]:
    def cmd(cargs : _t.Any) -> None:
        for value in cargs.strings:
            stdout.write_str_ln(func(value))
        stdout.flush()
    return cmd

def make_argparser() -> argparse.BetterArgumentParser:
    _ : _t.Callable[[str], str] = gettext

    parser = argparse.BetterArgumentParser(
        prog=__prog__,
        description=_("Sanitize untrusted HTML markup for safe inclusion into HTML pages, turn HTML into plain text, and turn arbitrary strings into URL path and file name slugs."),
        add_version = True,
        version = __version__)
    parser.add_argument("-v", "--verbose", action="store_true", help=_("log tokenizer complaints and other debugging messages"))

    subparsers = parser.add_subparsers(title="subcommands", dest="subcommand", required=True)

    def add_errors(cmd : _t.Any) -> None:
        grp = cmd.add_argument_group("error handling")
        grp.add_argument("--errors", choices=["fail", "skip", "ignore"], default="fail", help=_("""when an error occurs:
- `fail`: report failure and stop the execution; default
- `skip`: report failure but skip the input that produced it and continue
- `ignore`: `skip`, but don't report the failure"""))

    def add_inputs(cmd : _t.Any) -> None:
        cmd.add_argument("--encoding", metavar="ENCODING", default="utf-8", help=_("decode inputs using this encoding; default: `%(default)s`"))
        cmd.add_argument("paths", metavar="PATH", nargs="*", type=str, help=_("input file paths, `-` or no `PATH`s at all means `stdin`"))

    cmd = subparsers.add_parser("html", help=_("sanitize HTML markup"),
                                description=_("Sanitize HTML markup, keeping only the allowed tags and attributes, and print the results to `stdout`. The subtrees of `title`, `script`, `style`, `iframe`, `frame`, `frameset`, `noframes`, `noembed`, `embed`, `applet`, `object`, and `base` elements are always censored out."))
    add_errors(cmd)
    agrp = cmd.add_argument_group("allowlists")
    agrp.add_argument("--tags", metavar="TAG,...", type=split_names, default=None, help=_("comma-separated list of allowed tags; default: `%s`") % (",".join(sorted(default_tags)),))
    agrp.add_argument("--attrs", metavar="ATTR,...", type=split_names, default=None, help=_("comma-separated list of allowed attributes; default: `%s`") % (",".join(sorted(default_attrs)),))
    cmd.add_argument("--strict", action="store_true", help=_("fail on malformed markup instead of silently dropping it"))
    add_inputs(cmd)
    cmd.set_defaults(func=cmd_html)

    cmd = subparsers.add_parser("text", help=_("turn HTML into plain text"),
                                description=_("Strip all tags from HTML markup, keeping paragraph and line breaks as newlines, and print the results to `stdout`, escaped for inclusion into HTML."))
    add_errors(cmd)
    add_inputs(cmd)
    cmd.set_defaults(func=cmd_text)

    def add_strings(name : str, func : _t.Callable[[str], str], help : str, description : str) -> None:
        cmd = subparsers.add_parser(name, help=help, description=description)
        cmd.add_argument("strings", metavar="STRING", nargs="+", type=str, help=_("input strings"))
        cmd.set_defaults(func=mk_cmd_strings(func))

    add_strings("path", url_path, _("turn strings into URL paths"),
                _("Print a URL path slug for each `STRING`, one per line; the results can be empty."))
    add_strings("name", file_name, _("turn strings into file names"),
                _("Print a file name slug for the last path component of each `STRING`, one per line; the results can be empty."))
    add_strings("accents", accents, _("flatten accented characters"),
                _("Print each `STRING` with common accented characters replaced with their ASCII equivalents, one per line."))

    return parser

def main(argv : list[str] | None = None) -> None:
    _ : _t.Callable[[str], str] = gettext

    # like `setup_logging`, but undone on exit, so that `main` can be called
    # repeatedly with different `stderr`s
    errorcnt = LogCounter()
    handler = ANSILogHandler(__prog__, _logging.Formatter("%(message)s"), stream=stderr)
    logger = _logging.getLogger()
    old_level = logger.level
    logger.setLevel(_logging.WARNING)
    logger.addHandler(errorcnt)
    logger.addHandler(handler)

    try:
        parser = make_argparser()
        cargs = parser.parse_args(_sys.argv[1:] if argv is None else argv)

        if cargs.verbose:
            logger.setLevel(_logging.DEBUG)
            handler.setLevel(_logging.DEBUG)

        cargs.func(cargs)
    except KeyboardInterrupt:
        error("%s", _("Interrupted!"))
    except CatastrophicFailure as exc:
        error("%s", exc.get_message(_))
    except Exception as exc:
        error("%s", _("uncaught exception"))
        stderr.write_str(str_Exception(exc))
    finally:
        handler.flush()
        logger.removeHandler(handler)
        logger.removeHandler(errorcnt)
        logger.setLevel(old_level)

    stdout.flush()
    stderr.flush()

    if errorcnt.warnings > 0:
        stderr.write_str_ln(ngettext("There was %d warning!", "There were %d warnings!", errorcnt.warnings) % (errorcnt.warnings,))
    if errorcnt.errors > 0:
        stderr.write_str_ln(ngettext("There was %d error!", "There were %d errors!", errorcnt.errors) % (errorcnt.errors,))
        stderr.flush()
        _sys.exit(1)
    stderr.flush()
    _sys.exit(0)

def run_main(argv : list[str], input_data : bytes = b"") -> tuple[int, str, str]:
    """Run `main` with `input_data` as `stdin`, return its exit code and outputs."""
    global stdin, stdout, stderr
    old = stdin, stdout, stderr
    out = _io.BytesIO()
    err = _io.BytesIO()
    stdin = TIOWrappedReader(_io.BytesIO(input_data))
    stdout = TIOWrappedWriter(out, ansi=False)
    stderr = TIOWrappedWriter(err, ansi=False)
    try:
        main(argv)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
    else:
        code = 0
    finally:
        stdin, stdout, stderr = old
    return code, out.getvalue().decode("utf-8"), err.getvalue().decode("utf-8")

def test_main_html() -> None:
    code, out, err = run_main(["html"], b"<p onclick=x>hi<script>alert(1)</script></p>")
    assert (code, out, err) == (0, "<p>hi</p>", "")

    code, out, _ = run_main(["html", "--tags", "b", "--attrs", "id", "-"], b"<b id=x class=y>a</b><i>b</i>")
    assert (code, out) == (0, '<b id="x">a</b>b')

    code, out, err = run_main(["html", "--strict"], b"<b>x</b")
    assert code == 1 and out == ""
    assert "eof-in-tag-name" in err

def test_main_html_errors() -> None:
    code, out, err = run_main(["html", "/nonexistent/a.html", "-"], b"<b>ok</b>")
    assert code == 1 and out == ""
    assert "markupsan: error: while processing `/nonexistent/a.html`: failed to open `/nonexistent/a.html`: " in err

    code, out, err = run_main(["html", "--errors", "skip", "/nonexistent/a.html", "-"], b"<b>ok</b>")
    assert code == 1 and out == "<b>ok</b>"
    assert "while processing `/nonexistent/a.html`: failed to open" in err
    assert "There was 1 error!" in err

    code, out, err = run_main(["html", "--errors", "ignore", "/nonexistent/a.html", "-"], b"<b>ok</b>")
    assert (code, out, err) == (0, "<b>ok</b>", "")

    code, out, err = run_main(["html", "--tags", "script,b"], b"<b>ok</b>")
    assert (code, out) == (0, "<b>ok</b>")
    assert "There was 1 warning!" in err

def test_main_bad_encoding() -> None:
    for cmd in ["html", "text"]:
        code, out, err = run_main([cmd, "--errors", "skip", "--encoding", "bogus", "/nonexistent/a.html", "-"], b"<b>ok</b>")
        assert code == 1 and out == ""
        assert "unknown encoding `bogus`" in err
        assert "while processing" not in err

def test_main_text() -> None:
    code, out, _ = run_main(["text"], b"<p>fish &amp; chips</p>")
    assert (code, out) == (0, "fish & chips\n")

    code, out, err = run_main(["text"], b"\xff")
    assert code == 1 and out == ""
    assert "failed to decode input" in err

def test_main_strings() -> None:
    assert run_main(["path", "Hello World/Über", "../x"]) == (0, "hello-world/uber\n/x\n", "")
    assert run_main(["name", "Dir/My File.TXT"]) == (0, "my-file.txt\n", "")
    assert run_main(["accents", "Straße"]) == (0, "Strasse\n", "")
    code, _, err = run_main(["path"])
    assert code == 2 and "the following arguments are required" in err

if __name__ == "__main__":
    main()
