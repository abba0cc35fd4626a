"""Command-line entry point tests."""

import json

import pytest

from sexpln import run_cli


@pytest.fixture
def program(tmp_path):
    def write(source):
        path = tmp_path / "program.sexp"
        path.write_text(source, encoding="utf-8")
        return str(path)

    return write


class TestRunFile:

    def test_prints_rendered_value(self, program, capsys):
        path = program('(concat, (getArg, 0), (getArg, 1))')
        assert run_cli([path, "foo", "bar"]) == 0
        assert capsys.readouterr().out == "foobar\n"

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("true", "true"),
            ("null", "null"),
            ("1.0", "1.0"),
            ('(map, (array, "a"), (array, "é"))', '{"a":"é"}'),
            ("(array, 1, false)", "[1,false]"),
        ],
    )
    def test_rendering(self, program, capsys, source, expected):
        assert run_cli([program(source)]) == 0
        assert capsys.readouterr().out == expected + "\n"

    def test_missing_file(self, tmp_path, capsys):
        assert run_cli([str(tmp_path / "missing.sexp")]) == 1
        assert "Failed to read" in capsys.readouterr().err

    def test_file_that_is_not_utf8(self, tmp_path, capsys):
        path = tmp_path / "latin1.sexp"
        path.write_bytes(b'(concat, "\xff", "a")')
        assert run_cli([str(path)]) == 1
        captured = capsys.readouterr()
        assert captured.err.startswith(f"Failed to read {path}: ")
        assert captured.out == ""

    def test_too_deep_nesting(self, program, capsys):
        assert run_cli([program("(array, " * 600 + "1" + ")" * 600)]) == 1
        assert capsys.readouterr().err.startswith("ParseError: Nesting too deep")

    def test_lex_error(self, program, capsys):
        assert run_cli([program('(concat, "a)')]) == 1
        assert capsys.readouterr().err.startswith("LexError: Unterminated string literal at 1:10")

    def test_parse_error(self, program, capsys):
        assert run_cli([program("(array, 1) extra")]) == 1
        assert capsys.readouterr().err.startswith("ParseError: ")

    def test_eval_error_traceback(self, program, capsys):
        assert run_cli([program("(getArg, 3)"), "only"]) == 1
        err = capsys.readouterr().err
        assert "Traceback (most recent call last):" in err
        assert "EvalError: Argument 3 is not provided (rule: getArg)" in err

    def test_traceback_json(self, program, capsys):
        assert run_cli(["--traceback-json", program("(nosuch)")]) == 1
        err = capsys.readouterr().err
        payload = err[err.index("{"):]
        assert json.loads(payload)["error"]["rule"] == "nosuch"


class TestOptions:

    def test_literal_source(self, capsys):
        assert run_cli(["-source", "(json, (array, (getArg, 0)))", "x"]) == 0
        assert capsys.readouterr().out == '["x"]\n'

    def test_extension(self, ext_dir, capsys):
        assert run_cli(["-ext", str(ext_dir / "strings.py"), "-source", '(upper, "abc")']) == 0
        assert capsys.readouterr().out == "ABC\n"

    def test_bad_extension(self, tmp_path, capsys):
        assert run_cli(["-ext", str(tmp_path / "nope.py"), "-source", "1"]) == 1
        assert capsys.readouterr().err.startswith("ExtensionError: ")


class TestRepl:

    def test_repl_evaluates_lines(self, monkeypatch, capsys):
        lines = iter(["", '(concat, "a", "b")', "(array,", "1)", "(nosuch)", "(f 1)"])

        def fake_input(prompt=""):
            try:
                return next(lines)
            except StopIteration:
                raise EOFError

        monkeypatch.setattr("builtins.input", fake_input)
        assert run_cli([]) == 0
        captured = capsys.readouterr()
        assert "ab\n" in captured.out
        assert "[1]\n" in captured.out
        assert "EvalError: Function 'nosuch' is not defined" in captured.err
        assert "ParseError: " in captured.err
