"""SEXP-Lang entry point and REPL wiring."""
from __future__ import annotations
import argparse
import sys
from typing import Any, List, Optional, Sequence

from extensions import ExtensionError, RuntimeServices, load_runtime_services
from interpreter import EvalError, Interpreter, TracebackFormatter, render_value
from lexer import EOF, LexError, ParseError, tokenize


def _is_incomplete(text: str, error: ParseError) -> bool:
    # A parse error sitting on EOF means the expression simply is not finished yet.
    try:
        eof = tokenize(text)[-1]
    except LexError:
        return False
    return eof.kind == EOF and (error.line, error.column) == (eof.line, eof.column)


def run_repl(verbose: bool, services: Optional[RuntimeServices], arguments: Sequence[Any]) -> int:
    print("\x1b[38;2;153;221;255mSEXP-Lang\033[0m REPL. One expression per line, Ctrl-D to exit.")
    interpreter = Interpreter(verbose=verbose, services=services)
    buffer: List[str] = []

    while True:
        prompt = "\x1b[38;2;153;221;255m>>>\033[0m " if not buffer else "\x1b[38;2;153;221;255m..>\033[0m "
        try:
            line = input(prompt)
        except EOFError:
            print()
            break

        if not buffer and line.strip() == "":
            continue
        buffer.append(line)
        source_text = "\n".join(buffer)
        try:
            result = interpreter.run(source_text, arguments)
        except ParseError as error:
            if _is_incomplete(source_text, error):
                continue
            print(f"ParseError: {error}", file=sys.stderr)
        except LexError as error:
            print(f"LexError: {error}", file=sys.stderr)
        except EvalError as error:
            formatter = TracebackFormatter(interpreter)
            print(formatter.format_text(error, verbose=verbose), file=sys.stderr)
        else:
            print(render_value(result))
        buffer.clear()

    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="SEXP-Lang reference interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments available to getArg")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-ext", "--ext", dest="extensions", action="append", default=[], help="Load an extension module (repeatable)")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Show call arguments in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    args = parser.parse_args(argv)

    services: Optional[RuntimeServices] = None
    if args.extensions:
        try:
            services = load_runtime_services(args.extensions)
        except ExtensionError as error:
            print(f"ExtensionError: {error}", file=sys.stderr)
            return 1

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(verbose=args.verbose, services=services, arguments=args.args)

    if args.source_mode:
        source_text = args.program
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    interpreter = Interpreter(verbose=args.verbose, services=services)
    try:
        result = interpreter.run(source_text, args.args)
    except LexError as error:
        print(f"LexError: {error}", file=sys.stderr)
        return 1
    except ParseError as error:
        print(f"ParseError: {error}", file=sys.stderr)
        return 1
    except EvalError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    print(render_value(result))
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
