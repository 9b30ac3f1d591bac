"""Lox CLI: run .lox files or start a REPL."""

from __future__ import annotations

import logging
import sys

from .emit import to_source
from .errors import LoxError
from .parse import parse_tokens
from .runtime import EXIT_DATAERR, Interpreter, run, stringify
from .tokens import tokenize


USAGE: str = """\
lox [OPTIONS] [FILE]

Run a Lox program, or start an interactive session when FILE is omitted.

Options:
  --ast          Print the parsed program instead of running it
  --strict       Treat resolution errors as fatal
  -v, --verbose  Log pipeline diagnostics to stderr
  --help         Show this help message
"""

PROMPT: str = "> "


def main(argv: list[str] | None = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    filepath: str = ""
    show_ast = False
    strict = False
    verbose = False
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return 0
        elif arg == "--ast":
            show_ast = True
            i += 1
        elif arg == "--strict":
            strict = True
            i += 1
        elif arg == "--verbose" or arg == "-v":
            verbose = True
            i += 1
        elif arg.startswith("-"):
            print("lox: unknown flag '" + arg + "'", file=sys.stderr)
            return 2
        elif filepath == "":
            filepath = arg
            i += 1
        else:
            print("lox: unexpected argument '" + arg + "'", file=sys.stderr)
            return 2

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(name)s: %(message)s", stream=sys.stderr
        )

    if filepath == "":
        return repl(strict=strict)

    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        print("lox: " + filepath + ": No such file or directory", file=sys.stderr)
        return 1
    except OSError as e:
        print("lox: " + filepath + ": " + str(e), file=sys.stderr)
        return 1
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("lox: " + filepath + ": invalid utf-8", file=sys.stderr)
        return 1

    if show_ast:
        return print_ast(source)

    result = run(source, strict=strict)
    sys.stdout.write(result.stdout)
    sys.stderr.write(result.stderr)
    return result.exit_code


def print_ast(source: str) -> int:
    try:
        tokens = tokenize(source)
    except LoxError as e:
        _report("scan", e)
        return EXIT_DATAERR
    stmts, errors = parse_tokens(tokens)
    print(to_source(stmts))
    for err in errors:
        _report("parse", err)
    return EXIT_DATAERR if errors else 0


def repl(*, strict: bool = False) -> int:
    """Read-eval-print loop. Bindings persist across lines; errors abort only their line."""
    interpreter = Interpreter()
    while True:
        try:
            line = input(PROMPT)
        except EOFError:
            print()
            return 0
        line = line.strip()
        if line == "":
            continue
        if line == "exit":
            return 0
        run_line(interpreter, line, strict=strict)


def _report(stage: str, err: LoxError) -> None:
    print("lox: " + stage + " error: " + str(err), file=sys.stderr)


def run_line(interpreter: Interpreter, line: str, *, strict: bool = False) -> int:
    """Run one REPL line. A trailing expression's non-nil value is echoed."""
    code, value = interpreter.run_source(line, _report, strict=strict)
    if value is not None:
        print(stringify(value))
    return code


if __name__ == "__main__":
    sys.exit(main())
