from __future__ import annotations

import sys
import traceback
from pathlib import Path
from typing import List, Optional, TextIO

from .diagnostics import Reporter
from .evaluator import evaluate, evaluate_program
from .lexer_rd import LexError, tokenize
from .parser_rd import ParseError, parse_expression, parse_program
from .printer import dump
from .runtime import Runtime, runtime_of
from .token_types import Tok
from .tree import Program
from .types import Environment, VlrValue, ValorRuntimeError
from .utils import RuntimeConfig

# sysexits-style codes for the CLI
EXIT_STATIC_ERROR = 65
EXIT_RUNTIME_ERROR = 70


def lex_source(source: str, reporter: Reporter) -> List[Tok]:
    errors: List[LexError] = []
    tokens = tokenize(source, errors)
    reporter.extend(errors)
    return tokens


def parse_source(source: str, reporter: Reporter) -> Program:
    tokens = lex_source(source, reporter)
    errors: List[ParseError] = []
    program = parse_program(tokens, errors)
    reporter.extend(errors)
    return program


def _report_runtime(exc: ValorRuntimeError, reporter: Reporter, config: RuntimeConfig) -> None:
    reporter.runtime_error(exc)

    if config.debug_py_trace:
        print("\nPython traceback:", file=reporter.stream or sys.stderr)
        print("".join(traceback.format_tb(exc.__traceback__)), file=reporter.stream or sys.stderr, end="")


def run(
    source: str,
    env: Optional[Environment] = None,
    reporter: Optional[Reporter] = None,
    out: Optional[TextIO] = None,
    config: Optional[RuntimeConfig] = None,
) -> Environment:
    """
    Lex, parse and evaluate a whole program.

    Every diagnostic goes through `reporter`. A program with lex or parse
    errors is not evaluated; a runtime error stops evaluation and is reported
    once. Returns the global scope either way.
    """
    reporter = reporter if reporter is not None else Reporter()

    if env is None:
        env = Runtime(out=out, config=config).globals

    program = parse_source(source, reporter)
    if reporter.had_error:
        return env

    try:
        evaluate_program(program, env)
    except ValorRuntimeError as exc:
        _report_runtime(exc, reporter, runtime_of(env).config)

    return env


def run_expression(
    source: str,
    env: Optional[Environment] = None,
    reporter: Optional[Reporter] = None,
) -> Optional[VlrValue]:
    """Evaluate a single expression; None when it failed to parse or run."""
    reporter = reporter if reporter is not None else Reporter()

    if env is None:
        env = Runtime().globals

    tokens = lex_source(source, reporter)
    errors: List[ParseError] = []
    expr = parse_expression(tokens, errors)
    reporter.extend(errors)

    if expr is None or reporter.had_error:
        return None

    try:
        return evaluate(expr, env)
    except ValorRuntimeError as exc:
        _report_runtime(exc, reporter, runtime_of(env).config)
        return None


def run_file(path: str, reporter: Optional[Reporter] = None,
             config: Optional[RuntimeConfig] = None) -> Environment:
    source = Path(path).read_text(encoding="utf-8")
    return run(source, reporter=reporter, config=config)


def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as literal source.
    """

    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data

    candidate = Path(arg)
    if candidate.exists():
        return candidate.read_text(encoding="utf-8")

    return arg


def _parse_limit(raw: str) -> int:
    try:
        limit = int(raw)
    except ValueError:
        raise SystemExit(f"--max-loop-iterations expects an integer, got {raw!r}") from None

    if limit <= 0:
        raise SystemExit("--max-loop-iterations must be positive")

    return limit


def main(argv: Optional[List[str]] = None) -> int:
    show_tokens = False
    show_ast = False
    max_loops: Optional[int] = None
    arg = None
    it = iter(sys.argv[1:] if argv is None else argv)

    for token in it:
        if token == "--tokens":
            show_tokens = True
            continue

        if token == "--ast":
            show_ast = True
            continue

        if token.startswith("--max-loop-iterations="):
            max_loops = _parse_limit(token.split("=", 1)[1])
            continue

        if token == "--max-loop-iterations":
            try:
                max_loops = _parse_limit(next(it))
            except StopIteration:
                raise SystemExit("--max-loop-iterations flag requires a number") from None
            continue

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    source = _load_source(arg or "-")
    reporter = Reporter()

    if show_tokens or show_ast:
        program = parse_source(source, reporter)
        if show_tokens:
            for tok in tokenize(source):
                print(tok)
        if show_ast:
            print(dump(program))
        return EXIT_STATIC_ERROR if reporter.had_error else 0

    run(source, reporter=reporter, config=RuntimeConfig.from_env(max_loop_iterations=max_loops))

    if reporter.had_error:
        return EXIT_STATIC_ERROR
    if reporter.had_runtime_error:
        return EXIT_RUNTIME_ERROR

    return 0


if __name__ == "__main__":
    sys.exit(main())
