"""Error reporting shared by the lexer, parser and evaluator front ends."""

from __future__ import annotations

import sys
from typing import Iterable, List, Optional, TextIO

from .token_types import TT, Tok


def format_error(line: int, message: str, where: str = "") -> str:
    return f"[line {line}] Error{where}: {message}"


def format_at(token: Optional[Tok], message: str) -> str:
    """Diagnostic line pointing at a token (or at end of input)."""
    if token is None:
        return format_error(0, message)

    if token.type == TT.EOF:
        return format_error(token.line, message, " at end")

    return format_error(token.line, message, f" at '{token.lexeme}'")


class Reporter:
    """Collects diagnostics and echoes each one to an error stream."""

    def __init__(self, stream: Optional[TextIO] = None, echo: bool = True):
        self.stream = stream
        self.echo = echo
        self.messages: List[str] = []
        self.had_error = False
        self.had_runtime_error = False

    def report(self, message: str) -> None:
        self.messages.append(message)

        if self.echo:
            print(message, file=self.stream or sys.stderr)

    def extend(self, diagnostics: Iterable[object]) -> None:
        """Report static (lex or parse) diagnostics."""
        for diag in diagnostics:
            self.had_error = True
            self.report(str(diag))

    def runtime_error(self, exc: Exception) -> None:
        self.had_runtime_error = True
        self.report(str(exc))

    def reset(self) -> None:
        self.messages.clear()
        self.had_error = False
        self.had_runtime_error = False
