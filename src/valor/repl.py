"""Interactive REPL for Valor, powered by prompt_toolkit.

Lines that are not commands accumulate in a buffer; a command then works on
the whole buffer (`:tokens`, `:parse`, `:evaluate`, `:run`). Definitions made
by `:run` stay visible to later commands until the REPL exits.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from typing import List

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings

from .diagnostics import Reporter
from .printer import dump
from .repl_highlight import ValorLexer
from .runner import lex_source, parse_source, run, run_expression
from .runtime import Runtime
from .types import Environment
from .utils import stringify

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Commands: name => description.
COMMANDS = {
    ":tokens": "Show tokenized output",
    ":parse": "Parse and show AST",
    ":evaluate": "Evaluate an expression",
    ":run": "Parse and evaluate full program",
    ":clear": "Clear buffer",
    ":q": "Exit",
    ":quit": "Exit",
}


@dataclass
class ReplState:
    buffer: List[str] = field(default_factory=list)
    env: Environment = field(default_factory=lambda: Runtime().globals)

    @property
    def source(self) -> str:
        return "\n".join(self.buffer)


class _CommandCompleter(Completer):
    """Autocomplete `:` commands on the prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith(":"):
            return

        for cmd, desc in COMMANDS.items():
            if cmd.startswith(text):
                yield Completion(cmd, start_position=-len(text), display_meta=desc)


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


def _cmd_tokens(state: ReplState) -> None:
    # The buffer is kept so the same source can be parsed or run next.
    for tok in lex_source(state.source, Reporter()):
        print(tok)


def _cmd_parse(state: ReplState) -> None:
    program = parse_source(state.source, Reporter())
    print(dump(program))


def _cmd_evaluate(state: ReplState) -> None:
    result = run_expression(state.source, state.env)
    if result is not None:
        print(f"Result: {stringify(result)}")


def _cmd_run(state: ReplState) -> None:
    run(state.source, state.env)


_BUFFER_COMMANDS = {
    ":tokens": (_cmd_tokens, False),
    ":parse": (_cmd_parse, True),
    ":evaluate": (_cmd_evaluate, True),
    ":run": (_cmd_run, True),
}


def handle_line(line: str, state: ReplState) -> bool:
    """Process one input line. Returns False when the REPL should exit."""
    raw = _normalize(line)
    cmd = raw.strip()

    if cmd in (":q", ":quit"):
        return False

    if cmd == ":clear":
        state.buffer.clear()
        print("[ok] Buffer cleared.")
        return True

    entry = _BUFFER_COMMANDS.get(cmd)
    if entry is None:
        if cmd.startswith(":") and cmd[1:].isalpha():
            print(f"Unknown command: {cmd}", file=sys.stderr)
        else:
            state.buffer.append(raw)
        return True

    action, clears = entry
    if not state.buffer:
        print(f"[{cmd[1:]}] Buffer is empty.")
        return True

    action(state)

    if clears:
        state.buffer.clear()

    return True


def _banner() -> None:
    print("Valor REPL - Commands:")
    for cmd, desc in COMMANDS.items():
        if cmd != ":q":
            label = ":q/:quit" if cmd == ":quit" else cmd
            print(f"  {label:<10}- {desc}")
    print()


def repl() -> None:
    """Interactive read-eval-print loop with prompt_toolkit."""
    state = ReplState()

    bindings = KeyBindings()

    @bindings.add("backspace")
    def _backspace(event):
        buf = event.app.current_buffer
        buf.delete_before_cursor(1)
        if buf.text.startswith(":"):
            buf.start_completion()

    session: PromptSession[str] = PromptSession(
        history=InMemoryHistory(),
        lexer=ValorLexer(),
        completer=_CommandCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
    )

    _banner()

    while True:
        try:
            text = session.prompt("> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        if not handle_line(text, state):
            break

    print("Goodbye!")


if __name__ == "__main__":
    repl()
