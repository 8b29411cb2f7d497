from __future__ import annotations

import pytest
from prompt_toolkit.document import Document

from valor.lexer_rd import tokenize
from valor.repl import COMMANDS, ReplState, _CommandCompleter, handle_line
from valor.repl_highlight import GROUP_STYLE, ValorLexer, highlight_line
from valor.types import VlrNumber


def _feed(state: ReplState, *lines: str) -> bool:
    alive = True
    for line in lines:
        alive = handle_line(line, state)
    return alive


def test_quit_commands() -> None:
    assert handle_line(":q", ReplState()) is False
    assert handle_line("  :quit  ", ReplState()) is False


def test_lines_accumulate_in_buffer() -> None:
    state = ReplState()
    _feed(state, "set x = 1;", "set y = 2;")

    assert state.buffer == ["set x = 1;", "set y = 2;"]
    assert state.source == "set x = 1;\nset y = 2;"


def test_invisible_characters_are_stripped() -> None:
    state = ReplState()
    handle_line("set\u200b x = 1;\r", state)

    assert state.buffer == ["set x = 1;"]


def test_clear(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    _feed(state, "set x = 1;", ":clear")

    assert state.buffer == []
    assert capsys.readouterr().out == "[ok] Buffer cleared.\n"


@pytest.mark.parametrize("cmd", [":tokens", ":parse", ":evaluate", ":run"])
def test_empty_buffer(cmd: str, capsys: pytest.CaptureFixture[str]) -> None:
    assert handle_line(cmd, ReplState()) is True
    assert capsys.readouterr().out == f"[{cmd[1:]}] Buffer is empty.\n"


def test_unknown_command(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    assert handle_line(":bogus", state) is True

    assert capsys.readouterr().err == "Unknown command: :bogus\n"
    assert state.buffer == []


def test_tokens_keeps_buffer(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    _feed(state, "set x = 1;", ":tokens")

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Tok(SET, 'set', None, line 1)"
    assert state.buffer == ["set x = 1;"]


def test_tokens_reports_lex_errors(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    _feed(state, "set x = $;", ":tokens")

    captured = capsys.readouterr()
    assert captured.err == "[line 1] Error: Unexpected character '$'.\n"
    assert captured.out.splitlines()[-1].startswith("Tok(EOF")
    assert state.buffer == ["set x = $;"]


def test_parse_prints_tree_and_clears(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    _feed(state, "set x = 1;", ":parse")

    assert capsys.readouterr().out.startswith("program")
    assert state.buffer == []


def test_run_then_evaluate_share_environment(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    _feed(state, "set gold = 600;", ":run", "gold + 50", ":evaluate")

    assert capsys.readouterr().out == "Result: 650\n"
    assert state.env.vars["gold"] == VlrNumber(600.0)
    assert state.buffer == []


def test_run_reports_errors(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    _feed(state, "set x = 1 / 0;", ":run")

    assert "Division by zero." in capsys.readouterr().err
    assert state.buffer == []


def test_evaluate_failure_prints_no_result(capsys: pytest.CaptureFixture[str]) -> None:
    state = ReplState()
    _feed(state, "missing + 1", ":evaluate")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Undefined variable 'missing'." in captured.err


def test_completer_suggests_commands() -> None:
    completions = list(_CommandCompleter().get_completions(Document(":q"), None))

    assert [c.text for c in completions] == [":q", ":quit"]
    assert list(_CommandCompleter().get_completions(Document("set"), None)) == []
    assert set(COMMANDS) >= {":tokens", ":parse", ":evaluate", ":run", ":clear"}


def test_highlight_line_groups() -> None:
    text = 'apply damage(50%) to target; // hit'
    spans = highlight_line(text, tokenize(text)[:-1])
    styles = dict((fragment, style) for style, fragment in spans)

    assert styles["apply"] == GROUP_STYLE["keyword"]
    assert styles["damage"] == GROUP_STYLE["function"]
    assert styles["50%"] == GROUP_STYLE["number"]
    assert styles["target"] == GROUP_STYLE["target"]
    assert styles["// hit"] == GROUP_STYLE["comment"]
    assert "".join(fragment for _, fragment in spans) == text


def test_highlight_fields_and_strings() -> None:
    text = 'cooldown: "slow"'
    spans = highlight_line(text, tokenize(text)[:-1])

    assert spans[0] == (GROUP_STYLE["field"], "cooldown")
    assert (GROUP_STYLE["string"], '"slow"') in spans


def test_lexer_keeps_block_comment_state_across_lines() -> None:
    document = Document("/* start\nstill comment */ set x = 1;")
    get_line = ValorLexer().lex_document(document)

    first = get_line(0)
    second = get_line(1)

    assert first == [(GROUP_STYLE["comment"], "/* start")]
    assert (GROUP_STYLE["keyword"], "set") in second
    assert get_line(5) == [("", "")]
