from __future__ import annotations

import pytest

from tests.support.harness import (
    ValorArityError,
    ValorNameError,
    ValorRuntimeError,
    ValorTypeError,
    execute,
    run_runtime_case,
)
from valor.types import VlrFn

HELPERS = """\
    Functions {
        function sub(a, b) { return a - b; }
        function pair(first, second) { return list(first, second); }
        function fact(n) {
            if (n <= 1) { return 1; }
            return n * fact(n - 1);
        }
        function forever(n) { return forever(n + 1); }
    }
"""

SCENARIOS = [
    pytest.param(HELPERS, "sub(10, 4)", ("number", 6), None, id="positional"),
    pytest.param(HELPERS, "sub(b: 1, a: 5)", ("number", 4), None, id="named"),
    pytest.param(HELPERS, "sub(9, b: 2)", ("number", 7), None, id="mixed"),
    pytest.param(HELPERS, "pair(1)", ("list", "[1, nil]"), None, id="missing-is-nil"),
    pytest.param(HELPERS, "sub(1, 2, 3)", None, ValorArityError, id="too-many-positional"),
    pytest.param(HELPERS, "sub(1, c: 2)", None, ValorArityError, id="unknown-named"),
    pytest.param(HELPERS, "sub(1, a: 2)", None, ValorArityError, id="named-repeats-positional"),
    pytest.param(HELPERS, "sub(a: 1, a: 2)", None, ValorArityError, id="named-given-twice"),
    pytest.param(HELPERS, "fact(5)", ("number", 120), None, id="recursion"),
    pytest.param(HELPERS, "nothing_here()", None, ValorNameError, id="undefined-function"),
    pytest.param(HELPERS, "len(1, 2)", None, ValorArityError, id="native-arity"),
    pytest.param(HELPERS, "len(3)", None, ValorTypeError, id="native-type-check"),
    pytest.param(HELPERS, "10 |> sub(3)", ("number", 7), None, id="pipeline-first-arg"),
    pytest.param(HELPERS, "10 |> sub(3) |> sub(2)", ("number", 5), None, id="pipeline-chain"),
    pytest.param(HELPERS, 'list(1) |> len()', ("number", 1), None, id="pipeline-into-native"),
    pytest.param(HELPERS, "get(list(4, 5, 6), 1)", ("number", 5), None, id="get-list-index"),
    pytest.param(HELPERS, "get(list(4), 3)", None, ValorRuntimeError, id="get-out-of-range"),
    pytest.param(HELPERS, "seq(3)", ("list", "[0, 1, 2]"), None, id="seq"),
    pytest.param(HELPERS, "seq(-1)", None, ValorTypeError, id="seq-negative"),
]


@pytest.mark.parametrize("source, probe, expectation, expected_exc", SCENARIOS)
def test_functions(source: str, probe: str, expectation, expected_exc) -> None:
    run_runtime_case(source, probe, expectation, expected_exc)


def test_unbounded_recursion_reports_stack_overflow() -> None:
    session = execute(HELPERS)

    with pytest.raises(ValorRuntimeError, match="Stack overflow."):
        session.eval("forever(0)")


def test_functions_are_not_invoked_by_declaration() -> None:
    session = execute("""\
        Functions { function noisy() { print("called"); } }
    """)

    assert session.output == []
    assert isinstance(session.get("noisy"), VlrFn)
    assert repr(session.get("noisy")) == "<fn noisy()>"


def test_function_body_sees_globals_at_call_time() -> None:
    session = execute("""\
        set base = 2;
        Functions { function scaled(x) { return x * base; } }
    """)

    assert session.eval("scaled(5)").value == 10.0


def test_arity_error_names_function() -> None:
    session = execute(HELPERS)

    with pytest.raises(ValorArityError, match=r"sub\(\) takes 2 argument\(s\); got 3."):
        session.eval("sub(1, 2, 3)")


def test_print_joins_arguments() -> None:
    session = execute("")
    session.eval('print("hp", 10, true, nil, list(1, 2.5))')

    assert session.output == ["hp 10 true nil [1, 2.5]"]


def test_log_tags_output() -> None:
    session = execute("")
    session.eval('log("ready")')

    assert session.output == ["[log] ready"]


def test_log_without_arguments_dumps_scopes() -> None:
    session = execute("set gold = 600;")
    session.eval("log()")

    assert session.output == ["[log] scope 0: gold=600"]


def test_export_writes_value(tmp_path) -> None:
    target = tmp_path / "out.txt"
    session = execute("")
    session.eval(f'export("{target.as_posix()}", list(1, "a"))')

    assert target.read_text(encoding="utf-8") == "[1, a]"
