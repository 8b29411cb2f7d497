from __future__ import annotations

import pytest

from tests.support.harness import (
    ValorNameError,
    ValorRuntimeError,
    execute,
    run_runtime_case,
)
from valor.token_types import TT, Tok
from valor.types import Environment, VlrNumber

SCENARIOS = [
    pytest.param(
        "set x = 2; set y = x + 3;",
        "y",
        ("number", 5),
        None,
        id="globals-in-order",
    ),
    pytest.param(
        "set y = x; set x = 1;",
        "y",
        None,
        ValorNameError,
        id="initializer-sees-only-earlier-bindings",
    ),
    pytest.param(
        """\
        set x = 1;
        Functions {
            function probe() {
                { x: 99; }
                return x;
            }
        }
        """,
        "probe()",
        ("number", 1),
        None,
        id="inner-define-invisible-after-block",
    ),
    pytest.param(
        """\
        set x = 1;
        Functions {
            function probe() {
                x: 5;
                return x;
            }
        }
        """,
        "probe() + x",
        ("number", 6),
        None,
        id="stat-entry-shadows-locally",
    ),
    pytest.param(
        """\
        Functions {
            function probe() {
                set fresh = 3;
                return fresh;
            }
        }
        """,
        "probe() + fresh",
        None,
        ValorNameError,
        id="set-defines-locally-when-unbound",
    ),
    pytest.param(
        """\
        Functions {
            function probe(a) { return a; }
        }
        """,
        "probe(1) + a",
        None,
        ValorNameError,
        id="params-do-not-leak",
    ),
    pytest.param(
        """\
        Functions {
            function probe() {
                for (item in list(1, 2)) { }
                return item;
            }
        }
        """,
        "probe()",
        None,
        ValorNameError,
        id="loop-variable-does-not-leak",
    ),
    pytest.param(
        """\
        const limit = 3;
        Functions { function probe() { limit = 4; } }
        """,
        "probe()",
        None,
        ValorRuntimeError,
        id="const-is-immutable",
    ),
    pytest.param(
        "Functions { function probe() { ghost = 1; } }",
        "probe()",
        None,
        ValorNameError,
        id="assign-requires-existing-binding",
    ),
    pytest.param(
        "Functions { function probe() { return later(); } function later() { return 7; } }",
        "probe()",
        ("number", 7),
        None,
        id="functions-see-later-functions",
    ),
]


@pytest.mark.parametrize("source, probe, expectation, expected_exc", SCENARIOS)
def test_scoping(source: str, probe: str, expectation, expected_exc) -> None:
    run_runtime_case(source, probe, expectation, expected_exc)


def test_assignment_mutates_enclosing_binding() -> None:
    session = execute("""\
        set counter = 0;
        Functions {
            function bump() { counter = counter + 1; return counter; }
        }
    """)

    session.eval("bump()")
    session.eval("bump()")

    assert session.get("counter") == VlrNumber(2.0)


def test_set_assigns_when_bound() -> None:
    session = execute("""\
        set level = 1;
        Functions { function up() { set level = level + 1; } }
    """)

    session.eval("up()")

    assert session.get("level") == VlrNumber(2.0)


def _tok(name: str) -> Tok:
    return Tok(TT.IDENT, name, None, 1)


def test_environment_define_get_assign() -> None:
    root = Environment()
    root.define("hp", VlrNumber(10.0))
    inner = root.child()

    inner.define("hp", VlrNumber(1.0))
    assert inner.get(_tok("hp")) == VlrNumber(1.0)
    assert root.get(_tok("hp")) == VlrNumber(10.0)

    inner.assign(_tok("hp"), VlrNumber(2.0))
    assert root.get(_tok("hp")) == VlrNumber(10.0)

    deeper = inner.child()
    deeper.assign(_tok("hp"), VlrNumber(3.0))
    assert inner.vars["hp"] == VlrNumber(3.0)
    assert "hp" not in deeper.vars


def test_environment_errors() -> None:
    env = Environment()
    env.define("cap", VlrNumber(1.0), const=True)

    with pytest.raises(ValorNameError, match="Undefined variable 'nope'."):
        env.get(_tok("nope"))

    with pytest.raises(ValorNameError):
        env.assign(_tok("nope"), VlrNumber(0.0))

    with pytest.raises(ValorRuntimeError, match="Cannot assign to constant 'cap'."):
        env.child().assign(_tok("cap"), VlrNumber(0.0))


def test_redefine_drops_const() -> None:
    env = Environment()
    env.define("x", VlrNumber(1.0), const=True)
    env.define("x", VlrNumber(2.0))
    env.assign(_tok("x"), VlrNumber(3.0))

    assert env.vars["x"] == VlrNumber(3.0)


def test_child_scopes_share_runtime() -> None:
    session = execute("")
    assert session.env.child().child().runtime is session.runtime
