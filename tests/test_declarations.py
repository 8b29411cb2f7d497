from __future__ import annotations

import pytest

from tests.support.harness import (
    ValorNameError,
    VlrRecord,
    execute,
    run_runtime_case,
)
from valor.types import VlrEffect, VlrList, VlrNil, VlrNumber, VlrString

MAGE = """\
GAME Demo {
    import core_rules;
    set base_hp = 80;

    Heroes {
        hero Mage {
            set title = "Archmage";
            heroStat: { hp: base_hp + 20, max_hp: hp * 2, armor: 5 }
            abilities: {
                ability Fireball {
                    type: Magic,
                    cooldown: 5s,
                    mana_cost: 60,
                    damage_type: Fire,
                    behavior: damage(80) |> stun(2)
                }
                ability Shield {
                    cooldown: 12,
                    behavior: { apply buff("armor", 10) to self; }
                }
                ability Zap {
                    behavior: { apply damage(5) to target; }
                }
            }
        }
    }
}
"""


def _ability(session, index: int) -> VlrRecord:
    abilities = session.get("Mage").get("abilities")
    assert isinstance(abilities, VlrList)
    record = abilities.items[index]
    assert isinstance(record, VlrRecord)
    return record


SCENARIOS = [
    pytest.param(MAGE, 'get(Mage, "hp")', ("number", 100), None, id="stat-uses-global"),
    pytest.param(MAGE, 'get(Mage, "max_hp")', ("number", 200), None, id="stat-uses-earlier-stat"),
    pytest.param(MAGE, 'get(Mage, "title")', ("string", "Archmage"), None, id="hero-set"),
    pytest.param(MAGE, 'get(Mage, "missing")', ("nil", None), None, id="missing-field-is-nil"),
    pytest.param(
        MAGE,
        'get(get(get(Mage, "abilities"), 0), "cooldown")',
        ("number", 5),
        None,
        id="ability-duration-in-seconds",
    ),
    pytest.param(MAGE, "Fireball", None, ValorNameError, id="abilities-are-not-global"),
    pytest.param(MAGE, "title", None, ValorNameError, id="hero-scope-is-private"),
    pytest.param(MAGE, 'len(get(Mage, "abilities"))', ("number", 3), None, id="ability-count"),
]


@pytest.mark.parametrize("source, probe, expectation, expected_exc", SCENARIOS)
def test_declarations(source: str, probe: str, expectation, expected_exc) -> None:
    run_runtime_case(source, probe, expectation, expected_exc)


def test_hero_record_and_world_registration() -> None:
    session = execute(MAGE)

    mage = session.get("Mage")
    assert isinstance(mage, VlrRecord) and mage.kind == "hero"
    assert session.runtime.world.get("Mage") is mage
    assert session.runtime.imports == ["core_rules"]


def test_ability_fields() -> None:
    fireball = _ability(execute(MAGE), 0)

    assert fireball.kind == "ability"
    assert fireball.get("type") == VlrString("Magic")
    assert fireball.get("damage_type") == VlrString("Fire")
    assert fireball.get("mana_cost") == VlrNumber(60.0)
    assert repr(fireball.get("behavior")) == "<effect damage(80) |> stun(2)>"


def test_self_apply_runs_during_declaration() -> None:
    session = execute(MAGE)
    shield = _ability(session, 1)

    assert session.get("Mage").get("armor") == VlrNumber(15.0)
    assert repr(shield.get("behavior")) == '<effect buff("armor", 10)>'


def test_target_apply_without_target_only_builds_effect() -> None:
    session = execute(MAGE)
    zap = _ability(session, 2)

    assert isinstance(zap.get("behavior"), VlrEffect)
    assert session.get("Mage").get("hp") == VlrNumber(100.0)


def test_status_effects_and_items() -> None:
    session = execute("""\
        StatusEffects {
            statusEffect Burn {
                type: Debuff
                duration: 3s
                on_apply: { print("burning"); }
                on_tick: damage(10)
            }
        }
        Items {
            item Blade {
                cost: 500,
                attack: 25
                passive: { behavior: buff("attack", 10) }
            }
        }
    """)

    burn = session.get("Burn")
    assert burn.kind == "status_effect"
    assert burn.get("type") == VlrString("Debuff")
    assert burn.get("duration") == VlrNumber(3.0)
    assert burn.get("on_apply") == VlrNil()
    assert repr(burn.get("on_tick")) == "<effect damage(10)>"
    assert session.output == ["burning"]

    blade = session.get("Blade")
    assert blade.kind == "item"
    assert blade.get("cost") == VlrNumber(500.0)
    assert repr(blade.get("passive")) == '<effect buff("attack", 10)>'
    assert "Blade" not in session.runtime.world


def test_behavior_block_yields_return_value() -> None:
    session = execute("""\
        StatusEffects {
            statusEffect Chill {
                on_apply: { set n = 2; return n * 3; }
                on_expire: { 1; "done"; }
            }
        }
    """)

    chill = session.get("Chill")
    assert chill.get("on_apply") == VlrNumber(6.0)
    assert chill.get("on_expire") == VlrString("done")


def test_creeps_and_arena() -> None:
    session = execute("""\
        Arena {
            core Nexus { hp: 5000 }
            team Radiant {
                core Nexus;
                turrets: {
                    turret T1 { hp: 1500, damage: 100 }
                    T2 { hp: 1800 }
                }
            }
            team Dire { core Ghost; }
        }
        Creeps { creep Wolf { hp: 300, bounty: hp / 10 } }
    """)
    world = session.runtime.world

    assert [e.name for e in world] == ["Nexus", "T1", "T2", "Wolf"]
    assert session.get("Wolf").get("bounty") == VlrNumber(30.0)

    radiant = session.get("Radiant")
    assert radiant.kind == "team"
    assert radiant.get("core") is session.get("Nexus")
    assert [t.name for t in radiant.get("turrets").items] == ["T1", "T2"]
    assert session.get("Dire").get("core") == VlrString("Ghost")
    assert "Radiant" not in world


def test_behavior_cannot_call_user_functions() -> None:
    source = """\
        Heroes {
            hero H { abilities { ability A { behavior: helper() } } }
        }
        Functions { function helper() { return damage(1); } }
    """

    with pytest.raises(ValorNameError, match="Undefined function 'helper'."):
        execute(source)


def test_functions_can_call_declared_descriptors() -> None:
    session = execute("""\
        Creeps { creep Wolf { hp: 300 } }
        Functions { function wolf_hp() { return get(Wolf, "hp"); } }
    """)

    assert session.eval("wolf_hp()") == VlrNumber(300.0)


def test_record_repr() -> None:
    session = execute("Creeps { creep Wolf { hp: 300, bounty: 40 } }")

    assert repr(session.get("Wolf")) == "<creep Wolf> { hp: 300, bounty: 40 }"


@pytest.mark.parametrize(
    "body",
    [
        pytest.param("set me = Loop;", id="hero-set"),
        pytest.param("heroStat { twin: Loop }", id="hero-stat"),
    ],
)
def test_hero_is_not_visible_inside_its_own_body(body: str) -> None:
    with pytest.raises(ValorNameError, match="Undefined variable 'Loop'."):
        execute("Heroes { hero Loop { " + body + " } }")


def test_hero_can_reference_earlier_hero() -> None:
    session = execute("""\
        Heroes {
            hero First { heroStat { hp: 10 } }
            hero Second { set rival = First; }
        }
    """)

    assert session.get("Second").get("rival") is session.get("First")
    assert repr(session.get("Second")) == "<hero Second> { rival: <hero First> { hp: 10 } }"
