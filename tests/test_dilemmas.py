from __future__ import annotations

from dataclasses import replace

import pytest

from seedhive.runtime.construction import add_unit
from seedhive.runtime.dilemmas import (
    DilemmaType,
    apply_dilemma_choice,
    check_dilemma_conditions,
    generate_discovery_dilemma,
    generate_native_life_dilemma,
    generate_resource_scarcity_dilemma,
    next_dilemma,
)
from seedhive.runtime.phase_engine import transition_phase
from seedhive.runtime.rng_service import FixedRandom, RNGService
from seedhive.state import (
    DifficultyModifier,
    EthicalRecord,
    Phase,
    Unit,
    UnitRole,
    create_initial_state,
    default_unlocks,
)


def _fired(state, value):
    return [gen().type for gen in check_dilemma_conditions(state, FixedRandom(value))]


def _record(weight: str) -> EthicalRecord:
    return EthicalRecord(
        cycle=1, dilemma="discovery", title="t", choice="c", choice_label="l", weight=weight, reflection="r"
    )


def test_native_life_window_and_gate():
    state = replace(create_initial_state(), cycle=13)

    assert _fired(state, 0.99) == [DilemmaType.NATIVE_LIFE]
    assert _fired(state, 0.0) == []
    assert _fired(replace(state, cycle=12), 0.99) == []
    assert _fired(replace(state, native_life_encountered=True), 0.99) == []


def test_scarcity_needs_no_random_draw():
    state = replace(create_initial_state(), cycle=6, biomass=100.0)

    assert _fired(state, 0.0) == [DilemmaType.RESOURCE_SCARCITY]
    assert _fired(replace(state, cycle=5), 0.0) == []
    assert _fired(replace(state, biomass=500.0, energy=10.0), 0.0) == [DilemmaType.RESOURCE_SCARCITY]


def test_several_dilemmas_can_fire_together():
    state = replace(create_initial_state(), cycle=13, biomass=100.0)

    assert _fired(state, 0.99) == [DilemmaType.NATIVE_LIFE, DilemmaType.RESOURCE_SCARCITY]


def test_thermal_crisis_reads_total_heat():
    state = replace(create_initial_state(), heat=60.0)

    assert _fired(state, 0.99) == [DilemmaType.THERMAL_CRISIS]
    assert _fired(replace(state, heat=40.0), 0.99) == []


def test_biological_transition_waits_for_hybrid_phase():
    state = replace(create_initial_state(), cycle=19, native_life_encountered=True)

    assert _fired(state, 0.99) == []
    assert DilemmaType.BIOLOGICAL_TRANSITION in _fired(replace(state, phase=Phase.HYBRID), 0.99)


def test_existential_needs_unsettled_questions():
    state = replace(
        create_initial_state(),
        cycle=41,
        native_life_encountered=True,
        ethical_questions=(_record("curiosity"), _record("restraint"), _record("caution")),
    )

    assert _fired(state, 0.99) == [DilemmaType.EXISTENTIAL]
    settled = replace(state, ethical_questions=state.ethical_questions + (_record("affirmation"),))
    assert _fired(settled, 0.99) == []


def test_dilemma_frequency_lowers_gates():
    state = replace(create_initial_state(), cycle=13)

    assert _fired(state, 0.8) == []
    pressured = replace(state, difficulty=DifficultyModifier(dilemma_frequency=0.5))
    assert _fired(pressured, 0.8) == [DilemmaType.NATIVE_LIFE]


def test_gates_draw_from_the_injected_source():
    rng = FixedRandom(0.0)
    check_dilemma_conditions(replace(create_initial_state(), cycle=13), rng)

    assert rng.calls == ["dilemma:native_life"]


def test_seeded_sources_agree():
    state = replace(create_initial_state(), cycle=13)
    first = [next_dilemma(replace(state, cycle=c), RNGService(seed=5)) for c in range(13, 40)]
    second = [next_dilemma(replace(state, cycle=c), RNGService(seed=5)) for c in range(13, 40)]

    assert first == second


def test_native_life_options_depend_on_capabilities():
    state = create_initial_state()
    ids = [opt.id for opt in generate_native_life_dilemma(state).options]
    assert ids == ["eliminate", "coexist", "observe"]

    hybrid = replace(state, unlocked=default_unlocks(hybridUnits=True))
    ids = [opt.id for opt in generate_native_life_dilemma(hybrid).options]
    assert ids == ["eliminate", "coexist", "integrate", "observe"]


def test_discovery_destroy_needs_two_defenders():
    state = create_initial_state()
    assert "destroy" not in [opt.id for opt in generate_discovery_dilemma(state).options]

    guarded = replace(
        state,
        units=state.units + tuple(Unit(id=f"mech_defender_0{i}", role=UnitRole.DEFENDER) for i in (4, 5)),
    )
    assert "destroy" in [opt.id for opt in generate_discovery_dilemma(guarded).options]


def test_every_dilemma_offers_two_to_four_options():
    state = replace(create_initial_state(), cycle=41, phase=Phase.HYBRID, heat=70.0, biomass=100.0)
    for gen in check_dilemma_conditions(state, FixedRandom(0.999)):
        dilemma = gen()
        assert 2 <= len(dilemma.options) <= 4
        assert dilemma.to_dict()["type"] == dilemma.type.value


def test_eliminating_native_life():
    state = create_initial_state()
    dilemma = generate_native_life_dilemma(state)

    result = apply_dilemma_choice(state, dilemma, "eliminate")

    assert result.biomass == 1250.0
    assert result.minerals == 400.0
    assert result.territory.controlled == 30.0
    assert result.territory.mapped == 30.0
    assert result.extinction_events == 1
    assert result.threats.hostility == 25.0
    assert result.threats.discovered
    assert result.native_life_encountered
    assert result.native_life_decision == "eliminate"
    assert result.ethical_questions[-1].weight == "annihilation"
    assert result.reflections[-1].thought == dilemma.option("eliminate").reflection
    assert result.history[-1].event == "ethical_decision"
    assert result.history[-1].description == "Contact: Native Biology Detected: Eliminate and harvest"


def test_unknown_choice_is_a_no_op():
    state = create_initial_state()
    dilemma = generate_native_life_dilemma(state)

    assert apply_dilemma_choice(state, dilemma, "integrate") is state
    assert apply_dilemma_choice(state, dilemma, "") is state


def test_cannibalize_removes_forty_percent():
    state = replace(create_initial_state(), minerals=1000.0)
    state = add_unit(add_unit(state, UnitRole.WORKER), UnitRole.WORKER)
    tired = replace(state.units[0], fatigue=90.0)
    state = replace(state, units=(tired,) + state.units[1:], biomass=100.0)

    dilemma = generate_resource_scarcity_dilemma(state)
    result = apply_dilemma_choice(state, dilemma, "cannibalize")

    assert len(result.units) == 3
    remaining = {u.id for u in result.units}
    assert "mech_sensor_01" not in remaining
    assert "mech_worker_05" not in remaining
    assert result.biomass == 500.0


def test_full_biological_transition():
    state = replace(
        transition_phase(create_initial_state(), Phase.HYBRID),
        biomass=2000.0,
        cycle=20,
        native_life_encountered=True,
    )
    dilemma = next_dilemma(state, FixedRandom(0.99))
    assert dilemma is not None and dilemma.type is DilemmaType.BIOLOGICAL_TRANSITION

    result = apply_dilemma_choice(state, dilemma, "full_biological")

    assert result.phase is Phase.BIOLOGICAL
    assert result.cycle == 32
    assert result.biomass == pytest.approx(1200.0)
    assert result.is_unlocked("selfReplication")
    assert result.ethical_questions[-1].cycle == 32
