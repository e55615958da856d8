from __future__ import annotations

from dataclasses import replace

from seedhive.runtime.phase_engine import (
    ascension_ready,
    biological_ready,
    complete_ascension,
    evaluate_unlocks,
    hybrid_ready,
    maybe_advance_phase,
    transition_phase,
)
from seedhive.state import Phase, Territory, create_initial_state, default_unlocks


def _hybrid_candidate(cycle: int):
    return replace(create_initial_state(), cycle=cycle, biomass=601.0, minerals=251.0, data=151.0)


def test_transition_walks_through_every_phase():
    state = transition_phase(create_initial_state(), Phase.BIOLOGICAL)

    assert state.phase is Phase.BIOLOGICAL
    for key in ("hybridUnits", "geneticRecombination", "biologicalUnits", "selfReplication"):
        assert state.is_unlocked(key)
    assert state.hive_core.conversion_efficiency == 1.2
    assert state.hive_core.digestion_rate == 1.5
    assert [e.event for e in state.history].count("phase_transition") == 2
    assert len(state.reflections) == 2


def test_transition_never_regresses():
    state = transition_phase(create_initial_state(), Phase.BIOLOGICAL)

    assert transition_phase(state, Phase.HYBRID) is state
    assert transition_phase(state, Phase.BIOLOGICAL) is state


def test_hybrid_gate_is_strict():
    assert not hybrid_ready(_hybrid_candidate(10))
    assert hybrid_ready(_hybrid_candidate(11))
    assert not hybrid_ready(replace(_hybrid_candidate(11), minerals=250.0))


def test_biological_gate_requires_hybrid_phase():
    state = replace(create_initial_state(), cycle=31, biomass=1201.0, data=601.0)

    assert not biological_ready(state)
    assert biological_ready(replace(state, phase=Phase.HYBRID))


def test_ascension_needs_distributed_cognition():
    state = replace(
        create_initial_state(),
        phase=Phase.BIOLOGICAL,
        data=1600.0,
        energy=280.0,
        territory=Territory(mapped=220.0, controlled=220.0),
    )

    assert not ascension_ready(state)
    assert ascension_ready(replace(state, unlocked=default_unlocks(distributedCognition=True)))


def test_unlocks_fire_once_and_stay_set():
    state = replace(create_initial_state(), cycle=6)

    state, fired = evaluate_unlocks(state)
    assert fired == ["thermalRotation"]

    again, fired = evaluate_unlocks(replace(state, cycle=1))
    assert fired == []
    assert again.is_unlocked("thermalRotation")


def test_maybe_advance_phase_reports_the_step():
    state, phase = maybe_advance_phase(_hybrid_candidate(11))
    assert phase is Phase.HYBRID
    assert state.phase is Phase.HYBRID

    idle = create_initial_state()
    unchanged, phase = maybe_advance_phase(idle)
    assert phase is None and unchanged is idle


def test_complete_ascension_unlocks_seeding():
    state = transition_phase(create_initial_state(), Phase.BIOLOGICAL)

    state = complete_ascension(state)

    assert state.phase is Phase.ASCENSION
    assert state.is_unlocked("interstellarSeeding")
    assert state.history[-2].event == "ascension_ready"
