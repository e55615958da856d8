from __future__ import annotations

from dataclasses import replace

from seedhive.runtime.construction import (
    add_unit,
    can_launch_seed,
    choose_unit_type,
    launch_seed,
    unit_type_available,
    update_policy,
)
from seedhive.runtime.phase_engine import transition_phase
from seedhive.state import DifficultyModifier, Phase, UnitRole, UnitType, create_initial_state, default_unlocks


def _seed_ready():
    return replace(
        create_initial_state(),
        biomass=1500.0,
        minerals=600.0,
        energy=250.0,
        data=400.0,
        unlocked=default_unlocks(interstellarSeeding=True),
    )


def test_add_mechanical_sensor():
    state = add_unit(create_initial_state(), UnitRole.SENSOR)

    unit = state.units[-1]
    assert unit.id == "mech_sensor_04"
    assert unit.unit_type is UnitType.MECHANICAL
    assert unit.pod_id == "pod_alpha"
    assert state.biomass == 420.0
    assert state.minerals == 150.0
    assert state.unit_serial == 4
    assert state.history[-1].event == "unit_created"
    assert "mech_sensor_04" in dict((p.id, p.units) for p in state.pods)["pod_alpha"]


def test_new_pod_opens_when_existing_ones_are_full():
    state = replace(create_initial_state(), minerals=1000.0)
    for _ in range(4):
        state = add_unit(state, UnitRole.WORKER)

    assert [p.id for p in state.pods] == ["pod_alpha", "pod_beta", "pod_gamma"]
    assert state.pods[-1].name == "Gamma Pod"
    assert state.pods[-1].units == ("mech_worker_07",)
    assert len({u.id for u in state.units}) == len(state.units) == 7


def test_unaffordable_or_locked_unit_is_a_no_op():
    poor = replace(create_initial_state(), minerals=10.0)
    assert add_unit(poor, UnitRole.SENSOR) is poor

    state = create_initial_state()
    assert add_unit(state, UnitRole.SENSOR, UnitType.HYBRID) is state
    assert add_unit(state, UnitRole.SENSOR, UnitType.BIOLOGICAL) is state


def test_difficulty_scales_unit_cost():
    state = create_initial_state(DifficultyModifier(resource_cost_multiplier=1.5))

    state = add_unit(state, UnitRole.DEFENDER)

    assert state.biomass == 405.0
    assert state.minerals == 125.0


def test_unit_type_follows_phase_and_unlocks():
    state = create_initial_state()
    assert choose_unit_type(state) is UnitType.MECHANICAL

    hybrid = transition_phase(state, Phase.HYBRID)
    assert choose_unit_type(hybrid) is UnitType.HYBRID
    assert unit_type_available(hybrid, UnitType.HYBRID)

    bio = replace(state, unlocked=default_unlocks(biologicalUnits=True))
    assert choose_unit_type(bio) is UnitType.BIOLOGICAL

    built = add_unit(replace(hybrid, minerals=200.0), UnitRole.WORKER)
    assert built.units[-1].id == "hyb_worker_04"


def test_update_policy_accepts_both_key_styles():
    state = update_policy(create_initial_state(), "thermalPriority", "performance")
    assert state.policies.thermal_priority == "performance"
    assert state.history[-1].event == "policy_change"

    state = update_policy(state, "sensory_acuity", "high")
    assert state.policies.sensory_acuity == "high"


def test_update_policy_rejects_unknown_values():
    state = create_initial_state()

    assert update_policy(state, "thermalPriority", "reckless") is state
    assert update_policy(state, "mood", "calm") is state


def test_launch_seed_requires_unlock_and_resources():
    state = replace(_seed_ready(), unlocked=default_unlocks())
    assert not can_launch_seed(state)
    assert launch_seed(state, "Kepler-442b") is state

    poor = replace(_seed_ready(), data=10.0)
    assert launch_seed(poor, "Kepler-442b") is poor


def test_launch_seed_spends_and_records():
    state = launch_seed(_seed_ready(), "  Kepler-442b ")

    assert state.biomass == 500.0
    assert state.minerals == 100.0
    assert state.energy == 50.0
    assert state.data == 100.0
    assert state.ascension.seeds_launched == 1
    assert state.ascension.worlds_seeded[0].name == "Kepler-442b"
    assert state.history[-1].event == "seed_launched"
    assert "Kepler-442b" in state.reflections[-1].thought
