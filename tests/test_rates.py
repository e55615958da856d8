from __future__ import annotations

from dataclasses import replace

import pytest

from seedhive.runtime.rates import (
    RateTable,
    activity_multiplier,
    aggregate_rates,
    calculate_total_heat,
    compute_unit_rates,
    heat_breakdown,
    is_heat_critical,
    is_heat_elevated,
    policy_multipliers,
)
from seedhive.state import Activity, Policies, Unit, UnitRole, UnitType, create_initial_state, default_unlocks


def _unit(role=UnitRole.SENSOR, unit_type=UnitType.MECHANICAL, activity=Activity.ACTIVE) -> Unit:
    return Unit(id="u1", role=role, unit_type=unit_type, activity=activity)


def test_active_mechanical_sensor_under_stability():
    rates = compute_unit_rates(_unit(), Policies())

    assert rates.biomass == pytest.approx(8.5)
    assert rates.minerals == pytest.approx(1.7)
    assert rates.data == pytest.approx(3.4)
    assert rates.map == pytest.approx(0.68)
    assert rates.heat == pytest.approx(1.02)
    assert rates.energy == pytest.approx(3.0)


@pytest.mark.parametrize("role", [UnitRole.SENSOR, UnitRole.WORKER, UnitRole.DEFENDER, UnitRole.DIGESTER])
def test_parked_units_are_cheaper_but_never_free(role):
    policies = Policies()
    active = compute_unit_rates(_unit(role=role), policies)
    standby = compute_unit_rates(_unit(role=role, activity=Activity.STANDBY), policies)
    hibernating = compute_unit_rates(_unit(role=role, activity=Activity.HIBERNATING), policies)

    assert 0 < hibernating.heat < standby.heat < active.heat
    if active.energy:
        assert 0 < hibernating.energy < standby.energy < active.energy
    assert hibernating.biomass == 0 and hibernating.data == 0


def test_activity_multiplier_ratios():
    assert activity_multiplier(Activity.STANDBY).output == 0.15
    assert activity_multiplier(Activity.STANDBY).heat == 0.25
    assert activity_multiplier(Activity.HIBERNATING).energy == 0.05


def test_policy_multipliers_trade_heat_for_cooling():
    perf = policy_multipliers(Policies(thermal_priority="performance"))
    stab = policy_multipliers(Policies(thermal_priority="stability"))

    assert perf.output == pytest.approx(1.15) and perf.cooling == pytest.approx(0.75)
    assert stab.heat == pytest.approx(0.85) and stab.cooling == pytest.approx(1.25)


def test_sensory_acuity_only_touches_sensors():
    standard = Policies(sensory_acuity="standard")
    high = Policies(sensory_acuity="high")

    worker = _unit(role=UnitRole.WORKER)
    assert compute_unit_rates(worker, standard) == compute_unit_rates(worker, high)

    sensor_high = compute_unit_rates(_unit(), high)
    assert sensor_high.biomass == pytest.approx(10 * 0.85 * 1.35)
    sensor_low = compute_unit_rates(_unit(), Policies(sensory_acuity="low"))
    assert sensor_low.map == pytest.approx(0.8 * 0.85 * 0.65)
    assert sensor_low.heat == pytest.approx(1.2 * 0.85 * 0.75)


def test_biological_units_run_cooler_and_produce_more():
    mech = compute_unit_rates(_unit(), Policies())
    bio = compute_unit_rates(_unit(unit_type=UnitType.BIOLOGICAL), Policies())

    assert bio.heat == pytest.approx(mech.heat * 0.5)
    assert bio.energy == pytest.approx(1.5)
    assert bio.biomass == pytest.approx(mech.biomass * 1.3)


def test_role_profiles_keep_their_specialities():
    policies = Policies()
    sensor = compute_unit_rates(_unit(), policies)
    worker = compute_unit_rates(_unit(role=UnitRole.WORKER), policies)
    defender = compute_unit_rates(_unit(role=UnitRole.DEFENDER), policies)
    digester = compute_unit_rates(_unit(role=UnitRole.DIGESTER), policies)

    assert sensor.biomass > worker.biomass and sensor.map > worker.map
    assert worker.minerals > sensor.minerals and worker.control > sensor.control
    assert defender.biomass == defender.minerals == defender.data == 0
    assert defender.suppression == pytest.approx(1.5)
    assert digester.biomass == digester.data == digester.energy == 0


def test_aggregate_rates_sums_units():
    state = create_initial_state()
    total = aggregate_rates(state.units, state.policies)

    assert total.biomass == pytest.approx(25.5)
    assert total.energy == pytest.approx(9.0)


def test_initial_total_heat_breakdown():
    state = create_initial_state()
    parts = heat_breakdown(state)

    assert parts.ambient == 12
    assert parts.unit == pytest.approx(3.06)
    assert parts.core == 5
    assert parts.density == 0
    assert parts.policy == 4
    assert calculate_total_heat(state) == pytest.approx(24.06)


def test_total_heat_counts_density_cognition_and_aggression():
    state = create_initial_state()
    crowded = replace(
        state,
        units=state.units + (Unit(id="mech_worker_04", role=UnitRole.WORKER),),
        unlocked=default_unlocks(distributedCognition=True),
        policies=replace(state.policies, reproduction_mode="aggressive"),
    )
    parts = heat_breakdown(crowded)

    assert parts.density == 1
    assert parts.core == 8
    assert parts.policy == 9


def test_heat_bands():
    state = create_initial_state()
    assert not is_heat_elevated(state)
    assert is_heat_elevated(replace(state, heat=50.0))
    assert is_heat_critical(replace(state, heat=100.0))
    assert not is_heat_elevated(replace(state, heat=100.0))


@pytest.mark.parametrize(
    "unit_type, activity, expected",
    [
        (UnitType.MECHANICAL, Activity.ACTIVE, 1.5),
        (UnitType.HYBRID, Activity.ACTIVE, 1.725),
        (UnitType.MECHANICAL, Activity.STANDBY, 0.0),
        (UnitType.BIOLOGICAL, Activity.HIBERNATING, 0.0),
    ],
)
def test_only_active_defenders_suppress_threat(unit_type, activity, expected):
    rates = compute_unit_rates(_unit(role=UnitRole.DEFENDER, unit_type=unit_type, activity=activity), Policies())

    assert rates.suppression == pytest.approx(expected)


def test_heat_bands_follow_the_rate_table():
    table = RateTable()
    table.profiles[UnitRole.SENSOR] = replace(table.profiles[UnitRole.SENSOR], heat=40.0)
    state = create_initial_state()

    assert calculate_total_heat(state, table=table) == pytest.approx(123.0)
    assert is_heat_critical(state, table=table)
    assert not is_heat_critical(state)
    assert is_heat_elevated(replace(state, heat=50.0))
    assert not is_heat_elevated(replace(state, heat=50.0), table=table)
