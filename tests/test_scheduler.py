from __future__ import annotations

from dataclasses import replace

import pytest

from seedhive.runtime.rates import RateTable
from seedhive.runtime.scheduler import (
    apply_activity_plan,
    apply_fatigue,
    plan_activity,
    rotation_score,
    target_active_fraction,
)
from seedhive.state import Activity, PodStatus, Policies, Threats, Unit, UnitRole, create_initial_state, default_unlocks


@pytest.mark.parametrize(
    "heat, fraction",
    [(0.0, 0.7), (69.9, 0.7), (70.0, 0.5), (84.9, 0.5), (85.0, 0.3), (400.0, 0.3)],
)
def test_target_active_fraction_bands(heat, fraction):
    assert target_active_fraction(heat) == fraction


def test_initial_plan_keeps_two_sensors_active():
    plan = plan_activity(create_initial_state())

    assert plan == {
        "mech_sensor_01": Activity.ACTIVE,
        "mech_sensor_02": Activity.ACTIVE,
        "mech_sensor_03": Activity.STANDBY,
    }


def test_hot_colony_hibernates_parked_units():
    plan = plan_activity(replace(create_initial_state(), heat=200.0))

    assert list(plan.values()).count(Activity.ACTIVE) == 1
    assert list(plan.values()).count(Activity.HIBERNATING) == 2


def test_fatigue_pushes_unit_down_the_ranking():
    state = create_initial_state()
    tired = replace(state.units[0], fatigue=80.0)
    state = replace(state, units=(tired,) + state.units[1:])

    plan = plan_activity(state)

    assert plan["mech_sensor_01"] is Activity.STANDBY
    assert plan["mech_sensor_03"] is Activity.ACTIVE


def test_defender_bonus_scales_with_threat():
    defender = Unit(id="d", role=UnitRole.DEFENDER)
    sensor = Unit(id="s", role=UnitRole.SENSOR)

    assert rotation_score(defender, 0.0) < rotation_score(sensor, 0.0)
    assert rotation_score(defender, 100.0) == pytest.approx(5.0)
    assert rotation_score(defender, 100.0) > rotation_score(sensor, 100.0)


def test_performance_without_rotation_leaves_activity_alone():
    state = create_initial_state()
    parked = replace(state.units[1], activity=Activity.STANDBY)
    state = replace(
        state,
        units=(state.units[0], parked, state.units[2]),
        policies=Policies(thermal_priority="performance"),
    )

    result = apply_activity_plan(state)

    assert [u.activity for u in result.units] == [Activity.ACTIVE, Activity.STANDBY, Activity.ACTIVE]
    assert [u.fatigue for u in result.units] == [6.0, 1.0, 6.0]


def test_rotation_unlock_enables_scheduling_under_performance():
    state = replace(
        create_initial_state(),
        policies=Policies(thermal_priority="performance"),
        unlocked=default_unlocks(thermalRotation=True),
    )

    result = apply_activity_plan(state)

    assert [u.activity for u in result.units].count(Activity.STANDBY) == 1


def test_digesters_are_forced_active_and_never_tire():
    state = create_initial_state()
    digester = Unit(id="mech_digester_04", role=UnitRole.DIGESTER, activity=Activity.HIBERNATING, fatigue=0.0)
    state = replace(state, units=state.units + (digester,))

    result = apply_activity_plan(state)
    core_unit = result.units[-1]

    assert core_unit.activity is Activity.ACTIVE
    assert core_unit.fatigue == 0.0


def test_fatigue_is_clamped():
    worn = Unit(id="a", role=UnitRole.SENSOR, fatigue=98.0)
    rested = Unit(id="b", role=UnitRole.SENSOR, activity=Activity.HIBERNATING, fatigue=2.0)

    assert apply_fatigue(worn).fatigue == 100.0
    assert apply_fatigue(rested).fatigue == 0.0


def test_pods_follow_member_activity():
    state = replace(create_initial_state(), heat=200.0)

    result = apply_activity_plan(state)
    pods = {pod.id: pod for pod in result.pods}

    assert pods["pod_alpha"].status is PodStatus.ACTIVE
    assert pods["pod_beta"].status is PodStatus.HIBERNATING
    assert pods["pod_beta"].last_rotation == state.cycle
    assert pods["pod_beta"].heat_contribution == pytest.approx(1.2 * 0.85 * 0.05)


def test_threat_level_feeds_defender_ranking():
    state = create_initial_state()
    defender = Unit(id="mech_defender_04", role=UnitRole.DEFENDER)
    state = replace(state, units=state.units + (defender,), threats=Threats(level=100.0))

    plan = plan_activity(state)

    assert plan["mech_defender_04"] is Activity.ACTIVE


def test_plan_reads_heat_through_the_rate_table():
    table = RateTable()
    table.profiles[UnitRole.SENSOR] = replace(table.profiles[UnitRole.SENSOR], heat=40.0)
    state = create_initial_state()

    default_plan = apply_activity_plan(state)
    hot_plan = apply_activity_plan(state, table=table)

    assert [u.activity for u in default_plan.units] == [Activity.ACTIVE, Activity.ACTIVE, Activity.STANDBY]
    assert [u.activity for u in hot_plan.units] == [Activity.ACTIVE, Activity.HIBERNATING, Activity.HIBERNATING]
    assert plan_activity(state, table=table) == {u.id: u.activity for u in hot_plan.units}
