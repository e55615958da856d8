"""Reactive fail-safes: energy starvation and the thermal-constraint cascade.

Both are designed mechanics rather than faults.  They always hand back a
valid colony and leave a history entry behind so the narration layer can
tell the player what happened.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from math import ceil
from typing import List, Set, Tuple

from seedhive.runtime.rates import DEFAULT_HEAT, HeatConfig, RateTable, calculate_total_heat
from seedhive.runtime.scheduler import sync_pods
from seedhive.state import Activity, ColonyState, Pod, Unit


@dataclass(slots=True)
class ThermalConfig:
    cascade_fraction: float = 0.45
    starvation_energy_floor: float = 5.0
    starvation_heat_relief: float = 15.0
    min_pods_for_rotation: int = 2


DEFAULT_THERMAL = ThermalConfig()


def _set_activity(units: Tuple[Unit, ...], unit_ids: Set[str], activity: Activity) -> Tuple[Unit, ...]:
    return tuple(
        replace(unit, activity=activity) if unit.id in unit_ids and unit.activity is not activity else unit
        for unit in units
    )


def apply_energy_starvation(
    state: ColonyState,
    *,
    cfg: ThermalConfig | None = None,
    table: RateTable | None = None,
) -> Tuple[ColonyState, bool]:
    """Hibernate everything but the digesters once energy runs dry."""

    cfg = cfg or DEFAULT_THERMAL
    if state.energy > 0:
        return state, False

    targets = {unit.id for unit in state.rotatable_units()}
    units = _set_activity(state.units, targets, Activity.HIBERNATING)
    pods = sync_pods(state.pods, units, state.policies, cycle=state.cycle, table=table)
    state = replace(
        state,
        units=units,
        pods=pods,
        energy=cfg.starvation_energy_floor,
        heat=max(0.0, state.heat - cfg.starvation_heat_relief),
    )
    state = state.with_history(
        "energy_starvation",
        "Energy reserves exhausted. All non-essential units forced into hibernation. The core keeps digesting.",
    )
    return state, True


def _mean_fatigue(members: List[Unit]) -> float:
    if not members:
        return 0.0
    return sum(unit.fatigue for unit in members) / len(members)


def select_pods_for_rotation(state: ColonyState, needed: int) -> Tuple[List[Pod], Set[str]]:
    """Pick whole pods, most fatigued first, until ``needed`` units are covered."""

    by_id = {unit.id: unit for unit in state.units}
    candidates = []
    for index, pod in enumerate(state.pods):
        awake = [by_id[uid] for uid in pod.units if uid in by_id and by_id[uid].activity is not Activity.HIBERNATING]
        awake = [unit for unit in awake if not unit.is_digester]
        if awake:
            candidates.append((index, pod, awake))
    candidates.sort(key=lambda item: (-_mean_fatigue(item[2]), -item[1].heat_contribution, item[0]))

    chosen: List[Pod] = []
    unit_ids: Set[str] = set()
    for _, pod, awake in candidates:
        if len(unit_ids) >= needed:
            break
        chosen.append(pod)
        unit_ids.update(unit.id for unit in awake)
    return chosen, unit_ids


def select_units_for_cooldown(state: ColonyState, needed: int) -> Set[str]:
    awake = [
        (index, unit)
        for index, unit in enumerate(state.units)
        if not unit.is_digester and unit.activity is not Activity.HIBERNATING
    ]
    awake.sort(key=lambda pair: (-pair[1].fatigue, pair[0]))
    return {unit.id for _, unit in awake[:needed]}


def apply_thermal_constraint(
    state: ColonyState,
    *,
    cfg: ThermalConfig | None = None,
    table: RateTable | None = None,
) -> ColonyState:
    """Force-hibernate the most fatigued share of the hive and dim the sensors."""

    cfg = cfg or DEFAULT_THERMAL
    needed = ceil(len(state.rotatable_units()) * cfg.cascade_fraction)

    rotated: List[Pod] = []
    if state.is_unlocked("thermalRotation") and len(state.pods) >= cfg.min_pods_for_rotation:
        rotated, targets = select_pods_for_rotation(state, needed)
    else:
        targets = select_units_for_cooldown(state, needed)

    units = _set_activity(state.units, targets, Activity.HIBERNATING)
    pods = sync_pods(state.pods, units, state.policies, cycle=state.cycle, table=table)
    state = replace(
        state,
        units=units,
        pods=pods,
        policies=replace(state.policies, sensory_acuity="low"),
    )
    for pod in rotated:
        state = state.with_history(
            "pod_rotation",
            f"Thermal rotation: {pod.name} -> hibernation. Vulnerability redistributed.",
        )
    return state.with_history(
        "thermal_constraint",
        "Heat critical. Emergency cooldown initiated. "
        f"{len(targets)} unit(s) forced into hibernation. Intelligence dimmed for survival.",
    )


def maybe_apply_thermal_constraint(
    state: ColonyState,
    *,
    cfg: ThermalConfig | None = None,
    heat_cfg: HeatConfig | None = None,
    table: RateTable | None = None,
) -> Tuple[ColonyState, bool]:
    heat_cfg = heat_cfg or DEFAULT_HEAT
    if calculate_total_heat(state, table=table, cfg=heat_cfg) <= heat_cfg.critical_threshold:
        return state, False
    return apply_thermal_constraint(state, cfg=cfg, table=table), True


__all__ = [
    "DEFAULT_THERMAL",
    "ThermalConfig",
    "apply_energy_starvation",
    "apply_thermal_constraint",
    "maybe_apply_thermal_constraint",
    "select_pods_for_rotation",
    "select_units_for_cooldown",
]
