"""Proactive activity scheduling.

Each cycle the scheduler decides which rotatable (non-digester) units run
ACTIVE, park on STANDBY or go HIBERNATING so heat is managed before it turns
critical.  The reactive safety valve lives in :mod:`seedhive.runtime.thermal`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Tuple

from seedhive.runtime.rates import HeatConfig, RateTable, calculate_total_heat, compute_unit_rates
from seedhive.state import Activity, ColonyState, Pod, PodStatus, Policies, Unit, UnitRole


@dataclass(slots=True)
class SchedulerConfig:
    role_weights: Dict[UnitRole, float] = field(
        default_factory=lambda: {UnitRole.SENSOR: 3.0, UnitRole.WORKER: 2.0, UnitRole.DEFENDER: 1.0}
    )
    default_role_weight: float = 1.0
    defender_threat_bonus: float = 4.0
    fatigue_penalty: float = 0.05
    # (heat ceiling, active fraction) bands, checked in order.
    fraction_bands: Tuple[Tuple[float, float], ...] = ((70.0, 0.7), (85.0, 0.5))
    floor_fraction: float = 0.3
    hibernate_heat: float = 80.0
    fatigue_gain: Dict[Activity, float] = field(
        default_factory=lambda: {Activity.ACTIVE: 6.0, Activity.STANDBY: 1.0, Activity.HIBERNATING: -4.0}
    )
    max_fatigue: float = 100.0


DEFAULT_SCHEDULER = SchedulerConfig()


def _clamp(lo: float, hi: float, value: float) -> float:
    return max(lo, min(hi, float(value)))


def target_active_fraction(total_heat: float, *, cfg: SchedulerConfig | None = None) -> float:
    cfg = cfg or DEFAULT_SCHEDULER
    for ceiling, fraction in cfg.fraction_bands:
        if total_heat < ceiling:
            return fraction
    return cfg.floor_fraction


def rotation_score(unit: Unit, threat_level: float, *, cfg: SchedulerConfig | None = None) -> float:
    cfg = cfg or DEFAULT_SCHEDULER
    score = cfg.role_weights.get(unit.role, cfg.default_role_weight)
    if unit.role is UnitRole.DEFENDER:
        score += cfg.defender_threat_bonus * _clamp(0.0, 100.0, threat_level) / 100.0
    score -= cfg.fatigue_penalty * unit.fatigue
    return score


def scheduling_enabled(state: ColonyState) -> bool:
    return state.is_unlocked("thermalRotation") or state.policies.thermal_priority == "stability"


def plan_activity(
    state: ColonyState,
    *,
    total_heat: float | None = None,
    cfg: SchedulerConfig | None = None,
    table: RateTable | None = None,
    heat_cfg: HeatConfig | None = None,
) -> Dict[str, Activity]:
    """Return the desired activity for every rotatable unit id."""

    cfg = cfg or DEFAULT_SCHEDULER
    rotatable = list(state.rotatable_units())
    if not rotatable:
        return {}
    heat = calculate_total_heat(state, table=table, cfg=heat_cfg) if total_heat is None else total_heat

    fraction = target_active_fraction(heat, cfg=cfg)
    desired_active = max(1, int(len(rotatable) * fraction))
    ranked = sorted(
        enumerate(rotatable),
        key=lambda pair: (-rotation_score(pair[1], state.threats.level, cfg=cfg), pair[0]),
    )
    parked = Activity.HIBERNATING if heat >= cfg.hibernate_heat else Activity.STANDBY

    plan: Dict[str, Activity] = {}
    for rank, (_, unit) in enumerate(ranked):
        plan[unit.id] = Activity.ACTIVE if rank < desired_active else parked
    return plan


def apply_fatigue(unit: Unit, *, cfg: SchedulerConfig | None = None) -> Unit:
    cfg = cfg or DEFAULT_SCHEDULER
    if unit.is_digester:
        return unit
    fatigue = _clamp(0.0, cfg.max_fatigue, unit.fatigue + cfg.fatigue_gain.get(unit.activity, 0.0))
    if fatigue == unit.fatigue:
        return unit
    return replace(unit, fatigue=fatigue)


def sync_pods(
    pods: Iterable[Pod],
    units: Iterable[Unit],
    policies: Policies,
    *,
    cycle: int,
    table: RateTable | None = None,
) -> Tuple[Pod, ...]:
    """Derive pod status and heat contribution from member units."""

    by_id: Mapping[str, Unit] = {unit.id: unit for unit in units}
    synced: List[Pod] = []
    for pod in pods:
        members = [by_id[uid] for uid in pod.units if uid in by_id]
        member_ids = tuple(unit.id for unit in members)
        heat = sum(compute_unit_rates(unit, policies, table=table).heat for unit in members)
        status = pod.status
        if status is not PodStatus.DAMAGED and members:
            activities = {unit.activity for unit in members}
            if Activity.ACTIVE in activities:
                status = PodStatus.ACTIVE
            elif Activity.STANDBY in activities:
                status = PodStatus.STANDBY
            else:
                status = PodStatus.HIBERNATING
        last_rotation = cycle if status is not pod.status else pod.last_rotation
        synced.append(
            replace(
                pod,
                status=status,
                units=member_ids,
                heat_contribution=round(heat, 6),
                last_rotation=last_rotation,
            )
        )
    return tuple(synced)


def apply_activity_plan(
    state: ColonyState,
    *,
    cfg: SchedulerConfig | None = None,
    table: RateTable | None = None,
    heat_cfg: HeatConfig | None = None,
) -> ColonyState:
    cfg = cfg or DEFAULT_SCHEDULER
    plan: Dict[str, Activity] = {}
    if scheduling_enabled(state):
        plan = plan_activity(state, cfg=cfg, table=table, heat_cfg=heat_cfg)

    units: List[Unit] = []
    for unit in state.units:
        if unit.is_digester:
            activity = Activity.ACTIVE
        else:
            activity = plan.get(unit.id, unit.activity)
        if activity is not unit.activity:
            unit = replace(unit, activity=activity)
        units.append(apply_fatigue(unit, cfg=cfg))

    pods = sync_pods(state.pods, units, state.policies, cycle=state.cycle, table=table)
    return replace(state, units=tuple(units), pods=pods)


__all__ = [
    "DEFAULT_SCHEDULER",
    "SchedulerConfig",
    "apply_activity_plan",
    "apply_fatigue",
    "plan_activity",
    "rotation_score",
    "scheduling_enabled",
    "sync_pods",
    "target_active_fraction",
]
