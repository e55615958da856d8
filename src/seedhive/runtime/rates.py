"""Per-unit production, heat and energy rates.

Pure functions over ``(unit, policies)``; nothing in here reads or writes the
colony aggregate except :func:`calculate_total_heat`, which only reads it.

Standby and hibernation are never free: residual heat and energy model the
stored kinetic/biological load of a parked unit, but both stay strictly below
the active cost.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from math import floor
from typing import Dict, Iterable, Mapping

from seedhive.state import Activity, ColonyState, Policies, Unit, UnitRole, UnitType


@dataclass(frozen=True, slots=True)
class RoleProfile:
    biomass: float = 0.0
    minerals: float = 0.0
    data: float = 0.0
    map: float = 0.0
    control: float = 0.0
    heat: float = 0.0
    energy: float = 0.0
    threat_suppression: float = 0.0


@dataclass(frozen=True, slots=True)
class UnitRates:
    biomass: float = 0.0
    minerals: float = 0.0
    data: float = 0.0
    map: float = 0.0
    control: float = 0.0
    heat: float = 0.0
    energy: float = 0.0
    suppression: float = 0.0

    def __add__(self, other: "UnitRates") -> "UnitRates":
        return UnitRates(
            biomass=self.biomass + other.biomass,
            minerals=self.minerals + other.minerals,
            data=self.data + other.data,
            map=self.map + other.map,
            control=self.control + other.control,
            heat=self.heat + other.heat,
            energy=self.energy + other.energy,
            suppression=self.suppression + other.suppression,
        )


@dataclass(frozen=True, slots=True)
class ActivityMultiplier:
    output: float
    heat: float
    energy: float


ACTIVITY_MULTIPLIERS: Mapping[Activity, ActivityMultiplier] = {
    Activity.ACTIVE: ActivityMultiplier(output=1.0, heat=1.0, energy=1.0),
    Activity.STANDBY: ActivityMultiplier(output=0.15, heat=0.25, energy=0.25),
    Activity.HIBERNATING: ActivityMultiplier(output=0.0, heat=0.05, energy=0.05),
}


@dataclass(frozen=True, slots=True)
class PolicyMultipliers:
    output: float = 1.0
    heat: float = 1.0
    cooling: float = 1.0
    sensor_output: float = 1.0
    sensor_heat: float = 1.0
    sensor_map: float = 1.0


def _default_profiles() -> Dict[UnitRole, RoleProfile]:
    return {
        UnitRole.SENSOR: RoleProfile(biomass=10.0, minerals=2.0, data=4.0, map=0.8, control=0.1, heat=1.2, energy=3.0),
        UnitRole.WORKER: RoleProfile(biomass=1.0, minerals=6.0, data=0.5, map=0.2, control=0.6, heat=1.4, energy=3.0),
        UnitRole.DEFENDER: RoleProfile(heat=1.0, energy=2.5, threat_suppression=1.5),
        UnitRole.DIGESTER: RoleProfile(heat=0.6),
    }


@dataclass(slots=True)
class RateTable:
    profiles: Dict[UnitRole, RoleProfile] = field(default_factory=_default_profiles)
    type_heat: Dict[UnitType, float] = field(
        default_factory=lambda: {UnitType.MECHANICAL: 1.0, UnitType.HYBRID: 0.75, UnitType.BIOLOGICAL: 0.5}
    )
    type_output: Dict[UnitType, float] = field(
        default_factory=lambda: {UnitType.MECHANICAL: 1.0, UnitType.HYBRID: 1.15, UnitType.BIOLOGICAL: 1.3}
    )


@dataclass(slots=True)
class HeatConfig:
    critical_threshold: float = 80.0
    elevated_threshold: float = 60.0
    acuity_heat: Dict[str, float] = field(default_factory=lambda: {"high": 8.0, "standard": 4.0, "low": 0.0})
    aggressive_reproduction_heat: float = 5.0
    cognition_heat: float = 3.0
    units_per_density_heat: int = 4


DEFAULT_RATES = RateTable()
DEFAULT_HEAT = HeatConfig()


def activity_multiplier(activity: Activity) -> ActivityMultiplier:
    return ACTIVITY_MULTIPLIERS[activity]


def policy_multipliers(policies: Policies) -> PolicyMultipliers:
    output = heat = cooling = 1.0
    if policies.thermal_priority == "performance":
        output, heat, cooling = 1.15, 1.15, 0.75
    elif policies.thermal_priority == "stability":
        output, heat, cooling = 0.85, 0.85, 1.25

    sensor_output = sensor_heat = sensor_map = 1.0
    if policies.sensory_acuity == "high":
        sensor_output, sensor_heat, sensor_map = 1.35, 1.35, 1.35
    elif policies.sensory_acuity == "low":
        sensor_output, sensor_heat, sensor_map = 0.6, 0.75, 0.65

    return PolicyMultipliers(
        output=output,
        heat=heat,
        cooling=cooling,
        sensor_output=sensor_output,
        sensor_heat=sensor_heat,
        sensor_map=sensor_map,
    )


def compute_unit_rates(unit: Unit, policies: Policies, *, table: RateTable | None = None) -> UnitRates:
    """Per-cycle contribution of one unit, before aggregation."""

    table = table or DEFAULT_RATES
    profile = table.profiles.get(unit.role, RoleProfile())
    act = activity_multiplier(unit.activity)
    pol = policy_multipliers(policies)

    out = act.output * pol.output * table.type_output.get(unit.unit_type, 1.0)
    heat = act.heat * pol.heat * table.type_heat.get(unit.unit_type, 1.0)
    energy = act.energy * table.type_heat.get(unit.unit_type, 1.0)
    map_scale = out

    # Sensory acuity only touches the sensor role.
    if unit.role is UnitRole.SENSOR:
        map_scale = out * pol.sensor_map
        out *= pol.sensor_output
        heat *= pol.sensor_heat

    suppression = 0.0
    if unit.activity is Activity.ACTIVE:
        suppression = profile.threat_suppression * table.type_output.get(unit.unit_type, 1.0)
    return UnitRates(
        biomass=profile.biomass * out,
        minerals=profile.minerals * out,
        data=profile.data * out,
        map=profile.map * map_scale,
        control=profile.control * out,
        heat=profile.heat * heat,
        energy=profile.energy * energy,
        suppression=suppression,
    )


def aggregate_rates(units: Iterable[Unit], policies: Policies, *, table: RateTable | None = None) -> UnitRates:
    total = UnitRates()
    for unit in units:
        total = total + compute_unit_rates(unit, policies, table=table)
    return total


@dataclass(frozen=True, slots=True)
class HeatBreakdown:
    ambient: float
    unit: float
    core: float
    density: float
    policy: float

    @property
    def total(self) -> float:
        return self.ambient + self.unit + self.core + self.density + self.policy


def heat_breakdown(
    state: ColonyState,
    *,
    table: RateTable | None = None,
    cfg: HeatConfig | None = None,
) -> HeatBreakdown:
    cfg = cfg or DEFAULT_HEAT
    unit_heat = aggregate_rates(state.units, state.policies, table=table).heat
    core_heat = state.hive_core.heat
    if state.is_unlocked("distributedCognition"):
        core_heat += cfg.cognition_heat
    active_count = len(state.active_units())
    density_heat = float(floor(active_count / max(1, cfg.units_per_density_heat)))
    policy_heat = cfg.acuity_heat.get(state.policies.sensory_acuity, 0.0)
    if state.policies.reproduction_mode == "aggressive":
        policy_heat += cfg.aggressive_reproduction_heat
    return HeatBreakdown(
        ambient=state.heat,
        unit=unit_heat,
        core=core_heat,
        density=density_heat,
        policy=policy_heat,
    )


def calculate_total_heat(state: ColonyState, *, table: RateTable | None = None, cfg: HeatConfig | None = None) -> float:
    """Thermal load; recomputed on every query, never stored."""

    return heat_breakdown(state, table=table, cfg=cfg).total


def is_heat_critical(state: ColonyState, *, table: RateTable | None = None, cfg: HeatConfig | None = None) -> bool:
    cfg = cfg or DEFAULT_HEAT
    return calculate_total_heat(state, table=table, cfg=cfg) > cfg.critical_threshold


def is_heat_elevated(state: ColonyState, *, table: RateTable | None = None, cfg: HeatConfig | None = None) -> bool:
    cfg = cfg or DEFAULT_HEAT
    total = calculate_total_heat(state, table=table, cfg=cfg)
    return cfg.elevated_threshold < total <= cfg.critical_threshold


__all__ = [
    "ACTIVITY_MULTIPLIERS",
    "ActivityMultiplier",
    "DEFAULT_HEAT",
    "DEFAULT_RATES",
    "HeatBreakdown",
    "HeatConfig",
    "PolicyMultipliers",
    "RateTable",
    "RoleProfile",
    "UnitRates",
    "activity_multiplier",
    "aggregate_rates",
    "calculate_total_heat",
    "compute_unit_rates",
    "heat_breakdown",
    "is_heat_critical",
    "is_heat_elevated",
    "policy_multipliers",
]
