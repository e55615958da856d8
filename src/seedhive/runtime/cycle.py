"""One full simulation tick.

``process_cycle`` is the only function allowed to move a colony from one
cycle to the next.  It never raises: shortfalls are clamped, overflows are
handled by the cascades in :mod:`seedhive.runtime.thermal`, and the result is
always a valid state.

Order of operations:

1. advance the cycle counter;
2. run the activity scheduler;
3. aggregate per-unit rates;
4. hive-core digestion (always runs);
5. threat pressure;
6. heat resolution;
7. apply deltas with clamping;
8. energy-starvation cascade;
9. thermal-constraint cascade;
10. completion check, then unlocks and at most one phase transition;
11. record the ``last_cycle`` summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Tuple

from seedhive.runtime.phase_engine import (
    PhaseConfig,
    ascension_ready,
    complete_ascension,
    evaluate_unlocks,
    maybe_advance_phase,
)
from seedhive.runtime.rates import HeatConfig, RateTable, UnitRates, aggregate_rates, policy_multipliers
from seedhive.runtime.scheduler import SchedulerConfig, apply_activity_plan
from seedhive.runtime.thermal import ThermalConfig, apply_energy_starvation, maybe_apply_thermal_constraint
from seedhive.state import ColonyState, CycleDelta, CycleSummary, Territory, Threats, UnitRole


@dataclass(slots=True)
class CycleConfig:
    base_cooling: float = 6.5
    digestion_biomass_ratio: float = 20.0
    digestion_energy_ratio: float = 12.0
    digester_unit_rate: float = 0.5
    expansion_threat_factor: float = 0.4
    hostility_threat_factor: float = 0.5
    threat_heat_divisor: float = 30.0
    discovery_threshold: float = 20.0
    hostility_growth: float = 0.2
    cognition_data_bonus: float = 0.25
    rates: RateTable = field(default_factory=RateTable)
    heat: HeatConfig = field(default_factory=HeatConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    thermal: ThermalConfig = field(default_factory=ThermalConfig)
    phases: PhaseConfig = field(default_factory=PhaseConfig)


DEFAULT_CYCLE = CycleConfig()


def _clamp(lo: float, hi: float, value: float) -> float:
    return max(lo, min(hi, float(value)))


def digestion_capacity(state: ColonyState, *, cfg: CycleConfig | None = None) -> float:
    """Biomass-equivalent the core can digest this cycle."""

    cfg = cfg or DEFAULT_CYCLE
    digesters = len(state.units_with_role(UnitRole.DIGESTER))
    capacity = state.hive_core.digestion_rate + cfg.digester_unit_rate * digesters
    return max(0.0, min(capacity, state.biomass / cfg.digestion_biomass_ratio))


def _resolve_threats(state: ColonyState, rates: UnitRates, *, cfg: CycleConfig) -> Threats:
    threats = state.threats
    pressure = cfg.expansion_threat_factor * (rates.map + rates.control)
    pressure += cfg.hostility_threat_factor * threats.hostility / 100.0
    level = _clamp(0.0, 100.0, threats.level + pressure - rates.suppression)
    hostility = threats.hostility
    if threats.discovered:
        hostility = _clamp(0.0, 100.0, hostility + cfg.hostility_growth)
    discovered = threats.discovered or level >= cfg.discovery_threshold
    return Threats(level=level, discovered=discovered, hostility=hostility)


def _summarize(state: ColonyState, delta: CycleDelta, history_mark: int, *, completed: bool) -> ColonyState:
    events: Tuple[str, ...] = tuple(entry.event for entry in state.history[history_mark:])
    return replace(state, last_cycle=CycleSummary(delta=delta, events=events, completed=completed))


def process_cycle(state: ColonyState, *, cfg: CycleConfig | None = None) -> ColonyState:
    cfg = cfg or DEFAULT_CYCLE
    history_mark = len(state.history)

    state = replace(state, cycle=state.cycle + 1)
    state = apply_activity_plan(state, cfg=cfg.scheduler, table=cfg.rates, heat_cfg=cfg.heat)

    rates = aggregate_rates(state.units, state.policies, table=cfg.rates)
    cognition = state.is_unlocked("distributedCognition")
    data_gain = rates.data * (1.0 + cfg.cognition_data_bonus) if cognition else rates.data

    digestion = digestion_capacity(state, cfg=cfg)
    digested = digestion * cfg.digestion_biomass_ratio
    digestion_energy = digestion * cfg.digestion_energy_ratio * state.hive_core.conversion_efficiency

    threats = _resolve_threats(state, rates, cfg=cfg)

    cooling = cfg.base_cooling * policy_multipliers(state.policies).cooling
    heat_gain = rates.heat + threats.level / cfg.threat_heat_divisor
    if cognition:
        heat_gain += cfg.heat.cognition_heat
    heat_gain *= state.difficulty.heat_multiplier
    heat = max(0.0, state.heat - cooling + heat_gain)

    delta = CycleDelta(
        biomass=rates.biomass - digested,
        minerals=rates.minerals,
        data=data_gain,
        energy=digestion_energy - rates.energy,
        heat=heat - state.heat,
        map=rates.map,
        control=rates.control,
        threat=threats.level - state.threats.level,
        digested=digested,
    )

    mapped = max(state.territory.mapped, state.territory.mapped + rates.map)
    controlled = _clamp(0.0, mapped, state.territory.controlled + rates.control)
    newly_discovered = threats.discovered and not state.threats.discovered
    state = replace(
        state,
        biomass=max(0.0, state.biomass + delta.biomass),
        minerals=max(0.0, state.minerals + delta.minerals),
        data=max(0.0, state.data + delta.data),
        energy=max(0.0, state.energy + delta.energy),
        heat=heat,
        territory=Territory(mapped=mapped, controlled=controlled),
        threats=threats,
    )
    if newly_discovered:
        state = state.with_history(
            "threat_discovered",
            "Native resistance detected. Something on this world has noticed us.",
        )

    state, _ = apply_energy_starvation(state, cfg=cfg.thermal, table=cfg.rates)
    state, _ = maybe_apply_thermal_constraint(state, cfg=cfg.thermal, heat_cfg=cfg.heat, table=cfg.rates)

    if ascension_ready(state, cfg=cfg.phases):
        state = complete_ascension(state, cfg=cfg.phases)
        return _summarize(state, delta, history_mark, completed=True)

    state, _ = evaluate_unlocks(state, cfg=cfg.phases)
    state, _ = maybe_advance_phase(state, cfg=cfg.phases)
    return _summarize(state, delta, history_mark, completed=False)


def process_cycles(state: ColonyState, count: int, *, cfg: CycleConfig | None = None) -> ColonyState:
    for _ in range(max(0, int(count))):
        state = process_cycle(state, cfg=cfg)
    return state


__all__ = [
    "CycleConfig",
    "DEFAULT_CYCLE",
    "digestion_capacity",
    "process_cycle",
    "process_cycles",
]
