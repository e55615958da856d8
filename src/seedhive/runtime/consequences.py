"""Consequence kinds a dilemma option can carry.

Each kind is its own frozen record and :func:`apply_consequence` matches on
all of them.  An unrecognised object is a programming error and raises
``TypeError`` instead of being skipped silently.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Union

from seedhive.runtime.phase_engine import transition_phase
from seedhive.runtime.scheduler import sync_pods
from seedhive.state import ColonyState, Phase, Territory, Unit


@dataclass(frozen=True, slots=True)
class ResourceDelta:
    biomass: float = 0.0
    minerals: float = 0.0
    data: float = 0.0
    energy: float = 0.0
    heat: float = 0.0


@dataclass(frozen=True, slots=True)
class TerritoryDelta:
    controlled: float


@dataclass(frozen=True, slots=True)
class CycleSkip:
    cycles: int


@dataclass(frozen=True, slots=True)
class ExtinctionDelta:
    events: int = 1


@dataclass(frozen=True, slots=True)
class HostilityDelta:
    amount: float


@dataclass(frozen=True, slots=True)
class PhaseSet:
    phase: Phase


@dataclass(frozen=True, slots=True)
class UnlockSet:
    key: str


@dataclass(frozen=True, slots=True)
class UnitCountDelta:
    count: int


Consequence = Union[
    ResourceDelta,
    TerritoryDelta,
    CycleSkip,
    ExtinctionDelta,
    HostilityDelta,
    PhaseSet,
    UnlockSet,
    UnitCountDelta,
]


def _clamp(lo: float, hi: float, value: float) -> float:
    return max(lo, min(hi, float(value)))


def _apply_resources(state: ColonyState, delta: ResourceDelta) -> ColonyState:
    return replace(
        state,
        biomass=max(0.0, state.biomass + delta.biomass),
        minerals=max(0.0, state.minerals + delta.minerals),
        data=max(0.0, state.data + delta.data),
        energy=max(0.0, state.energy + delta.energy),
        heat=max(0.0, state.heat + delta.heat),
    )


def _apply_territory(state: ColonyState, amount: float) -> ColonyState:
    territory = state.territory
    controlled = max(0.0, territory.controlled + amount)
    # Newly seized ground counts as mapped ground.
    mapped = max(territory.mapped, controlled)
    return replace(state, territory=Territory(mapped=mapped, controlled=controlled))


def select_units_for_removal(units: Iterable[Unit], count: int) -> List[str]:
    """Most fatigued first; among equals the most recently added goes first.

    Digesters keep the core fed and are never selected.
    """

    candidates = [(index, unit) for index, unit in enumerate(units) if not unit.is_digester]
    candidates.sort(key=lambda pair: (-pair[1].fatigue, -pair[0]))
    return [unit.id for _, unit in candidates[: max(0, count)]]


def remove_units(state: ColonyState, count: int) -> ColonyState:
    doomed = set(select_units_for_removal(state.units, count))
    if not doomed:
        return state
    units = tuple(unit for unit in state.units if unit.id not in doomed)
    pods = sync_pods(state.pods, units, state.policies, cycle=state.cycle)
    pods = tuple(pod for pod in pods if pod.units)
    return replace(state, units=units, pods=pods)


def apply_consequence(state: ColonyState, consequence: Consequence) -> ColonyState:
    match consequence:
        case ResourceDelta():
            return _apply_resources(state, consequence)
        case TerritoryDelta(controlled=amount):
            return _apply_territory(state, amount)
        case CycleSkip(cycles=cycles):
            return replace(state, cycle=state.cycle + max(0, int(cycles)))
        case ExtinctionDelta(events=events):
            return replace(state, extinction_events=max(0, state.extinction_events + int(events)))
        case HostilityDelta(amount=amount):
            threats = replace(state.threats, hostility=_clamp(0.0, 100.0, state.threats.hostility + amount))
            return replace(state, threats=threats)
        case PhaseSet(phase=phase):
            return transition_phase(state, phase)
        case UnlockSet(key=key):
            return state.with_unlocks((key,))
        case UnitCountDelta(count=count):
            # Only reductions; construction goes through add_unit.
            return remove_units(state, -count) if count < 0 else state
    raise TypeError(f"Unknown consequence kind: {type(consequence).__name__}")


def apply_consequences(state: ColonyState, consequences: Iterable[Consequence]) -> ColonyState:
    for consequence in consequences:
        state = apply_consequence(state, consequence)
    return state


__all__ = [
    "Consequence",
    "CycleSkip",
    "ExtinctionDelta",
    "HostilityDelta",
    "PhaseSet",
    "ResourceDelta",
    "TerritoryDelta",
    "UnitCountDelta",
    "UnlockSet",
    "apply_consequence",
    "apply_consequences",
    "remove_units",
    "select_units_for_removal",
]
