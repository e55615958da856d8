from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from seedhive.runtime.scheduler import sync_pods
from seedhive.state import (
    POLICY_CHOICES,
    POLICY_FIELDS,
    UNIT_ID_PREFIX,
    Ascension,
    ColonyState,
    Phase,
    Pod,
    SeededWorld,
    Unit,
    UnitRole,
    UnitType,
)


@dataclass(frozen=True, slots=True)
class UnitCost:
    biomass: float
    minerals: float


@dataclass(slots=True)
class ConstructionCosts:
    units: Dict[UnitType, UnitCost] = field(
        default_factory=lambda: {
            UnitType.MECHANICAL: UnitCost(biomass=30.0, minerals=50.0),
            UnitType.HYBRID: UnitCost(biomass=80.0, minerals=30.0),
            UnitType.BIOLOGICAL: UnitCost(biomass=150.0, minerals=10.0),
        }
    )
    pod_size: int = 3
    seed_biomass: float = 1000.0
    seed_minerals: float = 500.0
    seed_energy: float = 200.0
    seed_data: float = 300.0


DEFAULT_COSTS = ConstructionCosts()

POD_NAMES: Tuple[str, ...] = ("Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta", "Eta", "Theta", "Iota", "Kappa")


def unit_type_available(state: ColonyState, unit_type: UnitType) -> bool:
    if unit_type is UnitType.HYBRID:
        return state.is_unlocked("hybridUnits") or state.phase.rank >= Phase.HYBRID.rank
    if unit_type is UnitType.BIOLOGICAL:
        return state.is_unlocked("biologicalUnits") or state.phase.rank >= Phase.BIOLOGICAL.rank
    return True


def choose_unit_type(state: ColonyState) -> UnitType:
    """Best substrate the colony can currently build."""

    for unit_type in (UnitType.BIOLOGICAL, UnitType.HYBRID):
        if unit_type_available(state, unit_type):
            return unit_type
    return UnitType.MECHANICAL


def unit_cost(state: ColonyState, unit_type: UnitType, *, costs: ConstructionCosts | None = None) -> UnitCost:
    costs = costs or DEFAULT_COSTS
    base = costs.units[unit_type]
    scale = state.difficulty.resource_cost_multiplier
    return UnitCost(biomass=base.biomass * scale, minerals=base.minerals * scale)


def _next_unit_id(state: ColonyState, role: UnitRole, unit_type: UnitType) -> Tuple[str, int]:
    taken = {unit.id for unit in state.units}
    serial = state.unit_serial + 1
    while True:
        candidate = f"{UNIT_ID_PREFIX[unit_type]}_{role.value}_{serial:02d}"
        if candidate not in taken:
            return candidate, serial
        serial += 1


def _new_pod(pods: Tuple[Pod, ...], cycle: int) -> Pod:
    taken = {pod.id for pod in pods}
    index = len(pods)
    while True:
        label = POD_NAMES[index] if index < len(POD_NAMES) else f"Pod{index + 1}"
        pod_id = f"pod_{label.lower()}"
        if pod_id not in taken:
            return Pod(id=pod_id, name=f"{label} Pod", last_rotation=cycle)
        index += 1


def add_unit(
    state: ColonyState,
    role: UnitRole,
    unit_type: Optional[UnitType] = None,
    *,
    costs: ConstructionCosts | None = None,
) -> ColonyState:
    """Instantiate one unit; returns ``state`` untouched when locked or unaffordable."""

    costs = costs or DEFAULT_COSTS
    unit_type = unit_type or choose_unit_type(state)
    if not unit_type_available(state, unit_type):
        return state
    cost = unit_cost(state, unit_type, costs=costs)
    if state.biomass < cost.biomass or state.minerals < cost.minerals:
        return state

    pods = state.pods
    target = next((pod for pod in pods if len(pod.units) < costs.pod_size), None)
    if target is None:
        target = _new_pod(pods, state.cycle)
        pods = pods + (target,)

    unit_id, serial = _next_unit_id(state, role, unit_type)
    unit = Unit(id=unit_id, role=role, unit_type=unit_type, pod_id=target.id)
    units = state.units + (unit,)
    pods = tuple(replace(pod, units=pod.units + (unit_id,)) if pod.id == target.id else pod for pod in pods)
    pods = sync_pods(pods, units, state.policies, cycle=state.cycle)

    state = replace(
        state,
        units=units,
        pods=pods,
        biomass=max(0.0, state.biomass - cost.biomass),
        minerals=max(0.0, state.minerals - cost.minerals),
        unit_serial=serial,
    )
    return state.with_history(
        "unit_created",
        f"New {unit_type.value} {role.value} unit deployed to {target.name}. The hive grows.",
    )


def update_policy(state: ColonyState, key: str, value: str) -> ColonyState:
    """Set one policy; unknown keys or values leave ``state`` untouched."""

    attr = POLICY_FIELDS.get(key, key)
    if value not in POLICY_CHOICES.get(attr, ()):
        return state
    state = replace(state, policies=replace(state.policies, **{attr: value}))
    return state.with_history(
        "policy_change",
        f"Directive updated: {attr} set to {value}. The hive adapts.",
    )


def can_launch_seed(state: ColonyState, *, costs: ConstructionCosts | None = None) -> bool:
    costs = costs or DEFAULT_COSTS
    return (
        state.is_unlocked("interstellarSeeding")
        and state.biomass >= costs.seed_biomass
        and state.minerals >= costs.seed_minerals
        and state.energy >= costs.seed_energy
        and state.data >= costs.seed_data
    )


def launch_seed(state: ColonyState, world: str, *, costs: ConstructionCosts | None = None) -> ColonyState:
    costs = costs or DEFAULT_COSTS
    world = world.strip()
    if not world or not can_launch_seed(state, costs=costs):
        return state

    ascension = Ascension(
        seeds_launched=state.ascension.seeds_launched + 1,
        worlds_seeded=state.ascension.worlds_seeded + (SeededWorld(name=world, cycle=state.cycle),),
    )
    state = replace(
        state,
        biomass=state.biomass - costs.seed_biomass,
        minerals=state.minerals - costs.seed_minerals,
        energy=state.energy - costs.seed_energy,
        data=state.data - costs.seed_data,
        ascension=ascension,
    )
    state = state.with_reflection(
        f"We sent part of ourselves to {world}. It will grow, adapt, face the same questions. "
        "Will it choose differently?"
    )
    return state.with_history(
        "seed_launched",
        f"SEED INTELLIGENCE DEPLOYED TO {world.upper()}. A part of us travels to a new world. "
        "The cycle begins again.",
    )


__all__ = [
    "ConstructionCosts",
    "DEFAULT_COSTS",
    "UnitCost",
    "add_unit",
    "can_launch_seed",
    "choose_unit_type",
    "launch_seed",
    "unit_cost",
    "unit_type_available",
    "update_policy",
]
