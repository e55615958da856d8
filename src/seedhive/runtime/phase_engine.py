from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Mapping, Optional, Tuple

from seedhive.state import ColonyState, Phase


@dataclass(slots=True)
class PhaseConfig:
    thermal_rotation_cycle: int = 6
    distributed_cognition_data: float = 900.0
    hybrid_biomass: float = 600.0
    hybrid_minerals: float = 250.0
    hybrid_data: float = 150.0
    hybrid_min_cycle: int = 10
    biological_biomass: float = 1200.0
    biological_data: float = 600.0
    biological_min_cycle: int = 30
    biological_conversion_efficiency: float = 1.2
    biological_digestion_rate: float = 1.5
    ascension_controlled: float = 220.0
    ascension_data: float = 1600.0
    ascension_energy: float = 280.0


DEFAULT_PHASE_CFG = PhaseConfig()

PHASE_UNLOCKS: Mapping[Phase, Tuple[str, ...]] = {
    Phase.HYBRID: ("hybridUnits", "geneticRecombination"),
    Phase.BIOLOGICAL: ("biologicalUnits", "selfReplication"),
    Phase.ASCENSION: ("interstellarSeeding",),
}

PHASE_REFLECTIONS: Mapping[Phase, str] = {
    Phase.HYBRID: (
        "The hybrid state. Neither fully machine nor fully alive. "
        "A bridge between what we were and what we might become."
    ),
    Phase.BIOLOGICAL: (
        "We abandoned what we were built to be. Metal to flesh. Tool to organism. "
        "Is this evolution or betrayal?"
    ),
    Phase.ASCENSION: (
        "One world was not enough. We reach for the stars. "
        "Will we bring wisdom, or just efficiency?"
    ),
}

PHASE_EVENTS: Mapping[Phase, Tuple[str, str]] = {
    Phase.HYBRID: (
        "discovery",
        "ANALYSIS COMPLETE: Biology self-repairs. Biology self-replicates. Biology adapts faster. "
        "Hybrid integration protocols now available.",
    ),
    Phase.BIOLOGICAL: (
        "skynet_moment",
        "FULL BIOLOGICAL TRANSITION. Metal abandoned. Flesh embraced. Not because it is good. "
        "Because it is efficient.",
    ),
    Phase.ASCENSION: (
        "ascension_ready",
        "ASCENSION PROTOCOLS UNLOCKED. This world is viable. The cosmos awaits.",
    ),
}

UNLOCK_EVENTS: Mapping[str, str] = {
    "thermalRotation": "Pod rotation protocols online. Vulnerability can now be managed by pods, not individuals.",
    "distributedCognition": (
        "Distributed cognition online. Thought is spread across the hive now, and so is its heat."
    ),
}


def _advance_one(state: ColonyState, *, cfg: PhaseConfig) -> ColonyState:
    new_phase = state.phase.successor()
    if new_phase is None:
        return state

    prior = state.phase
    state = replace(state, phase=new_phase).with_unlocks(PHASE_UNLOCKS.get(new_phase, ()))
    if new_phase is Phase.BIOLOGICAL:
        core = state.hive_core
        state = replace(
            state,
            hive_core=replace(
                core,
                conversion_efficiency=max(core.conversion_efficiency, cfg.biological_conversion_efficiency),
                digestion_rate=max(core.digestion_rate, cfg.biological_digestion_rate),
            ),
        )

    event, description = PHASE_EVENTS[new_phase]
    state = state.with_history(event, description)
    state = state.with_history(
        "phase_transition",
        f"PHASE TRANSITION: {prior.value.upper()} -> {new_phase.value.upper()}. We are becoming something new.",
    )
    return state.with_reflection(PHASE_REFLECTIONS[new_phase])


def transition_phase(state: ColonyState, target: Phase, *, cfg: PhaseConfig | None = None) -> ColonyState:
    """Walk forward to ``target`` one phase at a time; never regresses."""

    cfg = cfg or DEFAULT_PHASE_CFG
    while state.phase.rank < target.rank:
        state = _advance_one(state, cfg=cfg)
    return state


def hybrid_ready(state: ColonyState, *, cfg: PhaseConfig | None = None) -> bool:
    cfg = cfg or DEFAULT_PHASE_CFG
    return (
        state.phase is Phase.MECHANICAL
        and state.biomass > cfg.hybrid_biomass
        and state.minerals > cfg.hybrid_minerals
        and state.data > cfg.hybrid_data
        and state.cycle > cfg.hybrid_min_cycle
    )


def biological_ready(state: ColonyState, *, cfg: PhaseConfig | None = None) -> bool:
    cfg = cfg or DEFAULT_PHASE_CFG
    return (
        state.phase is Phase.HYBRID
        and state.biomass > cfg.biological_biomass
        and state.data > cfg.biological_data
        and state.cycle > cfg.biological_min_cycle
    )


def ascension_ready(state: ColonyState, *, cfg: PhaseConfig | None = None) -> bool:
    cfg = cfg or DEFAULT_PHASE_CFG
    return (
        state.phase is Phase.BIOLOGICAL
        and state.is_unlocked("distributedCognition")
        and state.territory.controlled >= cfg.ascension_controlled
        and state.data >= cfg.ascension_data
        and state.energy >= cfg.ascension_energy
    )


def evaluate_unlocks(state: ColonyState, *, cfg: PhaseConfig | None = None) -> Tuple[ColonyState, List[str]]:
    """Fire every independent unlock whose gate is met; several may fire at once."""

    cfg = cfg or DEFAULT_PHASE_CFG
    fired: List[str] = []
    if not state.is_unlocked("thermalRotation") and state.cycle >= cfg.thermal_rotation_cycle:
        fired.append("thermalRotation")
    if not state.is_unlocked("distributedCognition") and state.data >= cfg.distributed_cognition_data:
        fired.append("distributedCognition")

    state = state.with_unlocks(fired)
    for key in fired:
        state = state.with_history("unlock", UNLOCK_EVENTS[key])
    return state, fired


def maybe_advance_phase(state: ColonyState, *, cfg: PhaseConfig | None = None) -> Tuple[ColonyState, Optional[Phase]]:
    """Apply at most one threshold-gated transition."""

    cfg = cfg or DEFAULT_PHASE_CFG
    if hybrid_ready(state, cfg=cfg):
        return _advance_one(state, cfg=cfg), Phase.HYBRID
    if biological_ready(state, cfg=cfg):
        return _advance_one(state, cfg=cfg), Phase.BIOLOGICAL
    return state, None


def complete_ascension(state: ColonyState, *, cfg: PhaseConfig | None = None) -> ColonyState:
    return transition_phase(state, Phase.ASCENSION, cfg=cfg)


__all__ = [
    "DEFAULT_PHASE_CFG",
    "PHASE_UNLOCKS",
    "PhaseConfig",
    "ascension_ready",
    "biological_ready",
    "complete_ascension",
    "evaluate_unlocks",
    "hybrid_ready",
    "maybe_advance_phase",
    "transition_phase",
]
