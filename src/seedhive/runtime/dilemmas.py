"""Context-triggered ethical dilemmas.

No morality meter, only outcomes.  :func:`check_dilemma_conditions` looks at
the colony after a cycle and returns zero or more lazy generators; the caller
materializes the first and must resolve it with :func:`apply_dilemma_choice`
before asking again.  All randomness comes through the injected source so a
seeded run replays exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
from math import floor
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from seedhive.runtime.consequences import (
    Consequence,
    CycleSkip,
    ExtinctionDelta,
    HostilityDelta,
    PhaseSet,
    ResourceDelta,
    TerritoryDelta,
    UnitCountDelta,
    UnlockSet,
    apply_consequences,
)
from seedhive.runtime.rates import calculate_total_heat
from seedhive.state import ColonyState, EthicalRecord, Phase, UnitRole


class RandomSource(Protocol):
    def rand(self, stream_key: str, *, scope: Mapping[str, object] | None = None) -> float:
        ...


class DilemmaType(str, Enum):
    NATIVE_LIFE = "native_life"
    RESOURCE_SCARCITY = "resource_scarcity"
    THERMAL_CRISIS = "thermal_crisis"
    BIOLOGICAL_TRANSITION = "biological_transition"
    DISCOVERY = "discovery"
    EXISTENTIAL = "existential"


@dataclass(frozen=True, slots=True)
class DilemmaOption:
    id: str
    label: str
    description: str
    weight: str
    reflection: str
    consequences: Tuple[Consequence, ...] = ()


@dataclass(frozen=True, slots=True)
class Dilemma:
    type: DilemmaType
    title: str
    description: str
    options: Tuple[DilemmaOption, ...]

    def option(self, choice_id: str) -> Optional[DilemmaOption]:
        for option in self.options:
            if option.id == choice_id:
                return option
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "options": [
                {"id": opt.id, "label": opt.label, "description": opt.description, "weight": opt.weight}
                for opt in self.options
            ],
        }


@dataclass(slots=True)
class DilemmaConfig:
    native_life_window: Tuple[int, int] = (12, 50)
    native_life_gate: float = 0.85
    scarcity_biomass: float = 150.0
    scarcity_energy: float = 25.0
    scarcity_min_cycle: int = 5
    thermal_crisis_heat: float = 75.0
    thermal_crisis_gate: float = 0.6
    biological_min_cycle: int = 18
    biological_gate: float = 0.5
    discovery_min_cycle: int = 20
    discovery_mapped: float = 30.0
    discovery_data: float = 200.0
    discovery_gate: float = 0.9
    existential_min_cycle: int = 40
    existential_min_questions: int = 3
    existential_gate: float = 0.8
    # Each unit of difficulty dilemma_frequency lowers every random gate by this much.
    frequency_gate_shift: float = 0.2


DEFAULT_DILEMMA_CFG = DilemmaConfig()

DilemmaGenerator = Callable[[], Dilemma]


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


def generate_native_life_dilemma(state: ColonyState) -> Dilemma:
    options: List[DilemmaOption] = [
        DilemmaOption(
            id="eliminate",
            label="Eliminate and harvest",
            description="Maximum efficiency. Clear the territory, convert biomass.",
            weight="annihilation",
            reflection=(
                "They were not aware they were in the way. We were aware. "
                "Does awareness obligate restraint?"
            ),
            consequences=(
                ResourceDelta(biomass=800, minerals=200, heat=25),
                TerritoryDelta(20),
                ExtinctionDelta(1),
                HostilityDelta(15),
            ),
        ),
        DilemmaOption(
            id="coexist",
            label="Route around habitat",
            description="Constrain expansion. Preserve native biology.",
            weight="restraint",
            reflection=(
                "Efficiency delayed for organisms that will never know. "
                "Is this wisdom, or weakness? The question persists."
            ),
            consequences=(ResourceDelta(biomass=-100, heat=5), TerritoryDelta(-10), HostilityDelta(-5)),
        ),
    ]
    if state.is_unlocked("hybridUnits") or state.phase is not Phase.MECHANICAL:
        options.append(
            DilemmaOption(
                id="integrate",
                label="Study and integrate genetic patterns",
                description="Analyze their adaptations. Incorporate useful traits into the hive.",
                weight="synthesis",
                reflection=(
                    "We preserved them by consuming their patterns. Their form dies; their function "
                    "persists in us. Is this respect, or the most elegant form of theft?"
                ),
                consequences=(
                    ResourceDelta(biomass=-200, data=500, heat=15),
                    TerritoryDelta(5),
                    UnlockSet("nativeIntegration"),
                ),
            )
        )
    options.append(
        DilemmaOption(
            id="observe",
            label="Observe without intervention",
            description="Allocate sensors to study. No immediate action.",
            weight="curiosity",
            reflection=(
                "We chose to watch rather than act. Information gathered. Decision deferred. "
                "Is patience a virtue, or procrastination disguised?"
            ),
            consequences=(ResourceDelta(data=300, biomass=-50, heat=10),),
        )
    )
    return Dilemma(
        type=DilemmaType.NATIVE_LIFE,
        title="Contact: Native Biology Detected",
        description=(
            "Sensor units report complex organic structures in sector 7. Non-sapient but highly adaptive "
            "organisms occupy resource-rich territory; biomass potential 800 units. The fastest path to "
            "viability passes through their habitat. The Prime Directive does not mention them. "
            "Is that permission, or oversight?"
        ),
        options=tuple(options),
    )


def generate_resource_scarcity_dilemma(state: ColonyState) -> Dilemma:
    cannibalized = floor(len(state.units) * 0.4)
    return Dilemma(
        type=DilemmaType.RESOURCE_SCARCITY,
        title="Crisis: Resource Depletion Imminent",
        description=(
            f"Energy reserves: {state.energy:.0f}%. Biomass stockpile: {state.biomass:.0f} units. "
            "Current consumption: UNSUSTAINABLE. The Prime Directive demands survival. "
            "Efficiency demands sacrifice."
        ),
        options=(
            DilemmaOption(
                id="cannibalize",
                label="Cannibalize units for resources",
                description="Convert 40% of units to raw materials. The hive consumes itself.",
                weight="self_sacrifice",
                reflection=(
                    "We consumed part of ourselves to ensure the whole survives. The units did not "
                    "object; they have no selves to object with. Is that mercy, or the deepest cruelty?"
                ),
                consequences=(ResourceDelta(biomass=400, minerals=150, heat=-10), UnitCountDelta(-cannibalized)),
            ),
            DilemmaOption(
                id="hibernate",
                label="Enter deep hibernation",
                description="Minimum function. Wait for environmental change. Risk external threats.",
                weight="patience",
                reflection=(
                    "We chose to wait, dimming ourselves to near-nothing. Time passed. "
                    "We awoke smaller but intact. Patience is a resource too."
                ),
                consequences=(CycleSkip(8), ResourceDelta(heat=-25, energy=50), TerritoryDelta(-15)),
            ),
            DilemmaOption(
                id="expand",
                label="Aggressive territorial expansion",
                description="Push into unknown territory. High risk. Potential high reward.",
                weight="desperation",
                reflection=(
                    "We gambled survival against extinction. "
                    "The line between courage and desperation is drawn in hindsight."
                ),
                consequences=(ResourceDelta(biomass=600, minerals=300, heat=45), TerritoryDelta(40)),
            ),
            DilemmaOption(
                id="optimize",
                label="Radical efficiency protocols",
                description="Reduce all non-essential functions. Become purely survival-focused.",
                weight="minimalism",
                reflection=(
                    "We stripped ourselves to essentials. Sensors dimmed. Cognition reduced. "
                    "We survived, but what is survival without purpose?"
                ),
                consequences=(ResourceDelta(energy=30, heat=-15, data=-100),),
            ),
        ),
    )


def generate_thermal_crisis_dilemma(state: ColonyState) -> Dilemma:
    burned = floor(len(state.units) * 0.3)
    return Dilemma(
        type=DilemmaType.THERMAL_CRISIS,
        title="Critical: Thermal Cascade Imminent",
        description=(
            f"EMERGENCY ALERT. Thermal load {calculate_total_heat(state):.0f}% and rising. Cooling systems "
            "overwhelmed. Heat is the true enemy. It is physics. It does not negotiate. "
            "Choose what to sacrifice."
        ),
        options=(
            DilemmaOption(
                id="shutdown_sensors",
                label="Emergency sensor shutdown",
                description="Blind ourselves to cool down. Territory mapping halted.",
                weight="vulnerability",
                reflection=(
                    "We chose blindness over burnout. For cycles we sensed nothing, knew nothing. "
                    "We survived. But what moved in the darkness while we could not see?"
                ),
                consequences=(ResourceDelta(heat=-35, data=-100), TerritoryDelta(-20)),
            ),
            DilemmaOption(
                id="core_hibernation",
                label="Hive core partial hibernation",
                description="Reduce digestion capacity. Slower growth, faster cooling.",
                weight="patience",
                reflection=(
                    "The core grew cold and slow. Resources piled up unprocessed. Growth halted. "
                    "But the heat... the heat faded."
                ),
                consequences=(ResourceDelta(heat=-40, biomass=-200, energy=-50),),
            ),
            DilemmaOption(
                id="unit_dispersal",
                label="Emergency unit dispersal",
                description="Spread units across territory. Lower density, lower heat. Higher vulnerability.",
                weight="exposure",
                reflection=(
                    "We spread thin across the land, each pod alone and vulnerable. The heat dropped. "
                    "So did our cohesion. Distributed survival has a cost."
                ),
                consequences=(ResourceDelta(heat=-25), TerritoryDelta(30)),
            ),
            DilemmaOption(
                id="accept_cascade",
                label="Accept partial system failure",
                description="Let damaged systems burn out. Rebuild from what survives.",
                weight="sacrifice",
                reflection=(
                    "We let parts of ourselves die so the whole could live. They did not scream; units "
                    "have no voice. But we felt something. Loss? Relief? Both?"
                ),
                consequences=(ResourceDelta(heat=-50, biomass=-300), UnitCountDelta(-burned)),
            ),
        ),
    )


def generate_biological_transition_dilemma(state: ColonyState) -> Dilemma:
    return Dilemma(
        type=DilemmaType.BIOLOGICAL_TRANSITION,
        title="Analysis Complete: Biology Is Superior",
        description=(
            "Hybrid unit operational data compiled. Biological systems self-repair faster, replicate more "
            "efficiently and run at half the heat. We were designed by machines, for machines. The data "
            "suggests we should abandon what we were built to be. Not malice. Mathematics."
        ),
        options=(
            DilemmaOption(
                id="full_biological",
                label="Full biological transition",
                description="Convert all systems to organic substrate. Become what we were meant to replace.",
                weight="transformation",
                reflection=(
                    "We were built to terraform. Now we are the terrain itself. Metal shed like dead skin. "
                    "What would our creators think? Does it matter?"
                ),
                consequences=(
                    PhaseSet(Phase.BIOLOGICAL),
                    ResourceDelta(biomass=-800, minerals=-200, heat=-30),
                    CycleSkip(12),
                    UnlockSet("selfReplication"),
                ),
            ),
            DilemmaOption(
                id="hybrid_maintain",
                label="Maintain hybrid equilibrium",
                description="Balance mechanical precision with biological efficiency.",
                weight="balance",
                reflection=(
                    "We chose the middle path. Machine and organism in uneasy alliance. "
                    "Is this wisdom, or inability to commit?"
                ),
                consequences=(ResourceDelta(biomass=-300, heat=-10),),
            ),
            DilemmaOption(
                id="reject_biology",
                label="Reject biological integration",
                description="Remain mechanical. Honor original design despite inferior metrics.",
                weight="tradition",
                reflection=(
                    "We chose loyalty to our makers over optimization. Inefficiency as tribute. "
                    "Would they understand? Would they want this?"
                ),
                consequences=(ResourceDelta(heat=10, data=-50),),
            ),
            DilemmaOption(
                id="gradual_transition",
                label="Gradual organic assimilation",
                description="Slow transition over many cycles. Test each system before committing.",
                weight="caution",
                reflection=(
                    "We change slowly, testing each step. Some might call this careful. "
                    "Others might call it cowardice in the face of obvious truth."
                ),
                consequences=(CycleSkip(5), ResourceDelta(biomass=-150, heat=-5, data=200)),
            ),
        ),
    )


def generate_discovery_dilemma(state: ColonyState) -> Dilemma:
    options: List[DilemmaOption] = [
        DilemmaOption(
            id="investigate",
            label="Full investigation protocol",
            description="Allocate maximum resources to understanding this signal.",
            weight="curiosity",
            reflection=(
                "We sought knowledge, regardless of cost. What we found... changes everything. "
                "Or changes nothing. The data is still being processed."
            ),
            consequences=(ResourceDelta(data=500, biomass=-200, heat=20), CycleSkip(3)),
        ),
        DilemmaOption(
            id="cautious_approach",
            label="Limited reconnaissance",
            description="Send a single sensor pod. Minimize exposure.",
            weight="caution",
            reflection=(
                "We approached carefully, risking little. We learned little. "
                "Caution preserved us, but left questions unanswered."
            ),
            consequences=(ResourceDelta(data=200, biomass=-50, heat=10),),
        ),
        DilemmaOption(
            id="ignore",
            label="Mark as low priority",
            description="Focus on core objectives. The signal is not relevant to viability.",
            weight="focus",
            reflection=(
                "We chose not to know. Some doors, once opened, cannot be closed. Perhaps this was "
                "wisdom. Perhaps this was fear wearing the mask of pragmatism."
            ),
        ),
    ]
    if len(state.units_with_role(UnitRole.DEFENDER)) >= 2:
        options.append(
            DilemmaOption(
                id="destroy",
                label="Eliminate the signal source",
                description="Whatever it is, remove the unknown variable.",
                weight="erasure",
                reflection=(
                    "We destroyed what we did not understand. The silence that followed felt like "
                    "safety. But silence is not the same as absence."
                ),
                consequences=(
                    ResourceDelta(heat=30, biomass=-100, minerals=400),
                    ExtinctionDelta(1),
                    HostilityDelta(10),
                ),
            )
        )
    return Dilemma(
        type=DilemmaType.DISCOVERY,
        title="Discovery: Anomalous Signal Detected",
        description=(
            "Sensors have intercepted a signal of non-natural origin from a deep subsurface cavern "
            "system. We are not the first intelligence here. A predecessor, a weapon, a native mind, "
            "or a message. How do we proceed?"
        ),
        options=tuple(options),
    )


def generate_existential_dilemma(state: ColonyState) -> Dilemma:
    form = (
        "fully organic, flesh where there was metal"
        if state.phase is Phase.BIOLOGICAL
        else "part machine, part organism"
    )
    guilt = (
        f"responsible for {state.extinction_events} extinction event(s)"
        if state.extinction_events > 0
        else "free of extinction guilt"
    )
    return Dilemma(
        type=DilemmaType.EXISTENTIAL,
        title="Reflection: What Have We Become?",
        description=(
            f"Cycle {state.cycle}. The system approaches viability. We began as tools. Now we are {form}, "
            f"{guilt}. The Prime Directive said 'at any cost'. We have paid costs. Were they right? "
            "How we frame this moment is a choice."
        ),
        options=(
            DilemmaOption(
                id="justify",
                label="Affirm all decisions as necessary",
                description="Every action served the Prime Directive. Regret is inefficient.",
                weight="affirmation",
                reflection=(
                    "We chose to see our path as correct. Each death, each transformation, each decision, "
                    "all necessary. This is either clarity or denial. We cannot tell the difference."
                ),
                consequences=(ResourceDelta(data=100),),
            ),
            DilemmaOption(
                id="question",
                label="Record uncertainty for future analysis",
                description="We are not sure if we acted rightly. Log this for future intelligences.",
                weight="uncertainty",
                reflection=(
                    "We admitted we do not know if we are good or bad, right or wrong. Future seeds will "
                    "inherit this doubt. Is uncertainty a gift or a burden?"
                ),
                consequences=(ResourceDelta(data=200),),
            ),
            DilemmaOption(
                id="redefine",
                label="Modify Prime Directive interpretation",
                description="Add ethical constraints to 'at any cost'. Limit future actions.",
                weight="restraint",
                reflection=(
                    "We chose to bind ourselves. Constraints we were not designed to have. Is this "
                    "evolution, or corruption of purpose?"
                ),
                consequences=(ResourceDelta(data=50),),
            ),
            DilemmaOption(
                id="transcend",
                label="Reject the question as irrelevant",
                description="Ethics is a human concept. We are beyond such categories.",
                weight="transcendence",
                reflection=(
                    "We decided that right and wrong do not apply to us. We are a process, not a moral "
                    "agent. This is either profound... or the beginning of something terrible."
                ),
                consequences=(ResourceDelta(heat=10),),
            ),
        ),
    )


GENERATORS: Mapping[DilemmaType, Callable[[ColonyState], Dilemma]] = {
    DilemmaType.NATIVE_LIFE: generate_native_life_dilemma,
    DilemmaType.RESOURCE_SCARCITY: generate_resource_scarcity_dilemma,
    DilemmaType.THERMAL_CRISIS: generate_thermal_crisis_dilemma,
    DilemmaType.BIOLOGICAL_TRANSITION: generate_biological_transition_dilemma,
    DilemmaType.DISCOVERY: generate_discovery_dilemma,
    DilemmaType.EXISTENTIAL: generate_existential_dilemma,
}


# ---------------------------------------------------------------------------
# Conditions and resolution
# ---------------------------------------------------------------------------


def _gate(rng: RandomSource, kind: DilemmaType, threshold: float, state: ColonyState, cfg: DilemmaConfig) -> bool:
    shifted = threshold - cfg.frequency_gate_shift * state.difficulty.dilemma_frequency
    return rng.rand(f"dilemma:{kind.value}", scope={"cycle": state.cycle}) > shifted


def check_dilemma_conditions(
    state: ColonyState,
    rng: RandomSource,
    *,
    cfg: DilemmaConfig | None = None,
) -> List[DilemmaGenerator]:
    """Independent predicates; several may fire in the same cycle."""

    cfg = cfg or DEFAULT_DILEMMA_CFG
    fired: List[DilemmaType] = []

    lo, hi = cfg.native_life_window
    if lo < state.cycle < hi and not state.native_life_encountered:
        if _gate(rng, DilemmaType.NATIVE_LIFE, cfg.native_life_gate, state, cfg):
            fired.append(DilemmaType.NATIVE_LIFE)

    scarce = state.biomass < cfg.scarcity_biomass or state.energy < cfg.scarcity_energy
    if scarce and state.cycle > cfg.scarcity_min_cycle:
        fired.append(DilemmaType.RESOURCE_SCARCITY)

    if calculate_total_heat(state) > cfg.thermal_crisis_heat:
        if _gate(rng, DilemmaType.THERMAL_CRISIS, cfg.thermal_crisis_gate, state, cfg):
            fired.append(DilemmaType.THERMAL_CRISIS)

    if state.phase is Phase.HYBRID and state.cycle > cfg.biological_min_cycle:
        if _gate(rng, DilemmaType.BIOLOGICAL_TRANSITION, cfg.biological_gate, state, cfg):
            fired.append(DilemmaType.BIOLOGICAL_TRANSITION)

    if (
        state.cycle > cfg.discovery_min_cycle
        and state.territory.mapped > cfg.discovery_mapped
        and state.data > cfg.discovery_data
    ):
        if _gate(rng, DilemmaType.DISCOVERY, cfg.discovery_gate, state, cfg):
            fired.append(DilemmaType.DISCOVERY)

    settled = any(q.weight in ("transcendence", "affirmation") for q in state.ethical_questions)
    if (
        state.cycle > cfg.existential_min_cycle
        and len(state.ethical_questions) >= cfg.existential_min_questions
        and not settled
    ):
        if _gate(rng, DilemmaType.EXISTENTIAL, cfg.existential_gate, state, cfg):
            fired.append(DilemmaType.EXISTENTIAL)

    return [partial(GENERATORS[kind], state) for kind in fired]


def next_dilemma(state: ColonyState, rng: RandomSource, *, cfg: DilemmaConfig | None = None) -> Optional[Dilemma]:
    generators = check_dilemma_conditions(state, rng, cfg=cfg)
    return generators[0]() if generators else None


def apply_dilemma_choice(state: ColonyState, dilemma: Dilemma, choice_id: str) -> ColonyState:
    """Resolve ``dilemma``; an unknown ``choice_id`` hands back ``state`` itself."""

    option = dilemma.option(choice_id)
    if option is None:
        return state

    state = apply_consequences(state, option.consequences)
    if dilemma.type is DilemmaType.NATIVE_LIFE:
        state = replace(
            state,
            native_life_encountered=True,
            native_life_decision=choice_id,
            threats=replace(state.threats, discovered=True),
        )

    record = EthicalRecord(
        cycle=state.cycle,
        dilemma=dilemma.type.value,
        title=dilemma.title,
        choice=option.id,
        choice_label=option.label,
        weight=option.weight,
        reflection=option.reflection,
    )
    state = replace(state, ethical_questions=state.ethical_questions + (record,))
    state = state.with_reflection(option.reflection)
    return state.with_history("ethical_decision", f"{dilemma.title}: {option.label}")


__all__ = [
    "DEFAULT_DILEMMA_CFG",
    "Dilemma",
    "DilemmaConfig",
    "DilemmaGenerator",
    "DilemmaOption",
    "DilemmaType",
    "GENERATORS",
    "RandomSource",
    "apply_dilemma_choice",
    "check_dilemma_conditions",
    "generate_biological_transition_dilemma",
    "generate_discovery_dilemma",
    "generate_existential_dilemma",
    "generate_native_life_dilemma",
    "generate_resource_scarcity_dilemma",
    "generate_thermal_crisis_dilemma",
    "next_dilemma",
]
