"""Structured colony state for the Seed / Hive / Ascension simulation.

Every record in this module is a frozen dataclass.  Engine code never mutates
a state in place; it builds the next value with :func:`dataclasses.replace`
so callers can keep earlier snapshots around (replays, dilemma previews,
save files written after the fact) without aliasing surprises.

Sequences are stored as tuples and mappings are rebuilt rather than edited,
which keeps the copy-on-write contract honest.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Tuple


class Phase(str, Enum):
    MECHANICAL = "mechanical"
    HYBRID = "hybrid"
    BIOLOGICAL = "biological"
    ASCENSION = "ascension"

    @property
    def rank(self) -> int:
        return PHASE_ORDER.index(self)

    def successor(self) -> Optional["Phase"]:
        idx = self.rank + 1
        return PHASE_ORDER[idx] if idx < len(PHASE_ORDER) else None


PHASE_ORDER: Tuple[Phase, ...] = (
    Phase.MECHANICAL,
    Phase.HYBRID,
    Phase.BIOLOGICAL,
    Phase.ASCENSION,
)


class UnitRole(str, Enum):
    SENSOR = "sensor"
    DIGESTER = "digester"
    DEFENDER = "defender"
    WORKER = "worker"


class UnitType(str, Enum):
    MECHANICAL = "mechanical"
    HYBRID = "hybrid"
    BIOLOGICAL = "biological"


class Activity(str, Enum):
    ACTIVE = "active"
    STANDBY = "standby"
    HIBERNATING = "hibernating"


class PodStatus(str, Enum):
    ACTIVE = "active"
    STANDBY = "standby"
    HIBERNATING = "hibernating"
    DAMAGED = "damaged"


UNLOCK_KEYS: Tuple[str, ...] = (
    "hybridUnits",
    "biologicalUnits",
    "thermalRotation",
    "geneticRecombination",
    "distributedCognition",
    "selfReplication",
    "interstellarSeeding",
    "nativeIntegration",
)

# Persisted (camelCase) policy key -> dataclass attribute.
POLICY_FIELDS: Mapping[str, str] = {
    "thermalPriority": "thermal_priority",
    "sensoryAcuity": "sensory_acuity",
    "reproductionMode": "reproduction_mode",
}

POLICY_CHOICES: Mapping[str, Tuple[str, ...]] = {
    "thermal_priority": ("stability", "performance"),
    "sensory_acuity": ("low", "standard", "high"),
    "reproduction_mode": ("conservative", "aggressive"),
}

UNIT_ID_PREFIX: Mapping[UnitType, str] = {
    UnitType.MECHANICAL: "mech",
    UnitType.HYBRID: "hyb",
    UnitType.BIOLOGICAL: "bio",
}


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Unit:
    id: str
    role: UnitRole
    unit_type: UnitType = UnitType.MECHANICAL
    activity: Activity = Activity.ACTIVE
    fatigue: float = 0.0
    pod_id: Optional[str] = None

    @property
    def is_digester(self) -> bool:
        return self.role is UnitRole.DIGESTER


@dataclass(frozen=True, slots=True)
class Pod:
    """Group of units sharing rotation and hibernation fate."""

    id: str
    name: str
    status: PodStatus = PodStatus.ACTIVE
    units: Tuple[str, ...] = ()
    heat_contribution: float = 0.0
    last_rotation: int = 0


@dataclass(frozen=True, slots=True)
class HiveCore:
    health: float = 100.0
    capacity: float = 500.0
    digestion_rate: float = 0.5
    conversion_efficiency: float = 1.0
    heat: float = 5.0


@dataclass(frozen=True, slots=True)
class Territory:
    mapped: float = 15.0
    controlled: float = 10.0


@dataclass(frozen=True, slots=True)
class Threats:
    level: float = 0.0
    discovered: bool = False
    hostility: float = 10.0


@dataclass(frozen=True, slots=True)
class Policies:
    thermal_priority: str = "stability"
    sensory_acuity: str = "standard"
    reproduction_mode: str = "conservative"


@dataclass(frozen=True, slots=True)
class DifficultyModifier:
    """Cross-run pressure, frozen for the duration of a run."""

    heat_multiplier: float = 1.0
    resource_cost_multiplier: float = 1.0
    dilemma_frequency: float = 0.0
    native_life_hostility: bool = False


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    cycle: int
    event: str
    description: str


@dataclass(frozen=True, slots=True)
class Reflection:
    cycle: int
    thought: str


@dataclass(frozen=True, slots=True)
class EthicalRecord:
    cycle: int
    dilemma: str
    title: str
    choice: str
    choice_label: str
    weight: str
    reflection: str


@dataclass(frozen=True, slots=True)
class CycleDelta:
    biomass: float = 0.0
    minerals: float = 0.0
    data: float = 0.0
    energy: float = 0.0
    heat: float = 0.0
    map: float = 0.0
    control: float = 0.0
    threat: float = 0.0
    digested: float = 0.0


@dataclass(frozen=True, slots=True)
class CycleSummary:
    """Narration-only summary of the latest tick; never read by the engine."""

    delta: CycleDelta = field(default_factory=CycleDelta)
    events: Tuple[str, ...] = ()
    completed: bool = False


@dataclass(frozen=True, slots=True)
class SeededWorld:
    name: str
    cycle: int


@dataclass(frozen=True, slots=True)
class Ascension:
    seeds_launched: int = 0
    worlds_seeded: Tuple[SeededWorld, ...] = ()


def default_unlocks(**overrides: bool) -> Dict[str, bool]:
    unlocked = {key: False for key in UNLOCK_KEYS}
    unlocked.update(overrides)
    return unlocked


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColonyState:
    cycle: int = 1
    phase: Phase = Phase.MECHANICAL
    heat: float = 12.0
    biomass: float = 450.0
    minerals: float = 200.0
    data: float = 50.0
    energy: float = 100.0
    units: Tuple[Unit, ...] = ()
    pods: Tuple[Pod, ...] = ()
    hive_core: HiveCore = field(default_factory=HiveCore)
    territory: Territory = field(default_factory=Territory)
    threats: Threats = field(default_factory=Threats)
    policies: Policies = field(default_factory=Policies)
    unlocked: Mapping[str, bool] = field(default_factory=default_unlocks)
    ethical_questions: Tuple[EthicalRecord, ...] = ()
    reflections: Tuple[Reflection, ...] = ()
    history: Tuple[HistoryEntry, ...] = ()
    last_cycle: Optional[CycleSummary] = None
    difficulty: DifficultyModifier = field(default_factory=DifficultyModifier)
    extinction_events: int = 0
    native_life_encountered: bool = False
    native_life_decision: Optional[str] = None
    ascension: Ascension = field(default_factory=Ascension)
    unit_serial: int = 0
    completed_runs: int = 0

    def is_unlocked(self, key: str) -> bool:
        return bool(self.unlocked.get(key, False))

    def units_with_role(self, role: UnitRole) -> Tuple[Unit, ...]:
        return tuple(unit for unit in self.units if unit.role is role)

    def active_units(self) -> Tuple[Unit, ...]:
        return tuple(unit for unit in self.units if unit.activity is Activity.ACTIVE)

    def rotatable_units(self) -> Tuple[Unit, ...]:
        return tuple(unit for unit in self.units if not unit.is_digester)

    def with_history(self, event: str, description: str) -> "ColonyState":
        entry = HistoryEntry(cycle=self.cycle, event=event, description=description)
        return replace(self, history=self.history + (entry,))

    def with_reflection(self, thought: str) -> "ColonyState":
        return replace(self, reflections=self.reflections + (Reflection(cycle=self.cycle, thought=thought),))

    def with_unlocks(self, keys: Iterable[str]) -> "ColonyState":
        """Set capability flags; flags are never cleared once set."""

        pending = [key for key in keys if not self.unlocked.get(key, False)]
        if not pending:
            return self
        unlocked = dict(self.unlocked)
        for key in pending:
            unlocked[key] = True
        return replace(self, unlocked=unlocked)


def create_initial_state(difficulty: DifficultyModifier | None = None, *, completed_runs: int = 0) -> ColonyState:
    """Landing state for a new run; ``difficulty`` is frozen for the run."""

    difficulty = difficulty or DifficultyModifier()
    units = (
        Unit(id="mech_sensor_01", role=UnitRole.SENSOR, pod_id="pod_alpha"),
        Unit(id="mech_sensor_02", role=UnitRole.SENSOR, pod_id="pod_alpha"),
        Unit(id="mech_sensor_03", role=UnitRole.SENSOR, pod_id="pod_beta"),
    )
    pods = (
        Pod(id="pod_alpha", name="Alpha Pod", units=("mech_sensor_01", "mech_sensor_02"), heat_contribution=4.0),
        Pod(id="pod_beta", name="Beta Pod", units=("mech_sensor_03",), heat_contribution=2.0),
    )
    hostility = 35.0 if difficulty.native_life_hostility else 10.0
    return ColonyState(
        units=units,
        pods=pods,
        threats=Threats(hostility=hostility),
        difficulty=difficulty,
        unit_serial=len(units),
        completed_runs=completed_runs,
    )


__all__ = [
    "Activity",
    "Ascension",
    "ColonyState",
    "CycleDelta",
    "CycleSummary",
    "DifficultyModifier",
    "EthicalRecord",
    "HistoryEntry",
    "HiveCore",
    "PHASE_ORDER",
    "POLICY_CHOICES",
    "POLICY_FIELDS",
    "Phase",
    "Pod",
    "PodStatus",
    "Policies",
    "Reflection",
    "SeededWorld",
    "Territory",
    "Threats",
    "UNIT_ID_PREFIX",
    "UNLOCK_KEYS",
    "Unit",
    "UnitRole",
    "UnitType",
    "create_initial_state",
    "default_unlocks",
]
