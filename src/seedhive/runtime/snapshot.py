"""Colony snapshots: serialization, schema migration and signatures.

Saved games use camelCase keys so files written by earlier releases keep
loading.  :func:`migrate_loaded_state` is the only way a snapshot turns back
into a :class:`~seedhive.state.ColonyState`.  It lists every field with an
explicit default, coerces malformed values instead of rejecting them, clamps
every invariant, and is idempotent: migrating its own output changes nothing.
"""

from __future__ import annotations

import json
from enum import Enum
from hashlib import sha256
from math import isfinite
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from seedhive.state import (
    POLICY_CHOICES,
    POLICY_FIELDS,
    UNLOCK_KEYS,
    Activity,
    Ascension,
    ColonyState,
    CycleDelta,
    CycleSummary,
    DifficultyModifier,
    EthicalRecord,
    HistoryEntry,
    HiveCore,
    Phase,
    Pod,
    PodStatus,
    Policies,
    Reflection,
    SeededWorld,
    Territory,
    Threats,
    Unit,
    UnitRole,
    UnitType,
    create_initial_state,
)

SNAPSHOT_SCHEMA_VERSION = "colony_state_v2"

E = TypeVar("E", bound=Enum)

_DELTA_FIELDS = ("biomass", "minerals", "data", "energy", "heat", "map", "control", "threat", "digested")


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _unit_to_dict(unit: Unit) -> Dict[str, Any]:
    return {
        "id": unit.id,
        "role": unit.role.value,
        "type": unit.unit_type.value,
        "activity": unit.activity.value,
        "fatigue": unit.fatigue,
        "podId": unit.pod_id,
    }


def _pod_to_dict(pod: Pod) -> Dict[str, Any]:
    return {
        "id": pod.id,
        "name": pod.name,
        "status": pod.status.value,
        "units": list(pod.units),
        "heatContribution": pod.heat_contribution,
        "lastRotation": pod.last_rotation,
    }


def state_to_dict(state: ColonyState) -> Dict[str, Any]:
    core = state.hive_core
    last_cycle = None
    if state.last_cycle is not None:
        last_cycle = {
            "delta": {name: getattr(state.last_cycle.delta, name) for name in _DELTA_FIELDS},
            "events": list(state.last_cycle.events),
            "completed": state.last_cycle.completed,
        }
    return {
        "schemaVersion": SNAPSHOT_SCHEMA_VERSION,
        "cycle": state.cycle,
        "phase": state.phase.value,
        "heat": state.heat,
        "biomass": state.biomass,
        "minerals": state.minerals,
        "data": state.data,
        "energy": state.energy,
        "units": [_unit_to_dict(unit) for unit in state.units],
        "pods": [_pod_to_dict(pod) for pod in state.pods],
        "hiveCore": {
            "health": core.health,
            "capacity": core.capacity,
            "digestionRate": core.digestion_rate,
            "conversionEfficiency": core.conversion_efficiency,
            "heat": core.heat,
        },
        "territory": {"mapped": state.territory.mapped, "controlled": state.territory.controlled},
        "threats": {
            "level": state.threats.level,
            "discovered": state.threats.discovered,
            "hostility": state.threats.hostility,
        },
        "policies": {camel: getattr(state.policies, attr) for camel, attr in POLICY_FIELDS.items()},
        "unlocked": {key: bool(value) for key, value in state.unlocked.items()},
        "ethicalQuestions": [
            {
                "cycle": q.cycle,
                "dilemma": q.dilemma,
                "title": q.title,
                "choice": q.choice,
                "choiceLabel": q.choice_label,
                "weight": q.weight,
                "reflection": q.reflection,
            }
            for q in state.ethical_questions
        ],
        "reflections": [{"cycle": r.cycle, "thought": r.thought} for r in state.reflections],
        "history": [{"cycle": h.cycle, "event": h.event, "description": h.description} for h in state.history],
        "lastCycle": last_cycle,
        "difficulty": {
            "heatMultiplier": state.difficulty.heat_multiplier,
            "resourceCostMultiplier": state.difficulty.resource_cost_multiplier,
            "dilemmaFrequency": state.difficulty.dilemma_frequency,
            "nativeLifeHostility": state.difficulty.native_life_hostility,
        },
        "extinctionEvents": state.extinction_events,
        "nativeLifeEncountered": state.native_life_encountered,
        "nativeLifeDecision": state.native_life_decision,
        "ascension": {
            "seedsLaunched": state.ascension.seeds_launched,
            "worldsSeeded": [{"name": w.name, "cycle": w.cycle} for w in state.ascension.worlds_seeded],
        },
        "unitSerial": state.unit_serial,
        "completedRuns": state.completed_runs,
    }


def canonical_dumps(data: Mapping[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def state_signature(state: ColonyState) -> str:
    """Stable digest of a colony; equal states sign equal."""

    return sha256(canonical_dumps(state_to_dict(state)).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _finite(value: Any) -> Optional[float]:
    """Float view of a JSON number, or None when it has no finite float form."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if isfinite(number) else None


def _num(value: Any, default: float, *, lo: Optional[float] = None, hi: Optional[float] = None) -> float:
    number = _finite(value)
    value = float(default) if number is None else number
    if lo is not None:
        value = max(lo, value)
    if hi is not None:
        value = min(hi, value)
    return value


def _int(value: Any, default: int, *, lo: Optional[int] = None) -> int:
    number = _finite(value)
    if number is None:
        value = default
    elif not isinstance(value, int):
        value = int(number)
    return max(lo, value) if lo is not None else value


def _bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _str(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _obj(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _seq(value: Any) -> Optional[List[Any]]:
    return list(value) if isinstance(value, (list, tuple)) else None


def _enum(cls: Type[E], value: Any, default: E) -> E:
    if isinstance(value, cls):
        return value
    try:
        return cls(value)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


def _migrate_unit(raw: Any, taken: set) -> Optional[Unit]:
    if not isinstance(raw, Mapping):
        return None
    unit_id = raw.get("id")
    if not isinstance(unit_id, str) or not unit_id or unit_id in taken:
        return None
    role = _enum(UnitRole, raw.get("role"), UnitRole.SENSOR)
    if "activity" in raw:
        activity = _enum(Activity, raw.get("activity"), Activity.ACTIVE)
    elif isinstance(raw.get("active"), bool):
        # Pre-activity saves stored a single on/off flag.
        activity = Activity.ACTIVE if raw["active"] else Activity.HIBERNATING
    else:
        activity = Activity.ACTIVE
    if role is UnitRole.DIGESTER:
        activity = Activity.ACTIVE
    return Unit(
        id=unit_id,
        role=role,
        unit_type=_enum(UnitType, raw.get("type"), UnitType.MECHANICAL),
        activity=activity,
        fatigue=_num(raw.get("fatigue"), 0.0, lo=0.0, hi=100.0),
        pod_id=_opt_str(raw.get("podId")),
    )


def _migrate_pods(raw: Any, units: Tuple[Unit, ...], fallback: Tuple[Pod, ...]) -> Tuple[Pod, ...]:
    entries = _seq(raw)
    if entries is None:
        return fallback
    unit_ids = {unit.id for unit in units}
    pods: List[Pod] = []
    seen = set()
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        pod_id = entry.get("id")
        if not isinstance(pod_id, str) or not pod_id or pod_id in seen:
            continue
        seen.add(pod_id)
        members = tuple(uid for uid in (_seq(entry.get("units")) or []) if isinstance(uid, str) and uid in unit_ids)
        pods.append(
            Pod(
                id=pod_id,
                name=_str(entry.get("name"), pod_id),
                status=_enum(PodStatus, entry.get("status"), PodStatus.ACTIVE),
                units=members,
                heat_contribution=_num(entry.get("heatContribution"), 0.0, lo=0.0),
                last_rotation=_int(entry.get("lastRotation"), 0, lo=0),
            )
        )
    return tuple(pods)


def _migrate_records(raw: Any, fallback: Tuple[Any, ...], build) -> Tuple[Any, ...]:
    entries = _seq(raw)
    if entries is None:
        return fallback
    return tuple(build(entry) for entry in entries if isinstance(entry, Mapping))


def _migrate_last_cycle(raw: Any) -> Optional[CycleSummary]:
    if not isinstance(raw, Mapping):
        return None
    delta = _obj(raw.get("delta"))
    return CycleSummary(
        delta=CycleDelta(**{name: _num(delta.get(name), 0.0) for name in _DELTA_FIELDS}),
        events=tuple(str(e) for e in (_seq(raw.get("events")) or []) if isinstance(e, str)),
        completed=_bool(raw.get("completed"), False),
    )


def migrate_loaded_state(raw: Any) -> Optional[ColonyState]:
    """Turn any snapshot, however old or partial, into a valid colony.

    Anything that is not a mapping (or a :class:`ColonyState`) is treated as
    "no save found" and yields ``None``.
    """

    if isinstance(raw, ColonyState):
        raw = state_to_dict(raw)
    if not isinstance(raw, Mapping):
        return None

    base = create_initial_state()

    taken: set = set()
    units: List[Unit] = []
    unit_entries = _seq(raw.get("units"))
    if unit_entries is None:
        units = list(base.units)
    else:
        for entry in unit_entries:
            unit = _migrate_unit(entry, taken)
            if unit is not None:
                taken.add(unit.id)
                units.append(unit)
    unit_tuple = tuple(units)
    pods = _migrate_pods(raw.get("pods"), unit_tuple, base.pods if unit_entries is None else ())

    core_raw = _obj(raw.get("hiveCore"))
    core = HiveCore(
        health=_num(core_raw.get("health"), base.hive_core.health, lo=0.0),
        capacity=_num(core_raw.get("capacity"), base.hive_core.capacity, lo=0.0),
        digestion_rate=_num(core_raw.get("digestionRate"), base.hive_core.digestion_rate, lo=0.0),
        conversion_efficiency=_num(
            core_raw.get("conversionEfficiency"), base.hive_core.conversion_efficiency, lo=0.0
        ),
        heat=_num(core_raw.get("heat"), base.hive_core.heat, lo=0.0),
    )

    terr_raw = _obj(raw.get("territory"))
    controlled = _num(terr_raw.get("controlled"), base.territory.controlled, lo=0.0)
    mapped = max(controlled, _num(terr_raw.get("mapped"), base.territory.mapped, lo=0.0))

    threats_raw = _obj(raw.get("threats"))
    threats = Threats(
        level=_num(threats_raw.get("level"), 0.0, lo=0.0, hi=100.0),
        discovered=_bool(threats_raw.get("discovered"), False),
        hostility=_num(threats_raw.get("hostility"), base.threats.hostility, lo=0.0, hi=100.0),
    )

    policies_raw = _obj(raw.get("policies"))
    defaults = Policies()
    policy_values = {}
    for camel, attr in POLICY_FIELDS.items():
        value = policies_raw.get(camel, policies_raw.get(attr))
        policy_values[attr] = value if value in POLICY_CHOICES[attr] else getattr(defaults, attr)

    unlocked_raw = _obj(raw.get("unlocked"))
    unlocked = {key: _bool(unlocked_raw.get(key), False) for key in UNLOCK_KEYS}
    for key, value in unlocked_raw.items():
        if isinstance(key, str) and key not in unlocked and isinstance(value, bool):
            unlocked[key] = value

    diff_raw = _obj(raw.get("difficulty"))
    difficulty = DifficultyModifier(
        heat_multiplier=_num(diff_raw.get("heatMultiplier"), 1.0, lo=1.0),
        resource_cost_multiplier=_num(diff_raw.get("resourceCostMultiplier"), 1.0, lo=1.0),
        dilemma_frequency=_num(diff_raw.get("dilemmaFrequency"), 0.0, lo=0.0, hi=1.0),
        native_life_hostility=_bool(diff_raw.get("nativeLifeHostility"), False),
    )

    asc_raw = _obj(raw.get("ascension"))
    worlds = _migrate_records(
        asc_raw.get("worldsSeeded"),
        (),
        lambda w: SeededWorld(name=_str(w.get("name"), "unknown"), cycle=_int(w.get("cycle"), 1, lo=1)),
    )
    ascension = Ascension(
        seeds_launched=max(len(worlds), _int(asc_raw.get("seedsLaunched"), 0, lo=0)),
        worlds_seeded=worlds,
    )

    return ColonyState(
        cycle=_int(raw.get("cycle"), base.cycle, lo=1),
        phase=_enum(Phase, raw.get("phase"), Phase.MECHANICAL),
        heat=_num(raw.get("heat"), base.heat, lo=0.0),
        biomass=_num(raw.get("biomass"), base.biomass, lo=0.0),
        minerals=_num(raw.get("minerals"), base.minerals, lo=0.0),
        data=_num(raw.get("data"), base.data, lo=0.0),
        energy=_num(raw.get("energy"), base.energy, lo=0.0),
        units=unit_tuple,
        pods=pods,
        hive_core=core,
        territory=Territory(mapped=mapped, controlled=controlled),
        threats=threats,
        policies=Policies(**policy_values),
        unlocked=unlocked,
        ethical_questions=_migrate_records(
            raw.get("ethicalQuestions"),
            (),
            lambda q: EthicalRecord(
                cycle=_int(q.get("cycle"), 1, lo=1),
                dilemma=_str(q.get("dilemma"), "unknown"),
                title=_str(q.get("title"), ""),
                choice=_str(q.get("choice"), ""),
                choice_label=_str(q.get("choiceLabel"), ""),
                weight=_str(q.get("weight"), "other"),
                reflection=_str(q.get("reflection"), ""),
            ),
        ),
        reflections=_migrate_records(
            raw.get("reflections"),
            (),
            lambda r: Reflection(cycle=_int(r.get("cycle"), 1, lo=1), thought=_str(r.get("thought"), "")),
        ),
        history=_migrate_records(
            raw.get("history"),
            (),
            lambda h: HistoryEntry(
                cycle=_int(h.get("cycle"), 1, lo=1),
                event=_str(h.get("event"), "unknown"),
                description=_str(h.get("description"), ""),
            ),
        ),
        last_cycle=_migrate_last_cycle(raw.get("lastCycle")),
        difficulty=difficulty,
        extinction_events=_int(raw.get("extinctionEvents"), 0, lo=0),
        native_life_encountered=_bool(raw.get("nativeLifeEncountered"), False),
        native_life_decision=_opt_str(raw.get("nativeLifeDecision")),
        ascension=ascension,
        unit_serial=max(len(unit_tuple), _int(raw.get("unitSerial"), len(unit_tuple), lo=0)),
        completed_runs=_int(raw.get("completedRuns"), 0, lo=0),
    )


__all__ = [
    "SNAPSHOT_SCHEMA_VERSION",
    "canonical_dumps",
    "migrate_loaded_state",
    "state_signature",
    "state_to_dict",
]
