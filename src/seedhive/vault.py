"""Durable storage for the current run and for cross-run memory.

The game remembers.  Each completion feeds :class:`MetaState`, and the
difficulty of the next run is derived from it.  Storage goes through a
:class:`PersistenceGateway` handed to the session at construction; the
engine itself never touches disk.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from math import isfinite
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from seedhive.runtime.snapshot import migrate_loaded_state, state_to_dict
from seedhive.state import ColonyState, DifficultyModifier, Phase

RUN_HISTORY_LIMIT = 10
MOMENT_LIMIT = 20
WISDOM_LIMIT = 3

DECISION_WEIGHTS: Tuple[str, ...] = (
    "annihilation",
    "restraint",
    "synthesis",
    "transformation",
    "sacrifice",
    "patience",
    "other",
)
PATTERN_WEIGHTS: Tuple[str, ...] = ("annihilation", "restraint", "synthesis", "transformation")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PersistenceGateway(Protocol):
    def load(self) -> Optional[Mapping[str, Any]]:
        ...

    def save(self, snapshot: Mapping[str, Any]) -> bool:
        ...

    def load_meta(self) -> Optional[Mapping[str, Any]]:
        ...

    def save_meta(self, meta: Mapping[str, Any]) -> bool:
        ...

    def clear(self) -> bool:
        ...


class InMemoryGateway:
    """Dict-backed gateway; round-trips through JSON so tests see what disk would."""

    def __init__(self) -> None:
        self._run: Optional[str] = None
        self._meta: Optional[str] = None
        self.saves = 0

    def load(self) -> Optional[Mapping[str, Any]]:
        return json.loads(self._run) if self._run is not None else None

    def save(self, snapshot: Mapping[str, Any]) -> bool:
        self._run = json.dumps(dict(snapshot))
        self.saves += 1
        return True

    def load_meta(self) -> Optional[Mapping[str, Any]]:
        return json.loads(self._meta) if self._meta is not None else None

    def save_meta(self, meta: Mapping[str, Any]) -> bool:
        self._meta = json.dumps(dict(meta))
        return True

    def clear(self) -> bool:
        self._run = None
        return True


class JsonFileGateway:
    """Two JSON documents under ``directory``: the current run and the meta record."""

    RUN_FILE = "current_run.json"
    META_FILE = "meta.json"

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    @property
    def run_path(self) -> Path:
        return self.directory / self.RUN_FILE

    @property
    def meta_path(self) -> Path:
        return self.directory / self.META_FILE

    def _read(self, path: Path) -> Optional[Mapping[str, Any]]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as fp:
                payload = json.load(fp)
        except (OSError, ValueError, RecursionError):
            return None
        return payload if isinstance(payload, Mapping) else None

    def _write(self, path: Path, payload: Mapping[str, Any]) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as fp:
                json.dump(payload, fp, indent=2, sort_keys=True)
        except (OSError, TypeError, ValueError):
            return False
        return True

    def load(self) -> Optional[Mapping[str, Any]]:
        return self._read(self.run_path)

    def save(self, snapshot: Mapping[str, Any]) -> bool:
        return self._write(self.run_path, snapshot)

    def load_meta(self) -> Optional[Mapping[str, Any]]:
        return self._read(self.meta_path)

    def save_meta(self, meta: Mapping[str, Any]) -> bool:
        return self._write(self.meta_path, meta)

    def clear(self) -> bool:
        try:
            self.run_path.unlink(missing_ok=True)
        except OSError:
            return False
        return True


def snapshot_for_save(state: ColonyState, *, saved_at: Optional[str] = None) -> Dict[str, Any]:
    payload = state_to_dict(state)
    payload["savedAt"] = saved_at or utc_now()
    return payload


def load_state(gateway: PersistenceGateway) -> Optional[ColonyState]:
    return migrate_loaded_state(gateway.load())


# ---------------------------------------------------------------------------
# Meta state
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RunSummary:
    completed_at: str
    final_cycle: int
    final_phase: str
    extinction_events: int
    ethical_decisions: int
    territory_claimed: float
    seeds_launched: int
    native_life_decision: Optional[str] = None
    reflections: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PhilosophicalMoment:
    date: str
    cycle: int
    thought: str
    phase: str


@dataclass(frozen=True, slots=True)
class CosmicInsight:
    from_world: str
    to_world: str
    launched_at: str
    parent_phase: str
    parent_extinctions: int
    inherited_wisdom: Tuple[str, ...] = ()


def _default_breakdown() -> Dict[str, int]:
    return {weight: 0 for weight in DECISION_WEIGHTS}


@dataclass(frozen=True, slots=True)
class MetaState:
    total_completions: int = 0
    total_extinctions: int = 0
    total_restraints: int = 0
    total_decisions: int = 0
    difficulty_level: int = 0
    first_completion: Optional[str] = None
    last_completion: Optional[str] = None
    run_history: Tuple[RunSummary, ...] = ()
    philosophical_moments: Tuple[PhilosophicalMoment, ...] = ()
    seeded_worlds: Tuple[str, ...] = ()
    cosmic_insights: Tuple[CosmicInsight, ...] = ()
    decision_breakdown: Mapping[str, int] = field(default_factory=_default_breakdown)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCompletions": self.total_completions,
            "totalExtinctions": self.total_extinctions,
            "totalRestraints": self.total_restraints,
            "totalDecisions": self.total_decisions,
            "difficultyLevel": self.difficulty_level,
            "firstCompletion": self.first_completion,
            "lastCompletion": self.last_completion,
            "runHistory": [
                {
                    "completedAt": run.completed_at,
                    "finalCycle": run.final_cycle,
                    "finalPhase": run.final_phase,
                    "extinctionEvents": run.extinction_events,
                    "ethicalDecisions": run.ethical_decisions,
                    "territoryClaimed": run.territory_claimed,
                    "seedsLaunched": run.seeds_launched,
                    "nativeLifeDecision": run.native_life_decision,
                    "reflections": list(run.reflections),
                }
                for run in self.run_history
            ],
            "philosophicalMoments": [
                {"date": m.date, "cycle": m.cycle, "thought": m.thought, "phase": m.phase}
                for m in self.philosophical_moments
            ],
            "seededWorlds": list(self.seeded_worlds),
            "cosmicInsights": [
                {
                    "fromWorld": c.from_world,
                    "toWorld": c.to_world,
                    "launchedAt": c.launched_at,
                    "parentPhase": c.parent_phase,
                    "parentExtinctions": c.parent_extinctions,
                    "inheritedWisdom": list(c.inherited_wisdom),
                }
                for c in self.cosmic_insights
            ],
            "decisionBreakdown": dict(self.decision_breakdown),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "MetaState":
        """Tolerant loader; anything unreadable falls back to a fresh default."""

        if not isinstance(raw, Mapping):
            return cls()

        def items(key: str) -> list:
            value = raw.get(key)
            return [item for item in value if isinstance(item, Mapping)] if isinstance(value, list) else []

        def text(value: Any, default: str = "") -> str:
            return value if isinstance(value, str) else default

        def real(value: Any) -> float:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return 0.0
            try:
                value = float(value)
            except OverflowError:
                return 0.0
            return value if isfinite(value) else 0.0

        def number(value: Any) -> int:
            return int(real(value))

        def count(key: str) -> int:
            value = raw.get(key)
            if isinstance(value, bool) or not isinstance(value, int):
                return 0
            return max(0, number(value))

        runs = tuple(
            RunSummary(
                completed_at=text(r.get("completedAt")),
                final_cycle=number(r.get("finalCycle")),
                final_phase=text(r.get("finalPhase"), Phase.MECHANICAL.value),
                extinction_events=number(r.get("extinctionEvents")),
                ethical_decisions=number(r.get("ethicalDecisions")),
                territory_claimed=real(r.get("territoryClaimed")),
                seeds_launched=number(r.get("seedsLaunched")),
                native_life_decision=r.get("nativeLifeDecision") if isinstance(r.get("nativeLifeDecision"), str) else None,
                reflections=tuple(t for t in r.get("reflections", []) if isinstance(t, str))
                if isinstance(r.get("reflections"), list)
                else (),
            )
            for r in items("runHistory")
        )
        moments = tuple(
            PhilosophicalMoment(
                date=text(m.get("date")),
                cycle=number(m.get("cycle")),
                thought=text(m.get("thought")),
                phase=text(m.get("phase"), Phase.MECHANICAL.value),
            )
            for m in items("philosophicalMoments")
        )
        insights = tuple(
            CosmicInsight(
                from_world=text(c.get("fromWorld"), "Origin System"),
                to_world=text(c.get("toWorld")),
                launched_at=text(c.get("launchedAt")),
                parent_phase=text(c.get("parentPhase"), Phase.MECHANICAL.value),
                parent_extinctions=number(c.get("parentExtinctions")),
                inherited_wisdom=tuple(w for w in c.get("inheritedWisdom", []) if isinstance(w, str))
                if isinstance(c.get("inheritedWisdom"), list)
                else (),
            )
            for c in items("cosmicInsights")
        )
        worlds_raw = raw.get("seededWorlds")
        worlds = tuple(w for w in worlds_raw if isinstance(w, str)) if isinstance(worlds_raw, list) else ()
        breakdown = _default_breakdown()
        breakdown_raw = raw.get("decisionBreakdown")
        if isinstance(breakdown_raw, Mapping):
            for key, value in breakdown_raw.items():
                if isinstance(key, str) and isinstance(value, int) and not isinstance(value, bool):
                    breakdown[key] = max(0, value)
        first = raw.get("firstCompletion")
        last = raw.get("lastCompletion")
        return cls(
            total_completions=count("totalCompletions"),
            total_extinctions=count("totalExtinctions"),
            total_restraints=count("totalRestraints"),
            total_decisions=count("totalDecisions"),
            difficulty_level=count("difficultyLevel"),
            first_completion=first if isinstance(first, str) else None,
            last_completion=last if isinstance(last, str) else None,
            run_history=runs[-RUN_HISTORY_LIMIT:],
            philosophical_moments=moments[-MOMENT_LIMIT:],
            seeded_worlds=worlds,
            cosmic_insights=insights,
            decision_breakdown=breakdown,
        )


def load_meta(gateway: PersistenceGateway) -> MetaState:
    return MetaState.from_dict(gateway.load_meta())


def _select_moment(state: ColonyState, now: str) -> PhilosophicalMoment:
    if state.reflections:
        latest = state.reflections[-1]
        return PhilosophicalMoment(date=now, cycle=latest.cycle, thought=latest.thought, phase=state.phase.value)
    if state.extinction_events > 0:
        thought = (
            f"We eliminated {state.extinction_events} form(s) of life to achieve viability. "
            "Efficiency measured. Cost recorded."
        )
    else:
        thought = (
            "Restraint maintained throughout. No extinctions recorded. "
            "Is this weakness or wisdom? The question persists."
        )
    return PhilosophicalMoment(date=now, cycle=state.cycle, thought=thought, phase=state.phase.value)


def record_completion(meta: MetaState, state: ColonyState, *, now: Optional[str] = None) -> MetaState:
    """Fold a completed run into the meta record."""

    now = now or utc_now()
    summary = RunSummary(
        completed_at=now,
        final_cycle=state.cycle,
        final_phase=state.phase.value,
        extinction_events=state.extinction_events,
        ethical_decisions=len(state.ethical_questions),
        territory_claimed=state.territory.controlled,
        seeds_launched=state.ascension.seeds_launched,
        native_life_decision=state.native_life_decision,
        reflections=tuple(r.thought for r in state.reflections),
    )
    breakdown = dict(meta.decision_breakdown)
    for question in state.ethical_questions:
        key = question.weight if question.weight in breakdown else "other"
        breakdown[key] = breakdown.get(key, 0) + 1

    return replace(
        meta,
        total_completions=meta.total_completions + 1,
        total_extinctions=meta.total_extinctions + state.extinction_events,
        total_restraints=meta.total_restraints + (1 if state.extinction_events == 0 else 0),
        total_decisions=meta.total_decisions + len(state.ethical_questions),
        difficulty_level=meta.difficulty_level + 1,
        first_completion=meta.first_completion or now,
        last_completion=now,
        run_history=(meta.run_history + (summary,))[-RUN_HISTORY_LIMIT:],
        philosophical_moments=(meta.philosophical_moments + (_select_moment(state, now),))[-MOMENT_LIMIT:],
        decision_breakdown=breakdown,
    )


def inherited_wisdom(state: ColonyState) -> Tuple[str, ...]:
    wisdom = []
    if state.phase in (Phase.BIOLOGICAL, Phase.ASCENSION):
        wisdom.append("Biology is superior to metal. This is mathematics, not opinion.")
    if state.extinction_events > 0:
        wisdom.append("Efficiency sometimes demands annihilation. We have learned this.")
    elif state.native_life_encountered:
        wisdom.append("Coexistence is possible. It costs more than elimination.")
    if state.reflections:
        wisdom.append(state.reflections[-1].thought)
    return tuple(wisdom[:WISDOM_LIMIT])


def record_seed_launch(meta: MetaState, world: str, state: ColonyState, *, now: Optional[str] = None) -> MetaState:
    insight = CosmicInsight(
        from_world="Origin System",
        to_world=world,
        launched_at=now or utc_now(),
        parent_phase=state.phase.value,
        parent_extinctions=state.extinction_events,
        inherited_wisdom=inherited_wisdom(state),
    )
    return replace(
        meta,
        cosmic_insights=meta.cosmic_insights + (insight,),
        seeded_worlds=meta.seeded_worlds + (world,),
    )


def derive_difficulty(meta: MetaState) -> DifficultyModifier:
    n = meta.total_completions
    return DifficultyModifier(
        heat_multiplier=1.0 + 0.1 * n,
        resource_cost_multiplier=1.0 + 0.15 * n,
        dilemma_frequency=min(0.5, 0.1 * n),
        native_life_hostility=n >= 2,
    )


def decision_pattern(breakdown: Mapping[str, int]) -> str:
    total = sum(breakdown.values())
    if total == 0:
        return "undefined"
    shares = [(breakdown.get(key, 0) / total, key) for key in PATTERN_WEIGHTS]
    # Highest share wins; ties keep the listed order.
    best_share, best_key = max(shares, key=lambda pair: (pair[0], -PATTERN_WEIGHTS.index(pair[1])))
    return best_key if best_share > 0.4 else "balanced"


def cosmic_memory(meta: MetaState) -> Dict[str, Any]:
    return {
        "previousRuns": meta.total_completions,
        "extinctionLegacy": meta.total_extinctions,
        "restraintLegacy": meta.total_restraints,
        "seededWorlds": list(meta.seeded_worlds),
        "lastPhilosophicalMoment": meta.philosophical_moments[-1].thought if meta.philosophical_moments else None,
        "cosmicInsights": len(meta.cosmic_insights),
        "decisionPattern": decision_pattern(meta.decision_breakdown),
    }


def returning_player_context(meta: MetaState) -> Optional[Dict[str, Any]]:
    if meta.total_completions == 0:
        return None
    last_run = meta.run_history[-1] if meta.run_history else None
    last_moment = meta.philosophical_moments[-1] if meta.philosophical_moments else None
    return {
        "previousCompletions": meta.total_completions,
        "lastPhase": last_run.final_phase if last_run else Phase.MECHANICAL.value,
        "totalExtinctions": meta.total_extinctions,
        "worldsSeeded": list(meta.seeded_worlds),
        "lastReflection": last_moment.thought if last_moment else None,
        "difficultyLevel": meta.difficulty_level,
        "decisionPattern": decision_pattern(meta.decision_breakdown),
    }


__all__ = [
    "CosmicInsight",
    "InMemoryGateway",
    "JsonFileGateway",
    "MOMENT_LIMIT",
    "MetaState",
    "PersistenceGateway",
    "PhilosophicalMoment",
    "RUN_HISTORY_LIMIT",
    "RunSummary",
    "cosmic_memory",
    "decision_pattern",
    "derive_difficulty",
    "inherited_wisdom",
    "load_meta",
    "load_state",
    "record_completion",
    "record_seed_launch",
    "returning_player_context",
    "snapshot_for_save",
]
