"""Offline directive grammar.

The interpreter is always tried before the narrator.  Recognised directives
mutate the colony through the same pure entry points the rest of the engine
uses; anything else comes back with ``handled=False`` and the input state so
the caller can fall through to narration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from seedhive.runtime.construction import add_unit, can_launch_seed, choose_unit_type, launch_seed, update_policy
from seedhive.runtime.cycle import CycleConfig, process_cycles
from seedhive.runtime.rates import calculate_total_heat
from seedhive.runtime.scheduler import sync_pods
from seedhive.state import Activity, ColonyState, UnitRole

MAX_ADVANCE = 25

HELP_TEXT = "\n".join(
    [
        "Recognized directives:",
        '- "advance cycle" / "next cycle" / "wait" / "advance 3 cycles"',
        '- "status report"',
        '- "prioritize stability" | "prioritize performance"',
        '- "sensory acuity low|standard|high" | "increase acuity" | "reduce acuity"',
        '- "reproduction conservative|aggressive"',
        '- "design sensor|worker|defender|digester"',
        '- "cooldown" / "hibernate"',
        '- "launch seed to <world>"',
    ]
)

_ADVANCE_RE = re.compile(r"\b(?:advance|next|wait)\b(?:\s+(\d+))?(?:\s*cycles?\b)?")
_DESIGN_RE = re.compile(r"\b(?:design|spawn|build)\s+(sensor|worker|defender|digester)s?\b")
_LAUNCH_RE = re.compile(r"\blaunch\s+(?:a\s+)?seed(?:\s+to)?\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class CommandLog:
    kind: str
    text: str


@dataclass(frozen=True, slots=True)
class CommandResult:
    handled: bool
    new_state: ColonyState
    reply: str = ""
    logs: Tuple[CommandLog, ...] = ()


def normalize(text: Optional[str]) -> str:
    return (text or "").lower().strip()


def status_line(state: ColonyState) -> str:
    active = len(state.active_units())
    return (
        f"Cycle {state.cycle} | {state.phase.value.upper()} | thermal load {calculate_total_heat(state):.0f}% | "
        f"biomass {state.biomass:.0f} | minerals {state.minerals:.0f} | data {state.data:.0f} | "
        f"energy {state.energy:.0f} | units {active}/{len(state.units)} active | "
        f"territory {state.territory.controlled:.0f}/{state.territory.mapped:.0f} | threat {state.threats.level:.0f}"
    )


def set_rotatable_activity(state: ColonyState, activity: Activity) -> ColonyState:
    units = tuple(unit if unit.is_digester else replace(unit, activity=activity) for unit in state.units)
    pods = sync_pods(state.pods, units, state.policies, cycle=state.cycle)
    return replace(state, units=units, pods=pods)


def _acuity_mode(text: str) -> Optional[str]:
    if "sensory acuity" in text:
        for mode in ("high", "low", "standard"):
            if mode in text:
                return mode
    if "increase acuity" in text or "boost sensors" in text:
        return "high"
    if "reduce acuity" in text or "lower acuity" in text:
        return "low"
    return None


def interpret_command(raw: Optional[str], state: ColonyState, *, cfg: CycleConfig | None = None) -> CommandResult:
    text = normalize(raw)
    if not text:
        return CommandResult(handled=False, new_state=state)

    if text in ("help", "?") or "what can i do" in text:
        return CommandResult(handled=True, new_state=state, reply=HELP_TEXT)

    if text in ("status", "status report") or "system report" in text:
        return CommandResult(
            handled=True,
            new_state=state,
            reply="Status report appended to system log.",
            logs=(CommandLog(kind="system", text=status_line(state)),),
        )

    launch = _LAUNCH_RE.search((raw or "").strip())
    if launch:
        world = launch.group(1).strip()
        if not can_launch_seed(state):
            return CommandResult(
                handled=True,
                new_state=state,
                reply="Seed launch unavailable. Requires interstellar seeding and 1000 biomass, "
                "500 minerals, 200 energy, 300 data.",
            )
        return CommandResult(
            handled=True,
            new_state=launch_seed(state, world),
            reply=f"Seed launched toward {world}. A part of us travels on.",
        )

    advance = _ADVANCE_RE.search(text)
    if advance:
        count = max(1, min(MAX_ADVANCE, int(advance.group(1) or 1)))
        next_state = process_cycles(state, count, cfg=cfg)
        heat = calculate_total_heat(next_state)
        return CommandResult(
            handled=True,
            new_state=next_state,
            reply=f"Cycle advanced x{count}. Thermal load now {heat:.0f}%.",
        )

    if "prioritize stability" in text or "thermal stability" in text:
        return CommandResult(
            handled=True,
            new_state=update_policy(state, "thermalPriority", "stability"),
            reply="Policy set: Thermal Priority = stability.",
        )
    if "prioritize performance" in text or "max performance" in text or "thermal performance" in text:
        return CommandResult(
            handled=True,
            new_state=update_policy(state, "thermalPriority", "performance"),
            reply="Policy set: Thermal Priority = performance.",
        )

    acuity = _acuity_mode(text)
    if acuity:
        return CommandResult(
            handled=True,
            new_state=update_policy(state, "sensoryAcuity", acuity),
            reply=f"Policy set: Sensory Acuity = {acuity}.",
        )

    if "reproduction" in text:
        mode = "aggressive" if "aggressive" in text else "conservative" if "conservative" in text else None
        if mode:
            return CommandResult(
                handled=True,
                new_state=update_policy(state, "reproductionMode", mode),
                reply=f"Policy set: Reproduction Mode = {mode}.",
            )

    design = _DESIGN_RE.search(text)
    if design:
        role = UnitRole(design.group(1))
        unit_type = choose_unit_type(state)
        next_state = add_unit(state, role, unit_type)
        if next_state is state:
            reply = f"Insufficient resources to instantiate {unit_type.value} {role.value}. (Need biomass + minerals.)"
        else:
            reply = f"Role instantiated: {unit_type.value.upper()} {role.value.upper()} unit."
        return CommandResult(handled=True, new_state=next_state, reply=reply)

    if "cooldown" in text or "hibernate" in text or "power down" in text:
        hibernate = "hibernate" in text
        activity = Activity.HIBERNATING if hibernate else Activity.STANDBY
        next_state = set_rotatable_activity(state, activity)
        next_state = replace(next_state, heat=max(0.0, next_state.heat - (12.0 if hibernate else 6.0)))
        reply = (
            "Directive accepted: pods entering hibernation. Sensory continuity reduced."
            if hibernate
            else "Directive accepted: pods entering standby. Thermal load will decline."
        )
        return CommandResult(handled=True, new_state=next_state, reply=reply)

    return CommandResult(handled=False, new_state=state)


__all__ = [
    "CommandLog",
    "CommandResult",
    "HELP_TEXT",
    "MAX_ADVANCE",
    "interpret_command",
    "normalize",
    "set_rotatable_activity",
    "status_line",
]
