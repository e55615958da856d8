"""Contract with the remote narrator.

The narrator only decorates.  It receives the raw directive plus a read-only
context and may answer with a suggestion of small numeric deltas; those are
untrusted, filtered here, and applied through the same clamped mutation path
as everything else.  Transport lives outside this package.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from math import isfinite
from typing import Any, Dict, Mapping, Optional, Protocol

from seedhive.runtime.rates import calculate_total_heat, is_heat_critical
from seedhive.state import POLICY_FIELDS, ColonyState


# Largest single-reply nudge to any resource.
MAX_ACTION_DELTA = 250.0


class NarratorUnavailable(RuntimeError):
    """Transport-level failure talking to the narrator."""


class Narrator(Protocol):
    def narrate(self, message: str, context: Mapping[str, Any]) -> Mapping[str, Any]:
        ...


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    if not isfinite(value):
        return None
    return max(-MAX_ACTION_DELTA, min(MAX_ACTION_DELTA, value))


@dataclass(frozen=True, slots=True)
class NarratorActions:
    heat_change: float = 0.0
    biomass_change: float = 0.0
    minerals_change: float = 0.0
    data_change: float = 0.0
    action: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["NarratorActions"]:
        if not isinstance(payload, Mapping):
            return None
        action = payload.get("action")
        return cls(
            heat_change=_number(payload.get("heatChange")) or 0.0,
            biomass_change=_number(payload.get("biomassChange")) or 0.0,
            minerals_change=_number(payload.get("mineralsChange")) or 0.0,
            data_change=_number(payload.get("dataChange")) or 0.0,
            action=action if isinstance(action, str) and action else None,
        )

    @property
    def is_empty(self) -> bool:
        return (
            self.action is None
            and not self.heat_change
            and not self.biomass_change
            and not self.minerals_change
            and not self.data_change
        )


@dataclass(frozen=True, slots=True)
class NarratorReply:
    response: str
    actions: Optional[NarratorActions] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "NarratorReply":
        if not isinstance(payload, Mapping):
            raise ValueError("narrator payload must be a JSON object")
        response = payload.get("response")
        if not isinstance(response, str):
            raise ValueError("narrator payload is missing a text response")
        return cls(response=response, actions=NarratorActions.from_payload(payload.get("actions")))


def build_narrator_context(state: ColonyState) -> Dict[str, Any]:
    policies = {camel: getattr(state.policies, attr) for camel, attr in POLICY_FIELDS.items()}
    return {
        "heat": round(calculate_total_heat(state), 2),
        "biomass": round(state.biomass, 2),
        "minerals": round(state.minerals, 2),
        "data": round(state.data, 2),
        "energy": round(state.energy, 2),
        "cycle": state.cycle,
        "phase": state.phase.value,
        "activeUnits": len(state.active_units()),
        "totalUnits": len(state.units),
        "heatCritical": is_heat_critical(state),
        "unlocked": dict(state.unlocked),
        "policies": policies,
        "threat": round(state.threats.level, 2),
    }


def apply_narrator_actions(state: ColonyState, actions: Optional[NarratorActions]) -> ColonyState:
    if actions is None or actions.is_empty:
        return state
    state = replace(
        state,
        heat=max(0.0, state.heat + actions.heat_change),
        biomass=max(0.0, state.biomass + actions.biomass_change),
        minerals=max(0.0, state.minerals + actions.minerals_change),
        data=max(0.0, state.data + actions.data_change),
    )
    label = actions.action or "adjustment"
    return state.with_history(
        "narrator_action",
        f"Directive interpreted as {label}: heat {actions.heat_change:+.0f}, biomass {actions.biomass_change:+.0f}.",
    )


__all__ = [
    "MAX_ACTION_DELTA",
    "Narrator",
    "NarratorActions",
    "NarratorReply",
    "NarratorUnavailable",
    "apply_narrator_actions",
    "build_narrator_context",
]
