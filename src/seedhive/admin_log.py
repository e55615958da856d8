"""Bounded in-process log for a play session.

Command replies, interpreter artifacts, narrator replies and narrator
failures are recorded here as small tagged entries so a front end (or a test)
can show "what just happened" without reaching into the colony state.  The
log is a ring buffer; the oldest entries fall off once ``capacity`` is hit.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Iterable, List, Mapping, MutableMapping, Optional


@dataclass(slots=True)
class SessionEvent:
    cycle: int
    kind: str
    text: str
    payload: MutableMapping[str, Any] = field(default_factory=dict)

    def summary(self) -> str:
        return f"[{self.cycle:>4}] {self.kind}: {self.text}"


class SessionLog:
    """Fixed-size event history for one session."""

    def __init__(self, capacity: int = 500) -> None:
        self.capacity = max(1, capacity)
        self._events: Deque[SessionEvent] = deque(maxlen=self.capacity)

    def record(
        self,
        *,
        cycle: int,
        kind: str,
        text: str,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> SessionEvent:
        event = SessionEvent(cycle=cycle, kind=kind, text=text, payload=dict(payload or {}))
        self._events.append(event)
        return event

    def get_recent(self, *, kind: Optional[str] = None, limit: int = 50) -> List[SessionEvent]:
        """Newest first, optionally filtered by ``kind``."""

        matches: List[SessionEvent] = []
        for event in reversed(self._events):
            if kind is not None and event.kind != kind:
                continue
            matches.append(event)
            if len(matches) >= limit:
                break
        return matches

    def iter_all(self) -> Iterable[SessionEvent]:
        return iter(self._events)

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)


__all__ = ["SessionEvent", "SessionLog"]
