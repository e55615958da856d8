"""Injected random source for dilemma gates.

Every draw comes from a throwaway ``random.Random`` seeded from
``sha256(salt|seed|stream|scope|draw_index)``.  Two services built with the
same seed and asked the same questions in the same order give the same
answers, and asking a different stream never disturbs another one.
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Dict, Mapping, Sequence, TypeVar

T = TypeVar("T")


def _canonical_scope(scope: Mapping[str, object] | None) -> str:
    if not scope:
        return "{}"
    return json.dumps({str(k): v for k, v in scope.items()}, sort_keys=True, separators=(",", ":"))


@dataclass(slots=True)
class RNGConfig:
    salt: str = "seedhive-rng-v1"


@dataclass
class RNGService:
    seed: int = 0
    config: RNGConfig = field(default_factory=RNGConfig)
    counters: Dict[str, int] = field(default_factory=dict)

    def _stream_id(self, stream_key: str, scope_json: str) -> str:
        return sha256(f"{self.config.salt}|{self.seed}|{stream_key}|{scope_json}".encode()).hexdigest()[:16]

    def _derive(self, stream_key: str, scope: Mapping[str, object] | None) -> random.Random:
        scope_json = _canonical_scope(scope)
        stream_id = self._stream_id(stream_key, scope_json)
        draw_index = self.counters.get(stream_id, 0)
        self.counters[stream_id] = draw_index + 1
        blob = f"{self.config.salt}|{self.seed}|{stream_key}|{scope_json}|{draw_index}"
        return random.Random(int.from_bytes(sha256(blob.encode()).digest()[:8], "big"))

    def stream(self, stream_key: str, *, scope: Mapping[str, object] | None = None) -> random.Random:
        return self._derive(stream_key, scope)

    def rand(self, stream_key: str, *, scope: Mapping[str, object] | None = None) -> float:
        return self._derive(stream_key, scope).random()

    def choice(self, stream_key: str, seq: Sequence[T], *, scope: Mapping[str, object] | None = None) -> T:
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        rng = self._derive(stream_key, scope)
        return seq[rng.randrange(len(seq))]

    def signature(self) -> str:
        payload = json.dumps(sorted(self.counters.items()), separators=(",", ":"))
        return sha256(payload.encode()).hexdigest()[:16]


class FixedRandom:
    """Random source that replays a fixed value for every draw; test helper."""

    def __init__(self, value: float) -> None:
        self.value = float(value)
        self.calls: list[str] = []

    def rand(self, stream_key: str, *, scope: Mapping[str, object] | None = None) -> float:
        self.calls.append(stream_key)
        return self.value


__all__ = ["FixedRandom", "RNGConfig", "RNGService"]
