"""Top-level composition of a play session.

``GameSession`` owns the only mutable references in the package: the current
colony value, the pending dilemma and the cross-run meta record.  Everything
it calls is a pure ``(state, args) -> state`` function.  After each
successful mutation it saves through the injected gateway, and a failed save
never rolls the state back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from seedhive.admin_log import SessionLog
from seedhive.runtime.commands import interpret_command
from seedhive.runtime.cycle import CycleConfig, process_cycle
from seedhive.runtime.dilemmas import Dilemma, DilemmaConfig, RandomSource, apply_dilemma_choice, next_dilemma
from seedhive.runtime.narrator import (
    Narrator,
    NarratorReply,
    NarratorUnavailable,
    apply_narrator_actions,
    build_narrator_context,
)
from seedhive.runtime.rng_service import RNGService
from seedhive.state import ColonyState, Phase, create_initial_state
from seedhive.vault import (
    InMemoryGateway,
    MetaState,
    PersistenceGateway,
    derive_difficulty,
    load_meta,
    load_state,
    record_completion,
    record_seed_launch,
    returning_player_context,
    snapshot_for_save,
    utc_now,
)


@dataclass(frozen=True, slots=True)
class SubmitResult:
    source: str
    reply: str
    state: ColonyState

    @property
    def handled(self) -> bool:
        return self.source != "none"


class GameSession:
    def __init__(
        self,
        gateway: Optional[PersistenceGateway] = None,
        *,
        narrator: Optional[Narrator] = None,
        rng: Optional[RandomSource] = None,
        seed: int = 0,
        cycle_cfg: Optional[CycleConfig] = None,
        dilemma_cfg: Optional[DilemmaConfig] = None,
        clock: Callable[[], str] = utc_now,
        log_capacity: int = 500,
    ) -> None:
        self.gateway: PersistenceGateway = gateway if gateway is not None else InMemoryGateway()
        self.narrator = narrator
        self.rng: RandomSource = rng if rng is not None else RNGService(seed=seed)
        self.cycle_cfg = cycle_cfg
        self.dilemma_cfg = dilemma_cfg
        self.clock = clock
        self.log = SessionLog(capacity=log_capacity)
        self.meta: MetaState = load_meta(self.gateway)
        self._state: Optional[ColonyState] = None
        self._pending: Optional[Dilemma] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def state(self) -> ColonyState:
        if self._state is None:
            return self.start()
        return self._state

    @property
    def pending_dilemma(self) -> Optional[Dilemma]:
        return self._pending

    def start(self) -> ColonyState:
        """Resume the saved run if one loads, otherwise land a new seed."""

        loaded = load_state(self.gateway)
        if loaded is None:
            return self.new_run()
        self._state = loaded
        self._pending = None
        self.log.record(cycle=loaded.cycle, kind="session", text=f"Run resumed at cycle {loaded.cycle}.")
        return loaded

    def new_run(self) -> ColonyState:
        difficulty = derive_difficulty(self.meta)
        state = create_initial_state(difficulty, completed_runs=self.meta.total_completions)
        self._pending = None
        self.gateway.clear()
        context = returning_player_context(self.meta)
        if context is not None:
            self.log.record(
                cycle=state.cycle,
                kind="session",
                text=f"Returning intelligence. Prior completions: {context['previousCompletions']}.",
                payload=context,
            )
        self._commit(state, state)
        return state

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def advance(self, count: int = 1) -> ColonyState:
        state = self.state
        for _ in range(max(1, int(count))):
            before = state
            state = process_cycle(state, cfg=self.cycle_cfg)
            self._commit(before, state)
            self._poll_dilemma()
        return state

    def submit(self, text: str) -> SubmitResult:
        """Try the offline grammar first; fall through to the narrator."""

        before = self.state
        result = interpret_command(text, before, cfg=self.cycle_cfg)
        if result.handled:
            for entry in result.logs:
                self.log.record(cycle=result.new_state.cycle, kind=entry.kind, text=entry.text)
            self.log.record(cycle=result.new_state.cycle, kind="reply", text=result.reply)
            if result.new_state is not before:
                self._commit(before, result.new_state)
                if result.new_state.cycle > before.cycle:
                    self._poll_dilemma()
            return SubmitResult(source="command", reply=result.reply, state=self.state)

        if self.narrator is None:
            self.log.record(cycle=before.cycle, kind="narrator_error", text="No narrator connected.")
            return SubmitResult(source="none", reply="", state=before)

        try:
            payload = self.narrator.narrate(text, build_narrator_context(before))
            reply = NarratorReply.from_payload(payload)
        except (NarratorUnavailable, OSError, ValueError, TypeError) as exc:
            self.log.record(cycle=before.cycle, kind="narrator_error", text=str(exc) or type(exc).__name__)
            return SubmitResult(source="none", reply="", state=before)

        self.log.record(cycle=before.cycle, kind="narrator", text=reply.response)
        after = apply_narrator_actions(before, reply.actions)
        if after is not before:
            self._commit(before, after)
        return SubmitResult(source="narrator", reply=reply.response, state=self.state)

    def choose(self, choice_id: str) -> ColonyState:
        state = self.state
        dilemma = self._pending
        if dilemma is None:
            return state
        after = apply_dilemma_choice(state, dilemma, choice_id)
        if after is state:
            self.log.record(cycle=state.cycle, kind="dilemma", text=f"Unknown choice '{choice_id}' ignored.")
            return state
        self._pending = None
        self.log.record(cycle=after.cycle, kind="dilemma", text=f"{dilemma.title}: {choice_id}")
        self._commit(state, after)
        return after

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _poll_dilemma(self) -> None:
        if self._pending is not None:
            return
        dilemma = next_dilemma(self.state, self.rng, cfg=self.dilemma_cfg)
        if dilemma is not None:
            self._pending = dilemma
            self.log.record(cycle=self.state.cycle, kind="dilemma", text=dilemma.title)

    def _commit(self, before: ColonyState, after: ColonyState) -> None:
        self._state = after
        now = self.clock()
        meta_changed = False
        if before.phase is not Phase.ASCENSION and after.phase is Phase.ASCENSION:
            self.meta = record_completion(self.meta, after, now=now)
            meta_changed = True
            self.log.record(cycle=after.cycle, kind="completion", text="Ascension achieved. The game remembers.")
        launched = after.ascension.worlds_seeded[len(before.ascension.worlds_seeded):]
        for world in launched:
            self.meta = record_seed_launch(self.meta, world.name, after, now=now)
            meta_changed = True
        if meta_changed and not self.gateway.save_meta(self.meta.to_dict()):
            self.log.record(cycle=after.cycle, kind="persistence", text="Meta record could not be saved.")
        if not self.gateway.save(snapshot_for_save(after, saved_at=now)):
            self.log.record(cycle=after.cycle, kind="persistence", text="Run could not be saved.")


__all__ = ["GameSession", "SubmitResult"]
