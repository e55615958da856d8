from __future__ import annotations

from dataclasses import replace

from seedhive.runtime.dilemmas import DilemmaType
from seedhive.runtime.narrator import NarratorUnavailable
from seedhive.runtime.rng_service import FixedRandom
from seedhive.session import GameSession
from seedhive.state import Phase, Territory, create_initial_state, default_unlocks
from seedhive.vault import InMemoryGateway, MetaState, snapshot_for_save


class ScriptedNarrator:
    def __init__(self, payload=None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.contexts = []

    def narrate(self, message, context):
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.payload


def _gateway_with(state) -> InMemoryGateway:
    gateway = InMemoryGateway()
    gateway.save(snapshot_for_save(state, saved_at="t0"))
    return gateway


def _ascension_ready_state():
    return replace(
        create_initial_state(),
        phase=Phase.BIOLOGICAL,
        biomass=2000.0,
        data=5000.0,
        energy=1000.0,
        territory=Territory(mapped=300.0, controlled=260.0),
        unlocked=default_unlocks(hybridUnits=True, biologicalUnits=True, distributedCognition=True),
    )


def test_new_session_lands_and_saves():
    gateway = InMemoryGateway()
    session = GameSession(gateway, clock=lambda: "t")

    state = session.state

    assert state.cycle == 1
    assert gateway.saves == 1
    assert gateway.load()["savedAt"] == "t"


def test_session_resumes_saved_run():
    saved = replace(create_initial_state(), cycle=9, biomass=321.0)
    session = GameSession(_gateway_with(saved))

    assert session.start() == saved
    assert session.log.get_recent(kind="session")[0].text == "Run resumed at cycle 9."


def test_advance_saves_every_cycle():
    gateway = InMemoryGateway()
    session = GameSession(gateway, rng=FixedRandom(0.0))
    session.start()

    state = session.advance(3)

    assert state.cycle == 4
    assert gateway.saves == 4
    assert gateway.load()["cycle"] == 4


def test_single_outstanding_dilemma():
    session = GameSession(_gateway_with(replace(create_initial_state(), cycle=12)), rng=FixedRandom(0.999))
    session.start()

    session.advance()
    pending = session.pending_dilemma
    assert pending is not None and pending.type is DilemmaType.NATIVE_LIFE

    session.advance(4)
    assert session.pending_dilemma is pending

    assert session.choose("no-such-option") is session.state
    assert session.pending_dilemma is pending

    after = session.choose("observe")
    assert session.pending_dilemma is None
    assert after.native_life_encountered
    assert after.native_life_decision == "observe"
    assert after.ethical_questions[-1].choice == "observe"


def test_choose_without_pending_dilemma_is_a_no_op():
    session = GameSession(rng=FixedRandom(0.0))
    state = session.state

    assert session.choose("observe") is state


def test_commands_take_priority_over_narrator():
    narrator = ScriptedNarrator({"response": "unused"})
    session = GameSession(narrator=narrator, rng=FixedRandom(0.0))

    result = session.submit("advance 2 cycles")

    assert result.source == "command"
    assert result.state.cycle == 3
    assert narrator.contexts == []
    assert session.log.get_recent(kind="reply")[0].text.startswith("Cycle advanced x2.")


def test_status_report_goes_to_the_system_log():
    session = GameSession(rng=FixedRandom(0.0))

    result = session.submit("status report")

    assert result.reply == "Status report appended to system log."
    assert session.log.get_recent(kind="system")[0].text.startswith("Cycle 1")


def test_narrator_reply_and_actions():
    narrator = ScriptedNarrator({"response": "We vent.", "actions": {"heatChange": -5, "action": "vent"}})
    session = GameSession(narrator=narrator, rng=FixedRandom(0.0))
    before = session.state

    result = session.submit("let off some steam")

    assert result.source == "narrator"
    assert result.reply == "We vent."
    assert result.state.heat == before.heat - 5
    assert result.state.history[-1].event == "narrator_action"
    assert narrator.contexts[0]["cycle"] == 1


def test_narrator_failure_leaves_state_untouched():
    for error in (NarratorUnavailable("offline"), OSError("timeout")):
        session = GameSession(narrator=ScriptedNarrator(error=error), rng=FixedRandom(0.0))
        before = session.state

        result = session.submit("tell me a story")

        assert not result.handled
        assert result.state is before
        assert session.state is before
        assert session.log.get_recent(kind="narrator_error")


def test_malformed_narrator_payload_is_a_failure():
    session = GameSession(narrator=ScriptedNarrator(["not", "an", "object"]), rng=FixedRandom(0.0))
    before = session.state

    result = session.submit("tell me a story")

    assert result.source == "none"
    assert session.state is before


def test_missing_narrator_is_reported():
    session = GameSession(rng=FixedRandom(0.0))

    result = session.submit("tell me a story")

    assert not result.handled
    assert session.log.get_recent(kind="narrator_error")[0].text == "No narrator connected."


def test_completion_is_remembered_across_runs():
    gateway = _gateway_with(_ascension_ready_state())
    session = GameSession(gateway, rng=FixedRandom(0.0), clock=lambda: "t1")
    session.start()

    state = session.advance()

    assert state.phase is Phase.ASCENSION
    assert session.meta.total_completions == 1
    assert MetaState.from_dict(gateway.load_meta()).total_completions == 1

    fresh = session.new_run()
    assert fresh.cycle == 1
    assert fresh.completed_runs == 1
    assert fresh.difficulty.heat_multiplier == 1.1
    assert session.log.get_recent(kind="session")[0].payload["previousCompletions"] == 1

    reloaded = GameSession(gateway)
    assert reloaded.meta.total_completions == 1


def test_seed_launch_updates_meta():
    ready = replace(
        _ascension_ready_state(),
        phase=Phase.ASCENSION,
        minerals=600.0,
        unlocked=default_unlocks(interstellarSeeding=True, distributedCognition=True),
    )
    gateway = _gateway_with(ready)
    session = GameSession(gateway, rng=FixedRandom(0.0))
    session.start()

    result = session.submit("launch seed to Kepler-442b")

    assert result.state.ascension.seeds_launched == 1
    assert session.meta.seeded_worlds == ("Kepler-442b",)
    assert session.meta.total_completions == 0
    assert gateway.load_meta()["seededWorlds"] == ["Kepler-442b"]


def test_unreadable_meta_numbers_do_not_block_the_session():
    gateway = InMemoryGateway()
    gateway.save_meta({"totalCompletions": 2, "philosophicalMoments": [{"cycle": float("inf"), "thought": "?"}]})

    session = GameSession(gateway, rng=FixedRandom(0.0))

    assert session.meta.total_completions == 2
    assert session.meta.philosophical_moments[0].cycle == 0
    assert session.state.cycle == 1
