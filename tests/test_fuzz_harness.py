from seedhive.simulation.fuzz import ColonyFuzzHarness


def test_fuzz_harness_runs_and_preserves_invariants():
    harness = ColonyFuzzHarness(steps=80, seed=123)
    result = harness.run()
    assert result.steps_run == 80
    assert all(result.invariants.values())
    assert result.cycles_run >= 0


def test_fuzz_harness_is_deterministic():
    first = ColonyFuzzHarness(steps=40, seed=9).run()
    second = ColonyFuzzHarness(steps=40, seed=9).run()
    assert first.final_state == second.final_state
    assert first.cycles_run == second.cycles_run
