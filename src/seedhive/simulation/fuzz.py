"""Invariant fuzz harness used in CI and nightly runs."""

from __future__ import annotations

from dataclasses import dataclass
from math import isfinite
from random import Random
from typing import Dict

from seedhive.runtime.commands import interpret_command
from seedhive.runtime.construction import add_unit, update_policy
from seedhive.runtime.cycle import process_cycle
from seedhive.runtime.dilemmas import GENERATORS, DilemmaType, apply_dilemma_choice
from seedhive.runtime.narrator import NarratorActions, apply_narrator_actions
from seedhive.runtime.snapshot import migrate_loaded_state
from seedhive.state import POLICY_CHOICES, Activity, ColonyState, UnitRole, create_initial_state

_COMMANDS = (
    "advance 2 cycles",
    "next cycle",
    "cooldown",
    "hibernate",
    "increase acuity",
    "prioritize performance",
    "design worker",
    "design defender",
    "status report",
    "sing a song",
)


@dataclass(frozen=True)
class FuzzResult:
    """Summary of a fuzz harness execution."""

    steps_run: int
    cycles_run: int
    invariants: Dict[str, bool]
    final_state: ColonyState


@dataclass
class ColonyFuzzHarness:
    """Drive random operation sequences and check that every invariant holds."""

    steps: int = 60
    seed: int = 777

    def run(self) -> FuzzResult:
        rng = Random(self.seed)
        state = create_initial_state()
        cycles = 0

        for _ in range(self.steps):
            before = state
            state = self._random_step(state, rng)
            cycles += max(0, state.cycle - before.cycle)
            invariants = self._evaluate_invariants(before, state)
            if not all(invariants.values()):
                raise AssertionError(f"Fuzz invariant failed: {invariants}")

        final = self._evaluate_invariants(state, state)
        final["migration_idempotent"] = migrate_loaded_state(state) == migrate_loaded_state(
            migrate_loaded_state(state)
        )
        return FuzzResult(steps_run=self.steps, cycles_run=cycles, invariants=final, final_state=state)

    def _random_step(self, state: ColonyState, rng: Random) -> ColonyState:
        roll = rng.random()
        if roll < 0.4:
            return process_cycle(state)
        if roll < 0.55:
            return add_unit(state, rng.choice(list(UnitRole)))
        if roll < 0.65:
            attr = rng.choice(sorted(POLICY_CHOICES))
            return update_policy(state, attr, rng.choice(POLICY_CHOICES[attr]))
        if roll < 0.8:
            dilemma = GENERATORS[rng.choice(list(DilemmaType))](state)
            option = rng.choice(list(dilemma.options))
            return apply_dilemma_choice(state, dilemma, option.id)
        if roll < 0.92:
            return interpret_command(rng.choice(_COMMANDS), state).new_state
        actions = NarratorActions(
            heat_change=rng.uniform(-30, 30),
            biomass_change=rng.uniform(-500, 200),
            data_change=rng.uniform(-200, 200),
            action="fuzz",
        )
        return apply_narrator_actions(state, actions)

    def _evaluate_invariants(self, before: ColonyState, after: ColonyState) -> Dict[str, bool]:
        invariants: Dict[str, bool] = {}
        invariants["resources_non_negative"] = all(
            value >= 0.0 and isfinite(value)
            for value in (after.biomass, after.minerals, after.data, after.energy, after.heat)
        )
        invariants["territory_ordered"] = 0.0 <= after.territory.controlled <= after.territory.mapped
        invariants["phase_monotonic"] = after.phase.rank >= before.phase.rank
        invariants["unlocks_monotonic"] = all(
            after.is_unlocked(key) for key, value in before.unlocked.items() if value
        )
        invariants["cycle_monotonic"] = after.cycle >= before.cycle
        invariants["digesters_active"] = all(
            unit.activity is Activity.ACTIVE for unit in after.units_with_role(UnitRole.DIGESTER)
        )
        invariants["fatigue_bounded"] = all(0.0 <= unit.fatigue <= 100.0 for unit in after.units)
        invariants["threat_bounded"] = (
            0.0 <= after.threats.level <= 100.0 and 0.0 <= after.threats.hostility <= 100.0
        )
        invariants["unit_ids_unique"] = len({unit.id for unit in after.units}) == len(after.units)
        invariants["logs_append_only"] = len(after.history) >= len(before.history)
        return invariants


__all__ = ["ColonyFuzzHarness", "FuzzResult"]
