"""Pure colony engine: rates, scheduling, cycles, phases, dilemmas and commands."""

from .commands import CommandResult, interpret_command
from .construction import add_unit, launch_seed, update_policy
from .cycle import CycleConfig, process_cycle, process_cycles
from .dilemmas import Dilemma, DilemmaOption, DilemmaType, apply_dilemma_choice, check_dilemma_conditions
from .phase_engine import transition_phase
from .rates import calculate_total_heat, compute_unit_rates
from .rng_service import RNGService
from .scheduler import apply_activity_plan
from .snapshot import migrate_loaded_state, state_to_dict

__all__ = [
    "CommandResult",
    "CycleConfig",
    "Dilemma",
    "DilemmaOption",
    "DilemmaType",
    "RNGService",
    "add_unit",
    "apply_activity_plan",
    "apply_dilemma_choice",
    "calculate_total_heat",
    "check_dilemma_conditions",
    "compute_unit_rates",
    "interpret_command",
    "launch_seed",
    "migrate_loaded_state",
    "process_cycle",
    "process_cycles",
    "state_to_dict",
    "transition_phase",
    "update_policy",
]
