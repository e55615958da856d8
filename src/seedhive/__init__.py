"""Seed / Hive / Ascension colony simulation public façade."""

from .admin_log import SessionLog
from .runtime import (
    CommandResult,
    Dilemma,
    DilemmaType,
    RNGService,
    add_unit,
    apply_activity_plan,
    apply_dilemma_choice,
    calculate_total_heat,
    check_dilemma_conditions,
    interpret_command,
    launch_seed,
    migrate_loaded_state,
    process_cycle,
    transition_phase,
    update_policy,
)
from .session import GameSession, SubmitResult
from .state import (
    Activity,
    ColonyState,
    DifficultyModifier,
    Phase,
    Unit,
    UnitRole,
    UnitType,
    create_initial_state,
)
from .vault import InMemoryGateway, JsonFileGateway, MetaState, PersistenceGateway

__all__ = [
    "Activity",
    "ColonyState",
    "CommandResult",
    "DifficultyModifier",
    "Dilemma",
    "DilemmaType",
    "GameSession",
    "InMemoryGateway",
    "JsonFileGateway",
    "MetaState",
    "PersistenceGateway",
    "Phase",
    "RNGService",
    "SessionLog",
    "SubmitResult",
    "Unit",
    "UnitRole",
    "UnitType",
    "add_unit",
    "apply_activity_plan",
    "apply_dilemma_choice",
    "calculate_total_heat",
    "check_dilemma_conditions",
    "create_initial_state",
    "interpret_command",
    "launch_seed",
    "migrate_loaded_state",
    "process_cycle",
    "transition_phase",
    "update_policy",
]
