# ABOUTME: Orchestration layer: session engine, event log, roster extraction and error taxonomy.
# ABOUTME: Only exceptions are re-exported here; models import them, so the engine is imported from its module.

from loreweave.orchestration.exceptions import (
    AlreadyInitialized,
    CapacityReached,
    DuplicateSubmission,
    IncompleteSetup,
    InvalidCharacterName,
    InvalidChoice,
    InvalidPhaseTransition,
    NameTaken,
    NarrationFailed,
    NotRegistered,
    RegistrationClosed,
    RoleAlreadyChosen,
    RoleUnavailable,
    SessionError,
    StoreConflict,
    WorldNotFound,
    WrongPhase,
)

__all__ = [
    "SessionError",
    "AlreadyInitialized",
    "IncompleteSetup",
    "RegistrationClosed",
    "InvalidCharacterName",
    "NameTaken",
    "CapacityReached",
    "NotRegistered",
    "RoleAlreadyChosen",
    "RoleUnavailable",
    "InvalidChoice",
    "DuplicateSubmission",
    "WrongPhase",
    "WorldNotFound",
    "InvalidPhaseTransition",
    "StoreConflict",
    "NarrationFailed",
]
