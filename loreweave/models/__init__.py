"""Data models for the loreweave session engine"""

from .events import EventType, SessionEvent
from .results import (
    Assignment,
    ChoiceAck,
    PlayerStatus,
    Registration,
    RoundOutcome,
    WorldStatus,
)
from .world import (
    PHASE_TRANSITIONS,
    Player,
    RoundRecord,
    World,
    WorldPhase,
    normalize_name,
)

__all__ = [
    # World models
    "WorldPhase",
    "PHASE_TRANSITIONS",
    "Player",
    "RoundRecord",
    "World",
    "normalize_name",
    # Result models
    "Registration",
    "Assignment",
    "ChoiceAck",
    "RoundOutcome",
    "PlayerStatus",
    "WorldStatus",
    # Event models
    "EventType",
    "SessionEvent",
]
