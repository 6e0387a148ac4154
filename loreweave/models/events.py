# ABOUTME: Pydantic models for session events published after committed state changes.
# ABOUTME: Events feed the admin channel (registrations, phase changes) and the round-complete narration.

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Kinds of session events"""
    WORLD_OPENED = "world_opened"
    WORLD_INITIALIZED = "world_initialized"
    SETUP_FAILED = "setup_failed"
    PLAYER_REGISTERED = "player_registered"
    PHASE_CHANGED = "phase_changed"
    ROLE_ASSIGNED = "role_assigned"
    CHOICE_SUBMITTED = "choice_submitted"
    STORY_OPENED = "story_opened"
    ROUND_COMPLETED = "round_completed"
    STORY_COMPLETED = "story_completed"
    WORLD_RESET = "world_reset"


class SessionEvent(BaseModel):
    """One entry in a session's event log"""

    event_id: str = Field(description="Unique event identifier")
    event_type: EventType
    session_id: str
    world_id: str
    timestamp: datetime
    round_number: int = 0
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific data (player, role, narration, ...)"
    )

    model_config = {"use_enum_values": True}
