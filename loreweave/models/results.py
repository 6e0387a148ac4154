# ABOUTME: Pydantic result models returned by SessionEngine operations.
# ABOUTME: Covers registration, role assignment, choice acknowledgement, round outcomes and status snapshots.

from typing import Literal

from pydantic import BaseModel, Field

from loreweave.models.world import Player, World, WorldPhase


class Registration(BaseModel):
    """Result of a join or name registration"""

    player: Player | None = None
    status: Literal["registered", "already_registered", "awaiting_name"]
    phase: WorldPhase
    phase_changed: bool = False

    model_config = {"use_enum_values": True}


class RoundOutcome(BaseModel):
    """Narration produced when a round (or the story opening) completes"""

    round_number: int = Field(description="Round the narration closes (0 for the opening)")
    narration: str
    used_fallback: bool = False
    story_complete: bool = False
    next_round: int


class Assignment(BaseModel):
    """Result of a successful role pick"""

    player_id: str
    character_name: str
    role: str
    phase: WorldPhase
    phase_changed: bool = False
    opening: RoundOutcome | None = None

    model_config = {"use_enum_values": True}


class ChoiceAck(BaseModel):
    """Acknowledgement of a recorded round choice"""

    player_id: str
    character_name: str
    choice: str
    round_number: int
    round_complete: bool = False
    awaiting: list[str] = Field(default_factory=list)
    outcome: RoundOutcome | None = None


class PlayerStatus(BaseModel):
    player_id: str
    display_name: str
    character_name: str
    role: str | None
    has_submitted_round: bool


class WorldStatus(BaseModel):
    """Read-only snapshot of a World"""

    world_id: str
    session_id: str
    phase: WorldPhase
    roster: list[str]
    capacity: int
    players: list[PlayerStatus]
    roles_taken: list[str]
    available_roles: list[str] = Field(default_factory=list)
    current_round: int
    choice_options: list[str]
    awaiting: list[str] = Field(default_factory=list)
    world_state: str = ""

    model_config = {"use_enum_values": True}

    @classmethod
    def from_world(cls, world: World) -> "WorldStatus":
        return cls(
            world_id=world.world_id,
            session_id=world.session_id,
            phase=world.phase,
            roster=list(world.roster),
            capacity=world.capacity,
            players=[
                PlayerStatus(
                    player_id=p.player_id,
                    display_name=p.display_name,
                    character_name=p.character_name,
                    role=p.role,
                    has_submitted_round=world.has_submitted(p.player_id),
                )
                for p in world.players.values()
            ],
            roles_taken=list(world.roles_taken),
            available_roles=world.available_roles,
            current_round=world.current_round,
            choice_options=list(world.choice_options),
            awaiting=world.awaiting_characters if world.phase == WorldPhase.RUNNING else [],
            world_state=world.world_state,
        )
