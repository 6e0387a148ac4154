# ABOUTME: Pydantic models for the shared World record, its Players and completed rounds.
# ABOUTME: Defines the closed WorldPhase enum and the single authoritative phase transition table.

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from loreweave.orchestration.exceptions import InvalidPhaseTransition


class WorldPhase(str, Enum):
    """Coarse stages of a session"""
    SETUP = "setup"
    FAILED_SETUP = "failed_setup"
    AWAITING_PLAYERS = "awaiting_players"
    ROLE_SELECTION = "role_selection"
    RUNNING = "running"
    COMPLETED = "completed"


# Forward-only moves; reset replaces the World instead of transitioning it
PHASE_TRANSITIONS: dict[WorldPhase, frozenset[WorldPhase]] = {
    WorldPhase.SETUP: frozenset({WorldPhase.AWAITING_PLAYERS, WorldPhase.FAILED_SETUP}),
    WorldPhase.FAILED_SETUP: frozenset({WorldPhase.SETUP, WorldPhase.AWAITING_PLAYERS}),
    WorldPhase.AWAITING_PLAYERS: frozenset({WorldPhase.ROLE_SELECTION}),
    WorldPhase.ROLE_SELECTION: frozenset({WorldPhase.RUNNING}),
    WorldPhase.RUNNING: frozenset({WorldPhase.RUNNING, WorldPhase.COMPLETED}),
    WorldPhase.COMPLETED: frozenset(),
}


def _now() -> datetime:
    return datetime.now(UTC)


def normalize_name(name: str) -> str:
    """Case-insensitive key used for character and role comparisons"""
    return " ".join(name.split()).casefold()


class Player(BaseModel):
    """A registered participant, keyed by stable external identity"""

    player_id: str = Field(description="Stable external identity (chat user id)")
    display_name: str = Field(
        default="",
        description="External-platform handle, informational only"
    )
    character_name: str = Field(description="Unique within the World, case-insensitive")
    role: str | None = Field(
        default=None,
        description="Roster role held by this player, or None"
    )
    joined_at: datetime = Field(default_factory=_now)


class RoundRecord(BaseModel):
    """A completed round, kept so submissions survive narration failures"""

    round_number: int = Field(ge=1)
    choices: dict[str, str]
    narration: str
    used_fallback: bool = False
    completed_at: datetime = Field(default_factory=_now)


class World(BaseModel):
    """Complete state of one game session"""

    world_id: str = Field(default_factory=lambda: uuid4().hex)
    session_id: str
    phase: WorldPhase = WorldPhase.SETUP

    # Narrative configuration (immutable once AWAITING_PLAYERS)
    roster: list[str] = Field(default_factory=list)
    capacity: int = Field(default=0, ge=0)
    world_lore: str = ""
    rules_text: str = ""
    role_prompt: str = ""
    choice_options: list[str] = Field(default_factory=list)

    # Registration and roles
    players: dict[str, Player] = Field(default_factory=dict)
    roles_taken: list[str] = Field(default_factory=list)
    pending_names: dict[str, str] = Field(
        default_factory=dict,
        description="player_id -> display_name for players who owe a character name"
    )

    # Rounds
    current_round: int = Field(default=0, ge=0)
    round_roster: list[str] = Field(default_factory=list)
    round_choices: dict[str, str] = Field(default_factory=dict)
    world_state: str = ""
    story_opened: bool = Field(
        default=False,
        description="True once the opening narration is committed; gates round 1"
    )
    history: list[RoundRecord] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    model_config = {"validate_assignment": True}

    def transition_to(self, target: WorldPhase) -> bool:
        """
        Move to `target` if the transition table allows it.

        Args:
            target: Phase to enter

        Returns:
            True if the phase changed, False for a self-transition

        Raises:
            InvalidPhaseTransition: If the move is not in PHASE_TRANSITIONS
        """
        if target not in PHASE_TRANSITIONS[self.phase]:
            raise InvalidPhaseTransition(
                f"Cannot move world {self.world_id} from {self.phase.value} to {target.value}"
            )
        changed = target != self.phase
        self.phase = target
        self.touch()
        return changed

    def touch(self) -> None:
        self.updated_at = _now()

    def find_player_by_character(self, character_name: str) -> Player | None:
        key = normalize_name(character_name)
        for player in self.players.values():
            if normalize_name(player.character_name) == key:
                return player
        return None

    def match_role(self, role_name: str) -> str | None:
        """Return the canonical roster spelling of `role_name`, if on the roster"""
        key = normalize_name(role_name)
        for role in self.roster:
            if normalize_name(role) == key:
                return role
        return None

    def role_holder(self, role_name: str) -> str | None:
        """Return the player_id holding `role_name`, or None if unassigned"""
        for player in self.players.values():
            if player.role == role_name:
                return player.player_id
        return None

    @property
    def available_roles(self) -> list[str]:
        return [role for role in self.roster if role not in self.roles_taken]

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.capacity

    @property
    def all_roles_assigned(self) -> bool:
        return bool(self.players) and all(p.role is not None for p in self.players.values())

    def has_submitted(self, player_id: str) -> bool:
        player = self.players.get(player_id)
        return player is not None and player.character_name in self.round_choices

    @property
    def awaiting_characters(self) -> list[str]:
        """Characters in the round roster that have not submitted yet"""
        return [name for name in self.round_roster if name not in self.round_choices]

    @property
    def round_complete(self) -> bool:
        return bool(self.round_roster) and not self.awaiting_characters

    def start_round(self) -> None:
        """Clear per-round state and snapshot the players taking part"""
        self.round_choices = {}
        self.round_roster = [p.character_name for p in self.players.values()]
