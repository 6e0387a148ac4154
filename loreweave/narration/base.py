# ABOUTME: Narration Pipeline contract: request/result models and the Narrator protocol.
# ABOUTME: Narrators turn lore, current world state and round choices into the next narrative text.

from typing import Protocol

from pydantic import BaseModel, Field

# Narrators append this marker when the story has reached its ending
END_MARKER = "[THE END]"


class NarrationRequest(BaseModel):
    """Input for one narration call"""

    session_id: str = ""
    world_lore: str
    rules_text: str = ""
    world_state: str = ""
    choices: dict[str, str] = Field(
        default_factory=dict,
        description="character_name -> choice; empty for the opening narration"
    )
    round_number: int = Field(
        default=0,
        description="Round being closed (0 for the opening narration)"
    )

    @property
    def is_opening(self) -> bool:
        return not self.choices


class NarrationResult(BaseModel):
    """Narrative text produced for a round"""

    text: str
    story_complete: bool = False
    used_fallback: bool = False

    @classmethod
    def from_text(cls, text: str) -> "NarrationResult":
        """Build a result from raw narrator output, honouring END_MARKER"""
        story_complete = END_MARKER in text
        cleaned = text.replace(END_MARKER, "").strip()
        return cls(text=cleaned, story_complete=story_complete)


class Narrator(Protocol):
    """Anything that can narrate a round; may raise or hang"""

    def narrate(self, request: NarrationRequest) -> str | NarrationResult:
        ...
