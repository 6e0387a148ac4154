# ABOUTME: Narrator backed by OpenAI chat completions with retry and per-request timeout.
# ABOUTME: Passes lore, rules, current world state and round choices through as plain context.

import time
from typing import Any

from openai import OpenAI

from loreweave.narration.base import END_MARKER, NarrationRequest, NarrationResult
from loreweave.orchestration.exceptions import NarrationFailed
from loreweave.workers.llm_retry import llm_retry


class OpenAINarrator:
    """
    Narrator that asks an OpenAI chat model for the next story beat.

    The system message carries the session's rules text; the user message
    carries lore, the current world state and the round's choices.
    """

    def __init__(
        self,
        client: OpenAI,
        model: str = "gpt-4o",
        temperature: float = 0.8,
        request_timeout: float = 20.0,
        deadline_seconds: float | None = None,
    ):
        """
        Initialize OpenAI narrator.

        Args:
            client: OpenAI client instance
            model: Chat model to use (default: gpt-4o)
            temperature: Sampling temperature
            request_timeout: Per-request timeout in seconds
            deadline_seconds: Budget for one narration across all retries
                (None = bounded only by retries and request_timeout)
        """
        self.client = client
        self.model = model
        self.temperature = temperature
        self.request_timeout = request_timeout
        self.deadline_seconds = deadline_seconds

    def build_messages(self, request: NarrationRequest) -> list[dict[str, str]]:
        system = (
            f"{request.rules_text.strip()}\n\n"
            f"End your reply with {END_MARKER} only if the story has reached its ending."
        ).strip()

        parts = [f"WORLD LORE:\n{request.world_lore.strip()}"]
        if request.world_state.strip():
            parts.append(f"CURRENT WORLD STATE:\n{request.world_state.strip()}")
        if request.choices:
            choice_lines = "\n".join(
                f"- {name}: {choice}" for name, choice in sorted(request.choices.items())
            )
            parts.append(f"CHOICES FOR ROUND {request.round_number}:\n{choice_lines}")
        else:
            parts.append("Open the story.")

        return [
            {"role": "system", "content": system},
            {"role": "user", "content": "\n\n".join(parts)},
        ]

    @llm_retry
    def _complete(self, messages: list[dict[str, str]], deadline: float | None = None) -> str:
        timeout = self.request_timeout
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise NarrationFailed("Narration deadline passed before the request was sent")
            timeout = min(timeout, remaining)

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "timeout": timeout,
        }
        response = self.client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    def narrate(self, request: NarrationRequest) -> NarrationResult:
        """
        Generate narration for a round.

        Raises:
            NarrationFailed: When the API call fails after retries
        """
        deadline = None
        if self.deadline_seconds is not None:
            deadline = time.monotonic() + self.deadline_seconds

        try:
            text = self._complete(self.build_messages(request), deadline)
        except Exception as e:
            raise NarrationFailed(f"OpenAI narration failed: {e}") from e

        return NarrationResult.from_text(text)
