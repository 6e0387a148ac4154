# ABOUTME: Deterministic narrators that never fail: the fallback used on pipeline errors and a static dev narrator.
# ABOUTME: Output depends only on the request, so retries and replays produce identical text.

from loreweave.narration.base import NarrationRequest, NarrationResult


def _choice_lines(choices: dict[str, str]) -> list[str]:
    return [f"{name} chose {choice}." for name, choice in sorted(choices.items())]


def fallback_narration(request: NarrationRequest) -> NarrationResult:
    """
    Narration used when the real narrator fails or times out.

    Args:
        request: The request the narrator could not answer

    Returns:
        NarrationResult flagged with used_fallback=True
    """
    if request.is_opening:
        text = "The story begins. The world waits for your first move."
    else:
        lines = [f"Round {request.round_number} ends while the chronicler is silent."]
        lines.extend(_choice_lines(request.choices))
        lines.append("The world shifts quietly in response.")
        text = "\n".join(lines)

    return NarrationResult(text=text, used_fallback=True)


class StaticNarrator:
    """Offline narrator for development and tests (no LLM)"""

    def narrate(self, request: NarrationRequest) -> NarrationResult:
        if request.is_opening:
            lore = request.world_lore.strip().splitlines()[0] if request.world_lore.strip() else ""
            return NarrationResult(text=f"The tale opens. {lore}".strip())

        lines = [f"Round {request.round_number}:"]
        lines.extend(_choice_lines(request.choices))
        return NarrationResult(text="\n".join(lines))
