# ABOUTME: RQ worker function that narrates one round with the OpenAI narrator.
# ABOUTME: Module-level function runs in a separate worker process with internal imports.

from typing import Any

from loguru import logger


def narrate_round(request: dict[str, Any]) -> dict[str, Any]:
    """
    RQ worker function: produce narration for a NarrationRequest payload.

    Worker pattern: imports the narrator inside the function (runs in a
    separate process) and builds it from environment settings.

    Args:
        request: NarrationRequest.model_dump() payload

    Returns:
        NarrationResult.model_dump() payload

    Raises:
        NarrationFailed: When the OpenAI API fails after retries
    """
    from openai import OpenAI

    from loreweave.config.settings import Settings
    from loreweave.narration.base import NarrationRequest
    from loreweave.narration.openai_narrator import OpenAINarrator

    settings = Settings()
    narrator = OpenAINarrator(
        client=OpenAI(api_key=settings.openai_api_key),
        model=settings.openai_model,
    )

    narration_request = NarrationRequest(**request)
    logger.info(
        f"Narrating session '{narration_request.session_id}' "
        f"round {narration_request.round_number} in worker"
    )

    result = narrator.narrate(narration_request)
    return result.model_dump()
