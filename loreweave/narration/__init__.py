# ABOUTME: Narration Pipeline exports and the settings-driven narrator factory.
# ABOUTME: Selects the OpenAI, queued (RQ) or static narrator and wraps it in a timeout-bounded pipeline.

from redis import Redis

from loreweave.config.settings import Settings
from loreweave.narration.base import END_MARKER, NarrationRequest, NarrationResult, Narrator
from loreweave.narration.fallback import StaticNarrator, fallback_narration
from loreweave.narration.pipeline import NarrationPipeline


def build_narrator(settings: Settings, redis_client: Redis | None = None) -> Narrator:
    """
    Create the narrator selected by `settings.narration_backend`.

    Args:
        settings: Application settings
        redis_client: Connection for the queued backend (decode_responses=False)

    Returns:
        Narrator instance

    Raises:
        ValueError: If the queued backend is selected without a Redis client
    """
    if settings.narration_backend == "openai":
        from openai import OpenAI

        from loreweave.narration.openai_narrator import OpenAINarrator

        return OpenAINarrator(
            client=OpenAI(api_key=settings.openai_api_key, max_retries=0),
            model=settings.openai_model,
            deadline_seconds=settings.narration_timeout_seconds,
        )

    if settings.narration_backend == "queue":
        if redis_client is None:
            raise ValueError("Queued narration requires a Redis connection")

        from loreweave.narration.queued import QueuedNarrator
        from loreweave.workers.queue_config import get_narration_queue

        return QueuedNarrator(
            queue=get_narration_queue(redis_client, settings.narration_queue_name),
            timeout_seconds=settings.narration_timeout_seconds,
        )

    return StaticNarrator()


def build_pipeline(settings: Settings, redis_client: Redis | None = None) -> NarrationPipeline:
    return NarrationPipeline(
        narrator=build_narrator(settings, redis_client),
        timeout_seconds=settings.narration_timeout_seconds,
    )


__all__ = [
    "END_MARKER",
    "NarrationRequest",
    "NarrationResult",
    "Narrator",
    "NarrationPipeline",
    "StaticNarrator",
    "fallback_narration",
    "build_narrator",
    "build_pipeline",
]
