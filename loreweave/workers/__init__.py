# ABOUTME: Worker module initialization for RQ background narration jobs.
# ABOUTME: Exports the narration worker function, queue configuration, and retry utilities.

from loreweave.workers.llm_retry import llm_retry
from loreweave.workers.narration_worker import narrate_round
from loreweave.workers.queue_config import (
    NARRATION_QUEUE,
    create_queue,
    create_redis_connection,
    enqueue_job,
    get_narration_queue,
)

__all__ = [
    # Worker functions
    "narrate_round",
    # Queue configuration
    "create_redis_connection",
    "create_queue",
    "get_narration_queue",
    "enqueue_job",
    "NARRATION_QUEUE",
    # Utilities
    "llm_retry",
]
