# ABOUTME: Narrator that dispatches narration to an RQ worker and polls for the result.
# ABOUTME: Polling uses capped exponential backoff and gives up after the configured timeout.

import time

from loguru import logger
from rq import Queue
from rq.job import Job

from loreweave.narration.base import NarrationRequest, NarrationResult
from loreweave.orchestration.exceptions import NarrationFailed
from loreweave.workers.narration_worker import narrate_round
from loreweave.workers.queue_config import enqueue_job


def _poll_job_with_backoff(job: Job, timeout: float) -> None:
    """
    Poll RQ job with exponential backoff.

    Args:
        job: RQ Job to poll
        timeout: Maximum time to wait in seconds

    Raises:
        NarrationFailed: If job times out or fails
    """
    sleep_time = 0.2
    max_sleep = 2.0
    start_time = time.monotonic()

    while job.result is None and not job.is_failed:
        if time.monotonic() - start_time > timeout:
            raise NarrationFailed(f"Narration job {job.id} timed out after {timeout}s")
        time.sleep(sleep_time)
        job.refresh()
        sleep_time = min(sleep_time * 1.3, max_sleep)

    if job.is_failed:
        raise NarrationFailed(f"Narration job {job.id} failed")


class QueuedNarrator:
    """Narrator backed by the narration RQ queue"""

    def __init__(self, queue: Queue, timeout_seconds: float = 30.0):
        self.queue = queue
        self.timeout_seconds = timeout_seconds

    def narrate(self, request: NarrationRequest) -> NarrationResult:
        job = enqueue_job(
            self.queue,
            narrate_round,
            args=(request.model_dump(),),
            job_timeout=int(self.timeout_seconds) + 5,
        )
        logger.debug(f"Waiting for narration job {job.id}")

        _poll_job_with_backoff(job, self.timeout_seconds)
        return NarrationResult(**job.result)
