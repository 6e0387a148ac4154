# ABOUTME: Timeout-bounded wrapper around a Narrator that converts any failure into fallback narration.
# ABOUTME: The round barrier calls this so a hung or failing text generator never stalls the game.

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

from loguru import logger

from loreweave.narration.base import NarrationRequest, NarrationResult, Narrator
from loreweave.narration.fallback import fallback_narration


class NarrationPipeline:
    """
    Runs a narrator with an explicit timeout.

    The narrator executes on a worker thread; if it does not answer within
    `timeout_seconds` the pipeline returns fallback text immediately and
    abandons the call. An abandoned call keeps its worker thread until it
    returns, so narrators bound their own work (OpenAINarrator takes a
    deadline, QueuedNarrator a job timeout).
    """

    def __init__(
        self,
        narrator: Narrator,
        timeout_seconds: float = 30.0,
        max_workers: int = 4,
    ):
        """
        Initialize narration pipeline.

        Args:
            narrator: Narrator implementation (OpenAI, queued, static)
            timeout_seconds: Maximum wait for a narration result
            max_workers: Concurrent narration calls allowed
        """
        self.narrator = narrator
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="narration",
        )

    def run(self, request: NarrationRequest) -> NarrationResult:
        """
        Narrate a round, falling back on timeout, error or empty output.

        Args:
            request: Lore, world state and choices to narrate

        Returns:
            NarrationResult (used_fallback=True when the narrator failed)
        """
        future: Future = self._executor.submit(self.narrator.narrate, request)

        try:
            raw = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            future.cancel()
            logger.warning(
                f"Narration for session '{request.session_id}' round {request.round_number} "
                f"timed out after {self.timeout_seconds}s, using fallback"
            )
            return fallback_narration(request)
        except Exception as e:
            logger.warning(
                f"Narration for session '{request.session_id}' round {request.round_number} "
                f"failed ({type(e).__name__}: {e}), using fallback"
            )
            return fallback_narration(request)

        result = raw if isinstance(raw, NarrationResult) else NarrationResult.from_text(raw or "")
        if not result.text.strip():
            logger.warning(
                f"Narration for session '{request.session_id}' round {request.round_number} "
                f"was empty, using fallback"
            )
            return fallback_narration(request)

        return result

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
