# ABOUTME: Exponential backoff retry decorator for LLM API calls made by narrators.
# ABOUTME: Handles transient OpenAI failures with bounded retries and structured logging.

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from openai import APIConnectionError, APITimeoutError, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

# Type variable for generic function decoration
F = TypeVar("F", bound=Callable[..., Any])

RETRYABLE_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError)


def llm_retry(func: F) -> F:
    """
    Retry decorator for LLM API calls with exponential backoff.

    Retries on transient OpenAI errors with exponential backoff:
    - 3 attempts
    - Wait: 1s min, 10s max, exponential multiplier=1
    - Retries on: APIConnectionError, APITimeoutError, RateLimitError
    - Logs each failed attempt

    The narration pipeline timeout still bounds the total wait.

    Usage:
        @llm_retry
        def call_openai_api(...):
            # Your LLM call here
            pass

    Args:
        func: Function to wrap with retry logic

    Returns:
        Wrapped function with retry behavior
    """
    retrying_decorator = retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        reraise=True,
    )

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        @retrying_decorator
        def _retry_call() -> Any:
            try:
                return func(*args, **kwargs)
            except RETRYABLE_ERRORS as e:
                logger.warning(
                    f"LLM API call failed in {func.__name__}: {type(e).__name__}: {e}"
                )
                raise

        return _retry_call()

    return wrapper  # type: ignore
