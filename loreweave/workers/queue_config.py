# ABOUTME: RQ queue configuration for out-of-process narration workers.
# ABOUTME: Defines Redis connection helpers, the narration queue, and timeout/TTL policies for jobs.

from typing import Any

from loguru import logger
from redis import Redis
from rq import Queue

# Queue names as constants
NARRATION_QUEUE = "narration"

# Timeout settings (in seconds)
JOB_TIMEOUT = 60  # Maximum job execution time
RESULT_TTL = 300  # Keep successful results for 5 minutes
FAILURE_TTL = 600  # Keep failed job info for 10 minutes (debugging)


def create_redis_connection(redis_url: str, decode_responses: bool = False) -> Redis:
    """
    Create and verify a Redis connection.

    Note: decode_responses=False is required when the connection is shared
    with RQ (pickled job data); store and event log decode JSON themselves.

    Args:
        redis_url: Redis connection URL
        decode_responses: Decode replies to str

    Returns:
        Redis connection instance

    Raises:
        ConnectionError: When Redis is not accessible
    """
    try:
        redis_conn = Redis.from_url(redis_url, decode_responses=decode_responses)
        # Test connection
        redis_conn.ping()
        logger.info(f"Redis connection established: {redis_url}")
        return redis_conn
    except Exception as e:
        logger.error(f"Failed to connect to Redis at {redis_url}: {e}")
        raise ConnectionError(f"Redis connection failed: {e}") from e


def create_queue(
    queue_name: str,
    redis_conn: Redis,
    default_timeout: int = JOB_TIMEOUT,
) -> Queue:
    """
    Create RQ queue with configured timeout and TTL settings.

    Args:
        queue_name: Name of the queue
        redis_conn: Redis connection instance
        default_timeout: Default job timeout in seconds (default: JOB_TIMEOUT)

    Returns:
        Configured RQ Queue instance
    """
    queue = Queue(
        queue_name,
        connection=redis_conn,
        default_timeout=default_timeout,
    )
    logger.info(
        f"Created queue '{queue_name}' with timeout={default_timeout}s, "
        f"result_ttl={RESULT_TTL}s, failure_ttl={FAILURE_TTL}s"
    )
    return queue


def get_narration_queue(redis_conn: Redis, queue_name: str = NARRATION_QUEUE) -> Queue:
    """Get or create the queue consumed by narration workers"""
    return create_queue(queue_name, redis_conn)


def enqueue_job(
    queue: Queue,
    func: Any,
    args: tuple = (),
    kwargs: dict | None = None,
    job_timeout: int = JOB_TIMEOUT,
    result_ttl: int = RESULT_TTL,
    failure_ttl: int = FAILURE_TTL,
) -> Any:
    """
    Enqueue a job with standard timeout and TTL settings.

    Args:
        queue: RQ Queue instance
        func: Worker function to execute
        args: Positional arguments for func
        kwargs: Keyword arguments for func
        job_timeout: Maximum execution time in seconds
        result_ttl: Time to keep successful results (seconds)
        failure_ttl: Time to keep failed job info (seconds)

    Returns:
        RQ Job instance
    """
    if kwargs is None:
        kwargs = {}

    job = queue.enqueue(
        func,
        args=args,
        kwargs=kwargs,
        job_timeout=job_timeout,
        result_ttl=result_ttl,
        failure_ttl=failure_ttl,
    )

    logger.debug(
        f"Enqueued job {job.id} on queue '{queue.name}': {func.__name__} "
        f"(timeout={job_timeout}s)"
    )
    return job
