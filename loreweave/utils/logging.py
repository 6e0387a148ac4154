# ABOUTME: Structured logging configuration using loguru.
# ABOUTME: Supports context fields (session, world, phase, round, player) and console/file output.

import sys
from pathlib import Path
from typing import Any

from loguru import logger


# Default log format with structured context
DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | "
    "{extra}"
)

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
    format_string: str | None = None,
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """
    Configure loguru for structured logging.

    This setup enables:
    - Structured context fields via logger.bind()
    - Console output with color formatting
    - File output with rotation and compression

    Usage:
        >>> setup_logging(log_level="DEBUG", log_dir="logs")
        >>> logger.bind(session="main").info("Round started")

    Args:
        log_level: Minimum log level ("DEBUG", "INFO", "WARNING", "ERROR")
        log_dir: Directory for log files (default: "logs")
        console_output: Enable console logging (default: True)
        file_output: Enable file logging (default: True)
        format_string: Custom format string (default: structured format)
        rotation: When to rotate log files (default: "100 MB")
        retention: How long to keep old logs (default: "30 days")
        compression: Compression for rotated logs (default: "zip")

    Raises:
        ValueError: If log_level is invalid
    """
    log_level = log_level.upper()
    if log_level not in VALID_LEVELS:
        raise ValueError(
            f"Invalid log level: '{log_level}'. "
            f"Must be one of: {', '.join(sorted(VALID_LEVELS))}"
        )

    # Remove default handler
    logger.remove()

    fmt = format_string or DEFAULT_FORMAT

    if console_output:
        logger.add(
            sys.stderr,
            format=fmt,
            level=log_level,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    if file_output:
        log_path = Path(log_dir) if log_dir is not None else Path("logs")
        log_path.mkdir(parents=True, exist_ok=True)

        log_file = log_path / "loreweave_{time:YYYY-MM-DD}.log"
        logger.add(
            str(log_file),
            format=fmt,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            backtrace=True,
            diagnose=False,
            enqueue=True,  # Thread-safe
        )

    logger.info(
        f"Logging configured: level={log_level}, "
        f"console={console_output}, file={file_output}"
    )


def log_session_event(
    message: str,
    session_id: str,
    phase: str,
    round_number: int = 0,
    player_id: str | None = None,
    level: str = "INFO",
    **extra_context: Any
) -> None:
    """
    Log a session event with the standard context fields.

    Usage:
        >>> log_session_event(
        ...     "Role assigned",
        ...     session_id="main",
        ...     phase="role_selection",
        ...     player_id="1001",
        ...     role="Warrior",
        ... )

    Args:
        message: Log message
        session_id: Session identifier
        phase: Current world phase
        round_number: Current round
        player_id: Optional acting player
        level: Log level (default: "INFO")
        **extra_context: Additional context fields
    """
    context = {
        "session": session_id,
        "phase": phase,
        "round": round_number,
        **extra_context
    }

    if player_id:
        context["player_id"] = player_id

    logger.bind(**context).log(level.upper(), message)


def log_phase_transition(
    from_phase: str,
    to_phase: str,
    session_id: str,
    round_number: int,
    world_id: str | None = None,
) -> None:
    """
    Log a world phase transition.

    Args:
        from_phase: Previous phase
        to_phase: New phase
        session_id: Session identifier
        round_number: Current round
        world_id: Optional world identity
    """
    context: dict[str, Any] = {
        "from_phase": from_phase,
        "to_phase": to_phase,
        "session": session_id,
        "round": round_number,
    }

    if world_id is not None:
        context["world_id"] = world_id

    logger.bind(**context).info(
        f"Phase transition: {from_phase} -> {to_phase}"
    )
