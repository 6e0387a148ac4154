# ABOUTME: Utility module exports for structured logging.
# ABOUTME: Provides logging.py (loguru config and session/phase log helpers).

from loreweave.utils.logging import log_phase_transition, log_session_event, setup_logging

__all__ = [
    "setup_logging",
    "log_session_event",
    "log_phase_transition",
]
