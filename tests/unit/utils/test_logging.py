# ABOUTME: Unit tests for structured logging utilities
# ABOUTME: Validates loguru configuration and the session/phase context helpers

import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from loguru import logger

from loreweave.utils.logging import (
    DEFAULT_FORMAT,
    log_phase_transition,
    log_session_event,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset logger state before each test"""
    logger.remove()
    yield
    logger.remove()


@pytest.fixture
def temp_log_dir():
    """Create a temporary directory for log files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def captured():
    """Collect emitted records in memory"""
    records = []
    logger.add(lambda message: records.append(message.record), level="DEBUG")
    return records


class TestSetupLogging:
    """Test suite for setup_logging function"""

    @pytest.mark.parametrize("level", ["DEBUG", "info", "Warning", "ERROR", "CRITICAL"])
    def test_valid_log_levels(self, level):
        """Test that valid levels are accepted case-insensitively"""
        setup_logging(log_level=level, console_output=True, file_output=False)

    @pytest.mark.parametrize("level", ["INVALID", "TRACE", ""])
    def test_invalid_log_level_raises_error(self, level):
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logging(log_level=level)

    def test_console_output_uses_stderr(self):
        with patch.object(logger, 'add') as mock_add:
            setup_logging(log_level="INFO", console_output=True, file_output=False)

            assert mock_add.call_args[0][0] == sys.stderr
            assert mock_add.call_args[1]['format'] == DEFAULT_FORMAT

    def test_no_output_adds_no_handlers(self):
        with patch.object(logger, 'add') as mock_add:
            setup_logging(log_level="INFO", console_output=False, file_output=False)

            assert not mock_add.called

    def test_file_output_writes_log_file(self, temp_log_dir):
        """Test that file output creates a loreweave log file"""
        nested = temp_log_dir / "nested" / "logs"

        setup_logging(log_level="INFO", log_dir=nested, console_output=False, file_output=True)
        logger.info("round started")
        logger.complete()

        log_files = list(nested.glob("loreweave_*.log"))
        assert len(log_files) == 1

    def test_file_handler_options(self, temp_log_dir):
        with patch.object(logger, 'add') as mock_add:
            setup_logging(
                log_level="INFO",
                log_dir=temp_log_dir,
                console_output=False,
                file_output=True,
                rotation="50 MB",
                retention="7 days",
                compression="gz",
            )

            kwargs = mock_add.call_args[1]
            assert kwargs['rotation'] == "50 MB"
            assert kwargs['retention'] == "7 days"
            assert kwargs['compression'] == "gz"
            assert kwargs['enqueue'] is True

    def test_log_level_filtering(self, temp_log_dir):
        setup_logging(log_level="WARNING", console_output=False, file_output=True, log_dir=temp_log_dir)

        logger.info("info message")
        logger.warning("warning message")
        logger.complete()

        content = next(temp_log_dir.glob("*.log")).read_text()
        assert "info message" not in content
        assert "warning message" in content


class TestLogSessionEvent:
    """Test suite for log_session_event"""

    def test_attaches_session_context(self, captured):
        log_session_event(
            "Role assigned",
            session_id="group-42",
            phase="role_selection",
            round_number=0,
            player_id="1001",
            role="Warrior",
        )

        record = captured[-1]
        assert record["message"] == "Role assigned"
        assert record["level"].name == "INFO"
        assert record["extra"] == {
            "session": "group-42",
            "phase": "role_selection",
            "round": 0,
            "role": "Warrior",
            "player_id": "1001",
        }

    def test_player_id_optional(self, captured):
        log_session_event("Round completed", session_id="s1", phase="running", round_number=3)

        assert "player_id" not in captured[-1]["extra"]
        assert captured[-1]["extra"]["round"] == 3

    def test_custom_level(self, captured):
        log_session_event("Narration slow", session_id="s1", phase="running", level="warning")

        assert captured[-1]["level"].name == "WARNING"


class TestLogPhaseTransition:
    """Test suite for log_phase_transition"""

    def test_message_and_context(self, captured):
        log_phase_transition(
            from_phase="awaiting_players",
            to_phase="role_selection",
            session_id="s1",
            round_number=0,
            world_id="abc123",
        )

        record = captured[-1]
        assert record["message"] == "Phase transition: awaiting_players -> role_selection"
        assert record["extra"]["world_id"] == "abc123"
        assert record["extra"]["from_phase"] == "awaiting_players"

    def test_world_id_optional(self, captured):
        log_phase_transition("running", "completed", session_id="s1", round_number=4)

        assert "world_id" not in captured[-1]["extra"]
