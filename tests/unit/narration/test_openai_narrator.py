# ABOUTME: Unit tests for the OpenAI-backed narrator with a mocked client.
# ABOUTME: Tests prompt assembly, end marker handling and error wrapping.

from unittest.mock import MagicMock

import pytest

from loreweave.narration.base import END_MARKER, NarrationRequest
from loreweave.narration.openai_narrator import OpenAINarrator
from loreweave.orchestration.exceptions import NarrationFailed


def _response(content):
    return MagicMock(
        choices=[MagicMock(message=MagicMock(content=content))],
        model="gpt-4o",
        usage=MagicMock(total_tokens=150, prompt_tokens=75, completion_tokens=75),
    )


@pytest.fixture
def mock_openai_client():
    """Mock OpenAI client returning a fixed narration"""
    client = MagicMock()
    client.chat.completions.create = MagicMock(return_value=_response("The fog lifts."))
    return client


@pytest.fixture
def request_round_two():
    return NarrationRequest(
        session_id="s1",
        world_lore="A city of bridges.",
        rules_text="Answer in second person.",
        world_state="Fog rolls in.",
        choices={"Rogue": "A", "Shade": "B"},
        round_number=2,
    )


class TestOpenAINarrator:
    """Test suite for OpenAINarrator"""

    def test_narrate_returns_text(self, mock_openai_client, request_round_two):
        narrator = OpenAINarrator(mock_openai_client, model="gpt-4o-mini")

        result = narrator.narrate(request_round_two)

        assert result.text == "The fog lifts."
        assert result.story_complete is False
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["timeout"] == 20.0

    def test_messages_carry_rules_lore_state_and_choices(self, mock_openai_client, request_round_two):
        narrator = OpenAINarrator(mock_openai_client)

        system, user = narrator.build_messages(request_round_two)

        assert system["role"] == "system"
        assert system["content"].startswith("Answer in second person.")
        assert END_MARKER in system["content"]
        assert "A city of bridges." in user["content"]
        assert "Fog rolls in." in user["content"]
        assert "CHOICES FOR ROUND 2" in user["content"]
        assert "- Rogue: A" in user["content"]

    def test_opening_messages(self, mock_openai_client):
        narrator = OpenAINarrator(mock_openai_client)

        _, user = narrator.build_messages(NarrationRequest(world_lore="A city of bridges."))

        assert "Open the story." in user["content"]
        assert "CURRENT WORLD STATE" not in user["content"]

    def test_end_marker_completes_story(self, mock_openai_client, request_round_two):
        mock_openai_client.chat.completions.create.return_value = _response(
            f"The bridges sink. {END_MARKER}"
        )
        narrator = OpenAINarrator(mock_openai_client)

        result = narrator.narrate(request_round_two)

        assert result.story_complete is True
        assert result.text == "The bridges sink."

    def test_none_content_is_empty_text(self, mock_openai_client, request_round_two):
        mock_openai_client.chat.completions.create.return_value = _response(None)

        result = OpenAINarrator(mock_openai_client).narrate(request_round_two)

        assert result.text == ""

    def test_api_error_raises_narration_failed(self, mock_openai_client, request_round_two):
        """Test non-transient errors are wrapped without retrying"""
        mock_openai_client.chat.completions.create.side_effect = ValueError("bad request")
        narrator = OpenAINarrator(mock_openai_client)

        with pytest.raises(NarrationFailed, match="bad request"):
            narrator.narrate(request_round_two)

        assert mock_openai_client.chat.completions.create.call_count == 1

    def test_deadline_caps_request_timeout(self, mock_openai_client, request_round_two):
        narrator = OpenAINarrator(mock_openai_client, request_timeout=20.0, deadline_seconds=5.0)

        narrator.narrate(request_round_two)

        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert 0 < kwargs["timeout"] <= 5.0

    def test_spent_deadline_stops_retrying(self, mock_openai_client, request_round_two):
        """Test a narration whose budget is gone fails without another request"""
        narrator = OpenAINarrator(mock_openai_client, deadline_seconds=0)

        with pytest.raises(NarrationFailed, match="deadline"):
            narrator.narrate(request_round_two)

        mock_openai_client.chat.completions.create.assert_not_called()
