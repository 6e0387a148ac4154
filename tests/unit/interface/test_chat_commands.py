# ABOUTME: Unit tests for chat command parsing and the chat command handler.
# ABOUTME: Tests command syntax, admin/private scoping and a full game driven through chat messages.

from unittest.mock import patch

import pytest

from loreweave.interface.chat_commands import (
    ChatCommandHandler,
    ChatCommandParser,
    ChatCommandType,
    ChatMessage,
    InvalidCommandError,
)
from loreweave.orchestration.exceptions import StoreConflict, WorldNotFound

ADMIN_CHAT = "-100200"
GROUP_CHAT = "-100300"

ROLE_PROMPT = "Choose your role:\n1. WARRIOR (HUMAN)\n2. MAGE (ELF)"


def admin(text: str) -> ChatMessage:
    return ChatMessage(chat_id=ADMIN_CHAT, chat_type="group", user_id="1", text=text)


def dm(user_id: str, text: str, username: str | None = None) -> ChatMessage:
    return ChatMessage(
        chat_id=user_id,
        chat_type="private",
        user_id=user_id,
        text=text,
        username=username,
    )


@pytest.fixture
def handler(engine):
    return ChatCommandHandler(engine, admin_chat_id=ADMIN_CHAT)


@pytest.fixture
def ready_handler(handler):
    """Handler whose World accepts players (roles WARRIOR and MAGE)"""
    for text in ["/init", "/lore A drowned kingdom.", "/rules Be brief.", f"/roles {ROLE_PROMPT}", "/done"]:
        assert handler.handle(admin(text))["success"] is True
    return handler


class TestChatCommandParser:
    """Test command parsing with various formats"""

    def test_plain_text_is_name(self):
        result = ChatCommandParser().parse("  Rogue the Bold ")

        assert result.command_type == ChatCommandType.NAME
        assert result.args["name"] == "Rogue the Bold"

    def test_parse_role(self):
        result = ChatCommandParser().parse("/role The Hunter")

        assert result.command_type == ChatCommandType.ROLE
        assert result.args["role"] == "The Hunter"

    def test_parse_choose(self):
        result = ChatCommandParser().parse("/choose b")

        assert result.command_type == ChatCommandType.CHOOSE
        assert result.args["choice"] == "b"

    def test_bot_suffix_is_stripped(self):
        result = ChatCommandParser().parse("/start@LoreBot")

        assert result.command_type == ChatCommandType.START

    def test_multiline_roles(self):
        result = ChatCommandParser().parse(f"/roles {ROLE_PROMPT}")

        assert result.command_type == ChatCommandType.ROLES
        assert result.args["text"] == ROLE_PROMPT

    def test_done_without_capacity(self):
        result = ChatCommandParser().parse("/done")

        assert result.command_type == ChatCommandType.DONE
        assert result.args == {}

    def test_done_with_capacity(self):
        assert ChatCommandParser().parse("/done 3").args == {"capacity": 3}

    def test_done_with_bad_capacity(self):
        with pytest.raises(InvalidCommandError, match="Usage"):
            ChatCommandParser().parse("/done many")

    @pytest.mark.parametrize("text", ["/role", "/choose  ", "/lore"])
    def test_missing_argument(self, text):
        with pytest.raises(InvalidCommandError, match="Usage"):
            ChatCommandParser().parse(text)

    def test_unknown_command(self):
        with pytest.raises(InvalidCommandError, match="Unknown command: /dance"):
            ChatCommandParser().parse("/dance wildly")

    def test_empty_message(self):
        with pytest.raises(InvalidCommandError):
            ChatCommandParser().parse("   ")

    def test_commands_are_case_insensitive(self):
        assert ChatCommandParser().parse("/STATUS").command_type == ChatCommandType.STATUS


class TestScoping:
    """Test admin-chat and private-chat restrictions"""

    def test_admin_command_outside_admin_chat_is_ignored(self, handler):
        message = ChatMessage(chat_id=GROUP_CHAT, chat_type="group", user_id="7", text="/init")

        result = handler.handle(message)

        assert result["success"] is False
        assert result["ignored"] is True
        with pytest.raises(WorldNotFound):
            handler.engine.status()

    def test_admin_commands_allowed_anywhere_without_admin_chat(self, engine):
        handler = ChatCommandHandler(engine, admin_chat_id=None)

        result = handler.handle(ChatMessage(chat_id=GROUP_CHAT, chat_type="group", user_id="7", text="/init"))

        assert result["success"] is True

    def test_player_command_in_group_is_ignored(self, ready_handler):
        message = ChatMessage(chat_id=GROUP_CHAT, chat_type="group", user_id="1001", text="/start")

        result = ready_handler.handle(message)

        assert result["ignored"] is True
        assert ready_handler.engine.is_awaiting_name("1001") is False

    def test_status_works_in_group(self, ready_handler):
        message = ChatMessage(chat_id=GROUP_CHAT, chat_type="group", user_id="7", text="/status")

        result = ready_handler.handle(message)

        assert result["success"] is True
        assert "Phase: awaiting_players" in result["reply"]

    def test_unrequested_name_is_ignored(self, ready_handler):
        result = ready_handler.handle(dm("1001", "Rogue"))

        assert result["ignored"] is True
        assert ready_handler.engine.status().players == []


class TestSetupCommands:
    """Test the admin setup flow"""

    def test_done_lists_roles(self, ready_handler):
        status = ready_handler.engine.status()

        assert status.roster == ["WARRIOR", "MAGE"]
        assert status.capacity == 2

    def test_done_reply(self, handler):
        for text in ["/init", "/lore Lore.", "/rules Rules.", f"/roles {ROLE_PROMPT}"]:
            handler.handle(admin(text))

        result = handler.handle(admin("/done 1"))

        assert result["success"] is True
        assert "1. WARRIOR\n2. MAGE" in result["reply"]
        assert result["status"]["capacity"] == 1

    def test_done_without_roles_reports_error(self, handler):
        for text in ["/init", "/lore Lore.", "/rules Rules.", "/roles everyone is a cat"]:
            handler.handle(admin(text))

        result = handler.handle(admin("/done"))

        assert result["success"] is False
        assert result["error_type"] == "IncompleteSetup"

    def test_init_twice(self, ready_handler):
        result = ready_handler.handle(admin("/init"))

        assert result["error_type"] == "AlreadyInitialized"

    def test_reset(self, ready_handler):
        result = ready_handler.handle(admin("/reset"))

        assert result["success"] is True
        assert result["status"]["phase"] == "setup"

    def test_invalid_command_result(self, handler):
        result = handler.handle(admin("/frobnicate"))

        assert result == {
            "success": False,
            "error": "Unknown command: /frobnicate",
            "error_type": "InvalidCommand",
        }


class TestGameThroughChat:
    """Test a complete game driven by chat messages"""

    def test_full_game(self, ready_handler):
        h = ready_handler

        assert h.handle(dm("1001", "/start", "alice"))["reply"] == "Enter your character name:"
        assert h.handle(dm("1001", "Rogue"))["success"] is True

        h.handle(dm("1002", "/start", "bob"))
        taken = h.handle(dm("1002", "rogue"))
        assert taken["error_type"] == "NameTaken"

        joined = h.handle(dm("1002", "Shade"))
        assert "All seats are filled" in joined["reply"]

        assert h.handle(dm("1001", "/role warrior"))["reply"] == "You are now WARRIOR."
        clash = h.handle(dm("1002", "/role WARRIOR"))
        assert clash["error_type"] == "RoleUnavailable"

        started = h.handle(dm("1002", "/role mage"))
        assert started["assignment"]["opening"] is not None
        assert started["assignment"]["opening"]["narration"] in started["reply"]

        waiting = h.handle(dm("1001", "/choose a"))
        assert waiting["reply"] == "Choice recorded for round 1. Waiting for 1 more."

        bad = h.handle(dm("1002", "/choose Q"))
        assert bad["error_type"] == "InvalidChoice"
        assert bad["options"] == ["A", "B", "C"]

        closed = h.handle(dm("1002", "/choose b"))
        assert closed["ack"]["outcome"]["round_number"] == 1
        assert closed["reply"] == closed["ack"]["outcome"]["narration"]
        assert h.engine.status().current_round == 2

        ended = h.handle(admin("/end"))
        assert ended["status"]["phase"] == "completed"

    def test_start_twice_reports_character(self, ready_handler):
        ready_handler.handle(dm("1001", "/start"))
        ready_handler.handle(dm("1001", "Rogue"))

        result = ready_handler.handle(dm("1001", "/start"))

        assert result["reply"] == "You are already playing Rogue."

    def test_start_after_registration_closed(self, ready_handler):
        for user, name in [("1001", "Rogue"), ("1002", "Shade")]:
            ready_handler.handle(dm(user, "/start"))
            ready_handler.handle(dm(user, name))

        result = ready_handler.handle(dm("1003", "/start"))

        assert result["success"] is False
        assert result["error_type"] == "RegistrationClosed"

    def test_display_name_falls_back_to_first_name(self):
        message = ChatMessage(chat_id="1", chat_type="private", user_id="1", text="x", first_name="Ada")

        assert message.display_name == "Ada"

    def test_status_lists_open_roles_during_selection(self, ready_handler):
        for user, name in [("1001", "Rogue"), ("1002", "Shade")]:
            ready_handler.handle(dm(user, "/start"))
            ready_handler.handle(dm(user, name))
        ready_handler.handle(dm("1001", "/role warrior"))

        result = ready_handler.handle(admin("/status"))

        assert result["reply"].endswith("Roles still open: MAGE")
        assert result["status"]["available_roles"] == ["MAGE"]

    def test_busy_store_becomes_error_result(self, ready_handler):
        """Test exhausted store retries come back as a result, not an exception"""
        ready_handler.handle(dm("1001", "/start"))

        with patch.object(
            ready_handler.engine, "register", side_effect=StoreConflict("Session 'group-42' is too busy, try again")
        ):
            result = ready_handler.handle(dm("1001", "Rogue"))

        assert result["success"] is False
        assert result["error_type"] == "StoreConflict"
        assert result["command_type"] == ChatCommandType.NAME
