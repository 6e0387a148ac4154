# ABOUTME: Chat command parsing and dispatch from an upstream chat platform to the SessionEngine.
# ABOUTME: Enforces admin-chat and private-chat scoping and turns session errors into result dicts.

import re
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from loguru import logger

from loreweave.orchestration.exceptions import (
    CapacityReached,
    InvalidChoice,
    SessionError,
    StoreConflict,
)
from loreweave.orchestration.session_engine import SessionEngine


class InvalidCommandError(Exception):
    """Raised when a command cannot be parsed"""
    pass


class ChatCommandType(str, Enum):
    """Commands understood by the chat layer"""
    INIT = "init"
    LORE = "lore"
    RULES = "rules"
    ROLES = "roles"
    DONE = "done"
    RESET = "reset"
    END = "end"
    START = "start"
    ROLE = "role"
    CHOOSE = "choose"
    STATUS = "status"
    NAME = "name"  # Plain text while a character name is owed


ADMIN_COMMANDS = frozenset({
    ChatCommandType.INIT,
    ChatCommandType.LORE,
    ChatCommandType.RULES,
    ChatCommandType.ROLES,
    ChatCommandType.DONE,
    ChatCommandType.RESET,
    ChatCommandType.END,
})

PRIVATE_COMMANDS = frozenset({
    ChatCommandType.START,
    ChatCommandType.ROLE,
    ChatCommandType.CHOOSE,
    ChatCommandType.NAME,
})


@dataclass
class ChatMessage:
    """One inbound message as delivered by the chat platform"""
    chat_id: str
    chat_type: Literal["private", "group"]
    user_id: str
    text: str
    username: str | None = None
    first_name: str | None = None

    @property
    def display_name(self) -> str:
        return self.username or self.first_name or self.user_id


@dataclass
class ParsedCommand:
    """Parsed command with type and arguments"""
    command_type: ChatCommandType
    args: dict
    raw_input: str


class ChatCommandParser:
    """
    Parser for chat input.

    Supports:
    - Slash commands: "/start", "/role Mage", "/choose B", "/done 3"
    - Bot-suffixed commands: "/start@LoreBot"
    - Plain text, treated as a character name
    """

    COMMAND_PATTERNS = {
        ChatCommandType.INIT: r'^/init$',
        ChatCommandType.LORE: r'^/lore(?:\s+(.+))?$',
        ChatCommandType.RULES: r'^/rules(?:\s+(.+))?$',
        ChatCommandType.ROLES: r'^/roles(?:\s+(.+))?$',
        ChatCommandType.DONE: r'^/done(?:\s+(.+))?$',
        ChatCommandType.RESET: r'^/reset$',
        ChatCommandType.END: r'^/end$',
        ChatCommandType.START: r'^/start$',
        ChatCommandType.ROLE: r'^/role(?:\s+(.+))?$',
        ChatCommandType.CHOOSE: r'^/choose(?:\s+(.+))?$',
        ChatCommandType.STATUS: r'^/status$',
    }

    REQUIRED_ARGS = {
        ChatCommandType.LORE: "text",
        ChatCommandType.RULES: "text",
        ChatCommandType.ROLES: "text",
        ChatCommandType.ROLE: "role",
        ChatCommandType.CHOOSE: "choice",
    }

    def parse(self, user_input: str) -> ParsedCommand:
        """
        Parse chat input into a structured command.

        Args:
            user_input: Raw message text

        Returns:
            ParsedCommand with type and arguments

        Raises:
            InvalidCommandError: If the input is empty, an unknown slash
                command, or lacks a required argument
        """
        if not user_input or not user_input.strip():
            raise InvalidCommandError("Cannot parse empty message")

        text = user_input.strip()
        # "/start@SomeBot args" -> "/start args"
        text = re.sub(r'^(/\w+)@\w+', r'\1', text)

        if not text.startswith("/"):
            return ParsedCommand(
                command_type=ChatCommandType.NAME,
                args={"name": text},
                raw_input=user_input
            )

        for cmd_type, pattern in self.COMMAND_PATTERNS.items():
            match = re.match(pattern, text, re.IGNORECASE | re.DOTALL)
            if match:
                return self._parse_matched_command(cmd_type, match, user_input)

        raise InvalidCommandError(f"Unknown command: {text.split()[0]}")

    def _parse_matched_command(
        self,
        cmd_type: ChatCommandType,
        match: re.Match,
        raw_input: str
    ) -> ParsedCommand:
        """Parse matched command and extract arguments"""
        value = match.group(1).strip() if match.groups() and match.group(1) else None

        if cmd_type in self.REQUIRED_ARGS:
            if not value:
                arg_name = self.REQUIRED_ARGS[cmd_type]
                raise InvalidCommandError(f"Usage: /{cmd_type.value} <{arg_name}>")
            return ParsedCommand(
                command_type=cmd_type,
                args={self.REQUIRED_ARGS[cmd_type]: value},
                raw_input=raw_input
            )

        if cmd_type == ChatCommandType.DONE:
            if value is None:
                return ParsedCommand(command_type=cmd_type, args={}, raw_input=raw_input)
            if not value.isdigit():
                raise InvalidCommandError("Usage: /done [capacity]")
            return ParsedCommand(
                command_type=cmd_type,
                args={"capacity": int(value)},
                raw_input=raw_input
            )

        return ParsedCommand(command_type=cmd_type, args={}, raw_input=raw_input)


class ChatCommandHandler:
    """
    Routes chat messages to SessionEngine operations.

    Handles:
    - Admin scoping (setup commands only from the admin chat)
    - Private scoping (joining, role picks and choices only in DMs)
    - Durable name prompts (/start then plain-text name)
    - Error conversion to result dicts
    """

    def __init__(self, engine: SessionEngine, admin_chat_id: str | None = None):
        """
        Initialize chat command handler.

        Args:
            engine: Session engine for the chat group
            admin_chat_id: Chat allowed to run admin commands (None = any chat)
        """
        self.engine = engine
        self.admin_chat_id = admin_chat_id
        self.parser = ChatCommandParser()

    def handle(self, message: ChatMessage) -> dict:
        """
        Parse and execute a chat message.

        Args:
            message: Inbound chat message

        Returns:
            Result dict with success, command_type and reply (or error,
            error_type); ignored messages carry "ignored": True
        """
        try:
            parsed = self.parser.parse(message.text)
        except InvalidCommandError as e:
            return {
                "success": False,
                "error": str(e),
                "error_type": "InvalidCommand"
            }

        if parsed.command_type in ADMIN_COMMANDS and not self._is_admin_chat(message):
            return self._ignored(parsed, "admin command outside the admin chat")
        if parsed.command_type in PRIVATE_COMMANDS and message.chat_type != "private":
            return self._ignored(parsed, "player command outside a private chat")

        try:
            return self._dispatch(parsed, message)
        except SessionError as e:
            logger.info(
                f"Command {parsed.command_type.value} from {message.user_id} "
                f"rejected: {e.error_type}: {e}"
            )
            return self._error_result(parsed, e)
        except StoreConflict as e:
            logger.warning(f"Command {parsed.command_type.value} from {message.user_id} gave up: {e}")
            return {
                "success": False,
                "command_type": parsed.command_type,
                "error": str(e),
                "error_type": "StoreConflict"
            }

    def _is_admin_chat(self, message: ChatMessage) -> bool:
        return self.admin_chat_id is None or str(message.chat_id) == str(self.admin_chat_id)

    def _ignored(self, parsed: ParsedCommand, reason: str) -> dict:
        logger.debug(f"Ignoring {parsed.command_type.value}: {reason}")
        return {
            "success": False,
            "ignored": True,
            "command_type": parsed.command_type,
            "error": reason,
            "error_type": "Ignored"
        }

    def _error_result(self, parsed: ParsedCommand, error: SessionError) -> dict:
        result = {
            "success": False,
            "command_type": parsed.command_type,
            "error": str(error),
            "error_type": error.error_type,
        }
        if isinstance(error, CapacityReached):
            result["players"] = error.players
        if isinstance(error, InvalidChoice):
            result["options"] = error.options
        return result

    def _dispatch(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        handlers = {
            ChatCommandType.INIT: self._handle_init,
            ChatCommandType.LORE: self._handle_stage,
            ChatCommandType.RULES: self._handle_stage,
            ChatCommandType.ROLES: self._handle_stage,
            ChatCommandType.DONE: self._handle_done,
            ChatCommandType.RESET: self._handle_reset,
            ChatCommandType.END: self._handle_end,
            ChatCommandType.START: self._handle_start,
            ChatCommandType.NAME: self._handle_name,
            ChatCommandType.ROLE: self._handle_role,
            ChatCommandType.CHOOSE: self._handle_choose,
            ChatCommandType.STATUS: self._handle_status,
        }
        return handlers[parsed.command_type](parsed, message)

    def _ok(self, parsed: ParsedCommand, reply: str, **extra) -> dict:
        return {
            "success": True,
            "command_type": parsed.command_type,
            "reply": reply,
            **extra
        }

    # --- Admin commands ---

    def _handle_init(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        status = self.engine.open_setup()
        return self._ok(
            parsed,
            "World initialized. Send /lore, /rules and /roles, then /done.",
            status=status.model_dump()
        )

    def _handle_stage(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        field = {
            ChatCommandType.LORE: "lore",
            ChatCommandType.RULES: "rules",
            ChatCommandType.ROLES: "role_prompt",
        }[parsed.command_type]
        self.engine.stage_setup(**{field: parsed.args["text"]})
        return self._ok(parsed, f"Saved {parsed.command_type.value}.")

    def _handle_done(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        status = self.engine.finalize_setup(capacity=parsed.args.get("capacity"))
        roles = "\n".join(f"{i}. {role}" for i, role in enumerate(status.roster, start=1))
        return self._ok(
            parsed,
            f"Available roles:\n{roles}\nPlayers can now send /start in a private chat.",
            status=status.model_dump()
        )

    def _handle_reset(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        status = self.engine.reset()
        return self._ok(parsed, "World reset. Send /lore, /rules and /roles, then /done.",
                        status=status.model_dump())

    def _handle_end(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        status = self.engine.end_story()
        return self._ok(parsed, "The story has ended.", status=status.model_dump())

    # --- Player commands ---

    def _handle_start(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        registration = self.engine.request_join(str(message.user_id), message.display_name)
        if registration.status == "already_registered" and registration.player is not None:
            return self._ok(
                parsed,
                f"You are already playing {registration.player.character_name}.",
                registration=registration.model_dump()
            )
        return self._ok(parsed, "Enter your character name:",
                        registration=registration.model_dump())

    def _handle_name(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        if not self.engine.is_awaiting_name(str(message.user_id)):
            return self._ignored(parsed, "no character name was requested")

        registration = self.engine.register(
            str(message.user_id), parsed.args["name"], message.display_name
        )
        if registration.status == "already_registered":
            reply = "You are already registered."
        elif registration.phase_changed:
            reply = "Name registered. All seats are filled: pick a role with /role <name>."
        else:
            reply = "Name registered. Role selection will begin soon."
        return self._ok(parsed, reply, registration=registration.model_dump())

    def _handle_role(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        assignment = self.engine.assign_role(str(message.user_id), parsed.args["role"])
        reply = f"You are now {assignment.role}."
        if assignment.opening is not None:
            reply += f"\n\n{assignment.opening.narration}"
        return self._ok(parsed, reply, assignment=assignment.model_dump())

    def _handle_choose(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        ack = self.engine.submit_choice(str(message.user_id), parsed.args["choice"])
        if ack.outcome is not None:
            reply = ack.outcome.narration
        else:
            reply = f"Choice recorded for round {ack.round_number}. Waiting for {len(ack.awaiting)} more."
        return self._ok(parsed, reply, ack=ack.model_dump())

    def _handle_status(self, parsed: ParsedCommand, message: ChatMessage) -> dict:
        status = self.engine.status()
        reply = (
            f"Phase: {status.phase} | Round: {status.current_round} | "
            f"Players: {len(status.players)}/{status.capacity} | "
            f"Roles taken: {', '.join(status.roles_taken) or 'none'}"
        )
        if status.phase == "role_selection":
            reply += f"\nRoles still open: {', '.join(status.available_roles)}"
        return self._ok(parsed, reply, status=status.model_dump())
