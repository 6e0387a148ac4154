# ABOUTME: Exception definitions for session engine errors.
# ABOUTME: Defines the recoverable business-rule errors raised by SessionEngine and infrastructure errors from the store.


class SessionError(Exception):
    """Base class for recoverable session errors surfaced to the originating actor"""

    @property
    def error_type(self) -> str:
        return type(self).__name__


class AlreadyInitialized(SessionError):
    """Raised when setup is attempted on a World that has left SETUP"""

    pass


class IncompleteSetup(SessionError):
    """Raised when roster, lore, rules or capacity are missing or invalid"""

    pass


class RegistrationClosed(SessionError):
    """Raised when a player tries to join outside AWAITING_PLAYERS"""

    pass


class InvalidCharacterName(SessionError):
    """Raised when a character name is blank or too long"""

    pass


class NameTaken(SessionError):
    """Raised when a character name is already used (case-insensitive)"""

    pass


class CapacityReached(SessionError):
    """Raised when the World already holds `capacity` players"""

    def __init__(self, message: str, players: list[str] | None = None):
        super().__init__(message)
        self.players = players or []


class NotRegistered(SessionError):
    """Raised when the player has no Player record in the World"""

    pass


class RoleAlreadyChosen(SessionError):
    """Raised when the player already holds a role"""

    pass


class RoleUnavailable(SessionError):
    """Raised when the role is taken or not on the roster"""

    pass


class InvalidChoice(SessionError):
    """Raised when a round choice is outside the choice alphabet"""

    def __init__(self, message: str, options: list[str] | None = None):
        super().__init__(message)
        self.options = options or []


class DuplicateSubmission(SessionError):
    """Raised when a player submits twice in the same round"""

    pass


class WrongPhase(SessionError):
    """Raised when an operation is not allowed in the current phase"""

    pass


class WorldNotFound(SessionError):
    """Raised when no World exists, or the World was replaced by a reset"""

    pass


class InvalidPhaseTransition(Exception):
    """Raised when attempting a transition missing from the phase table"""

    pass


class StoreConflict(Exception):
    """Raised when a store transaction keeps conflicting after all retries"""

    pass


class NarrationFailed(Exception):
    """Raised by narrators when text generation fails"""

    pass
