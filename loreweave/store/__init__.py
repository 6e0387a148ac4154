"""Session storage backends"""

from .session_store import RedisSessionStore

__all__ = ["RedisSessionStore"]
