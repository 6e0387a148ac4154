# ABOUTME: Session event log stored as a Redis list per session.
# ABOUTME: Publishes committed state changes (registrations, phase changes, round narration) for the chat layer.

import json
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from loguru import logger
from redis import Redis

from loreweave.models.events import EventType, SessionEvent


class EventLog:
    """
    Append-only log of session events.

    Events are written only after the state change they describe has been
    committed, so readers never see an event for a rolled-back transaction.
    """

    def __init__(self, redis_client: Redis, ttl_seconds: int = 86400):
        """
        Initialize event log.

        Args:
            redis_client: Redis connection for event storage
            ttl_seconds: Expiry applied to each session's list
        """
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def events_key(session_id: str) -> str:
        return f"loreweave:events:{session_id}"

    def publish(self, event: SessionEvent) -> SessionEvent:
        key = self.events_key(event.session_id)
        self.redis.rpush(key, json.dumps(event.model_dump(), default=str))
        self.redis.expire(key, self.ttl_seconds)

        logger.debug(f"Published {event.event_type} event {event.event_id} to {key}")
        return event

    def emit(
        self,
        event_type: EventType,
        session_id: str,
        world_id: str,
        round_number: int = 0,
        **payload: Any,
    ) -> SessionEvent:
        """
        Create and publish a new event.

        Convenience method for creating and publishing in one call.

        Args:
            event_type: Kind of event
            session_id: Session the event belongs to
            world_id: World identity at the time of the event
            round_number: Current round
            **payload: Event-specific fields

        Returns:
            Created SessionEvent
        """
        event = SessionEvent(
            event_id=f"evt_{uuid4().hex[:8]}",
            event_type=event_type,
            session_id=session_id,
            world_id=world_id,
            timestamp=datetime.now(UTC),
            round_number=round_number,
            payload=payload,
        )
        return self.publish(event)

    def recent(self, session_id: str, limit: int = 50) -> list[SessionEvent]:
        """
        Retrieve the most recent events for a session, oldest first.

        Args:
            session_id: Session to read
            limit: Maximum events to retrieve

        Returns:
            List of SessionEvent objects
        """
        raw_events = self.redis.lrange(self.events_key(session_id), -limit, -1)

        events = []
        for raw in raw_events:
            # Decode bytes if needed (decode_responses=False)
            text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            data = json.loads(text)
            data["timestamp"] = datetime.fromisoformat(data["timestamp"])
            events.append(SessionEvent(**data))

        return events
