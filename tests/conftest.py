# ABOUTME: Shared pytest fixtures for loreweave tests.
# ABOUTME: Provides fakeredis-backed store, event log and engine fixtures plus mock Redis and narrators.

from unittest.mock import MagicMock

import fakeredis
import pytest

from loreweave.narration.base import NarrationRequest, NarrationResult
from loreweave.narration.fallback import StaticNarrator
from loreweave.narration.pipeline import NarrationPipeline
from loreweave.orchestration.event_log import EventLog
from loreweave.orchestration.session_engine import SessionEngine
from loreweave.store.session_store import RedisSessionStore

SESSION_ID = "group-42"


class RecordingNarrator:
    """Narrator that records requests and answers with scripted text"""

    def __init__(self, replies: list[str] | None = None):
        self.replies = list(replies or [])
        self.requests: list[NarrationRequest] = []

    def narrate(self, request: NarrationRequest) -> NarrationResult:
        self.requests.append(request)
        if self.replies:
            return NarrationResult.from_text(self.replies.pop(0))
        return NarrationResult(text=f"Narration for round {request.round_number}")


@pytest.fixture
def fake_server():
    """One in-memory Redis server shared by every client of a test"""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(fake_server):
    """fakeredis client with the production setting decode_responses=False"""
    client = fakeredis.FakeRedis(server=fake_server)
    yield client
    client.flushall()


@pytest.fixture
def store(redis_client):
    return RedisSessionStore(redis_client, max_retries=10)


@pytest.fixture
def event_log(redis_client):
    return EventLog(redis_client, ttl_seconds=3600)


@pytest.fixture
def narrator():
    return RecordingNarrator()


@pytest.fixture
def make_engine(fake_server):
    """
    Factory for engines that share one Redis server.

    Each engine gets its own client, so engines built in different threads
    behave like separate bot processes.
    """
    pipelines: list[NarrationPipeline] = []

    def _make(narrator=None, timeout_seconds: float = 5.0) -> SessionEngine:
        client = fakeredis.FakeRedis(server=fake_server)
        pipeline = NarrationPipeline(narrator or StaticNarrator(), timeout_seconds=timeout_seconds)
        pipelines.append(pipeline)
        return SessionEngine(
            store=RedisSessionStore(client, max_retries=20),
            narration=pipeline,
            events=EventLog(client, ttl_seconds=3600),
            session_id=SESSION_ID,
        )

    yield _make

    for pipeline in pipelines:
        pipeline.close()


@pytest.fixture
def engine(make_engine, narrator):
    """Engine wired to the recording narrator"""
    return make_engine(narrator)


@pytest.fixture
def initialized_engine(engine):
    """Engine whose World is in AWAITING_PLAYERS with roster Warrior/Mage"""
    engine.initialize(
        roster=["Warrior", "Mage"],
        capacity=2,
        lore="A drowned kingdom beneath a violet sky.",
        rules="Keep every round under a hundred words.",
        choice_options=["X", "Y", "Z"],
    )
    return engine


@pytest.fixture
def running_engine(initialized_engine):
    """Engine whose World is RUNNING round 1 with Rogue (Warrior) and Shade (Mage)"""
    engine = initialized_engine
    engine.register("1001", "Rogue", "alice")
    engine.register("1002", "Shade", "bob")
    engine.assign_role("1001", "Warrior")
    engine.assign_role("1002", "Mage")
    return engine


@pytest.fixture
def mock_redis_client():
    """Mock Redis client for event log unit tests"""
    redis = MagicMock()

    redis.rpush = MagicMock(return_value=1)
    redis.lrange = MagicMock(return_value=[])
    redis.expire = MagicMock(return_value=True)
    redis.delete = MagicMock(return_value=1)

    return redis
