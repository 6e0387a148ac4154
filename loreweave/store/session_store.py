# ABOUTME: Redis-backed session store holding one World document per session with optimistic transactions.
# ABOUTME: Uses WATCH/MULTI/EXEC compare-and-commit, retried with tenacity on write collisions.

from collections.abc import Callable
from typing import TypeVar

from loguru import logger
from redis import Redis
from redis.exceptions import WatchError
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from loreweave.models.world import World
from loreweave.orchestration.exceptions import StoreConflict, WorldNotFound

T = TypeVar("T")

KEY_PREFIX = "loreweave"


def _decode(raw: bytes | str | None) -> str | None:
    # Decode bytes if needed (decode_responses=False)
    if raw is None:
        return None
    return raw.decode("utf-8") if isinstance(raw, bytes) else raw


def _log_conflict(retry_state: RetryCallState) -> None:
    logger.debug(
        f"Store transaction conflict, retrying (attempt {retry_state.attempt_number})"
    )


class RedisSessionStore:
    """
    Durable storage for World records.

    Layout:
    - loreweave:session:{session_id} -> current world_id
    - loreweave:world:{world_id} -> World JSON document (players nested)

    A reset points the session at a brand new world_id, so any operation
    that started against the old World fails with WorldNotFound instead of
    writing into the fresh one.
    """

    def __init__(self, redis_client: Redis, max_retries: int = 10):
        """
        Initialize session store.

        Args:
            redis_client: Redis connection (decode_responses may be either)
            max_retries: Attempts before a conflicting transaction gives up
        """
        self.redis = redis_client
        self.max_retries = max_retries

    @staticmethod
    def session_key(session_id: str) -> str:
        return f"{KEY_PREFIX}:session:{session_id}"

    @staticmethod
    def world_key(world_id: str) -> str:
        return f"{KEY_PREFIX}:world:{world_id}"

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_random(min=0, max=0.01),
            retry=retry_if_exception_type(WatchError),
            before_sleep=_log_conflict,
        )

    def load(self, session_id: str) -> World:
        """
        Read the current World for a session.

        Raises:
            WorldNotFound: If the session has no World
        """
        world_id = _decode(self.redis.get(self.session_key(session_id)))
        if world_id is None:
            raise WorldNotFound(f"No world for session '{session_id}'")

        raw = _decode(self.redis.get(self.world_key(world_id)))
        if raw is None:
            raise WorldNotFound(f"World {world_id} no longer exists")

        return World.model_validate_json(raw)

    def transact(
        self,
        session_id: str,
        mutate: Callable[[World], T],
        create: Callable[[], World] | None = None,
        world_id: str | None = None,
    ) -> T:
        """
        Run `mutate` against the session's World as one atomic transaction.

        `mutate` receives the World, changes it in place and returns an
        outcome. Exceptions raised by `mutate` abort without writing. When
        another writer commits between the read and EXEC, the whole
        read-mutate-commit cycle is retried.

        Args:
            session_id: Session whose World is mutated
            mutate: Callback applied to the loaded World
            create: Optional factory used when the session has no World
            world_id: Expected world identity; finding any other World
                raises WorldNotFound

        Returns:
            Whatever `mutate` returned for the committed attempt

        Raises:
            WorldNotFound: If no World exists (and no factory), or the World
                seen by the first attempt was replaced meanwhile
            StoreConflict: If every attempt hit a write collision
        """
        pinned: list[str] = [world_id] if world_id else []

        try:
            for attempt in self._retrying():
                with attempt:
                    return self._run_once(session_id, mutate, create, pinned)
        except RetryError as e:
            logger.error(
                f"Store transaction on session '{session_id}' failed after "
                f"{self.max_retries} attempts"
            )
            raise StoreConflict(
                f"Session '{session_id}' is too busy, try again"
            ) from e

        raise StoreConflict(f"Session '{session_id}' transaction did not run")

    def _run_once(
        self,
        session_id: str,
        mutate: Callable[[World], T],
        create: Callable[[], World] | None,
        pinned: list[str],
    ) -> T:
        session_key = self.session_key(session_id)

        with self.redis.pipeline() as pipe:
            pipe.watch(session_key)
            world_id = _decode(pipe.get(session_key))

            original: str | None = None
            if world_id is None:
                if pinned or create is None:
                    raise WorldNotFound(f"No world for session '{session_id}'")
                world = create()
            else:
                if pinned and world_id != pinned[0]:
                    raise WorldNotFound(
                        f"World {pinned[0]} was reset while the operation was in flight"
                    )
                pipe.watch(self.world_key(world_id))
                original = _decode(pipe.get(self.world_key(world_id)))
                if original is None:
                    raise WorldNotFound(f"World {world_id} no longer exists")
                world = World.model_validate_json(original)
                if not pinned:
                    pinned.append(world_id)

            outcome = mutate(world)

            payload = world.model_dump_json()
            if payload == original:
                return outcome
            world.touch()
            payload = world.model_dump_json()

            pipe.multi()
            pipe.set(self.world_key(world.world_id), payload)
            if world_id is None:
                pipe.set(session_key, world.world_id)
            pipe.execute()

        return outcome

    def replace(self, session_id: str, world: World) -> World:
        """
        Atomically discard the session's World (if any) and install `world`.

        Args:
            session_id: Session to reset
            world: Fresh World with a new world_id

        Returns:
            The installed World
        """
        session_key = self.session_key(session_id)

        try:
            for attempt in self._retrying():
                with attempt:
                    with self.redis.pipeline() as pipe:
                        pipe.watch(session_key)
                        old_id = _decode(pipe.get(session_key))
                        pipe.multi()
                        if old_id is not None:
                            pipe.delete(self.world_key(old_id))
                        pipe.set(self.world_key(world.world_id), world.model_dump_json())
                        pipe.set(session_key, world.world_id)
                        pipe.execute()
        except RetryError as e:
            raise StoreConflict(f"Session '{session_id}' reset kept conflicting") from e

        logger.info(
            f"Session '{session_id}' now points at world {world.world_id} (replaced {old_id})"
        )
        return world
