# ABOUTME: SessionEngine: world state machine, player registry, role assignment and round barrier.
# ABOUTME: Every check-then-write runs as one atomic store transaction; narration happens between transactions.

from collections.abc import Callable
from typing import TypeVar

from loguru import logger

from loreweave.models.events import EventType
from loreweave.models.results import (
    Assignment,
    ChoiceAck,
    Registration,
    RoundOutcome,
    WorldStatus,
)
from loreweave.models.world import Player, RoundRecord, World, WorldPhase
from loreweave.narration.base import NarrationRequest
from loreweave.narration.pipeline import NarrationPipeline
from loreweave.orchestration.event_log import EventLog
from loreweave.orchestration.exceptions import (
    AlreadyInitialized,
    CapacityReached,
    DuplicateSubmission,
    IncompleteSetup,
    InvalidCharacterName,
    InvalidChoice,
    NameTaken,
    NotRegistered,
    RegistrationClosed,
    RoleAlreadyChosen,
    RoleUnavailable,
    WorldNotFound,
    WrongPhase,
)
from loreweave.orchestration.roster import (
    extract_roster,
    validate_choice_options,
    validate_roster,
)
from loreweave.store.session_store import RedisSessionStore
from loreweave.utils.logging import log_phase_transition, log_session_event

T = TypeVar("T")

SETUP_PHASES = (WorldPhase.SETUP, WorldPhase.FAILED_SETUP)
MAX_CHARACTER_NAME_LENGTH = 40


class SessionEngine:
    """
    Authoritative mutation protocol for one session's World.

    Handles:
    - Setup and the phase transition table (initialize, staged setup, reset)
    - Registration with case-insensitive name uniqueness and capacity
    - Race-free role assignment
    - The round barrier and narration with fallback

    Business-rule failures raise SessionError subclasses and leave the
    World unchanged.
    """

    def __init__(
        self,
        store: RedisSessionStore,
        narration: NarrationPipeline,
        events: EventLog | None = None,
        session_id: str = "main",
        default_choice_options: list[str] | None = None,
    ):
        """
        Initialize session engine.

        Args:
            store: Session store holding the World record
            narration: Timeout-bounded narration pipeline
            events: Optional event log for committed changes
            session_id: Session (chat group) this engine drives
            default_choice_options: Choice alphabet used when setup gives none
        """
        self.store = store
        self.narration = narration
        self.events = events
        self.session_id = session_id
        self.default_choice_options = default_choice_options or ["A", "B", "C"]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_world(self) -> World:
        return World(session_id=self.session_id)

    def _transact(
        self,
        mutate: Callable[[World], T],
        create: Callable[[], World] | None = None,
        world_id: str | None = None,
    ) -> tuple[T, World]:
        """Run `mutate` atomically and also return the committed World"""
        committed: dict[str, World] = {}

        def run(world: World) -> T:
            outcome = mutate(world)
            committed["world"] = world
            return outcome

        outcome = self.store.transact(
            self.session_id,
            run,
            create=create,
            world_id=world_id,
        )
        return outcome, committed["world"]

    def _emit(self, event_type: EventType, world: World, **payload) -> None:
        if self.events is not None:
            self.events.emit(
                event_type,
                session_id=self.session_id,
                world_id=world.world_id,
                round_number=world.current_round,
                **payload,
            )

    def _phase_changed(self, from_phase: WorldPhase, world: World) -> None:
        log_phase_transition(
            from_phase=from_phase.value,
            to_phase=world.phase.value,
            session_id=self.session_id,
            round_number=world.current_round,
            world_id=world.world_id,
        )
        self._emit(
            EventType.PHASE_CHANGED,
            world,
            from_phase=from_phase.value,
            to_phase=world.phase.value,
        )

    # ------------------------------------------------------------------
    # World State Machine
    # ------------------------------------------------------------------

    def status(self) -> WorldStatus:
        """
        Read-only snapshot of the session's World.

        Raises:
            WorldNotFound: If the session has no World
        """
        return WorldStatus.from_world(self.store.load(self.session_id))

    def current_phase(self) -> WorldPhase:
        return self.store.load(self.session_id).phase

    def open_setup(self) -> WorldStatus:
        """
        Create an empty World in SETUP.

        Raises:
            AlreadyInitialized: If the session already has a World
        """
        created: list[str] = []

        def factory() -> World:
            world = self._new_world()
            created.append(world.world_id)
            return world

        def mutate(world: World) -> None:
            # A retry may find a World another caller created meanwhile
            if not created or created[-1] != world.world_id:
                raise AlreadyInitialized(
                    f"World already exists in phase {world.phase.value}; reset it first"
                )

        _, world = self._transact(mutate, create=factory)
        logger.info(f"Opened world {world.world_id} for session '{self.session_id}'")
        self._emit(EventType.WORLD_OPENED, world)
        return WorldStatus.from_world(world)

    def stage_setup(
        self,
        lore: str | None = None,
        rules: str | None = None,
        role_prompt: str | None = None,
    ) -> WorldStatus:
        """
        Store setup texts on a World that is still being set up.

        A World in FAILED_SETUP moves back to SETUP.

        Raises:
            WorldNotFound: If no World was opened
            WrongPhase: If setup has already been finalized
        """

        def mutate(world: World) -> None:
            if world.phase not in SETUP_PHASES:
                raise WrongPhase(f"Setup is closed (phase {world.phase.value})")
            if lore is not None:
                world.world_lore = lore.strip()
            if rules is not None:
                world.rules_text = rules.strip()
            if role_prompt is not None:
                world.role_prompt = role_prompt.strip()
            if world.phase == WorldPhase.FAILED_SETUP:
                world.transition_to(WorldPhase.SETUP)

        _, world = self._transact(mutate)
        return WorldStatus.from_world(world)

    def finalize_setup(
        self,
        capacity: int | None = None,
        choice_options: list[str] | None = None,
    ) -> WorldStatus:
        """
        Extract the roster from the staged role prompt and open registration.

        Capacity defaults to the number of roles. When no roles can be
        extracted the World is moved to FAILED_SETUP before failing.

        Raises:
            WorldNotFound: If no World was opened
            AlreadyInitialized: If setup was already finalized
            IncompleteSetup: If roles, lore, rules or capacity are invalid
        """

        def mutate(world: World) -> bool:
            if world.phase not in SETUP_PHASES:
                raise AlreadyInitialized(
                    f"World already initialized (phase {world.phase.value})"
                )
            roster = extract_roster(world.role_prompt)
            if not roster:
                if world.phase == WorldPhase.SETUP:
                    world.transition_to(WorldPhase.FAILED_SETUP)
                return False
            self._apply_setup(
                world,
                roster=roster,
                capacity=capacity if capacity is not None else len(roster),
                lore=world.world_lore,
                rules=world.rules_text,
                choice_options=choice_options,
            )
            return True

        ok, world = self._transact(mutate)
        if not ok:
            logger.warning(f"No roles found in role prompt for session '{self.session_id}'")
            self._emit(EventType.SETUP_FAILED, world, reason="no roles detected")
            raise IncompleteSetup("No roles detected; check the role prompt format")

        self._setup_committed(world)
        return WorldStatus.from_world(world)

    def initialize(
        self,
        roster: list[str],
        capacity: int,
        lore: str,
        rules: str,
        choice_options: list[str] | None = None,
    ) -> WorldStatus:
        """
        Fix roster, capacity and narrative configuration; open registration.

        Creates the World if the session has none.

        Args:
            roster: Role names available for assignment
            capacity: Maximum number of players (1..len(roster))
            lore: World lore text
            rules: Rules text for the narrator
            choice_options: Round choice alphabet (default from settings)

        Returns:
            WorldStatus in AWAITING_PLAYERS

        Raises:
            AlreadyInitialized: If a World exists outside SETUP/FAILED_SETUP
            IncompleteSetup: If any setup input is missing or invalid
        """

        def mutate(world: World) -> None:
            if world.phase not in SETUP_PHASES:
                raise AlreadyInitialized(
                    f"World already initialized (phase {world.phase.value})"
                )
            self._apply_setup(world, roster, capacity, lore, rules, choice_options)

        _, world = self._transact(mutate, create=self._new_world)
        self._setup_committed(world)
        return WorldStatus.from_world(world)

    def _apply_setup(
        self,
        world: World,
        roster: list[str],
        capacity: int,
        lore: str,
        rules: str,
        choice_options: list[str] | None,
    ) -> None:
        cleaned = validate_roster(roster)
        options = validate_choice_options(choice_options or self.default_choice_options)

        if not lore or not lore.strip():
            raise IncompleteSetup("World lore is empty")
        if not rules or not rules.strip():
            raise IncompleteSetup("Rules text is empty")
        if capacity < 1 or capacity > len(cleaned):
            raise IncompleteSetup(
                f"Capacity must be between 1 and {len(cleaned)} (one role per player)"
            )

        world.roster = cleaned
        world.capacity = capacity
        world.world_lore = lore.strip()
        world.rules_text = rules.strip()
        world.choice_options = options
        world.players = {}
        world.roles_taken = []
        world.pending_names = {}
        world.current_round = 0
        world.round_roster = []
        world.round_choices = {}
        world.transition_to(WorldPhase.AWAITING_PLAYERS)

    def _setup_committed(self, world: World) -> None:
        log_phase_transition(
            from_phase=WorldPhase.SETUP.value,
            to_phase=world.phase.value,
            session_id=self.session_id,
            round_number=world.current_round,
            world_id=world.world_id,
        )
        self._emit(
            EventType.WORLD_INITIALIZED,
            world,
            roster=world.roster,
            capacity=world.capacity,
        )

    def reset(self) -> WorldStatus:
        """
        Discard the World and all Players; start over with a fresh SETUP World.

        The fresh World has a new identity, so in-flight operations on the
        old one fail with WorldNotFound.
        """
        world = self.store.replace(self.session_id, self._new_world())
        logger.warning(f"Session '{self.session_id}' reset to world {world.world_id}")
        self._emit(EventType.WORLD_RESET, world)
        return WorldStatus.from_world(world)

    def end_story(self) -> WorldStatus:
        """
        Admin end of the story: RUNNING -> COMPLETED.

        Raises:
            WrongPhase: If the story is not running
        """

        def mutate(world: World) -> None:
            if world.phase != WorldPhase.RUNNING:
                raise WrongPhase(f"Story is not running (phase {world.phase.value})")
            world.transition_to(WorldPhase.COMPLETED)

        _, world = self._transact(mutate)
        self._phase_changed(WorldPhase.RUNNING, world)
        self._emit(EventType.STORY_COMPLETED, world, reason="ended by admin")
        return WorldStatus.from_world(world)

    # ------------------------------------------------------------------
    # Player Registry
    # ------------------------------------------------------------------

    def request_join(self, player_id: str, display_name: str = "") -> Registration:
        """
        Record that a player wants to join and owes a character name.

        The pending flag lives on the World record, so it survives restarts.

        Raises:
            WorldNotFound: If no World exists
            RegistrationClosed: If the World is not accepting players
        """

        def mutate(world: World) -> Registration:
            existing = world.players.get(player_id)
            if existing is not None:
                return Registration(
                    player=existing, status="already_registered", phase=world.phase
                )
            if world.phase != WorldPhase.AWAITING_PLAYERS:
                raise RegistrationClosed(f"Game is not accepting players ({world.phase.value})")
            if world.is_full:
                raise CapacityReached(
                    "The game is full",
                    players=[p.character_name for p in world.players.values()],
                )
            world.pending_names[player_id] = display_name
            return Registration(status="awaiting_name", phase=world.phase)

        registration, _ = self._transact(mutate)
        return registration

    def is_awaiting_name(self, player_id: str) -> bool:
        try:
            world = self.store.load(self.session_id)
        except WorldNotFound:
            return False
        return world.phase == WorldPhase.AWAITING_PLAYERS and player_id in world.pending_names

    def register(
        self,
        player_id: str,
        character_name: str,
        display_name: str = "",
    ) -> Registration:
        """
        Register a player's character.

        Repeating the call for a registered player_id returns the existing
        Player with status "already_registered". The registration that fills
        the last seat also moves the World to ROLE_SELECTION, in the same
        transaction.

        Args:
            player_id: Stable external identity
            character_name: Character name, unique case-insensitively
            display_name: Platform handle (informational)

        Returns:
            Registration with the Player and whether the phase changed

        Raises:
            WorldNotFound: If no World exists
            RegistrationClosed: If the World is not in AWAITING_PLAYERS
            InvalidCharacterName: If the name is blank or too long
            NameTaken: If another character already uses the name
            CapacityReached: If the World is full (carries current players)
        """
        name = " ".join(character_name.split())

        def mutate(world: World) -> Registration:
            existing = world.players.get(player_id)
            if existing is not None:
                return Registration(
                    player=existing, status="already_registered", phase=world.phase
                )
            if world.phase != WorldPhase.AWAITING_PLAYERS:
                raise RegistrationClosed(f"Game is not accepting players ({world.phase.value})")
            if not name:
                raise InvalidCharacterName("Character name cannot be empty")
            if len(name) > MAX_CHARACTER_NAME_LENGTH:
                raise InvalidCharacterName(
                    f"Character name must be at most {MAX_CHARACTER_NAME_LENGTH} characters"
                )
            if world.find_player_by_character(name) is not None:
                raise NameTaken(f"Name '{name}' is already taken")
            if world.is_full:
                raise CapacityReached(
                    "The game is full",
                    players=[p.character_name for p in world.players.values()],
                )

            player = Player(
                player_id=player_id,
                display_name=display_name or world.pending_names.get(player_id, ""),
                character_name=name,
            )
            world.players[player_id] = player
            world.pending_names.pop(player_id, None)

            phase_changed = False
            if world.is_full:
                phase_changed = world.transition_to(WorldPhase.ROLE_SELECTION)

            return Registration(
                player=player,
                status="registered",
                phase=world.phase,
                phase_changed=phase_changed,
            )

        registration, world = self._transact(mutate)

        if registration.status == "registered" and registration.player is not None:
            log_session_event(
                "Player registered",
                session_id=self.session_id,
                phase=world.phase.value,
                player_id=player_id,
                character_name=registration.player.character_name,
            )
            self._emit(
                EventType.PLAYER_REGISTERED,
                world,
                player_id=player_id,
                display_name=registration.player.display_name,
                character_name=registration.player.character_name,
            )
            if registration.phase_changed:
                self._phase_changed(WorldPhase.AWAITING_PLAYERS, world)

        return registration

    # ------------------------------------------------------------------
    # Role Assignment
    # ------------------------------------------------------------------

    def assign_role(self, player_id: str, role_name: str) -> Assignment:
        """
        Assign a roster role to a player, atomically.

        Concurrent picks of the same role are serialized by the store: the
        loser's transaction is retried, re-reads the World and fails with
        RoleUnavailable. The pick that completes the assignments also starts
        the story (RUNNING, round 1) and triggers the opening narration.

        Raises:
            WorldNotFound: If no World exists
            WrongPhase: If the World is not in ROLE_SELECTION
            NotRegistered: If the player has no character
            RoleAlreadyChosen: If the player already holds a role
            RoleUnavailable: If the role is taken or not on the roster
        """

        def mutate(world: World) -> Assignment:
            if world.phase != WorldPhase.ROLE_SELECTION:
                raise WrongPhase(f"Roles cannot be chosen now ({world.phase.value})")
            player = world.players.get(player_id)
            if player is None:
                raise NotRegistered("You are not registered in this game")
            if player.role is not None:
                raise RoleAlreadyChosen(f"You already play {player.role}")

            role = world.match_role(role_name)
            if role is None:
                raise RoleUnavailable(f"'{role_name}' is not on the roster")
            if role in world.roles_taken:
                raise RoleUnavailable(f"{role} has already been taken")

            player.role = role
            world.roles_taken.append(role)

            phase_changed = False
            if world.all_roles_assigned:
                phase_changed = world.transition_to(WorldPhase.RUNNING)
                world.current_round = 1
                world.start_round()

            return Assignment(
                player_id=player_id,
                character_name=player.character_name,
                role=role,
                phase=world.phase,
                phase_changed=phase_changed,
            )

        assignment, world = self._transact(mutate)

        log_session_event(
            "Role assigned",
            session_id=self.session_id,
            phase=world.phase.value,
            round_number=world.current_round,
            player_id=player_id,
            role=assignment.role,
        )
        self._emit(
            EventType.ROLE_ASSIGNED,
            world,
            player_id=player_id,
            character_name=assignment.character_name,
            role=assignment.role,
        )

        if assignment.phase_changed:
            self._phase_changed(WorldPhase.ROLE_SELECTION, world)
            assignment.opening = self._open_story(world)

        return assignment

    # ------------------------------------------------------------------
    # Round Barrier
    # ------------------------------------------------------------------

    def submit_choice(self, player_id: str, choice: str) -> ChoiceAck:
        """
        Record a player's private choice for the current round.

        The submission that completes the round closes it: narration is
        requested (with timeout and fallback) and the World advances to the
        next round.

        Raises:
            WorldNotFound: If no World exists (or it was reset meanwhile)
            WrongPhase: If the story is not running
            NotRegistered: If the player has no character
            InvalidChoice: If the choice is outside the choice alphabet
            DuplicateSubmission: If the player already chose this round
        """
        label = choice.strip().upper()

        def mutate(world: World) -> ChoiceAck:
            if world.phase != WorldPhase.RUNNING:
                raise WrongPhase(f"No round is open ({world.phase.value})")
            if not world.story_opened:
                raise WrongPhase("The story is still opening")
            player = world.players.get(player_id)
            if player is None:
                raise NotRegistered("You are not registered in this game")
            if label not in world.choice_options:
                raise InvalidChoice(
                    f"Choose one of: {', '.join(world.choice_options)}",
                    options=list(world.choice_options),
                )
            if player.character_name in world.round_choices:
                raise DuplicateSubmission(
                    f"You already chose for round {world.current_round}"
                )

            world.round_choices[player.character_name] = label

            return ChoiceAck(
                player_id=player_id,
                character_name=player.character_name,
                choice=label,
                round_number=world.current_round,
                round_complete=world.round_complete,
                awaiting=world.awaiting_characters,
            )

        ack, world = self._transact(mutate)

        log_session_event(
            "Choice submitted",
            session_id=self.session_id,
            phase=world.phase.value,
            round_number=ack.round_number,
            player_id=player_id,
            awaiting=len(ack.awaiting),
        )
        self._emit(
            EventType.CHOICE_SUBMITTED,
            world,
            character_name=ack.character_name,
            awaiting=ack.awaiting,
        )

        if ack.round_complete:
            ack.outcome = self._close_round(world)

        return ack

    def _open_story(self, world: World) -> RoundOutcome | None:
        """
        Narrate the opening of round 1 and store it as the world state.

        Round 1 accepts choices only after this commit. An opening that
        ends the story completes the World immediately.
        """
        result = self.narration.run(
            NarrationRequest(
                session_id=self.session_id,
                world_lore=world.world_lore,
                rules_text=world.rules_text,
                round_number=0,
            )
        )

        def mutate(current: World) -> RoundOutcome | None:
            if current.phase != WorldPhase.RUNNING or current.story_opened:
                return None
            current.world_state = result.text
            current.story_opened = True
            if result.story_complete:
                current.transition_to(WorldPhase.COMPLETED)

            return RoundOutcome(
                round_number=0,
                narration=result.text,
                used_fallback=result.used_fallback,
                story_complete=result.story_complete,
                next_round=current.current_round,
            )

        outcome, committed = self._transact(mutate, world_id=world.world_id)
        if outcome is None:
            logger.info(f"World {world.world_id} already opened; discarding narration")
            return None

        self._emit(
            EventType.STORY_OPENED,
            committed,
            narration=result.text,
            used_fallback=result.used_fallback,
        )
        if outcome.story_complete:
            self._phase_changed(WorldPhase.RUNNING, committed)
            self._emit(EventType.STORY_COMPLETED, committed, reason="narration ended the story")

        return outcome

    def _close_round(self, world: World) -> RoundOutcome | None:
        """
        Narrate a completed round and advance the World.

        The advancement transaction is pinned to the World and round that
        were completed; if another caller already advanced it, nothing is
        written and None is returned.
        """
        round_number = world.current_round
        choices = dict(world.round_choices)

        result = self.narration.run(
            NarrationRequest(
                session_id=self.session_id,
                world_lore=world.world_lore,
                rules_text=world.rules_text,
                world_state=world.world_state,
                choices=choices,
                round_number=round_number,
            )
        )

        def mutate(current: World) -> RoundOutcome | None:
            if (
                current.phase != WorldPhase.RUNNING
                or current.current_round != round_number
                or not current.round_complete
            ):
                return None

            current.history.append(
                RoundRecord(
                    round_number=round_number,
                    choices=dict(current.round_choices),
                    narration=result.text,
                    used_fallback=result.used_fallback,
                )
            )
            current.world_state = result.text
            current.current_round = round_number + 1
            current.start_round()
            current.transition_to(
                WorldPhase.COMPLETED if result.story_complete else WorldPhase.RUNNING
            )

            return RoundOutcome(
                round_number=round_number,
                narration=result.text,
                used_fallback=result.used_fallback,
                story_complete=result.story_complete,
                next_round=current.current_round,
            )

        outcome, committed = self._transact(mutate, world_id=world.world_id)
        if outcome is None:
            logger.info(f"Round {round_number} was already advanced; discarding narration")
            return None

        log_session_event(
            "Round completed",
            session_id=self.session_id,
            phase=committed.phase.value,
            round_number=round_number,
            used_fallback=outcome.used_fallback,
        )
        self._emit(
            EventType.ROUND_COMPLETED,
            committed,
            completed_round=round_number,
            narration=outcome.narration,
            used_fallback=outcome.used_fallback,
        )
        if outcome.story_complete:
            self._phase_changed(WorldPhase.RUNNING, committed)
            self._emit(EventType.STORY_COMPLETED, committed, reason="narration ended the story")

        return outcome

    def recover(self) -> list[RoundOutcome]:
        """
        Finish work interrupted by a crash between transactions.

        Writes a missing opening narration and closes a round whose choices
        are all in but which was never advanced.

        Returns:
            Outcomes produced (empty if nothing was pending)
        """
        outcomes: list[RoundOutcome] = []
        world = self.store.load(self.session_id)
        if world.phase != WorldPhase.RUNNING:
            return outcomes

        if not world.story_opened:
            opening = self._open_story(world)
            if opening is not None:
                outcomes.append(opening)
            world = self.store.load(self.session_id)

        if world.phase == WorldPhase.RUNNING and world.round_complete:
            closed = self._close_round(world)
            if closed is not None:
                outcomes.append(closed)

        if outcomes:
            logger.info(f"Recovered {len(outcomes)} pending step(s) for session '{self.session_id}'")
        return outcomes
