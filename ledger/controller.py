# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Match controller: the interface a UI drives.

Ties together the local GameSession, commitment generation, the AI opponent
(single-player mode) or the ledger (online mode), polling and
reconciliation. Everything runs on one asyncio event loop.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from salvo.board import CoordinateLike, Placement, as_coordinate
from salvo.commitment import CommitmentGenerator, SaltSource, commitment_hex
from salvo.config import DEFAULT_CONFIG
from salvo.errors import (
    AlreadyPlaced,
    AttackInProgress,
    ExternalServiceFailure,
    GameError,
    NotWaiting,
    NotYourTurn,
    SessionNotFound,
    StaleOrMissingCommitment,
)
from salvo.opponent import AIOpponent
from salvo.session import (
    AttackResult,
    GameSession,
    GameStatus,
    Role,
    SessionState,
    SessionView,
    new_session_id,
)
from ledger.codec import RemoteSnapshot, decode_record
from ledger.polling import PollingController
from ledger.reconcile import ReconciliationEngine, StateObserver, merge
from ledger.services import (
    AttackTx,
    Confirmation,
    CreateGameTx,
    JoinGameTx,
    LedgerReader,
    LedgerWriter,
    Transaction,
)


logger = logging.getLogger(__name__)

MODE_AI = "ai"
MODE_ONLINE = "online"

ErrorListener = Callable[[GameError], None]


class MatchController:
    """
    Drives one match for the local player.

    Key features:
    - Optimistic local attacks, rolled back only if the ledger rejects them
      and nothing else happened in the meantime
    - At most one attack submission in flight per player
    - Ledger polling merged through the reconciliation engine
    """

    def __init__(
        self,
        mode: str = MODE_AI,
        reader: Optional[LedgerReader] = None,
        writer: Optional[LedgerWriter] = None,
        identity: Optional[bytes] = None,
        generator: Optional[CommitmentGenerator] = None,
        opponent: Optional[AIOpponent] = None,
        config: Optional[Dict] = None,
    ):
        """
        Initialize the controller.

        Args:
            mode: 'ai' for single-player, 'online' for ledger play.
            reader: Ledger read service (online mode).
            writer: Ledger write service (online mode).
            identity: Local player's 32-byte public identity (online mode).
            generator: Commitment generator; in-process prover by default.
            opponent: AI opponent for single-player mode.
            config: Configuration dict as returned by load_config().
        """
        if mode not in (MODE_AI, MODE_ONLINE):
            raise ValueError(f"Unknown mode: {mode}")
        if mode == MODE_ONLINE and (reader is None or writer is None or identity is None):
            raise ValueError("Online play needs a ledger reader, a ledger writer and an identity")

        config = config or DEFAULT_CONFIG
        self.mode = mode
        self.reader = reader
        self.writer = writer
        self.identity = bytes(identity) if identity is not None else None
        self.generator = generator or CommitmentGenerator()
        self.salts = SaltSource()
        self.opponent = opponent or AIOpponent(
            seed=config['ai']['seed'],
            min_delay_s=config['ai']['min_delay_s'],
            max_delay_s=config['ai']['max_delay_s'],
        )
        self.auto_poll = bool(config['polling']['enabled'])

        self.session = GameSession()
        self.engine = ReconciliationEngine()
        self.poller = PollingController(
            self.refresh,
            interval_ms=config['polling']['interval_ms'],
            on_error=self._report_error,
        )

        # Local secrets, never sent anywhere
        self.salt: Optional[int] = None
        self.placement: Optional[Placement] = None

        self._pending: Set[Role] = set()
        self._ai_task: Optional[asyncio.Task] = None
        self._error_listeners: List[ErrorListener] = []

    # ------------------------------------------------------------------ #
    # Observation
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def view(self) -> SessionView:
        return self.session.view()

    @property
    def attack_pending(self) -> bool:
        return bool(self._pending)

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Observe state changes. Returns an unsubscribe callable."""
        return self.engine.subscribe(observer)

    def subscribe_errors(self, listener: ErrorListener) -> Callable[[], None]:
        """Observe transient external failures. Returns an unsubscribe callable."""
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return unsubscribe

    def _report_error(self, error: GameError) -> None:
        for listener in list(self._error_listeners):
            listener(error)

    def _changed(self) -> None:
        state = self.session.state
        self.engine.notify(state)
        if state.status == GameStatus.FINISHED:
            self.poller.stop()

    # ------------------------------------------------------------------ #
    # Game setup
    # ------------------------------------------------------------------ #
    async def _commit(self, placement: Placement):
        salt = self.salts.generate()
        commitment = await self.generator.commit(
            placement.x, placement.y, int(placement.orientation), salt
        )
        return salt, commitment

    async def create_game(self, placement: Placement) -> Optional[SessionState]:
        """
        Commit to a placement and open a game as player A.

        Returns:
            The new state, or None if the session was set up elsewhere while
            the commitment was being generated.

        Raises:
            AlreadyPlaced: If a game already exists.
            InvalidPlacement: If the ship does not fit.
            ExternalServiceFailure: If proving or the ledger fails.
        """
        if self.session.initialized:
            raise AlreadyPlaced("A game already exists in this session")

        salt, commitment = await self._commit(placement)
        session_id = new_session_id()

        if self.mode == MODE_ONLINE:
            await self._submit(CreateGameTx.build(session_id, placement, commitment))

        if self.session.initialized:
            logger.warning("Session changed while creating the game, discarding result")
            return None

        self.session.create_game(placement, commitment, session_id=session_id, identity=self.identity)
        self.salt, self.placement = salt, placement
        logger.info(f"Board commitment: {commitment_hex(commitment)[:16]}...")
        self._changed()

        if self.mode == MODE_ONLINE and self.auto_poll:
            self.polling_enabled(True)
        return self.session.state

    async def join_game(self, session_id: int, placement: Placement) -> Optional[SessionState]:
        """
        Join a waiting online game as player B.

        Raises:
            AlreadyPlaced: If a local game already exists.
            SessionNotFound: If the ledger has no such game.
            NotWaiting: If the game is not waiting for an opponent.
            InvalidPlacement: If the ship does not fit.
            ExternalServiceFailure: If proving or the ledger fails.
        """
        if self.mode != MODE_ONLINE:
            raise ValueError("Joining by session id is only possible online")
        if self.session.initialized:
            raise AlreadyPlaced("A game already exists in this session")

        remote = await self._fetch(session_id)
        if remote.status != GameStatus.AWAITING_OPPONENT:
            raise NotWaiting(f"Game {session_id} is not waiting for an opponent")
        if remote.commitment(Role.PLAYER_A) is None:
            raise StaleOrMissingCommitment(f"Game {session_id} has no commitment from player A")

        salt, commitment = await self._commit(placement)
        await self._submit(JoinGameTx.build(session_id, placement, commitment))

        if self.session.initialized:
            logger.warning("Session changed while joining, discarding result")
            return None

        self.session.adopt(merge(self.session.state, remote))
        self.session.join_game(placement, commitment, identity=self.identity, as_local=True)
        self.salt, self.placement = salt, placement
        self._changed()

        if self.auto_poll:
            self.polling_enabled(True)
        return self.session.state

    async def start_vs_ai(self) -> SessionState:
        """
        Let the AI place its ship and join the waiting game.

        Raises:
            NotWaiting: If the game is not waiting for an opponent.
        """
        if self.mode != MODE_AI:
            raise ValueError("The AI opponent is only available in single-player mode")
        if self.session.status != GameStatus.AWAITING_OPPONENT:
            raise NotWaiting("No game is waiting for an opponent")

        placement = self.opponent.choose_placement()
        _, commitment = await self._commit(placement)
        self.session.join_game(placement, commitment)
        logger.info("AI opponent joined the game")
        self._changed()
        return self.session.state

    # ------------------------------------------------------------------ #
    # Play
    # ------------------------------------------------------------------ #
    async def attack(self, target: CoordinateLike) -> AttackResult:
        """
        Attack the opponent as the local player.

        The attack is applied locally right away. Online, it is then submitted
        to the ledger; if the ledger rejects it and the session has not moved
        on, the local attack is rolled back.

        Raises:
            AttackInProgress: If an earlier attack is still being submitted.
            NotYourTurn: If the game is not active or it is not our turn.
            OutOfBounds: If the target is off the board.
            AlreadyAttacked: If the cell was already attacked.
            ExternalServiceFailure: If the ledger rejected the attack.
        """
        role = self.session.local_role
        if role is None or not self.session.initialized:
            raise NotYourTurn("No game in progress")
        if role in self._pending:
            raise AttackInProgress("An attack is already being submitted")

        target = as_coordinate(target)
        before = self.session.state
        was_polling = self.poller.running
        result = self.session.attack(role, target)
        after = self.session.state
        self._changed()

        if self.mode == MODE_ONLINE:
            self._pending.add(role)
            try:
                await self._submit(AttackTx(self.session.session_id, target.x, target.y))
            except ExternalServiceFailure:
                if self.session.state == after:
                    logger.warning("Attack rejected by the ledger, rolling back")
                    self.session.adopt(before)
                    self._changed()
                    if was_polling and self.session.status != GameStatus.FINISHED:
                        self.poller.set_enabled(True)
                else:
                    logger.warning("Attack rejected by the ledger after the session moved on")
                raise
            finally:
                self._pending.discard(role)
        elif self.session.status == GameStatus.ACTIVE and self.session.turn is role.opponent:
            self._ai_task = asyncio.get_running_loop().create_task(self._ai_turn(role.opponent))

        return result

    async def _ai_turn(self, role: Role) -> Optional[AttackResult]:
        try:
            result = await self.opponent.play_turn(self.session, role)
        except GameError as e:
            logger.error(f"AI turn failed: {e}")
            return None
        if result is not None:
            self._changed()
        return result

    async def wait_for_ai(self) -> Optional[AttackResult]:
        """Wait for a scheduled AI move, if any."""
        task, self._ai_task = self._ai_task, None
        if task is None:
            return None
        return await task

    # ------------------------------------------------------------------ #
    # Ledger
    # ------------------------------------------------------------------ #
    async def _fetch(self, session_id: int) -> RemoteSnapshot:
        try:
            raw = await self.reader.fetch_snapshot(session_id)
        except GameError:
            raise
        except Exception as e:
            raise ExternalServiceFailure(f"Ledger read failed: {e}") from e
        if raw is None:
            raise SessionNotFound(f"Game {session_id} not found on the ledger")
        return decode_record(raw)

    async def _submit(self, tx: Transaction) -> Confirmation:
        name = type(tx).__name__
        if self.writer.supports_simulation:
            try:
                simulation = await self.writer.simulate(tx)
            except Exception as e:
                raise ExternalServiceFailure(f"{name} simulation failed: {e}") from e
            if not simulation.ok:
                logger.error(f"{name} simulation error: {simulation.error}")
                raise ExternalServiceFailure(
                    f"{name} simulation failed: {simulation.error}", logs=simulation.logs
                )

        try:
            confirmation = await self.writer.submit(tx)
        except GameError:
            raise
        except Exception as e:
            logger.error(f"{name} failed: {e}")
            raise ExternalServiceFailure(f"{name} failed: {e}") from e

        logger.info(f"{name} confirmed: {confirmation.signature}")
        return confirmation

    async def refresh(self) -> bool:
        """
        Fetch the ledger record once and merge it.

        Returns:
            True if the local state changed.
        """
        session_id = self.session.session_id
        if session_id is None or self.reader is None:
            return False

        remote = await self._fetch(session_id)
        if self.session.session_id != session_id:
            logger.debug("Session changed during fetch, discarding snapshot")
            return False

        changed = self.engine.apply(self.session, remote)
        if self.session.status == GameStatus.FINISHED:
            self.poller.stop()
        return changed

    def polling_enabled(self, enabled: bool, interval_ms: Optional[int] = None) -> None:
        """Turn ledger polling on or off (online mode only)."""
        if enabled and self.mode != MODE_ONLINE:
            raise ValueError("Polling is only available online")
        self.poller.set_enabled(enabled, interval_ms)

    # ------------------------------------------------------------------ #
    # Teardown
    # ------------------------------------------------------------------ #
    def _cancel_ai(self) -> None:
        if self._ai_task is not None and not self._ai_task.done():
            self._ai_task.cancel()
        self._ai_task = None

    def reset(self) -> None:
        """Discard the match and return to an empty session."""
        self.poller.stop()
        self._cancel_ai()
        self._pending.clear()
        self.session.reset()
        self.salt = None
        self.placement = None
        self.engine.notify(self.session.state)

    async def close(self) -> None:
        """Stop background work."""
        self._cancel_ai()
        await self.poller.aclose()
