# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Game session state machine.

States: AWAITING_OPPONENT -> ACTIVE -> FINISHED. Every mutation goes through
a named transition (create_game, join_game, attack, reset, adopt), each of
which validates everything before touching state, so a failed transition
leaves the session exactly as it was.
"""

import logging
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

import numpy as np

from salvo.board import (
    COMMITMENT_SIZE,
    Board,
    CellState,
    Coordinate,
    CoordinateLike,
    Placement,
)
from salvo.errors import AlreadyPlaced, NotWaiting, NotYourTurn, StaleOrMissingCommitment
from salvo.resolver import AttackResolver, Outcome


logger = logging.getLogger(__name__)


class Role(IntEnum):
    """Player roles. Values match the ledger's turn encoding."""
    PLAYER_A = 1
    PLAYER_B = 2

    @property
    def opponent(self) -> "Role":
        return Role.PLAYER_B if self is Role.PLAYER_A else Role.PLAYER_A

    @property
    def label(self) -> str:
        return "A" if self is Role.PLAYER_A else "B"


class GameStatus(IntEnum):
    """Session status. The integer order is the progress order."""
    AWAITING_OPPONENT = 0
    ACTIVE = 1
    FINISHED = 2


@dataclass(frozen=True)
class AttackResult:
    """Outcome of a successful attack transition."""
    attacker: Role
    target: Coordinate
    outcome: Outcome
    destroyed: bool
    winner: Optional[Role]
    turn: Role

    @property
    def hit(self) -> bool:
        return self.outcome is Outcome.HIT


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot of a session."""
    session_id: Optional[int]
    status: Optional[GameStatus]
    turn: Role
    winner: Optional[Role]
    grid_a: Tuple[int, ...]
    grid_b: Tuple[int, ...]
    commitment_a: Optional[bytes] = None
    commitment_b: Optional[bytes] = None
    identity_a: Optional[bytes] = None
    identity_b: Optional[bytes] = None
    local_role: Optional[Role] = None

    @property
    def hits_a(self) -> int:
        return sum(1 for cell in self.grid_a if cell == CellState.HIT)

    @property
    def hits_b(self) -> int:
        return sum(1 for cell in self.grid_b if cell == CellState.HIT)

    def grid(self, role: Role) -> Tuple[int, ...]:
        return self.grid_a if role is Role.PLAYER_A else self.grid_b

    def commitment(self, role: Role) -> Optional[bytes]:
        return self.commitment_a if role is Role.PLAYER_A else self.commitment_b

    def observable(self) -> tuple:
        """Fields observers care about, for structural change detection."""
        return (self.status, self.turn, self.grid_a, self.grid_b, self.winner)


@dataclass(frozen=True)
class SessionView:
    """A session as seen by one player: own ship visible, opponent's hidden."""
    viewer: Role
    status: Optional[GameStatus]
    turn: Role
    winner: Optional[Role]
    own_grid: Tuple[int, ...]
    opponent_grid: Tuple[int, ...]
    own_hits: int
    opponent_hits: int

    @property
    def my_turn(self) -> bool:
        return self.status == GameStatus.ACTIVE and self.turn == self.viewer

    @property
    def won(self) -> Optional[bool]:
        if self.winner is None:
            return None
        return self.winner == self.viewer


def new_session_id() -> int:
    """Millisecond timestamp, the session id scheme used by the ledger client."""
    return int(time.time() * 1000)


def _checked_commitment(commitment: Optional[bytes]) -> bytes:
    if commitment is None:
        raise StaleOrMissingCommitment("A board commitment is required")
    commitment = bytes(commitment)
    if len(commitment) != COMMITMENT_SIZE:
        raise StaleOrMissingCommitment(
            f"Commitment must be {COMMITMENT_SIZE} bytes, got {len(commitment)}"
        )
    return commitment


class GameSession:
    """
    The authoritative local game state.

    Holds both boards, turn order, status and winner. The session starts out
    uninitialized (``status is None``).
    """

    def __init__(self):
        self._clear()

    def _clear(self) -> None:
        self.session_id: Optional[int] = None
        self.status: Optional[GameStatus] = None
        self.turn: Role = Role.PLAYER_A
        self.winner: Optional[Role] = None
        self.board_a = Board()
        self.board_b = Board()
        self.identity_a: Optional[bytes] = None
        self.identity_b: Optional[bytes] = None
        self.local_role: Optional[Role] = None

    @property
    def initialized(self) -> bool:
        return self.status is not None

    @property
    def finished(self) -> bool:
        return self.status == GameStatus.FINISHED

    def board(self, role: Role) -> Board:
        return self.board_a if Role(role) is Role.PLAYER_A else self.board_b

    def assign_role(self, role: Role) -> None:
        """Record the local player's role. It cannot change once assigned."""
        role = Role(role)
        if self.local_role is not None and self.local_role is not role:
            raise ValueError(
                f"Local role is already {self.local_role.name}, cannot become {role.name}"
            )
        self.local_role = role

    def role_for_identity(self, identity: bytes) -> Optional[Role]:
        """Which role a public identity plays in this session, if any."""
        if identity is None:
            return None
        if self.identity_a is not None and identity == self.identity_a:
            return Role.PLAYER_A
        if self.identity_b is not None and identity == self.identity_b:
            return Role.PLAYER_B
        return None

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def create_game(
        self,
        placement: Placement,
        commitment: bytes,
        session_id: Optional[int] = None,
        identity: Optional[bytes] = None,
    ) -> None:
        """
        Start a session with player A's ship.

        Args:
            placement: Player A's ship placement.
            commitment: 32-byte commitment to the placement.
            session_id: Session id; a millisecond timestamp when omitted.
            identity: Player A's public identity, if known.

        Raises:
            AlreadyPlaced: If the session has already been created.
            InvalidPlacement: If the ship does not fit.
            StaleOrMissingCommitment: If the commitment is missing or malformed.
        """
        if self.initialized:
            raise AlreadyPlaced("A game already exists in this session")

        board = Board()
        board.place(placement.origin, placement.orientation)
        board.seal(_checked_commitment(commitment))

        self.board_a = board
        self.board_b = Board()
        self.session_id = session_id if session_id is not None else new_session_id()
        self.identity_a = identity
        self.status = GameStatus.AWAITING_OPPONENT
        self.turn = Role.PLAYER_A
        self.winner = None
        if self.local_role is None:
            self.local_role = Role.PLAYER_A

        logger.info(f"Game {self.session_id} created, waiting for player B")

    def join_game(
        self,
        placement: Placement,
        commitment: bytes,
        identity: Optional[bytes] = None,
        as_local: bool = False,
    ) -> None:
        """
        Add player B's ship and activate the session.

        Args:
            placement: Player B's ship placement.
            commitment: 32-byte commitment to the placement.
            identity: Player B's public identity, if known.
            as_local: True when the local client is player B (online join).

        Raises:
            NotWaiting: If the session is not awaiting an opponent.
            InvalidPlacement: If the ship does not fit.
            StaleOrMissingCommitment: If either board would be left uncommitted.
        """
        if self.status != GameStatus.AWAITING_OPPONENT:
            raise NotWaiting(f"Cannot join a session in status {self.status!r}")
        if self.board_a.commitment is None:
            raise StaleOrMissingCommitment("Player A's board has no commitment")
        if as_local and self.local_role is Role.PLAYER_A:
            raise ValueError("The local player already plays as A")

        board = Board()
        board.place(placement.origin, placement.orientation)
        board.seal(_checked_commitment(commitment))

        self.board_b = board
        if identity is not None:
            self.identity_b = identity
        if as_local:
            self.local_role = Role.PLAYER_B
        self.status = GameStatus.ACTIVE

        logger.info(f"Player B joined game {self.session_id}, game is now active")

    def attack(self, attacker: Role, target: CoordinateLike) -> AttackResult:
        """
        Fire at the defender's board.

        Args:
            attacker: Role of the attacking player.
            target: Cell on the defender's board.

        Returns:
            AttackResult with the outcome and, on the final hit, the winner.

        Raises:
            NotYourTurn: If the game is not active or it is not the attacker's turn.
            OutOfBounds: If the target is outside the grid.
            AlreadyAttacked: If the target was already attacked.
        """
        attacker = Role(attacker)
        if self.status != GameStatus.ACTIVE:
            raise NotYourTurn("Game is not active")
        if attacker is not self.turn:
            raise NotYourTurn(f"It is player {self.turn.label}'s turn")

        outcome = AttackResolver.apply(self.board(attacker.opponent), target)

        if outcome.destroyed:
            self.status = GameStatus.FINISHED
            self.winner = attacker
            logger.info(f"Game {self.session_id}: player {attacker.label} wins")
        else:
            self.turn = attacker.opponent

        logger.debug(
            f"Player {attacker.label} fired at ({outcome.target.x}, {outcome.target.y}): "
            f"{outcome.outcome.value}"
        )
        return AttackResult(
            attacker=attacker,
            target=outcome.target,
            outcome=outcome.outcome,
            destroyed=outcome.destroyed,
            winner=self.winner,
            turn=self.turn,
        )

    def reset(self) -> None:
        """Discard all state, returning to an uninitialized session."""
        logger.info(f"Session {self.session_id} reset")
        self._clear()

    # ------------------------------------------------------------------ #
    # Snapshots
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> SessionState:
        return SessionState(
            session_id=self.session_id,
            status=self.status,
            turn=self.turn,
            winner=self.winner,
            grid_a=tuple(int(c) for c in self.board_a.grid),
            grid_b=tuple(int(c) for c in self.board_b.grid),
            commitment_a=self.board_a.commitment,
            commitment_b=self.board_b.commitment,
            identity_a=self.identity_a,
            identity_b=self.identity_b,
            local_role=self.local_role,
        )

    def adopt(self, state: SessionState) -> None:
        """
        Replace the session contents with ``state``.

        Used by reconciliation to write merged state back and to roll back an
        optimistic transition. Private ship placement data is kept.
        """
        if (
            state.local_role is not None
            and self.local_role is not None
            and state.local_role is not self.local_role
        ):
            raise ValueError("Cannot adopt a state with a different local role")

        self.session_id = state.session_id
        self.status = state.status
        self.turn = state.turn
        self.winner = state.winner
        self.identity_a = state.identity_a
        self.identity_b = state.identity_b
        if self.local_role is None:
            self.local_role = state.local_role

        for board, grid, commitment in (
            (self.board_a, state.grid_a, state.commitment_a),
            (self.board_b, state.grid_b, state.commitment_b),
        ):
            board.grid = np.array(grid, dtype=np.uint8)
            board.commitment = commitment

    def view(self, viewer: Optional[Role] = None) -> SessionView:
        """
        Project the session for one player.

        Args:
            viewer: Viewing role; defaults to the local role (or player A).
        """
        if viewer is None:
            viewer = self.local_role or Role.PLAYER_A
        viewer = Role(viewer)
        own = self.board(viewer)
        opponent = self.board(viewer.opponent)
        return SessionView(
            viewer=viewer,
            status=self.status,
            turn=self.turn,
            winner=self.winner,
            own_grid=tuple(int(c) for c in own.view(owner=True)),
            opponent_grid=tuple(int(c) for c in opponent.view(owner=False)),
            own_hits=own.hits_taken,
            opponent_hits=opponent.hits_taken,
        )
