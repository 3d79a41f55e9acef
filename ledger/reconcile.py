# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Reconciliation of local optimistic state with ledger snapshots.

Ledger reads can lag behind transitions the local client already applied.
Merging is monotonic so a stale read never rolls the game back:
- statuses are totally ordered AWAITING_OPPONENT < ACTIVE < FINISHED and the
  merged status is the maximum of both sides
- turn and winner follow the more advanced side, the remote side on ties;
  once finished the turn stays with the winner
- cells are joined per cell over EMPTY < SHIP < {HIT, MISS}, so an attacked
  cell never reverts
"""

import logging
from typing import Callable, List, Optional, Tuple

import numpy as np

from salvo.board import SHIP_LENGTH, CellState
from salvo.errors import DecodeError
from salvo.session import GameSession, GameStatus, Role, SessionState
from ledger.codec import RemoteSnapshot


logger = logging.getLogger(__name__)

# Rank of each cell state in the merge lattice, indexed by cell value.
CELL_RANK = np.array([0, 1, 2, 2], dtype=np.int8)

StateObserver = Callable[[SessionState], None]


def merge_grids(local: Tuple[int, ...], remote: Tuple[int, ...]) -> Tuple[int, ...]:
    """
    Join two grids cell by cell.

    The cell with the higher rank wins; on equal rank the remote value is kept.
    """
    local_cells = np.asarray(local, dtype=np.uint8)
    remote_cells = np.asarray(remote, dtype=np.uint8)
    local_rank = CELL_RANK[local_cells]
    remote_rank = CELL_RANK[remote_cells]

    conflicts = (local_rank == 2) & (remote_rank == 2) & (local_cells != remote_cells)
    if np.any(conflicts):
        logger.warning(
            f"Ledger disagrees on {int(np.count_nonzero(conflicts))} attacked cell(s), "
            f"keeping the ledger's result"
        )

    merged = np.where(remote_rank >= local_rank, remote_cells, local_cells)
    return tuple(int(c) for c in merged)


def _merge_commitment(role: Role, local: Optional[bytes], remote: Optional[bytes]) -> Optional[bytes]:
    if local is None:
        return remote
    if remote is not None and remote != local:
        logger.warning(f"Ledger commitment for player {role.label} differs from the sealed one, keeping local")
    return local


def _destroyed(grid: Tuple[int, ...]) -> bool:
    return sum(1 for cell in grid if cell == CellState.HIT) >= SHIP_LENGTH


def merge(local: SessionState, remote: RemoteSnapshot) -> SessionState:
    """
    Merge a ledger snapshot into a local session state.

    Args:
        local: Current local state (possibly uninitialized).
        remote: Decoded ledger record.

    Returns:
        The merged state. It is never less advanced than ``local``.

    Raises:
        DecodeError: If the snapshot belongs to a different session.
    """
    if local.session_id is not None and remote.session_id != local.session_id:
        raise DecodeError(
            f"Snapshot for session {remote.session_id} does not match session {local.session_id}"
        )

    if local.status is None:
        # Nothing known locally yet: take the ledger's record as is.
        return SessionState(
            session_id=remote.session_id,
            status=remote.status,
            turn=remote.turn,
            winner=remote.winner,
            grid_a=remote.grid_a,
            grid_b=remote.grid_b,
            commitment_a=remote.commitment(Role.PLAYER_A),
            commitment_b=remote.commitment(Role.PLAYER_B),
            identity_a=remote.identity(Role.PLAYER_A),
            identity_b=remote.identity(Role.PLAYER_B),
            local_role=local.local_role,
        )

    remote_status = remote.status
    if local.status > remote_status:
        if local.status == GameStatus.ACTIVE and remote_status == GameStatus.AWAITING_OPPONENT:
            logger.info("Ignoring stale WAITING status from ledger (local is ACTIVE)")
        else:
            logger.debug(f"Ledger is behind ({remote_status.name} < {local.status.name})")
        status, turn, winner = local.status, local.turn, local.winner
    else:
        status, turn, winner = remote_status, remote.turn, remote.winner

    grid_a = merge_grids(local.grid_a, remote.grid_a)
    grid_b = merge_grids(local.grid_b, remote.grid_b)

    if status != GameStatus.FINISHED:
        for role, grid in ((Role.PLAYER_A, grid_a), (Role.PLAYER_B, grid_b)):
            if _destroyed(grid):
                status, winner = GameStatus.FINISHED, role.opponent
                logger.info(f"Merged grids show player {role.label}'s ship destroyed")
                break

    # Once finished the turn stays with the winner
    if status == GameStatus.FINISHED and winner is not None:
        turn = winner

    return SessionState(
        session_id=local.session_id,
        status=status,
        turn=turn,
        winner=winner,
        grid_a=grid_a,
        grid_b=grid_b,
        commitment_a=_merge_commitment(Role.PLAYER_A, local.commitment_a, remote.commitment(Role.PLAYER_A)),
        commitment_b=_merge_commitment(Role.PLAYER_B, local.commitment_b, remote.commitment(Role.PLAYER_B)),
        identity_a=local.identity_a or remote.identity(Role.PLAYER_A),
        identity_b=local.identity_b or remote.identity(Role.PLAYER_B),
        local_role=local.local_role,
    )


class ReconciliationEngine:
    """
    Sole writer of remote data into a live GameSession.

    Observers are notified only when a merge (or a local transition reported
    through :meth:`notify`) changes the observable state.
    """

    def __init__(self):
        self._observers: List[StateObserver] = []

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            A callable that removes the observer again.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def notify(self, state: SessionState) -> None:
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                logger.exception("State observer failed")

    def apply(self, session: GameSession, remote: RemoteSnapshot) -> bool:
        """
        Merge ``remote`` into ``session`` in place.

        Returns:
            True if the observable state changed (observers were notified).
        """
        prior = session.state
        merged = merge(prior, remote)
        if merged != prior:
            session.adopt(merged)

        changed = merged.observable() != prior.observable()
        if changed:
            logger.debug(
                f"Session {merged.session_id} updated from ledger: "
                f"status={merged.status.name} turn={merged.turn.label}"
            )
            self.notify(merged)
        return changed
