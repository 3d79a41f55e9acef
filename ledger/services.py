# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Interfaces of the external ledger and the transactions sent to it.

The ledger itself (rule enforcement, consensus, transport) lives outside this
project. Implementations subclass LedgerReader / LedgerWriter.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from salvo.board import Orientation, Placement


@dataclass(frozen=True)
class CreateGameTx:
    """Open a new game with the creator's ship and commitment."""
    session_id: int
    ship_x: int
    ship_y: int
    is_horizontal: bool
    commitment: bytes

    @classmethod
    def build(cls, session_id: int, placement: Placement, commitment: bytes) -> "CreateGameTx":
        return cls(
            session_id=session_id,
            ship_x=placement.x,
            ship_y=placement.y,
            is_horizontal=placement.orientation == Orientation.HORIZONTAL,
            commitment=bytes(commitment),
        )


@dataclass(frozen=True)
class JoinGameTx:
    """Join a waiting game as player B."""
    session_id: int
    ship_x: int
    ship_y: int
    is_horizontal: bool
    commitment: bytes

    @classmethod
    def build(cls, session_id: int, placement: Placement, commitment: bytes) -> "JoinGameTx":
        return cls(
            session_id=session_id,
            ship_x=placement.x,
            ship_y=placement.y,
            is_horizontal=placement.orientation == Orientation.HORIZONTAL,
            commitment=bytes(commitment),
        )


@dataclass(frozen=True)
class AttackTx:
    """Fire at the opponent's board."""
    session_id: int
    x: int
    y: int


Transaction = Union[CreateGameTx, JoinGameTx, AttackTx]


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of a dry run of a transaction."""
    ok: bool
    error: Optional[str] = None
    logs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Confirmation:
    """A confirmed transaction."""
    signature: str
    slot: Optional[int] = None


class LedgerReader:
    """Read side of the ledger. Reads are eventually consistent."""

    async def fetch_snapshot(self, session_id: int) -> Optional[bytes]:
        """
        Fetch the raw game record.

        Returns:
            The raw record bytes, or None when the ledger has no such game.
        """
        raise NotImplementedError


class LedgerWriter:
    """Write side of the ledger."""

    supports_simulation = False

    async def simulate(self, tx: Transaction) -> SimulationResult:
        """Dry-run a transaction. Only called when supports_simulation is set."""
        raise NotImplementedError

    async def submit(self, tx: Transaction) -> Confirmation:
        """
        Submit a transaction and wait for confirmation.

        Raises:
            Exception: Any failure; callers wrap it in ExternalServiceFailure.
        """
        raise NotImplementedError
