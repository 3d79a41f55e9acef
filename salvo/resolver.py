# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Attack resolution.

Human players and the AI opponent go through the same entry point, so both
are held to identical rules.
"""

from dataclasses import dataclass
from enum import Enum

from salvo.board import Board, CellState, Coordinate, CoordinateLike, as_coordinate
from salvo.errors import AlreadyAttacked, OutOfBounds


class Outcome(Enum):
    """Result of a single attack."""
    HIT = "hit"
    MISS = "miss"


@dataclass(frozen=True)
class AttackOutcome:
    """What happened to the defending board."""
    target: Coordinate
    outcome: Outcome
    destroyed: bool

    @property
    def message(self) -> str:
        if self.destroyed:
            return "Hit! Ship destroyed!"
        return "Hit!" if self.outcome is Outcome.HIT else "Miss!"


class AttackResolver:
    """Applies attacks to boards."""

    @staticmethod
    def apply(board: Board, target: CoordinateLike) -> AttackOutcome:
        """
        Fire at a cell of ``board``.

        Args:
            board: Defending board, mutated on success only.
            target: Cell to attack.

        Returns:
            AttackOutcome with the hit/miss result and whether the board is
            now fully destroyed.

        Raises:
            OutOfBounds: If the target is outside the grid.
            AlreadyAttacked: If the cell is already HIT or MISS.
        """
        target = as_coordinate(target)
        if not target.in_bounds:
            raise OutOfBounds(f"Attack at ({target.x}, {target.y}) is outside the board")

        cell = board.grid[target.index]
        if cell in (CellState.HIT, CellState.MISS):
            raise AlreadyAttacked(f"Cell ({target.x}, {target.y}) already attacked")

        if cell == CellState.SHIP:
            board.grid[target.index] = CellState.HIT
            outcome = Outcome.HIT
        else:
            board.grid[target.index] = CellState.MISS
            outcome = Outcome.MISS

        return AttackOutcome(target=target, outcome=outcome, destroyed=board.destroyed)
