# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Computer opponent for single-player games.

The opponent fires uniformly at random among cells it has not attacked yet
and goes through GameSession.attack like a human player would.
"""

import asyncio
import logging
import random
from typing import Optional, Set

from salvo.board import Board, Coordinate, Placement, all_placements
from salvo.errors import AttackInProgress
from salvo.session import AttackResult, GameSession, GameStatus, Role


logger = logging.getLogger(__name__)


class AIOpponent:
    """Random-fire opponent with a simulated decision latency."""

    def __init__(
        self,
        seed: Optional[int] = None,
        min_delay_s: float = 1.0,
        max_delay_s: float = 2.0,
    ):
        """
        Initialize the opponent.

        Args:
            seed: Random seed for reproducible games.
            min_delay_s: Shortest simulated thinking time per move.
            max_delay_s: Longest simulated thinking time per move.
        """
        if min_delay_s < 0 or max_delay_s < min_delay_s:
            raise ValueError("Invalid AI delay range")
        self.seed = seed
        self.rng = random.Random(seed)
        self.min_delay_s = min_delay_s
        self.max_delay_s = max_delay_s
        self.last_move: Optional[AttackResult] = None
        self._thinking: Set[Role] = set()

    @property
    def thinking(self) -> bool:
        return bool(self._thinking)

    def choose_placement(self) -> Placement:
        """Pick one of the legal ship placements uniformly."""
        return self.rng.choice(all_placements())

    def choose_target(self, board: Board) -> Optional[Coordinate]:
        """Pick an unattacked cell uniformly, or None when every cell is spent."""
        candidates = board.untouched_cells()
        if not candidates:
            return None
        return Coordinate.from_index(self.rng.choice(candidates))

    def decision_delay(self) -> float:
        return self.rng.uniform(self.min_delay_s, self.max_delay_s)

    async def play_turn(self, session: GameSession, role: Role = Role.PLAYER_B) -> Optional[AttackResult]:
        """
        Think for a moment, then attack as ``role``.

        Returns:
            The AttackResult, or None if the session moved on while thinking
            (game reset, finished or no longer this role's turn).

        Raises:
            AttackInProgress: If a turn for this role is already being played.
        """
        role = Role(role)
        if role in self._thinking:
            raise AttackInProgress(f"Player {role.label} is already taking a turn")

        self._thinking.add(role)
        try:
            delay = self.decision_delay()
            if delay > 0:
                await asyncio.sleep(delay)

            if session.status != GameStatus.ACTIVE or session.turn is not role:
                logger.debug("Session moved on while the AI was thinking, skipping move")
                return None

            target = self.choose_target(session.board(role.opponent))
            if target is None:
                return None

            result = session.attack(role, target)
            self.last_move = result
            logger.info(
                f"AI attacked ({target.x}, {target.y}) - {result.outcome.value.upper()}"
            )
            return result
        finally:
            self._thinking.discard(role)
