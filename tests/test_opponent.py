# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Unit tests for the AI opponent.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from salvo.board import Board, CellState, Orientation, Placement, all_placements
from salvo.commitment import board_commitment
from salvo.errors import AttackInProgress
from salvo.opponent import AIOpponent
from salvo.resolver import AttackResolver
from salvo.session import GameSession, GameStatus, Role


ORIGIN = Placement(0, 0, Orientation.HORIZONTAL)


def active_session() -> GameSession:
    session = GameSession()
    session.create_game(ORIGIN, board_commitment(0, 0, 0, 1), session_id=1)
    session.join_game(ORIGIN, board_commitment(0, 0, 0, 2))
    return session


class TestChoices:
    """Tests for placement and target selection."""

    def test_deterministic_with_seed(self):
        """Test the same seed gives the same choices."""
        first = AIOpponent(seed=7)
        second = AIOpponent(seed=7)
        board = Board()

        assert first.choose_placement() == second.choose_placement()
        assert first.choose_target(board) == second.choose_target(board)

    def test_placement_is_legal(self):
        """Test chosen placements are always legal."""
        ai = AIOpponent(seed=0)
        legal = set(all_placements())
        for _ in range(50):
            assert ai.choose_placement() in legal

    def test_target_avoids_attacked_cells(self):
        """Test targets are drawn only from untouched cells."""
        board = Board()
        board.place((0, 0), Orientation.HORIZONTAL)
        for index in range(24):
            AttackResolver.apply(board, (index % 5, index // 5))

        ai = AIOpponent(seed=3)
        target = ai.choose_target(board)
        assert (target.x, target.y) == (4, 4)

        AttackResolver.apply(board, target)
        assert ai.choose_target(board) is None

    def test_invalid_delay_range(self):
        """Test the delay range is validated."""
        with pytest.raises(ValueError):
            AIOpponent(min_delay_s=2.0, max_delay_s=1.0)
        with pytest.raises(ValueError):
            AIOpponent(min_delay_s=-1.0)

    def test_default_delay_range(self):
        """Test the default thinking time is between one and two seconds."""
        ai = AIOpponent(seed=1)
        for _ in range(20):
            assert 1.0 <= ai.decision_delay() <= 2.0


class TestPlayTurn:
    """Tests for playing turns."""

    def test_plays_through_session(self):
        """Test the AI attacks player A's board when it is B's turn."""
        session = active_session()
        session.attack(Role.PLAYER_A, (4, 4))
        ai = AIOpponent(seed=5, min_delay_s=0.0, max_delay_s=0.0)

        result = asyncio.run(ai.play_turn(session, Role.PLAYER_B))

        assert result is not None
        assert result.attacker is Role.PLAYER_B
        assert ai.last_move == result
        assert session.turn is Role.PLAYER_A
        attacked = [c for c in session.board_a.grid if c in (CellState.HIT, CellState.MISS)]
        assert len(attacked) == 1
        assert not ai.thinking

    def test_skips_when_not_its_turn(self):
        """Test the AI does nothing once the session moved on."""
        session = active_session()
        ai = AIOpponent(seed=5, min_delay_s=0.0, max_delay_s=0.0)

        assert asyncio.run(ai.play_turn(session, Role.PLAYER_B)) is None
        assert session.turn is Role.PLAYER_A

    def test_skips_after_reset(self):
        """Test a reset while thinking discards the move."""
        session = active_session()
        session.attack(Role.PLAYER_A, (4, 4))
        ai = AIOpponent(seed=5, min_delay_s=0.02, max_delay_s=0.02)

        async def scenario():
            task = asyncio.ensure_future(ai.play_turn(session, Role.PLAYER_B))
            await asyncio.sleep(0)
            session.reset()
            return await task

        assert asyncio.run(scenario()) is None
        assert session.status is None

    def test_one_turn_at_a_time(self):
        """Test a second turn for the same role is refused while thinking."""
        session = active_session()
        session.attack(Role.PLAYER_A, (4, 4))
        ai = AIOpponent(seed=5, min_delay_s=0.02, max_delay_s=0.02)

        async def scenario():
            task = asyncio.ensure_future(ai.play_turn(session, Role.PLAYER_B))
            await asyncio.sleep(0)
            assert ai.thinking
            with pytest.raises(AttackInProgress):
                await ai.play_turn(session, Role.PLAYER_B)
            return await task

        assert asyncio.run(scenario()) is not None

    def test_full_game_against_itself(self):
        """Test two AIs finish a game with a winner."""
        session = active_session()
        ai = AIOpponent(seed=11, min_delay_s=0.0, max_delay_s=0.0)

        async def scenario():
            for _ in range(50):
                if session.status != GameStatus.ACTIVE:
                    break
                await ai.play_turn(session, session.turn)

        asyncio.run(scenario())
        assert session.status == GameStatus.FINISHED
        loser = session.winner.opponent
        assert session.board(loser).hits_taken == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
