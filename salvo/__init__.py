# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Salvo game core module.

Provides the board, placement commitments, attack resolution, the game
session state machine and the AI opponent.
"""

from salvo.board import Board, CellState, Coordinate, Orientation, Placement
from salvo.commitment import CommitmentGenerator, SaltSource, board_commitment
from salvo.opponent import AIOpponent
from salvo.resolver import AttackResolver, Outcome
from salvo.session import GameSession, GameStatus, Role, SessionState

__all__ = [
    'Board',
    'CellState',
    'Coordinate',
    'Orientation',
    'Placement',
    'CommitmentGenerator',
    'SaltSource',
    'board_commitment',
    'AIOpponent',
    'AttackResolver',
    'Outcome',
    'GameSession',
    'GameStatus',
    'Role',
    'SessionState',
]
