# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Error taxonomy for the game engine.

Local rule violations (placement, turn order, repeated attacks) are raised
synchronously before any state changes. External failures (proving, ledger
reads and writes, malformed records) are recoverable and never leave the
local session in a partially updated state.

Each error also derives from the closest builtin exception so callers that
only catch ``ValueError`` or ``RuntimeError`` keep working.
"""


class GameError(Exception):
    """Base class for every error raised by the engine."""


class InvalidPlacement(GameError, ValueError):
    """Ship placement does not fit on the board or uses illegal inputs."""


class OutOfBounds(GameError, IndexError):
    """A coordinate falls outside the 5x5 grid."""


class ShipOutOfBounds(OutOfBounds, InvalidPlacement):
    """One or more cells of a ship fall outside the grid."""


class AlreadyPlaced(GameError, RuntimeError):
    """A ship has already been placed on this board."""


class NotWaiting(GameError, RuntimeError):
    """The session is not waiting for an opponent to join."""


class NotYourTurn(GameError, RuntimeError):
    """The attacker does not hold the turn, or the game is not active."""


class AlreadyAttacked(GameError, RuntimeError):
    """The target cell was already hit or missed."""


class AttackInProgress(GameError, RuntimeError):
    """An attack for this turn is still being submitted."""


class SessionNotFound(GameError, LookupError):
    """The ledger holds no record for the requested session."""


class StaleOrMissingCommitment(GameError, ValueError):
    """A board commitment is missing, malformed or conflicts with the sealed one."""


class ExternalServiceFailure(GameError, ConnectionError):
    """The proving service or the ledger was unreachable or rejected a request."""

    def __init__(self, message: str, logs=None):
        super().__init__(message)
        self.logs = list(logs) if logs else []


class DecodeError(GameError, ValueError):
    """A ledger record could not be decoded."""
