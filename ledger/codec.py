# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Wire codec for the ledger's game state record.

The record is a fixed 190-byte little-endian layout, optionally preceded by an
8-byte type discriminator (198 bytes total). Presence of the discriminator
is detected from the buffer length alone.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from salvo.board import COMMITMENT_SIZE, NUM_CELLS, CellState
from salvo.errors import DecodeError
from salvo.session import GameStatus, Role, SessionState


IDENTITY_SIZE = 32
DISCRIMINATOR_SIZE = 8

RECORD_DTYPE = np.dtype([
    ('session_id', '<u8'),
    ('player_a', 'u1', (IDENTITY_SIZE,)),
    ('player_b', 'u1', (IDENTITY_SIZE,)),
    ('current_turn', 'u1'),
    ('game_status', 'u1'),
    ('grid_a', 'u1', (NUM_CELLS,)),
    ('commitment_a', 'u1', (COMMITMENT_SIZE,)),
    ('hits_a', 'u1'),
    ('grid_b', 'u1', (NUM_CELLS,)),
    ('commitment_b', 'u1', (COMMITMENT_SIZE,)),
    ('hits_b', 'u1'),
])

RECORD_SIZE = RECORD_DTYPE.itemsize
PREFIXED_RECORD_SIZE = RECORD_SIZE + DISCRIMINATOR_SIZE

GAME_STATE_DISCRIMINATOR = hashlib.sha256(b"account:GameState").digest()[:DISCRIMINATOR_SIZE]

# Wire game status
WIRE_WAITING = 0
WIRE_ACTIVE = 1
WIRE_A_WON = 2
WIRE_B_WON = 3

_EMPTY_32 = bytes(32)


@dataclass(frozen=True)
class RemoteSnapshot:
    """A decoded ledger record, role-tagged as the ledger stores it."""
    session_id: int
    player_a: bytes
    player_b: bytes
    current_turn: int
    game_status: int
    grid_a: Tuple[int, ...]
    commitment_a: bytes
    hits_a: int
    grid_b: Tuple[int, ...]
    commitment_b: bytes
    hits_b: int

    @property
    def status(self) -> GameStatus:
        """Game status in the local vocabulary."""
        if self.game_status == WIRE_WAITING:
            return GameStatus.AWAITING_OPPONENT
        if self.game_status == WIRE_ACTIVE:
            return GameStatus.ACTIVE
        return GameStatus.FINISHED

    @property
    def winner(self) -> Optional[Role]:
        if self.game_status == WIRE_A_WON:
            return Role.PLAYER_A
        if self.game_status == WIRE_B_WON:
            return Role.PLAYER_B
        return None

    @property
    def turn(self) -> Role:
        return Role(self.current_turn)

    def grid(self, role: Role) -> Tuple[int, ...]:
        return self.grid_a if role is Role.PLAYER_A else self.grid_b

    def commitment(self, role: Role) -> Optional[bytes]:
        """The role's commitment, or None while unset (all zero bytes)."""
        value = self.commitment_a if role is Role.PLAYER_A else self.commitment_b
        return None if value == _EMPTY_32 else value

    def identity(self, role: Role) -> Optional[bytes]:
        """The role's public identity, or None while unset (all zero bytes)."""
        value = self.player_a if role is Role.PLAYER_A else self.player_b
        return None if value == _EMPTY_32 else value

    def role_of(self, identity: bytes) -> Optional[Role]:
        for role in Role:
            if identity is not None and self.identity(role) == identity:
                return role
        return None


def decode_record(data: bytes) -> RemoteSnapshot:
    """
    Decode a ledger record.

    Args:
        data: Raw account data, with or without the 8-byte discriminator.

    Returns:
        RemoteSnapshot with the decoded fields.

    Raises:
        DecodeError: If the buffer is too short or holds out-of-range values.
    """
    data = bytes(data)
    if len(data) >= PREFIXED_RECORD_SIZE:
        offset = DISCRIMINATOR_SIZE
    elif len(data) >= RECORD_SIZE:
        offset = 0
    else:
        raise DecodeError(f"Record too short: {len(data)} bytes, need at least {RECORD_SIZE}")

    record = np.frombuffer(data, dtype=RECORD_DTYPE, count=1, offset=offset)[0]

    current_turn = int(record['current_turn'])
    if current_turn not in (Role.PLAYER_A, Role.PLAYER_B):
        raise DecodeError(f"Invalid current turn: {current_turn}")

    game_status = int(record['game_status'])
    if game_status not in (WIRE_WAITING, WIRE_ACTIVE, WIRE_A_WON, WIRE_B_WON):
        raise DecodeError(f"Invalid game status: {game_status}")

    for name in ('grid_a', 'grid_b'):
        if np.any(record[name] > CellState.MISS):
            raise DecodeError(f"Invalid cell value in {name}")

    return RemoteSnapshot(
        session_id=int(record['session_id']),
        player_a=record['player_a'].tobytes(),
        player_b=record['player_b'].tobytes(),
        current_turn=current_turn,
        game_status=game_status,
        grid_a=tuple(int(c) for c in record['grid_a']),
        commitment_a=record['commitment_a'].tobytes(),
        hits_a=int(record['hits_a']),
        grid_b=tuple(int(c) for c in record['grid_b']),
        commitment_b=record['commitment_b'].tobytes(),
        hits_b=int(record['hits_b']),
    )


def encode_record(snapshot: RemoteSnapshot, discriminator: Optional[bytes] = None) -> bytes:
    """
    Encode a snapshot into the ledger layout.

    Args:
        snapshot: Record to encode.
        discriminator: Optional 8-byte prefix.

    Returns:
        190 bytes, or 198 with a discriminator.
    """
    record = np.zeros(1, dtype=RECORD_DTYPE)
    record['session_id'] = snapshot.session_id
    record['player_a'] = np.frombuffer(snapshot.player_a.ljust(IDENTITY_SIZE, b"\x00"), dtype=np.uint8)
    record['player_b'] = np.frombuffer(snapshot.player_b.ljust(IDENTITY_SIZE, b"\x00"), dtype=np.uint8)
    record['current_turn'] = snapshot.current_turn
    record['game_status'] = snapshot.game_status
    record['grid_a'] = snapshot.grid_a
    record['commitment_a'] = np.frombuffer(snapshot.commitment_a, dtype=np.uint8)
    record['hits_a'] = snapshot.hits_a
    record['grid_b'] = snapshot.grid_b
    record['commitment_b'] = np.frombuffer(snapshot.commitment_b, dtype=np.uint8)
    record['hits_b'] = snapshot.hits_b

    payload = record.tobytes()
    if discriminator is not None:
        if len(discriminator) != DISCRIMINATOR_SIZE:
            raise ValueError(f"Discriminator must be {DISCRIMINATOR_SIZE} bytes")
        payload = bytes(discriminator) + payload
    return payload


def snapshot_from_state(state: SessionState) -> RemoteSnapshot:
    """Express a local session state as a ledger record."""
    if state.status == GameStatus.FINISHED:
        game_status = WIRE_A_WON if state.winner is Role.PLAYER_A else WIRE_B_WON
    elif state.status == GameStatus.ACTIVE:
        game_status = WIRE_ACTIVE
    else:
        game_status = WIRE_WAITING

    return RemoteSnapshot(
        session_id=state.session_id or 0,
        player_a=state.identity_a or _EMPTY_32,
        player_b=state.identity_b or _EMPTY_32,
        current_turn=int(state.turn),
        game_status=game_status,
        grid_a=tuple(state.grid_a),
        commitment_a=state.commitment_a or _EMPTY_32,
        hits_a=state.hits_a,
        grid_b=tuple(state.grid_b),
        commitment_b=state.commitment_b or _EMPTY_32,
        hits_b=state.hits_b,
    )
