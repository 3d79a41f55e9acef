# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Placement commitments.

A commitment binds a secret ship placement to a public 32-byte value:
- deterministic for identical inputs
- one-way (SHA-256 over the encoded placement and a 128-bit salt)
- validates that the ship fits before producing anything

Commitment generation is treated as a potentially slow external computation,
so :class:`CommitmentGenerator` is asynchronous and delegates to a proving
service. :class:`LocalProver` evaluates the commitment in-process.
"""

import hashlib
import logging
import secrets
from typing import Dict, Optional, Set, Union

from salvo.board import BOARD_SIZE, COMMITMENT_SIZE, Orientation, Placement
from salvo.errors import ExternalServiceFailure, InvalidPlacement


logger = logging.getLogger(__name__)

SALT_BITS = 128
DOMAIN_TAG = b"salvo/board-commitment/v1"


def validate_placement(x: int, y: int, orientation: int, salt: int) -> Orientation:
    """
    Check commitment inputs.

    Returns:
        The orientation as an Orientation member.

    Raises:
        InvalidPlacement: If a field is out of range or the ship does not fit.
    """
    if not (0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE):
        raise InvalidPlacement(f"Ship origin ({x}, {y}) is outside the board")
    try:
        orientation = Orientation(orientation)
    except ValueError:
        raise InvalidPlacement(f"Unknown orientation: {orientation!r}")
    if not (0 <= salt < 2 ** SALT_BITS):
        raise InvalidPlacement(f"Salt must be a {SALT_BITS}-bit unsigned value")
    if not Placement(x, y, orientation).fits():
        raise InvalidPlacement(
            f"Ship at ({x}, {y}) {orientation.name.lower()} doesn't fit on the board"
        )
    return orientation


def board_commitment(x: int, y: int, orientation: int, salt: int) -> bytes:
    """
    Compute the 32-byte commitment for a placement.

    Args:
        x: Ship origin column (0-4).
        y: Ship origin row (0-4).
        orientation: 0 = horizontal, 1 = vertical.
        salt: 128-bit secret supplied by the caller.

    Returns:
        32-byte digest.

    Raises:
        InvalidPlacement: If the placement is illegal. No hash is produced.
    """
    orientation = validate_placement(x, y, orientation, salt)
    payload = (
        DOMAIN_TAG
        + bytes([x, y, int(orientation)])
        + salt.to_bytes(SALT_BITS // 8, "little")
    )
    return hashlib.sha256(payload).digest()


def commitment_hex(commitment: bytes) -> str:
    """64-character lowercase hex form of a commitment."""
    return bytes(commitment).hex().rjust(COMMITMENT_SIZE * 2, "0")


class ProvingService:
    """
    Interface of the proving engine that evaluates the commitment circuit.

    ``execute`` receives ``{"ship_x", "ship_y", "orientation", "salt"}`` (salt
    as a decimal string) and returns ``{"returnValue": value}``.
    """

    async def execute(self, inputs: Dict[str, Union[int, str]]) -> Dict:
        raise NotImplementedError


class LocalProver(ProvingService):
    """Evaluates the commitment in-process."""

    async def execute(self, inputs: Dict[str, Union[int, str]]) -> Dict:
        digest = board_commitment(
            int(inputs["ship_x"]),
            int(inputs["ship_y"]),
            int(inputs["orientation"]),
            int(inputs["salt"]),
        )
        return {"returnValue": int.from_bytes(digest, "big")}


def _to_commitment_bytes(value) -> bytes:
    """Normalise a prover return value (int, hex string or bytes) to 32 bytes."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
        if len(raw) > COMMITMENT_SIZE:
            raise ValueError(f"Prover returned {len(raw)} bytes")
        return raw.rjust(COMMITMENT_SIZE, b"\x00")
    if isinstance(value, str):
        value = int(value, 16)
    return int(value).to_bytes(COMMITMENT_SIZE, "big")


class CommitmentGenerator:
    """Produces placement commitments through a proving service."""

    def __init__(self, prover: Optional[ProvingService] = None):
        self.prover = prover if prover is not None else LocalProver()

    async def commit(self, x: int, y: int, orientation: int, salt: int) -> bytes:
        """
        Generate the commitment for a placement.

        The placement is validated before the prover is invoked, so an illegal
        placement never reaches it.

        Raises:
            InvalidPlacement: If the placement is illegal.
            ExternalServiceFailure: If the prover fails or returns garbage.
        """
        orientation = validate_placement(x, y, orientation, salt)
        inputs = {
            "ship_x": x,
            "ship_y": y,
            "orientation": int(orientation),
            "salt": str(salt),
        }
        try:
            result = await self.prover.execute(inputs)
            commitment = _to_commitment_bytes(result["returnValue"])
        except InvalidPlacement:
            raise
        except Exception as e:
            logger.error(f"Commitment generation failed: {e}")
            raise ExternalServiceFailure(f"Proving service failed: {e}") from e

        logger.debug(f"Generated commitment {commitment_hex(commitment)[:16]}...")
        return commitment


class SaltSource:
    """
    Cryptographically secure salts.

    A source never hands out the same salt twice.
    """

    def __init__(self):
        self._issued: Set[int] = set()

    def generate(self) -> int:
        salt = secrets.randbits(SALT_BITS)
        while salt in self._issued:
            salt = secrets.randbits(SALT_BITS)
        self._issued.add(salt)
        return salt
