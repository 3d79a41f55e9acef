# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Board representation for the 5x5 single-ship game.

Provides:
- Cell, orientation and coordinate types shared by the whole engine
- Ship placement with bounds checking
- Owner / opponent projections of a board (hidden ship cells)
- Coordinate parsing and ASCII rendering for terminal clients
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import FrozenSet, Iterable, List, Optional, Tuple, Union

import numpy as np

from salvo.errors import (
    AlreadyPlaced,
    InvalidPlacement,
    OutOfBounds,
    ShipOutOfBounds,
    StaleOrMissingCommitment,
)


BOARD_SIZE = 5
NUM_CELLS = BOARD_SIZE * BOARD_SIZE
SHIP_LENGTH = 4
COMMITMENT_SIZE = 32
ROW_LABELS = "ABCDE"


class CellState(IntEnum):
    """State of a cell on the board. Values match the ledger record."""
    EMPTY = 0
    SHIP = 1
    HIT = 2
    MISS = 3


class Orientation(IntEnum):
    """Ship orientation. Values match the commitment circuit inputs."""
    HORIZONTAL = 0
    VERTICAL = 1


@dataclass(frozen=True)
class Coordinate:
    """Board coordinate, ``x`` is the column and ``y`` the row."""
    x: int
    y: int

    @property
    def in_bounds(self) -> bool:
        return 0 <= self.x < BOARD_SIZE and 0 <= self.y < BOARD_SIZE

    @property
    def index(self) -> int:
        """Linear cell index ``y * 5 + x``."""
        return self.y * BOARD_SIZE + self.x

    @classmethod
    def from_index(cls, index: int) -> "Coordinate":
        return cls(x=index % BOARD_SIZE, y=index // BOARD_SIZE)


CoordinateLike = Union[Coordinate, Tuple[int, int]]


def as_coordinate(value: CoordinateLike) -> Coordinate:
    """Accept either a Coordinate or an ``(x, y)`` tuple."""
    if isinstance(value, Coordinate):
        return value
    x, y = value
    return Coordinate(int(x), int(y))


@dataclass(frozen=True)
class Placement:
    """A ship placement: the origin cell plus the direction the ship extends in."""
    x: int
    y: int
    orientation: Orientation = Orientation.HORIZONTAL

    @property
    def origin(self) -> Coordinate:
        return Coordinate(self.x, self.y)

    def cells(self) -> List[Coordinate]:
        """All cells covered by the ship, in order from the origin."""
        cells = []
        for i in range(SHIP_LENGTH):
            if self.orientation == Orientation.HORIZONTAL:
                cells.append(Coordinate(self.x + i, self.y))
            else:
                cells.append(Coordinate(self.x, self.y + i))
        return cells

    def fits(self) -> bool:
        return all(cell.in_bounds for cell in self.cells())


def all_placements() -> List[Placement]:
    """Every legal placement of the single ship."""
    return [
        Placement(x, y, orientation)
        for orientation in Orientation
        for y in range(BOARD_SIZE)
        for x in range(BOARD_SIZE)
        if Placement(x, y, orientation).fits()
    ]


def empty_grid() -> np.ndarray:
    return np.full(NUM_CELLS, CellState.EMPTY, dtype=np.uint8)


class Board:
    """
    One player's 5x5 board.

    The grid is the single stored representation. Ship visibility for the
    opponent is a projection computed by :meth:`view`, never a second grid.
    """

    def __init__(
        self,
        grid: Optional[Iterable[int]] = None,
        commitment: Optional[bytes] = None,
    ):
        """
        Initialize a board.

        Args:
            grid: Optional 25 cell values to start from (e.g. a ledger record).
            commitment: Optional 32-byte commitment already bound to the board.
        """
        if grid is None:
            self.grid = empty_grid()
        else:
            self.grid = np.array(list(grid), dtype=np.uint8)
            if self.grid.shape != (NUM_CELLS,):
                raise ValueError(f"Board grid must have {NUM_CELLS} cells, got {self.grid.size}")
        self.ship_origin: Optional[Coordinate] = None
        self.ship_orientation: Optional[Orientation] = None
        self.commitment: Optional[bytes] = None
        if commitment is not None:
            self.seal(commitment)

    @property
    def hits_taken(self) -> int:
        """Number of cells marked HIT."""
        return int(np.count_nonzero(self.grid == CellState.HIT))

    @property
    def destroyed(self) -> bool:
        return self.hits_taken >= SHIP_LENGTH

    @property
    def is_placed(self) -> bool:
        """True once a ship occupies the board, locally placed or adopted."""
        if self.ship_origin is not None:
            return True
        return bool(np.any((self.grid == CellState.SHIP) | (self.grid == CellState.HIT)))

    def cell(self, target: CoordinateLike) -> CellState:
        target = as_coordinate(target)
        if not target.in_bounds:
            raise OutOfBounds(f"Coordinate ({target.x}, {target.y}) is outside the board")
        return CellState(int(self.grid[target.index]))

    def place(self, origin: CoordinateLike, orientation: Orientation) -> FrozenSet[int]:
        """
        Place the ship.

        Args:
            origin: Starting cell of the ship.
            orientation: Direction the ship extends in from the origin.

        Returns:
            The set of occupied linear cell indices.

        Raises:
            AlreadyPlaced: If the board already holds a ship.
            ShipOutOfBounds: If any ship cell falls outside the grid.
        """
        if self.is_placed:
            raise AlreadyPlaced("A ship has already been placed on this board")

        origin = as_coordinate(origin)
        try:
            orientation = Orientation(orientation)
        except ValueError:
            raise InvalidPlacement(f"Unknown orientation: {orientation!r}")

        placement = Placement(origin.x, origin.y, orientation)
        if not placement.fits():
            raise ShipOutOfBounds(
                f"Ship at ({origin.x}, {origin.y}) {orientation.name.lower()} goes out of bounds"
            )

        occupied = frozenset(cell.index for cell in placement.cells())
        for index in occupied:
            self.grid[index] = CellState.SHIP
        self.ship_origin = origin
        self.ship_orientation = orientation
        return occupied

    def seal(self, commitment: bytes) -> None:
        """
        Bind the public commitment to this board.

        Sealing twice with the same value is a no-op; a different value is rejected.
        """
        commitment = bytes(commitment)
        if len(commitment) != COMMITMENT_SIZE:
            raise StaleOrMissingCommitment(
                f"Commitment must be {COMMITMENT_SIZE} bytes, got {len(commitment)}"
            )
        if self.commitment is not None and self.commitment != commitment:
            raise StaleOrMissingCommitment("Board commitment is already sealed")
        self.commitment = commitment

    def view(self, owner: bool) -> np.ndarray:
        """
        Project the grid for a viewer.

        Args:
            owner: True for the board's owner (ship visible), False for the
                opponent (unhit ship cells shown as EMPTY).
        """
        projected = self.grid.copy()
        if not owner:
            projected[projected == CellState.SHIP] = CellState.EMPTY
        return projected

    def untouched_cells(self) -> List[int]:
        """Indices of cells that have not been attacked yet."""
        attacked = (self.grid == CellState.HIT) | (self.grid == CellState.MISS)
        return [int(i) for i in np.flatnonzero(~attacked)]

    def copy(self) -> "Board":
        clone = Board(self.grid.copy())
        clone.ship_origin = self.ship_origin
        clone.ship_orientation = self.ship_orientation
        clone.commitment = self.commitment
        return clone

    def __eq__(self, other) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return (
            np.array_equal(self.grid, other.grid)
            and self.commitment == other.commitment
            and self.ship_origin == other.ship_origin
            and self.ship_orientation == other.ship_orientation
        )

    def __repr__(self) -> str:
        return f"Board(hits_taken={self.hits_taken}, placed={self.is_placed})"


def parse_coordinate(coord: str) -> Coordinate:
    """
    Parse a coordinate string like 'A1' or 'e5'.

    The letter selects the row (``y``, A-E) and the number the column
    (``x``, 1-5).

    Raises:
        ValueError: If the coordinate is malformed or off the board.
    """
    coord = coord.strip().upper()

    if len(coord) != 2:
        raise ValueError(f"Invalid coordinate format: {coord}")

    row_char, col_str = coord[0], coord[1:]

    if row_char not in ROW_LABELS:
        raise ValueError(f"Invalid row '{row_char}'. Must be A-E.")

    try:
        col_num = int(col_str)
    except ValueError:
        raise ValueError(f"Invalid column '{col_str}'. Must be 1-5.")

    if not (1 <= col_num <= BOARD_SIZE):
        raise ValueError(f"Column {col_num} out of range. Must be 1-5.")

    return Coordinate(x=col_num - 1, y=ROW_LABELS.index(row_char))


def format_coordinate(coord: CoordinateLike) -> str:
    """Convert a coordinate to a string like 'A1'."""
    coord = as_coordinate(coord)
    return f"{ROW_LABELS[coord.y]}{coord.x + 1}"


CELL_SYMBOLS = {
    CellState.EMPTY: "_",
    CellState.SHIP: "#",
    CellState.HIT: "X",
    CellState.MISS: "O",
}


def render_board(grid: Iterable[int]) -> str:
    """
    Render a (projected) grid as ASCII.

    Returns:
        Multi-line string with a column header and one labelled line per row.
    """
    cells = [CellState(int(value)) for value in grid]
    lines = ["    |" + "|".join(f"{i:^3}" for i in range(1, BOARD_SIZE + 1))]
    for row_idx in range(BOARD_SIZE):
        row = cells[row_idx * BOARD_SIZE:(row_idx + 1) * BOARD_SIZE]
        symbols = "|".join(f" {CELL_SYMBOLS[cell]} " for cell in row)
        lines.append(f"  {ROW_LABELS[row_idx]} |{symbols}")
    return "\n".join(lines)
