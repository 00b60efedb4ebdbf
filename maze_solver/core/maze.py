"""
Maze Solver Grid Model

In-memory maze representation used by the generator and the discovery
protocol:
- Positions and their eight neighbours
- Cell kinds (wall, path, entry, exit) and the discovered flag
- Entry/exit bookkeeping with a single occupant each
- Status queries as reported to the agent

Text Format (see render() and maze_parser):
    S = Entry
    E = Exit
    X = Wall
    . = Path
    o = Path already discovered by the agent (render only)
"""

from enum import Enum
from dataclasses import dataclass
from typing import Iterator, Optional


MIN_DIMENSION = 5
MAX_DIMENSION = 500
# Largest grid the generator emits (an even MAX_DIMENSION is bumped to odd)
MAX_GRID_DIMENSION = MAX_DIMENSION + 1

STATUS_WALL = "wall"
STATUS_PATH = "path"
STATUS_EXIT = "exit"
STATUS_OUT_OF_BOUNDS = "out_of_bounds"


class OutOfRangeError(IndexError):
    """Raised when a position lies outside the maze."""

    pass


class CellType(Enum):
    """Kinds of cells in the maze."""
    WALL = "X"
    PATH = "."
    ENTRY = "S"
    EXIT = "E"

    @property
    def status(self) -> str:
        """Status string reported to the agent. Entry is walkable, so it reads as path."""
        statuses = {
            CellType.WALL: STATUS_WALL,
            CellType.PATH: STATUS_PATH,
            CellType.ENTRY: STATUS_PATH,
            CellType.EXIT: STATUS_EXIT,
        }
        return statuses[self]

    @property
    def is_walkable(self) -> bool:
        return self is not CellType.WALL


# Direction label -> (dx, dy), in the order reported to the agent.
NEIGHBOUR_OFFSETS: dict[str, tuple[int, int]] = {
    "N": (0, -1),
    "NE": (1, -1),
    "E": (1, 0),
    "SE": (1, 1),
    "S": (0, 1),
    "SW": (-1, 1),
    "W": (-1, 0),
    "NW": (-1, -1),
}


@dataclass(frozen=True)
class Position:
    """2D position in the maze."""
    x: int
    y: int

    def offset(self, dx: int, dy: int) -> "Position":
        """Return the position shifted by (dx, dy)."""
        return Position(self.x + dx, self.y + dy)

    def neighbours(self) -> Iterator[tuple[str, "Position"]]:
        """Yield (direction, position) for all eight surrounding cells."""
        for direction, (dx, dy) in NEIGHBOUR_OFFSETS.items():
            yield direction, self.offset(dx, dy)

    def is_adjacent_to(self, other: "Position") -> bool:
        """Chebyshev distance of exactly one (the same cell is not adjacent)."""
        dx = abs(self.x - other.x)
        dy = abs(self.y - other.y)
        return dx <= 1 and dy <= 1 and (dx + dy) > 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"x": self.x, "y": self.y}

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


@dataclass
class Cell:
    """A single cell of the grid."""
    position: Position
    kind: CellType = CellType.WALL
    discovered: bool = False

    @property
    def status(self) -> str:
        return self.kind.status


class Maze:
    """
    Dense width x height grid of cells with a single entry and a single exit.

    Cells start as walls. The generator carves paths and places entry/exit;
    hand edits go through toggle(). The discovery protocol only ever touches
    the `discovered` flags.

    Example usage:
        maze = Maze(7, 7)
        maze.set_entry(Position(1, 0))
        maze.set_exit(Position(5, 6))
        maze.status_of(Position(1, 0))   # "path"
    """

    def __init__(self, width: int, height: int):
        """
        Create an all-wall grid.

        Args:
            width: Number of columns (at least MIN_DIMENSION).
            height: Number of rows (at least MIN_DIMENSION).
        """
        if width < MIN_DIMENSION or height < MIN_DIMENSION:
            raise ValueError(
                f"Maze must be at least {MIN_DIMENSION}x{MIN_DIMENSION}, got {width}x{height}"
            )

        self.width = width
        self.height = height
        self.entry: Optional[Position] = None
        self.exit: Optional[Position] = None
        self.grid: list[list[Cell]] = [
            [Cell(Position(x, y)) for x in range(width)]
            for y in range(height)
        ]

    def in_bounds(self, pos: Position) -> bool:
        """Check whether a position lies inside the grid."""
        return 0 <= pos.x < self.width and 0 <= pos.y < self.height

    def cell_at(self, pos: Position) -> Cell:
        """
        Get the cell at a position.

        Raises:
            OutOfRangeError: If the position is outside the grid.
        """
        if not self.in_bounds(pos):
            raise OutOfRangeError(
                f"Position {pos} is outside the {self.width}x{self.height} maze"
            )
        return self.grid[pos.y][pos.x]

    def set_kind(self, pos: Position, kind: CellType) -> None:
        """Set a cell to wall or path. Entry and exit go through set_entry/set_exit."""
        if kind in (CellType.ENTRY, CellType.EXIT):
            raise ValueError("Use set_entry()/set_exit() to place entry and exit")
        cell = self.cell_at(pos)
        if pos in (self.entry, self.exit):
            raise ValueError(f"Cannot overwrite entry/exit at {pos}")
        cell.kind = kind

    def status_of(self, pos: Position) -> str:
        """Status of a position as reported to the agent."""
        if not self.in_bounds(pos):
            return STATUS_OUT_OF_BOUNDS
        return self.grid[pos.y][pos.x].status

    def set_entry(self, pos: Position) -> None:
        """Move the entry to `pos`, turning the previous entry cell back into path."""
        self._set_endpoint(pos, CellType.ENTRY)

    def set_exit(self, pos: Position) -> None:
        """Move the exit to `pos`, turning the previous exit cell back into path."""
        self._set_endpoint(pos, CellType.EXIT)

    def _set_endpoint(self, pos: Position, kind: CellType) -> None:
        cell = self.cell_at(pos)
        previous = self.entry if kind is CellType.ENTRY else self.exit
        other = self.exit if kind is CellType.ENTRY else self.entry

        if pos == other:
            raise ValueError(f"Entry and exit cannot share position {pos}")

        if previous is not None:
            self.grid[previous.y][previous.x].kind = CellType.PATH

        cell.kind = kind
        if kind is CellType.ENTRY:
            self.entry = pos
        else:
            self.exit = pos

    def toggle(self, pos: Position) -> None:
        """Flip wall <-> path. Entry, exit and out-of-bounds positions are left alone."""
        if not self.in_bounds(pos):
            return
        cell = self.grid[pos.y][pos.x]
        if cell.kind in (CellType.ENTRY, CellType.EXIT):
            return
        cell.kind = CellType.PATH if cell.kind is CellType.WALL else CellType.WALL

    def mark_discovered(self, pos: Position) -> None:
        """Flag a cell as probed by the agent."""
        if self.in_bounds(pos):
            self.grid[pos.y][pos.x].discovered = True

    def reset_discovered(self) -> None:
        """Clear every discovered flag."""
        for row in self.grid:
            for cell in row:
                cell.discovered = False

    @property
    def discovered_count(self) -> int:
        return sum(1 for row in self.grid for cell in row if cell.discovered)

    def cells(self) -> Iterator[Cell]:
        """Iterate over all cells, row by row."""
        for row in self.grid:
            yield from row

    def render(self, show_visited: bool = False) -> str:
        """
        Render the grid as text, one line per row.

        Args:
            show_visited: Mark discovered path cells with 'o'.
        """
        lines = []
        for row in self.grid:
            line = ""
            for cell in row:
                if show_visited and cell.discovered and cell.kind is CellType.PATH:
                    line += "o"
                else:
                    line += cell.kind.value
            lines.append(line)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Get maze metadata."""
        return {
            "width": self.width,
            "height": self.height,
            "entry": self.entry.to_dict() if self.entry else None,
            "exit": self.exit.to_dict() if self.exit else None,
        }
