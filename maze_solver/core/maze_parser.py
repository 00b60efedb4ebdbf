"""
Maze Parser for Maze Solver.

Turns hand-edited maze text (the format produced by Maze.render) back into
a Maze.

Maze Format:
    S = Entry
    E = Exit
    X = Wall
    . = Path (a space or 'o' is also read as path)
"""

from typing import Optional

from .maze import MAX_GRID_DIMENSION, MIN_DIMENSION, CellType, Maze, Position


class MazeParseError(Exception):
    """Exception raised when maze parsing fails."""

    pass


class MazeValidationError(Exception):
    """Exception raised when maze validation fails."""

    pass


VALID_CHARS = {"S", "E", "X", ".", " ", "o"}
PATH_CHARS = {".", " ", "o"}


def parse_maze_text(maze_text: str) -> Maze:
    """
    Parse maze text into a Maze.

    Args:
        maze_text: Multi-line string representing the maze grid.

    Returns:
        Maze with walls, paths, entry and exit set.

    Raises:
        MazeParseError: If the maze cannot be parsed.
        MazeValidationError: If the maze is invalid.
    """
    if not maze_text or not maze_text.strip():
        raise MazeParseError("Maze text is empty")

    lines = [line.rstrip("\r") for line in maze_text.strip("\n").split("\n")]

    height = len(lines)
    width = len(lines[0])

    if width == 0:
        raise MazeParseError("Maze has no columns")

    for y, line in enumerate(lines):
        if len(line) != width:
            raise MazeParseError(
                f"Maze must be rectangular: row {y} has {len(line)} columns, expected {width}"
            )

    if width < MIN_DIMENSION or height < MIN_DIMENSION:
        raise MazeValidationError(
            f"Maze must be at least {MIN_DIMENSION}x{MIN_DIMENSION}, got {width}x{height}"
        )

    if width > MAX_GRID_DIMENSION or height > MAX_GRID_DIMENSION:
        raise MazeValidationError(
            f"Maze must be at most {MAX_GRID_DIMENSION}x{MAX_GRID_DIMENSION}, got {width}x{height}"
        )

    entry_pos: Optional[Position] = None
    exit_pos: Optional[Position] = None
    maze = Maze(width, height)

    for y, line in enumerate(lines):
        for x, char in enumerate(line):
            if char not in VALID_CHARS:
                raise MazeValidationError(
                    f"Invalid character '{char}' at position ({x}, {y}). "
                    f"Valid characters: {', '.join(sorted(VALID_CHARS))}"
                )

            pos = Position(x, y)
            if char == "S":
                if entry_pos is not None:
                    raise MazeValidationError(
                        f"Multiple entry positions found: "
                        f"first at {entry_pos}, second at {pos}"
                    )
                entry_pos = pos
            elif char == "E":
                if exit_pos is not None:
                    raise MazeValidationError(
                        f"Multiple exit positions found: "
                        f"first at {exit_pos}, second at {pos}"
                    )
                exit_pos = pos
            elif char in PATH_CHARS:
                maze.set_kind(pos, CellType.PATH)

    if entry_pos is None:
        raise MazeValidationError("Maze must have an entry position (S)")

    if exit_pos is None:
        raise MazeValidationError("Maze must have an exit position (E)")

    maze.set_entry(entry_pos)
    maze.set_exit(exit_pos)
    return maze
