"""
Maze Generator for Maze Solver.

Builds solvable mazes with a randomized depth-first carve (recursive
backtracker), places the entry on the top edge and the exit on the bottom
edge, then checks reachability with a breadth-first search and regenerates
when the check fails.
"""

import logging
import random
from collections import deque
from typing import Optional

from .maze import MAX_DIMENSION, MIN_DIMENSION, CellType, Maze, Position

logger = logging.getLogger(__name__)

# Axis-aligned steps with stride 2, so a wall cell always sits between carved cells.
CARVE_STEPS: tuple[tuple[int, int], ...] = ((0, -2), (2, 0), (0, 2), (-2, 0))

DEFAULT_MAX_ATTEMPTS = 100


class MazeGenerationError(Exception):
    """Raised when a maze cannot be generated."""

    pass


def is_solvable(maze: Maze) -> bool:
    """
    Check that the exit is reachable from the entry.

    Breadth-first search over walkable cells (path, entry, exit), moving in
    all eight directions.
    """
    if maze.entry is None or maze.exit is None:
        return False

    visited = {maze.entry}
    queue = deque([maze.entry])

    while queue:
        current = queue.popleft()
        if current == maze.exit:
            return True

        for _, neighbour in current.neighbours():
            if neighbour in visited or not maze.in_bounds(neighbour):
                continue
            if maze.cell_at(neighbour).kind.is_walkable:
                visited.add(neighbour)
                queue.append(neighbour)

    return False


class MazeGenerator:
    """
    Generates random solvable mazes.

    Example usage:
        generator = MazeGenerator(random.Random(42))
        maze = generator.generate(21, 21)
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """
        Args:
            rng: Random source. Pass a seeded instance for reproducible mazes.
            max_attempts: Regeneration cap before giving up.
        """
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts

    def generate(self, width: int, height: int) -> Maze:
        """
        Generate a maze with a guaranteed path from entry to exit.

        Even dimensions are bumped to the next odd number.

        Raises:
            MazeGenerationError: If the size is out of range or no solvable
                maze was produced within max_attempts.
        """
        for name, value in (("width", width), ("height", height)):
            if not MIN_DIMENSION <= value <= MAX_DIMENSION:
                raise MazeGenerationError(
                    f"Maze {name} must be between {MIN_DIMENSION} and {MAX_DIMENSION}, got {value}"
                )

        if width % 2 == 0:
            width += 1
        if height % 2 == 0:
            height += 1

        logger.info("Generating maze %dx%d", width, height)

        for attempt in range(1, self.max_attempts + 1):
            maze = self._build(width, height)
            if is_solvable(maze):
                logger.info(
                    "Maze generated successfully. Entry: %s, Exit: %s",
                    maze.entry,
                    maze.exit,
                )
                return maze
            logger.warning(
                "Generated maze was not solvable (attempt %d/%d), regenerating...",
                attempt,
                self.max_attempts,
            )

        raise MazeGenerationError(
            f"No solvable {width}x{height} maze after {self.max_attempts} attempts"
        )

    def _build(self, width: int, height: int) -> Maze:
        maze = Maze(width, height)
        self._carve(maze, Position(1, 1))

        maze.set_entry(Position(1, 0))
        maze.set_exit(Position(width - 2, height - 1))

        # Connect entry and exit to the carved interior
        maze.set_kind(Position(1, 1), CellType.PATH)
        maze.set_kind(Position(width - 2, height - 2), CellType.PATH)
        return maze

    def _shuffled_steps(self) -> list[tuple[int, int]]:
        steps = list(CARVE_STEPS)
        self.rng.shuffle(steps)
        return steps

    def _carve(self, maze: Maze, start: Position) -> None:
        """
        Randomized depth-first carve from `start`.

        Uses an explicit stack of (cell, remaining steps) so large mazes do
        not hit the interpreter's recursion limit.
        """
        maze.set_kind(start, CellType.PATH)
        stack = [(start, iter(self._shuffled_steps()))]

        while stack:
            pos, steps = stack[-1]
            step = next(steps, None)
            if step is None:
                stack.pop()
                continue

            dx, dy = step
            target = pos.offset(dx, dy)
            if not maze.in_bounds(target) or maze.cell_at(target).kind is not CellType.WALL:
                continue

            maze.set_kind(pos.offset(dx // 2, dy // 2), CellType.PATH)
            maze.set_kind(target, CellType.PATH)
            stack.append((target, iter(self._shuffled_steps())))
