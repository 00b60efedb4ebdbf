# Core module
from .maze import (
    Cell,
    CellType,
    Maze,
    OutOfRangeError,
    Position,
    MIN_DIMENSION,
    MAX_DIMENSION,
    MAX_GRID_DIMENSION,
)
from .maze_generator import MazeGenerationError, MazeGenerator, is_solvable
from .maze_parser import MazeParseError, MazeValidationError, parse_maze_text

__all__ = [
    "Cell",
    "CellType",
    "Maze",
    "OutOfRangeError",
    "Position",
    "MIN_DIMENSION",
    "MAX_DIMENSION",
    "MAX_GRID_DIMENSION",
    "MazeGenerationError",
    "MazeGenerator",
    "is_solvable",
    "MazeParseError",
    "MazeValidationError",
    "parse_maze_text",
]
