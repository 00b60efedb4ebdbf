"""Maze schemas for request/response validation."""

from typing import Optional

from pydantic import BaseModel, Field

from maze_solver.core.maze import MAX_DIMENSION, MIN_DIMENSION, Maze


class MazePosition(BaseModel):
    """Schema for a position in the maze."""

    x: int
    y: int


class MazeGenerateRequest(BaseModel):
    """Schema for generating a new maze."""

    width: Optional[int] = Field(None, ge=MIN_DIMENSION, le=MAX_DIMENSION)
    height: Optional[int] = Field(None, ge=MIN_DIMENSION, le=MAX_DIMENSION)
    seed: Optional[int] = None


class MazeLoadRequest(BaseModel):
    """Schema for loading a hand-edited maze."""

    grid_data: str = Field(..., min_length=MIN_DIMENSION)


class ToggleRequest(BaseModel):
    """Schema for flipping a wall/path cell."""

    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)


class MazeDetail(BaseModel):
    """Schema for detailed maze response with grid data."""

    width: int
    height: int
    entry: MazePosition
    exit: MazePosition
    grid_data: str
    discovered_count: int = 0

    @classmethod
    def from_maze(cls, maze: Maze, show_visited: bool = False) -> "MazeDetail":
        return cls(
            width=maze.width,
            height=maze.height,
            entry=MazePosition(x=maze.entry.x, y=maze.entry.y),
            exit=MazePosition(x=maze.exit.x, y=maze.exit.y),
            grid_data=maze.render(show_visited=show_visited),
            discovered_count=maze.discovered_count,
        )
