"""Maze routes for generating, loading and editing the current maze."""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from maze_solver.api.deps import Runner
from maze_solver.core.maze_generator import MazeGenerationError
from maze_solver.core.maze_parser import MazeParseError, MazeValidationError
from maze_solver.schemas.maze import (
    MazeDetail,
    MazeGenerateRequest,
    MazeLoadRequest,
    ToggleRequest,
)
from maze_solver.services.solve_runner import NoMazeError, SolverBusyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/maze", tags=["Mazes"])


def _busy() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Maze is locked while a solve is in progress",
    )


@router.post(
    "/generate",
    response_model=MazeDetail,
)
async def generate_maze(
    request: MazeGenerateRequest,
    runner: Runner,
) -> MazeDetail:
    """Generate a new random maze.

    Even dimensions are bumped to the next odd number and omitted ones use
    the configured default size. Replaces the current maze.
    """
    try:
        maze = runner.generate(request.width, request.height, seed=request.seed)
    except SolverBusyError:
        raise _busy()
    except MazeGenerationError as e:
        logger.error(f"Maze generation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return MazeDetail.from_maze(maze)


@router.put(
    "",
    response_model=MazeDetail,
)
async def load_maze(
    request: MazeLoadRequest,
    runner: Runner,
) -> MazeDetail:
    """Load a hand-edited maze (X wall, . path, S entry, E exit)."""
    try:
        maze = runner.load(request.grid_data)
    except SolverBusyError:
        raise _busy()
    except (MazeParseError, MazeValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    return MazeDetail.from_maze(maze)


@router.get(
    "",
    response_model=MazeDetail,
)
async def get_maze(
    runner: Runner,
    show_visited: bool = Query(False, description="Mark cells discovered by the solver"),
) -> MazeDetail:
    """Get the current maze with its text rendering."""
    if runner.maze is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No maze has been generated",
        )

    return MazeDetail.from_maze(runner.maze, show_visited=show_visited)


@router.post(
    "/toggle",
    response_model=MazeDetail,
)
async def toggle_cell(
    request: ToggleRequest,
    runner: Runner,
) -> MazeDetail:
    """Flip a cell between wall and path. Entry and exit are left unchanged."""
    try:
        maze = runner.toggle(request.x, request.y)
    except SolverBusyError:
        raise _busy()
    except NoMazeError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return MazeDetail.from_maze(maze)
