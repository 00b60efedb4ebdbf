"""API dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends

from maze_solver.services.solve_runner import SolveRunner, get_solve_runner


# Type alias for cleaner route signatures
Runner = Annotated[SolveRunner, Depends(get_solve_runner)]
