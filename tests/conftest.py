"""Pytest configuration and fixtures."""

import random
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from maze_solver.config import Settings
from maze_solver.core.maze import Maze
from maze_solver.core.maze_parser import parse_maze_text
from maze_solver.main import app
from maze_solver.services.solve_runner import SolveRunner, get_solve_runner
from maze_solver.services.solver_service import MazeSolverService

from fakes import SIMPLE_MAZE, FakeLlmService


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        _env_file=None,
        llm_api_key="test-key",
        llm_model="test-model",
        llm_endpoint=None,
        llm_max_retries=5,
        llm_retry_base_delay_seconds=10.0,
        solver_max_iterations=10_000,
        force_adjacent_discovery=True,
        use_verbose_description=True,
    )


@pytest.fixture
def simple_maze() -> Maze:
    """7x7 hand-made maze."""
    return parse_maze_text(SIMPLE_MAZE)


@pytest.fixture
def fake_llm() -> FakeLlmService:
    """Scripted LLM; tests append to fake_llm.responses."""
    return FakeLlmService()


@pytest.fixture
def solver(fake_llm, settings) -> MazeSolverService:
    """Solver wired to the scripted LLM."""
    return MazeSolverService(fake_llm, settings=settings)


@pytest.fixture
def runner(solver, settings) -> SolveRunner:
    """Solve runner using the scripted solver."""
    return SolveRunner(settings=settings, solver_factory=lambda: solver, rng=random.Random(7))


@pytest_asyncio.fixture(scope="function")
async def client(runner) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_solve_runner] = lambda: runner

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    runner.cancel()
    runner.wait(timeout=5)
    app.dependency_overrides.clear()
