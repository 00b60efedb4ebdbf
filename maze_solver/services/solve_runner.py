"""Background solve runner shared by the API routes."""

import logging
import random
import threading
from collections import deque
from typing import Callable, Optional

from maze_solver.config import Settings, get_settings
from maze_solver.core.maze import Maze, Position
from maze_solver.core.maze_generator import MazeGenerator, is_solvable
from maze_solver.core.maze_parser import MazeValidationError, parse_maze_text
from maze_solver.services.llm_service import LlmService
from maze_solver.services.solver_service import (
    MazeSolverService,
    SolveResult,
    SolverEvent,
    SolverState,
    event_to_dict,
)

logger = logging.getLogger(__name__)


class NoMazeError(LookupError):
    """No maze has been generated or loaded yet."""

    pass


class SolverBusyError(RuntimeError):
    """A solve is running and the maze cannot be changed."""

    pass


class SolveRunner:
    """
    Owns the current maze and runs solves on a worker thread.

    Solver events are copied into a bounded log so readers never hold up
    the solve loop; old events fall off the end once the log is full.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        solver_factory: Optional[Callable[[], MazeSolverService]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self.generator = MazeGenerator(rng, max_attempts=self.settings.maze_max_generation_attempts)
        self._solver_factory = solver_factory or self._default_solver
        self._solver: Optional[MazeSolverService] = None

        self.maze: Optional[Maze] = None
        self.force_adjacent_discovery = self.settings.force_adjacent_discovery
        self.use_verbose_description = self.settings.use_verbose_description
        self.last_result: Optional[SolveResult] = None

        self._lock = threading.Lock()
        self._events: deque[dict] = deque(maxlen=self.settings.event_log_size)
        self._event_seq = 0
        self._thread: Optional[threading.Thread] = None
        self._cancel_event = threading.Event()

    def _default_solver(self) -> MazeSolverService:
        return MazeSolverService(LlmService(settings=self.settings), settings=self.settings)

    @property
    def solver(self) -> MazeSolverService:
        """Solver instance, created on first use (needs LLM settings)."""
        if self._solver is None:
            self._solver = self._solver_factory()
            self._solver.subscribe(self._record)
        return self._solver

    @property
    def is_solving(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _ensure_idle(self) -> None:
        if self.is_solving:
            raise SolverBusyError("A solve is in progress")

    def _require_maze(self) -> Maze:
        if self.maze is None:
            raise NoMazeError("No maze has been generated")
        return self.maze

    def generate(
        self,
        width: Optional[int] = None,
        height: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> Maze:
        """Generate a new maze, replacing the current one.

        Missing dimensions fall back to the configured default size.
        """
        self._ensure_idle()
        generator = self.generator
        if seed is not None:
            generator = MazeGenerator(random.Random(seed), max_attempts=generator.max_attempts)
        self.maze = generator.generate(
            width or self.settings.maze_default_width,
            height or self.settings.maze_default_height,
        )
        return self.maze

    def load(self, maze_text: str) -> Maze:
        """Load a hand-edited maze. It must have a path from entry to exit."""
        self._ensure_idle()
        maze = parse_maze_text(maze_text)
        if not is_solvable(maze):
            raise MazeValidationError("Maze has no path from entry to exit")
        self.maze = maze
        return maze

    def toggle(self, x: int, y: int) -> Maze:
        """Flip a wall/path cell of the current maze."""
        self._ensure_idle()
        maze = self._require_maze()
        maze.toggle(Position(x, y))
        return maze

    def configure(
        self,
        force_adjacent_discovery: Optional[bool] = None,
        use_verbose_description: Optional[bool] = None,
    ) -> None:
        """Update solver flags. They take effect at the next solve."""
        if force_adjacent_discovery is not None:
            self.force_adjacent_discovery = force_adjacent_discovery
        if use_verbose_description is not None:
            self.use_verbose_description = use_verbose_description
        logger.info(
            "Solver config: force_adjacent_discovery=%s, use_verbose_description=%s",
            self.force_adjacent_discovery,
            self.use_verbose_description,
        )

    def start(self) -> None:
        """Start solving the current maze on a worker thread."""
        self._ensure_idle()
        maze = self._require_maze()
        solver = self.solver
        solver.force_adjacent_discovery = self.force_adjacent_discovery
        solver.use_verbose_description = self.use_verbose_description

        with self._lock:
            self._events.clear()
            self.last_result = None
        self._cancel_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(solver, maze, self._cancel_event),
            name="maze-solver",
            daemon=True,
        )
        self._thread.start()

    def _run(self, solver: MazeSolverService, maze: Maze, cancel_event: threading.Event) -> None:
        try:
            result = solver.solve(maze, cancel_event)
        except Exception as e:
            logger.exception("Solve thread crashed")
            result = SolveResult(message=f"Error: {e}", state=SolverState.FAILED)
        with self._lock:
            self.last_result = result

    def cancel(self) -> bool:
        """Request cancellation. Returns False if nothing was running."""
        if not self.is_solving:
            return False
        logger.info("Cancelling solve...")
        self._cancel_event.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the running solve finishes. Returns True if it did."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _record(self, event: SolverEvent) -> None:
        with self._lock:
            self._event_seq += 1
            self._events.append({"seq": self._event_seq, **event_to_dict(event)})

    def events(self, since: int = 0) -> list[dict]:
        """Events with a sequence number greater than `since`."""
        with self._lock:
            return [event for event in self._events if event["seq"] > since]

    def status(self) -> dict:
        """Snapshot of the current solve."""
        solver = self._solver
        with self._lock:
            last_result = self.last_result
        return {
            "state": solver.state.value if solver else SolverState.IDLE.value,
            "is_solving": self.is_solving,
            "tool_call_count": solver.tool_call_count if solver else 0,
            "input_tokens": solver.total_input_tokens if solver else 0,
            "output_tokens": solver.total_output_tokens if solver else 0,
            "total_tokens": solver.total_tokens if solver else 0,
            "discovered_count": solver.discovered_count if solver else 0,
            "result": last_result.to_dict() if last_result else None,
        }

    def test_connection(self) -> bool:
        return self.solver.llm_service.test_connection()


_solve_runner: Optional[SolveRunner] = None


def get_solve_runner() -> SolveRunner:
    """Get singleton solve runner."""
    global _solve_runner
    if _solve_runner is None:
        _solve_runner = SolveRunner()
    return _solve_runner
