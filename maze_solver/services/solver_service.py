"""Maze solver service: drives the LLM through GetNeighbours tool calls."""

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

import openai

from maze_solver.config import Settings, get_settings
from maze_solver.core.maze import Maze, Position
from maze_solver.services.llm_service import (
    MAX_CONTEXT_TOKENS,
    STOP_END_TURN,
    STOP_TOOL_USE,
    ContextOverflowError,
    LlmService,
    LlmServiceError,
    SolveCancelledError,
    ToolResultBlock,
    ToolUseBlock,
    TurnRecord,
)
from maze_solver.services.prompts import (
    GET_NEIGHBOURS_TOOL_NAME,
    build_cell_description,
    build_get_neighbours_tool,
    build_seed_prompt,
    build_system_prompt,
)

logger = logging.getLogger(__name__)


class SolverState(str, Enum):
    """Lifecycle of a solve session."""

    IDLE = "idle"
    EXPLORING = "exploring"
    SOLVED = "solved"
    FAILED = "failed"
    OVERFLOWED = "overflowed"
    CANCELLED = "cancelled"


@dataclass
class SolveResult:
    """Outcome of a solve session."""

    success: bool = False
    message: str = ""
    tool_call_count: int = 0
    total_tokens: int = 0
    is_context_overflow: bool = False
    state: SolverState = SolverState.IDLE

    def to_dict(self) -> dict:
        result = asdict(self)
        result["state"] = self.state.value
        return result


@dataclass
class ToolCallEvent:
    """A probe was accepted or rejected."""

    position: Position
    tool_call_number: int
    is_error: bool = False
    error_message: Optional[str] = None
    type: str = field(default="tool_call", init=False)


@dataclass
class TokenUsageEvent:
    """Provider-reported token usage after a turn."""

    input_tokens: int
    output_tokens: int
    total_tokens: int
    max_tokens: int = MAX_CONTEXT_TOKENS
    type: str = field(default="token_usage", init=False)

    @property
    def usage_percentage(self) -> float:
        return self.total_tokens / self.max_tokens * 100 if self.max_tokens > 0 else 0.0


@dataclass
class StatusChangedEvent:
    status: str
    type: str = field(default="status", init=False)


@dataclass
class ContextOverflowEvent:
    message: str
    type: str = field(default="context_overflow", init=False)


@dataclass
class SolvedEvent:
    message: str
    tool_call_count: int
    total_tokens: int
    type: str = field(default="solved", init=False)


SolverEvent = Union[
    ToolCallEvent,
    TokenUsageEvent,
    StatusChangedEvent,
    ContextOverflowEvent,
    SolvedEvent,
]
SolverListener = Callable[[SolverEvent], None]


def event_to_dict(event: SolverEvent) -> dict:
    """Serialize an event for logs and the HTTP API."""
    data = asdict(event)
    if isinstance(event, TokenUsageEvent):
        data["usage_percentage"] = round(event.usage_percentage, 2)
    return data


class MazeSolverService:
    """
    Coordinates the LLM solving a maze with GetNeighbours tool calls.

    One solve runs at a time. Each iteration sends the whole conversation,
    answers every tool call in the reply, and stops when the model ends its
    turn, the context overflows, the iteration cap is hit or cancellation is
    requested.

    Example usage:
        solver = MazeSolverService(LlmService())
        solver.subscribe(print)
        result = solver.solve(maze)
    """

    def __init__(
        self,
        llm_service: LlmService,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.llm_service = llm_service

        # Only probe cells adjacent to already discovered ones
        self.force_adjacent_discovery: bool = self.settings.force_adjacent_discovery
        # Attach the long filler description to every tool result
        self.use_verbose_description: bool = self.settings.use_verbose_description
        self.max_iterations: int = self.settings.solver_max_iterations
        self.max_output_tokens: int = self.settings.llm_max_output_tokens

        self._listeners: list[SolverListener] = []
        self._discovered_cells: set[Position] = set()
        self.messages: list[TurnRecord] = []
        self.state = SolverState.IDLE
        self.tool_call_count = 0
        self.total_input_tokens = 0
        self.total_output_tokens = 0

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    @property
    def is_solving(self) -> bool:
        return self.state is SolverState.EXPLORING

    @property
    def discovered_cells(self) -> frozenset[Position]:
        return frozenset(self._discovered_cells)

    @property
    def discovered_count(self) -> int:
        return len(self._discovered_cells)

    def subscribe(self, listener: SolverListener) -> None:
        """Register a callable that receives every solver event."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: SolverListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: SolverEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Solver event listener failed for %s event", event.type)

    def _set_status(self, status: str) -> None:
        self._emit(StatusChangedEvent(status))

    def reset(self) -> None:
        """Clear counters, the discovered set and the conversation."""
        self.tool_call_count = 0
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.state = SolverState.IDLE
        self._discovered_cells.clear()
        self.messages = []

    def solve(
        self,
        maze: Maze,
        cancel_event: Optional[threading.Event] = None,
    ) -> SolveResult:
        """
        Run one solve session to completion.

        Args:
            maze: Maze with entry and exit placed.
            cancel_event: Set from another thread to stop at the next iteration.

        Returns:
            SolveResult describing how the session ended.

        Raises:
            ValueError: If no maze (or a maze without entry/exit) is given.
            RuntimeError: If a solve is already running on this service.
        """
        if maze is None:
            raise ValueError("A maze is required to solve")
        if maze.entry is None or maze.exit is None:
            raise ValueError("Maze must have an entry and an exit")
        if self.is_solving:
            raise RuntimeError("A solve is already in progress")

        cancel_event = cancel_event or threading.Event()
        self.reset()
        maze.reset_discovered()
        self.state = SolverState.EXPLORING

        result = SolveResult()
        try:
            self._set_status("Starting maze solver...")
            logger.info(
                "Starting maze solver. Entry: %s, Exit: %s, Size: %dx%d",
                maze.entry,
                maze.exit,
                maze.width,
                maze.height,
            )
            self._explore(maze, cancel_event, result)
        except ContextOverflowError as e:
            logger.error("Context overflow during maze solving: %s", e)
            result.message = f"Context overflow: {e}"
            result.is_context_overflow = True
            self.state = SolverState.OVERFLOWED
            self._emit(ContextOverflowEvent(str(e)))
            self._set_status("Context Overflow!")
        except SolveCancelledError:
            self._cancelled(result)
        except (LlmServiceError, openai.OpenAIError) as e:
            logger.error("Error during maze solving: %s", e)
            result.message = f"Error: {e}"
            self.state = SolverState.FAILED
            self._set_status(f"Error: {e}")
        except Exception as e:
            logger.exception("Unexpected error during maze solving")
            result.message = f"Error: {e}"
            self.state = SolverState.FAILED
            self._set_status(f"Error: {e}")
        finally:
            if self.state is SolverState.EXPLORING:
                self.state = SolverState.FAILED
            result.state = self.state
            result.success = self.state is SolverState.SOLVED
            result.tool_call_count = self.tool_call_count
            result.total_tokens = self.total_tokens

        logger.info(
            "Solve finished. State: %s, Tool calls: %d, Total tokens: %d",
            result.state.value,
            result.tool_call_count,
            result.total_tokens,
        )
        return result

    def _cancelled(self, result: SolveResult) -> None:
        result.message = "Operation cancelled"
        self.state = SolverState.CANCELLED
        self._set_status("Cancelled")

    def _fail(self, result: SolveResult, message: str) -> None:
        result.message = message
        self.state = SolverState.FAILED
        self._set_status(f"Failed: {message}")

    def _explore(self, maze: Maze, cancel_event: threading.Event, result: SolveResult) -> None:
        system_prompt = build_system_prompt(maze, self.force_adjacent_discovery)
        tools = [build_get_neighbours_tool()]
        self.messages.append(TurnRecord.user_text(build_seed_prompt(maze)))

        for iteration in range(1, self.max_iterations + 1):
            if cancel_event.is_set():
                self._cancelled(result)
                return

            self._set_status(f"Solving... (iteration {iteration}, {self.tool_call_count} tool calls)")

            response = self.llm_service.send(
                system_prompt,
                self.messages,
                tools,
                max_tokens=self.max_output_tokens,
                cancel_event=cancel_event,
            )

            # Provider counts already cover the full history
            self.total_input_tokens = response.input_tokens
            self.total_output_tokens = response.output_tokens
            self._emit(
                TokenUsageEvent(
                    input_tokens=self.total_input_tokens,
                    output_tokens=self.total_output_tokens,
                    total_tokens=self.total_tokens,
                )
            )
            logger.debug(
                "Iteration %d: Stop reason = %s, Total tokens = %d",
                iteration,
                response.stop_reason,
                self.total_tokens,
            )

            self.messages.append(TurnRecord(role="assistant", blocks=list(response.blocks)))

            if response.stop_reason == STOP_END_TURN:
                text = response.text or ""
                result.message = text
                self.state = SolverState.SOLVED
                logger.info(
                    "Maze solved! Tool calls: %d, Total tokens: %d",
                    self.tool_call_count,
                    self.total_tokens,
                )
                self._emit(SolvedEvent(text, self.tool_call_count, self.total_tokens))
                self._set_status("Solved!")
                return

            if response.stop_reason != STOP_TOOL_USE:
                logger.warning("Unexpected stop reason: %s", response.stop_reason)
                self._fail(result, f"Unexpected stop reason: {response.stop_reason}")
                return

            tool_uses = response.tool_uses
            if not tool_uses:
                logger.warning("Stop reason was tool_use but no tool calls found")
                self._fail(result, "Stop reason was tool_use but no tool calls found")
                return

            for tool_use in tool_uses:
                self.tool_call_count += 1
                logger.debug(
                    "Tool call #%d: %s with input %s",
                    self.tool_call_count,
                    tool_use.name,
                    tool_use.arguments,
                )
                content = self.process_tool_call(maze, tool_use)
                self.messages.append(
                    TurnRecord(role="user", blocks=[ToolResultBlock(tool_use.id, content)])
                )

        self._fail(result, "Max iterations reached without finding solution")

    def process_tool_call(self, maze: Maze, tool_use: ToolUseBlock) -> str:
        """Answer one tool call with a JSON string."""
        if tool_use.name != GET_NEIGHBOURS_TOOL_NAME:
            return json.dumps({"error": f"Unknown tool: {tool_use.name}"})

        coordinates = _decode_coordinates(tool_use.arguments)
        if coordinates is None:
            logger.warning("Malformed GetNeighbours input: %s", tool_use.arguments)
            return json.dumps({"error": "Tool input missing x or y property"})

        x, y = coordinates
        return json.dumps(self.probe(maze, Position(x, y)), separators=(",", ":"))

    def probe(self, maze: Maze, position: Position) -> dict[str, Any]:
        """
        Discover `position` and describe its eight neighbours.

        Rejected probes (adjacency rule) return an error payload and leave
        the discovered set untouched.
        """
        if self.force_adjacent_discovery and not self.is_valid_discovery(maze, position):
            logger.warning(
                "Non-adjacent cell query attempted: %s. Discovered cells: %d",
                position,
                len(self._discovered_cells),
            )
            self._emit(
                ToolCallEvent(
                    position=position,
                    tool_call_number=self.tool_call_count,
                    is_error=True,
                    error_message="Non-adjacent cell",
                )
            )
            return {
                "error": (
                    f"Invalid query: Position ({position.x}, {position.y}) is not adjacent to any "
                    "previously discovered cell. You must explore cells step by step, only querying "
                    "cells that neighbor already discovered positions. "
                    f"Discovered cells so far: {len(self._discovered_cells)}"
                )
            }

        self._discovered_cells.add(position)
        maze.mark_discovered(position)
        self._emit(ToolCallEvent(position=position, tool_call_number=self.tool_call_count))
        logger.debug("GetNeighbours called for position %s", position)

        neighbours = {
            direction: {"x": pos.x, "y": pos.y, "status": maze.status_of(pos)}
            for direction, pos in position.neighbours()
        }
        return {
            "position": position.to_dict(),
            "neighbours": neighbours,
            "currentCellDescription": build_cell_description(
                position.x, position.y, self.use_verbose_description
            ),
        }

    def is_valid_discovery(self, maze: Maze, position: Position) -> bool:
        """First probe: the entry or next to it. Later probes: next to a discovered cell."""
        if not self._discovered_cells:
            return position == maze.entry or position.is_adjacent_to(maze.entry)

        return any(pos in self._discovered_cells for _, pos in position.neighbours())


def _decode_coordinates(arguments: dict[str, Any]) -> Optional[tuple[int, int]]:
    x = arguments.get("x")
    y = arguments.get("y")
    for value in (x, y):
        if isinstance(value, bool) or not isinstance(value, int):
            return None
    return x, y
