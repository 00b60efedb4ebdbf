"""Tests for the maze and solve HTTP endpoints."""

import asyncio
import threading

import pytest
from httpx import AsyncClient

from maze_solver.main import app
from maze_solver.services.llm_service import LlmConfigurationError, SolveCancelledError
from maze_solver.services.solve_runner import SolveRunner, get_solve_runner
from maze_solver.services.solver_service import MazeSolverService

from fakes import SIMPLE_MAZE, FakeLlmService, end_turn, probes

UNSOLVABLE_MAZE = SIMPLE_MAZE.replace("XXXXX.X", "XXXXXXX")


class BlockingLlmService(FakeLlmService):
    """Holds each request until the solve is cancelled."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()

    def send(self, system_prompt, history, tools=None, max_tokens=4096, cancel_event=None):
        self.started.set()
        if cancel_event is not None and cancel_event.wait(5):
            raise SolveCancelledError("Cancelled while waiting to retry")
        return super().send(system_prompt, history, tools, max_tokens, cancel_event)


class SlowConnectionLlmService(FakeLlmService):
    """Connection check that waits until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def test_connection(self) -> bool:
        self.started.set()
        self.release.wait(5)
        return True


class TestMazeEndpoints:
    """Tests for maze endpoints."""

    @pytest.mark.asyncio
    async def test_get_maze_before_generate(self, client: AsyncClient):
        """Test 404 when no maze exists yet."""
        response = await client.get("/v1/maze")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_generate_maze(self, client: AsyncClient):
        """Test generating a maze returns its grid."""
        response = await client.post("/v1/maze/generate", json={"width": 9, "height": 7})
        assert response.status_code == 200
        data = response.json()
        assert data["width"] == 9
        assert data["height"] == 7
        assert data["entry"] == {"x": 1, "y": 0}
        assert data["exit"] == {"x": 7, "y": 6}
        rows = data["grid_data"].split("\n")
        assert len(rows) == 7
        assert all(len(row) == 9 for row in rows)
        assert data["discovered_count"] == 0

        response = await client.get("/v1/maze")
        assert response.status_code == 200
        assert response.json()["grid_data"] == data["grid_data"]

    @pytest.mark.asyncio
    async def test_generate_even_size(self, client: AsyncClient):
        """Test even dimensions are bumped to odd."""
        response = await client.post("/v1/maze/generate", json={"width": 10, "height": 12})
        assert response.status_code == 200
        data = response.json()
        assert (data["width"], data["height"]) == (11, 13)

    @pytest.mark.asyncio
    async def test_generate_default_size(self, client: AsyncClient):
        """Test omitted dimensions use the configured default."""
        response = await client.post("/v1/maze/generate", json={})
        assert response.status_code == 200
        data = response.json()
        assert (data["width"], data["height"]) == (21, 21)

    @pytest.mark.asyncio
    async def test_generate_with_seed_is_reproducible(self, client: AsyncClient):
        """Test a seed reproduces the same maze."""
        body = {"width": 15, "height": 15, "seed": 1234}
        first = await client.post("/v1/maze/generate", json=body)
        second = await client.post("/v1/maze/generate", json=body)
        assert first.json()["grid_data"] == second.json()["grid_data"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("width,height", [(4, 9), (9, 501)])
    async def test_generate_invalid_size(self, client: AsyncClient, width, height):
        """Test size validation."""
        response = await client.post("/v1/maze/generate", json={"width": width, "height": height})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_load_maze(self, client: AsyncClient):
        """Test loading a hand-made maze."""
        response = await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})
        assert response.status_code == 200
        data = response.json()
        assert data["grid_data"] == SIMPLE_MAZE
        assert data["exit"] == {"x": 5, "y": 6}

    @pytest.mark.asyncio
    async def test_load_invalid_maze(self, client: AsyncClient):
        """Test parse errors are reported as 422."""
        response = await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE.replace("E", "X")})
        assert response.status_code == 422
        assert "exit position" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_load_oversized_maze(self, client: AsyncClient):
        """Test grids beyond the largest generated size are refused."""
        rows = ["XS" + "X" * 500] + ["X" + "." * 500 + "X"] * 3 + ["X" * 500 + "EX"]

        response = await client.put("/v1/maze", json={"grid_data": "\n".join(rows)})
        assert response.status_code == 422
        assert "at most 501x501" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_load_unsolvable_maze(self, client: AsyncClient, runner):
        """Test a maze without a route is refused and the old maze kept."""
        await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})

        response = await client.put("/v1/maze", json={"grid_data": UNSOLVABLE_MAZE})
        assert response.status_code == 422
        assert response.json()["detail"] == "Maze has no path from entry to exit"
        assert runner.maze.render() == SIMPLE_MAZE

    @pytest.mark.asyncio
    async def test_toggle_cell(self, client: AsyncClient):
        """Test flipping a wall to path."""
        await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})

        response = await client.post("/v1/maze/toggle", json={"x": 2, "y": 2})
        assert response.status_code == 200
        assert response.json()["grid_data"].split("\n")[2] == "XX.XX.X"

    @pytest.mark.asyncio
    async def test_toggle_entry_is_ignored(self, client: AsyncClient):
        """Test the entry cannot be toggled."""
        await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})

        response = await client.post("/v1/maze/toggle", json={"x": 1, "y": 0})
        assert response.status_code == 200
        assert response.json()["grid_data"] == SIMPLE_MAZE

    @pytest.mark.asyncio
    async def test_toggle_without_maze(self, client: AsyncClient):
        """Test 404 when toggling before a maze exists."""
        response = await client.post("/v1/maze/toggle", json={"x": 1, "y": 1})
        assert response.status_code == 404


class TestSolveEndpoints:
    """Tests for solve endpoints."""

    @pytest.mark.asyncio
    async def test_status_when_idle(self, client: AsyncClient):
        """Test the initial status."""
        response = await client.get("/v1/solve")
        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "idle"
        assert data["is_solving"] is False
        assert data["tool_call_count"] == 0
        assert data["max_tokens"] == 200_000
        assert data["result"] is None

    @pytest.mark.asyncio
    async def test_config(self, client: AsyncClient):
        """Test reading and updating solver flags."""
        response = await client.get("/v1/solve/config")
        assert response.json() == {"force_adjacent_discovery": True, "use_verbose_description": True}

        response = await client.put("/v1/solve/config", json={"use_verbose_description": False})
        assert response.status_code == 200
        assert response.json() == {"force_adjacent_discovery": True, "use_verbose_description": False}

    @pytest.mark.asyncio
    async def test_solve_without_maze(self, client: AsyncClient):
        """Test 404 when there is nothing to solve."""
        response = await client.post("/v1/solve")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_solve(self, client: AsyncClient, runner, fake_llm):
        """Test a background solve reports progress and result."""
        await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})
        fake_llm.responses = [
            probes((1, 0), input_tokens=200, output_tokens=20),
            probes((1, 1), input_tokens=400, output_tokens=25),
            end_turn("Path: (1,0) (1,1) ...", input_tokens=600, output_tokens=40),
        ]

        response = await client.post("/v1/solve")
        assert response.status_code == 202
        assert runner.wait(timeout=5)

        data = (await client.get("/v1/solve")).json()
        assert data["state"] == "solved"
        assert data["is_solving"] is False
        assert data["tool_call_count"] == 2
        assert data["total_tokens"] == 640
        assert data["discovered_count"] == 2
        assert data["result"]["success"] is True
        assert data["result"]["message"] == "Path: (1,0) (1,1) ..."

        events = (await client.get("/v1/solve/events")).json()
        types = [event["type"] for event in events["events"]]
        assert types.count("tool_call") == 2
        assert types.count("token_usage") == 3
        assert "solved" in types
        seqs = [event["seq"] for event in events["events"]]
        assert seqs == sorted(seqs)
        assert events["last_seq"] == seqs[-1]

        later = (await client.get("/v1/solve/events", params={"since": events["last_seq"]})).json()
        assert later == {"events": [], "last_seq": events["last_seq"]}

        maze = (await client.get("/v1/maze", params={"show_visited": True})).json()
        assert maze["grid_data"].split("\n")[1] == "Xo....X"
        assert maze["discovered_count"] == 2

    @pytest.mark.asyncio
    async def test_solve_uses_config(self, client: AsyncClient, runner, solver):
        """Test updated flags reach the solver on the next solve."""
        await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})
        await client.put("/v1/solve/config", json={"force_adjacent_discovery": False})

        await client.post("/v1/solve")
        assert runner.wait(timeout=5)

        assert solver.force_adjacent_discovery is False
        assert solver.use_verbose_description is True

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, client: AsyncClient):
        """Test cancel reports nothing was running."""
        response = await client.post("/v1/solve/cancel")
        assert response.status_code == 200
        assert response.json() == {"cancelled": False}

    @pytest.mark.asyncio
    async def test_busy_solve_locks_maze_and_cancels(self, client: AsyncClient, settings):
        """Test a running solve blocks edits and can be cancelled."""
        llm = BlockingLlmService()
        busy_runner = SolveRunner(
            settings=settings,
            solver_factory=lambda: MazeSolverService(llm, settings=settings),
        )
        app.dependency_overrides[get_solve_runner] = lambda: busy_runner
        try:
            await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})
            assert (await client.post("/v1/solve")).status_code == 202
            assert llm.started.wait(timeout=5)

            assert (await client.get("/v1/solve")).json()["is_solving"] is True
            assert (await client.post("/v1/solve")).status_code == 409
            assert (await client.post("/v1/maze/generate", json={"width": 9, "height": 9})).status_code == 409
            assert (await client.put("/v1/maze", json={"grid_data": SIMPLE_MAZE})).status_code == 409
            assert (await client.post("/v1/maze/toggle", json={"x": 2, "y": 2})).status_code == 409

            response = await client.post("/v1/solve/cancel")
            assert response.json() == {"cancelled": True}
            assert busy_runner.wait(timeout=5)

            data = (await client.get("/v1/solve")).json()
            assert data["state"] == "cancelled"
            assert data["result"]["message"] == "Operation cancelled"
        finally:
            busy_runner.cancel()
            busy_runner.wait(timeout=5)

    @pytest.mark.asyncio
    async def test_test_connection(self, client: AsyncClient):
        """Test the connection check result is returned."""
        response = await client.post("/v1/solve/test-connection")
        assert response.status_code == 200
        assert response.json() == {"success": True}

    @pytest.mark.asyncio
    async def test_status_answers_during_slow_connection_check(self, client: AsyncClient, settings):
        """Test a long connection check does not hold up status polling."""
        llm = SlowConnectionLlmService()
        slow_runner = SolveRunner(
            settings=settings,
            solver_factory=lambda: MazeSolverService(llm, settings=settings),
        )
        app.dependency_overrides[get_solve_runner] = lambda: slow_runner

        check = asyncio.create_task(client.post("/v1/solve/test-connection"))
        try:
            for _ in range(500):
                if llm.started.is_set():
                    break
                await asyncio.sleep(0.01)
            assert llm.started.is_set()

            response = await client.get("/v1/solve")
            assert response.status_code == 200
            assert response.json()["state"] == "idle"
            assert not check.done()
        finally:
            llm.release.set()

        response = await check
        assert response.status_code == 200
        assert response.json() == {"success": True}

    @pytest.mark.asyncio
    async def test_llm_not_configured(self, client: AsyncClient, settings):
        """Test 503 when the LLM settings are missing."""
        def unconfigured() -> MazeSolverService:
            raise LlmConfigurationError("LLM_MODEL environment variable not set")

        bare_runner = SolveRunner(settings=settings, solver_factory=unconfigured)
        bare_runner.load(SIMPLE_MAZE)
        app.dependency_overrides[get_solve_runner] = lambda: bare_runner

        response = await client.post("/v1/solve")
        assert response.status_code == 503
        assert "LLM_MODEL" in response.json()["detail"]

        response = await client.post("/v1/solve/test-connection")
        assert response.status_code == 503

        assert bare_runner.is_solving is False
