"""Solve routes for running the LLM maze solver."""

import logging

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from maze_solver.api.deps import Runner
from maze_solver.schemas.solve import (
    ConnectionTestResponse,
    SolveConfig,
    SolveConfigUpdate,
    SolveEventsResponse,
    SolveStatusResponse,
)
from maze_solver.services.llm_service import MAX_CONTEXT_TOKENS, LlmConfigurationError
from maze_solver.services.solve_runner import NoMazeError, SolveRunner, SolverBusyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/solve", tags=["Solve"])


def _status_response(runner: SolveRunner) -> SolveStatusResponse:
    return SolveStatusResponse(max_tokens=MAX_CONTEXT_TOKENS, **runner.status())


def _not_configured(e: LlmConfigurationError) -> HTTPException:
    logger.error(f"LLM is not configured: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"LLM is not configured: {e}",
    )


@router.get(
    "/config",
    response_model=SolveConfig,
)
async def get_config(runner: Runner) -> SolveConfig:
    """Get the solver flags used for the next solve."""
    return SolveConfig(
        force_adjacent_discovery=runner.force_adjacent_discovery,
        use_verbose_description=runner.use_verbose_description,
    )


@router.put(
    "/config",
    response_model=SolveConfig,
)
async def update_config(request: SolveConfigUpdate, runner: Runner) -> SolveConfig:
    """Update the solver flags. Changes apply from the next solve."""
    runner.configure(
        force_adjacent_discovery=request.force_adjacent_discovery,
        use_verbose_description=request.use_verbose_description,
    )
    return await get_config(runner)


@router.post(
    "",
    response_model=SolveStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_solve(runner: Runner) -> SolveStatusResponse:
    """Start solving the current maze in the background.

    Poll GET /v1/solve or GET /v1/solve/events for progress.
    """
    try:
        runner.start()
    except NoMazeError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except SolverBusyError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except LlmConfigurationError as e:
        raise _not_configured(e)

    return _status_response(runner)


@router.get(
    "",
    response_model=SolveStatusResponse,
)
async def get_solve_status(runner: Runner) -> SolveStatusResponse:
    """Get progress of the current (or last) solve."""
    return _status_response(runner)


@router.post("/cancel")
async def cancel_solve(runner: Runner) -> dict:
    """Ask the running solve to stop at its next iteration."""
    return {"cancelled": runner.cancel()}


@router.get(
    "/events",
    response_model=SolveEventsResponse,
)
async def get_solve_events(
    runner: Runner,
    since: int = Query(0, ge=0, description="Only return events after this sequence number"),
) -> SolveEventsResponse:
    """Get solver events (tool calls, token usage, status changes)."""
    events = runner.events(since=since)
    last_seq = events[-1]["seq"] if events else since
    return SolveEventsResponse(events=events, last_seq=last_seq)


@router.post(
    "/test-connection",
    response_model=ConnectionTestResponse,
)
async def test_connection(runner: Runner) -> ConnectionTestResponse:
    """Send a trivial prompt to check the LLM endpoint.

    The check blocks (including rate-limit backoff), so it runs in the
    threadpool and status polling keeps answering meanwhile.
    """
    try:
        success = await run_in_threadpool(runner.test_connection)
    except LlmConfigurationError as e:
        raise _not_configured(e)

    return ConnectionTestResponse(success=success)
