"""Solve schemas for request/response validation."""

from typing import Any, Optional

from pydantic import BaseModel


class SolveConfig(BaseModel):
    """Schema for the solver flags."""

    force_adjacent_discovery: bool
    use_verbose_description: bool


class SolveConfigUpdate(BaseModel):
    """Schema for updating solver flags. Omitted fields keep their value."""

    force_adjacent_discovery: Optional[bool] = None
    use_verbose_description: Optional[bool] = None


class SolveResultResponse(BaseModel):
    """Schema for a finished solve."""

    success: bool
    message: str
    tool_call_count: int
    total_tokens: int
    is_context_overflow: bool
    state: str


class SolveStatusResponse(BaseModel):
    """Schema for the current solve state."""

    state: str  # idle, exploring, solved, failed, overflowed, cancelled
    is_solving: bool
    tool_call_count: int
    input_tokens: int
    output_tokens: int
    total_tokens: int
    max_tokens: int
    discovered_count: int
    result: Optional[SolveResultResponse] = None


class SolveEventsResponse(BaseModel):
    """Schema for solver events after a sequence number."""

    events: list[dict[str, Any]]
    last_seq: int


class ConnectionTestResponse(BaseModel):
    """Schema for the LLM connection test."""

    success: bool
