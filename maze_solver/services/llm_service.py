"""LLM service: chat requests with rate-limit retry and context overflow detection."""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

import openai
from openai import OpenAI

from maze_solver.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Maximum context window reported alongside token usage
MAX_CONTEXT_TOKENS = 200_000

STOP_END_TURN = "end_turn"
STOP_TOOL_USE = "tool_use"

_STOP_REASONS = {
    "stop": STOP_END_TURN,
    "end_turn": STOP_END_TURN,
    "tool_calls": STOP_TOOL_USE,
    "tool_use": STOP_TOOL_USE,
}

OVERFLOW_KEYWORDS = ("context", "token", "too long", "maximum")


class LlmServiceError(Exception):
    """Base exception for LLM service errors."""

    pass


class LlmConfigurationError(LlmServiceError):
    """Endpoint, API key or model is missing."""

    pass


class ContextOverflowError(LlmServiceError):
    """The conversation no longer fits in the model's context window."""

    pass


class RateLimitExhaustedError(LlmServiceError):
    """Every attempt was rejected by the provider's rate limiter."""

    pass


class SolveCancelledError(Exception):
    """Cancellation was requested while waiting to retry."""

    pass


@dataclass
class TextBlock:
    """Free text written by the user or the model."""

    text: str
    type: Literal["text"] = "text"


@dataclass
class ToolUseBlock:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"


@dataclass
class ToolResultBlock:
    """The answer to one tool invocation."""

    tool_use_id: str
    content: str
    type: Literal["tool_result"] = "tool_result"


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass
class TurnRecord:
    """One message of the conversation."""

    role: Literal["user", "assistant"]
    blocks: list[ContentBlock]

    @classmethod
    def user_text(cls, text: str) -> "TurnRecord":
        return cls(role="user", blocks=[TextBlock(text)])


@dataclass
class LlmResponse:
    """Response from the LLM including token usage."""

    blocks: list[ContentBlock]
    input_tokens: int
    output_tokens: int
    stop_reason: str

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def text(self) -> Optional[str]:
        """First text block, if any."""
        for block in self.blocks:
            if isinstance(block, TextBlock):
                return block.text
        return None

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for block in self.blocks if isinstance(block, ToolUseBlock)]


def normalize_stop_reason(raw: Optional[str]) -> str:
    """Map the provider's finish reason onto end_turn / tool_use; anything else passes through."""
    if raw is None:
        return "unknown"
    return _STOP_REASONS.get(raw, raw)


def is_context_overflow(error: Exception) -> bool:
    """Whether a rejected request looks like the context window was exceeded."""
    message = str(error).lower()
    return any(keyword in message for keyword in OVERFLOW_KEYWORDS)


def to_wire_messages(system_prompt: str, history: list[TurnRecord]) -> list[dict]:
    """Convert the conversation into chat-completions messages."""
    messages: list[dict] = [{"role": "system", "content": system_prompt}]

    for turn in history:
        texts = [b.text for b in turn.blocks if isinstance(b, TextBlock)]
        tool_uses = [b for b in turn.blocks if isinstance(b, ToolUseBlock)]
        tool_results = [b for b in turn.blocks if isinstance(b, ToolResultBlock)]

        for result in tool_results:
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": result.tool_use_id,
                    "content": result.content,
                }
            )

        if turn.role == "assistant":
            message: dict[str, Any] = {
                "role": "assistant",
                "content": "\n".join(texts) if texts else None,
            }
            # Only add tool_calls if there are any (empty array causes API error)
            if tool_uses:
                message["tool_calls"] = [
                    {
                        "id": tu.id,
                        "type": "function",
                        "function": {
                            "name": tu.name,
                            "arguments": json.dumps(tu.arguments),
                        },
                    }
                    for tu in tool_uses
                ]
            messages.append(message)
        elif texts:
            messages.append({"role": "user", "content": "\n".join(texts)})

    return messages


def _parse_arguments(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def from_completion(response: Any) -> LlmResponse:
    """Convert a chat completion into an LlmResponse."""
    choice = response.choices[0]
    message = choice.message

    blocks: list[ContentBlock] = []
    if message.content:
        blocks.append(TextBlock(message.content))
    for tc in message.tool_calls or []:
        blocks.append(
            ToolUseBlock(
                id=tc.id,
                name=tc.function.name,
                arguments=_parse_arguments(tc.function.arguments),
            )
        )

    usage = response.usage
    return LlmResponse(
        blocks=blocks,
        input_tokens=(usage.prompt_tokens or 0) if usage else 0,
        output_tokens=(usage.completion_tokens or 0) if usage else 0,
        stop_reason=normalize_stop_reason(choice.finish_reason),
    )


class LlmService:
    """
    Wrapper around the chat-completions API.

    Retries rate-limited requests with exponential backoff and turns
    "prompt too long" rejections into ContextOverflowError.
    """

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the LLM service.

        Args:
            client: Preconfigured client. Built from settings when omitted.
            model: Model name. Defaults to LLM_MODEL.
            settings: Settings override (defaults to get_settings()).

        Raises:
            LlmConfigurationError: If no client can be built or no model is set.
        """
        self.settings = settings or get_settings()
        self.model = model or self.settings.llm_model
        self.max_retries = self.settings.llm_max_retries
        self.base_delay = self.settings.llm_retry_base_delay_seconds

        if not self.model:
            raise LlmConfigurationError("LLM_MODEL environment variable not set")

        if client is None:
            if not self.settings.llm_api_key:
                raise LlmConfigurationError("LLM_API_KEY environment variable not set")
            logger.info(
                "Initializing LLM service with endpoint: %s, model: %s",
                self.settings.llm_endpoint or "default",
                self.model,
            )
            # Retries are handled here, not by the SDK
            client = OpenAI(
                api_key=self.settings.llm_api_key,
                base_url=self.settings.llm_endpoint,
                max_retries=0,
                timeout=self.settings.llm_request_timeout_seconds,
            )
        self.client = client

    def send(
        self,
        system_prompt: str,
        history: list[TurnRecord],
        tools: Optional[list[dict]] = None,
        max_tokens: int = 4096,
        cancel_event: Optional[threading.Event] = None,
    ) -> LlmResponse:
        """
        Send the conversation and return the model's next turn.

        Args:
            system_prompt: System instructions.
            history: Full conversation so far.
            tools: Function-calling tool definitions.
            max_tokens: Output token limit for this turn.
            cancel_event: Set to abort while waiting between retries.

        Returns:
            LlmResponse with content blocks, provider token counts and a
            normalized stop reason.

        Raises:
            ContextOverflowError: The request was rejected as too large.
            RateLimitExhaustedError: Every attempt was rate limited.
            SolveCancelledError: Cancelled during a backoff wait.
            openai.APIError: Any other provider error.
        """
        logger.debug(
            "Sending message to LLM. Messages count: %d, Has tools: %s",
            len(history),
            bool(tools),
        )

        create_kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": to_wire_messages(system_prompt, history),
            "max_tokens": max_tokens,
        }
        if tools:
            create_kwargs["tools"] = tools

        delay = self.base_delay
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.client.chat.completions.create(**create_kwargs)
            except openai.RateLimitError as e:
                if attempt >= self.max_retries:
                    logger.error("Rate limit hit on final attempt %d/%d", attempt, self.max_retries)
                    raise RateLimitExhaustedError(
                        f"Max retries exceeded for rate limit ({self.max_retries} attempts)"
                    ) from e
                logger.warning(
                    "Rate limit hit (attempt %d/%d). Waiting %ss before retry...",
                    attempt,
                    self.max_retries,
                    delay,
                )
                self._wait(delay, cancel_event)
                delay *= 2
                continue
            except openai.BadRequestError as e:
                if is_context_overflow(e):
                    logger.error("Context overflow detected: %s", e)
                    raise ContextOverflowError(f"Context window exceeded: {e}") from e
                logger.error("LLM API error: %s", e)
                raise

            result = from_completion(response)
            logger.debug(
                "LLM response received. Input tokens: %d, Output tokens: %d, Stop reason: %s",
                result.input_tokens,
                result.output_tokens,
                result.stop_reason,
            )
            return result

        # Only reachable with max_retries < 1, which settings reject
        raise RateLimitExhaustedError("No attempts configured")

    def _wait(self, delay: float, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is None:
            time.sleep(delay)
            return
        if cancel_event.wait(delay):
            raise SolveCancelledError("Cancelled while waiting to retry")

    def test_connection(self) -> bool:
        """Send a trivial prompt and report whether the endpoint answered."""
        logger.info("Testing LLM connection...")
        try:
            response = self.send(
                "You are a helpful assistant.",
                [TurnRecord.user_text("Say 'Connection successful!' and nothing else.")],
                max_tokens=50,
            )
        except (LlmServiceError, openai.OpenAIError) as e:
            logger.error("LLM connection test failed: %s", e)
            return False

        logger.info(
            "LLM connection test successful. Response: %s",
            response.text or "No text response",
        )
        return True
