"""
Chat turn orchestration.

A turn takes the client's message history (ending with the new user
message), primes it with the canonical system instructions, streams the
model's answer, and runs any tool calls the model makes before letting it
continue. Everything the client needs to rebuild the conversation is
emitted as events:

    delta        assistant text, as produced
    tool_call    the assistant message that requested tools
    tool_result  one tool message per executed call
    error        generic failure notice (details are only logged)
    done         end of turn

Failures before the first event surface as UpstreamError so the HTTP layer
can still answer with a 500. Once streaming has started they become an
error event.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
from uuid import UUID

from starlette.concurrency import run_in_threadpool

from core.config import settings
from core.exceptions import UpstreamError
from services.llm_client import ChatModel, Finish, TextDelta, ToolCallRequest
from services.tool_registry import ToolRegistry, build_default_registry

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful AI life agent. You can record the user's workouts with the "
    "'record_workout' tool and look up their recent workouts with the 'get_workouts' tool. "
    "When you use a tool like 'get_workouts' and receive data (like a list of workouts) as a "
    "tool result, generate a concise, natural language summary of that data for the user. "
    "For tools that return a simple message (like 'record_workout'), present that message "
    "clearly. If a tool reports an error, tell the user plainly what went wrong."
)

GENERIC_ERROR_MESSAGE = "Error processing chat request"


class TurnTimeoutError(Exception):
    """The turn ran past its maximum duration."""


@dataclass
class ChatEvent:
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {"type": self.type, **self.data}

    def to_sse(self) -> bytes:
        return (
            b"event: " + self.type.encode("utf-8")
            + b"\ndata: " + json.dumps(self.payload(), default=str).encode("utf-8")
            + b"\n\n"
        )


def prime_messages(messages: List[Dict[str, Any]], system_prompt: str = SYSTEM_PROMPT) -> List[Dict[str, Any]]:
    """
    Return a copy with exactly one system message, first, carrying the
    canonical instructions. Any system messages in the input are dropped.
    """
    rest = [dict(m) for m in messages if m.get("role") != "system"]
    return [{"role": "system", "content": system_prompt}] + rest


def _assistant_tool_call_message(text: str, calls: List[ToolCallRequest]) -> Dict[str, Any]:
    message: Dict[str, Any] = {"role": "assistant"}
    if text:
        message["content"] = text
    message["tool_calls"] = [
        {
            "id": call.id,
            "type": "function",
            "function": {"name": call.name, "arguments": call.arguments},
        }
        for call in calls
    ]
    return message


class TurnOrchestrator:
    def __init__(
        self,
        model: ChatModel,
        registry: ToolRegistry,
        max_tool_rounds: Optional[int] = None,
        max_duration_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.model = model
        self.registry = registry
        self.max_tool_rounds = settings.CHAT_MAX_TOOL_ROUNDS if max_tool_rounds is None else max_tool_rounds
        self.max_duration_s = settings.CHAT_MAX_DURATION_S if max_duration_s is None else max_duration_s
        self._clock = clock

    async def run_turn(self, messages: List[Dict[str, Any]], user_id: UUID) -> AsyncIterator[ChatEvent]:
        started = False
        try:
            async with aclosing(self._turn(messages, user_id)) as events:
                async for event in events:
                    started = True
                    yield event
        except Exception as e:
            logger.error(
                f"Chat turn failed: {type(e).__name__}: {e}",
                exc_info=True,
                extra={"extra_fields": {"user_id": str(user_id), "streaming_started": started}},
            )
            if not started:
                raise UpstreamError(GENERIC_ERROR_MESSAGE) from e
            yield ChatEvent("error", {"message": GENERIC_ERROR_MESSAGE})

    async def _turn(self, messages: List[Dict[str, Any]], user_id: UUID) -> AsyncIterator[ChatEvent]:
        context = prime_messages(messages)
        declarations = self.registry.declarations()
        deadline = self._clock() + self.max_duration_s
        tool_rounds = 0

        while True:
            text_parts: List[str] = []
            calls: List[ToolCallRequest] = []
            finish_reason: Optional[str] = None

            async with aclosing(self._bounded(self.model.stream(context, declarations), deadline)) as events:
                async for event in events:
                    if isinstance(event, TextDelta):
                        text_parts.append(event.text)
                        yield ChatEvent("delta", {"delta": event.text})
                    elif isinstance(event, ToolCallRequest):
                        calls.append(event)
                    elif isinstance(event, Finish):
                        finish_reason = event.reason

            if not calls:
                yield ChatEvent("done", {"finish_reason": finish_reason, "tool_rounds": tool_rounds})
                return

            if tool_rounds >= self.max_tool_rounds:
                logger.warning(f"Tool round limit reached ({self.max_tool_rounds}) for user {user_id}")
                yield ChatEvent("done", {"finish_reason": "tool_limit", "tool_rounds": tool_rounds})
                return
            tool_rounds += 1

            assistant_message = _assistant_tool_call_message("".join(text_parts), calls)
            context.append(assistant_message)
            yield ChatEvent("tool_call", {"message": assistant_message})

            # Sequential, in the order the model emitted them.
            for call in calls:
                logger.info(f"Model calling tool: {call.name}")
                # executors do blocking database work; keep it off the event loop
                result = await run_in_threadpool(self.registry.execute, call.name, call.arguments, user_id)
                tool_message = {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.name,
                    "content": result.content,
                }
                context.append(tool_message)
                yield ChatEvent("tool_result", {"message": tool_message})

    async def _bounded(self, events: AsyncIterator[Any], deadline: float) -> AsyncIterator[Any]:
        iterator = events.__aiter__()
        try:
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise TurnTimeoutError(f"Turn exceeded {self.max_duration_s}s")
                try:
                    event = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    return
                except asyncio.TimeoutError as e:
                    raise TurnTimeoutError(f"Turn exceeded {self.max_duration_s}s") from e
                yield event
        finally:
            # release the upstream HTTP stream on timeout, error or early close
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()


def get_turn_orchestrator() -> TurnOrchestrator:
    """FastAPI dependency."""
    return TurnOrchestrator(ChatModel(), build_default_registry())
