"""
Chat model client.

Talks to an OpenAI-compatible chat completions endpoint (OpenRouter by
default) with streaming enabled, and flattens the chunk stream into three
event kinds:

- TextDelta: a piece of assistant text, emitted as soon as it arrives
- ToolCallRequest: a fully assembled tool call (emitted after the stream ends,
  in the order the model produced them)
- Finish: the stop condition reported by the model
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from openai import AsyncOpenAI, OpenAIError

from core.config import settings

logger = logging.getLogger(__name__)


class ModelError(Exception):
    """The model endpoint could not produce a completion."""


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class Finish:
    reason: Optional[str]


ModelEvent = Union[TextDelta, ToolCallRequest, Finish]


class ChatModel:
    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ):
        self._client = client
        self.model = model or settings.OPENROUTER_MODEL
        self.max_output_tokens = max_output_tokens or settings.CHAT_MAX_OUTPUT_TOKENS

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.OPENROUTER_API_KEY:
                raise ModelError("OPENROUTER_API_KEY not configured")
            self._client = AsyncOpenAI(
                api_key=settings.OPENROUTER_API_KEY,
                base_url=settings.OPENROUTER_BASE_URL,
                # no automatic retries; a failed turn surfaces to the caller
                max_retries=0,
            )
        return self._client

    async def stream(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> AsyncIterator[ModelEvent]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_output_tokens,
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools

        # index -> {"id", "name", "arguments"}; arguments arrive in fragments
        pending: Dict[int, Dict[str, str]] = {}
        finish_reason: Optional[str] = None

        response = None
        try:
            response = await self.client.chat.completions.create(**kwargs)
            async for chunk in response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta is not None:
                    if delta.content:
                        yield TextDelta(delta.content)
                    for tc in delta.tool_calls or []:
                        slot = pending.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                        if tc.id:
                            slot["id"] = tc.id
                        if tc.function is not None:
                            if tc.function.name:
                                slot["name"] += tc.function.name
                            if tc.function.arguments:
                                slot["arguments"] += tc.function.arguments
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except OpenAIError as e:
            raise ModelError(f"Model request failed: {e}") from e
        finally:
            if response is not None:
                await response.close()

        for index in sorted(pending):
            slot = pending[index]
            yield ToolCallRequest(
                id=slot["id"] or f"call_{index}",
                name=slot["name"],
                arguments=slot["arguments"] or "{}",
            )

        logger.debug(f"Model stream finished: reason={finish_reason} tool_calls={len(pending)}")
        yield Finish(finish_reason)
