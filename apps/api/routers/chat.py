"""
Chat API Router

One POST per turn; the reply streams back as server-sent events.
"""

from typing import AsyncIterator, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from core.auth import get_optional_user_id
from core.exceptions import UnauthorizedError
from schemas import ChatRequest, dump_messages
from services.chat_orchestrator import TurnOrchestrator, get_turn_orchestrator

router = APIRouter(tags=["chat"])


@router.post("/chat")
async def chat(
    request: ChatRequest,
    user_id: Optional[UUID] = Depends(get_optional_user_id),
    orchestrator: TurnOrchestrator = Depends(get_turn_orchestrator),
):
    """
    Run one chat turn and stream the result (SSE over fetch).

    Events: delta, tool_call, tool_result, error, done.

    A malformed body is rejected (400) before authentication is checked (401);
    neither reaches the model.
    """
    if user_id is None:
        raise UnauthorizedError("Not authenticated")

    events = orchestrator.run_turn(dump_messages(request.messages), user_id=user_id)

    # Pull the first event before committing to a 200 so an immediate model
    # failure can still be answered with a plain 500.
    try:
        first = await events.__anext__()
    except StopAsyncIteration:
        first = None

    async def _gen() -> AsyncIterator[bytes]:
        if first is not None:
            yield first.to_sse()
        async for event in events:
            yield event.to_sse()

    return StreamingResponse(
        _gen(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            # Nginx / some proxies buffer by default; disable buffering when present.
            "X-Accel-Buffering": "no",
        },
    )
