"""Server-sent stream of UI events."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..runtime import AgentRuntime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/events")
async def stream_events(runtime: AgentRuntime = Depends(get_runtime)):
    """Tool calls, symbol requests, edits and LLM deltas as they happen."""

    async def event_generator():
        async for event in runtime.ui_events.stream():
            yield event.to_sse()
        yield "event: done\ndata: {}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
