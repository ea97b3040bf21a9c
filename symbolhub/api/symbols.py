"""Symbol and agent request endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..models import (
    AgentRequest,
    AgentResponse,
    CorrectnessPayload,
    EditPayload,
    ErrorPayload,
    SkippedSymbol,
    SymbolRequest,
    SymbolResponse,
)
from ..runtime import AgentRuntime, get_runtime
from ..symbol.events import SymbolEventRequest, SymbolEventResponse
from ..symbol.identifier import SymbolIdentifier, UserContext

logger = logging.getLogger(__name__)

router = APIRouter()

# error kind → HTTP status
ERROR_STATUS = {
    "unresolvable_symbol": 404,
    "symbol_not_found": 404,
    "snippet_not_found": 404,
    "outline_node_not_found": 404,
    "definition_not_found": 404,
    "file_not_found": 404,
    "missing_tool": 501,
    "invocation_failed": 502,
    "serialization_failed": 502,
    "timeout": 504,
    "reply_timeout": 504,
}


def to_symbol_event_request(req: SymbolRequest) -> SymbolEventRequest:
    identifier = SymbolIdentifier(symbol_name=req.symbol_name, fs_file_path=req.fs_file_path)
    if req.kind == "edit":
        if not req.instructions:
            raise HTTPException(status_code=400, detail="edit requests need instructions")
        return SymbolEventRequest.edit(identifier, req.instructions, req.extra_context, req.follow_up)
    if req.kind in ("probe", "ask_question") and not req.query:
        raise HTTPException(status_code=400, detail=f"{req.kind} requests need a query")
    if req.kind == "probe":
        return SymbolEventRequest.probe(identifier, req.query, req.history)
    if req.kind == "ask_question":
        return SymbolEventRequest.ask_question(identifier, req.query)
    return SymbolEventRequest.outline(identifier)


def to_symbol_response(response: SymbolEventResponse) -> SymbolResponse:
    edit = None
    if response.edit is not None:
        report = response.edit.correctness
        edit = EditPayload(
            original_code=response.edit.original_code,
            edited_code=response.edit.edited_code,
            correctness=CorrectnessPayload(
                resolved=report.resolved,
                attempts=report.attempts,
                remaining_diagnostics=report.remaining_diagnostics,
            ),
            followups_scheduled=response.edit.followups_scheduled,
        )
    return SymbolResponse(
        symbol_name=response.symbol.symbol_name,
        fs_file_path=response.symbol.fs_file_path,
        ok=response.ok,
        answer=response.answer,
        edit=edit,
        error=ErrorPayload(**response.error) if response.error else None,
    )


@router.post("/symbol/request", response_model=SymbolResponse)
async def symbol_request(req: SymbolRequest, runtime: AgentRuntime = Depends(get_runtime)):
    """Send one request to a symbol's actor and wait for its answer."""
    event_request = to_symbol_event_request(req)
    response = await runtime.manager.locker.dispatch(event_request, timeout=req.timeout)
    if not response.ok:
        kind = response.error["kind"] if response.error else "internal_error"
        logger.info("[api] %s request for %s failed: %s", req.kind, req.symbol_name, response.error)
        raise HTTPException(status_code=ERROR_STATUS.get(kind, 500), detail=response.error)
    return to_symbol_response(response)


@router.post("/agent/request", response_model=AgentResponse)
async def agent_request(req: AgentRequest, runtime: AgentRuntime = Depends(get_runtime)):
    """Plan and run edits for a natural-language change request."""
    session = runtime.new_session(UserContext(file_paths=req.file_paths, notes=req.notes))
    try:
        result = await session.initial_request(req.user_query)
        await session.locker.wait_for_background()
    finally:
        await session.shutdown()
    return AgentResponse(
        responses=[to_symbol_response(r) for r in result.responses],
        skipped=[
            SkippedSymbol(symbol_name=t.symbol_name, fs_file_path=t.fs_file_path, is_new=t.is_new)
            for t in result.skipped
        ],
        total_time_ms=result.total_time_ms,
    )
