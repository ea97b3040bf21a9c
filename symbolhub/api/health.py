"""Health check and tool listing endpoints."""

from fastapi import APIRouter, Depends

from .. import __version__
from ..models import HealthResponse, ToolInfo, ToolsResponse
from ..runtime import AgentRuntime, get_runtime

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(runtime: AgentRuntime = Depends(get_runtime)):
    """Healthcheck endpoint."""
    return HealthResponse(
        status="healthy" if not runtime.ui_events.closed else "stopping",
        version=__version__,
        tools_registered=len(runtime.broker.tool_types()),
        active_symbols=len(runtime.manager.locker.active_symbols()),
    )


@router.get("/tools", response_model=ToolsResponse)
async def list_tools(runtime: AgentRuntime = Depends(get_runtime)):
    """Every registered tool with its LLM-facing description and usage."""
    broker = runtime.broker
    return ToolsResponse(tools=[
        ToolInfo(
            tool_type=tool_type,
            description=broker.get_tool_description(tool_type) or "",
            reminder=broker.get_tool_reminder(tool_type) or "",
        )
        for tool_type in broker.tool_types()
    ])
