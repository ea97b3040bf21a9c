"""
SymbolHub API: symbol-actor coding agent.

Agent:
  POST /agent/request   — Plan and apply edits for a change request
  POST /symbol/request  — Edit / probe / ask / outline one symbol

Introspection:
  GET  /tools           — Registered tools with usage text
  GET  /events          — SSE stream of UI events
  GET  /health          — Healthcheck
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import TimedRotatingFileHandler

from dotenv import load_dotenv
load_dotenv()  # Load .env file for local dev (no-op if missing)

from fastapi import FastAPI

from . import __version__
from .api import events, health, symbols
from .config import get_agent_config
from .core.llm import log_provider_status
from .runtime import AgentRuntime, set_runtime

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _configure_file_logging(log_dir: str) -> None:
    """Add a daily rotating log file next to stderr logging."""
    os.makedirs(log_dir, exist_ok=True)
    handler = TimedRotatingFileHandler(
        os.path.join(log_dir, "symbolhub.log"), when="midnight", backupCount=7,
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    logging.getLogger().addHandler(handler)
    logger.info("Writing logs to %s", log_dir)


# ── App lifecycle ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown hooks."""
    config = get_agent_config()
    if config.log_dir:
        _configure_file_logging(config.log_dir)
    logger.info("Starting SymbolHub API...")
    log_provider_status()
    runtime = await AgentRuntime.start(config)
    set_runtime(runtime)
    yield
    logger.info("Shutting down...")
    await runtime.aclose()
    set_runtime(None)


app = FastAPI(
    title="SymbolHub API",
    description="Coding agent backend: symbol actors, tool broker, correctness loop",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(symbols.router)
app.include_router(events.router)
