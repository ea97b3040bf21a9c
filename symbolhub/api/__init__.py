"""
API Module - FastAPI endpoints organized by domain.

Each module uses a FastAPI APIRouter; main.py mounts them.
"""

from . import events
from . import health
from . import symbols

__all__ = [
    "events",
    "health",
    "symbols",
]
