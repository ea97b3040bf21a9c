"""Data models for the Editor Simulator."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class EditorCall:
    """Record of a single request the simulator answered."""
    endpoint: str
    payload: dict[str, Any]
    status_code: int = 200
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def fs_file_path(self) -> str | None:
        return self.payload.get("fs_file_path")
