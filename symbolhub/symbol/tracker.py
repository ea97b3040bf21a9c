"""
In-memory outline service.

Every time a file is opened through the editor its contents are handed to
``SymbolTracker.add_document``; re-adding identical contents is a no-op,
changed contents are re-parsed. Parsing runs off the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from .outline import OutlineNode, build_outline_nodes
from .parser import content_hash, language_for_path, parse_file
from ..text_document import Range

logger = logging.getLogger(__name__)


@dataclass
class TrackedDocument:
    fs_file_path: str
    content: str
    content_hash: str
    language: str
    outline_nodes: list[OutlineNode] = field(default_factory=list)


def _parse_outline(fs_file_path: str, content: str, language: str) -> TrackedDocument:
    result = parse_file(fs_file_path, content)
    language = language or result.language
    return TrackedDocument(
        fs_file_path=fs_file_path,
        content=content,
        content_hash=result.content_hash,
        language=language,
        outline_nodes=build_outline_nodes(result.definitions, language),
    )


class SymbolTracker:
    def __init__(self):
        self._documents: dict[str, TrackedDocument] = {}
        self._lock = asyncio.Lock()
        self.parse_count = 0

    async def add_document(self, fs_file_path: str, content: str, language: str = "") -> bool:
        """Track ``content`` for ``fs_file_path``. Returns True when it was (re)parsed."""
        digest = content_hash(content)
        async with self._lock:
            existing = self._documents.get(fs_file_path)
            if existing is not None and existing.content_hash == digest:
                return False

        document = await asyncio.to_thread(
            _parse_outline, fs_file_path, content, language or language_for_path(fs_file_path),
        )
        async with self._lock:
            self._documents[fs_file_path] = document
            self.parse_count += 1
        logger.debug("[tracker] %s parsed: %d outline nodes", fs_file_path, len(document.outline_nodes))
        return True

    async def get_symbols_outline(self, fs_file_path: str) -> list[OutlineNode] | None:
        async with self._lock:
            document = self._documents.get(fs_file_path)
            return list(document.outline_nodes) if document else None

    async def get_symbols_in_range(self, fs_file_path: str, selection: Range) -> list[OutlineNode]:
        async with self._lock:
            document = self._documents.get(fs_file_path)
            if document is None:
                return []
            return [node for node in document.outline_nodes if node.range.intersects_without_byte(selection)]

    async def get_file_content(self, fs_file_path: str) -> str | None:
        async with self._lock:
            document = self._documents.get(fs_file_path)
            return document.content if document else None

    async def get_language(self, fs_file_path: str) -> str:
        async with self._lock:
            document = self._documents.get(fs_file_path)
            return document.language if document else language_for_path(fs_file_path)
