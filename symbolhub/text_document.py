"""
Positions and ranges inside a text document.

Lines and characters are 0-based, the same convention the editor bridge
(LSP) uses. ``byte_offset`` is carried along when the producer knows it
(tree-sitter does), it is never used for comparisons.
"""

from __future__ import annotations

from pydantic import BaseModel


class Position(BaseModel):
    line: int
    character: int
    byte_offset: int = 0

    def key(self) -> tuple[int, int]:
        return (self.line, self.character)

    def before_or_equal(self, other: "Position") -> bool:
        return self.key() <= other.key()


class Range(BaseModel):
    start_position: Position
    end_position: Position

    @classmethod
    def from_lines(cls, start_line: int, end_line: int, end_character: int = 0) -> "Range":
        return cls(
            start_position=Position(line=start_line, character=0),
            end_position=Position(line=end_line, character=end_character),
        )

    @property
    def start_line(self) -> int:
        return self.start_position.line

    @property
    def end_line(self) -> int:
        return self.end_position.line

    def contains(self, other: "Range") -> bool:
        return (
            self.start_position.before_or_equal(other.start_position)
            and other.end_position.before_or_equal(self.end_position)
        )

    def contains_position(self, position: Position) -> bool:
        return (
            self.start_position.before_or_equal(position)
            and position.before_or_equal(self.end_position)
        )

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def intersects_without_byte(self, other: "Range") -> bool:
        """Line-wise overlap check."""
        return not (self.end_line < other.start_line or other.end_line < self.start_line)

    def minimal_line_distance(self, other: "Range") -> int:
        if self.intersects_without_byte(other):
            return 0
        if self.end_line < other.start_line:
            return other.start_line - self.end_line
        return self.start_line - other.end_line

    def fits_in(self, file_content: str) -> bool:
        """True when the range lies within the lines of ``file_content``."""
        line_count = len(file_content.splitlines()) or 1
        return 0 <= self.start_line <= self.end_line < line_count


def split_file_content_into_parts(file_content: str, selection: Range) -> tuple[str, str, str]:
    """Split a file around ``selection`` into ``(above, below, in_selection)``.

    The selection covers whole lines, from the start line through the end
    line inclusive. Missing parts come back as empty strings.
    """
    lines = file_content.split("\n")
    start = max(selection.start_line, 0)
    end = min(selection.end_line, len(lines) - 1)
    above = "\n".join(lines[:start])
    in_selection = "\n".join(lines[start:end + 1])
    below = "\n".join(lines[end + 1:])
    return above, below, in_selection
