from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

"""Cell and Row models for the CSV import engine.

A Row is the decoded form of one input line. Each field keeps a tri-state
presence flag so that "not in the line at all", "present but empty" and
"has a value" stay distinguishable down to the generated INSERT.
"""

__all__ = [
    "Presence",
    "Cell",
    "Row",
]


class Presence(IntEnum):
    """Presence of a field in the input line.

    - ABSENT: not in the line (stored as SQL NULL)
    - BLANK: present but empty (stored as empty string)
    - PRESENT: non-empty value
    """
    ABSENT = -1
    BLANK = 0
    PRESENT = 1


@dataclass(frozen=True)
class Cell:
    value: str
    presence: Presence

    @staticmethod
    def from_token(token: str | None, empty_as_null: bool = False) -> Cell:
        """Build a Cell from a raw CSV token (None = token missing)."""
        if token is None:
            return ABSENT_CELL
        if token == "":
            return Cell("", Presence.ABSENT if empty_as_null else Presence.BLANK)
        return Cell(token, Presence.PRESENT)

    @property
    def is_present(self) -> bool:
        return self.presence is Presence.PRESENT


ABSENT_CELL = Cell("", Presence.ABSENT)


@dataclass(frozen=True)
class Row:
    """Ordered cells of one input line.

    line_number is the 1-based physical record number in the source file.
    """
    line_number: int
    cells: tuple[Cell, ...]

    def __len__(self) -> int:
        return len(self.cells)

    def cell(self, position: int) -> Cell:
        """Return the cell at 1-based source column ``position``.

        Columns past the end of the line are ABSENT.
        """
        if 1 <= position <= len(self.cells):
            return self.cells[position - 1]
        return ABSENT_CELL

    @property
    def is_empty(self) -> bool:
        # zero fields, or a single empty field
        if not self.cells:
            return True
        return len(self.cells) == 1 and self.cells[0].value == ""
