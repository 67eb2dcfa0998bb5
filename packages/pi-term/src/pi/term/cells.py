"""Cell grid used to composite overlays on top of rendered rows.

A row of text is split into one :class:`Cell` per terminal column. A wide
glyph occupies its head cell plus a continuation cell. Cells remember the SGR
state that was active when they were written, so a row can be flattened back
into styled text after overlays have been stamped onto it.
"""

from __future__ import annotations

from dataclasses import dataclass

import grapheme

from pi.term.utils import (
    ESC,
    RESET,
    AnsiCodeTracker,
    extract_ansi_code,
    visible_width,
)


@dataclass
class Cell:
    text: str = ""
    style: str = ""
    continuation: bool = False

    @property
    def empty(self) -> bool:
        """True for positions nothing has been written to."""
        return not self.text and not self.continuation


def blank_row(columns: int) -> list[Cell]:
    return [Cell() for _ in range(max(0, columns))]


def split_cells(line: str, columns: int) -> list[Cell]:
    """Split *line* into exactly *columns* cells.

    Escape sequences other than SGR are dropped, control characters are
    dropped, and zero-width clusters attach to the preceding glyph. Text past
    *columns* is discarded; a wide glyph that would straddle the edge is
    discarded whole.
    """
    row = blank_row(columns)
    tracker = AnsiCodeTracker()
    col = 0
    last: int | None = None
    pos = 0
    n = len(line)

    while pos < n:
        if line[pos] == ESC:
            code = extract_ansi_code(line, pos)
            if code is None:
                break
            seq, length = code
            tracker.process(seq)
            pos += length
            continue

        end = line.find(ESC, pos)
        if end < 0:
            end = n

        for cluster in grapheme.graphemes(line[pos:end]):
            width = visible_width(cluster)
            if width == 0:
                if last is not None and ord(cluster[0]) >= 0x20:
                    row[last].text += cluster
                continue
            if col + width > len(row):
                return row
            style = tracker.get_active_codes()
            row[col] = Cell(cluster, style)
            for k in range(1, width):
                row[col + k] = Cell("", style, continuation=True)
            last = col
            col += width

        pos = end

    return row


def _put(row: list[Cell], idx: int, cell: Cell) -> None:
    old = row[idx]

    # Overwriting the tail of a wide glyph leaves its head half-visible.
    if old.continuation and not cell.continuation:
        head = idx - 1
        while head > 0 and row[head].continuation:
            head -= 1
        for k in range(head, idx):
            row[k] = Cell(" ", row[k].style)

    row[idx] = cell

    # Overwriting a head (or part of a tail) orphans the rest of the tail.
    if not old.empty:
        j = idx + 1
        while j < len(row) and row[j].continuation:
            row[j] = Cell(" ", row[j].style)
            j += 1


def stamp_cells(row: list[Cell], cells: list[Cell], col: int) -> None:
    """Write *cells* onto *row* starting at column *col*.

    Empty cells are transparent and leave the underlying content in place.
    """
    for offset, cell in enumerate(cells):
        if cell.empty:
            continue
        target = col + offset
        if target < 0:
            continue
        if target >= len(row):
            break
        if (
            not cell.continuation
            and target + 1 >= len(row)
            and offset + 1 < len(cells)
            and cells[offset + 1].continuation
        ):
            cell = Cell(" ", cell.style)
        _put(row, target, cell)


def flatten_cells(row: list[Cell]) -> str:
    """Turn a cell row back into text, trimming trailing empty cells."""
    end = len(row)
    while end > 0 and row[end - 1].empty:
        end -= 1

    parts: list[str] = []
    active = ""
    for cell in row[:end]:
        if cell.continuation:
            continue
        style = cell.style if cell.text else ""
        if style != active:
            if active:
                parts.append(RESET)
            if style:
                parts.append(style)
            active = style
        parts.append(cell.text or " ")
    if active:
        parts.append(RESET)
    return "".join(parts)
