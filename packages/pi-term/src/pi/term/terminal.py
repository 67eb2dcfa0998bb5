"""Terminal sink abstraction and its ANSI implementation.

The compositor talks to a :class:`Terminal`: a row-addressed screen with a
handful of primitives. :class:`AnsiTerminal` turns those primitives into
escape sequences for a writer callable, and decodes input fed back to it
through a :class:`~pi.term.stdin_buffer.StdinBuffer`. Raw mode, signal
handling and reading the file descriptor are left to the host.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from typing import Callable, Protocol

from pi.term.config import TUISettings
from pi.term.keys import KeyboardProtocol
from pi.term.stdin_buffer import (
    BRACKETED_PASTE_END,
    BRACKETED_PASTE_START,
    StdinBuffer,
)
from pi.term.terminal_image import CellDimensions, set_cell_dimensions
from pi.term.utils import sanitize_line

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
CLEAR_SCREEN = "\x1b[2J\x1b[H"
CLEAR_LINE = "\x1b[2K"
BEGIN_SYNCHRONIZED_OUTPUT = "\x1b[?2026h"
END_SYNCHRONIZED_OUTPUT = "\x1b[?2026l"
QUERY_CELL_SIZE = "\x1b[16t"

_CELL_SIZE_RESPONSE_RE = re.compile(r"^\x1b\[6;(\d+);(\d+)t$")


def cursor_to(row: int, col: int) -> str:
    """Absolute cursor move; *row* and *col* are zero-based."""
    return f"\x1b[{row + 1};{col + 1}H"


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface the compositor renders to."""

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None: ...

    def stop(self) -> None: ...

    def begin_synchronized_output(self) -> None: ...

    def end_synchronized_output(self) -> None: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def set_cursor_position(self, row: int, col: int) -> None: ...

    def clear_screen(self) -> None: ...

    def write_line(self, row: int, content: str) -> None: ...

    def clear_line(self, row: int) -> None: ...


# ---------------------------------------------------------------------------
# AnsiTerminal
# ---------------------------------------------------------------------------


def _stdout_write(data: str) -> None:
    try:
        sys.stdout.write(data)
        sys.stdout.flush()
    except OSError:
        # stdout is gone (closed pipe, detached tty); nothing left to draw on
        pass


class AnsiTerminal:
    """A :class:`Terminal` that emits ANSI escape sequences.

    Output goes to *writer*. Input chunks from the host go to :meth:`feed`
    and come out as decoded units on the ``on_input`` callback passed to
    :meth:`start`; paste content is re-wrapped in bracketed-paste markers.
    Replies to the Kitty keyboard query update *keyboard* and replies to
    :meth:`query_cell_size` update the image cell dimensions; neither is
    forwarded.
    """

    def __init__(
        self,
        columns: int = 80,
        rows: int = 24,
        writer: Callable[[str], None] | None = None,
        keyboard: KeyboardProtocol | None = None,
        write_log: str | None = None,
    ) -> None:
        self._columns = columns
        self._rows = rows
        self._writer = writer or _stdout_write
        self.keyboard = keyboard or KeyboardProtocol()
        self._write_log = write_log

        self._input_handler: Callable[[str], None] | None = None
        self._resize_handler: Callable[[], None] | None = None
        self._cell_size_query_pending = False

        self._stdin_buffer = StdinBuffer()
        self._stdin_buffer.on_data(self._on_buffer_data)
        self._stdin_buffer.on_paste(self._on_buffer_paste)

    @classmethod
    def for_stdout(
        cls,
        settings: TUISettings | None = None,
        keyboard: KeyboardProtocol | None = None,
    ) -> AnsiTerminal:
        """Bind to ``sys.stdout``, sized from the controlling terminal."""
        settings = settings or TUISettings.from_env()
        try:
            size = os.get_terminal_size(sys.stdout.fileno())
            columns, rows = size.columns, size.lines
        except (ValueError, OSError):
            columns, rows = 80, 24
        return cls(
            columns,
            rows,
            _stdout_write,
            keyboard=keyboard,
            write_log=settings.write_log,
        )

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        return self._columns

    @property
    def rows(self) -> int:
        return self._rows

    # -- start / stop -------------------------------------------------------

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None:
        self._input_handler = on_input
        self._resize_handler = on_resize

    def stop(self) -> None:
        self._input_handler = None
        self._resize_handler = None
        self._stdin_buffer.clear()

    def resize(self, columns: int, rows: int) -> None:
        """Record a new terminal size and notify the resize handler."""
        if columns < 0 or rows < 0:
            raise ValueError(f"invalid terminal size {columns}x{rows}")
        self._columns = columns
        self._rows = rows
        if self._resize_handler is not None:
            self._resize_handler()

    # -- input --------------------------------------------------------------

    def feed(self, chunk: str | bytes) -> None:
        """Decode a chunk of raw terminal input."""
        self._stdin_buffer.process(chunk)

    def flush_input(self) -> None:
        """Deliver an incomplete trailing sequence once input goes idle."""
        self._stdin_buffer.flush()

    def query_cell_size(self) -> None:
        """Ask the terminal for its cell size in pixels (``CSI 16 t``)."""
        if self._cell_size_query_pending:
            return
        self._cell_size_query_pending = True
        self._write(QUERY_CELL_SIZE)

    def _on_buffer_data(self, data: str) -> None:
        if self.keyboard.observe(data):
            return

        if self._cell_size_query_pending:
            m = _CELL_SIZE_RESPONSE_RE.match(data)
            if m:
                self._cell_size_query_pending = False
                height_px, width_px = int(m.group(1)), int(m.group(2))
                if height_px > 0 and width_px > 0:
                    set_cell_dimensions(
                        CellDimensions(width_px=width_px, height_px=height_px)
                    )
                return

        if self._input_handler is not None:
            self._input_handler(data)

    def _on_buffer_paste(self, data: str) -> None:
        if self._input_handler is not None:
            self._input_handler(BRACKETED_PASTE_START + data + BRACKETED_PASTE_END)

    # -- output -------------------------------------------------------------

    def _write(self, data: str) -> None:
        self._writer(data)
        if self._write_log:
            try:
                with open(self._write_log, "a", encoding="utf-8") as f:
                    f.write(data)
            except OSError as exc:
                logger.warning("cannot append to write log %s: %s", self._write_log, exc)
                self._write_log = None

    def _valid_row(self, row: int) -> bool:
        return 0 <= row < self._rows

    def begin_synchronized_output(self) -> None:
        self._write(BEGIN_SYNCHRONIZED_OUTPUT)

    def end_synchronized_output(self) -> None:
        self._write(END_SYNCHRONIZED_OUTPUT)

    def hide_cursor(self) -> None:
        self._write(HIDE_CURSOR)

    def show_cursor(self) -> None:
        self._write(SHOW_CURSOR)

    def set_cursor_position(self, row: int, col: int) -> None:
        if not self._valid_row(row):
            return
        self._write(cursor_to(row, max(0, col)))

    def clear_screen(self) -> None:
        self._write(CLEAR_SCREEN)

    def write_line(self, row: int, content: str) -> None:
        if not self._valid_row(row):
            return
        self._write(
            cursor_to(row, 0) + CLEAR_LINE + sanitize_line(content, self._columns)
        )

    def clear_line(self, row: int) -> None:
        if not self._valid_row(row):
            return
        self._write(cursor_to(row, 0) + CLEAR_LINE)
