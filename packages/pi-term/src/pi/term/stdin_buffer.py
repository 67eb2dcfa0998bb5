"""StdinBuffer buffers input and emits complete sequences.

Terminal input arrives in arbitrary chunks, and an escape sequence such as a
mouse report can be split between two reads. Without buffering the tail of a
split sequence would be misread as ordinary keypresses. Bracketed paste
content is collected separately and delivered as a single paste event.
"""

from __future__ import annotations

import codecs
import logging
import re
from typing import Callable, Literal

logger = logging.getLogger(__name__)

ESC = "\x1b"
BRACKETED_PASTE_START = "\x1b[200~"
BRACKETED_PASTE_END = "\x1b[201~"

SequenceStatus = Literal["complete", "incomplete", "not-escape"]

_SGR_MOUSE_RE = re.compile(r"^<\d+;\d+;\d+[Mm]$")


def _is_complete_sequence(data: str) -> SequenceStatus:
    """Classify a candidate that may be the start of an escape sequence."""
    if not data.startswith(ESC):
        return "not-escape"

    if len(data) == 1:
        return "incomplete"

    introducer = data[1]

    if introducer == "[":
        if data.startswith("\x1b[M"):
            # Legacy X10 mouse: ESC [ M b x y
            return "complete" if len(data) >= 6 else "incomplete"
        return _is_complete_csi_sequence(data)

    if introducer == "]":
        return _is_complete_osc_sequence(data)

    if introducer in ("P", "_"):
        return _is_complete_st_sequence(data)

    if introducer == "O":
        # SS3 carries one more character after the introducer.
        return "complete" if len(data) >= 3 else "incomplete"

    # ESC-prefixed single character (meta key)
    return "complete"


def _is_complete_csi_sequence(data: str) -> SequenceStatus:
    if len(data) < 3:
        return "incomplete"

    payload = data[2:]
    if not 0x40 <= ord(payload[-1]) <= 0x7E:
        return "incomplete"

    if payload.startswith("<"):
        return "complete" if _SGR_MOUSE_RE.match(payload) else "incomplete"
    return "complete"


def _is_complete_osc_sequence(data: str) -> SequenceStatus:
    if data.endswith("\x07") or (len(data) > 3 and data.endswith("\x1b\\")):
        return "complete"
    return "incomplete"


def _is_complete_st_sequence(data: str) -> SequenceStatus:
    # DCS and APC only end with ST.
    if len(data) > 3 and data.endswith("\x1b\\"):
        return "complete"
    return "incomplete"


def _extract_complete_sequences(buffer: str) -> tuple[list[str], str]:
    """Split *buffer* into complete input units.

    Returns ``(sequences, remainder)``; the remainder is a trailing escape
    sequence that needs more input.
    """
    sequences: list[str] = []
    pos = 0
    n = len(buffer)

    while pos < n:
        if buffer[pos] != ESC:
            sequences.append(buffer[pos])
            pos += 1
            continue

        end = pos + 1
        while end <= n:
            status = _is_complete_sequence(buffer[pos:end])
            if status != "incomplete":
                break
            end += 1
        else:
            return sequences, buffer[pos:]

        sequences.append(buffer[pos:end])
        pos = end

    return sequences, ""


class StdinBuffer:
    """Buffers stdin input and emits complete sequences.

    Register handlers with :meth:`on_data` and :meth:`on_paste`, then feed
    raw chunks (``str`` or ``bytes``) to :meth:`process`.
    """

    def __init__(self) -> None:
        self._buffer: str = ""
        self._paste_mode: bool = False
        self._paste_buffer: str = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        self._data_handlers: list[Callable[[str], None]] = []
        self._paste_handlers: list[Callable[[str], None]] = []

    def on_data(self, callback: Callable[[str], None]) -> None:
        """Register a handler for complete input units."""
        self._data_handlers.append(callback)

    def on_paste(self, callback: Callable[[str], None]) -> None:
        """Register a handler for bracketed paste content."""
        self._paste_handlers.append(callback)

    def _emit_data(self, data: str) -> None:
        for handler in self._data_handlers:
            handler(data)

    def _emit_paste(self, data: str) -> None:
        for handler in self._paste_handlers:
            handler(data)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def process(self, data: str | bytes) -> None:
        """Feed a chunk of input into the buffer."""
        if isinstance(data, bytes):
            self._process_bytes(data)
        else:
            self._process_text(data)

    def _process_bytes(self, data: bytes) -> None:
        pending, _ = self._decoder.getstate()
        if len(data) == 1 and data[0] > 127 and not pending:
            # 8-bit meta: high bit set means ESC + the 7-bit character.
            self._process_text(ESC + chr(data[0] - 128))
            return
        text = self._decoder.decode(data)
        if data and not text:
            # Partial multi-byte character; wait for the rest.
            return
        self._process_text(text)

    def _process_text(self, data: str) -> None:
        if not data and not self._buffer:
            self._emit_data("")
            return

        self._buffer += data

        if self._paste_mode:
            self._paste_buffer += self._buffer
            self._buffer = ""
            self._try_finish_paste()
            return

        start_index = self._buffer.find(BRACKETED_PASTE_START)
        if start_index != -1:
            sequences, _ = _extract_complete_sequences(self._buffer[:start_index])
            for sequence in sequences:
                self._emit_data(sequence)

            self._paste_buffer = self._buffer[
                start_index + len(BRACKETED_PASTE_START) :
            ]
            self._buffer = ""
            self._paste_mode = True
            self._try_finish_paste()
            return

        sequences, self._buffer = _extract_complete_sequences(self._buffer)
        for sequence in sequences:
            self._emit_data(sequence)

    def _try_finish_paste(self) -> None:
        end_index = self._paste_buffer.find(BRACKETED_PASTE_END)
        if end_index == -1:
            return

        content = self._paste_buffer[:end_index]
        remaining = self._paste_buffer[end_index + len(BRACKETED_PASTE_END) :]
        self._paste_mode = False
        self._paste_buffer = ""

        self._emit_paste(content)

        if remaining:
            self._process_text(remaining)

    # ------------------------------------------------------------------
    # Draining / reset
    # ------------------------------------------------------------------

    def flush(self) -> list[str]:
        """Emit whatever is buffered as one final data event.

        Used when the input stream goes idle while a sequence is still
        incomplete. Returns the emitted units.
        """
        if not self._buffer:
            return []

        logger.debug("flushing incomplete input %r", self._buffer)
        flushed = self._buffer
        self._buffer = ""
        self._emit_data(flushed)
        return [flushed]

    def clear(self) -> None:
        self._buffer = ""
        self._paste_mode = False
        self._paste_buffer = ""
        self._decoder.reset()

    def get_buffer(self) -> str:
        return self._buffer

    @property
    def paste_mode(self) -> bool:
        return self._paste_mode

    def destroy(self) -> None:
        self.clear()
        self._data_handlers.clear()
        self._paste_handlers.clear()
