"""Terminal text utilities: escape scanning, width measurement, truncation.

Widths are measured per Unicode scalar, with escape sequences contributing
nothing, so the numbers agree with the column positions the renderer and the
cell grid compute for the same text.
"""

from __future__ import annotations

import unicodedata

import wcwidth as _wcwidth

ESC = "\x1b"
RESET = "\x1b[0m"

# Introducers of string-type sequences terminated by BEL or ST:
# OSC, DCS, APC, PM and SOS.
_STRING_INTRODUCERS = frozenset("]P_^X")

_ZERO_WIDTH_CATEGORIES = frozenset(("Mn", "Me", "Cf"))


# ---------------------------------------------------------------------------
# Escape sequences
# ---------------------------------------------------------------------------


def _escape_end(text: str, pos: int) -> int:
    """Return the index just past the escape sequence starting at *pos*.

    Returns ``-1`` when the sequence is not terminated before the end of
    *text*.
    """
    n = len(text)
    if pos + 1 >= n:
        return -1

    kind = text[pos + 1]

    if kind == "[":
        i = pos + 2
        while i < n:
            if 0x40 <= ord(text[i]) <= 0x7E:
                return i + 1
            i += 1
        return -1

    if kind in _STRING_INTRODUCERS:
        i = pos + 2
        while i < n:
            ch = text[i]
            if ch == "\x07":
                return i + 1
            if ch == ESC and i + 1 < n and text[i + 1] == "\\":
                return i + 2
            i += 1
        return -1

    # Two-character escapes (ESC 7, ESC =, meta keys, ...)
    return pos + 2


def extract_ansi_code(text: str, pos: int) -> tuple[str, int] | None:
    """Extract the escape sequence starting at *pos* in *text*.

    Returns ``(code, length)`` or ``None`` if *pos* does not start a
    complete sequence.
    """
    if pos >= len(text) or text[pos] != ESC:
        return None
    end = _escape_end(text, pos)
    if end < 0:
        return None
    return text[pos:end], end - pos


# ---------------------------------------------------------------------------
# Width
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


def _is_control(ch: str) -> bool:
    cp = ord(ch)
    return cp < 0x20 or cp == 0x7F


def scalar_width(ch: str) -> int:
    """Return the column width of a single scalar: 0, 1 or 2."""
    cp = ord(ch)
    if cp < 0x20 or 0x7F <= cp < 0xA0:
        return 0
    if cp < 0x7F:
        return 1
    if unicodedata.category(ch) in _ZERO_WIDTH_CATEGORIES:
        return 0
    w = _wcwidth.wcwidth(ch)
    if w >= 2:
        return 2
    return max(w, 0)


def visible_width(text: str) -> int:
    """Calculate the number of terminal columns *text* occupies.

    Escape sequences and control characters contribute 0, combining marks
    and format characters contribute 0, East-Asian wide scalars contribute 2.
    """
    if not text:
        return 0

    if text.isascii() and text.isprintable():
        return len(text)

    cached = _width_cache.get(text)
    if cached is not None:
        return cached

    total = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == ESC:
            end = _escape_end(text, i)
            if end < 0:
                break
            i = end
            continue
        total += scalar_width(ch)
        i += 1

    return _cache_width(text, total)


# ---------------------------------------------------------------------------
# Truncation / sanitizing
# ---------------------------------------------------------------------------


def truncate_to_visible_width(text: str, max_width: int) -> str:
    """Cut *text* so that its visible width does not exceed *max_width*.

    Escape sequences and control characters are copied through as long as
    no visible scalar has overflowed. A wide scalar that would straddle the
    limit is dropped whole. An escape sequence left unterminated at the end
    of *text* is dropped.
    """
    if max_width < 0:
        return ""
    if text.isascii() and text.isprintable():
        return text[:max_width]

    out: list[str] = []
    width = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == ESC:
            end = _escape_end(text, i)
            if end < 0:
                break
            out.append(text[i:end])
            i = end
            continue
        if _is_control(ch):
            out.append(ch)
            i += 1
            continue
        w = scalar_width(ch)
        if width + w > max_width:
            break
        width += w
        out.append(ch)
        i += 1

    return "".join(out)


def ensure_line_reset(text: str) -> str:
    """Append an SGR reset to *text* if it carries escapes and lacks one."""
    if ESC in text and not text.endswith(RESET):
        return text + RESET
    return text


def sanitize_line(text: str, columns: int) -> str:
    """Clip *text* to *columns* and make sure no style leaks past it."""
    return ensure_line_reset(truncate_to_visible_width(text, max(0, columns)))


# ---------------------------------------------------------------------------
# AnsiCodeTracker
# ---------------------------------------------------------------------------

_ATTRIBUTE_ON: dict[int, str] = {
    1: "bold",
    2: "dim",
    3: "italic",
    4: "underline",
    5: "blink",
    7: "inverse",
    8: "hidden",
    9: "strikethrough",
}

_ATTRIBUTE_OFF: dict[int, tuple[str, ...]] = {
    22: ("bold", "dim"),
    23: ("italic",),
    24: ("underline",),
    25: ("blink",),
    27: ("inverse",),
    28: ("hidden",),
    29: ("strikethrough",),
}

# Emission order of get_active_codes()
_SLOTS = (
    "bold",
    "dim",
    "italic",
    "underline",
    "blink",
    "inverse",
    "hidden",
    "strikethrough",
    "fg",
    "bg",
)


class AnsiCodeTracker:
    """Track the SGR (Select Graphic Rendition) state across a line.

    Feed every ``ESC[...m`` sequence to :meth:`process`; the tracker can then
    reproduce the active attributes as a compact code string, which is what
    the cell grid stores per cell.
    """

    def __init__(self) -> None:
        self._codes: dict[str, str] = {}

    def process(self, code: str) -> None:
        """Update tracked state from an SGR sequence like ``\\x1b[1;31m``."""
        if not code.startswith("\x1b[") or not code.endswith("m"):
            return

        params = code[2:-1]
        if not params:
            self.clear()
            return

        values = [
            int(p) if p.isascii() and p.isdigit() else (0 if p == "" else -1)
            for p in params.split(";")
        ]
        i = 0
        while i < len(values):
            val = values[i]
            if val == 0:
                self.clear()
            elif val in _ATTRIBUTE_ON:
                self._codes[_ATTRIBUTE_ON[val]] = f"\x1b[{val}m"
            elif val in _ATTRIBUTE_OFF:
                for slot in _ATTRIBUTE_OFF[val]:
                    self._codes.pop(slot, None)
            elif 30 <= val <= 37 or 90 <= val <= 97:
                self._codes["fg"] = f"\x1b[{val}m"
            elif 40 <= val <= 47 or 100 <= val <= 107:
                self._codes["bg"] = f"\x1b[{val}m"
            elif val == 39:
                self._codes.pop("fg", None)
            elif val == 49:
                self._codes.pop("bg", None)
            elif val in (38, 48):
                slot = "fg" if val == 38 else "bg"
                mode = values[i + 1] if i + 1 < len(values) else -1
                if mode == 5 and i + 2 < len(values):
                    self._codes[slot] = f"\x1b[{val};5;{values[i + 2]}m"
                    i += 2
                elif mode == 2 and i + 4 < len(values):
                    r, g, b = values[i + 2 : i + 5]
                    self._codes[slot] = f"\x1b[{val};2;{r};{g};{b}m"
                    i += 4
                else:
                    i += 1
            i += 1

    def clear(self) -> None:
        """Reset all tracked attributes to off."""
        self._codes.clear()

    def get_active_codes(self) -> str:
        """Return the codes that re-establish the current state."""
        return "".join(self._codes[s] for s in _SLOTS if s in self._codes)

    def has_active_codes(self) -> bool:
        return bool(self._codes)
