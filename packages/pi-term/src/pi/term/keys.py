"""Keyboard input parsing and matching for terminal applications.

Turns one decoded input unit (see :mod:`pi.term.stdin_buffer`) into a key
identifier such as ``"ctrl+a"``, ``"alt+left"`` or ``"shift+enter"``, and
compares identifiers independent of modifier order.

Whether the terminal speaks the Kitty keyboard protocol changes how a couple
of legacy bytes are read. That flag lives on a :class:`KeyboardProtocol`
instance which the caller passes in; there is no module-level state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

KeyId = str
KeyEventType = Literal["press", "repeat", "release"]

# ---------------------------------------------------------------------------
# Protocol state
# ---------------------------------------------------------------------------

_KITTY_RESPONSE_RE = re.compile(r"^\x1b\[\?(\d+)u$")


@dataclass
class KeyboardProtocol:
    """Keyboard protocol negotiated with the terminal."""

    kitty_active: bool = False

    def set_kitty_active(self, active: bool) -> None:
        self.kitty_active = active

    def is_kitty_active(self) -> bool:
        return self.kitty_active

    def observe(self, data: str) -> bool:
        """Consume a ``CSI ? flags u`` reply, marking Kitty as active.

        Returns True if *data* was such a reply.
        """
        if _KITTY_RESPONSE_RE.match(data):
            self.kitty_active = True
            return True
        return False


# ---------------------------------------------------------------------------
# Key helper object
# ---------------------------------------------------------------------------


class Key:
    """Named key constants and modifier combinators."""

    escape = "escape"
    enter = "enter"
    tab = "tab"
    space = "space"
    backspace = "backspace"
    delete = "delete"
    insert = "insert"
    home = "home"
    end = "end"
    page_up = "pageUp"
    page_down = "pageDown"
    up = "up"
    down = "down"
    left = "left"
    right = "right"

    @staticmethod
    def f(n: int) -> str:
        return f"f{n}"

    @staticmethod
    def ctrl(key: str) -> str:
        return f"ctrl+{key}"

    @staticmethod
    def alt(key: str) -> str:
        return f"alt+{key}"

    @staticmethod
    def shift(key: str) -> str:
        return f"shift+{key}"

    @staticmethod
    def ctrl_alt(key: str) -> str:
        return f"ctrl+alt+{key}"

    @staticmethod
    def ctrl_shift(key: str) -> str:
        return f"ctrl+shift+{key}"

    @staticmethod
    def alt_shift(key: str) -> str:
        return f"alt+shift+{key}"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

MODIFIER_ORDER = ("ctrl", "alt", "shift")

MODIFIERS: dict[str, int] = {
    "shift": 1,
    "alt": 2,
    "ctrl": 4,
}

# Caps lock / num lock bits reported by Kitty
LOCK_MASK = 64 + 128

# Final byte of ``CSI 1 ; mod X`` and ``SS3 X``
_FINAL_KEYS: dict[str, str] = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
    "H": "home",
    "F": "end",
    "E": "clear",
    "P": "f1",
    "Q": "f2",
    "R": "f3",
    "S": "f4",
}

# Number of ``CSI n ~``
_TILDE_KEYS: dict[int, str] = {
    1: "home",
    2: "insert",
    3: "delete",
    4: "end",
    5: "pageUp",
    6: "pageDown",
    7: "home",
    8: "end",
    15: "f5",
    17: "f6",
    18: "f7",
    19: "f8",
    20: "f9",
    21: "f10",
    23: "f11",
    24: "f12",
}

LEGACY_KEY_SEQUENCES: dict[str, str] = {
    **{f"\x1b[{final}": name for final, name in _FINAL_KEYS.items() if final in "ABCDHFE"},
    **{f"\x1bO{final}": name for final, name in _FINAL_KEYS.items()},
    **{f"\x1b[{number}~": name for number, name in _TILDE_KEYS.items()},
    "\x1b[Z": "shift+tab",
}

# Kitty CSI-u code points with a name
_KITTY_NAMED_CODEPOINTS: dict[int, str] = {
    8: "backspace",
    9: "tab",
    13: "enter",
    27: "escape",
    32: "space",
    127: "backspace",
    57414: "enter",  # keypad enter
    **{57364 + i: f"f{i + 1}" for i in range(12)},
}

_ALIASES: dict[str, str] = {
    "esc": "escape",
    "return": "enter",
    "_": "-",
}

# ESC [ code (: shifted (: base)) (; mod (: event)) u
_KITTY_CSI_U_RE = re.compile(
    r"^\x1b\[(\d+)(?::(\d*))?(?::(\d+))?(?:;(\d+)(?::(\d+))?)?u$"
)
# ESC [ n ; mod (: event) X  -- xterm-style modified special keys
_MODIFIED_CSI_RE = re.compile(r"^\x1b\[(\d+);(\d+)(?::(\d+))?([A-HPQRS~])$")
# ESC [ 27 ; mod ; code ~  -- xterm modifyOtherKeys
_MODIFY_OTHER_KEYS_RE = re.compile(r"^\x1b\[27;(\d+);(\d+)~$")

# ---------------------------------------------------------------------------
# Release / repeat detection
# ---------------------------------------------------------------------------

_RELEASE_PATTERNS = re.compile(r"(?::3u|;[^:]*:3~|;[^:]*:3[ABCDHF]|;[^:]*:3[PQRS])")
_REPEAT_PATTERNS = re.compile(r"(?::2u|;[^:]*:2~|;[^:]*:2[ABCDHF]|;[^:]*:2[PQRS])")


def is_key_release(data: str) -> bool:
    """Check if data contains a Kitty key release event."""
    if "\x1b[200~" in data:
        return False
    return bool(_RELEASE_PATTERNS.search(data))


def is_key_repeat(data: str) -> bool:
    """Check if data contains a Kitty key repeat event."""
    if "\x1b[200~" in data:
        return False
    return bool(_REPEAT_PATTERNS.search(data))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _modifier_prefix(modifier: int) -> str:
    """Turn an xterm/Kitty modifier parameter (1 + bits) into ``ctrl+alt+``."""
    bits = (modifier - 1) & ~LOCK_MASK
    return "".join(f"{name}+" for name in MODIFIER_ORDER if bits & MODIFIERS[name])


def _codepoint_key(codepoint: int) -> str | None:
    named = _KITTY_NAMED_CODEPOINTS.get(codepoint)
    if named is not None:
        return named
    if codepoint <= 0 or codepoint > 0x10FFFF:
        return None
    ch = chr(codepoint)
    if not ch.isprintable():
        return None
    return ch.lower()


def _parse_csi_key(data: str) -> str | None:
    m = _KITTY_CSI_U_RE.match(data)
    if m:
        key = _codepoint_key(int(m.group(1)))
        if key is None:
            return None
        return _modifier_prefix(int(m.group(4) or 1)) + key

    m = _MODIFY_OTHER_KEYS_RE.match(data)
    if m:
        key = _codepoint_key(int(m.group(2)))
        if key is None:
            return None
        return _modifier_prefix(int(m.group(1))) + key

    m = _MODIFIED_CSI_RE.match(data)
    if m:
        number, final = int(m.group(1)), m.group(4)
        if final == "~":
            key = _TILDE_KEYS.get(number)
        else:
            key = _FINAL_KEYS.get(final) if number == 1 else None
        if key is None:
            return None
        return _modifier_prefix(int(m.group(2))) + key

    return None


def _legacy_ctrl_key(ch: str) -> str | None:
    code = ord(ch)
    if code == 0:
        return "ctrl+space"
    if 1 <= code <= 26:
        return "ctrl+" + chr(code + ord("a") - 1)
    return {
        28: "ctrl+\\",
        29: "ctrl+]",
        30: "ctrl+^",
        31: "ctrl+-",
    }.get(code)


def _legacy_alt_key(ch: str, kitty_active: bool) -> str | None:
    if ch in ("\x7f", "\x08"):
        return "alt+backspace"
    # Kitty encodes alt itself; ESC + x means two separate keys there.
    if kitty_active:
        return None
    if ch == "\x1b":
        return "alt+escape"
    ctrl = _legacy_ctrl_key(ch)
    if ctrl is not None:
        return "ctrl+alt+" + ctrl[len("ctrl+") :]
    if ch == "B":
        return "alt+left"
    if ch == "F":
        return "alt+right"
    if ch == " ":
        return "alt+space"
    if ch.isupper() and ch.isalpha():
        return "alt+shift+" + ch.lower()
    return "alt+" + ch


def parse_key(data: str, protocol: KeyboardProtocol | None = None) -> KeyId | None:
    """Parse one input unit into a key identifier, or ``None``.

    *protocol* supplies the Kitty keyboard state; without one the terminal
    is assumed to use legacy encodings only.
    """
    if not data:
        return None

    kitty_active = protocol is not None and protocol.kitty_active

    name = LEGACY_KEY_SEQUENCES.get(data)
    if name is not None:
        return name

    if data.startswith("\x1b[") and len(data) > 3:
        name = _parse_csi_key(data)
        if name is not None:
            return name

    if data == "\x1b":
        return "escape"
    if data == "\r":
        return "enter"
    if data == "\n":
        return "shift+enter" if kitty_active else "enter"
    if data == "\t":
        return "tab"
    if data == " ":
        return "space"
    if data in ("\x7f", "\x08"):
        return "backspace"

    if len(data) == 1:
        ctrl = _legacy_ctrl_key(data)
        if ctrl is not None:
            return ctrl
        if data.isupper() and data.isalpha():
            return "shift+" + data.lower()
        return data

    if len(data) == 2 and data[0] == "\x1b":
        return _legacy_alt_key(data[1], kitty_active)

    return None


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def canonicalize_key_id(key_id: KeyId) -> str:
    """Normalise a key identifier: lowercase, aliases, ``ctrl+alt+shift`` order."""
    lowered = key_id.lower()
    if lowered == "+":
        return lowered

    parts = lowered.split("+")
    if len(parts) == 1:
        return _ALIASES.get(lowered, lowered)

    *modifiers, base = parts
    if base == "" and modifiers and modifiers[-1] == "":
        # "ctrl++" names the plus key
        modifiers.pop()
        base = "+"
    base = _ALIASES.get(base, base)
    ordered = [name for name in MODIFIER_ORDER if name in modifiers]
    return "+".join([*ordered, base])


def matches_key(
    data: str, key_id: KeyId, protocol: KeyboardProtocol | None = None
) -> bool:
    """Check whether raw input *data* is the key named by *key_id*."""
    parsed = parse_key(data, protocol)
    if parsed is None:
        return False
    return canonicalize_key_id(parsed) == canonicalize_key_id(key_id)
