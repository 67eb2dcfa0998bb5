"""Image protocol encoders and terminal capability detection."""

from __future__ import annotations

import base64
import binascii
import math
import os
import random
import struct
from dataclasses import dataclass
from typing import Literal

ImageProtocol = Literal["kitty", "iterm2"] | None


@dataclass
class TerminalCapabilities:
    images: ImageProtocol
    true_color: bool
    hyperlinks: bool


@dataclass
class CellDimensions:
    width_px: int
    height_px: int


@dataclass
class ImageDimensions:
    width_px: int
    height_px: int


DEFAULT_CELL_DIMENSIONS = CellDimensions(width_px=9, height_px=18)

_cached_capabilities: TerminalCapabilities | None = None
_cell_dimensions = DEFAULT_CELL_DIMENSIONS


def get_cell_dimensions() -> CellDimensions:
    return _cell_dimensions


def set_cell_dimensions(dims: CellDimensions) -> None:
    global _cell_dimensions
    _cell_dimensions = dims


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


def detect_capabilities() -> TerminalCapabilities:
    """Guess the terminal's image protocol from well-known environment vars."""
    term_program = os.environ.get("TERM_PROGRAM", "").lower()
    term = os.environ.get("TERM", "").lower()
    color_term = os.environ.get("COLORTERM", "").lower()

    kitty_like = (
        os.environ.get("KITTY_WINDOW_ID")
        or term_program in ("kitty", "ghostty", "wezterm")
        or "ghostty" in term
        or os.environ.get("GHOSTTY_RESOURCES_DIR")
        or os.environ.get("WEZTERM_PANE")
    )
    if kitty_like:
        return TerminalCapabilities(images="kitty", true_color=True, hyperlinks=True)

    if os.environ.get("ITERM_SESSION_ID") or term_program == "iterm.app":
        return TerminalCapabilities(images="iterm2", true_color=True, hyperlinks=True)

    if term_program in ("vscode", "alacritty"):
        return TerminalCapabilities(images=None, true_color=True, hyperlinks=True)

    true_color = color_term in ("truecolor", "24bit")
    return TerminalCapabilities(images=None, true_color=true_color, hyperlinks=True)


def get_capabilities() -> TerminalCapabilities:
    global _cached_capabilities
    if _cached_capabilities is None:
        _cached_capabilities = detect_capabilities()
    return _cached_capabilities


def reset_capabilities_cache() -> None:
    global _cached_capabilities
    _cached_capabilities = None


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------

KITTY_PREFIX = "\x1b_G"
ITERM2_PREFIX = "\x1b]1337;File="

_KITTY_CHUNK_SIZE = 4096


def is_image_line(line: str) -> bool:
    """Return True if *line* carries an inline image payload."""
    return KITTY_PREFIX in line or ITERM2_PREFIX in line


def allocate_image_id() -> int:
    return random.randint(1, 0xFFFFFFFE)


def encode_kitty(
    base64_data: str,
    *,
    columns: int | None = None,
    rows: int | None = None,
    image_id: int | None = None,
) -> str:
    """Encode a PNG payload as Kitty graphics transmit-and-display commands.

    Payloads longer than one chunk are split; every chunk but the last is
    flagged ``m=1`` and only the first carries the control keys.
    """
    params: list[str] = ["a=T", "f=100", "q=2"]
    if columns:
        params.append(f"c={columns}")
    if rows:
        params.append(f"r={rows}")
    if image_id:
        params.append(f"i={image_id}")
    control = ",".join(params)

    if len(base64_data) <= _KITTY_CHUNK_SIZE:
        return f"\x1b_G{control};{base64_data}\x1b\\"

    chunks = [
        base64_data[offset : offset + _KITTY_CHUNK_SIZE]
        for offset in range(0, len(base64_data), _KITTY_CHUNK_SIZE)
    ]
    out: list[str] = []
    for index, chunk in enumerate(chunks):
        more = 0 if index == len(chunks) - 1 else 1
        if index == 0:
            out.append(f"\x1b_G{control},m={more};{chunk}\x1b\\")
        else:
            out.append(f"\x1b_Gm={more};{chunk}\x1b\\")
    return "".join(out)


def encode_iterm2(
    base64_data: str,
    *,
    width: int | str | None = None,
    height: int | str | None = None,
    filename: str | None = None,
    preserve_aspect_ratio: bool | None = None,
    inline: bool = True,
) -> str:
    """Encode an image as an iTerm2 ``OSC 1337 File=`` sequence.

    *width* and *height* are passed through verbatim, so ``"40ch"``, ``"auto"``
    and pixel counts all work.
    """
    params: list[str] = [f"inline={1 if inline else 0}"]
    if width is not None:
        params.append(f"width={width}")
    if height is not None:
        params.append(f"height={height}")
    if filename:
        params.append(f"name={base64.b64encode(filename.encode()).decode()}")
    if preserve_aspect_ratio is False:
        params.append("preserveAspectRatio=0")
    return f"\x1b]1337;File={';'.join(params)}:{base64_data}\x07"


def calculate_image_rows(
    image_dimensions: ImageDimensions,
    target_width_cells: int,
    cell_dims: CellDimensions | None = None,
) -> int:
    """Number of terminal rows the image occupies when scaled to the width."""
    if cell_dims is None:
        cell_dims = DEFAULT_CELL_DIMENSIONS
    if image_dimensions.width_px <= 0 or cell_dims.height_px <= 0:
        return 1
    scale = target_width_cells * cell_dims.width_px / image_dimensions.width_px
    rows = math.ceil(image_dimensions.height_px * scale / cell_dims.height_px)
    return max(1, rows)


def image_fallback(
    mime_type: str,
    dimensions: ImageDimensions | None = None,
    filename: str | None = None,
) -> str:
    """Text placeholder for terminals without an image protocol."""
    name = f" {filename}" if filename else ""
    size = (
        f" {dimensions.width_px}x{dimensions.height_px}" if dimensions else ""
    )
    return f"[Image{name}: {mime_type}{size}]"


# ---------------------------------------------------------------------------
# Header sniffing
# ---------------------------------------------------------------------------


def _png_dimensions(data: bytes) -> ImageDimensions | None:
    if len(data) < 24 or data[:8] != b"\x89PNG\r\n\x1a\n":
        return None
    width, height = struct.unpack(">II", data[16:24])
    return ImageDimensions(width_px=width, height_px=height)


def _jpeg_dimensions(data: bytes) -> ImageDimensions | None:
    if data[:2] != b"\xff\xd8":
        return None
    offset = 2
    while offset + 9 <= len(data):
        if data[offset] != 0xFF:
            offset += 1
            continue
        marker = data[offset + 1]
        # SOF0..SOF2 carry the frame size
        if 0xC0 <= marker <= 0xC2:
            height, width = struct.unpack(">HH", data[offset + 5 : offset + 9])
            return ImageDimensions(width_px=width, height_px=height)
        (length,) = struct.unpack(">H", data[offset + 2 : offset + 4])
        if length < 2:
            return None
        offset += 2 + length
    return None


def _gif_dimensions(data: bytes) -> ImageDimensions | None:
    if len(data) < 10 or data[:6] not in (b"GIF87a", b"GIF89a"):
        return None
    width, height = struct.unpack("<HH", data[6:10])
    return ImageDimensions(width_px=width, height_px=height)


def _webp_dimensions(data: bytes) -> ImageDimensions | None:
    if len(data) < 30 or data[:4] != b"RIFF" or data[8:12] != b"WEBP":
        return None
    chunk = data[12:16]
    if chunk == b"VP8 ":
        width, height = struct.unpack("<HH", data[26:30])
        return ImageDimensions(width_px=width & 0x3FFF, height_px=height & 0x3FFF)
    if chunk == b"VP8L":
        (bits,) = struct.unpack("<I", data[21:25])
        return ImageDimensions(
            width_px=(bits & 0x3FFF) + 1,
            height_px=((bits >> 14) & 0x3FFF) + 1,
        )
    if chunk == b"VP8X":
        width = int.from_bytes(data[24:27], "little") + 1
        height = int.from_bytes(data[27:30], "little") + 1
        return ImageDimensions(width_px=width, height_px=height)
    return None


_SNIFFERS = {
    "image/png": _png_dimensions,
    "image/jpeg": _jpeg_dimensions,
    "image/gif": _gif_dimensions,
    "image/webp": _webp_dimensions,
}


def get_image_dimensions(
    base64_data: str, mime_type: str | None = None
) -> ImageDimensions | None:
    """Read pixel dimensions from the image header, or None if unknown.

    With no *mime_type* every known format is tried in turn.
    """
    try:
        data = base64.b64decode(base64_data)
    except (binascii.Error, ValueError):
        return None

    if mime_type is not None:
        sniffer = _SNIFFERS.get(mime_type)
        return sniffer(data) if sniffer else None

    for sniffer in _SNIFFERS.values():
        dims = sniffer(data)
        if dims is not None:
            return dims
    return None
