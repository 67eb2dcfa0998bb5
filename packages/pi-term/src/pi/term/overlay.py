"""Overlay option types and the overlay layout resolver.

:func:`resolve_overlay_layout` is a pure function of the options, the
overlay's content height and the terminal size. The compositor calls it
twice per overlay: once to learn the width to render at, and again with the
height the overlay actually rendered.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Literal, TypedDict, Union

OverlayAnchor = Literal[
    "center",
    "top-left",
    "top-right",
    "bottom-left",
    "bottom-right",
    "top-center",
    "bottom-center",
    "left-center",
    "right-center",
]


class OverlayMargin(TypedDict, total=False):
    top: int
    right: int
    bottom: int
    left: int


# int  ->  exact number of columns/rows
# str  ->  percentage string like "50%"
SizeValue = Union[int, str]


class OverlayOptions(TypedDict, total=False):
    width: SizeValue
    min_width: int
    max_height: SizeValue
    anchor: OverlayAnchor
    offset_x: int
    offset_y: int
    row: SizeValue
    col: SizeValue
    margin: OverlayMargin | int
    visible: Callable[[int, int], bool]


@dataclass
class OverlayLayout:
    width: int
    row: int
    col: int
    max_height: int | None = None


DEFAULT_OVERLAY_WIDTH = 80

# anchor -> (vertical, horizontal) placement
_ANCHORS: dict[str, tuple[str, str]] = {
    "center": ("center", "center"),
    "top-left": ("start", "start"),
    "top-right": ("start", "end"),
    "bottom-left": ("end", "start"),
    "bottom-right": ("end", "end"),
    "top-center": ("start", "center"),
    "bottom-center": ("end", "center"),
    "left-center": ("center", "start"),
    "right-center": ("center", "end"),
}


def _parse_percent(value: str) -> float | None:
    if not value.endswith("%"):
        return None
    try:
        return float(value[:-1])
    except ValueError:
        return None


def _parse_size_value(value: SizeValue | None, reference_size: int) -> int | None:
    """Resolve a ``SizeValue`` against *reference_size*.

    * ``None``  -> ``None``
    * ``int``   -> returned as-is
    * ``"50%"`` -> ``floor(reference_size * 50 / 100)``
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value
    pct = _parse_percent(value)
    if pct is None:
        return None
    return math.floor(reference_size * pct / 100)


def _parse_position(
    value: SizeValue | None, margin_start: int, available: int, size: int
) -> int | None:
    """Resolve an explicit row/col; percentages slide within the free space."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    pct = _parse_percent(value)
    if pct is None:
        return None
    return margin_start + math.floor(max(0, available - size) * pct / 100)


def _anchor_offset(placement: str, margin_start: int, available: int, size: int) -> int:
    if placement == "start":
        return margin_start
    if placement == "end":
        return margin_start + available - size
    return margin_start + (available - size) // 2


def _margins(options: OverlayOptions) -> tuple[int, int, int, int]:
    raw = options.get("margin")
    if raw is None:
        return 0, 0, 0, 0
    if isinstance(raw, int):
        m = max(0, raw)
        return m, m, m, m
    return (
        max(0, raw.get("top", 0)),
        max(0, raw.get("right", 0)),
        max(0, raw.get("bottom", 0)),
        max(0, raw.get("left", 0)),
    )


def resolve_overlay_layout(
    options: OverlayOptions | None,
    overlay_height: int,
    term_width: int,
    term_height: int,
) -> OverlayLayout:
    """Compute an overlay's width, position and height cap.

    Geometry that would leave the screen is clamped, never rejected. An
    unknown anchor name raises ``ValueError``.
    """
    if options is None:
        options = {}

    anchor = options.get("anchor", "center")
    if anchor not in _ANCHORS:
        raise ValueError(f"unknown overlay anchor: {anchor!r}")
    vertical, horizontal = _ANCHORS[anchor]

    m_top, m_right, m_bottom, m_left = _margins(options)
    avail_width = max(1, term_width - m_left - m_right)
    avail_height = max(1, term_height - m_top - m_bottom)

    # --- Width ---
    width = _parse_size_value(options.get("width"), term_width)
    if width is None:
        width = min(DEFAULT_OVERLAY_WIDTH, avail_width)
    min_width = options.get("min_width")
    if min_width is not None:
        width = max(width, min_width)
    width = max(1, min(width, avail_width))

    # --- Height ---
    max_height = _parse_size_value(options.get("max_height"), term_height)
    if max_height is not None:
        max_height = max(1, min(max_height, avail_height))
    effective_height = (
        min(overlay_height, max_height) if max_height is not None else overlay_height
    )

    # --- Position ---
    row = _parse_position(options.get("row"), m_top, avail_height, effective_height)
    if row is None:
        row = _anchor_offset(vertical, m_top, avail_height, effective_height)
    col = _parse_position(options.get("col"), m_left, avail_width, width)
    if col is None:
        col = _anchor_offset(horizontal, m_left, avail_width, width)

    row += options.get("offset_y", 0)
    col += options.get("offset_x", 0)

    row = max(m_top, min(row, term_height - m_bottom - effective_height))
    col = max(m_left, min(col, term_width - m_right - width))

    # Oversized margins can push the clamp past the screen edge.
    row = max(0, min(row, term_height - 1))
    col = max(0, min(col, term_width - 1))

    return OverlayLayout(width=width, row=row, col=col, max_height=max_height)
