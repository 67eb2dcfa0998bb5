"""Image display component."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from pi.term.terminal_image import (
    ImageDimensions,
    TerminalCapabilities,
    allocate_image_id,
    calculate_image_rows,
    encode_iterm2,
    encode_kitty,
    get_capabilities,
    get_cell_dimensions,
    get_image_dimensions,
    image_fallback,
)

DEFAULT_MAX_WIDTH_CELLS = 60


@dataclass
class ImageTheme:
    fallback_color: Callable[[str], str]


@dataclass
class ImageOptions:
    max_width_cells: int | None = None
    filename: str | None = None
    image_id: int | None = None


class Image:
    """Renders an image inline, or a one-line placeholder.

    The rendered lines are memoised per width. With the Kitty protocol the
    image id is allocated on first render and reused afterwards, so repeated
    renders replace the placement instead of stacking copies.
    """

    def __init__(
        self,
        base64_data: str,
        mime_type: str,
        theme: ImageTheme,
        options: ImageOptions | None = None,
        dimensions: ImageDimensions | None = None,
        *,
        capabilities_provider: Callable[[], TerminalCapabilities] = get_capabilities,
        image_id_allocator: Callable[[], int] = allocate_image_id,
    ) -> None:
        self._base64_data = base64_data
        self._mime_type = mime_type
        self._theme = theme
        self._options = options or ImageOptions()
        self._known_dimensions = dimensions or get_image_dimensions(
            base64_data, mime_type
        )
        self._dimensions = self._known_dimensions or ImageDimensions(
            width_px=800, height_px=600
        )
        self._capabilities_provider = capabilities_provider
        self._image_id_allocator = image_id_allocator
        self._image_id = self._options.image_id

        self._cached_lines: list[str] | None = None
        self._cached_width: int | None = None

    def get_image_id(self) -> int | None:
        """Kitty image id in use, or None before the first Kitty render."""
        return self._image_id

    def invalidate(self) -> None:
        self._cached_lines = None
        self._cached_width = None

    def render(self, width: int) -> list[str]:
        if self._cached_lines is not None and self._cached_width == width:
            return self._cached_lines

        max_width = max(
            1,
            min(
                max(1, width - 2),
                self._options.max_width_cells or DEFAULT_MAX_WIDTH_CELLS,
            ),
        )
        protocol = self._capabilities_provider().images

        if protocol is None:
            lines = [self._fallback()]
        else:
            rows = calculate_image_rows(
                self._dimensions, max_width, get_cell_dimensions()
            )
            if protocol == "kitty":
                if self._image_id is None:
                    self._image_id = self._image_id_allocator()
                sequence = encode_kitty(
                    self._base64_data,
                    columns=max_width,
                    rows=rows,
                    image_id=self._image_id,
                )
            else:
                sequence = encode_iterm2(
                    self._base64_data,
                    width=f"{max_width}ch",
                    filename=self._options.filename,
                )

            # Reserve the rows, then jump back up to draw the image over them.
            lines = [""] * (rows - 1)
            move_up = f"\x1b[{rows - 1}A" if rows > 1 else ""
            lines.append(move_up + sequence)

        self._cached_lines = lines
        self._cached_width = width
        return lines

    def _fallback(self) -> str:
        return self._theme.fallback_color(
            image_fallback(
                self._mime_type, self._known_dimensions, self._options.filename
            )
        )
