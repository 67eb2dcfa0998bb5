"""Tests for pi.term.components.image.Image."""

from __future__ import annotations

import base64
import struct
from collections.abc import Iterator

import pytest

from pi.term.components import Image, ImageOptions, ImageTheme
from pi.term.terminal_image import (
    DEFAULT_CELL_DIMENSIONS,
    ImageDimensions,
    TerminalCapabilities,
    encode_iterm2,
    encode_kitty,
    get_cell_dimensions,
    set_cell_dimensions,
)

DATA = "AAAA"
THEME = ImageTheme(fallback_color=lambda s: f"<{s}>")


@pytest.fixture(autouse=True)
def default_cell_dimensions() -> Iterator[None]:
    saved = get_cell_dimensions()
    set_cell_dimensions(DEFAULT_CELL_DIMENSIONS)
    yield
    set_cell_dimensions(saved)


def caps(images: str | None) -> TerminalCapabilities:
    return TerminalCapabilities(images=images, true_color=True, hyperlinks=True)  # type: ignore[arg-type]


class IdAllocator:
    def __init__(self, value: int = 42) -> None:
        self.value = value
        self.calls = 0

    def __call__(self) -> int:
        self.calls += 1
        return self.value


def make_image(
    protocol: str | None,
    options: ImageOptions | None = None,
    dimensions: ImageDimensions | None = ImageDimensions(90, 36),
    allocator: IdAllocator | None = None,
) -> Image:
    return Image(
        DATA,
        "image/png",
        THEME,
        options,
        dimensions,
        capabilities_provider=lambda: caps(protocol),
        image_id_allocator=allocator or IdAllocator(),
    )


class TestFallback:
    def test_themed_placeholder(self) -> None:
        image = make_image(None, ImageOptions(filename="cat.png"))
        assert image.render(40) == ["<[Image cat.png: image/png 90x36]>"]

    def test_unknown_dimensions_omitted(self) -> None:
        image = make_image(None, dimensions=None)
        assert image.render(40) == ["<[Image: image/png]>"]

    def test_dimensions_read_from_header(self) -> None:
        header = (
            b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
            + struct.pack(">II", 12, 34)
            + b"\x08\x06\x00\x00\x00"
        )
        image = Image(
            base64.b64encode(header).decode(),
            "image/png",
            THEME,
            capabilities_provider=lambda: caps(None),
        )
        assert image.render(40) == ["<[Image: image/png 12x34]>"]


class TestKitty:
    def test_reserves_rows_then_draws(self) -> None:
        image = make_image("kitty")
        # 12 columns leave room for 10 cells; 90x36 px at 9x18 px cells is 2 rows.
        assert image.render(12) == [
            "",
            "\x1b[1A" + encode_kitty(DATA, columns=10, rows=2, image_id=42),
        ]

    def test_single_row_has_no_cursor_move(self) -> None:
        image = make_image("kitty", dimensions=ImageDimensions(900, 18))
        lines = image.render(12)
        assert lines == [encode_kitty(DATA, columns=10, rows=1, image_id=42)]

    def test_image_id_allocated_once(self) -> None:
        allocator = IdAllocator()
        image = make_image("kitty", allocator=allocator)
        assert image.get_image_id() is None
        image.render(20)
        image.invalidate()
        image.render(30)
        assert allocator.calls == 1
        assert image.get_image_id() == 42

    def test_explicit_image_id(self) -> None:
        allocator = IdAllocator()
        image = make_image("kitty", ImageOptions(image_id=5), allocator=allocator)
        assert "i=5" in image.render(20)[-1]
        assert allocator.calls == 0

    def test_max_width_option(self) -> None:
        image = make_image("kitty", ImageOptions(max_width_cells=5))
        assert "c=5," in image.render(80)[-1]

    def test_default_max_width(self) -> None:
        image = make_image("kitty")
        assert "c=60," in image.render(200)[-1]

    def test_tiny_width(self) -> None:
        image = make_image("kitty")
        assert "c=1," in image.render(1)[-1]


class TestITerm2:
    def test_sequence(self) -> None:
        image = make_image("iterm2", ImageOptions(filename="x.png"))
        lines = image.render(12)
        assert lines[-1].endswith(encode_iterm2(DATA, width="10ch", filename="x.png"))
        assert len(lines) == 2


class TestCaching:
    def test_same_width_returns_cached_lines(self) -> None:
        image = make_image("kitty")
        assert image.render(20) is image.render(20)

    def test_width_change_rerenders(self) -> None:
        image = make_image("kitty")
        first = image.render(20)
        assert image.render(30) is not first

    def test_invalidate_drops_cache(self) -> None:
        image = make_image(None)
        first = image.render(20)
        image.invalidate()
        second = image.render(20)
        assert second == first
        assert second is not first
