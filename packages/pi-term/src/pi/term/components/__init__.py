"""TUI components."""

from pi.term.components.image import Image, ImageOptions, ImageTheme

__all__ = [
    "Image",
    "ImageOptions",
    "ImageTheme",
]
