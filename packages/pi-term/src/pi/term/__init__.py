"""pi-term: terminal rendering and input-protocol engine."""

# Components (re-exported from components package)
from pi.term.components import Image, ImageOptions, ImageTheme

# Settings
from pi.term.config import TUISettings

# Keyboard input handling
from pi.term.keys import (
    Key,
    KeyboardProtocol,
    KeyEventType,
    KeyId,
    canonicalize_key_id,
    is_key_release,
    is_key_repeat,
    matches_key,
    parse_key,
)

# Overlay layout
from pi.term.overlay import (
    OverlayAnchor,
    OverlayLayout,
    OverlayMargin,
    OverlayOptions,
    SizeValue,
    resolve_overlay_layout,
)

# Frame differencing
from pi.term.render_buffer import (
    DifferentialPlan,
    FullRedrawPlan,
    NoOpPlan,
    RenderBuffer,
    RenderEdit,
    RenderPlan,
    RenderStep,
)

# Render scheduling
from pi.term.scheduler import (
    AsyncioRenderScheduler,
    ImmediateRenderScheduler,
    ManualRenderScheduler,
    RenderScheduler,
)

# Input buffering
from pi.term.stdin_buffer import StdinBuffer

# Terminal interface and implementations
from pi.term.terminal import AnsiTerminal, Terminal

# Terminal image support
from pi.term.terminal_image import (
    CellDimensions,
    ImageDimensions,
    ImageProtocol,
    TerminalCapabilities,
    allocate_image_id,
    calculate_image_rows,
    detect_capabilities,
    encode_iterm2,
    encode_kitty,
    get_capabilities,
    get_cell_dimensions,
    get_image_dimensions,
    image_fallback,
    is_image_line,
    reset_capabilities_cache,
    set_cell_dimensions,
)

# Core TUI
from pi.term.tui import (
    CURSOR_MARKER,
    TUI,
    Component,
    Container,
    CursorPosition,
    Focusable,
    extract_cursor_position,
    is_focusable,
)

# Text utilities
from pi.term.utils import (
    AnsiCodeTracker,
    ensure_line_reset,
    sanitize_line,
    truncate_to_visible_width,
    visible_width,
)

__all__ = [
    # Components
    "Image",
    "ImageOptions",
    "ImageTheme",
    # Settings
    "TUISettings",
    # Keys
    "Key",
    "KeyboardProtocol",
    "KeyEventType",
    "KeyId",
    "canonicalize_key_id",
    "is_key_release",
    "is_key_repeat",
    "matches_key",
    "parse_key",
    # Overlay
    "OverlayAnchor",
    "OverlayLayout",
    "OverlayMargin",
    "OverlayOptions",
    "SizeValue",
    "resolve_overlay_layout",
    # Render buffer
    "DifferentialPlan",
    "FullRedrawPlan",
    "NoOpPlan",
    "RenderBuffer",
    "RenderEdit",
    "RenderPlan",
    "RenderStep",
    # Schedulers
    "AsyncioRenderScheduler",
    "ImmediateRenderScheduler",
    "ManualRenderScheduler",
    "RenderScheduler",
    # Input
    "StdinBuffer",
    # Terminal
    "AnsiTerminal",
    "Terminal",
    # Images
    "CellDimensions",
    "ImageDimensions",
    "ImageProtocol",
    "TerminalCapabilities",
    "allocate_image_id",
    "calculate_image_rows",
    "detect_capabilities",
    "encode_iterm2",
    "encode_kitty",
    "get_capabilities",
    "get_cell_dimensions",
    "get_image_dimensions",
    "image_fallback",
    "is_image_line",
    "reset_capabilities_cache",
    "set_cell_dimensions",
    # Core
    "CURSOR_MARKER",
    "TUI",
    "Component",
    "Container",
    "CursorPosition",
    "Focusable",
    "extract_cursor_position",
    "is_focusable",
    # Utils
    "AnsiCodeTracker",
    "ensure_line_reset",
    "sanitize_line",
    "truncate_to_visible_width",
    "visible_width",
]
