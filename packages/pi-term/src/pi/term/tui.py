"""Core TUI compositor with differential rendering.

Provides the ``Component`` and ``Focusable`` protocols, a ``Container`` for
composing child components, and the ``TUI`` class that renders the component
tree, composites overlays, diffs frames through a
:class:`~pi.term.render_buffer.RenderBuffer` and writes the result to a
:class:`~pi.term.terminal.Terminal`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypedDict, runtime_checkable

from pi.term.cells import Cell, flatten_cells, split_cells, stamp_cells
from pi.term.config import TUISettings
from pi.term.keys import is_key_release
from pi.term.overlay import OverlayOptions, resolve_overlay_layout
from pi.term.render_buffer import (
    FullRedrawPlan,
    NoOpPlan,
    RenderBuffer,
    RenderPlan,
)
from pi.term.scheduler import AsyncioRenderScheduler, RenderScheduler
from pi.term.utils import sanitize_line, visible_width

if TYPE_CHECKING:
    from pi.term.terminal import Terminal

logger = logging.getLogger(__name__)

__all__ = [
    "Component",
    "Focusable",
    "is_focusable",
    "CURSOR_MARKER",
    "CursorPosition",
    "extract_cursor_position",
    "Container",
    "TUI",
]

# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class Component(Protocol):
    """A renderable terminal component.

    ``handle_input`` and ``wants_key_release`` are optional and looked up
    with ``getattr`` at the call site.
    """

    def render(self, width: int) -> list[str]:
        """Render the component into a list of terminal lines."""
        ...

    def invalidate(self) -> None:
        """Drop any cached rendering."""
        ...


@runtime_checkable
class Focusable(Protocol):
    """A component that can receive focus."""

    focused: bool


def is_focusable(component: object | None) -> bool:
    return component is not None and hasattr(component, "focused")


# ---------------------------------------------------------------------------
# Cursor marker
# ---------------------------------------------------------------------------

# Zero-width APC sequence components embed where the text cursor belongs.
CURSOR_MARKER = "\x1b_pi:c\x07"


@dataclass(frozen=True)
class CursorPosition:
    row: int
    col: int


def extract_cursor_position(
    lines: list[str],
) -> tuple[list[str], CursorPosition | None]:
    """Strip cursor markers from *lines* and locate the bottom-most one.

    The column is the visible width of the text before the marker.
    """
    cleaned = list(lines)
    cursor: CursorPosition | None = None
    for row in range(len(cleaned) - 1, -1, -1):
        line = cleaned[row]
        idx = line.find(CURSOR_MARKER)
        if idx == -1:
            continue
        if cursor is None:
            cursor = CursorPosition(row, visible_width(line[:idx]))
        cleaned[row] = line.replace(CURSOR_MARKER, "")
    return cleaned, cursor


# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------


class Container:
    """Renders its children one after another."""

    def __init__(self) -> None:
        self.children: list[Component] = []

    def add_child(self, component: Component) -> None:
        self.children.append(component)

    def remove_child(self, component: Component) -> None:
        """Remove *component* (no-op if absent)."""
        if component in self.children:
            self.children.remove(component)

    def clear(self) -> None:
        self.children.clear()

    def invalidate(self) -> None:
        for child in self.children:
            child.invalidate()

    def render(self, width: int) -> list[str]:
        lines: list[str] = []
        for child in self.children:
            lines.extend(child.render(width))
        return lines


# ---------------------------------------------------------------------------
# TUI
# ---------------------------------------------------------------------------


class _OverlayEntry(TypedDict):
    component: Component
    options: OverlayOptions | None
    pre_focus: Component | None


class TUI(Container):
    """Main TUI controller: rendering, overlays, input, cursor.

    Renders are never run inline. :meth:`request_render` hands a task to the
    scheduler; repeated requests before it runs collapse into one. Every
    :meth:`start`/:meth:`stop` bumps a generation counter, and a task whose
    generation is out of date is dropped when it finally runs.
    """

    def __init__(
        self,
        terminal: Terminal,
        scheduler: RenderScheduler | None = None,
        *,
        show_hardware_cursor: bool | None = None,
        clear_on_shrink: bool | None = None,
        settings: TUISettings | None = None,
    ) -> None:
        super().__init__()

        settings = settings or TUISettings.from_env()

        self.terminal: Terminal = terminal
        self._scheduler: RenderScheduler = scheduler or AsyncioRenderScheduler()
        self._buffer = RenderBuffer()

        self._show_hardware_cursor: bool = (
            show_hardware_cursor
            if show_hardware_cursor is not None
            else settings.show_hardware_cursor
        )
        self._clear_on_shrink: bool = (
            clear_on_shrink if clear_on_shrink is not None else settings.clear_on_shrink
        )

        self._running: bool = False
        self._generation: int = 0
        self._render_requested: bool = False

        self._focused_component: Component | None = None
        self._overlay_stack: list[_OverlayEntry] = []

        self._cursor: CursorPosition | None = None
        self._cursor_synced: bool = False

        self._full_redraw_count: int = 0

    # ------------------------------------------------------------------
    # Properties / accessors
    # ------------------------------------------------------------------

    @property
    def full_redraws(self) -> int:
        """Number of full (non-differential) redraws performed."""
        return self._full_redraw_count

    @property
    def running(self) -> bool:
        return self._running

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def cursor_position(self) -> CursorPosition | None:
        """Cursor position resolved by the last render."""
        return self._cursor

    def get_show_hardware_cursor(self) -> bool:
        return self._show_hardware_cursor

    def set_show_hardware_cursor(self, value: bool) -> None:
        if value == self._show_hardware_cursor:
            return
        self._show_hardware_cursor = value
        self._cursor_synced = False
        if self._running:
            if not value:
                self.terminal.hide_cursor()
            self.request_render()

    def get_clear_on_shrink(self) -> bool:
        return self._clear_on_shrink

    def set_clear_on_shrink(self, value: bool) -> None:
        self._clear_on_shrink = value

    # ------------------------------------------------------------------
    # Focus
    # ------------------------------------------------------------------

    def set_focus(self, component: Component | None) -> None:
        """Set the focused component, unfocusing the previous one."""
        if self._focused_component is component:
            return
        previous = self._focused_component
        if is_focusable(previous):
            previous.focused = False  # type: ignore[union-attr]
        self._focused_component = component
        if is_focusable(component):
            component.focused = True  # type: ignore[union-attr]

    # ------------------------------------------------------------------
    # Overlays
    # ------------------------------------------------------------------

    def show_overlay(
        self, component: Component, options: OverlayOptions | None = None
    ) -> None:
        """Push an overlay on top of the stack and give it focus."""
        self._overlay_stack.append(
            {
                "component": component,
                "options": options,
                "pre_focus": self._focused_component,
            }
        )
        self.set_focus(component)
        self.request_render()

    def hide_overlay(self) -> bool:
        """Pop the most recently shown overlay.

        Returns False if there was nothing to hide.
        """
        if not self._overlay_stack:
            return False
        entry = self._overlay_stack.pop()
        if self._focused_component is entry["component"]:
            if self._overlay_stack:
                self.set_focus(self._overlay_stack[-1]["component"])
            else:
                self.set_focus(entry["pre_focus"])
        self.request_render()
        return True

    def has_overlay(self) -> bool:
        return bool(self._overlay_stack)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Attach to the terminal and schedule the first frame."""
        if self._running:
            return
        self._generation += 1
        self._running = True
        self._cursor_synced = False
        self.terminal.start(self.handle_input, self._on_resize)
        self.terminal.hide_cursor()
        self.request_render()

    def stop(self) -> None:
        """Detach from the terminal; pending renders become stale."""
        if not self._running:
            return
        self._running = False
        self._render_requested = False
        self._generation += 1
        self.terminal.show_cursor()
        self.terminal.stop()
        self._buffer.reset()
        self._cursor = None

    def invalidate(self) -> None:
        """Drop cached rendering in every child and schedule a frame."""
        super().invalidate()
        self.request_render()

    def _on_resize(self) -> None:
        self.request_render()

    # ------------------------------------------------------------------
    # Render scheduling
    # ------------------------------------------------------------------

    def request_render(self, force: bool = False) -> None:
        """Schedule a render; with *force* the next frame is a full redraw."""
        if force:
            self._buffer.reset()
        if not self._running or self._render_requested:
            return
        self._render_requested = True
        generation = self._generation
        self._scheduler.schedule(lambda: self._run_render_task(generation))

    def _run_render_task(self, generation: int) -> None:
        if generation != self._generation or not self._running:
            logger.debug(
                "dropping stale render task (generation %d, current %d)",
                generation,
                self._generation,
            )
            return
        self._render_requested = False
        self.do_render()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def handle_input(self, data: str) -> None:
        """Forward input to the topmost overlay, else the focused component.

        Key-release events only reach components that set
        ``wants_key_release``.
        """
        if not self._running:
            return

        if self._overlay_stack:
            target: Component | None = self._overlay_stack[-1]["component"]
        else:
            target = self._focused_component
        if target is None:
            return

        if is_key_release(data) and not getattr(target, "wants_key_release", False):
            return

        handler = getattr(target, "handle_input", None)
        if callable(handler):
            handler(data)

    # ------------------------------------------------------------------
    # Overlay compositing
    # ------------------------------------------------------------------

    def _composite_overlays(
        self, viewport: list[str], width: int, height: int
    ) -> tuple[list[str], CursorPosition | None]:
        """Stamp every visible overlay onto *viewport*, bottom of stack first.

        Returns the new rows and the cursor found inside an overlay, if any.
        Rows no overlay touches are passed through unchanged.
        """
        grid: dict[int, list[Cell]] = {}
        cursor: CursorPosition | None = None

        for entry in self._overlay_stack:
            options = entry["options"] or {}
            visible = options.get("visible")
            if visible is not None and not visible(width, height):
                continue

            component = entry["component"]
            provisional = resolve_overlay_layout(options, 0, width, height)
            overlay_lines = component.render(provisional.width)

            layout = resolve_overlay_layout(options, len(overlay_lines), width, height)
            if layout.max_height is not None:
                overlay_lines = overlay_lines[: layout.max_height]

            for offset, line in enumerate(overlay_lines):
                row = layout.row + offset
                if row >= height:
                    break

                marker = line.find(CURSOR_MARKER)
                if marker != -1:
                    col = layout.col + min(visible_width(line[:marker]), layout.width)
                    cursor = CursorPosition(row, min(col, max(0, width - 1)))
                    line = line.replace(CURSOR_MARKER, "")

                cells = grid.get(row)
                if cells is None:
                    base = viewport[row] if row < len(viewport) else ""
                    cells = grid[row] = split_cells(base, width)
                stamp_cells(cells, split_cells(line, layout.width), layout.col)

        if not grid:
            return viewport, cursor

        result = list(viewport)
        result.extend([""] * (max(grid) + 1 - len(result)))
        for row, cells in grid.items():
            result[row] = flatten_cells(cells)
        while len(result) > len(viewport) and result[-1] == "":
            result.pop()
        return result, cursor

    # ------------------------------------------------------------------
    # Main render
    # ------------------------------------------------------------------

    def do_render(self) -> None:
        """Render one frame and write whatever changed.

        1.  Render the children at the terminal width.
        2.  Pull out the cursor marker and sanitize every line.
        3.  Keep the last ``rows`` lines (the view follows the bottom).
        4.  Composite overlays.
        5.  Diff against the previous frame and apply the plan inside a
            synchronized-output bracket.
        6.  Place the hardware cursor, if enabled.
        """
        if not self._running:
            return

        width = self.terminal.columns
        height = self.terminal.rows

        lines, cursor = extract_cursor_position(self.render(width))
        lines = [sanitize_line(line, width) for line in lines]

        top = max(0, len(lines) - height)
        viewport = lines[top:]
        if cursor is not None:
            if cursor.row >= top:
                col = min(cursor.col, max(0, width - 1))
                cursor = CursorPosition(cursor.row - top, col)
            else:
                cursor = None

        if self._overlay_stack:
            viewport, overlay_cursor = self._composite_overlays(viewport, width, height)
            if overlay_cursor is not None:
                cursor = overlay_cursor

        step = self._buffer.make_step(width, viewport, self._clear_on_shrink)
        if step.is_full_redraw:
            self._full_redraw_count += 1

        written = self._apply_plan(step.plan, height)
        self._position_hardware_cursor(cursor, written)

    def _apply_plan(self, plan: RenderPlan, rows: int) -> bool:
        """Write *plan* to the terminal; returns False for a no-op plan."""
        if isinstance(plan, NoOpPlan):
            return False

        terminal = self.terminal
        terminal.begin_synchronized_output()
        if isinstance(plan, FullRedrawPlan):
            logger.debug(
                "full redraw: %d lines, clear=%s", len(plan.lines), plan.clear_screen
            )
            if plan.clear_screen:
                terminal.clear_screen()
            for row in range(rows):
                if row < len(plan.lines):
                    terminal.write_line(row, plan.lines[row])
                else:
                    terminal.clear_line(row)
        else:
            for edit in plan.edits:
                terminal.write_line(edit.row, edit.content)
            for row in plan.cleared_rows:
                terminal.clear_line(row)
        terminal.end_synchronized_output()
        return True

    def _position_hardware_cursor(
        self, cursor: CursorPosition | None, frame_written: bool
    ) -> None:
        changed = cursor != self._cursor
        self._cursor = cursor
        if not self._show_hardware_cursor:
            return
        if self._cursor_synced and not frame_written and not changed:
            return
        self._cursor_synced = True
        if cursor is None:
            self.terminal.hide_cursor()
        else:
            self.terminal.set_cursor_position(cursor.row, cursor.col)
            self.terminal.show_cursor()
