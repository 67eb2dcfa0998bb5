"""Frame differencing: decide what to write for the next frame.

:class:`RenderBuffer` remembers the last frame that was handed to the
terminal and turns each new frame into a :class:`RenderStep`, whose plan is
one of :class:`NoOpPlan`, :class:`FullRedrawPlan` or
:class:`DifferentialPlan`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from pi.term.utils import truncate_to_visible_width


@dataclass
class RenderEdit:
    row: int
    content: str


@dataclass
class NoOpPlan:
    pass


@dataclass
class FullRedrawPlan:
    clear_screen: bool
    lines: list[str]


@dataclass
class DifferentialPlan:
    edits: list[RenderEdit] = field(default_factory=list)
    cleared_rows: list[int] = field(default_factory=list)


RenderPlan = Union[NoOpPlan, FullRedrawPlan, DifferentialPlan]


@dataclass
class RenderStep:
    plan: RenderPlan

    @property
    def is_full_redraw(self) -> bool:
        return isinstance(self.plan, FullRedrawPlan)


class RenderBuffer:
    """Previous-frame state plus the diffing rules."""

    def __init__(self) -> None:
        self.previous_lines: list[str] = []
        self.previous_width: int = 0
        self.max_lines_rendered: int = 0

    def reset(self) -> None:
        self.previous_lines = []
        self.previous_width = 0
        self.max_lines_rendered = 0

    def make_step(
        self, width: int, new_lines: list[str], clear_on_shrink: bool = False
    ) -> RenderStep:
        limit = max(1, width)
        lines = [truncate_to_visible_width(line, limit) for line in new_lines]

        width_changed = self.previous_width != 0 and self.previous_width != limit
        shrunk = clear_on_shrink and len(lines) < self.max_lines_rendered

        plan: RenderPlan
        if not self.previous_lines and not width_changed:
            plan = FullRedrawPlan(clear_screen=False, lines=lines)
            self.max_lines_rendered = max(self.max_lines_rendered, len(lines))
        elif width_changed or shrunk:
            plan = FullRedrawPlan(clear_screen=True, lines=lines)
            # The screen was wiped, so nothing taller is left behind.
            self.max_lines_rendered = len(lines)
        else:
            plan = self._diff(lines)
            self.max_lines_rendered = max(self.max_lines_rendered, len(lines))

        self.previous_lines = lines
        self.previous_width = limit
        return RenderStep(plan)

    def _diff(self, lines: list[str]) -> RenderPlan:
        previous = self.previous_lines
        edits = [
            RenderEdit(row, line)
            for row, line in enumerate(lines)
            if row >= len(previous) or previous[row] != line
        ]
        cleared = list(range(len(lines), len(previous)))
        if not edits and not cleared:
            return NoOpPlan()
        return DifferentialPlan(edits=edits, cleared_rows=cleared)
