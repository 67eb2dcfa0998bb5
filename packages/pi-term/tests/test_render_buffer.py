"""Tests for pi.term.render_buffer.RenderBuffer frame differencing."""

from __future__ import annotations

from pi.term.render_buffer import (
    DifferentialPlan,
    FullRedrawPlan,
    NoOpPlan,
    RenderBuffer,
    RenderEdit,
)


class TestFirstFrame:
    def test_first_frame_is_full_redraw_without_clear(self) -> None:
        step = RenderBuffer().make_step(10, ["a", "b"])
        assert step.plan == FullRedrawPlan(clear_screen=False, lines=["a", "b"])
        assert step.is_full_redraw

    def test_lines_clamped_to_width(self) -> None:
        step = RenderBuffer().make_step(3, ["abcdef", "\x1b[1mxyzw"])
        assert step.plan == FullRedrawPlan(
            clear_screen=False, lines=["abc", "\x1b[1mxyz"]
        )

    def test_zero_width_clamps_to_one_column(self) -> None:
        step = RenderBuffer().make_step(0, ["abc"])
        assert step.plan == FullRedrawPlan(clear_screen=False, lines=["a"])

    def test_reset_forces_full_redraw(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a"])
        buf.reset()
        step = buf.make_step(10, ["a"])
        assert step.plan == FullRedrawPlan(clear_screen=False, lines=["a"])


class TestDifferential:
    def test_identical_frame_is_noop(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b"])
        step = buf.make_step(10, ["a", "b"])
        assert step.plan == NoOpPlan()
        assert not step.is_full_redraw

    def test_single_changed_row(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["0", "1", "2", "3", "4"])
        step = buf.make_step(10, ["0", "1", "X", "3", "4"])
        assert step.plan == DifferentialPlan(edits=[RenderEdit(2, "X")])

    def test_growth_appends_rows(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b"])
        step = buf.make_step(10, ["a", "b", "c"])
        assert step.plan == DifferentialPlan(edits=[RenderEdit(2, "c")])

    def test_shrink_clears_rows(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b", "c"])
        step = buf.make_step(10, ["a"])
        assert step.plan == DifferentialPlan(edits=[], cleared_rows=[1, 2])

    def test_change_and_shrink(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b", "c"])
        step = buf.make_step(10, ["z", "b"])
        assert step.plan == DifferentialPlan(
            edits=[RenderEdit(0, "z")], cleared_rows=[2]
        )

    def test_comparison_uses_clamped_lines(self) -> None:
        buf = RenderBuffer()
        buf.make_step(3, ["abcX"])
        step = buf.make_step(3, ["abcY"])
        assert step.plan == NoOpPlan()

    def test_content_after_empty_frame_is_full_redraw(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b", "c"])
        cleared = buf.make_step(10, [])
        assert cleared.plan == DifferentialPlan(edits=[], cleared_rows=[0, 1, 2])
        step = buf.make_step(10, ["x"])
        assert step.plan == FullRedrawPlan(clear_screen=False, lines=["x"])


class TestClearingRedraws:
    def test_width_change_clears(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a"])
        step = buf.make_step(20, ["a"])
        assert step.plan == FullRedrawPlan(clear_screen=True, lines=["a"])

    def test_width_change_from_empty_frame_clears(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, [])
        step = buf.make_step(12, ["a"])
        assert step.plan == FullRedrawPlan(clear_screen=True, lines=["a"])

    def test_resize_after_zero_width_frame_clears(self) -> None:
        buf = RenderBuffer()
        buf.make_step(0, ["a"])
        step = buf.make_step(10, ["a"])
        assert step.plan == FullRedrawPlan(clear_screen=True, lines=["a"])

    def test_shrink_with_clear_on_shrink(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b", "c"], clear_on_shrink=True)
        step = buf.make_step(10, ["a"], clear_on_shrink=True)
        assert step.plan == FullRedrawPlan(clear_screen=True, lines=["a"])

    def test_max_lines_resets_after_clear(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b", "c"], clear_on_shrink=True)
        buf.make_step(10, ["a"], clear_on_shrink=True)
        assert buf.max_lines_rendered == 1
        step = buf.make_step(10, ["a"], clear_on_shrink=True)
        assert step.plan == NoOpPlan()

    def test_max_lines_tracks_tallest_frame(self) -> None:
        buf = RenderBuffer()
        buf.make_step(10, ["a", "b", "c"])
        buf.make_step(10, ["a"])
        assert buf.max_lines_rendered == 3
