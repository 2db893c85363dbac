"""Tests for the annotation hover loop and tooltip placement."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tagalyst.geometry import Point, Rect
from tagalyst.highlights.hover import LinearHitTester

if TYPE_CHECKING:
    from selectolax.lexbor import LexborNode

    from tagalyst.highlights.controller import HighlightController
    from tagalyst.scheduler import ManualFrameScheduler
    from tests.conftest import FakeLayout

NOTED = [{"id": "a", "start": 4, "end": 9, "annotation": "fast"}]


class TestPointerMove:
    """Tooltip driven by pointer movement."""

    def test_shows_inside_and_hides_outside(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(10, 10, 50, 30))
        controller.apply_highlights(m1, NOTED)

        controller.handle_pointer_move(20, 20)
        assert controller.tooltip.visible
        assert controller.tooltip.text == "fast"
        assert controller.state.hover_target_id == "a"

        controller.handle_pointer_move(100, 100)
        assert not controller.tooltip.visible
        assert controller.state.hover_target_id is None

    def test_unannotated_highlight_has_no_tooltip(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(10, 10, 50, 30))
        controller.apply_highlights(m1, [{"id": "a", "start": 4, "end": 9}])
        controller.handle_pointer_move(20, 20)
        assert not controller.tooltip.visible

    def test_wrapped_span_hits_second_line(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(300, 10, 400, 30), Rect(0, 30, 40, 50))
        controller.apply_highlights(m1, NOTED)
        controller.handle_pointer_move(20, 40)
        assert controller.tooltip.visible

    def test_empty_rects_ignored(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(10, 10, 10, 30))
        controller.apply_highlights(m1, NOTED)
        controller.handle_pointer_move(10, 20)
        assert not controller.tooltip.visible

    def test_first_in_registration_order_wins(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(0, 9, Rect(0, 0, 100, 40))
        layout.set_rects(4, 15, Rect(0, 0, 100, 40))
        controller.apply_highlights(
            m1,
            [
                {"id": "later", "start": 4, "end": 15, "annotation": "second"},
                {"id": "earlier", "start": 0, "end": 9, "annotation": "first"},
            ],
        )
        controller.handle_pointer_move(20, 20)
        assert controller.tooltip.text == "first"


class TestTooltipPosition:
    """Tooltip placement around the pointer."""

    def test_below_pointer_clamped_left(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(10, 10, 50, 30))
        controller.apply_highlights(m1, NOTED)
        controller.handle_pointer_move(20, 20)
        assert (controller.tooltip.left, controller.tooltip.top) == (8, 34)

    def test_flips_above_near_bottom(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(500, 770, 700, 790))
        controller.apply_highlights(m1, NOTED)
        controller.handle_pointer_move(600, 780)
        assert controller.tooltip.top == 780 - 32 - 14
        assert controller.tooltip.left == 600 - 110


class TestFrameLoop:
    """Polling every frame while the controller is initialised."""

    def test_frame_reevaluates_pointer(
        self,
        controller: HighlightController,
        layout: FakeLayout,
        scheduler: ManualFrameScheduler,
        m1: LexborNode,
    ) -> None:
        """Layout changes under a resting pointer are picked up next frame."""
        controller.apply_highlights(m1, NOTED)
        controller.handle_pointer_move(20, 20)
        assert not controller.tooltip.visible

        layout.set_rects(4, 9, Rect(10, 10, 50, 30))
        scheduler.run_frame()
        assert controller.tooltip.visible
        assert scheduler.pending == 1

    def test_shutdown_stops_loop(
        self, controller: HighlightController, scheduler: ManualFrameScheduler
    ) -> None:
        assert scheduler.pending == 1
        controller.shutdown()
        assert scheduler.pending == 0
        assert not controller.hover.active


class TestLinearHitTester:
    """Hit-testing without a controller."""

    def test_skips_unannotated_candidates(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(10, 10, 50, 30))
        controller.apply_highlights(m1, [{"id": "a", "start": 4, "end": 9}])
        candidates = list(controller.state.rendered.values())
        assert LinearHitTester(layout).hit_test(Point(20, 20), candidates) is None

    def test_edges_are_inclusive(
        self, controller: HighlightController, layout: FakeLayout, m1: LexborNode
    ) -> None:
        layout.set_rects(4, 9, Rect(10, 10, 50, 30))
        controller.apply_highlights(m1, NOTED)
        hit = LinearHitTester(layout).hit_test(
            Point(50, 30), controller.state.annotated()
        )
        assert hit is not None
        assert hit.entry_id == "a"
        assert hit.rect == Rect(10, 10, 50, 30)
