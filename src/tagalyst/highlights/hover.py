"""Hover loop: shows an annotation tooltip while the pointer rests on it.

The loop polls every frame instead of listening for enter/leave events,
because overlays are not elements and receive no pointer events of their
own. Hit-testing sits behind ``HitTester`` so the linear scan can be swapped
for a spatial index without changing what the user sees.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from tagalyst.config import TooltipConfig
from tagalyst.geometry import clamp

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tagalyst.geometry import LayoutProvider, Point, Rect
    from tagalyst.highlights.state import EngineState, RenderedHighlight
    from tagalyst.scheduler import FrameScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoverHit:
    """The annotated highlight under the pointer."""

    entry_id: str
    annotation: str
    rect: Rect


@dataclass
class Tooltip:
    """Observable state of the single hover tooltip."""

    visible: bool = False
    text: str = ""
    top: float = 0.0
    left: float = 0.0


class HitTester(Protocol):
    """Finds the annotated highlight under a point."""

    def hit_test(
        self, point: Point, candidates: Sequence[RenderedHighlight]
    ) -> HoverHit | None:
        """First candidate, in the given order, with a rect containing ``point``."""
        ...


class LinearHitTester:
    """Scan every annotated highlight and each of its line rectangles."""

    def __init__(self, layout: LayoutProvider) -> None:
        self.layout = layout

    def hit_test(
        self, point: Point, candidates: Sequence[RenderedHighlight]
    ) -> HoverHit | None:
        for item in candidates:
            if not item.annotation:
                continue
            for rect in self.layout.client_rects(item.span):
                if rect.empty:
                    continue
                if rect.contains(point):
                    return HoverHit(item.entry_id, item.annotation, rect)
        return None


class HoverLoop:
    """Per-frame hover evaluation, independent of the selection evaluator."""

    def __init__(
        self,
        state: EngineState,
        scheduler: FrameScheduler,
        hit_tester: HitTester,
        layout: LayoutProvider,
        config: TooltipConfig | None = None,
    ) -> None:
        self.state = state
        self.scheduler = scheduler
        self.hit_tester = hit_tester
        self.layout = layout
        self.config = config or TooltipConfig()
        self.tooltip = Tooltip()
        self.active = False
        self._handle: Any = None

    def start(self) -> None:
        if self.active:
            return
        self.active = True
        self._handle = self.scheduler.request_frame(self._step)

    def stop(self) -> None:
        self.active = False
        if self._handle is not None:
            self.scheduler.cancel_frame(self._handle)
            self._handle = None

    def _step(self) -> None:
        self._handle = None
        if not self.active:
            return
        self.evaluate()
        self._handle = self.scheduler.request_frame(self._step)

    def on_pointer_move(self, point: Point) -> None:
        self.state.pointer = point
        self.evaluate()

    def evaluate(self) -> HoverHit | None:
        """Show the tooltip for the highlight under the pointer, or hide it."""
        pointer = self.state.pointer
        candidates = self.state.annotated()
        if pointer is None or not candidates:
            self.hide()
            return None
        hit = self.hit_tester.hit_test(pointer, candidates)
        if hit is None:
            self.hide()
            return None
        self._show(hit, pointer)
        return hit

    def _show(self, hit: HoverHit, pointer: Point) -> None:
        viewport = self.layout.viewport()
        cfg = self.config
        top = viewport.scroll_y + pointer.y + cfg.margin
        if top + cfg.height + cfg.margin > viewport.scroll_y + viewport.height:
            top = viewport.scroll_y + pointer.y - cfg.height - cfg.margin
        left = clamp(
            viewport.scroll_x + pointer.x - cfg.width / 2,
            viewport.scroll_x + cfg.edge_margin,
            viewport.scroll_x + viewport.width - cfg.width - cfg.edge_margin,
        )
        self.tooltip.text = hit.annotation
        self.tooltip.top = top
        self.tooltip.left = left
        self.tooltip.visible = True
        self.state.hover_target_id = hit.entry_id

    def hide(self) -> None:
        self.tooltip.visible = False
        self.state.hover_target_id = None
