"""Viewport geometry shared by the menu, tooltip and marker code.

The host model has no layout engine; rectangles are supplied by a
``LayoutProvider`` (the browser bridge in production, fixed tables in
tests).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from tagalyst.dom.host import HostRange
    from tagalyst.highlights.spans import SpanDescriptor


@dataclass(frozen=True)
class Point:
    """Pointer position in viewport coordinates."""

    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in viewport coordinates."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, point: Point) -> bool:
        """Edge-inclusive containment test."""
        return (
            self.left <= point.x <= self.right and self.top <= point.y <= self.bottom
        )


@dataclass(frozen=True)
class Viewport:
    """Visible viewport size and document scroll offsets."""

    width: float = 1280.0
    height: float = 800.0
    scroll_x: float = 0.0
    scroll_y: float = 0.0


class LayoutProvider(Protocol):
    """Source of rendered rectangles for spans and selections."""

    def client_rects(self, span: SpanDescriptor) -> list[Rect]:
        """Every line box of the span (wrapped spans have several)."""
        ...

    def bounding_rect(self, span: SpanDescriptor) -> Rect | None:
        """Bounding box of the whole span, or None when not rendered."""
        ...

    def range_rect(self, selection: HostRange) -> Rect | None:
        """Bounding box of a user selection."""
        ...

    def viewport(self) -> Viewport:
        """Current viewport size and scroll offsets."""
        ...


def clamp(value: float, low: float, high: float) -> float:
    """``max(low, min(high, value))``; ``low`` wins when the bounds cross."""
    return max(low, min(high, value))
