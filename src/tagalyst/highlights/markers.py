"""Overview ruler markers projected from rendered highlight spans."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tagalyst.dom.host import HostDocument
    from tagalyst.dom.identity import MessageRef
    from tagalyst.geometry import LayoutProvider, Rect
    from tagalyst.highlights.state import EngineState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverviewMarker:
    """One ruler tick for a rendered highlight."""

    position: float
    kind: Literal["highlight"] = "highlight"
    label: Literal["annotated"] | None = None


class RulerMetrics(Protocol):
    """Converts viewport rectangles into the ruler's scroll space."""

    def measure_scroll_space_center(self, rect: Rect | None) -> float | None:
        ...


@dataclass
class ScrollSpaceRuler:
    """Document-space centre: scroll offset plus the rect's viewport centre.

    Attributes:
        scroll_offset: Current scroll position of the transcript scroller.
        origin_offset: Viewport top of the scroller itself.
    """

    scroll_offset: float = 0.0
    origin_offset: float = 0.0

    def measure_scroll_space_center(self, rect: Rect | None) -> float | None:
        if rect is None:
            return None
        return self.scroll_offset + (rect.top - self.origin_offset) + rect.height / 2


class MarkerProjector:
    """Exposes highlight positions to the overview ruler."""

    def __init__(
        self,
        state: EngineState,
        layout: LayoutProvider,
        ruler: RulerMetrics,
        document: Callable[[], HostDocument],
        *,
        supported: bool = True,
    ) -> None:
        self.state = state
        self.layout = layout
        self.ruler = ruler
        self._document = document
        self.supported = supported

    def get_overview_markers(
        self, messages: Sequence[MessageRef], thread_key: str
    ) -> list[OverviewMarker]:
        """One marker per rendered span of each visible, expanded message."""
        if not self.supported or not messages:
            return []
        document = self._document()
        markers: list[OverviewMarker] = []
        for message in messages:
            element = message.element
            if not document.contains(element) or document.is_collapsed(element):
                continue
            key = message.storage_key(thread_key)
            rendered = [
                self.state.rendered[entry_id]
                for entry_id in self.state.ids_by_message.get(key, ())
                if entry_id in self.state.rendered
            ]
            rendered.sort(key=lambda item: (item.span.start_offset, item.entry_id))
            for item in rendered:
                rect = self.layout.bounding_rect(item.span)
                if rect is None:
                    continue
                center = self.ruler.measure_scroll_space_center(rect)
                if center is None or not math.isfinite(center):
                    continue
                markers.append(
                    OverviewMarker(
                        position=center,
                        label="annotated" if item.annotation else None,
                    )
                )
        return markers
