"""Span descriptors: renderable regions resolved from stored offsets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from selectolax.lexbor import LexborNode

    from tagalyst.dom.host import TextPosition
    from tagalyst.highlights.offsets import TextModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpanDescriptor:
    """A contiguous region of one container, handed to the overlay surface.

    Attributes:
        container: The message container the span lives in.
        start: Boundary point of the first highlighted character.
        end: Boundary point just past the last highlighted character.
        start_offset: Visible-text offset of ``start``.
        end_offset: Visible-text offset of ``end``.
    """

    container: LexborNode
    start: TextPosition
    end: TextPosition
    start_offset: int
    end_offset: int


def build_span(
    model: TextModel, container: LexborNode, start: int, end: int
) -> SpanDescriptor | None:
    """Resolve ``[start, end)`` against the live container.

    Returns None when the range is empty or either offset no longer maps
    into the container (the host text changed since the highlight was made).
    """
    if end <= start:
        return None
    start_pos = model.locate(container, start)
    end_pos = model.locate(container, end)
    if start_pos is None or end_pos is None:
        logger.debug("Offsets [%d, %d) no longer resolve in container", start, end)
        return None
    return SpanDescriptor(
        container=container,
        start=start_pos,
        end=end_pos,
        start_offset=start,
        end_offset=end,
    )
