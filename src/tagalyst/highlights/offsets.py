"""Offset codec: visible-text offsets <-> boundary points in a container.

Visible text is the concatenated character data of a container's text
nodes in document order, excluding every extension-owned subtree. Container
offsets count UTF-16 code units, the unit browsers use for stored highlight
offsets; text-node boundary offsets stay Python string indexes. Both
directions below are built on ``iter_text_nodes`` so they can never
disagree about what counts; a divergence would silently shift every stored
highlight.
"""

# Pattern: Functional Core (pure offset arithmetic over an immutable parse)

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from tagalyst.config import DomConfig
from tagalyst.dom.host import (
    TextPosition,
    is_text,
    iter_children,
    iter_text_nodes,
    node_path,
    text_of,
)

if TYPE_CHECKING:
    from selectolax.lexbor import LexborNode

    from tagalyst.dom.host import HostRange

logger = logging.getLogger(__name__)


def utf16_length(text: str) -> int:
    """Length of ``text`` in UTF-16 code units."""
    return len(text.encode("utf-16-le")) // 2


def utf16_to_index(text: str, units: int) -> int:
    """String index ``units`` UTF-16 code units into ``text``.

    A count landing inside a surrogate pair rounds up past that character.
    """
    count = 0
    for index, char in enumerate(text):
        if count >= units:
            return index
        count += 2 if ord(char) > 0xFFFF else 1
    return len(text)


def slice_utf16(text: str, start: int, end: int) -> str:
    """Substring between two UTF-16 offsets."""
    return text[utf16_to_index(text, start) : utf16_to_index(text, end)]


@dataclass(frozen=True)
class OffsetSpan:
    """A half-open ``[start, end)`` range of visible-text offsets."""

    start: int
    end: int


class TextModel(Protocol):
    """Visible-text measurement over some backing document model.

    Implementations must keep ``measure`` and ``locate`` consistent:
    ``measure(c, locate(c, n)) == n`` for every reachable offset ``n``.
    """

    def measure(self, container: LexborNode, boundary: TextPosition) -> int | None:
        """Visible UTF-16 units between the container start and ``boundary``.

        Returns None when the boundary is not inside the container.
        """
        ...

    def locate(self, container: LexborNode, offset: int) -> TextPosition | None:
        """Boundary point at visible-text ``offset``, or None if out of range."""
        ...

    def visible_text(self, container: LexborNode) -> str:
        """Full visible text of the container."""
        ...


class SelectolaxTextModel:
    """``TextModel`` over a selectolax host tree."""

    def __init__(self, dom: DomConfig | None = None) -> None:
        self.dom = dom or DomConfig()

    def visible_text(self, container: LexborNode) -> str:
        nodes = iter_text_nodes(container, self.dom)
        return "".join(text_of(node) for node, _ in nodes)

    def measure(self, container: LexborNode, boundary: TextPosition) -> int | None:
        path = node_path(container, boundary.node)
        if path is None:
            return None

        if is_text(boundary.node):
            boundary_path = path
            text = text_of(boundary.node)
            clamped = max(0, min(boundary.offset, len(text)))
            text_offset = utf16_length(text[:clamped])
        else:
            child_count = sum(1 for _ in iter_children(boundary.node))
            if boundary.offset < 0 or boundary.offset > child_count:
                return None
            # Everything inside the first ``offset`` children precedes the point
            boundary_path = (*path, boundary.offset)
            text_offset = 0

        total = 0
        for node, text_path in iter_text_nodes(container, self.dom):
            if text_path == boundary_path and is_text(boundary.node):
                return total + text_offset
            if text_path >= boundary_path:
                break
            total += utf16_length(text_of(node))
        return total

    def locate(self, container: LexborNode, offset: int) -> TextPosition | None:
        if offset < 0:
            return None
        remaining = offset
        last_text: LexborNode | None = None
        for node, _ in iter_text_nodes(container, self.dom):
            last_text = node
            text = text_of(node)
            length = utf16_length(text)
            if remaining <= length:
                return TextPosition(node, utf16_to_index(text, remaining))
            remaining -= length
        if remaining == 0 and last_text is not None:
            return TextPosition(last_text, len(text_of(last_text)))
        return None


def compute_offsets(
    model: TextModel, container: LexborNode, selection: HostRange
) -> OffsetSpan | None:
    """Forward mapping of a selection to visible-text offsets.

    Returns None when either boundary lies outside the container or the
    mapped range is empty or inverted.
    """
    start = model.measure(container, selection.start)
    end = model.measure(container, selection.end)
    if start is None or end is None:
        logger.debug("Selection boundary outside container, cannot map offsets")
        return None
    if end <= start:
        return None
    return OffsetSpan(start, end)
