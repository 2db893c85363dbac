"""Headless model of the host transcript page.

The host page owns its markup and regenerates it freely. This module wraps a
selectolax tree and answers the structural questions the highlight engine
asks: which message container a node belongs to, whether a node sits inside
extension-owned UI, and whether an element is still attached to the current
render of the page.

Node wrappers returned by selectolax are recreated on every traversal, so
identity is always compared through ``mem_id``.
"""

# Pattern: Functional Core (pure tree queries; HostDocument only holds the parse)

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from selectolax.lexbor import LexborHTMLParser, LexborNode

from tagalyst.config import DomConfig

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

# selectolax uses "-text" as the tag of text nodes
TEXT_TAG = "-text"

# Non-element node tags start with one of these (text, comment, document)
_NON_ELEMENT_PREFIXES = ("-", "_", "#", "!")


@dataclass(frozen=True)
class TextPosition:
    """A boundary point inside the host tree.

    For a text node ``offset`` counts characters into its text. For an
    element it is a child index: the boundary sits before that child, or
    after the last child when ``offset`` equals the child count.
    """

    node: LexborNode
    offset: int


@dataclass(frozen=True)
class HostRange:
    """A user selection expressed as two boundary points."""

    start: TextPosition
    end: TextPosition

    @property
    def collapsed(self) -> bool:
        return (
            same_node(self.start.node, self.end.node)
            and self.start.offset == self.end.offset
        )


def is_text(node: LexborNode) -> bool:
    """Return True for text nodes."""
    return node.tag == TEXT_TAG


def is_element(node: LexborNode) -> bool:
    """Return True for element nodes (not text, comment or document)."""
    tag = node.tag
    return bool(tag) and not tag.startswith(_NON_ELEMENT_PREFIXES)


def same_node(a: LexborNode | None, b: LexborNode | None) -> bool:
    """Compare two wrappers by the underlying node they point at."""
    if a is None or b is None:
        return False
    return a.mem_id == b.mem_id


def text_of(node: LexborNode) -> str:
    """Raw character data of a text node (empty for anything else)."""
    if not is_text(node):
        return ""
    return node.text_content or ""


def iter_children(node: LexborNode) -> Iterator[LexborNode]:
    """Yield direct children, text nodes included."""
    child = node.child
    while child is not None:
        yield child
        child = child.next


def iter_ancestors(node: LexborNode) -> Iterator[LexborNode]:
    """Yield the parent chain of ``node``, nearest first."""
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


def child_index(node: LexborNode) -> int:
    """Position of ``node`` among all of its parent's children."""
    index = 0
    sibling = node.prev
    while sibling is not None:
        index += 1
        sibling = sibling.prev
    return index


def contains(ancestor: LexborNode, node: LexborNode) -> bool:
    """Return True when ``node`` is ``ancestor`` or one of its descendants."""
    if same_node(ancestor, node):
        return True
    return any(same_node(parent, ancestor) for parent in iter_ancestors(node))


def node_path(container: LexborNode, node: LexborNode) -> tuple[int, ...] | None:
    """Child-index path from ``container`` down to ``node``.

    Paths compare lexicographically in document order. Returns None when
    ``node`` is not inside ``container``.
    """
    path: list[int] = []
    current = node
    while not same_node(current, container):
        parent = current.parent
        if parent is None:
            return None
        path.append(child_index(current))
        current = parent
    path.reverse()
    return tuple(path)


def has_class(node: LexborNode, class_name: str) -> bool:
    """Return True when the element's class list contains ``class_name``."""
    if not is_element(node):
        return False
    classes = node.attributes.get("class") or ""
    return class_name in classes.split()


def is_owned_element(node: LexborNode, dom: DomConfig) -> bool:
    """Return True when ``node`` itself is the root of extension-owned UI."""
    if not is_element(node):
        return False
    return dom.ext_attr in node.attributes or has_class(node, dom.toolbar_class)


def closest_owned(node: LexborNode, dom: DomConfig) -> LexborNode | None:
    """Nearest extension-owned element at or above ``node``."""
    if is_owned_element(node, dom):
        return node
    for parent in iter_ancestors(node):
        if is_owned_element(parent, dom):
            return parent
    return None


def iter_text_nodes(
    container: LexborNode, dom: DomConfig, *, skip_owned: bool = True
) -> Iterator[tuple[LexborNode, tuple[int, ...]]]:
    """Yield ``(text_node, path)`` pairs under ``container`` in document order.

    With ``skip_owned`` the walk does not descend into extension-owned
    subtrees. This walker is the single definition of visible text; both
    offset directions are built on it.
    """

    def _walk(
        node: LexborNode, path: tuple[int, ...]
    ) -> Iterator[tuple[LexborNode, tuple[int, ...]]]:
        for index, child in enumerate(iter_children(node)):
            child_path = (*path, index)
            if is_text(child):
                yield child, child_path
            elif is_element(child):
                if skip_owned and is_owned_element(child, dom):
                    continue
                yield from _walk(child, child_path)

    yield from _walk(container, ())


def _top(node: LexborNode) -> LexborNode:
    current = node
    for parent in iter_ancestors(node):
        current = parent
    return current


class HostDocument:
    """One render of the host page.

    A host re-render is modelled by parsing a new ``HostDocument``; elements
    taken from an earlier parse then count as detached.
    """

    def __init__(self, html: str, dom: DomConfig | None = None) -> None:
        self.dom = dom or DomConfig()
        self.tree = LexborHTMLParser(html)

    @property
    def root(self) -> LexborNode:
        return self.tree.root

    def message_containers(self) -> list[LexborNode]:
        """All message containers in document order."""
        return list(self.tree.css(f"[{self.dom.message_attr}]"))

    def message_by_id(self, message_id: str) -> LexborNode | None:
        """Find a container by its host-provided message id."""
        return self.tree.css_first(f'[{self.dom.message_id_attr}="{message_id}"]')

    def contains(self, node: LexborNode) -> bool:
        """Return True when ``node`` belongs to this render of the page."""
        return same_node(_top(node), _top(self.root))

    def is_ext_owned(self, node: LexborNode) -> bool:
        return closest_owned(node, self.dom) is not None

    def is_collapsed(self, element: LexborNode) -> bool:
        return has_class(element, self.dom.collapsed_class)

    def closest_message(self, node: LexborNode | None) -> LexborNode | None:
        """Nearest message container at or above ``node``."""
        if node is None:
            return None
        if is_element(node) and self.dom.message_attr in node.attributes:
            return node
        for parent in iter_ancestors(node):
            if is_element(parent) and self.dom.message_attr in parent.attributes:
                return parent
        return None
