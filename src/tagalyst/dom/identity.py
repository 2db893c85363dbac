"""Stable per-message identity for host message containers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from tagalyst.config import DomConfig
from tagalyst.dom.host import is_element, iter_children, same_node

if TYPE_CHECKING:
    from selectolax.lexbor import LexborNode

_WHITESPACE_RUN = re.compile(r"\s+")
_ZERO_WIDTH = re.compile(r"[\u200b-\u200d\ufeff]")

# Longer texts are truncated before hashing
_KEY_TEXT_LIMIT = 4000

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def normalize_text(text: str | None) -> str:
    """Collapse whitespace runs, drop zero-width characters, trim."""
    collapsed = _WHITESPACE_RUN.sub(" ", text or "")
    return _ZERO_WIDTH.sub("", collapsed).strip()


def hash_string(value: str) -> str:
    """FNV-1a 32-bit hash rendered as eight hex digits."""
    h = _FNV_OFFSET
    for char in value:
        h ^= ord(char)
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return f"{h:08x}"


@dataclass(frozen=True)
class MessageRef:
    """A message container together with its stable key."""

    key: str
    element: LexborNode
    role: str = "unknown"

    def storage_key(self, thread_key: str) -> str:
        return f"{thread_key}:{self.key}"


class MessageIdentityResolver(Protocol):
    """Resolves a container element to the message it renders."""

    def resolve(self, container: LexborNode) -> MessageRef:
        """Return the stable reference for ``container``."""
        ...


class DomMessageIdentityResolver:
    """Keys messages by host id, falling back to a content hash.

    The fallback hashes the normalised text together with the element's
    position among its siblings, so it survives re-renders that keep both.
    """

    def __init__(self, dom: DomConfig | None = None) -> None:
        self.dom = dom or DomConfig()

    def resolve(self, container: LexborNode) -> MessageRef:
        role = container.attributes.get(self.dom.message_attr) or "unknown"
        return MessageRef(key=self.key_for(container), element=container, role=role)

    def key_for(self, container: LexborNode) -> str:
        dom_id = container.attributes.get(self.dom.message_id_attr)
        if dom_id:
            return dom_id
        text = normalize_text(container.text(deep=True, separator=""))
        return hash_string(f"{text[:_KEY_TEXT_LIMIT]}|{self._sibling_index(container)}")

    @staticmethod
    def _sibling_index(container: LexborNode) -> int:
        parent = container.parent
        if parent is None:
            return -1
        elements = [child for child in iter_children(parent) if is_element(child)]
        for index, element in enumerate(elements):
            if same_node(element, container):
                return index
        return -1
