"""Host document model and message identity."""

from tagalyst.dom.host import HostDocument, HostRange, TextPosition
from tagalyst.dom.identity import (
    DomMessageIdentityResolver,
    MessageIdentityResolver,
    MessageRef,
)

__all__ = [
    "DomMessageIdentityResolver",
    "HostDocument",
    "HostRange",
    "MessageIdentityResolver",
    "MessageRef",
    "TextPosition",
]
