"""Runtime-only engine state, owned by one controller instance.

Nothing here is persisted. Everything derived from a message container is
discarded and rebuilt whenever that container's content changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tagalyst.geometry import Point
    from tagalyst.highlights.models import HighlightEntry
    from tagalyst.highlights.spans import SpanDescriptor


class InteractionState(StrEnum):
    """Selection interaction states."""

    IDLE = "idle"
    EVALUATING = "evaluating"
    ADD = "add"
    REMOVE = "remove"
    MENU_SHOWN = "menu_shown"


@dataclass
class RenderedHighlight:
    """A registered overlay and what the hover loop needs to know about it."""

    entry_id: str
    name: str
    message_key: str
    span: SpanDescriptor
    annotation: str | None = None


@dataclass
class EngineState:
    """Explicit container for every piece of mutable engine state."""

    active_names: set[str] = field(default_factory=set)
    annotated_names: set[str] = field(default_factory=set)
    ids_by_message: dict[str, set[str]] = field(default_factory=dict)
    # Insertion order is registration order (ascending start per message)
    rendered: dict[str, RenderedHighlight] = field(default_factory=dict)
    entries_by_message: dict[str, list[HighlightEntry]] = field(default_factory=dict)
    interaction: InteractionState = InteractionState.IDLE
    pointer: Point | None = None
    hover_target_id: str | None = None

    def annotated(self) -> list[RenderedHighlight]:
        """Rendered highlights carrying an annotation, in registration order."""
        return [item for item in self.rendered.values() if item.annotation]

    def reset(self) -> None:
        """Forget everything (overlay unregistration is the caller's job)."""
        self.active_names.clear()
        self.annotated_names.clear()
        self.ids_by_message.clear()
        self.rendered.clear()
        self.entries_by_message.clear()
        self.interaction = InteractionState.IDLE
        self.pointer = None
        self.hover_target_id = None
