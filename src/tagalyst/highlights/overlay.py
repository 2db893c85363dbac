"""Overlay rendering: named highlight registrations plus one shared stylesheet.

The overlay surface mirrors the CSS Custom Highlight API: spans are
registered under a name and styled with ``::highlight(name)`` rules, so the
host's text nodes are never wrapped or reparented. The stylesheet always
holds at most two rules (plain and annotated), whatever the highlight count.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Protocol

from tagalyst.config import HighlightConfig
from tagalyst.highlights.models import HighlightEntry, normalize_highlights
from tagalyst.highlights.spans import SpanDescriptor, build_span
from tagalyst.highlights.state import EngineState, RenderedHighlight

if TYPE_CHECKING:
    from collections.abc import Callable

    from selectolax.lexbor import LexborNode

    from tagalyst.highlights.offsets import TextModel

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


class OverlaySurface(Protocol):
    """Named-overlay rendering capability of the page."""

    @property
    def supported(self) -> bool:
        """False when the page cannot render named overlays at all."""
        ...

    def register(self, name: str, span: SpanDescriptor) -> None:
        """Render ``span`` under ``name``, replacing any previous span."""
        ...

    def unregister(self, name: str) -> None:
        """Stop rendering ``name`` (no-op when unknown)."""
        ...

    def set_style(self, css: str | None) -> None:
        """Replace the shared overlay stylesheet; None removes it."""
        ...


class MemoryOverlaySurface:
    """In-process overlay surface that records what would be rendered.

    Used by headless drivers and tests; a browser bridge implements the
    same protocol against ``CSS.highlights``.
    """

    def __init__(self, *, supported: bool = True) -> None:
        self._supported = supported
        self.registrations: dict[str, SpanDescriptor] = {}
        self.style: str | None = None

    @property
    def supported(self) -> bool:
        return self._supported

    def register(self, name: str, span: SpanDescriptor) -> None:
        self.registrations[name] = span

    def unregister(self, name: str) -> None:
        self.registrations.pop(name, None)

    def set_style(self, css: str | None) -> None:
        self.style = css


def highlight_name(entry_id: str, prefix: str = "tagalyst") -> str:
    """Deterministic overlay name for an entry id.

    Unsafe characters are dropped so the name is a valid ``::highlight()``
    identifier; an id with nothing left falls back to ``hl``.
    """
    clean = _UNSAFE_NAME_CHARS.sub("", entry_id)
    return f"{prefix}-{clean or 'hl'}"


def build_highlight_css(
    plain: list[str], annotated: list[str], config: HighlightConfig
) -> str | None:
    """Two rules covering every plain and every annotated name.

    Returns None when there is nothing to style.
    """
    segments: list[str] = []
    if plain:
        selectors = ", ".join(f"::highlight({name})" for name in plain)
        segments.append(f"{selectors} {{ {config.plain_style} }}")
    if annotated:
        selectors = ", ".join(f"::highlight({name})" for name in annotated)
        segments.append(f"{selectors} {{ {config.annotated_style} }}")
    if not segments:
        return None
    return "\n".join(segments)


class OverlayRenderer:
    """Rebuilds a message's overlays from its stored highlight list.

    Capability is detected once at construction; without it every method
    returns immediately and nothing is ever registered.
    """

    def __init__(
        self,
        surface: OverlaySurface,
        model: TextModel,
        state: EngineState,
        config: HighlightConfig | None = None,
        request_render: Callable[[], None] | None = None,
    ) -> None:
        self.surface = surface
        self.model = model
        self.state = state
        self.config = config or HighlightConfig()
        self.supported = bool(surface.supported)
        self._request_render = request_render or (lambda: None)
        if not self.supported:
            logger.info("Overlay surface unavailable; highlight rendering disabled")

    def name_for(self, entry_id: str) -> str:
        return highlight_name(entry_id, self.config.name_prefix)

    def apply_highlights(
        self, container: LexborNode, message_key: str, raw_entries: Any
    ) -> list[HighlightEntry]:
        """Discard and rebuild every overlay for one message.

        Entries whose offsets no longer resolve, or whose id is already
        rendered for another message, are skipped; the rest of the batch
        still renders. Returns the normalised entry list.
        """
        if not self.supported:
            return []
        self.clear_message(message_key, sync=False)
        entries = normalize_highlights(raw_entries)
        self.state.entries_by_message[message_key] = entries

        ids: set[str] = set()
        skipped = 0
        for entry in entries:
            owner = self.state.rendered.get(entry.id)
            if owner is not None and owner.message_key != message_key:
                logger.debug(
                    "Highlight %s already rendered for message %s, skipping in %s",
                    entry.id,
                    owner.message_key,
                    message_key,
                )
                skipped += 1
                continue
            span = build_span(self.model, container, entry.start, entry.end)
            if span is None:
                skipped += 1
                continue
            name = self.name_for(entry.id)
            self.surface.register(name, span)
            ids.add(entry.id)
            self.state.active_names.add(name)
            # Re-insert so iteration order follows this registration pass
            self.state.rendered.pop(entry.id, None)
            self.state.rendered[entry.id] = RenderedHighlight(
                entry_id=entry.id,
                name=name,
                message_key=message_key,
                span=span,
                annotation=entry.annotation,
            )
            if entry.annotated:
                self.state.annotated_names.add(name)
            else:
                self.state.annotated_names.discard(name)

        if ids:
            self.state.ids_by_message[message_key] = ids
        if skipped:
            logger.debug(
                "Skipped %d highlight(s) for message %s",
                skipped,
                message_key,
            )
        self.sync_style()
        self._request_render()
        return entries

    def clear_message(self, message_key: str, *, sync: bool = True) -> None:
        """Unregister every overlay belonging to one message."""
        if not self.supported:
            return
        self.state.entries_by_message.pop(message_key, None)
        ids = self.state.ids_by_message.pop(message_key, None)
        if not ids:
            return
        for entry_id in ids:
            name = self.name_for(entry_id)
            self.surface.unregister(name)
            self.state.active_names.discard(name)
            self.state.annotated_names.discard(name)
            self.state.rendered.pop(entry_id, None)
        if sync:
            self.sync_style()
            self._request_render()

    def reset_all(self) -> None:
        """Unregister every overlay and forget all runtime state."""
        if not self.supported:
            return
        for name in self.state.active_names:
            self.surface.unregister(name)
        self.state.reset()
        self.sync_style()
        self._request_render()

    def sync_style(self) -> None:
        """Regenerate the shared stylesheet from the two style buckets."""
        if not self.supported:
            return
        names = sorted(self.state.active_names)
        plain = [name for name in names if name not in self.state.annotated_names]
        annotated = [name for name in names if name in self.state.annotated_names]
        self.surface.set_style(build_highlight_css(plain, annotated, self.config))

    @property
    def registration_count(self) -> int:
        return len(self.state.active_names)
