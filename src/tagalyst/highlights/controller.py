"""Highlight controller: one instance owns all highlight state for a page.

The controller wires the offset codec, overlay renderer, selection state
machine, hover loop and marker projector around a single ``EngineState``.
Host DOM observation lives elsewhere; the observer calls
``apply_highlights`` for every re-rendered message and ``set_document``
when the whole page was rebuilt.

If the overlay surface reports no support at construction time, every
public method is a silent no-op.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tagalyst.config import Settings, get_settings
from tagalyst.dom.identity import DomMessageIdentityResolver, MessageRef
from tagalyst.geometry import Point
from tagalyst.highlights.hover import HoverLoop, LinearHitTester
from tagalyst.highlights.markers import MarkerProjector, ScrollSpaceRuler
from tagalyst.highlights.offsets import SelectolaxTextModel
from tagalyst.highlights.overlay import OverlayRenderer
from tagalyst.highlights.selection import SelectionController
from tagalyst.highlights.state import EngineState
from tagalyst.scheduler import AsyncioFrameScheduler
from tagalyst.storage import MessageLocks

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from selectolax.lexbor import LexborNode

    from tagalyst.dom.host import HostDocument
    from tagalyst.dom.identity import MessageIdentityResolver
    from tagalyst.geometry import LayoutProvider
    from tagalyst.highlights.hover import HitTester, Tooltip
    from tagalyst.highlights.markers import OverviewMarker, RulerMetrics
    from tagalyst.highlights.models import HighlightEntry
    from tagalyst.highlights.offsets import TextModel
    from tagalyst.highlights.overlay import OverlaySurface
    from tagalyst.highlights.selection import (
        AnnotationPrompt,
        SelectionMenu,
        SelectionSource,
    )
    from tagalyst.scheduler import FrameScheduler
    from tagalyst.storage import MessageStore

logger = logging.getLogger(__name__)


class HighlightController:
    """Highlight selection, rendering, hover annotations and ruler markers."""

    def __init__(
        self,
        *,
        document: HostDocument,
        store: MessageStore,
        surface: OverlaySurface,
        layout: LayoutProvider,
        selection_source: SelectionSource,
        prompt: AnnotationPrompt,
        thread_key: str,
        scheduler: FrameScheduler | None = None,
        ruler: RulerMetrics | None = None,
        resolver: MessageIdentityResolver | None = None,
        model: TextModel | None = None,
        hit_tester: HitTester | None = None,
        request_render: Callable[[], None] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.document = document
        self.thread_key = thread_key
        self.state = EngineState()
        self.scheduler = scheduler or AsyncioFrameScheduler(
            self.settings.frames.frame_interval
        )
        self.resolver = resolver or DomMessageIdentityResolver(self.settings.dom)
        self.model = model or SelectolaxTextModel(self.settings.dom)
        self.locks = MessageLocks()
        self.renderer = OverlayRenderer(
            surface,
            self.model,
            self.state,
            self.settings.highlight,
            request_render=request_render,
        )
        self.supported = self.renderer.supported
        self.selection = SelectionController(
            document=lambda: self.document,
            source=selection_source,
            model=self.model,
            resolver=self.resolver,
            state=self.state,
            store=store,
            locks=self.locks,
            prompt=prompt,
            layout=layout,
            scheduler=self.scheduler,
            thread_key=lambda: self.thread_key,
            rebuild=self._rebuild,
            config=self.settings.menu,
        )
        self.hover = HoverLoop(
            self.state,
            self.scheduler,
            hit_tester or LinearHitTester(layout),
            layout,
            self.settings.tooltip,
        )
        self.markers = MarkerProjector(
            self.state,
            layout,
            ruler or ScrollSpaceRuler(),
            lambda: self.document,
            supported=self.supported,
        )
        self.initialized = False

    # --- Lifecycle ---

    def init(self) -> None:
        """Start listening: idempotent, starts the hover loop."""
        if self.initialized or not self.supported:
            return
        self.hover.start()
        self.initialized = True
        logger.debug("Highlight controller initialised for thread %s", self.thread_key)

    def shutdown(self) -> None:
        """Stop the hover loop and drop any pending selection evaluation."""
        self.hover.stop()
        self.selection.cancel_scheduled()
        self.initialized = False

    def reset_all(self) -> None:
        """Clear every overlay, all runtime state and any visible UI."""
        if not self.supported:
            return
        self.renderer.reset_all()
        self.selection.hide_menu()
        self.hover.hide()

    def set_document(self, document: HostDocument) -> None:
        """Adopt a fresh render of the host page.

        Text-node identity does not survive a re-render, so every overlay
        is discarded; the caller re-applies highlights per message.
        """
        self.reset_all()
        self.document = document

    # --- Rendering ---

    def apply_highlights(
        self, container: LexborNode, raw_entries: Any, thread_key: str | None = None
    ) -> list[HighlightEntry]:
        """Rebuild the overlays of one message container from stored entries."""
        if not self.supported:
            return []
        message = self.resolver.resolve(container)
        return self._apply(message, raw_entries, thread_key or self.thread_key)

    def _apply(
        self, message: MessageRef, raw_entries: Any, thread_key: str
    ) -> list[HighlightEntry]:
        return self.renderer.apply_highlights(
            message.element, message.storage_key(thread_key), raw_entries
        )

    def _rebuild(self, message: MessageRef, raw_entries: list[dict[str, Any]]) -> None:
        self._apply(message, raw_entries, self.thread_key)

    def get_overview_markers(
        self, messages: Sequence[MessageRef], thread_key: str | None = None
    ) -> list[OverviewMarker]:
        return self.markers.get_overview_markers(
            messages, thread_key or self.thread_key
        )

    # --- Host events ---

    def handle_pointer_up(self) -> None:
        if self.initialized:
            self.selection.schedule_evaluation()

    def handle_key_up(self, key: str = "") -> None:
        if self.initialized:
            self.selection.schedule_evaluation()

    def handle_selection_change(self) -> None:
        if self.initialized:
            self.selection.schedule_evaluation()

    def handle_pointer_down(self, *, inside_menu: bool = False) -> None:
        if self.initialized:
            self.selection.handle_pointer_down(inside_menu=inside_menu)

    def handle_key_down(self, key: str) -> None:
        if self.initialized:
            self.selection.handle_key_down(key)

    def handle_pointer_move(self, x: float, y: float) -> None:
        if self.initialized:
            self.hover.on_pointer_move(Point(x, y))

    # --- Menu actions ---

    async def commit_highlight(self) -> bool:
        if not self.initialized:
            return False
        return await self.selection.commit_highlight()

    async def commit_annotate(self) -> bool:
        if not self.initialized:
            return False
        return await self.selection.commit_annotate()

    @property
    def menu(self) -> SelectionMenu:
        return self.selection.menu

    @property
    def tooltip(self) -> Tooltip:
        return self.hover.tooltip
