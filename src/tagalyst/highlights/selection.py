"""Selection interaction state machine and the floating action menu.

Flow::

    IDLE -> EVALUATING -> ADD | REMOVE -> MENU_SHOWN -> IDLE

Pointer-up, key-up and selection-change events schedule at most one
evaluation per frame. Evaluation decides whether the current selection would
add a new highlight or remove the lowest-start highlight it overlaps, and
positions the menu. Commits are read-modify-write cycles against the message
store, serialised per message, followed by a full rebuild of that message's
overlays.

Annotations can only be edited by re-selecting an existing highlight: the
"Annotate" action stays disabled while the menu is in ADD mode, so a new
highlight cannot be annotated in the gesture that creates it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from tagalyst.config import MenuConfig
from tagalyst.dom.host import same_node
from tagalyst.geometry import Rect, clamp
from tagalyst.highlights.models import (
    HIGHLIGHTS_FIELD,
    HighlightEntry,
    entries_to_storage,
    find_overlapping,
    make_highlight_id,
    normalize_highlights,
    sort_entries,
)
from tagalyst.highlights.offsets import OffsetSpan, compute_offsets, slice_utf16
from tagalyst.highlights.state import InteractionState

if TYPE_CHECKING:
    from collections.abc import Callable

    from tagalyst.dom.host import HostDocument, HostRange
    from tagalyst.dom.identity import MessageIdentityResolver, MessageRef
    from tagalyst.geometry import LayoutProvider
    from tagalyst.highlights.offsets import TextModel
    from tagalyst.highlights.state import EngineState
    from tagalyst.scheduler import FrameScheduler
    from tagalyst.storage import MessageLocks, MessageStore

logger = logging.getLogger(__name__)

ADD_LABEL = "Highlight"
REMOVE_LABEL = "Remove highlight"
ANNOTATE_LABEL = "Annotate"
PROMPT_TITLE = "Annotation"
PROMPT_PLACEHOLDER = "Add details…"


class SelectionMode(StrEnum):
    """What committing the menu's main action would do."""

    ADD = "add"
    REMOVE = "remove"


class SelectionSource(Protocol):
    """Access to the host page's current text selection."""

    def get_range(self) -> HostRange | None:
        """The first selection range, or None when nothing is selected."""
        ...

    def clear(self) -> None:
        """Remove every selection range."""
        ...


class AnnotationPrompt(Protocol):
    """Text prompt used to edit an annotation."""

    async def ask(self, *, initial: str, title: str, placeholder: str) -> str | None:
        """Return the entered text, or None when the user cancelled."""
        ...


@dataclass
class SelectionMenu:
    """Observable state of the floating action menu."""

    visible: bool = False
    action_label: str = ADD_LABEL
    annotate_label: str = ANNOTATE_LABEL
    annotate_enabled: bool = False
    preview: str | None = None
    top: float = 0.0
    left: float = 0.0


@dataclass(frozen=True)
class PendingSelection:
    """An evaluated selection waiting for the user to pick an action."""

    message: MessageRef
    offsets: OffsetSpan
    text: str
    mode: SelectionMode
    target: HighlightEntry | None = None


class SelectionController:
    """Turns host selections into highlight add/remove/annotate commits."""

    def __init__(
        self,
        *,
        document: Callable[[], HostDocument],
        source: SelectionSource,
        model: TextModel,
        resolver: MessageIdentityResolver,
        state: EngineState,
        store: MessageStore,
        locks: MessageLocks,
        prompt: AnnotationPrompt,
        layout: LayoutProvider,
        scheduler: FrameScheduler,
        thread_key: Callable[[], str],
        rebuild: Callable[[MessageRef, list[dict[str, Any]]], Any],
        config: MenuConfig | None = None,
    ) -> None:
        self._document = document
        self.source = source
        self.model = model
        self.resolver = resolver
        self.state = state
        self.store = store
        self.locks = locks
        self.prompt = prompt
        self.layout = layout
        self.scheduler = scheduler
        self._thread_key = thread_key
        self._rebuild = rebuild
        self.config = config or MenuConfig()
        self.menu = SelectionMenu()
        self.pending: PendingSelection | None = None
        self._pending_frame: Any = None

    # --- Scheduling ---

    def schedule_evaluation(self) -> None:
        """Coalesce triggers: a newer request replaces the pending one."""
        if self._pending_frame is not None:
            self.scheduler.cancel_frame(self._pending_frame)
        self._pending_frame = self.scheduler.request_frame(self._run_scheduled)

    def cancel_scheduled(self) -> None:
        if self._pending_frame is not None:
            self.scheduler.cancel_frame(self._pending_frame)
            self._pending_frame = None

    def _run_scheduled(self) -> None:
        self._pending_frame = None
        self.evaluate()

    # --- Evaluation ---

    def evaluate(self) -> PendingSelection | None:
        """Inspect the current selection and show or hide the menu."""
        self.state.interaction = InteractionState.EVALUATING
        selection = self.source.get_range()
        if selection is None or selection.collapsed:
            return self._abandon("no selection")

        document = self._document()
        start_message = document.closest_message(selection.start.node)
        end_message = document.closest_message(selection.end.node)
        if start_message is None or not same_node(start_message, end_message):
            return self._abandon("selection spans zero or several messages")
        if document.is_ext_owned(selection.start.node) or document.is_ext_owned(
            selection.end.node
        ):
            return self._abandon("selection touches extension UI")

        offsets = compute_offsets(self.model, start_message, selection)
        if offsets is None:
            return self._abandon("offsets could not be computed")
        visible = self.model.visible_text(start_message)
        text = slice_utf16(visible, offsets.start, offsets.end)
        if not text.strip():
            return self._abandon("selection is blank")

        message = self.resolver.resolve(start_message)
        entries = self.state.entries_by_message.get(
            message.storage_key(self._thread_key()), []
        )
        target = find_overlapping(entries, offsets.start, offsets.end)
        mode = SelectionMode.REMOVE if target is not None else SelectionMode.ADD
        self.state.interaction = (
            InteractionState.REMOVE if target is not None else InteractionState.ADD
        )
        self.pending = PendingSelection(
            message=message, offsets=offsets, text=text, mode=mode, target=target
        )
        self._show_menu(selection)
        self.state.interaction = InteractionState.MENU_SHOWN
        return self.pending

    def _abandon(self, reason: str) -> None:
        logger.debug("Selection ignored: %s", reason)
        self.hide_menu()

    def _show_menu(self, selection: HostRange) -> None:
        pending = self.pending
        if pending is None:
            return
        removing = pending.mode is SelectionMode.REMOVE
        self.menu.action_label = REMOVE_LABEL if removing else ADD_LABEL
        self.menu.annotate_enabled = removing
        self.menu.preview = (
            pending.target.annotation if removing and pending.target else None
        )
        rect = self.layout.range_rect(selection) or Rect(0, 0, 0, 0)
        self.menu.left, self.menu.top = self._menu_position(rect)
        self.menu.visible = True

    def _menu_position(self, rect: Rect) -> tuple[float, float]:
        """Centre below the selection, flipping above near the viewport bottom."""
        viewport = self.layout.viewport()
        cfg = self.config
        target_left = viewport.scroll_x + rect.left + (rect.width - cfg.width) / 2
        left = clamp(
            target_left,
            viewport.scroll_x + cfg.edge_margin,
            viewport.scroll_x + viewport.width - cfg.width - cfg.edge_margin,
        )
        min_top = viewport.scroll_y + cfg.edge_margin
        max_top = viewport.scroll_y + viewport.height - cfg.height - cfg.edge_margin
        top = viewport.scroll_y + rect.bottom + cfg.gap
        if top > max_top:
            fallback = viewport.scroll_y + rect.top - cfg.height - cfg.gap
            top = max(min(fallback, max_top), min_top)
        return left, top

    def hide_menu(self) -> None:
        """Return to IDLE, dropping the pending selection."""
        self.menu.visible = False
        self.menu.preview = None
        self.menu.annotate_enabled = False
        self.pending = None
        self.state.interaction = InteractionState.IDLE

    # --- Cancellation ---

    def handle_pointer_down(self, *, inside_menu: bool) -> None:
        if self.menu.visible and not inside_menu:
            self.hide_menu()

    def handle_key_down(self, key: str) -> None:
        if key == "Escape" and self.menu.visible:
            self.source.clear()
            self.hide_menu()

    # --- Commits ---

    async def commit_highlight(self) -> bool:
        """Run the menu's main action (add or remove).

        Returns True when the change was persisted and rendered. On storage
        failure the error is logged and nothing else changes.
        """
        pending = self.pending
        if pending is None:
            return False
        if pending.mode is SelectionMode.REMOVE and pending.target is None:
            return False

        thread_key = self._thread_key()
        storage_key = pending.message.storage_key(thread_key)
        async with self.locks.hold(storage_key):
            try:
                value = await self.store.read_message(thread_key, pending.message)
                entries = normalize_highlights(value.get(HIGHLIGHTS_FIELD))
                if pending.mode is SelectionMode.REMOVE:
                    target_id = pending.target.id if pending.target else None
                    updated = [entry for entry in entries if entry.id != target_id]
                else:
                    added = HighlightEntry(
                        id=make_highlight_id(),
                        start=pending.offsets.start,
                        end=pending.offsets.end,
                        text=pending.text,
                    )
                    updated = sort_entries([*entries, added])
                if updated:
                    value[HIGHLIGHTS_FIELD] = entries_to_storage(updated)
                else:
                    value.pop(HIGHLIGHTS_FIELD, None)
                await self.store.write_message(thread_key, pending.message, value)
            except Exception:
                logger.exception(
                    "Failed to persist highlight change for %s", storage_key
                )
                return False

        logger.info(
            "%s highlight [%d, %d) on %s",
            "Removed" if pending.mode is SelectionMode.REMOVE else "Added",
            pending.offsets.start,
            pending.offsets.end,
            storage_key,
        )
        self._rebuild(pending.message, entries_to_storage(updated))
        self.source.clear()
        self.hide_menu()
        return True

    async def commit_annotate(self) -> bool:
        """Prompt for the target's annotation and persist the answer.

        Only available in REMOVE mode. The menu stays open; its preview is
        refreshed to the saved annotation.
        """
        pending = self.pending
        if (
            pending is None
            or pending.mode is not SelectionMode.REMOVE
            or pending.target is None
        ):
            return False

        thread_key = self._thread_key()
        storage_key = pending.message.storage_key(thread_key)
        target_id = pending.target.id
        try:
            value = await self.store.read_message(thread_key, pending.message)
        except Exception:
            logger.exception("Failed to read highlights for %s", storage_key)
            return False
        stored = normalize_highlights(value.get(HIGHLIGHTS_FIELD))
        current = _find_entry(stored, target_id)
        if current is None:
            logger.debug("Highlight %s vanished before annotation", target_id)
            return False

        answer = await self.prompt.ask(
            initial=current.annotation or "",
            title=PROMPT_TITLE,
            placeholder=PROMPT_PLACEHOLDER,
        )
        if answer is None:
            return False
        annotation = answer.strip() or None

        async with self.locks.hold(storage_key):
            try:
                # Re-read under the lock; the prompt may have been open a while
                value = await self.store.read_message(thread_key, pending.message)
                entries = normalize_highlights(value.get(HIGHLIGHTS_FIELD))
                if _find_entry(entries, target_id) is None:
                    return False
                updated = [
                    entry.with_annotation(annotation)
                    if entry.id == target_id
                    else entry
                    for entry in entries
                ]
                value[HIGHLIGHTS_FIELD] = entries_to_storage(updated)
                await self.store.write_message(thread_key, pending.message, value)
            except Exception:
                logger.exception("Failed to persist annotation for %s", storage_key)
                return False

        self._rebuild(pending.message, entries_to_storage(updated))
        if self.pending is pending:
            self.pending = replace(pending, target=_find_entry(updated, target_id))
            self.menu.preview = annotation
        return True


def _find_entry(entries: list[HighlightEntry], entry_id: str) -> HighlightEntry | None:
    return next((entry for entry in entries if entry.id == entry_id), None)
