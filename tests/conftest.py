"""Shared pytest fixtures and fakes for tagalyst tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from tagalyst.config import DomConfig, Settings
from tagalyst.dom.host import (
    HostDocument,
    HostRange,
    TextPosition,
    iter_text_nodes,
    text_of,
)
from tagalyst.errors import StorageError
from tagalyst.geometry import Rect, Viewport
from tagalyst.highlights.controller import HighlightController
from tagalyst.highlights.markers import ScrollSpaceRuler
from tagalyst.highlights.overlay import MemoryOverlaySurface
from tagalyst.scheduler import ManualFrameScheduler
from tagalyst.storage import MemoryMessageStore

if TYPE_CHECKING:
    from selectolax.lexbor import LexborNode

    from tagalyst.dom.identity import MessageRef
    from tagalyst.highlights.spans import SpanDescriptor

THREAD_KEY = "thread-1"

# m1: toolbar before the text, visible text "The quick brown fox"
# m2: owned tag chip between paragraphs,
#     visible text "Jumps over the lazy dogAgain and again"
TRANSCRIPT_HTML = (
    "<html><body><main>"
    '<article data-message-author-role="user" data-message-id="m1">'
    '<div class="ext-toolbar-row"><button>Star</button></div>'
    "<p>The quick brown fox</p>"
    "</article>"
    '<article data-message-author-role="assistant" data-message-id="m2">'
    "<p>Jumps <em>over</em> the lazy dog</p>"
    '<span data-ext-owned="1">[tag]</span>'
    "<p>Again and again</p>"
    "</article>"
    "</main></body></html>"
)

# e1: an astral-plane emoji before "quick", so UTF-16 offsets lead by one
EMOJI_HTML = (
    "<html><body><main>"
    '<article data-message-author-role="user" data-message-id="e1">'
    f"<p>{chr(0x1F600)} quick</p>"
    "</article>"
    "</main></body></html>"
)


# =============================================================================
# DOM helpers
# =============================================================================


def find_text(container: LexborNode, needle: str) -> LexborNode:
    """First text node (owned UI included) whose data contains ``needle``."""
    for node, _ in iter_text_nodes(container, DomConfig(), skip_owned=False):
        if needle in text_of(node):
            return node
    msg = f"no text node containing {needle!r}"
    raise AssertionError(msg)


def position(container: LexborNode, needle: str, offset: int = 0) -> TextPosition:
    """Boundary point ``offset`` characters into the first ``needle``."""
    node = find_text(container, needle)
    return TextPosition(node, text_of(node).index(needle) + offset)


def select(container: LexborNode, needle: str) -> HostRange:
    """Range covering ``needle`` inside a single text node."""
    return HostRange(
        position(container, needle), position(container, needle, len(needle))
    )


def select_offsets(
    container: LexborNode, needle: str, start: int, end: int
) -> HostRange:
    """Range from ``start`` to ``end`` characters into the text node of ``needle``."""
    node = find_text(container, needle)
    return HostRange(TextPosition(node, start), TextPosition(node, end))


# =============================================================================
# Fakes for the host-page collaborators
# =============================================================================


class FakeLayout:
    """Layout with rectangles registered per ``(start, end)`` offset pair."""

    def __init__(self, viewport: Viewport | None = None) -> None:
        self.rects: dict[tuple[int, int], list[Rect]] = {}
        self.selection_rect: Rect | None = Rect(100, 100, 200, 120)
        self._viewport = viewport or Viewport()

    def set_rects(self, start: int, end: int, *rects: Rect) -> None:
        self.rects[(start, end)] = list(rects)

    def client_rects(self, span: SpanDescriptor) -> list[Rect]:
        return list(self.rects.get((span.start_offset, span.end_offset), []))

    def bounding_rect(self, span: SpanDescriptor) -> Rect | None:
        rects = self.client_rects(span)
        if not rects:
            return None
        return Rect(
            min(r.left for r in rects),
            min(r.top for r in rects),
            max(r.right for r in rects),
            max(r.bottom for r in rects),
        )

    def range_rect(self, selection: HostRange) -> Rect | None:
        return self.selection_rect

    def viewport(self) -> Viewport:
        return self._viewport

    def set_viewport(self, viewport: Viewport) -> None:
        self._viewport = viewport


class FakeSelectionSource:
    """Selection holder standing in for ``window.getSelection()``."""

    def __init__(self) -> None:
        self.range: HostRange | None = None
        self.cleared = 0

    def get_range(self) -> HostRange | None:
        return self.range

    def clear(self) -> None:
        self.range = None
        self.cleared += 1


class FakePrompt:
    """Prompt that answers with a canned value and records the seed text."""

    def __init__(self, answer: str | None = None) -> None:
        self.answer = answer
        self.seeds: list[str] = []

    async def ask(self, *, initial: str, title: str, placeholder: str) -> str | None:
        self.seeds.append(initial)
        return self.answer


class FailingStore(MemoryMessageStore):
    """Store whose writes always fail."""

    async def write_message(
        self, thread_key: str, message: MessageRef, value: dict[str, Any]
    ) -> None:
        raise StorageError("storage quota exceeded")


class SlowStore(MemoryMessageStore):
    """Store that yields to the loop on every read."""

    async def read_message(
        self, thread_key: str, message: MessageRef
    ) -> dict[str, Any]:
        await asyncio.sleep(0.01)
        return await super().read_message(thread_key, message)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def document() -> HostDocument:
    return HostDocument(TRANSCRIPT_HTML)


@pytest.fixture
def m1(document: HostDocument) -> LexborNode:
    node = document.message_by_id("m1")
    assert node is not None
    return node


@pytest.fixture
def m2(document: HostDocument) -> LexborNode:
    node = document.message_by_id("m2")
    assert node is not None
    return node


@pytest.fixture
def store() -> MemoryMessageStore:
    return MemoryMessageStore()


@pytest.fixture
def surface() -> MemoryOverlaySurface:
    return MemoryOverlaySurface()


@pytest.fixture
def layout() -> FakeLayout:
    return FakeLayout()


@pytest.fixture
def source() -> FakeSelectionSource:
    return FakeSelectionSource()


@pytest.fixture
def prompt() -> FakePrompt:
    return FakePrompt()


@pytest.fixture
def scheduler() -> ManualFrameScheduler:
    return ManualFrameScheduler()


@pytest.fixture
def make_controller(
    document: HostDocument,
    store: MemoryMessageStore,
    surface: MemoryOverlaySurface,
    layout: FakeLayout,
    source: FakeSelectionSource,
    prompt: FakePrompt,
    scheduler: ManualFrameScheduler,
    settings: Settings,
):
    """Factory building an initialised controller; keyword args override."""

    def _make(**overrides: Any) -> HighlightController:
        kwargs: dict[str, Any] = {
            "document": document,
            "store": store,
            "surface": surface,
            "layout": layout,
            "selection_source": source,
            "prompt": prompt,
            "thread_key": THREAD_KEY,
            "scheduler": scheduler,
            "ruler": ScrollSpaceRuler(),
            "settings": settings,
        }
        kwargs.update(overrides)
        controller = HighlightController(**kwargs)
        controller.init()
        return controller

    return _make


@pytest.fixture
def controller(make_controller) -> HighlightController:
    return make_controller()
