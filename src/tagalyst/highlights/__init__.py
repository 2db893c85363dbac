"""Text-range highlighting and annotation engine.

Package structure:
    models      Highlight entries and stored-list normalisation
    offsets     Visible-text offset codec
    spans       Span descriptors resolved from offsets
    state       Runtime-only engine state
    overlay     Overlay surface, renderer and stylesheet sync
    selection   Selection state machine and action menu
    hover       Per-frame annotation tooltip loop
    markers     Overview ruler marker projection
    controller  Facade wiring everything to one EngineState
"""

from tagalyst.highlights.controller import HighlightController
from tagalyst.highlights.markers import OverviewMarker, ScrollSpaceRuler
from tagalyst.highlights.models import HighlightEntry, normalize_highlights
from tagalyst.highlights.offsets import OffsetSpan, SelectolaxTextModel
from tagalyst.highlights.overlay import MemoryOverlaySurface, OverlayRenderer

__all__ = [
    "HighlightController",
    "HighlightEntry",
    "MemoryOverlaySurface",
    "OffsetSpan",
    "OverlayRenderer",
    "OverviewMarker",
    "ScrollSpaceRuler",
    "SelectolaxTextModel",
    "normalize_highlights",
]
