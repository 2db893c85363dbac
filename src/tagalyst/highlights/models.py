"""Highlight entries and the normalisation applied to stored highlight lists.

Stored values come from an external key-value store and may have been
written by older versions or edited by hand, so every read goes through
``normalize_highlights`` before the engine trusts it.
"""

from __future__ import annotations

import logging
import math
import random
import string
import time
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

logger = logging.getLogger(__name__)

HIGHLIGHTS_FIELD = "highlights"

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits))


def make_highlight_id() -> str:
    """Generate an opaque highlight id: ``hl_<base36 ms>_<5 random chars>``."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_ID_ALPHABET, k=5))  # noqa: S311
    return f"hl_{stamp}_{suffix}"


class HighlightEntry(BaseModel):
    """One persisted highlight over a message's visible text.

    Attributes:
        id: Opaque stable identifier.
        start: First character offset (inclusive).
        end: Last character offset (exclusive).
        text: Substring captured when the highlight was created. Display
            only; never re-validated against the live text.
        annotation: Optional note attached to the highlight.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    start: int
    end: int
    text: str = ""
    annotation: str | None = None

    @field_validator("annotation")
    @classmethod
    def _blank_annotation_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    @model_validator(mode="after")
    def _valid_bounds(self) -> HighlightEntry:
        if self.start < 0:
            msg = f"highlight start must be >= 0, got {self.start}"
            raise ValueError(msg)
        if self.end <= self.start:
            msg = f"highlight end ({self.end}) must be > start ({self.start})"
            raise ValueError(msg)
        return self

    @property
    def annotated(self) -> bool:
        return self.annotation is not None

    def overlaps(self, start: int, end: int) -> bool:
        """Return True when ``[start, end)`` shares at least one character."""
        return not (end <= self.start or start >= self.end)

    def with_annotation(self, annotation: str | None) -> HighlightEntry:
        return HighlightEntry(
            id=self.id,
            start=self.start,
            end=self.end,
            text=self.text,
            annotation=annotation,
        )

    def to_storage(self) -> dict[str, Any]:
        """Serialise for the message store (annotation omitted when unset)."""
        return self.model_dump(exclude_none=True)


def _coerce_offset(value: Any) -> int:
    """Numeric coercion for stored offsets; anything unusable becomes 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0
        return int(number) if math.isfinite(number) else 0
    return 0


def normalize_entry(raw: Any) -> HighlightEntry | None:
    """Coerce one stored item into an entry, or None when it is unusable."""
    if not isinstance(raw, Mapping):
        return None
    raw_id = raw.get("id")
    entry_id = raw_id if isinstance(raw_id, str) and raw_id else make_highlight_id()
    start = _coerce_offset(raw.get("start"))
    end = _coerce_offset(raw.get("end"))
    if start < 0 or end <= start:
        logger.debug("Dropping highlight %s with bounds [%d, %d)", entry_id, start, end)
        return None
    text = raw.get("text")
    annotation = raw.get("annotation")
    return HighlightEntry(
        id=entry_id,
        start=start,
        end=end,
        text=text if isinstance(text, str) else "",
        annotation=annotation if isinstance(annotation, str) else None,
    )


def normalize_highlights(raw: Any) -> list[HighlightEntry]:
    """Validate a stored highlight list and sort it ascending by start.

    Non-list input yields an empty list. Invalid items are dropped. The
    sort is stable, so entries sharing a start keep their stored order.
    """
    if not isinstance(raw, list):
        return []
    entries = [entry for item in raw if (entry := normalize_entry(item)) is not None]
    return sort_entries(entries)


def sort_entries(entries: list[HighlightEntry]) -> list[HighlightEntry]:
    return sorted(entries, key=lambda entry: entry.start)


def find_overlapping(
    entries: list[HighlightEntry], start: int, end: int
) -> HighlightEntry | None:
    """First entry (lowest start) overlapping ``[start, end)``.

    Overlapping highlights are never merged; a selection touching several
    always targets the one that starts first.
    """
    for entry in entries:
        if entry.overlaps(start, end):
            return entry
    return None


def entries_to_storage(entries: list[HighlightEntry]) -> list[dict[str, Any]]:
    return [entry.to_storage() for entry in entries]
