"""Tests for highlight entries and stored-list normalisation."""

from __future__ import annotations

import re

import pytest
from pydantic import ValidationError

from tagalyst.highlights.models import (
    HighlightEntry,
    entries_to_storage,
    find_overlapping,
    make_highlight_id,
    normalize_entry,
    normalize_highlights,
)


class TestHighlightEntry:
    """HighlightEntry validation and helpers."""

    def test_blank_annotation_becomes_none(self) -> None:
        """Whitespace-only annotations are treated as absent."""
        entry = HighlightEntry(id="a", start=0, end=3, annotation="   ")
        assert entry.annotation is None
        assert not entry.annotated

    def test_annotation_is_trimmed(self) -> None:
        entry = HighlightEntry(id="a", start=0, end=3, annotation="  note \n")
        assert entry.annotation == "note"
        assert entry.annotated

    def test_empty_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HighlightEntry(id="a", start=4, end=4)

    def test_negative_start_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HighlightEntry(id="a", start=-1, end=4)

    def test_overlap_is_half_open(self) -> None:
        """Touching ranges share no character."""
        entry = HighlightEntry(id="a", start=5, end=10)
        assert entry.overlaps(9, 12)
        assert entry.overlaps(0, 6)
        assert not entry.overlaps(10, 12)
        assert not entry.overlaps(0, 5)

    def test_storage_omits_missing_annotation(self) -> None:
        entry = HighlightEntry(id="a", start=0, end=3, text="The")
        assert entry.to_storage() == {"id": "a", "start": 0, "end": 3, "text": "The"}

    def test_with_annotation_keeps_identity(self) -> None:
        entry = HighlightEntry(id="a", start=1, end=3, text="he")
        updated = entry.with_annotation("remember")
        assert (updated.id, updated.start, updated.end, updated.text) == (
            "a",
            1,
            3,
            "he",
        )
        assert updated.annotation == "remember"
        assert entry.annotation is None


class TestMakeHighlightId:
    """Generated identifiers."""

    def test_format(self) -> None:
        assert re.fullmatch(r"hl_[0-9a-z]+_[0-9a-z]{5}", make_highlight_id())

    def test_ids_differ(self) -> None:
        assert len({make_highlight_id() for _ in range(50)}) == 50


class TestNormalizeHighlights:
    """Stored-list normalisation."""

    @pytest.mark.parametrize("raw", [None, "highlights", 42, {"id": "x"}])
    def test_non_list_yields_empty(self, raw: object) -> None:
        assert normalize_highlights(raw) == []

    def test_sorted_by_start(self) -> None:
        raw = [
            {"id": "b", "start": 10, "end": 15},
            {"id": "a", "start": 0, "end": 5},
        ]
        assert [e.id for e in normalize_highlights(raw)] == ["a", "b"]

    def test_sort_is_stable_for_equal_starts(self) -> None:
        raw = [
            {"id": "second", "start": 3, "end": 9},
            {"id": "first", "start": 3, "end": 5},
        ]
        assert [e.id for e in normalize_highlights(raw)] == ["second", "first"]

    def test_invalid_items_dropped(self) -> None:
        raw = [
            "not a mapping",
            {"id": "empty", "start": 5, "end": 5},
            {"id": "inverted", "start": 8, "end": 2},
            {"id": "negative", "start": -3, "end": 2},
            {"id": "ok", "start": 1, "end": 2},
        ]
        assert [e.id for e in normalize_highlights(raw)] == ["ok"]

    def test_numeric_strings_coerced(self) -> None:
        (entry,) = normalize_highlights([{"id": "a", "start": "2", "end": "7.0"}])
        assert (entry.start, entry.end) == (2, 7)

    def test_unusable_offsets_become_zero(self) -> None:
        """A garbage start coerces to 0; the entry survives if end is valid."""
        (entry,) = normalize_highlights([{"id": "a", "start": "abc", "end": 4}])
        assert entry.start == 0

    def test_missing_id_generated(self) -> None:
        entry = normalize_entry({"start": 0, "end": 1})
        assert entry is not None
        assert entry.id.startswith("hl_")

    def test_non_string_text_and_annotation_ignored(self) -> None:
        entry = normalize_entry(
            {"id": "a", "start": 0, "end": 1, "text": 5, "annotation": ["x"]}
        )
        assert entry is not None
        assert entry.text == ""
        assert entry.annotation is None

    def test_output_is_sorted_and_non_empty(self) -> None:
        """Every normalised entry has 0 <= start < end, in ascending order."""
        raw = [
            {"id": "c", "start": 20, "end": 22},
            {"id": "x", "start": 4, "end": 1},
            {"id": "a", "start": 0, "end": 9},
            {"id": "b", "start": 2.9, "end": 3.1},
        ]
        entries = normalize_highlights(raw)
        assert all(0 <= e.start < e.end for e in entries)
        starts = [e.start for e in entries]
        assert starts == sorted(starts)

    def test_storage_round_trip_is_stable(self) -> None:
        raw = [{"id": "a", "start": 0, "end": 3, "text": "The", "annotation": "n"}]
        once = entries_to_storage(normalize_highlights(raw))
        assert entries_to_storage(normalize_highlights(once)) == once


class TestFindOverlapping:
    """Target selection for REMOVE mode."""

    def test_lowest_start_wins(self) -> None:
        entries = normalize_highlights(
            [
                {"id": "late", "start": 10, "end": 15},
                {"id": "early", "start": 0, "end": 5},
            ]
        )
        target = find_overlapping(entries, 2, 12)
        assert target is not None
        assert target.id == "early"

    def test_no_overlap(self) -> None:
        entries = normalize_highlights([{"id": "a", "start": 0, "end": 5}])
        assert find_overlapping(entries, 5, 9) is None
