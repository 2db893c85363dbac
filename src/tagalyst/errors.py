"""Exception types raised by tagalyst collaborators."""

from __future__ import annotations


class TagalystError(Exception):
    """Base class for tagalyst errors."""


class StorageError(TagalystError):
    """A message value could not be read from or written to storage."""
