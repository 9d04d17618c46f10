"""Exception types raised by the gamebook engine."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations


class GamebookError(RuntimeError):
    """Base class for engine errors."""


class EntryNotFound(GamebookError):
    """Raised when an entry id is missing from the content store."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Entry with ID {entry_id} not found")
        self.entry_id = entry_id


class LocationTableNotFound(GamebookError):
    """Raised when a location table name is missing from the content store."""

    def __init__(self, location_type: str) -> None:
        super().__init__(f"{location_type} Location Table not found")
        self.location_type = location_type


class InvalidDiceSpec(GamebookError):
    """Raised when a dice expression cannot be parsed."""


class ContentError(GamebookError):
    """Raised when a content record does not match the expected shape."""


class ContentLoadFailure(GamebookError):
    """Raised when any content collection fails to load."""


class SkillAllocationError(GamebookError):
    """Raised when allocated skill points exceed the available budget."""


__all__ = [
    "GamebookError",
    "EntryNotFound",
    "LocationTableNotFound",
    "InvalidDiceSpec",
    "ContentError",
    "ContentLoadFailure",
    "SkillAllocationError",
]
