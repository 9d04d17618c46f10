"""Opening-hours style gating for location tables."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence, Tuple

from .constants import WEEKDAYS
from .errors import ContentError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilitySpec:
    """When, and for whom, a location can be visited."""

    always_open: bool = False
    days_of_week: Tuple[str, ...] | None = None
    hours: Tuple[int, ...] | None = None
    character: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> "AvailabilitySpec":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ContentError(f"Availability must be a mapping, got {data!r}")
        days = data.get("daysOfWeek")
        hours = data.get("hours")
        if hours is not None:
            try:
                hours = tuple(int(value) for value in hours)
            except (TypeError, ValueError) as exc:
                raise ContentError(f"Invalid opening hours {hours!r}") from exc
            if len(hours) % 2:
                logger.warning("Opening hours %r end with an unpaired value", hours)
        character = data.get("character")
        return cls(
            always_open=bool(data.get("alwaysOpen", False)),
            days_of_week=tuple(str(day) for day in days) if days is not None else None,
            hours=hours,
            character=str(character) if character is not None else None,
        )


def weekday_name(moment: datetime) -> str:
    return WEEKDAYS[moment.weekday()]


def within_hours(hour: int, hours: Sequence[int]) -> bool:
    """Return whether ``hour`` falls in any half-open ``[start, end)`` pair."""

    for index in range(0, len(hours) - 1, 2):
        if hours[index] <= hour < hours[index + 1]:
            return True
    return False


def is_available(
    spec: AvailabilitySpec, current_date: datetime, current_character: str
) -> bool:
    """Return ``True`` when the location is open to ``current_character`` now."""

    if spec.always_open:
        return True
    if spec.days_of_week is not None and weekday_name(current_date) not in spec.days_of_week:
        return False
    if spec.hours is not None and not within_hours(current_date.hour, spec.hours):
        return False
    if spec.character is not None and spec.character != current_character:
        return False
    return True


__all__ = ["AvailabilitySpec", "is_available", "weekday_name", "within_hours"]
