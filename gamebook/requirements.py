"""Requirement variants gating which choices are offered."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Tuple, Union

from .errors import ContentError
from .session import GameSession


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateAfter:
    moment: datetime


@dataclass(frozen=True)
class DateBefore:
    moment: datetime


@dataclass(frozen=True)
class CharacterIs:
    name: str


@dataclass(frozen=True)
class CharacterIsNot:
    name: str


@dataclass(frozen=True)
class LocaleIs:
    locale: str


@dataclass(frozen=True)
class LocaleIsNot:
    locale: str


@dataclass(frozen=True)
class Visited:
    entry_id: str


@dataclass(frozen=True)
class NotVisited:
    entry_id: str


@dataclass(frozen=True)
class PreviousEntryIs:
    entry_id: str


@dataclass(frozen=True)
class HasItem:
    item: str


@dataclass(frozen=True)
class MinSkill:
    skill: str
    min_value: int


@dataclass(frozen=True)
class IsNight:
    expected: bool = True


@dataclass(frozen=True)
class FullHealth:
    expected: bool = True


@dataclass(frozen=True)
class MeetingScheduled:
    entry_id: str


@dataclass(frozen=True)
class JourneyDay:
    day: int


Requirement = Union[
    DateAfter,
    DateBefore,
    CharacterIs,
    CharacterIsNot,
    LocaleIs,
    LocaleIsNot,
    Visited,
    NotVisited,
    PreviousEntryIs,
    HasItem,
    MinSkill,
    IsNight,
    FullHealth,
    MeetingScheduled,
    JourneyDay,
]


def parse_date(value: Any) -> datetime:
    """Return ``value`` (ISO string, date or datetime) as a datetime."""

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ContentError(f"Invalid date {value!r}") from exc


def parse_requirements(raw: Mapping[str, Any] | None) -> Tuple[Requirement, ...]:
    """Convert a raw requirement mapping into requirement variants."""

    if not raw:
        return ()
    if not isinstance(raw, Mapping):
        raise ContentError(f"Requirements must be a mapping, got {raw!r}")
    parsed: List[Requirement] = []
    for key, value in raw.items():
        if key == "dateAfter":
            parsed.append(DateAfter(parse_date(value)))
        elif key == "dateBefore":
            parsed.append(DateBefore(parse_date(value)))
        elif key == "character":
            parsed.append(CharacterIs(str(value)))
        elif key == "characterNot":
            parsed.append(CharacterIsNot(str(value)))
        elif key == "currentLocale":
            parsed.append(LocaleIs(str(value)))
        elif key == "notCurrentLocale":
            parsed.append(LocaleIsNot(str(value)))
        elif key == "hasVisited":
            parsed.append(Visited(str(value)))
        elif key == "hasNotVisited":
            parsed.append(NotVisited(str(value)))
        elif key == "previousEntry":
            parsed.append(PreviousEntryIs(str(value)))
        elif key == "inventory":
            parsed.append(HasItem(str(value)))
        elif key == "skill":
            if not isinstance(value, Mapping) or "name" not in value:
                raise ContentError(f"Skill requirement needs a name: {value!r}")
            try:
                minimum = int(value.get("minValue", 1))
            except (TypeError, ValueError) as exc:
                raise ContentError(f"Invalid skill minimum in {value!r}") from exc
            parsed.append(MinSkill(str(value["name"]), minimum))
        elif key in ("isNight", "isNotNight"):
            if value:
                parsed.append(IsNight(key == "isNight"))
        elif key in ("fullHealth", "notFullHealth"):
            if value:
                parsed.append(FullHealth(key == "fullHealth"))
        elif key == "scheduledMeeting":
            if isinstance(value, Mapping):
                value = value.get("entry")
            if value is None:
                raise ContentError("scheduledMeeting requirement needs an entry")
            parsed.append(MeetingScheduled(str(value)))
        elif key == "dayOfJourney":
            try:
                parsed.append(JourneyDay(int(value)))
            except (TypeError, ValueError) as exc:
                raise ContentError(f"Invalid dayOfJourney {value!r}") from exc
        else:
            logger.warning("Ignoring unknown requirement %r", key)
    return tuple(parsed)


def _is_night(moment: datetime, night_start: int, night_end: int) -> bool:
    return moment.hour >= night_start or moment.hour < night_end


def requirement_met(
    requirement: Requirement,
    session: GameSession,
    current_date: datetime,
    *,
    night_start_hour: int = 21,
    night_end_hour: int = 5,
) -> bool:
    """Return whether a single requirement holds for ``session``."""

    if isinstance(requirement, DateAfter):
        return current_date > requirement.moment
    if isinstance(requirement, DateBefore):
        return current_date < requirement.moment
    if isinstance(requirement, CharacterIs):
        return session.character == requirement.name
    if isinstance(requirement, CharacterIsNot):
        return session.character != requirement.name
    if isinstance(requirement, LocaleIs):
        return session.current_locale == requirement.locale
    if isinstance(requirement, LocaleIsNot):
        return session.current_locale != requirement.locale
    if isinstance(requirement, Visited):
        return requirement.entry_id in session.visited_entries
    if isinstance(requirement, NotVisited):
        return requirement.entry_id not in session.visited_entries
    if isinstance(requirement, PreviousEntryIs):
        return session.previous_entry == requirement.entry_id
    if isinstance(requirement, HasItem):
        return session.has_item(requirement.item)
    if isinstance(requirement, MinSkill):
        return session.skills.get(requirement.skill, 0) >= requirement.min_value
    if isinstance(requirement, IsNight):
        night = _is_night(current_date, night_start_hour, night_end_hour)
        return night == requirement.expected
    if isinstance(requirement, FullHealth):
        return (session.health >= session.max_health) == requirement.expected
    if isinstance(requirement, MeetingScheduled):
        return session.find_meeting(requirement.entry_id) is not None
    if isinstance(requirement, JourneyDay):
        return session.journey_day() == requirement.day
    raise TypeError(f"Unsupported requirement {requirement!r}")


def satisfies(
    requirements: Iterable[Requirement] | None,
    session: GameSession,
    current_date: datetime | None = None,
    *,
    night_start_hour: int = 21,
    night_end_hour: int = 5,
) -> bool:
    """Return ``True`` when every requirement holds; no requirements pass."""

    if not requirements:
        return True
    moment = current_date or session.current_date
    for requirement in requirements:
        if not requirement_met(
            requirement,
            session,
            moment,
            night_start_hour=night_start_hour,
            night_end_hour=night_end_hour,
        ):
            logger.debug("Requirement %r not met for %s", requirement, session.character)
            return False
    return True


__all__ = [
    "CharacterIs",
    "CharacterIsNot",
    "DateAfter",
    "DateBefore",
    "FullHealth",
    "HasItem",
    "IsNight",
    "JourneyDay",
    "LocaleIs",
    "LocaleIsNot",
    "MeetingScheduled",
    "MinSkill",
    "NotVisited",
    "PreviousEntryIs",
    "Requirement",
    "Visited",
    "parse_date",
    "parse_requirements",
    "requirement_met",
    "satisfies",
]
