"""Effect variants attached to choices and the applicator that runs them."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Tuple, Union

from .errors import ContentError
from .session import GameSession


logger = logging.getLogger(__name__)

HEALTH_CHANNEL = "health"
SANITY_CHANNEL = "sanity"


@dataclass(frozen=True)
class HealthSet:
    value: int


@dataclass(frozen=True)
class SanitySet:
    value: int


@dataclass(frozen=True)
class InventoryGrant:
    items: Tuple[str, ...]


@dataclass(frozen=True)
class TimeAdvance:
    hours: float


@dataclass(frozen=True)
class InventoryRemove:
    items: Tuple[str, ...]


@dataclass(frozen=True)
class SkillAdjust:
    deltas: Tuple[Tuple[str, int], ...]


@dataclass(frozen=True)
class LocaleSet:
    locale: str


@dataclass(frozen=True)
class DayAdvance:
    days: int
    hour: int = 6


@dataclass(frozen=True)
class HourSet:
    hour: int


@dataclass(frozen=True)
class Message:
    text: str


@dataclass(frozen=True)
class MeetingSchedule:
    entry: str
    hour: int | None = None
    location: str = ""
    meeting_with: str = ""


@dataclass(frozen=True)
class MeetingComplete:
    entry: str


@dataclass(frozen=True)
class ShipPassage:
    aboard: bool


DirectEffect = Union[
    HealthSet,
    SanitySet,
    InventoryGrant,
    TimeAdvance,
    InventoryRemove,
    SkillAdjust,
    LocaleSet,
    DayAdvance,
    HourSet,
    Message,
    MeetingSchedule,
    MeetingComplete,
    ShipPassage,
]


@dataclass(frozen=True)
class DirectEffects:
    """Ordered bundle of state changes applied before a direct jump."""

    effects: Tuple[DirectEffect, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.effects)


@dataclass(frozen=True)
class SkillCheckBranch:
    """Skill check whose verdict selects the next entry."""

    skill: str
    success: str
    failure: str
    difficulty: str = "normal"
    tries: Any = None
    opposed_value: int | None = None
    bonus: int = 0
    daily_limit: int = 0


@dataclass(frozen=True)
class Outcome:
    description: str = ""
    damage: Any = None
    next_entry: str | None = None


@dataclass(frozen=True)
class OutcomeTable:
    """Dice roll whose result picks one of several keyed outcomes."""

    dice: Any
    outcomes: Tuple[Tuple[str, Outcome], ...]

    def as_mapping(self) -> dict:
        return dict(self.outcomes)


@dataclass(frozen=True)
class Opponent:
    name: str
    health: int
    attack_chance: int = 0
    damage: Any = "1D3"
    max_health: int = 0
    rounds_until_retaliation: int = 0


@dataclass(frozen=True)
class Combat:
    """Start a fight, or attack in the fight already running.

    ``win`` and ``lose`` name the entries shown once either side drops to
    zero health.
    """

    opponent: Opponent
    win: str
    lose: str
    action: str = "fight"
    weapon_damage: Any = None


@dataclass(frozen=True)
class EndGame:
    """Signals the death of the active investigator."""


Effect = Union[DirectEffects, SkillCheckBranch, OutcomeTable, Combat, EndGame]

COMBAT_ACTIONS = ("fight", "brawl", "handgun")

_DIRECT_KEYS = (
    "health",
    "sanity",
    "inventory",
    "time",
    "advanceTime",
    "addItem",
    "removeItem",
    "skills",
    "setLocale",
    "dayAdvance",
    "defaultHour",
    "setHour",
    "message",
    "scheduleMeeting",
    "meetingCompleted",
    "onShip",
)
_CHECK_KEYS = ("check", "dailyLimit")
_OUTCOME_KEYS = ("diceRoll", "outcomes")


def _as_items(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    raise ContentError(f"Expected an item or list of items, got {value!r}")


def _as_int(value: Any, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ContentError(f"Invalid {label} value {value!r}") from exc


def _as_hour(value: Any, label: str) -> int:
    hour = _as_int(value, label)
    if not 0 <= hour <= 23:
        raise ContentError(f"{label} must be an hour between 0 and 23, got {value!r}")
    return hour


def _warn_dropped(raw: Mapping[str, Any], allowed: Tuple[str, ...], path: str) -> None:
    dropped = sorted(key for key in raw if key not in allowed)
    if dropped:
        logger.warning(
            "Discarding effect fields %s beside %s; a control path excludes direct effects",
            ", ".join(dropped),
            path,
        )


def _parse_check(raw: Mapping[str, Any]) -> SkillCheckBranch:
    check = raw["check"]
    if not isinstance(check, Mapping):
        raise ContentError(f"Skill check must be a mapping, got {check!r}")
    missing = [key for key in ("skill", "success", "failure") if key not in check]
    if missing:
        raise ContentError(f"Skill check missing {', '.join(missing)}: {check!r}")
    opposed = check.get("opposedValue")
    return SkillCheckBranch(
        skill=str(check["skill"]),
        success=str(check["success"]),
        failure=str(check["failure"]),
        difficulty=str(check.get("difficulty") or "normal"),
        tries=check.get("tries"),
        opposed_value=_as_int(opposed, "opposedValue") if opposed is not None else None,
        bonus=_as_int(check.get("bonus", 0), "bonus"),
        daily_limit=_as_int(raw.get("dailyLimit", 0) or 0, "dailyLimit"),
    )


def _parse_outcomes(raw: Mapping[str, Any]) -> OutcomeTable:
    outcomes = raw.get("outcomes")
    if not isinstance(outcomes, Mapping) or not outcomes:
        raise ContentError(f"diceRoll needs an outcomes mapping: {raw!r}")
    parsed: List[Tuple[str, Outcome]] = []
    for key, value in outcomes.items():
        if not isinstance(value, Mapping):
            raise ContentError(f"Outcome {key!r} must be a mapping")
        next_entry = value.get("nextEntry")
        parsed.append(
            (
                str(key),
                Outcome(
                    description=str(value.get("description") or ""),
                    damage=value.get("damage"),
                    next_entry=str(next_entry) if next_entry is not None else None,
                ),
            )
        )
    return OutcomeTable(dice=raw["diceRoll"], outcomes=tuple(parsed))


def _parse_combat(raw: Any) -> Combat:
    if not isinstance(raw, Mapping):
        raise ContentError(f"Combat must be a mapping, got {raw!r}")
    missing = [key for key in ("opponent", "win", "lose") if key not in raw]
    if missing:
        raise ContentError(f"Combat missing {', '.join(missing)}: {raw!r}")
    foe = raw["opponent"]
    if not isinstance(foe, Mapping) or "name" not in foe or "health" not in foe:
        raise ContentError(f"Combat opponent needs a name and health: {foe!r}")
    action = str(raw.get("type") or "fight").lower()
    if action not in COMBAT_ACTIONS:
        raise ContentError(f"Unknown combat action {action!r}")
    health = _as_int(foe["health"], "opponent health")
    opponent = Opponent(
        name=str(foe["name"]),
        health=health,
        attack_chance=_as_int(foe.get("attackChance", 0), "attackChance"),
        damage=foe.get("damage") or "1D3",
        max_health=_as_int(foe.get("maxHealth", health), "maxHealth"),
        rounds_until_retaliation=_as_int(
            foe.get("roundsUntilRetaliation", 0) or 0, "roundsUntilRetaliation"
        ),
    )
    return Combat(
        opponent=opponent,
        win=str(raw["win"]),
        lose=str(raw["lose"]),
        action=action,
        weapon_damage=raw.get("weaponDamage"),
    )


def _parse_meeting(raw: Any) -> MeetingSchedule:
    if not isinstance(raw, Mapping) or "entry" not in raw:
        raise ContentError(f"scheduleMeeting needs an entry: {raw!r}")
    hour = raw.get("time")
    return MeetingSchedule(
        entry=str(raw["entry"]),
        hour=_as_hour(hour, "meeting time") if hour is not None else None,
        location=str(raw.get("location") or ""),
        meeting_with=str(raw.get("meetingWith") or ""),
    )


def parse_effects(raw: Mapping[str, Any] | None) -> Effect:
    """Convert a raw effect mapping into exactly one effect variant."""

    if not raw:
        return DirectEffects()
    if not isinstance(raw, Mapping):
        raise ContentError(f"Effects must be a mapping, got {raw!r}")
    if raw.get("endGame"):
        _warn_dropped(raw, ("endGame",), "endGame")
        return EndGame()
    if "combat" in raw:
        _warn_dropped(raw, ("combat",), "combat")
        return _parse_combat(raw["combat"])
    if "check" in raw:
        _warn_dropped(raw, _CHECK_KEYS, "check")
        return _parse_check(raw)
    if "diceRoll" in raw:
        _warn_dropped(raw, _OUTCOME_KEYS, "diceRoll")
        return _parse_outcomes(raw)

    effects: List[DirectEffect] = []
    if raw.get("health") is not None:
        effects.append(HealthSet(_as_int(raw["health"], "health")))
    if raw.get("sanity") is not None:
        effects.append(SanitySet(_as_int(raw["sanity"], "sanity")))
    if raw.get("inventory"):
        effects.append(InventoryGrant(_as_items(raw["inventory"])))
    hours = raw.get("time", raw.get("advanceTime"))
    if hours:
        try:
            effects.append(TimeAdvance(float(hours)))
        except (TypeError, ValueError) as exc:
            raise ContentError(f"Invalid time value {hours!r}") from exc
    if raw.get("addItem"):
        effects.append(InventoryGrant(_as_items(raw["addItem"])))
    if raw.get("removeItem"):
        effects.append(InventoryRemove(_as_items(raw["removeItem"])))
    if raw.get("skills"):
        skills = raw["skills"]
        if not isinstance(skills, Mapping):
            raise ContentError(f"Skill changes must be a mapping, got {skills!r}")
        effects.append(
            SkillAdjust(
                tuple((str(name), _as_int(delta, name)) for name, delta in skills.items())
            )
        )
    if raw.get("setLocale"):
        effects.append(LocaleSet(str(raw["setLocale"])))
    if raw.get("dayAdvance"):
        effects.append(
            DayAdvance(
                _as_int(raw["dayAdvance"], "dayAdvance"),
                _as_hour(raw.get("defaultHour", 6), "defaultHour"),
            )
        )
    if raw.get("setHour") is not None:
        effects.append(HourSet(_as_hour(raw["setHour"], "setHour")))
    if raw.get("message"):
        effects.append(Message(str(raw["message"])))
    if raw.get("scheduleMeeting"):
        effects.append(_parse_meeting(raw["scheduleMeeting"]))
    if raw.get("meetingCompleted"):
        completed = raw["meetingCompleted"]
        if isinstance(completed, Mapping):
            completed = completed.get("entry")
        if completed is None:
            raise ContentError(f"meetingCompleted needs an entry: {raw['meetingCompleted']!r}")
        effects.append(MeetingComplete(str(completed)))
    if raw.get("onShip") is not None:
        effects.append(ShipPassage(bool(raw["onShip"])))
    for key in raw:
        if key not in _DIRECT_KEYS:
            logger.warning("Ignoring unknown effect %r", key)
    return DirectEffects(tuple(effects))


Notifier = Callable[[str, str], None]


class EffectApplicator:
    """Apply direct effects to a session, announcing stat changes."""

    def __init__(self, notify: Notifier | None = None) -> None:
        self.notify = notify

    def _announce(self, channel: str, label: str, amount: int) -> None:
        if amount == 0 or self.notify is None:
            return
        verb = "increased" if amount > 0 else "decreased"
        self.notify(channel, f"{label} {verb} by {abs(amount)}")

    def change_health(self, session: GameSession, amount: int) -> int:
        """Add ``amount`` to health through the shared additive path."""

        value = session.adjust_health(amount)
        self._announce(HEALTH_CHANNEL, "Health", amount)
        return value

    def change_sanity(self, session: GameSession, amount: int) -> int:
        value = session.adjust_sanity(amount)
        self._announce(SANITY_CHANNEL, "Sanity", amount)
        return value

    def apply(self, bundle: DirectEffects, session: GameSession) -> None:
        """Apply every effect in ``bundle`` in order."""

        for effect in bundle.effects:
            self.apply_one(effect, session)

    def apply_one(self, effect: DirectEffect, session: GameSession) -> None:
        if isinstance(effect, HealthSet):
            self.change_health(session, effect.value - session.health)
        elif isinstance(effect, SanitySet):
            self.change_sanity(session, effect.value - session.sanity)
        elif isinstance(effect, InventoryGrant):
            for item in effect.items:
                if session.add_item(item):
                    logger.info("%s gained %s", session.character, item)
        elif isinstance(effect, TimeAdvance):
            session.advance_clock(effect.hours)
        elif isinstance(effect, InventoryRemove):
            for item in effect.items:
                if session.remove_item(item):
                    logger.info("%s lost %s", session.character, item)
        elif isinstance(effect, SkillAdjust):
            for skill, delta in effect.deltas:
                session.skills[skill] = session.skills.get(skill, 0) + delta
        elif isinstance(effect, LocaleSet):
            session.current_locale = effect.locale
        elif isinstance(effect, DayAdvance):
            session.advance_days(effect.days, effect.hour)
        elif isinstance(effect, HourSet):
            session.set_hour(effect.hour)
        elif isinstance(effect, Message):
            session.pending_message = effect.text
        elif isinstance(effect, MeetingSchedule):
            session.scheduled_meetings.append(
                {
                    "location": effect.location,
                    "entry": effect.entry,
                    "time": effect.hour,
                    "meetingWith": effect.meeting_with,
                }
            )
        elif isinstance(effect, MeetingComplete):
            if session.complete_meeting(effect.entry) is None:
                logger.warning("No meeting scheduled at entry %s", effect.entry)
        elif isinstance(effect, ShipPassage):
            if effect.aboard:
                session.board_ship()
            else:
                session.leave_ship()
        else:
            raise TypeError(f"Unsupported effect {effect!r}")


__all__ = [
    "COMBAT_ACTIONS",
    "Combat",
    "DayAdvance",
    "DirectEffect",
    "DirectEffects",
    "Effect",
    "EffectApplicator",
    "EndGame",
    "HEALTH_CHANNEL",
    "HealthSet",
    "HourSet",
    "InventoryGrant",
    "InventoryRemove",
    "LocaleSet",
    "MeetingComplete",
    "MeetingSchedule",
    "Message",
    "Opponent",
    "Outcome",
    "OutcomeTable",
    "SANITY_CHANNEL",
    "SanitySet",
    "ShipPassage",
    "SkillAdjust",
    "SkillCheckBranch",
    "TimeAdvance",
    "parse_effects",
]
