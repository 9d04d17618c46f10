"""Mutable per-investigator game session state."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Set

from .config import GameConfig


logger = logging.getLogger(__name__)

DEFAULT_HEALTH = 100
DEFAULT_SANITY = 100

# Template keys that are not characteristic values.
_TEMPLATE_RESERVED = {
    "name",
    "health",
    "sanity",
    "skills",
    "inventory",
    "unallocatedPoints",
    "portrait",
    "description",
    "DB",
}


@dataclass
class CombatState:
    """The encounter currently running, if any."""

    is_active: bool = False
    opponent: str = ""
    opponent_health: int = 0
    opponent_max_health: int = 0
    attack_chance: int = 0
    damage: Any = None
    rounds_until_retaliation: int = 0
    win: str = ""
    lose: str = ""

    def to_payload(self) -> Dict[str, Any]:
        if not self.is_active:
            return {"isActive": False}
        return {
            "isActive": True,
            "opponent": {
                "name": self.opponent,
                "health": self.opponent_health,
                "maxHealth": self.opponent_max_health,
                "attackChance": self.attack_chance,
                "damage": self.damage,
                "roundsUntilRetaliation": self.rounds_until_retaliation,
            },
            "outcome": {"win": self.win, "lose": self.lose},
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> "CombatState":
        data = data or {}
        if not data.get("isActive"):
            return cls()
        opponent = data.get("opponent") or {}
        outcome = data.get("outcome") or {}
        return cls(
            is_active=True,
            opponent=str(opponent.get("name") or ""),
            opponent_health=_as_int(opponent.get("health", 0), 0),
            opponent_max_health=_as_int(opponent.get("maxHealth", 0), 0),
            attack_chance=_as_int(opponent.get("attackChance", 0), 0),
            damage=opponent.get("damage"),
            rounds_until_retaliation=_as_int(opponent.get("roundsUntilRetaliation", 0), 0),
            win=str(outcome.get("win") or ""),
            lose=str(outcome.get("lose") or ""),
        )


@dataclass
class GameSession:
    """Hold everything that changes while an investigator plays."""

    character: str
    current_entry: str
    current_date: datetime
    health: int = DEFAULT_HEALTH
    sanity: int = DEFAULT_SANITY
    max_health: int = DEFAULT_HEALTH
    inventory: List[str] = field(default_factory=list)
    skills: Dict[str, int] = field(default_factory=dict)
    stats: Dict[str, int] = field(default_factory=dict)
    visited_entries: Set[str] = field(default_factory=set)
    previous_entry: str | None = None
    daily_skill_usage: Dict[str, Dict[str, str]] = field(default_factory=dict)
    daily_choice_usage: Dict[str, Dict[str, int]] = field(default_factory=dict)
    combat: CombatState = field(default_factory=CombatState)
    current_locale: str = "Arkham"
    on_ship: bool = False
    ship_journey_start_date: datetime | None = None
    scheduled_meetings: List[Dict[str, Any]] = field(default_factory=list)
    unallocated_points: int = 0
    pending_message: str = ""
    damage_bonus: str = ""

    @classmethod
    def from_template(
        cls,
        name: str,
        template: Mapping[str, Any],
        *,
        start_entry: str,
        config: GameConfig,
        visited_entries: Iterable[str] | None = None,
    ) -> "GameSession":
        """Build a fresh session for ``name`` from its investigator template."""

        health = _as_int(template.get("health", DEFAULT_HEALTH), DEFAULT_HEALTH)
        sanity = _as_int(template.get("sanity", DEFAULT_SANITY), DEFAULT_SANITY)
        skills = {
            str(skill): _as_int(value, 0)
            for skill, value in dict(template.get("skills") or {}).items()
        }
        stats = {
            str(key): _as_int(value, 0)
            for key, value in template.items()
            if key not in _TEMPLATE_RESERVED and isinstance(value, (int, float))
        }
        inventory: List[str] = []
        for item in template.get("inventory") or []:
            text = str(item)
            if text not in inventory:
                inventory.append(text)
        session = cls(
            character=name,
            current_entry=start_entry,
            current_date=config.start_date,
            health=health,
            sanity=sanity,
            max_health=health,
            inventory=inventory,
            skills=skills,
            stats=stats,
            visited_entries=set(visited_entries or ()),
            current_locale=config.default_locale,
            unallocated_points=max(
                0, _as_int(template.get("unallocatedPoints", 0), 0)
            ),
            damage_bonus=_damage_bonus(template.get("DB")),
        )
        logger.debug(
            "Built session for %s (health=%d, sanity=%d, %d skills)",
            name,
            health,
            sanity,
            len(skills),
        )
        return session

    def adjust_health(self, amount: int) -> int:
        """Add ``amount`` to health and return the new value."""

        self.health += amount
        return self.health

    def adjust_sanity(self, amount: int) -> int:
        """Add ``amount`` to sanity and return the new value."""

        self.sanity += amount
        return self.sanity

    def add_item(self, item: str) -> bool:
        """Add ``item`` unless it is already held; return whether it was added."""

        if item in self.inventory:
            return False
        self.inventory.append(item)
        return True

    def remove_item(self, item: str) -> bool:
        if item not in self.inventory:
            return False
        self.inventory.remove(item)
        return True

    def has_item(self, item: str) -> bool:
        return item in self.inventory

    def advance_clock(self, hours: float) -> datetime:
        """Move the in-world clock forward by ``hours``."""

        self.current_date = self.current_date + timedelta(hours=hours)
        return self.current_date

    def set_hour(self, hour: int) -> datetime:
        """Jump to ``hour``, rolling over to the next day when it already passed."""

        target = self.current_date
        if hour < target.hour:
            target = target + timedelta(days=1)
        self.current_date = target.replace(hour=hour, minute=0, second=0, microsecond=0)
        return self.current_date

    def advance_days(self, days: int, hour: int) -> datetime:
        target = self.current_date + timedelta(days=days)
        self.current_date = target.replace(hour=hour, minute=0, second=0, microsecond=0)
        return self.current_date

    def mark_visited(self, entry_id: str) -> None:
        self.visited_entries.add(entry_id)

    def _today(self) -> str:
        return self.current_date.date().isoformat()

    def record_skill_usage(self, entry_id: str, skill: str) -> None:
        """Remember that ``skill`` was used at ``entry_id`` today."""

        self.daily_skill_usage.setdefault(entry_id, {})[skill] = self._today()

    def can_use_skill(self, entry_id: str, skill: str) -> bool:
        return self.daily_skill_usage.get(entry_id, {}).get(skill) != self._today()

    def record_choice(self, entry_id: str) -> int:
        """Count a choice taken at ``entry_id`` today and return the new total."""

        today = self.daily_choice_usage.setdefault(self._today(), {})
        today[entry_id] = today.get(entry_id, 0) + 1
        return today[entry_id]

    def choices_taken_today(self, entry_id: str) -> int:
        return self.daily_choice_usage.get(self._today(), {}).get(entry_id, 0)

    def board_ship(self) -> None:
        self.on_ship = True
        self.ship_journey_start_date = self.current_date

    def leave_ship(self) -> None:
        self.on_ship = False
        self.ship_journey_start_date = None

    def journey_day(self) -> int | None:
        """Return whole calendar days since boarding, or ``None`` ashore."""

        if not self.on_ship or self.ship_journey_start_date is None:
            return None
        return (self.current_date.date() - self.ship_journey_start_date.date()).days

    def find_meeting(self, entry_id: str) -> Dict[str, Any] | None:
        for meeting in self.scheduled_meetings:
            if str(meeting.get("entry")) == entry_id:
                return meeting
        return None

    def complete_meeting(self, entry_id: str) -> Dict[str, Any] | None:
        """Drop the meeting at ``entry_id`` and move the clock to its hour."""

        meeting = self.find_meeting(entry_id)
        if meeting is None:
            return None
        self.scheduled_meetings = [
            other for other in self.scheduled_meetings if str(other.get("entry")) != entry_id
        ]
        if meeting.get("time") is not None:
            self.set_hour(int(meeting["time"]))
        return meeting

    def stat_block(self) -> Dict[str, int]:
        """Return characteristic values including the live health and sanity."""

        block = dict(self.stats)
        block["health"] = self.health
        block["sanity"] = self.sanity
        return block

    def to_payload(self) -> Dict[str, Any]:
        """Return a JSON-serialisable snapshot of the session."""

        return {
            "character": self.character,
            "currentEntry": self.current_entry,
            "previousEntry": self.previous_entry,
            "currentDate": self.current_date.isoformat(),
            "health": self.health,
            "sanity": self.sanity,
            "maxHealth": self.max_health,
            "inventory": list(self.inventory),
            "skills": dict(self.skills),
            "stats": dict(self.stats),
            "visitedEntries": sorted(self.visited_entries),
            "dailySkillUsage": copy.deepcopy(self.daily_skill_usage),
            "dailyChoiceUsage": copy.deepcopy(self.daily_choice_usage),
            "combat": self.combat.to_payload(),
            "currentLocale": self.current_locale,
            "onShip": self.on_ship,
            "shipJourneyStartDate": (
                self.ship_journey_start_date.isoformat()
                if self.ship_journey_start_date
                else None
            ),
            "scheduledMeetings": copy.deepcopy(self.scheduled_meetings),
            "unallocatedPoints": self.unallocated_points,
            "pendingMessage": self.pending_message,
            "damageBonus": self.damage_bonus,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "GameSession":
        """Rebuild a session from :meth:`to_payload` output."""

        ship_start = data.get("shipJourneyStartDate")
        choice_usage = data.get("dailyChoiceUsage") or {}
        return cls(
            character=str(data["character"]),
            current_entry=str(data["currentEntry"]),
            previous_entry=data.get("previousEntry"),
            current_date=datetime.fromisoformat(str(data["currentDate"])),
            health=_as_int(data.get("health", DEFAULT_HEALTH), DEFAULT_HEALTH),
            sanity=_as_int(data.get("sanity", DEFAULT_SANITY), DEFAULT_SANITY),
            max_health=_as_int(data.get("maxHealth", DEFAULT_HEALTH), DEFAULT_HEALTH),
            inventory=[str(item) for item in data.get("inventory") or []],
            skills={str(k): _as_int(v, 0) for k, v in (data.get("skills") or {}).items()},
            stats={str(k): _as_int(v, 0) for k, v in (data.get("stats") or {}).items()},
            visited_entries={str(item) for item in data.get("visitedEntries") or []},
            daily_skill_usage=copy.deepcopy(dict(data.get("dailySkillUsage") or {})),
            daily_choice_usage={
                str(day): {str(k): _as_int(v, 0) for k, v in counts.items()}
                for day, counts in choice_usage.items()
            },
            combat=CombatState.from_payload(data.get("combat")),
            current_locale=str(data.get("currentLocale") or "Arkham"),
            on_ship=bool(data.get("onShip", False)),
            ship_journey_start_date=(
                datetime.fromisoformat(str(ship_start)) if ship_start else None
            ),
            scheduled_meetings=copy.deepcopy(list(data.get("scheduledMeetings") or [])),
            unallocated_points=_as_int(data.get("unallocatedPoints", 0), 0),
            pending_message=str(data.get("pendingMessage") or ""),
            damage_bonus=_damage_bonus(data.get("damageBonus")),
        )


def _as_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Expected an integer but got %r; using %d", value, fallback)
        return fallback


def _damage_bonus(value: Any) -> str:
    """Normalise a damage bonus such as ``"+1D4"``; ``"None"`` means no bonus."""

    if value is None:
        return ""
    text = str(value).strip().replace(" ", "")
    if not text or text.lower() == "none" or text == "0":
        return ""
    if text[0] not in "+-":
        text = f"+{text}"
    return text


__all__ = ["CombatState", "GameSession", "DEFAULT_HEALTH", "DEFAULT_SANITY"]
