"""Dice rolling and percentile skill-check resolution."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Protocol, Tuple

from .constants import (
    CUSTOM_ROLL_BASE_BONUS,
    CUSTOM_ROLL_HOURLY_BONUS,
    CUSTOM_ROLL_ITEM_BONUS,
    CUSTOM_ROLL_SKILL,
    DIFFICULTY_MODIFIERS,
)
from .errors import InvalidDiceSpec


logger = logging.getLogger(__name__)

_DICE_PATTERN = re.compile(r"^\s*(\d+)\s*D\s*(\d+)\s*$", re.IGNORECASE)
_DAMAGE_SPLIT = re.compile(r"([+\-])")

MAX_DICE_COUNT = 100

SKILL_CHECK_CHANNEL = "skillCheck"

Notifier = Callable[[str, str], None]


class RandomSource(Protocol):
    """Interface for the uniform integer source used by every roll."""

    def randint(self, a: int, b: int) -> int:
        """Return a uniform integer in ``[a, b]``."""


_default_random = random.Random()


def parse_dice(spec: Any) -> Tuple[int, int]:
    """Return ``(count, sides)`` for a dice spec or raise :class:`InvalidDiceSpec`."""

    if isinstance(spec, bool):
        raise InvalidDiceSpec(f"Invalid input for dice roll: {spec!r}")
    if isinstance(spec, str):
        match = _DICE_PATTERN.match(spec)
        if not match:
            raise InvalidDiceSpec(
                f"Invalid dice format {spec!r}; expected 'XDY' where X and Y are numbers"
            )
        count, sides = int(match.group(1)), int(match.group(2))
    elif isinstance(spec, (int, float)) and float(spec).is_integer():
        count, sides = 1, int(spec)
    else:
        raise InvalidDiceSpec(
            f"Invalid input for dice roll: {spec!r}; expected a number or 'XDY'"
        )
    if sides < 1:
        raise InvalidDiceSpec(f"Dice need at least one side: {spec!r}")
    if count > MAX_DICE_COUNT:
        raise InvalidDiceSpec(
            f"Too many dice in {spec!r}; at most {MAX_DICE_COUNT} may be rolled"
        )
    return count, sides


def roll_dice(spec: Any, rng: RandomSource | None = None) -> int:
    """Roll ``spec`` (``"2D6"`` or a number of sides); invalid specs yield 0."""

    source = rng or _default_random
    try:
        count, sides = parse_dice(spec)
    except InvalidDiceSpec as exc:
        logger.error("%s", exc)
        return 0
    draws = [source.randint(1, sides) for _ in range(count)]
    logger.debug("Rolled %s: %s", spec, draws)
    return sum(draws)


def roll_damage(expression: Any, rng: RandomSource | None = None) -> int:
    """Evaluate a damage expression such as ``"1D6+2"`` or a plain number."""

    if isinstance(expression, bool):
        logger.error("Invalid damage input format: %r", expression)
        return 0
    if isinstance(expression, (int, float)):
        return int(expression)
    if not isinstance(expression, str):
        logger.error("Invalid damage input format: %r", expression)
        return 0
    cleaned = re.sub(r"\s+", "", expression)
    total = 0
    sign = 1
    for part in _DAMAGE_SPLIT.split(cleaned):
        if not part:
            continue
        if part in ("+", "-"):
            sign = 1 if part == "+" else -1
            continue
        if _DICE_PATTERN.match(part):
            value = roll_dice(part, rng)
        else:
            try:
                value = int(part)
            except ValueError:
                logger.error("Invalid damage term %r in %r", part, expression)
                return 0
        total += sign * value
    return total


def find_outcome_for_roll(roll: int, outcomes: Mapping[str, Any]) -> Any:
    """Return the outcome whose key (``"4"`` or ``"1-3"``) covers ``roll``."""

    for key, outcome in outcomes.items():
        text = str(key).strip()
        if "-" in text:
            start, _, end = text.partition("-")
            try:
                if int(start) <= roll <= int(end):
                    return outcome
            except ValueError:
                logger.warning("Ignoring malformed outcome range %r", key)
        else:
            try:
                if int(text) == roll:
                    return outcome
            except ValueError:
                logger.warning("Ignoring malformed outcome key %r", key)
    return None


@dataclass(frozen=True)
class SkillCheckResult:
    """Outcome of a skill check including roll details."""

    skill: str
    success: bool
    roll: int
    threshold: float
    attempts: int | None = None
    passed_on_try: int | None = None

    def __bool__(self) -> bool:
        return self.success


class SkillCheckResolver:
    """Resolve percentile skill checks against an injectable random source."""

    def __init__(
        self,
        rng: RandomSource | None = None,
        notify: Notifier | None = None,
        *,
        custom_roll_items: Iterable[str] = (),
        custom_roll_deadline_hour: int = 18,
    ) -> None:
        self.rng = rng or _default_random
        self.notify = notify
        self.custom_roll_items = tuple(custom_roll_items)
        self.custom_roll_deadline_hour = custom_roll_deadline_hour

    def _announce(self, message: str) -> None:
        logger.info("Skill check: %s", message)
        if self.notify is not None:
            self.notify(SKILL_CHECK_CHANNEL, message)

    def roll_dice(self, spec: Any) -> int:
        return roll_dice(spec, self.rng)

    def roll_damage(self, expression: Any) -> int:
        return roll_damage(expression, self.rng)

    def percentile(self) -> int:
        return self.rng.randint(1, 100)

    def make_skill_check(
        self,
        skill: str,
        skills: Mapping[str, int],
        stats: Mapping[str, int],
        difficulty: str = "normal",
        tries: Any = None,
        opposed_value: int | None = None,
        bonus: int = 0,
        *,
        inventory: Iterable[str] = (),
        current_date: datetime | None = None,
    ) -> SkillCheckResult:
        """Roll percentile dice against ``skill`` and report the verdict.

        ``skills`` takes precedence over ``stats``; ``"Sanity"`` always
        reads ``stats["sanity"]`` and ``"CustomRoll"`` runs the
        time/inventory based roll instead of the generic path. When
        ``tries`` is given the number of attempts is itself rolled and the
        check succeeds on the first passing attempt.
        """

        if skill == CUSTOM_ROLL_SKILL:
            return self.custom_roll(inventory, current_date)
        if skill == "Sanity":
            base = stats.get("sanity")
        elif skill in skills:
            base = skills[skill]
        else:
            base = stats.get(skill)
        if base is None:
            logger.warning("Unknown skill %r; treating its value as 0", skill)
            base = 0
        modifier = DIFFICULTY_MODIFIERS.get(difficulty or "normal")
        if modifier is None:
            logger.warning("Unknown difficulty %r; using normal", difficulty)
            modifier = DIFFICULTY_MODIFIERS["normal"]
        threshold = (base + bonus) * modifier

        def passes(draw: int) -> bool:
            if draw > threshold:
                return False
            return opposed_value is None or draw <= opposed_value

        if tries is None:
            draw = self.percentile()
            success = passes(draw)
            self._announce(f"{draw} {'Pass' if success else 'Fail'}")
            return SkillCheckResult(skill, success, draw, threshold)

        attempts = self.roll_dice(tries)
        draw = 0
        for attempt in range(1, attempts + 1):
            draw = self.percentile()
            if passes(draw):
                self._announce(f"{draw} Pass (passed on try {attempt})")
                return SkillCheckResult(
                    skill, True, draw, threshold, attempts=attempts, passed_on_try=attempt
                )
        self._announce(f"Failed {attempts} times.")
        return SkillCheckResult(skill, False, draw, threshold, attempts=attempts)

    def custom_roll(
        self, inventory: Iterable[str], current_date: datetime | None
    ) -> SkillCheckResult:
        """Roll against a bonus built from the hours left today and held items."""

        total = CUSTOM_ROLL_BASE_BONUS
        if current_date is None:
            logger.warning("Custom roll without an in-world date; no hourly bonus")
        else:
            deadline = current_date.replace(
                hour=self.custom_roll_deadline_hour, minute=0, second=0, microsecond=0
            )
            remaining = (deadline - current_date).total_seconds()
            full_hours = max(0, int(remaining // 3600))
            total += CUSTOM_ROLL_HOURLY_BONUS * full_hours
        held = set(inventory)
        for item in set(self.custom_roll_items):
            if item in held:
                total += CUSTOM_ROLL_ITEM_BONUS
        draw = self.percentile()
        success = draw <= total
        self._announce(f"{draw} {'Pass' if success else 'Fail'}")
        return SkillCheckResult(CUSTOM_ROLL_SKILL, success, draw, float(total))


def make_skill_check(
    skill: str,
    skills: Mapping[str, int],
    stats: Mapping[str, int],
    difficulty: str = "normal",
    tries: Any = None,
    opposed_value: int | None = None,
    bonus: int = 0,
    *,
    rng: RandomSource | None = None,
    notify: Notifier | None = None,
) -> SkillCheckResult:
    """Run a one-off skill check with a throwaway resolver."""

    resolver = SkillCheckResolver(rng, notify)
    return resolver.make_skill_check(
        skill, skills, stats, difficulty, tries, opposed_value, bonus
    )


__all__ = [
    "MAX_DICE_COUNT",
    "RandomSource",
    "SkillCheckResult",
    "SkillCheckResolver",
    "SKILL_CHECK_CHANNEL",
    "find_outcome_for_roll",
    "make_skill_check",
    "parse_dice",
    "roll_damage",
    "roll_dice",
]
