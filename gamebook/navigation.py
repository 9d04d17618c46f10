"""Entry rendering, choice filtering and choice dispatch."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Protocol, Sequence

from .availability import is_available
from .config import GameConfig
from .constants import END_MARKER, LOCATION_SUFFIX, PREVIOUS_ENTRY
from .content import Choice, ContentStore, Entry, Location
from .dice import SkillCheckResolver, find_outcome_for_roll
from .effects import (
    Combat,
    DirectEffects,
    EffectApplicator,
    EndGame,
    OutcomeTable,
    SkillCheckBranch,
    TimeAdvance,
)
from .errors import EntryNotFound, LocationTableNotFound
from .requirements import satisfies
from .session import CombatState, GameSession


logger = logging.getLogger(__name__)

COMBAT_CHANNEL = "combat"
DODGE_SKILL = "Dodge"
UNARMED_DAMAGE = "1D3"
DEFAULT_COMBAT_SKILL = 50
_ATTACK_SKILLS = {
    "fight": "Fighting (Brawl)",
    "brawl": "Fighting (Brawl)",
    "handgun": "Firearms (Handgun)",
}


@dataclass(frozen=True)
class ChoiceOption:
    """A selectable option handed to the render sink."""

    label: str
    on_activate: Callable[[], None]


class RenderSink(Protocol):
    """Presentation surface driven by the engine."""

    def show_heading(self, text: str) -> None:
        """Display the entry id, title and special instructions."""

    def show_description(self, text: str) -> None:
        """Display the narrative text."""

    def set_choices(self, options: Sequence[ChoiceOption]) -> None:
        """Replace the offered options."""

    def show_stat(self, name: str, value: object) -> None:
        """Display one investigator statistic; ``None`` clears it."""

    def show_date(self, text: str) -> None:
        """Display the in-world date and time."""

    def notify(self, channel: str, message: str, duration_ms: int) -> None:
        """Show a transient notification."""


def format_date(moment: datetime) -> str:
    """Return the in-world clock as shown to the player."""

    hour = moment.hour % 12 or 12
    suffix = "PM" if moment.hour >= 12 else "AM"
    return f"{moment.strftime('%A')}, {moment.day} {moment.strftime('%B %Y')}, {hour}:{moment.minute:02d} {suffix}"


class NavigationEngine:
    """Walk the entry graph for the bound session."""

    def __init__(
        self,
        content: ContentStore,
        sink: RenderSink,
        *,
        config: GameConfig | None = None,
        resolver: SkillCheckResolver | None = None,
        on_death: Callable[[], None] | None = None,
    ) -> None:
        self.content = content
        self.sink = sink
        self.config = config or GameConfig()
        self.resolver = resolver or SkillCheckResolver(
            custom_roll_items=self.config.custom_roll_items,
            custom_roll_deadline_hour=self.config.custom_roll_deadline_hour,
        )
        if self.resolver.notify is None:
            self.resolver.notify = self.notify
        self.applicator = EffectApplicator(self.notify)
        self.on_death = on_death
        self.session: GameSession | None = None
        self.options: List[ChoiceOption] = []
        self.lock_reason: str | None = None

    def bind(self, session: GameSession | None) -> None:
        """Point the engine at ``session`` (``None`` detaches it)."""

        self.session = session
        self.options = []

    def lock(self, reason: str) -> None:
        logger.info("Navigation locked: %s", reason)
        self.lock_reason = reason

    def unlock(self) -> None:
        if self.lock_reason is not None:
            logger.info("Navigation unlocked (was: %s)", self.lock_reason)
        self.lock_reason = None

    @property
    def accepting_input(self) -> bool:
        return self.session is not None and self.lock_reason is None

    def notify(self, channel: str, message: str) -> None:
        self.sink.notify(channel, message, self.config.notification_duration_ms)

    def show_stats(self) -> None:
        session = self.session
        if session is None:
            return
        self.sink.show_stat("Investigator", session.character)
        self.sink.show_stat("Health", session.health)
        self.sink.show_stat("Sanity", session.sanity)
        self.sink.show_stat("Inventory", ", ".join(session.inventory))
        combat = session.combat
        if combat.is_active:
            self.sink.show_stat(
                "Opponent",
                f"{combat.opponent} ({combat.opponent_health}/{combat.opponent_max_health})",
            )
        else:
            self.sink.show_stat("Opponent", None)
        self.sink.show_date(format_date(session.current_date))

    def refresh(self) -> bool:
        """Redraw every display from the session as if freshly loaded."""

        session = self.session
        if session is None:
            return False
        if session.current_entry.endswith(LOCATION_SUFFIX):
            shown = self.render_locations(session.current_entry[: -len(LOCATION_SUFFIX)])
        else:
            shown = self.render(session.current_entry)
        self.show_stats()
        return shown

    def _show_error(self, message: str) -> None:
        self.options = []
        self.sink.show_heading("")
        self.sink.show_description(f"Error: {message}.")
        self.sink.set_choices([])

    def render(self, entry_id: str) -> bool:
        """Display ``entry_id`` and offer its available choices."""

        session = self.session
        if session is None:
            logger.warning("No active session; not rendering entry %s", entry_id)
            return False
        if entry_id == PREVIOUS_ENTRY:
            entry_id = session.previous_entry or session.current_entry
        try:
            entry = self.content.entry(entry_id)
        except EntryNotFound as exc:
            logger.error("%s", exc)
            self._show_error(str(exc))
            return False

        session.current_entry = entry.id
        session.mark_visited(entry.id)
        logger.info("%s arrives at entry %s", session.character, entry.id)

        heading = f"{entry.id}. {entry.title}".strip()
        if entry.special_instructions:
            heading = f"{heading}\n{entry.special_instructions}"
        description = entry.description
        if session.pending_message:
            description = f"{session.pending_message}\n\n{description}"
            session.pending_message = ""
        if entry.end:
            description = f"{description}\n\n{END_MARKER}"

        choices = self.available_choices(entry)
        if entry.daily_choice_limit and (
            session.choices_taken_today(entry.id) >= entry.daily_choice_limit
        ):
            # only the ways out stay open once the day's quota is used
            choices = [choice for choice in choices if choice.is_location_redirect]
            description = f"{description}\n\n{entry.limit_message}"
        self.options = [
            ChoiceOption(choice.text, self._activator(entry, choice)) for choice in choices
        ]
        self.sink.show_heading(heading)
        self.sink.show_description(description)
        self.sink.set_choices(list(self.options))
        self.show_stats()
        return True

    def available_choices(self, entry: Entry) -> List[Choice]:
        """Return the choices on ``entry`` the current session may take."""

        session = self.session
        if session is None:
            return []
        offered: List[Choice] = []
        for choice in entry.choices:
            if not satisfies(
                choice.requirements,
                session,
                session.current_date,
                night_start_hour=self.config.night_start_hour,
                night_end_hour=self.config.night_end_hour,
            ):
                continue
            effect = choice.effect
            if (
                isinstance(effect, SkillCheckBranch)
                and effect.daily_limit
                and not session.can_use_skill(entry.id, effect.skill)
            ):
                logger.debug("%s already used today at %s", effect.skill, entry.id)
                continue
            offered.append(choice)
        return offered

    def render_locations(self, location_type: str) -> bool:
        """Offer every location in ``location_type`` that is open right now."""

        session = self.session
        if session is None:
            logger.warning("No active session; not rendering %s locations", location_type)
            return False
        try:
            table = self.content.location_table(location_type)
        except LocationTableNotFound as exc:
            logger.error("%s", exc)
            self._show_error(str(exc))
            return False

        session.current_locale = location_type
        session.current_entry = f"{location_type}{LOCATION_SUFFIX}"
        self.options = [
            ChoiceOption(location.name, self._location_activator(location))
            for location in table.locations
            if is_available(location.availability, session.current_date, session.character)
        ]
        logger.info("Offering %d %s locations", len(self.options), location_type)
        self.sink.show_heading(f"{location_type} Locations:")
        self.sink.show_description("Select a location from the list below:")
        self.sink.set_choices(list(self.options))
        self.show_stats()
        return True

    def activate(self, index: int) -> bool:
        """Select the ``index``-th offered option (zero based)."""

        if not self.accepting_input:
            logger.warning(
                "Ignoring choice %d: %s", index, self.lock_reason or "no active session"
            )
            return False
        if not 0 <= index < len(self.options):
            logger.warning("Choice %d out of range (%d offered)", index, len(self.options))
            return False
        self.options[index].on_activate()
        return True

    def _activator(self, entry: Entry, choice: Choice) -> Callable[[], None]:
        return lambda: self.make_choice(entry, choice)

    def _location_activator(self, location: Location) -> Callable[[], None]:
        return lambda: self.visit_location(location)

    def _refuse(self, label: str) -> bool:
        if self.accepting_input:
            return False
        logger.warning("Ignoring %s: %s", label, self.lock_reason or "no active session")
        return True

    def visit_location(self, location: Location) -> None:
        if self._refuse(f"location {location.name!r}"):
            return
        session = self.session
        self.render(location.entry)
        if self.config.location_travel_hours:
            session.advance_clock(self.config.location_travel_hours)
            self.show_stats()

    def make_choice(self, entry: Entry, choice: Choice) -> None:
        """Dispatch ``choice`` taken from ``entry``."""

        if self._refuse(f"choice {choice.text!r}"):
            return
        session = self.session
        effect = choice.effect
        logger.info("%s chose %r at entry %s", session.character, choice.text, entry.id)
        if entry.daily_choice_limit and not choice.is_location_redirect:
            session.record_choice(entry.id)
        if isinstance(effect, EndGame):
            if self.on_death is None:
                logger.warning("Choice %r ends the game but no death handler is set", choice.text)
                return
            self.on_death()
        elif isinstance(effect, Combat):
            self._resolve_combat(entry, choice, effect)
        elif isinstance(effect, SkillCheckBranch):
            self._resolve_check(entry, effect)
        elif isinstance(effect, OutcomeTable):
            self._resolve_outcomes(entry, effect)
        elif choice.is_location_redirect:
            self.applicator.apply(effect, session)
            self.render_locations(choice.location_type)
        else:
            self._follow(entry, choice, effect)

    def _resolve_check(self, entry: Entry, branch: SkillCheckBranch) -> None:
        session = self.session
        session.previous_entry = entry.id
        result = self.resolver.make_skill_check(
            branch.skill,
            session.skills,
            session.stat_block(),
            branch.difficulty,
            branch.tries,
            branch.opposed_value,
            branch.bonus,
            inventory=session.inventory,
            current_date=session.current_date,
        )
        if result.success or branch.daily_limit:
            session.record_skill_usage(entry.id, branch.skill)
        if result.success and branch.skill == DODGE_SKILL and session.combat.is_active:
            logger.info("%s escaped from %s", session.character, session.combat.opponent)
            self.notify(COMBAT_CHANNEL, f"You escaped from {session.combat.opponent}!")
            session.combat = CombatState()
        self.render(branch.success if result.success else branch.failure)

    def _resolve_outcomes(self, entry: Entry, table: OutcomeTable) -> None:
        session = self.session
        roll = self.resolver.roll_dice(table.dice)
        self.notify("skillCheck", f"You rolled a {roll}")
        outcome = find_outcome_for_roll(roll, table.as_mapping())
        if outcome is None:
            logger.error("No outcome defined for roll %d at entry %s", roll, entry.id)
            session.pending_message = "Error: Unexpected dice roll result."
            self.render(entry.id)
            return
        session.pending_message = outcome.description or "Unexpected outcome."
        if outcome.damage is not None:
            damage = self.resolver.roll_damage(outcome.damage)
            self.applicator.change_health(session, -damage)
        session.previous_entry = entry.id
        self.render(outcome.next_entry or entry.id)

    def _resolve_combat(self, entry: Entry, choice: Choice, combat: Combat) -> None:
        """Open the fight on first use, then trade one round of blows per choice."""

        session = self.session
        session.previous_entry = entry.id
        state = session.combat
        if not state.is_active:
            foe = combat.opponent
            state = session.combat = CombatState(
                is_active=True,
                opponent=foe.name,
                opponent_health=foe.health,
                opponent_max_health=foe.max_health or foe.health,
                attack_chance=foe.attack_chance,
                damage=foe.damage,
                rounds_until_retaliation=foe.rounds_until_retaliation,
                win=combat.win,
                lose=combat.lose,
            )
            logger.info("%s starts a fight with %s", session.character, foe.name)
            self.notify(COMBAT_CHANNEL, f"You face {foe.name}!")
            opening = True
        else:
            self._player_attack(combat)
            opening = False

        if state.rounds_until_retaliation > 0:
            state.rounds_until_retaliation -= 1
        elif not opening and state.opponent_health > 0:
            self._opponent_attack()

        if session.health <= 0:
            self._end_combat(state.lose, "defeated")
        elif state.opponent_health <= 0:
            self._end_combat(state.win, "won")
        else:
            self.render(choice.next_entry or entry.id)

    def _player_attack(self, combat: Combat) -> None:
        session = self.session
        state = session.combat
        skill = _ATTACK_SKILLS[combat.action]
        target = session.skills.get(skill) or DEFAULT_COMBAT_SKILL
        if self.resolver.percentile() > target:
            logger.info("%s missed %s", session.character, state.opponent)
            self.notify(COMBAT_CHANNEL, "You missed!")
            return
        expression = UNARMED_DAMAGE + session.damage_bonus
        if combat.action == "handgun" and combat.weapon_damage is not None:
            expression = combat.weapon_damage
        damage = max(0, self.resolver.roll_damage(expression))
        state.opponent_health = max(0, state.opponent_health - damage)
        logger.info(
            "%s hit %s for %d (now %d)",
            session.character,
            state.opponent,
            damage,
            state.opponent_health,
        )
        self.notify(COMBAT_CHANNEL, f"You hit {state.opponent} for {damage} damage!")

    def _opponent_attack(self) -> None:
        session = self.session
        state = session.combat
        if self.resolver.percentile() > state.attack_chance:
            self.notify(COMBAT_CHANNEL, f"{state.opponent} missed!")
            return
        damage = max(0, self.resolver.roll_damage(state.damage))
        remaining = max(0, session.health - damage)
        self.applicator.change_health(session, remaining - session.health)
        logger.info("%s hit %s for %d", state.opponent, session.character, damage)
        self.notify(COMBAT_CHANNEL, f"{state.opponent} hit you for {damage} damage!")

    def _end_combat(self, target: str, verdict: str) -> None:
        session = self.session
        logger.info(
            "Combat with %s over: %s %s", session.combat.opponent, session.character, verdict
        )
        session.combat = CombatState()
        self.render(target)

    def _follow(self, entry: Entry, choice: Choice, bundle: DirectEffects) -> None:
        session = self.session
        target = choice.next_entry
        if target == PREVIOUS_ENTRY:
            target = session.previous_entry or entry.id
        session.previous_entry = entry.id
        self.applicator.apply(bundle, session)
        if self.config.default_choice_hours and not any(
            isinstance(effect, TimeAdvance) for effect in bundle.effects
        ):
            session.advance_clock(self.config.default_choice_hours)
        self.render(target)


__all__ = [
    "COMBAT_CHANNEL",
    "ChoiceOption",
    "NavigationEngine",
    "RenderSink",
    "format_date",
]
