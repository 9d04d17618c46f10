"""Investigator succession across the fixed roster."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Mapping, Sequence, Tuple

from .config import GameConfig
from .constants import INVESTIGATOR_ORDER
from .content import ContentStore
from .errors import ContentError, SkillAllocationError
from .navigation import NavigationEngine
from .session import GameSession


logger = logging.getLogger(__name__)

ALLOCATION_LOCK = "skill allocation pending"
GAME_OVER_LOCK = "game over"

SkillAllocator = Callable[[str, int], "Mapping[str, int] | None"]


class LifecycleState(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    GAME_OVER = "game_over"


class InvestigatorLifecycle:
    """Own the active session and replace it when an investigator dies.

    The roster order is fixed. A death hands play to the next investigator
    with a brand new session; only the visited entries survive the swap.
    After the last investigator the game is over until :meth:`restart`.
    """

    def __init__(
        self,
        content: ContentStore,
        engine: NavigationEngine,
        config: GameConfig | None = None,
        *,
        allocator: SkillAllocator | None = None,
        roster: Sequence[Tuple[str, str]] = INVESTIGATOR_ORDER,
    ) -> None:
        self.content = content
        self.engine = engine
        self.config = config or GameConfig()
        self.allocator = allocator
        self.roster = tuple(roster)
        self.state = LifecycleState.NOT_STARTED
        self.index = 0
        self.session: GameSession | None = None

    @property
    def current_investigator(self) -> str | None:
        if self.state is not LifecycleState.ACTIVE:
            return None
        return self.roster[self.index][0]

    @property
    def allocation_pending(self) -> bool:
        return self.engine.lock_reason == ALLOCATION_LOCK

    def build_session(
        self, index: int, start_entry: str, visited: Sequence[str] | set | None = None
    ) -> GameSession:
        name = self.roster[index][0]
        return GameSession.from_template(
            name,
            self.content.investigator(name),
            start_entry=start_entry,
            config=self.config,
            visited_entries=visited,
        )

    def start(self) -> GameSession:
        """Enter the initial state with the first investigator."""

        self.index = 0
        session = self.build_session(0, self.config.start_entry)
        logger.info("Starting game with %s", session.character)
        self._activate(session)
        return session

    def restart(self) -> GameSession:
        """Begin a brand new game from the first investigator."""

        logger.info("Restarting game from the first investigator")
        return self.start()

    def handle_death(self) -> LifecycleState:
        """Advance to the next investigator, or end the game after the last."""

        if self.state is not LifecycleState.ACTIVE or self.session is None:
            logger.warning("Death signalled while no investigator is active")
            return self.state
        outgoing = self.session
        logger.info("%s has died.", outgoing.character)
        if self.index >= len(self.roster) - 1:
            logger.info("All investigators are dead. Game over.")
            self.state = LifecycleState.GAME_OVER
            self.session = None
            self.engine.bind(None)
            self.engine.lock(GAME_OVER_LOCK)
            self.engine.sink.set_choices([])
            self.engine.notify("game", "All investigators are dead. Game over.")
            return self.state

        next_index = self.index + 1
        name, start_entry = self.roster[next_index]
        try:
            successor = self.build_session(
                next_index, start_entry, visited=set(outgoing.visited_entries)
            )
        except ContentError as exc:
            logger.error("Cannot hand over to %s: %s", name, exc)
            self.engine.notify("game", f"{name} cannot take over the investigation.")
            return self.state
        successor.previous_entry = outgoing.current_entry
        self.index = next_index
        logger.info("%s takes over at entry %s", name, start_entry)
        self._activate(successor)
        return self.state

    def adopt(self, session: GameSession) -> None:
        """Make a restored ``session`` the active one."""

        names = [name for name, _ in self.roster]
        if session.character in names:
            self.index = names.index(session.character)
        else:
            logger.warning(
                "Restored investigator %s is not on the roster; keeping position %d",
                session.character,
                self.index,
            )
        self.state = LifecycleState.ACTIVE
        self.session = session
        self.engine.bind(session)
        self.engine.unlock()
        if session.unallocated_points > 0:
            self.engine.lock(ALLOCATION_LOCK)
        self.engine.refresh()

    def _activate(self, session: GameSession) -> None:
        self.state = LifecycleState.ACTIVE
        self.session = session
        self.engine.bind(session)
        self.engine.unlock()
        if session.unallocated_points > 0:
            self.engine.lock(ALLOCATION_LOCK)
        self.engine.render(session.current_entry)
        if session.unallocated_points > 0 and self.allocator is not None:
            allocated = self.allocator(session.character, session.unallocated_points)
            if allocated is not None:
                self.complete_allocation(allocated)

    def complete_allocation(self, allocated: Mapping[str, int]) -> None:
        """Add allocated points to the active investigator's skills."""

        session = self.session
        if session is None or not self.allocation_pending:
            logger.warning("No skill allocation is pending")
            return
        spent = 0
        cleaned = {}
        for skill, points in allocated.items():
            try:
                value = int(points)
            except (TypeError, ValueError) as exc:
                raise SkillAllocationError(f"Invalid points {points!r} for {skill}") from exc
            if value < 0:
                raise SkillAllocationError(f"Negative points for {skill}")
            if value:
                cleaned[str(skill)] = value
                spent += value
        if spent > session.unallocated_points:
            raise SkillAllocationError(
                f"Allocated {spent} points but only {session.unallocated_points} are available"
            )
        for skill, value in cleaned.items():
            session.skills[skill] = session.skills.get(skill, 0) + value
        leftover = session.unallocated_points - spent
        if leftover:
            logger.info("%s leaves %d skill points unallocated", session.character, leftover)
        session.unallocated_points = 0
        self.engine.unlock()
        logger.info("Skill allocation complete for %s", session.character)


__all__ = [
    "ALLOCATION_LOCK",
    "GAME_OVER_LOCK",
    "InvestigatorLifecycle",
    "LifecycleState",
    "SkillAllocator",
]
