"""High level controller wiring content, navigation and succession together."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .config import GameConfig
from .content import ContentStore, Fetcher, file_fetchers, load_content
from .dice import RandomSource, SkillCheckResolver
from .lifecycle import InvestigatorLifecycle, LifecycleState, SkillAllocator
from .navigation import ChoiceOption, NavigationEngine, RenderSink
from .persistence import DEFAULT_SLOT, InMemorySaveStore, SaveStore, load_session, save_session
from .session import GameSession


logger = logging.getLogger(__name__)


@dataclass
class MemorySink:
    """Render sink that keeps the latest display state in memory."""

    heading: str = ""
    description: str = ""
    choices: List[ChoiceOption] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)
    date: str = ""
    notifications: List[Tuple[str, str, int]] = field(default_factory=list)

    def show_heading(self, text: str) -> None:
        self.heading = text

    def show_description(self, text: str) -> None:
        self.description = text

    def set_choices(self, options: Sequence[ChoiceOption]) -> None:
        self.choices = list(options)

    def show_stat(self, name: str, value: object) -> None:
        if value is None:
            self.stats.pop(name, None)
        else:
            self.stats[name] = value

    def show_date(self, text: str) -> None:
        self.date = text

    def notify(self, channel: str, message: str, duration_ms: int) -> None:
        self.notifications.append((channel, message, duration_ms))

    @property
    def choice_labels(self) -> List[str]:
        return [option.label for option in self.choices]

    def drain_notifications(self) -> List[Tuple[str, str, int]]:
        pending, self.notifications = self.notifications, []
        return pending


class Game:
    """Single entry point used by the command line and web front ends."""

    def __init__(
        self,
        content: ContentStore,
        sink: RenderSink,
        config: GameConfig | None = None,
        *,
        rng: RandomSource | None = None,
        store: SaveStore | None = None,
        allocator: SkillAllocator | None = None,
    ) -> None:
        self.config = config or GameConfig()
        self.content = content
        self.sink = sink
        self.store = store if store is not None else InMemorySaveStore()
        resolver = SkillCheckResolver(
            rng,
            custom_roll_items=self.config.custom_roll_items,
            custom_roll_deadline_hour=self.config.custom_roll_deadline_hour,
        )
        self.engine = NavigationEngine(
            content, sink, config=self.config, resolver=resolver
        )
        self.lifecycle = InvestigatorLifecycle(
            content, self.engine, self.config, allocator=allocator
        )
        self.engine.on_death = self.lifecycle.handle_death

    @classmethod
    def from_loader(
        cls,
        fetchers: Mapping[str, Fetcher],
        sink: RenderSink,
        config: GameConfig | None = None,
        **kwargs: Any,
    ) -> "Game":
        """Load every content collection, then build the game.

        :class:`~gamebook.errors.ContentLoadFailure` propagates so callers
        never end up with a half-loaded game.
        """

        return cls(load_content(fetchers), sink, config, **kwargs)

    @classmethod
    def from_directory(
        cls,
        directory: str | os.PathLike[str],
        sink: RenderSink,
        config: GameConfig | None = None,
        **kwargs: Any,
    ) -> "Game":
        return cls.from_loader(file_fetchers(directory), sink, config, **kwargs)

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    @property
    def session(self) -> GameSession | None:
        return self.lifecycle.session

    @property
    def allocation_pending(self) -> bool:
        return self.lifecycle.allocation_pending

    def start(self) -> GameSession:
        return self.lifecycle.start()

    def restart(self) -> GameSession:
        return self.lifecycle.restart()

    def signal_death(self) -> LifecycleState:
        """External death signal for the active investigator."""

        return self.lifecycle.handle_death()

    def complete_allocation(self, skills: Mapping[str, int]) -> None:
        self.lifecycle.complete_allocation(skills)

    def choose(self, index: int) -> bool:
        """Take the ``index``-th offered option (zero based)."""

        if self.state is not LifecycleState.ACTIVE:
            logger.warning("Ignoring choice %d: game is %s", index, self.state.value)
            return False
        return self.engine.activate(index)

    def save(self, key: str = DEFAULT_SLOT) -> bool:
        session = self.session
        if session is None:
            logger.warning("Nothing to save: no active investigator")
            return False
        save_session(self.store, session, key)
        self.engine.notify("game", "Game saved.")
        return True

    def load(self, key: str = DEFAULT_SLOT) -> bool:
        """Restore the session in ``key`` and redraw every display."""

        session = load_session(self.store, key)
        if session is None:
            self.engine.notify("game", "No saved game found.")
            return False
        self.lifecycle.adopt(session)
        self.engine.notify("game", "Game loaded.")
        return True

    def snapshot(self) -> Dict[str, Any]:
        """Return a JSON-safe view of the game for API consumers."""

        session = self.session
        return {
            "state": self.state.value,
            "investigator": self.lifecycle.current_investigator,
            "allocationPending": self.allocation_pending,
            "choices": [option.label for option in self.engine.options],
            "session": session.to_payload() if session is not None else None,
        }


__all__ = ["Game", "MemorySink"]
