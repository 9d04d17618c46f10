"""Read-only story content: entries, location tables and investigator templates."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

import yaml

from .availability import AvailabilitySpec
from .constants import INVESTIGATOR_ORDER, LOCATION_SUFFIX
from .effects import DirectEffects, Effect, parse_effects
from .errors import ContentError, ContentLoadFailure, EntryNotFound, LocationTableNotFound
from .requirements import Requirement, parse_requirements


logger = logging.getLogger(__name__)

CONTENT_COLLECTIONS = ("investigators", "entries", "location_tables")
DAILY_LIMIT_MESSAGE = "You have done all you can here today. Please come back tomorrow."

Fetcher = Callable[[], Any]


@dataclass(frozen=True)
class Choice:
    """An option offered on an entry."""

    text: str
    next_entry: str = ""
    requirements: Tuple[Requirement, ...] = ()
    effect: Effect = field(default_factory=DirectEffects)

    @property
    def is_location_redirect(self) -> bool:
        return self.next_entry.endswith(LOCATION_SUFFIX)

    @property
    def location_type(self) -> str:
        """Return ``next_entry`` without the location suffix."""

        if self.is_location_redirect:
            return self.next_entry[: -len(LOCATION_SUFFIX)]
        return self.next_entry


@dataclass(frozen=True)
class Entry:
    """A single narrative node."""

    id: str
    description: str
    title: str = ""
    special_instructions: str = ""
    choices: Tuple[Choice, ...] = ()
    end: bool = False
    daily_choice_limit: int = 0
    limit_message: str = DAILY_LIMIT_MESSAGE


@dataclass(frozen=True)
class Location:
    name: str
    entry: str
    availability: AvailabilitySpec = field(default_factory=AvailabilitySpec)


@dataclass(frozen=True)
class LocationTable:
    name: str
    locations: Tuple[Location, ...] = ()


def parse_choice(data: Mapping[str, Any], entry_id: str) -> Choice:
    if not isinstance(data, Mapping):
        raise ContentError(f"Choice on entry {entry_id} must be a mapping, got {data!r}")
    text = str(data.get("text", "")).strip()
    if not text:
        raise ContentError(f"Choice on entry {entry_id} has no text")
    next_entry = data.get("nextEntry")
    return Choice(
        text=text,
        next_entry=str(next_entry) if next_entry is not None else "",
        requirements=parse_requirements(data.get("requirements")),
        effect=parse_effects(data.get("effects")),
    )


def parse_entry(entry_id: str, data: Mapping[str, Any]) -> Entry:
    """Build an :class:`Entry` from its raw record."""

    if not isinstance(data, Mapping):
        raise ContentError(f"Entry {entry_id} must be a mapping, got {data!r}")
    choices = data.get("choices") or []
    if not isinstance(choices, list):
        raise ContentError(f"Entry {entry_id} choices must be a list")
    try:
        limit = int(data.get("dailyChoiceLimit") or 0)
    except (TypeError, ValueError) as exc:
        raise ContentError(f"Entry {entry_id} has an invalid dailyChoiceLimit") from exc
    return Entry(
        id=entry_id,
        description=str(data.get("description", "")),
        title=str(data.get("title") or ""),
        special_instructions=str(data.get("specialInstructions") or ""),
        choices=tuple(parse_choice(choice, entry_id) for choice in choices),
        end=bool(data.get("end", False)),
        daily_choice_limit=max(0, limit),
        limit_message=str(data.get("limitMessage") or DAILY_LIMIT_MESSAGE),
    )


def parse_entries(payload: Any) -> Dict[str, Entry]:
    """Accept either an ``id -> entry`` mapping or a list of entries with ids."""

    if isinstance(payload, Mapping):
        items = [(str(key), value) for key, value in payload.items()]
    elif isinstance(payload, list):
        items = []
        for record in payload:
            if not isinstance(record, Mapping) or "id" not in record:
                raise ContentError(f"Entry list records need an id: {record!r}")
            items.append((str(record["id"]), record))
    else:
        raise ContentError("Entries must be a mapping or a list")
    return {entry_id: parse_entry(entry_id, record) for entry_id, record in items}


def parse_location_tables(payload: Any) -> Dict[str, LocationTable]:
    if not isinstance(payload, Mapping):
        raise ContentError("Location tables must be a mapping")
    tables: Dict[str, LocationTable] = {}
    for table_name, locations in payload.items():
        if not isinstance(locations, Mapping):
            raise ContentError(f"Location table {table_name} must be a mapping")
        parsed: List[Location] = []
        for name, record in locations.items():
            if not isinstance(record, Mapping) or "entry" not in record:
                raise ContentError(f"Location {name} in {table_name} needs an entry")
            parsed.append(
                Location(
                    name=str(name),
                    entry=str(record["entry"]),
                    availability=AvailabilitySpec.from_payload(record.get("availability")),
                )
            )
        tables[str(table_name)] = LocationTable(str(table_name), tuple(parsed))
    return tables


def parse_investigators(payload: Any) -> Dict[str, Mapping[str, Any]]:
    if not isinstance(payload, Mapping):
        raise ContentError("Investigators must be a mapping of name to template")
    templates: Dict[str, Mapping[str, Any]] = {}
    for name, template in payload.items():
        if not isinstance(template, Mapping):
            raise ContentError(f"Investigator {name} must be a mapping")
        templates[str(name)] = MappingProxyType(dict(template))
    return templates


class ContentStore:
    """Immutable lookup over the three content collections."""

    def __init__(
        self,
        investigators: Mapping[str, Mapping[str, Any]],
        entries: Mapping[str, Entry],
        location_tables: Mapping[str, LocationTable],
    ) -> None:
        self.investigators = MappingProxyType(dict(investigators))
        self.entries = MappingProxyType(dict(entries))
        self.location_tables = MappingProxyType(dict(location_tables))

    @classmethod
    def from_payloads(cls, payloads: Mapping[str, Any]) -> "ContentStore":
        """Parse raw collections keyed by :data:`CONTENT_COLLECTIONS`."""

        return cls(
            investigators=parse_investigators(payloads.get("investigators") or {}),
            entries=parse_entries(payloads.get("entries") or {}),
            location_tables=parse_location_tables(payloads.get("location_tables") or {}),
        )

    def entry(self, entry_id: str) -> Entry:
        try:
            return self.entries[entry_id]
        except KeyError:
            raise EntryNotFound(entry_id) from None

    def location_table(self, location_type: str) -> LocationTable:
        try:
            return self.location_tables[location_type]
        except KeyError:
            raise LocationTableNotFound(location_type) from None

    def investigator(self, name: str) -> Mapping[str, Any]:
        try:
            return self.investigators[name]
        except KeyError:
            raise ContentError(f"No investigator template for {name}") from None


def check_roster(store: ContentStore, roster: Sequence[Tuple[str, str]]) -> None:
    """Raise :class:`ContentError` unless every roster member can be played."""

    for name, start_entry in roster:
        store.investigator(name)
        if start_entry not in store.entries:
            raise ContentError(f"Starting entry {start_entry} for {name} is missing")


def load_content(
    fetchers: Mapping[str, Fetcher],
    roster: Sequence[Tuple[str, str]] = INVESTIGATOR_ORDER,
) -> ContentStore:
    """Fetch all collections concurrently; any failure aborts the whole load.

    The parsed content must also provide a template and a starting entry
    for every investigator in ``roster``.
    """

    missing = [name for name in CONTENT_COLLECTIONS if name not in fetchers]
    if missing:
        raise ContentLoadFailure(f"No loader for {', '.join(missing)}")
    with ThreadPoolExecutor(max_workers=len(CONTENT_COLLECTIONS)) as executor:
        futures = {
            name: executor.submit(fetchers[name]) for name in CONTENT_COLLECTIONS
        }
        payloads: Dict[str, Any] = {}
        for name, future in futures.items():
            try:
                payloads[name] = future.result()
            except Exception as exc:
                logger.error("Failed to load %s: %s", name, exc)
                raise ContentLoadFailure(f"Failed to load {name}: {exc}") from exc
    try:
        store = ContentStore.from_payloads(payloads)
        check_roster(store, roster)
    except ContentError as exc:
        logger.error("Content is malformed: %s", exc)
        raise ContentLoadFailure(str(exc)) from exc
    logger.info(
        "Loaded %d entries, %d location tables, %d investigators",
        len(store.entries),
        len(store.location_tables),
        len(store.investigators),
    )
    return store


def _read_structured(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _resolve(directory: Path, stem: str) -> Path:
    for suffix in (".yaml", ".yml", ".json"):
        candidate = directory / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    return directory / f"{stem}.yaml"


def file_fetchers(directory: str | os.PathLike[str]) -> Dict[str, Fetcher]:
    """Return fetchers reading ``<collection>.yaml`` (or ``.json``) from ``directory``."""

    base = Path(directory)
    return {
        name: (lambda path=_resolve(base, name): _read_structured(path))
        for name in CONTENT_COLLECTIONS
    }


def load_content_directory(
    directory: str | os.PathLike[str],
    roster: Sequence[Tuple[str, str]] = INVESTIGATOR_ORDER,
) -> ContentStore:
    return load_content(file_fetchers(directory), roster)


__all__ = [
    "CONTENT_COLLECTIONS",
    "DAILY_LIMIT_MESSAGE",
    "Choice",
    "ContentStore",
    "Entry",
    "Location",
    "LocationTable",
    "check_roster",
    "file_fetchers",
    "load_content",
    "load_content_directory",
    "parse_entries",
    "parse_entry",
    "parse_investigators",
    "parse_location_tables",
]
