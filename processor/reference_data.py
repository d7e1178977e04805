"""Loading of the correction tables and lookup data shipped with the crawler."""
import csv
import json
import logging
import os
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from processor.aliases import PlayerAliasResolver
from processor.models import EventCategory, RoleCategory
from processor.role_classifier import RoleClassifier, RoleRule

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = os.path.join(os.path.dirname(__file__), 'data')
SUPPORTED_VERSION = 1


@dataclass(frozen=True)
class MapEntry:
    """A known map."""
    map_id: int
    name: str


class MapTable:
    """Known maps with alias canonicalization."""

    def __init__(self, entries: List[MapEntry], aliases: Mapping[str, str]):
        ids = [entry.map_id for entry in entries]
        if len(set(ids)) != len(ids):
            raise ValueError("Map table contains duplicate map ids")
        self._by_name = MappingProxyType({entry.name: entry for entry in entries})
        self._by_lower_name = MappingProxyType(
            {entry.name.lower(): entry for entry in entries}
        )
        for alias, name in aliases.items():
            if name not in self._by_name:
                raise ValueError(f"Map alias '{alias}' points to unknown map '{name}'")
        self._aliases = MappingProxyType(dict(aliases))

    def canonicalize(self, name: str) -> Optional[str]:
        """
        Get the canonical spelling of a map name.

        Args:
            name: Map name as written in a thread

        Returns:
            Canonical map name, or None if the map is not known
        """
        name = name.strip()
        if name in self._aliases:
            return self._aliases[name]
        entry = self._by_name.get(name) or self._by_lower_name.get(name.lower())
        return entry.name if entry else None

    def __len__(self) -> int:
        return len(self._by_name)


@dataclass(frozen=True)
class TitleExceptions:
    """
    Per-title overrides for the field extractors.

    Each table is an ordered tuple of (title substring, value) pairs.
    """
    ignored_titles: Tuple[str, ...]
    date: Tuple[Tuple[str, date], ...]
    start_time: Tuple[Tuple[str, str], ...]
    size: Tuple[Tuple[str, int], ...]
    category: Tuple[Tuple[str, EventCategory], ...]
    name: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class ReconciliationExceptions:
    """Historical corrections applied when merging external attendance."""
    known_absent: FrozenSet[str]
    category_overrides: Mapping[date, EventCategory]
    dated_appearances: Mapping[date, FrozenSet[str]]


@dataclass(frozen=True)
class ReferenceData:
    """All process-wide lookup data, immutable after load."""
    aliases: PlayerAliasResolver
    classifier: RoleClassifier
    titles: TitleExceptions
    reconciliation: ReconciliationExceptions
    maps: MapTable

    @classmethod
    def load(cls, data_dir: str = DEFAULT_DATA_DIR) -> 'ReferenceData':
        """
        Load every reference table from a data directory.

        Args:
            data_dir: Directory holding the csv and json tables

        Returns:
            ReferenceData instance

        Raises:
            FileNotFoundError: If a table is missing
            ValueError: If a table is malformed
        """
        aliases = PlayerAliasResolver(
            _read_pairs(os.path.join(data_dir, 'player_aliases.csv'), 'alias', 'canonical')
        )

        rules_doc = _read_json(os.path.join(data_dir, 'role_rules.json'))
        rules = [
            RoleRule.compile(_role_category(rule['category']), rule['pattern'])
            for rule in _require(rules_doc, 'rules', 'role_rules.json')
        ]
        labels = {
            label: _role_category(category)
            for label, category in _read_pairs(
                os.path.join(data_dir, 'role_labels.csv'), 'label', 'category'
            ).items()
        }
        classifier = RoleClassifier(rules, labels)

        titles = _load_title_exceptions(os.path.join(data_dir, 'title_exceptions.json'))
        reconciliation = _load_reconciliation_exceptions(
            os.path.join(data_dir, 'reconciliation_exceptions.json'),
            os.path.join(data_dir, 'known_absent_players.csv')
        )

        maps = MapTable(
            [
                MapEntry(
                    map_id=int(row['map_id']),
                    name=row['name']
                )
                for row in _read_rows(os.path.join(data_dir, 'maps.csv'))
            ],
            _read_pairs(os.path.join(data_dir, 'map_aliases.csv'), 'alias', 'name')
        )

        logger.info(
            f"Loaded reference data from {data_dir}: {len(aliases)} player aliases, "
            f"{len(rules)} role rules, {len(labels)} role labels, {len(maps)} maps"
        )
        return cls(
            aliases=aliases,
            classifier=classifier,
            titles=titles,
            reconciliation=reconciliation,
            maps=maps
        )


def parse_day(text: str) -> date:
    """Parse a 'dd.mm.yyyy' key of a data table."""
    day, month, year = text.split('.')
    return date(int(year), int(month), int(day))


def _load_title_exceptions(path: str) -> TitleExceptions:
    doc = _read_json(path)
    name = os.path.basename(path)
    return TitleExceptions(
        ignored_titles=tuple(_require(doc, 'ignored_titles', name)),
        date=tuple(
            (title, parse_day(value))
            for title, value in _require(doc, 'date', name).items()
        ),
        start_time=tuple(_require(doc, 'start_time', name).items()),
        size=tuple(
            (title, int(value)) for title, value in _require(doc, 'size', name).items()
        ),
        category=tuple(
            (title, _event_category(value))
            for title, value in _require(doc, 'category', name).items()
        ),
        name=tuple(_require(doc, 'name', name).items())
    )


def _load_reconciliation_exceptions(path: str, absent_path: str) -> ReconciliationExceptions:
    doc = _read_json(path)
    name = os.path.basename(path)
    known_absent = frozenset(row['player'] for row in _read_rows(absent_path))
    return ReconciliationExceptions(
        known_absent=known_absent,
        category_overrides=MappingProxyType({
            parse_day(day): _event_category(value)
            for day, value in _require(doc, 'category_overrides', name).items()
        }),
        dated_appearances=MappingProxyType({
            parse_day(day): frozenset(players)
            for day, players in _require(doc, 'dated_appearances', name).items()
        })
    )


def _read_rows(path: str) -> List[Dict[str, str]]:
    with open(path, 'r', encoding='utf-8', newline='') as f:
        return list(csv.DictReader(f))


def _read_pairs(path: str, key: str, value: str) -> Dict[str, str]:
    pairs = {}
    for row in _read_rows(path):
        if row.get(key) is None or row.get(value) is None:
            raise ValueError(f"{os.path.basename(path)} needs columns '{key}' and '{value}'")
        pairs[row[key]] = row[value]
    return pairs


def _read_json(path: str) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        doc = json.load(f)
    version = doc.get('version')
    if version != SUPPORTED_VERSION:
        raise ValueError(
            f"{os.path.basename(path)} has unsupported version {version!r}"
        )
    return doc


def _require(doc: Dict[str, Any], key: str, name: str) -> Any:
    if key not in doc:
        raise ValueError(f"{name} is missing '{key}'")
    return doc[key]


def _role_category(name: str) -> RoleCategory:
    try:
        return RoleCategory[name]
    except KeyError:
        raise ValueError(f"Unknown role category: {name}") from None


def _event_category(name: str) -> EventCategory:
    try:
        return EventCategory[name]
    except KeyError:
        raise ValueError(f"Unknown event category: {name}") from None
