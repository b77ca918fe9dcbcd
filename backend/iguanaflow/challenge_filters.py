# iguanaflow/challenge_filters.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)

STORAGE_KEY = "challengeFilters_v2"


class FilterStatus(str, Enum):
    ACTIVE = "active"
    NOT_STARTED = "not_started"
    COMPLETED = "completed"


# filter value -> challenge status string as stored on participations
_STATUS_MATCH: dict[FilterStatus, str] = {
    FilterStatus.ACTIVE: "active",
    FilterStatus.NOT_STARTED: "not-started",
    FilterStatus.COMPLETED: "completed",
}

_SORT_ORDER = {"active": 0, "not-started": 1, "completed": 2}


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemoryStore:
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


def _get(item: Any, name: str, default=None):
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def _parse_status(value: Any) -> Optional[FilterStatus]:
    try:
        return FilterStatus(value)
    except ValueError:
        return None


@dataclass
class ChallengeFilters:
    status: list[FilterStatus] = field(default_factory=list)

    @classmethod
    def load(cls, store: KeyValueStore) -> "ChallengeFilters":
        """Saved filters, or defaults when nothing usable is stored."""
        raw = store.get(STORAGE_KEY)
        if not raw:
            return cls()
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("challenge_filters_load_failed", key=STORAGE_KEY)
            return cls()

        if not isinstance(parsed, dict):
            return cls()
        values = parsed.get("status")
        if not isinstance(values, list):
            return cls()

        status = [s for s in (_parse_status(v) for v in values) if s is not None]
        return cls(status=status)

    def save(self, store: KeyValueStore) -> None:
        store.set(STORAGE_KEY, json.dumps({"status": [s.value for s in self.status]}))

    def toggle(self, value: FilterStatus) -> None:
        value = FilterStatus(value)
        if value in self.status:
            self.status = [s for s in self.status if s != value]
        else:
            self.status = [*self.status, value]

    def clear(self) -> None:
        self.status = []

    @property
    def active_filter_count(self) -> int:
        return len(self.status)

    def apply(self, challenges: Iterable[Any]) -> list[Any]:
        items = list(challenges)
        if not self.status:
            return items
        wanted = {_STATUS_MATCH[s] for s in self.status}
        return [c for c in items if _get(c, "status") in wanted]

    @staticmethod
    def sort(challenges: Iterable[Any]) -> list[Any]:
        """Active first, then not-started, then completed, then anything else; by level within a group."""
        return sorted(
            challenges,
            key=lambda c: (_SORT_ORDER.get(_get(c, "status"), 3), _get(c, "level") or 0),
        )
