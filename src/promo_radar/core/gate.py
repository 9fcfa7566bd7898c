"""Dedup and per-shop rate limiting for outgoing notifications."""

import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from promo_radar.core.entities import MatchedItem, QueuedNotification
from promo_radar.core.interfaces import KeyValueStore

OPT_IN_KEY = "notifications.opt_in"
ENABLED_AT_KEY = "notifications.enabled_at"
NOTIFIED_ITEM_IDS_KEY = "notifications.notified_item_ids"
NOTIFIED_QUEUE_IDS_KEY = "notifications.notified_queue_ids"
SOURCE_DAILY_COUNTS_KEY = "notifications.source_daily_counts"

GATE_KEYS = (
    OPT_IN_KEY,
    ENABLED_AT_KEY,
    NOTIFIED_ITEM_IDS_KEY,
    NOTIFIED_QUEUE_IDS_KEY,
    SOURCE_DAILY_COUNTS_KEY,
)

MAX_PER_SOURCE_PER_DAY = 3
MAX_TRACKED_IDS = 1000


class SkipReason(str, Enum):
    """Why a candidate did not produce a notification."""

    BEFORE_BASELINE = "before_baseline"
    ALREADY_NOTIFIED = "already_notified"
    RATE_LIMITED = "rate_limited"


def _warn_corrupt(key: str, value: Any) -> None:
    print(f"⚠️  Warning: corrupt notification state {key!r} ({value!r:.80}), treating as empty")


def _as_utc(instant: datetime) -> datetime:
    """Naive instants are taken as UTC so they compare with aware ones."""
    return instant if instant.tzinfo else instant.replace(tzinfo=timezone.utc)


def _parse_instant(value: Any) -> datetime:
    return _as_utc(value if isinstance(value, datetime) else datetime.fromisoformat(value))


def _parse_day(value: Any) -> date:
    return value if isinstance(value, date) else date.fromisoformat(value)


@dataclass
class GateState:
    """Persisted notification state for one consumer session."""

    opted_in: bool = False
    enabled_at: Optional[datetime] = None
    notified_item_ids: list[str] = field(default_factory=list)
    notified_queue_ids: list[str] = field(default_factory=list)
    daily_counts: dict[tuple[str, date], int] = field(default_factory=dict)

    @classmethod
    def load(cls, store: KeyValueStore) -> "GateState":
        """Read state from ``store``. Corrupt fields fall back to empty defaults."""
        state = cls()

        opted_in = store.get(OPT_IN_KEY)
        if isinstance(opted_in, bool):
            state.opted_in = opted_in
        elif opted_in is not None:
            _warn_corrupt(OPT_IN_KEY, opted_in)

        enabled_at = store.get(ENABLED_AT_KEY)
        if enabled_at is not None:
            try:
                state.enabled_at = _parse_instant(enabled_at)
            except (TypeError, ValueError):
                _warn_corrupt(ENABLED_AT_KEY, enabled_at)

        state.notified_item_ids = cls._load_ids(store, NOTIFIED_ITEM_IDS_KEY)
        state.notified_queue_ids = cls._load_ids(store, NOTIFIED_QUEUE_IDS_KEY)

        counts = store.get(SOURCE_DAILY_COUNTS_KEY)
        if isinstance(counts, dict):
            for day, per_source in counts.items():
                try:
                    parsed_day = _parse_day(day)
                    for source_id, count in per_source.items():
                        state.daily_counts[(str(source_id), parsed_day)] = int(count)
                except (AttributeError, TypeError, ValueError):
                    _warn_corrupt(SOURCE_DAILY_COUNTS_KEY, {day: per_source})
        elif counts is not None:
            _warn_corrupt(SOURCE_DAILY_COUNTS_KEY, counts)

        return state

    @staticmethod
    def _load_ids(store: KeyValueStore, key: str) -> list[str]:
        ids = store.get(key)
        if ids is None:
            return []
        if not isinstance(ids, list):
            _warn_corrupt(key, ids)
            return []
        return [str(i) for i in ids]

    def to_mapping(self) -> dict[str, Any]:
        """Serialize into store keys."""
        counts: dict[str, dict[str, int]] = {}
        for (source_id, day), count in self.daily_counts.items():
            counts.setdefault(day.isoformat(), {})[source_id] = count

        return {
            OPT_IN_KEY: self.opted_in,
            ENABLED_AT_KEY: self.enabled_at.isoformat() if self.enabled_at else None,
            NOTIFIED_ITEM_IDS_KEY: list(self.notified_item_ids),
            NOTIFIED_QUEUE_IDS_KEY: list(self.notified_queue_ids),
            SOURCE_DAILY_COUNTS_KEY: counts,
        }

    def count_for(self, source_id: str, day: date) -> int:
        return self.daily_counts.get((source_id, day), 0)

    def increment(self, source_id: str, day: date) -> int:
        """Bump today's counter for a shop, dropping entries from other days."""
        self.daily_counts = {
            key: count for key, count in self.daily_counts.items() if key[1] == day
        }
        key = (source_id, day)
        self.daily_counts[key] = self.daily_counts.get(key, 0) + 1
        return self.daily_counts[key]


@dataclass
class QueueBatch:
    """Outcome of running server-queued notifications through the gate."""

    emitted: list[QueuedNotification] = field(default_factory=list)
    acknowledge_ids: list[str] = field(default_factory=list)


def _remember(ids: list[str], seen: set[str], entry_id: str, cap: int) -> None:
    ids.append(entry_id)
    seen.add(entry_id)
    overflow = len(ids) - cap
    if overflow > 0:
        for evicted in ids[:overflow]:
            seen.discard(evicted)
        del ids[:overflow]


class NotificationGate:
    """Decide which eligible items actually fire a notification.

    Every item notifies at most once (while its id is tracked), never when it
    predates the opt-in baseline, and at most ``max_per_source_per_day`` times
    per shop per calendar day. The calendar day is ``now.date()`` in the
    timezone of the ``now`` passed to :meth:`decide`. Naive instants are
    taken as UTC.

    State is re-read from the store on each call and written back after every
    emitted item, so a batch interrupted half-way leaves the already decided
    items deduplicated and the rest untouched.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_per_source_per_day: int = MAX_PER_SOURCE_PER_DAY,
        max_tracked_ids: int = MAX_TRACKED_IDS,
    ) -> None:
        self.store = store
        self.max_per_source_per_day = max_per_source_per_day
        self.max_tracked_ids = max_tracked_ids
        self._lock = threading.Lock()

    def load_state(self) -> GateState:
        return GateState.load(self.store)

    def should_evaluate(self) -> bool:
        """True once the consumer opted in and a baseline exists."""
        state = self.load_state()
        return state.opted_in and state.enabled_at is not None

    def enable(self, now: datetime) -> None:
        """Opt in. The baseline is only set the first time."""
        with self._lock:
            state = self.load_state()
            state.opted_in = True
            if state.enabled_at is None:
                state.enabled_at = _as_utc(now)
            self.store.set_many({OPT_IN_KEY: True, ENABLED_AT_KEY: state.enabled_at.isoformat()})

    def reset(self, extra_keys: Iterable[str] = ()) -> None:
        """Opt out: forget opt-in, baseline, dedup ids and counters.

        ``extra_keys`` are deleted in the same write, under the same lock, so
        a concurrent :meth:`decide` cannot write the gate state back.
        """
        with self._lock:
            self.store.delete_many(tuple(GATE_KEYS) + tuple(extra_keys))

    def daily_count(self, source_id: str, now: datetime) -> int:
        return self.load_state().count_for(source_id, now.date())

    def _skip_reason(
        self,
        state: GateState,
        seen: set[str],
        entry_id: str,
        source_id: str,
        created_at: Optional[datetime],
        today: date,
    ) -> Optional[SkipReason]:
        if created_at is not None and _as_utc(created_at) <= state.enabled_at:
            return SkipReason.BEFORE_BASELINE
        if entry_id in seen:
            return SkipReason.ALREADY_NOTIFIED
        if state.count_for(source_id, today) >= self.max_per_source_per_day:
            return SkipReason.RATE_LIMITED
        return None

    def decide(self, candidates: Iterable[MatchedItem], now: datetime) -> list[MatchedItem]:
        """Return the candidates that should notify now, recording each one.

        Args:
            candidates: Eligible items in priority order
            now: Decision instant, used for the calendar day

        Returns:
            Subset of ``candidates`` to display, in input order
        """
        with self._lock:
            state = self.load_state()
            if not (state.opted_in and state.enabled_at is not None):
                return []

            today = now.date()
            seen = set(state.notified_item_ids)
            emitted: list[MatchedItem] = []

            for candidate in candidates:
                reason = self._skip_reason(
                    state, seen, candidate.id, candidate.source_id, candidate.created_at, today
                )
                if reason is not None:
                    continue

                _remember(state.notified_item_ids, seen, candidate.id, self.max_tracked_ids)
                state.increment(candidate.source_id, today)
                self.store.set_many(state.to_mapping())
                emitted.append(candidate)

            return emitted

    def decide_queued(
        self, notifications: Iterable[QueuedNotification], now: datetime
    ) -> QueueBatch:
        """Run server-queued notifications through dedup and rate limiting.

        Entries that were emitted, already shown, or predate the baseline are
        returned for acknowledgement. Rate-limited entries are not, so the
        server offers them again on a later poll.
        """
        batch = QueueBatch()

        with self._lock:
            state = self.load_state()
            if not (state.opted_in and state.enabled_at is not None):
                return batch

            today = now.date()
            seen = set(state.notified_queue_ids)

            for notification in notifications:
                reason = self._skip_reason(
                    state,
                    seen,
                    notification.id,
                    notification.source_id,
                    notification.created_at,
                    today,
                )
                if reason is SkipReason.RATE_LIMITED:
                    continue
                if reason is not None:
                    batch.acknowledge_ids.append(notification.id)
                    continue

                _remember(state.notified_queue_ids, seen, notification.id, self.max_tracked_ids)
                state.increment(notification.source_id, today)
                self.store.set_many(state.to_mapping())
                batch.emitted.append(notification)
                batch.acknowledge_ids.append(notification.id)

        return batch
