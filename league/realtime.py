"""Push leaderboard recomputations to subscribers when rounds change.

Change signals arrive through ``LeaderboardHub.notify`` (fed by the Postgres
``round_changes`` channel in production). A burst of signals for one event
collapses into a single recomputation once the debounce window elapses.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Optional

import psycopg

from league.db import ROUND_CHANGES_CHANNEL, UpstreamFetchError
from league.handicap import DEFAULT_PAR
from league.leaderboard import LeaderboardEntry, compute_event_leaderboard, validate_sort_by

logger = logging.getLogger(__name__)

LISTEN_RETRY_SECONDS = 1.0
LISTEN_RETRY_MAX_SECONDS = 30.0


@dataclass(frozen=True)
class LeaderboardUpdate:
    event_id: str
    sort_by: str
    entries: list[LeaderboardEntry] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class _Subscription:
    subscription_id: str
    event_id: str
    sort_by: str
    callback: Callable[[LeaderboardUpdate], None]


class LeaderboardHub:
    def __init__(
        self,
        store,
        debounce_seconds: float = 0.5,
        default_par: int = DEFAULT_PAR,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self._store = store
        self._debounce_seconds = debounce_seconds
        self._default_par = default_par
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._subscriptions: dict[str, _Subscription] = {}
        self._pending: dict[str, threading.Timer] = {}
        self._closed = False

    def subscribe(
        self,
        event_id: str,
        callback: Callable[[LeaderboardUpdate], None],
        sort_by: str = "net",
    ) -> str:
        validate_sort_by(sort_by)
        subscription = _Subscription(str(uuid.uuid4()), event_id, sort_by, callback)
        with self._lock:
            self._subscriptions[subscription.subscription_id] = subscription
        logger.debug("Subscribed %s to event %s", subscription.subscription_id, event_id)
        self._deliver([subscription], self._compute(event_id, sort_by))
        return subscription.subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        with self._lock:
            removed = self._subscriptions.pop(subscription_id, None)
        return removed is not None

    def subscriber_count(self, event_id: str) -> int:
        with self._lock:
            return sum(1 for sub in self._subscriptions.values() if sub.event_id == event_id)

    def notify(self, event_id: str) -> bool:
        """Schedule a recomputation for ``event_id``; returns False when coalesced or ignored."""
        with self._lock:
            if self._closed or event_id in self._pending:
                return False
            if not any(sub.event_id == event_id for sub in self._subscriptions.values()):
                return False
            timer = self._timer_factory(self._debounce_seconds, self._flush, args=(event_id,))
            timer.daemon = True
            self._pending[event_id] = timer
        timer.start()
        return True

    def _flush(self, event_id: str) -> None:
        with self._lock:
            self._pending.pop(event_id, None)
            if self._closed:
                return
        self.refresh(event_id)

    def refresh(self, event_id: str) -> int:
        """Recompute now and deliver to every subscriber of the event."""
        with self._lock:
            by_sort: dict[str, list[_Subscription]] = defaultdict(list)
            for sub in self._subscriptions.values():
                if sub.event_id == event_id:
                    by_sort[sub.sort_by].append(sub)
        delivered = 0
        for sort_by, subscriptions in by_sort.items():
            delivered += self._deliver(subscriptions, self._compute(event_id, sort_by))
        return delivered

    def _compute(self, event_id: str, sort_by: str) -> LeaderboardUpdate:
        try:
            entries = compute_event_leaderboard(
                self._store, event_id, sort_by, self._default_par
            )
        except UpstreamFetchError as exc:
            return LeaderboardUpdate(event_id, sort_by, error=f"Failed to load leaderboard: {exc}")
        return LeaderboardUpdate(event_id, sort_by, entries)

    def _deliver(self, subscriptions: list[_Subscription], update: LeaderboardUpdate) -> int:
        delivered = 0
        for sub in subscriptions:
            try:
                sub.callback(update)
            except Exception:  # noqa: BLE001
                logger.exception("Leaderboard subscriber %s failed", sub.subscription_id)
                continue
            delivered += 1
        return delivered

    def close(self) -> None:
        with self._lock:
            self._closed = True
            timers = list(self._pending.values())
            self._pending.clear()
            self._subscriptions.clear()
        for timer in timers:
            timer.cancel()


def listen_for_round_changes(
    database_url: str,
    hub: LeaderboardHub,
    stop_event: threading.Event,
    poll_seconds: float = 1.0,
    retry_seconds: float = LISTEN_RETRY_SECONDS,
) -> None:
    """Forward Postgres round change notifications to ``hub`` until stopped.

    A lost connection is logged and reopened after a delay that doubles on
    each consecutive failure, up to ``LISTEN_RETRY_MAX_SECONDS``.
    """
    delay = retry_seconds
    while not stop_event.is_set():
        try:
            with psycopg.connect(database_url, autocommit=True) as conn:
                conn.execute(f"listen {ROUND_CHANGES_CHANNEL};")
                logger.info("Listening for round changes on channel %s", ROUND_CHANGES_CHANNEL)
                delay = retry_seconds
                while not stop_event.is_set():
                    for notification in conn.notifies(timeout=poll_seconds):
                        if notification.payload:
                            hub.notify(notification.payload)
                        if stop_event.is_set():
                            break
        except psycopg.Error as exc:
            logger.warning(
                "Round change listener lost its connection, retrying in %.1fs: %s", delay, exc
            )
            if stop_event.wait(delay):
                break
            delay = min(delay * 2, LISTEN_RETRY_MAX_SECONDS)
    logger.info("Round change listener stopped")
