"""
Refresh policy for the supply snapshot.

Refreshes run:
- at startup, only when no snapshot has been saved yet
- every REFRESH_INTERVAL_DAYS (7 by default) from a background timer
- on demand (POST /api/refresh, or a read when nothing is cached)

At most one build runs at a time. A manual trigger that arrives during a
build waits for that build and shares its result; a timer tick that arrives
during a build is skipped.
"""

from __future__ import annotations

from concurrent.futures import Future
from datetime import datetime, timedelta
from threading import Event, Lock, Thread
from typing import Callable

from logger import setup_logger
from snapshot_builder import Snapshot, SnapshotBuilder, utc_now
from snapshot_store import RefreshMarker, SnapshotStore
from supply_config import REFRESH_INTERVAL_DAYS

logger = setup_logger('data_refresher')

REFRESH_INTERVAL = timedelta(days=REFRESH_INTERVAL_DAYS)


class DataRefresher:
    def __init__(self, builder: SnapshotBuilder, store: SnapshotStore,
                 interval: timedelta = REFRESH_INTERVAL,
                 clock: Callable[[], datetime] = utc_now):
        self.builder = builder
        self.store = store
        self.interval = interval
        self.clock = clock

        self._state_lock = Lock()
        self._in_flight: Future | None = None
        self._stop = Event()
        self._timer_thread: Thread | None = None

    @property
    def is_refreshing(self) -> bool:
        with self._state_lock:
            return self._in_flight is not None

    def refresh(self, wait: bool = True, only_if_missing: bool = False) -> Snapshot | None:
        """
        Build, persist and mark a new snapshot.

        Args:
            wait: If another refresh is already running, wait for it and return
                its snapshot (True) or return None immediately (False).
            only_if_missing: Once this call holds the gate, return the saved
                snapshot instead of building when one already exists.

        Returns:
            The new snapshot, or None when skipped.

        Raises:
            FetchError / PersistError from the build this call ran or waited on.
        """
        with self._state_lock:
            in_flight = self._in_flight
            if in_flight is None:
                in_flight = self._in_flight = Future()
                owner = True
            else:
                owner = False

        if not owner:
            if not wait:
                logger.info("Refresh already in progress, skipping")
                return None
            logger.info("Refresh already in progress, waiting for it to finish")
            return in_flight.result()

        try:
            snapshot = self.store.load() if only_if_missing else None
            if snapshot is None:
                snapshot = self._run_refresh()
        except BaseException as exc:
            in_flight.set_exception(exc)
            raise
        else:
            in_flight.set_result(snapshot)
            return snapshot
        finally:
            with self._state_lock:
                self._in_flight = None

    def _run_refresh(self) -> Snapshot:
        snapshot = self.builder.build()
        self.store.save(snapshot)

        now = self.clock()
        marker = RefreshMarker(last_refresh_at=now, next_scheduled_at=now + self.interval)
        self.store.save_marker(marker)
        logger.info(f"Refresh complete: {len(snapshot.cards)} cards, next scheduled {marker.to_json()['nextScheduledFetch']}")
        return snapshot

    def ensure_snapshot(self) -> Snapshot:
        """Return the saved snapshot, building one first if none exists."""
        snapshot = self.store.load()
        if snapshot is None:
            logger.info("No cached data found, fetching fresh data...")
            snapshot = self.refresh(wait=True, only_if_missing=True)
        return snapshot

    def start(self) -> None:
        """Run the initial refresh if needed, then start the weekly timer."""
        if self.store.load() is None:
            logger.info("No existing data found, fetching initial data...")
            self.refresh(wait=True, only_if_missing=True)
        else:
            logger.info("Loaded existing data from cache")
        self.start_timer()

    def start_timer(self) -> None:
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return
        self._stop.clear()
        self._timer_thread = Thread(target=self._timer_loop, name='weekly-refresh', daemon=True)
        self._timer_thread.start()
        logger.info(f"Refresh scheduler initialized (every {self.interval})")

    def stop(self) -> None:
        self._stop.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout=5)
            self._timer_thread = None

    def _timer_loop(self) -> None:
        while not self._stop.wait(self.interval.total_seconds()):
            self.run_scheduled_refresh()

    def run_scheduled_refresh(self) -> None:
        logger.info("Running scheduled update...")
        try:
            snapshot = self.refresh(wait=False)
        except Exception as exc:
            logger.error(f"Scheduled update failed: {exc}")
            return
        if snapshot is not None:
            logger.info("Scheduled update completed successfully")
