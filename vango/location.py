"""
Location tracking: append-only location log, latest-position lookup,
realtime subscriptions, and continuous polling from the transporter device.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Optional

from vango.db import DbClient, LocationUpdate
from vango.positioning import Position, PositionSource
from vango.realtime import ChangeFeed, Subscription
from vango.types import ServiceResult

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_GEOLOCATION_TIMEOUT_SECONDS = 5.0


def location_channel(booking_id: str) -> str:
    return f"location:{booking_id}"


@dataclass
class TrackingHandle:
    """Handle for a running continuous-tracking loop."""

    booking_id: str
    transporter_id: str
    stop_event: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None
    ticks: int = 0

    @property
    def running(self) -> bool:
        return bool(self.thread and self.thread.is_alive()) and not self.stop_event.is_set()


class LocationService:
    def __init__(
        self,
        db: DbClient,
        feed: ChangeFeed,
        position_source: Optional[PositionSource] = None,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        geolocation_timeout_seconds: float = DEFAULT_GEOLOCATION_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.feed = feed
        self.position_source = position_source
        self.poll_interval_seconds = poll_interval_seconds
        self.geolocation_timeout_seconds = geolocation_timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="vango-position"
        )
        self._pending_fix: Optional[Future] = None
        self._fix_lock = threading.Lock()

    def start_tracking(self, booking_id: str, transporter_id: str) -> bool:
        """
        Called when a job starts. Only checks for an earlier row; it does not
        reserve anything, so it always reports success.
        """
        try:
            existing = self.db.find_latest_location(booking_id, transporter_id)
            if existing:
                logger.info(
                    "Location tracking already active for booking %s", booking_id
                )
        except Exception:
            logger.exception("Error checking tracking state for %s", booking_id)
        return True

    def update_location(
        self,
        booking_id: str,
        transporter_id: str,
        lat: float,
        lng: float,
        *,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> ServiceResult[LocationUpdate]:
        try:
            record = self.db.insert_location(
                booking_id, transporter_id, lat, lng, heading=heading, speed=speed
            )
        except Exception as exc:
            logger.exception("Error updating location for booking %s", booking_id)
            return ServiceResult.failed(str(exc) or "Failed to update location")

        try:
            self.feed.publish(location_channel(booking_id), record.as_dict())
        except Exception:
            # The row is stored; subscribers will see it on their next read.
            logger.exception("Failed to publish location for booking %s", booking_id)

        logger.debug("Location updated: %s", record.id)
        return ServiceResult.ok(record)

    def get_latest_location(self, booking_id: str) -> ServiceResult[LocationUpdate]:
        try:
            record = self.db.find_latest_location(booking_id)
        except Exception as exc:
            logger.exception("Error fetching latest location for %s", booking_id)
            return ServiceResult.failed(str(exc) or "Failed to fetch latest location")
        if record is None:
            return ServiceResult.not_found()
        return ServiceResult.ok(record)

    def subscribe_to_location(
        self, booking_id: str, callback: Callable[[LocationUpdate], None]
    ) -> Subscription:
        def _on_row(payload: dict) -> None:
            record = LocationUpdate.from_dict(payload)
            if record.booking_id != booking_id:
                return
            logger.debug("Location update received for %s", booking_id)
            callback(record)

        return self.feed.subscribe(location_channel(booking_id), _on_row)

    def get_current_position(self) -> Optional[Position]:
        if self.position_source is None:
            logger.error("Geolocation is not supported: no position source configured")
            return None

        timeout = self.geolocation_timeout_seconds
        with self._fix_lock:
            # At most one request is outstanding; a hung source blocks new ones.
            if self._pending_fix is not None and not self._pending_fix.done():
                logger.warning("Previous position request still running, skipping")
                return None
            try:
                future = self._executor.submit(
                    self.position_source.get_position, timeout
                )
            except RuntimeError:
                logger.error("Position requests are closed")
                return None
            self._pending_fix = future
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.error("Timed out after %.1fs waiting for a position fix", timeout)
            return None
        except Exception:
            logger.exception("Error getting location")
            return None

    def _tick(
        self,
        handle: TrackingHandle,
        on_update: Optional[Callable[[Position], None]],
    ) -> None:
        position = self.get_current_position()
        if not position:
            return
        self.update_location(
            handle.booking_id,
            handle.transporter_id,
            position.latitude,
            position.longitude,
        )
        if on_update:
            try:
                on_update(position)
            except Exception:
                logger.exception("on_update callback failed")

    def _run_tracking_loop(
        self,
        handle: TrackingHandle,
        on_update: Optional[Callable[[Position], None]],
    ) -> None:
        # The wait only starts once the previous tick finished, so inserts never overlap.
        while not handle.stop_event.wait(self.poll_interval_seconds):
            self._tick(handle, on_update)
            handle.ticks += 1

    def start_continuous_tracking(
        self,
        booking_id: str,
        transporter_id: str,
        on_update: Optional[Callable[[Position], None]] = None,
    ) -> TrackingHandle:
        handle = TrackingHandle(booking_id=booking_id, transporter_id=transporter_id)
        handle.thread = threading.Thread(
            target=self._run_tracking_loop,
            args=(handle, on_update),
            name=f"vango-tracking-{booking_id}",
            daemon=True,
        )
        handle.thread.start()
        logger.info(
            "Started continuous tracking for booking %s every %.1fs",
            booking_id,
            self.poll_interval_seconds,
        )
        return handle

    def stop_continuous_tracking(
        self, handle: TrackingHandle, wait: Optional[float] = None
    ) -> None:
        """Cancel future ticks. A tick already in flight still completes."""
        handle.stop_event.set()
        if wait is not None and handle.thread:
            handle.thread.join(timeout=wait)
        logger.info("Stopped continuous tracking for booking %s", handle.booking_id)

    def close(self) -> None:
        """Release the position worker. A request still in flight is abandoned."""
        self._executor.shutdown(wait=False)
