"""
Polling loop behind the lineup kiosk and host control screens.

The screens never hold a push connection: they refetch the display endpoint
on a fixed interval and whenever the page becomes visible or focused again.
``ConnectionHealth`` turns fetch outcomes into the status badge the screen
shows (connected / reconnecting / disconnected) plus the "connection restored"
banner, and ``DisplayPoller`` drives fetches on a single asyncio loop.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, TypeVar

import structlog

from happenings.core.config import settings

log = structlog.get_logger(__name__)

T = TypeVar("T")


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"


class ConnectionHealth:
    """
    Consecutive-failure tracker.

    Failures below ``failure_threshold`` read as ``reconnecting``; reaching it
    flips to ``disconnected`` and starts the extended-outage deadline. The
    first success afterwards resets everything and raises the restored banner
    for ``restored_banner_seconds``. All timing comes from ``clock`` so tests
    can drive it.
    """

    def __init__(
        self,
        *,
        failure_threshold: int | None = None,
        extended_outage_seconds: float | None = None,
        restored_banner_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold or settings.poll_failure_threshold
        self.extended_outage_seconds = (
            extended_outage_seconds
            if extended_outage_seconds is not None
            else settings.extended_outage_seconds
        )
        self.restored_banner_seconds = (
            restored_banner_seconds
            if restored_banner_seconds is not None
            else settings.restored_banner_seconds
        )
        self._clock = clock

        self.status = ConnectionStatus.CONNECTED
        self.consecutive_failures = 0
        self.last_success_at: float | None = None
        self._outage_deadline: float | None = None
        self._banner_until: float | None = None

    def record_failure(self) -> ConnectionStatus:
        self.consecutive_failures += 1
        previous = self.status
        if self.consecutive_failures >= self.failure_threshold:
            if previous != ConnectionStatus.DISCONNECTED:
                self._outage_deadline = self._clock() + self.extended_outage_seconds
            self.status = ConnectionStatus.DISCONNECTED
        else:
            self.status = ConnectionStatus.RECONNECTING
        self._banner_until = None
        if self.status != previous:
            log.info(
                "connection_status_changed",
                previous=previous.value,
                status=self.status.value,
                failures=self.consecutive_failures,
            )
        return self.status

    def record_success(self) -> ConnectionStatus:
        previous = self.status
        now = self._clock()
        if previous == ConnectionStatus.DISCONNECTED:
            self._banner_until = now + self.restored_banner_seconds
        self.status = ConnectionStatus.CONNECTED
        self.consecutive_failures = 0
        self.last_success_at = now
        self._outage_deadline = None
        if previous != ConnectionStatus.CONNECTED:
            log.info("connection_status_changed", previous=previous.value, status=self.status.value)
        return self.status

    @property
    def show_restored_banner(self) -> bool:
        return self._banner_until is not None and self._clock() < self._banner_until

    @property
    def is_extended_outage(self) -> bool:
        return (
            self.status == ConnectionStatus.DISCONNECTED
            and self._outage_deadline is not None
            and self._clock() >= self._outage_deadline
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "consecutive_failures": self.consecutive_failures,
            "show_restored_banner": self.show_restored_banner,
            "extended_outage": self.is_extended_outage,
        }


class DisplayPoller(Generic[T]):
    """
    Fetch on a fixed interval plus debounced refetches on visibility/focus.

    Fetches may overlap (an interval tick and a focus refetch); only a result
    newer than the last applied one is handed to ``on_update``. ``stop()``
    cancels a pending debounce timer but not requests already in flight;
    nothing is applied after it, even if a response lands late.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        *,
        interval: float | None = None,
        on_update: Callable[[T], None] | None = None,
        health: ConnectionHealth | None = None,
        debounce_ms: int | None = None,
    ) -> None:
        self._fetch = fetch
        self.interval = interval if interval is not None else settings.display_poll_interval_seconds
        self._on_update = on_update
        self.health = health or ConnectionHealth()
        self._debounce = (debounce_ms if debounce_ms is not None else settings.focus_debounce_ms) / 1000

        self.latest: T | None = None
        self._stopped = False
        self._wake = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._inflight: set[asyncio.Task] = set()
        self._issued = 0
        self._applied = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> asyncio.Task:
        if self._stopped:
            raise RuntimeError("poller was stopped")
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def run(self) -> None:
        log.info("display_poller_started", interval=self.interval)
        try:
            while not self._stopped:
                await self.refresh()
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
                self._wake.clear()
        except asyncio.CancelledError:
            log.info("display_poller_cancelled")
            raise

    async def refresh(self) -> bool:
        """One fetch. Returns True when its result was applied."""
        if self._stopped:
            return False
        self._issued += 1
        seq = self._issued

        try:
            data = await self._fetch()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Counted, never raised out of the loop
            if self._stopped:
                return False
            status = self.health.record_failure()
            log.warning(
                "display_poll_failed",
                error=str(exc),
                failures=self.health.consecutive_failures,
                status=status.value,
            )
            return False

        if self._stopped:
            return False
        self.health.record_success()
        if seq <= self._applied:
            return False
        self._applied = seq
        self.latest = data
        if self._on_update is not None:
            self._on_update(data)
        return True

    def notify_visible(self) -> None:
        self._schedule_refetch("visible")

    def notify_focus(self) -> None:
        self._schedule_refetch("focus")

    def _schedule_refetch(self, reason: str) -> None:
        if self._stopped:
            return
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = asyncio.get_running_loop().call_later(
            self._debounce, self._fire_refetch, reason
        )

    def _fire_refetch(self, reason: str) -> None:
        self._debounce_handle = None
        if self._stopped:
            return
        log.debug("display_refetch", reason=reason)
        task = asyncio.ensure_future(self.refresh())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        # Requests already sent run to completion; refresh() drops their results
        self._wake.set()
        log.info("display_poller_stopped")
