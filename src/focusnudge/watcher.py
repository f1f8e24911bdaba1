"""Focus watcher for focusnudge."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from focusnudge.dispatcher import NotificationDispatcher
from focusnudge.foreground import ForegroundQuery, resolve_app_name
from focusnudge.models import FocusSession

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_MS = 10_000
DEFAULT_COOLDOWN_MS = 300_000
DEFAULT_RETENTION = 12


def format_duration(ms: float) -> str:
    """Render a focus duration as whole seconds under a minute, else whole minutes."""
    if ms < 60_000:
        value, unit = int(ms // 1000), "second"
    else:
        value, unit = int(ms // 60_000), "minute"
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


@dataclass(slots=True, frozen=True)
class Nudge:
    """A notification the watcher decided to send."""

    app_name: str
    title: str
    body: str
    elapsed_ms: float

    @classmethod
    def for_app(cls, app_name: str, elapsed_ms: float) -> "Nudge":
        return cls(
            app_name=app_name,
            title=f"You've been using {app_name}",
            body=f"You are on {app_name} for {format_duration(elapsed_ms)}. Let's get back to work.",
            elapsed_ms=elapsed_ms,
        )


class CooldownTable:
    """
    Last-notified time (epoch ms) per application name.

    Entries older than ``retention`` cooldown periods are pruned whenever a
    new one is recorded; such entries could no longer suppress a nudge.
    """

    def __init__(self, cooldown_ms: float, retention: int = DEFAULT_RETENTION) -> None:
        self._cooldown_ms = cooldown_ms
        self._retention = max(1, retention)
        self._last: dict[str, float] = {}

    def last_notified(self, app_name: str) -> float | None:
        return self._last.get(app_name)

    def is_cooling(self, app_name: str, now: float) -> bool:
        """True while a nudge for ``app_name`` is still suppressed."""
        last = self._last.get(app_name)
        return last is not None and now - last <= self._cooldown_ms

    def record(self, app_name: str, now: float) -> None:
        self._last[app_name] = now
        self.prune(now)

    def prune(self, now: float) -> None:
        horizon = now - self._cooldown_ms * self._retention
        for name in [name for name, last in self._last.items() if last < horizon]:
            del self._last[name]

    def __contains__(self, app_name: object) -> bool:
        return app_name in self._last

    def __len__(self) -> int:
        return len(self._last)


class FocusWatcher:
    """
    Watches which application has focus and nudges the user about long stays.

    Polls the foreground query on an interval from an asyncio task. All state
    is owned by the instance and only mutated by tick(), which never overlaps
    with itself.
    """

    def __init__(
        self,
        query: ForegroundQuery,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], float] | None = None,
        threshold_ms: float = DEFAULT_THRESHOLD_MS,
        cooldown_ms: float = DEFAULT_COOLDOWN_MS,
        poll_interval: float = 2.0,
        cooldown_retention: int = DEFAULT_RETENTION,
    ) -> None:
        """
        Initialize the FocusWatcher.

        Args:
            query: Async callable returning the focused window, or None.
            dispatcher: Where nudges are sent.
            clock: Returns the current time in epoch milliseconds.
            threshold_ms: Focus duration that must be exceeded before a nudge.
            cooldown_ms: Minimum gap between nudges for the same application.
            poll_interval: Seconds between ticks. Default 2.0s.
            cooldown_retention: Cooldown periods an entry is kept for.
        """
        self._query = query
        self._dispatcher = dispatcher
        self._clock = clock or (lambda: time.time() * 1000)
        self._threshold_ms = threshold_ms
        self._cooldowns = CooldownTable(cooldown_ms, cooldown_retention)
        self._poll_interval = max(0.1, poll_interval)
        self._session: FocusSession | None = None
        self._ticking = False
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def poll_interval(self) -> float:
        """Get the current poll interval."""
        return self._poll_interval

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        """Set the poll interval."""
        self._poll_interval = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def session(self) -> FocusSession | None:
        return self._session

    @property
    def cooldowns(self) -> CooldownTable:
        return self._cooldowns

    @property
    def is_running(self) -> bool:
        """Check if the polling task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_loop(), name="FocusWatcher")
        logger.info("Focus watcher started (every %.1fs)", self._poll_interval)

    def stop(self) -> None:
        """Stop polling. Notifications already shown are left alone."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Focus watcher stopped")

    async def _poll_loop(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self._poll_interval)

    async def tick(self) -> Nudge | None:
        """
        Run one observation.

        Returns the Nudge that was dispatched, if any.
        """
        if self._ticking:
            logger.debug("Previous tick still running; skipping")
            return None

        self._ticking = True
        try:
            return await self._observe()
        finally:
            self._ticking = False

    async def _observe(self) -> Nudge | None:
        try:
            window = await self._query()
        except Exception as exc:
            logger.debug("Foreground query failed: %s", exc)
            return None
        if window is None:
            return None

        app_name = resolve_app_name(window)
        now = self._clock()

        if self._session is None or self._session.app_name != app_name:
            logger.debug("Focus moved to %s", app_name)
            self._session = FocusSession(app_name=app_name, since=now)

        elapsed = now - self._session.since
        if elapsed <= self._threshold_ms or self._cooldowns.is_cooling(app_name, now):
            return None

        nudge = Nudge.for_app(app_name, elapsed)
        self._cooldowns.record(app_name, now)
        logger.info("Nudging about %s after %s", app_name, format_duration(elapsed))

        task = asyncio.get_running_loop().create_task(self._dispatch(nudge))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return nudge

    async def _dispatch(self, nudge: Nudge) -> None:
        try:
            await self._dispatcher.notify(nudge.title, nudge.body, prefer_dialog=False)
        except Exception as exc:
            logger.warning("Could not notify about %s: %s", nudge.app_name, exc)
