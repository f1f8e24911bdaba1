"""Tests for the FocusWatcher state machine."""

import asyncio

import pytest

from focusnudge.dispatcher import DispatchError
from focusnudge.models import ForegroundWindow
from focusnudge.watcher import CooldownTable, FocusWatcher, Nudge, format_duration


class FakeClock:
    """Manually advanced clock in milliseconds."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeForeground:
    """Reports whatever application the test says is focused."""

    def __init__(self, app: str | None = None) -> None:
        self.app = app
        self.calls = 0

    async def __call__(self) -> ForegroundWindow | None:
        self.calls += 1
        if self.app is None:
            return None
        return ForegroundWindow(process_name=self.app)


class RecordingDispatcher:
    """Stands in for NotificationDispatcher and remembers every call."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = []
        self.error = error

    async def notify(self, title, body, prefer_dialog=False):
        self.calls.append((title, body, prefer_dialog))
        if self.error is not None:
            raise self.error


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def foreground():
    return FakeForeground()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def watcher(foreground, dispatcher, clock):
    return FocusWatcher(foreground, dispatcher, clock=clock)


async def tick_at(watcher, clock, foreground, t, app):
    clock.now = t
    foreground.app = app
    nudge = await watcher.tick()
    await asyncio.sleep(0)  # let the dispatch task run
    return nudge


@pytest.mark.parametrize(
    ("ms", "text"),
    [
        (1000, "1 second"),
        (1999, "1 second"),
        (2000, "2 seconds"),
        (10001, "10 seconds"),
        (59999, "59 seconds"),
        (60000, "1 minute"),
        (119999, "1 minute"),
        (125000, "2 minutes"),
    ],
)
def test_format_duration(ms, text):
    """Test seconds under a minute, whole minutes after, with plurals."""
    assert format_duration(ms) == text


def test_nudge_message():
    """Test the fixed title and body template."""
    nudge = Nudge.for_app("Firefox", 125000)
    assert nudge.title == "You've been using Firefox"
    assert nudge.body == "You are on Firefox for 2 minutes. Let's get back to work."


class TestFocusWatcher:
    """Tests for FocusWatcher ticks."""

    def test_initial_state(self, watcher):
        """Test a fresh watcher has no session, no cooldowns and is stopped."""
        assert watcher.session is None
        assert len(watcher.cooldowns) == 0
        assert watcher.poll_interval == 2.0
        assert not watcher.is_running

    def test_poll_interval_minimum(self, watcher):
        """Test poll interval is clamped to a minimum of 0.1 seconds."""
        watcher.poll_interval = 0.01
        assert watcher.poll_interval >= 0.1

    @pytest.mark.asyncio
    async def test_threshold_then_cooldown(self, watcher, clock, foreground, dispatcher):
        """Test the nudge fires only once focus exceeds the threshold, then cools down."""
        assert await tick_at(watcher, clock, foreground, 0, "A") is None
        assert watcher.session.app_name == "A"
        assert watcher.session.since == 0

        assert await tick_at(watcher, clock, foreground, 9999, "A") is None
        assert await tick_at(watcher, clock, foreground, 10000, "A") is None

        nudge = await tick_at(watcher, clock, foreground, 10001, "A")
        assert nudge is not None
        assert nudge.app_name == "A"
        assert dispatcher.calls == [
            ("You've been using A", "You are on A for 10 seconds. Let's get back to work.", False)
        ]

        assert await tick_at(watcher, clock, foreground, 10002, "A") is None
        assert len(dispatcher.calls) == 1
        assert watcher.cooldowns.last_notified("A") == 10001

    @pytest.mark.asyncio
    async def test_switching_resets_duration(self, watcher, clock, foreground, dispatcher):
        """Test switching applications restarts the focus duration."""
        await tick_at(watcher, clock, foreground, 0, "A")
        await tick_at(watcher, clock, foreground, 5000, "B")
        await tick_at(watcher, clock, foreground, 6000, "A")
        assert watcher.session.since == 6000

        assert await tick_at(watcher, clock, foreground, 15999, "A") is None

        nudge = await tick_at(watcher, clock, foreground, 16001, "A")
        assert nudge is not None
        assert nudge.elapsed_ms == 10001
        assert len(dispatcher.calls) == 1

    @pytest.mark.asyncio
    async def test_cooldown_is_per_application(self, watcher, clock, foreground, dispatcher):
        """Test one application's cooldown does not suppress another's nudge."""
        await tick_at(watcher, clock, foreground, 0, "A")
        assert await tick_at(watcher, clock, foreground, 10001, "A") is not None

        await tick_at(watcher, clock, foreground, 20000, "B")
        assert await tick_at(watcher, clock, foreground, 30001, "B") is not None

        assert [call[0] for call in dispatcher.calls] == ["You've been using A", "You've been using B"]

    @pytest.mark.asyncio
    async def test_cooldown_expires(self, watcher, clock, foreground, dispatcher):
        """Test the same application is nudged again once its cooldown has passed."""
        await tick_at(watcher, clock, foreground, 0, "A")
        await tick_at(watcher, clock, foreground, 10001, "A")

        # Exactly cooldown_ms later is still cooling (strict comparison).
        assert await tick_at(watcher, clock, foreground, 310001, "A") is None
        nudge = await tick_at(watcher, clock, foreground, 310002, "A")
        assert nudge is not None
        assert nudge.body == "You are on A for 5 minutes. Let's get back to work."
        assert len(dispatcher.calls) == 2

    @pytest.mark.asyncio
    async def test_cooldown_survives_switching_away(self, watcher, clock, foreground, dispatcher):
        """Test switching away and back does not clear the cooldown."""
        await tick_at(watcher, clock, foreground, 0, "A")
        await tick_at(watcher, clock, foreground, 10001, "A")
        await tick_at(watcher, clock, foreground, 11000, "B")
        await tick_at(watcher, clock, foreground, 12000, "A")

        assert await tick_at(watcher, clock, foreground, 30000, "A") is None
        assert len(dispatcher.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_query_skips_tick(self, watcher, clock, foreground):
        """Test an empty foreground answer leaves the session untouched."""
        await tick_at(watcher, clock, foreground, 0, "A")
        session = watcher.session

        assert await tick_at(watcher, clock, foreground, 5000, None) is None
        assert watcher.session is session

    @pytest.mark.asyncio
    async def test_query_failure_skips_tick(self, dispatcher, clock):
        """Test a failing foreground query skips the tick."""
        async def broken():
            raise OSError("display gone")

        watcher = FocusWatcher(broken, dispatcher, clock=clock)
        assert await watcher.tick() is None
        assert watcher.session is None

    @pytest.mark.asyncio
    async def test_app_name_resolution(self, dispatcher, clock):
        """Test the session name falls back from process to owner to title."""
        windows = iter(
            [
                ForegroundWindow(title="Doc - Editor", owner_name="Editor", process_name="editor-bin"),
                ForegroundWindow(title="Doc - Editor", owner_name="Editor"),
                ForegroundWindow(title="Doc - Editor"),
                ForegroundWindow(),
            ]
        )

        async def query():
            return next(windows)

        watcher = FocusWatcher(query, dispatcher, clock=clock)
        names = []
        for _ in range(4):
            await watcher.tick()
            names.append(watcher.session.app_name)

        assert names == ["editor-bin", "Editor", "Doc - Editor", "Unknown"]

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_swallowed(self, foreground, clock):
        """Test a failed notification is logged and does not stop the watcher."""
        dispatcher = RecordingDispatcher(error=DispatchError("nothing to show on"))
        watcher = FocusWatcher(foreground, dispatcher, clock=clock)

        await tick_at(watcher, clock, foreground, 0, "A")
        assert await tick_at(watcher, clock, foreground, 10001, "A") is not None
        assert len(dispatcher.calls) == 1
        # Cooldown was recorded on the attempt, not on a response.
        assert "A" in watcher.cooldowns
        assert await tick_at(watcher, clock, foreground, 10002, "A") is None

    @pytest.mark.asyncio
    async def test_ticks_do_not_overlap(self, dispatcher, clock):
        """Test a tick started while another is in flight is skipped."""
        release = asyncio.Event()
        calls = 0

        async def slow_query():
            nonlocal calls
            calls += 1
            await release.wait()
            return ForegroundWindow(process_name="A")

        watcher = FocusWatcher(slow_query, dispatcher, clock=clock)
        first = asyncio.create_task(watcher.tick())
        await asyncio.sleep(0)

        assert await watcher.tick() is None
        assert calls == 1

        release.set()
        await first
        assert watcher.session.app_name == "A"

    @pytest.mark.asyncio
    async def test_custom_threshold(self, foreground, dispatcher, clock):
        """Test a configured threshold replaces the default."""
        watcher = FocusWatcher(foreground, dispatcher, clock=clock, threshold_ms=60_000)

        await tick_at(watcher, clock, foreground, 0, "A")
        assert await tick_at(watcher, clock, foreground, 30_000, "A") is None
        nudge = await tick_at(watcher, clock, foreground, 60_001, "A")
        assert "1 minute" in nudge.body

    @pytest.mark.asyncio
    async def test_start_stop(self, foreground, dispatcher):
        """Test start runs the poll task and stop cancels it."""
        foreground.app = "A"
        watcher = FocusWatcher(foreground, dispatcher, poll_interval=0.1)

        watcher.start()
        assert watcher.is_running
        task = watcher._task
        watcher.start()  # Should not create a new task
        assert watcher._task is task

        await asyncio.sleep(0.25)
        assert foreground.calls >= 2
        assert watcher.session.app_name == "A"

        watcher.stop()
        await asyncio.sleep(0)
        assert not watcher.is_running


class TestCooldownTable:
    """Tests for CooldownTable."""

    def test_absent_entry_never_cools(self):
        """Test an application never notified is not cooling."""
        table = CooldownTable(cooldown_ms=1000)
        assert table.last_notified("A") is None
        assert not table.is_cooling("A", 0)

    def test_is_cooling_boundary(self):
        """Test cooling lasts through exactly cooldown_ms after the last nudge."""
        table = CooldownTable(cooldown_ms=1000)
        table.record("A", 0)
        assert table.is_cooling("A", 1000)
        assert not table.is_cooling("A", 1001)

    def test_prunes_stale_entries(self):
        """Test entries older than the retention window are dropped."""
        table = CooldownTable(cooldown_ms=1000, retention=2)
        table.record("A", 0)
        table.record("B", 1500)
        assert len(table) == 2

        table.record("C", 2001)
        assert "A" not in table
        assert "B" in table
        assert "C" in table
