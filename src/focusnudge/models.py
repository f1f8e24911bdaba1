"""Data models for focusnudge."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ProcessStatus(Enum):
    """Coarse process state derived from the raw OS state string."""

    ONGOING = "ongoing"
    IDLE = "idle"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of one OS process."""

    pid: int
    name: str
    command: str
    cpu_percent: float
    memory_bytes: int
    started_at: datetime | None
    elapsed_ms: int | None
    status: ProcessStatus

    def to_payload(self) -> dict:
        """Render the record in the boundary (camelCase) shape."""
        return {
            "pid": self.pid,
            "name": self.name,
            "command": self.command,
            "cpuPercent": self.cpu_percent,
            "memoryBytes": self.memory_bytes,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "elapsedMs": self.elapsed_ms,
            "status": self.status.value,
        }


@dataclass(slots=True, frozen=True)
class FocusSession:
    """The application currently holding focus, and since when (epoch ms)."""

    app_name: str
    since: float


@dataclass(slots=True, frozen=True)
class ForegroundWindow:
    """What the active-window facility reported for the focused window."""

    title: str = ""
    owner_name: str = ""
    process_name: str = ""
    pid: int | None = None


class NotificationChannel(Enum):
    """How an interruption was presented."""

    ALERT = "alert"
    DIALOG = "dialog"


class NotificationOutcome(Enum):
    """The user's answer, reduced to two values."""

    OKAY = "okay"
    CANCEL = "cancel"


@dataclass(slots=True, frozen=True)
class NotificationResult:
    """Outcome of a single notification, whichever channel showed it."""

    channel: NotificationChannel
    outcome: NotificationOutcome
    raw_index: int | None = None

    @classmethod
    def from_index(cls, channel: NotificationChannel, index: int) -> "NotificationResult":
        """Button 0 is "Okay"; every other index counts as "Cancel"."""
        outcome = NotificationOutcome.OKAY if index == 0 else NotificationOutcome.CANCEL
        return cls(channel=channel, outcome=outcome, raw_index=index)

    @classmethod
    def dismissed(cls, channel: NotificationChannel) -> "NotificationResult":
        """Closed without picking an action."""
        return cls(channel=channel, outcome=NotificationOutcome.CANCEL)

    def to_event(self) -> dict:
        """Render as a ``notificationResponse`` event payload."""
        event: dict = {"result": self.outcome.value}
        if self.raw_index is not None:
            event["index"] = self.raw_index
        return event
