"""Process snapshot adapter for focusnudge."""

import logging
import math
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

import psutil

from focusnudge.models import ProcessRecord, ProcessStatus

logger = logging.getLogger(__name__)

RawProcess = Mapping[str, object]


@dataclass(slots=True, frozen=True)
class SnapshotResult:
    """Either a sorted list of processes or a description of what went wrong."""

    ok: bool
    processes: list[ProcessRecord] = field(default_factory=list)
    error: str | None = None

    def to_payload(self) -> dict:
        """Render in the boundary shape."""
        if self.ok:
            return {"ok": True, "list": [record.to_payload() for record in self.processes]}
        return {"ok": False, "error": self.error or ""}


def iter_raw_processes() -> Iterable[dict]:
    """
    Enumerate running processes using psutil.

    Uses psutil.process_iter() with oneshot() context manager for efficiency.
    Processes that die mid-poll, deny access or are zombies are skipped.
    """
    attrs = [
        "pid",
        "name",
        "cmdline",
        "cpu_percent",
        "memory_info",
        "memory_percent",
        "create_time",
        "status",
    ]

    for proc in psutil.process_iter(attrs=attrs):
        try:
            with proc.oneshot():
                info = proc.info

                cmdline = info.get("cmdline") or []
                mem_info = info.get("memory_info")

                yield {
                    "pid": info.get("pid", proc.pid),
                    "name": info.get("name"),
                    "command": " ".join(cmdline),
                    "cpu": info.get("cpu_percent"),
                    "mem": mem_info.rss if mem_info else None,
                    "pmem": info.get("memory_percent"),
                    "started": info.get("create_time"),
                    "state": info.get("status"),
                }

        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def parse_started(value: object) -> datetime | None:
    """
    Parse a process start time.

    Accepts a datetime, epoch seconds (what psutil reports) or an ISO-8601
    string. Anything else yields None.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.astimezone()
    seconds = _number(value)
    if seconds is not None:
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.astimezone()
    return None


def classify_status(state: object) -> ProcessStatus:
    """Map a raw OS state string onto ongoing/idle/unknown."""
    text = str(state or "").lower()
    if "run" in text or text == "r":
        return ProcessStatus.ONGOING
    if "sleep" in text or "idle" in text or text == "s":
        return ProcessStatus.IDLE
    return ProcessStatus.UNKNOWN


def normalize_process(raw: RawProcess, now_ms: float) -> ProcessRecord:
    """Turn one raw process mapping into a ProcessRecord."""
    name = raw.get("name") or raw.get("command") or ""
    command = raw.get("command") or ""

    cpu = _number(raw.get("cpu"))
    if cpu is None:
        cpu = _number(raw.get("pcpu"))

    memory = _number(raw.get("mem"))
    if memory is None:
        memory = _number(raw.get("pmem"))

    started_at = parse_started(raw.get("started"))
    elapsed_ms = None
    if started_at is not None:
        elapsed_ms = max(0, round(now_ms - started_at.timestamp() * 1000))

    return ProcessRecord(
        pid=int(raw["pid"]),
        name=str(name),
        command=str(command),
        cpu_percent=max(0.0, cpu or 0.0),
        memory_bytes=max(0, int(memory or 0)),
        started_at=started_at,
        elapsed_ms=elapsed_ms,
        status=classify_status(raw.get("state")),
    )


def sort_records(records: Iterable[ProcessRecord]) -> list[ProcessRecord]:
    """Busiest first; equal CPU falls back to ascending pid."""
    return sorted(records, key=lambda record: (-record.cpu_percent, record.pid))


class ProcessSnapshotAdapter:
    """
    Answers "list processes now" with normalized, sorted records.

    Never raises: a failing enumeration is reported through SnapshotResult.
    """

    def __init__(
        self,
        enumerate_processes: Callable[[], Iterable[RawProcess]] = iter_raw_processes,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            enumerate_processes: Callable returning raw process mappings.
            clock: Returns the current time in epoch milliseconds.
        """
        self._enumerate = enumerate_processes
        self._clock = clock or (lambda: time.time() * 1000)

    def snapshot(self) -> SnapshotResult:
        """Take one snapshot of the process table."""
        try:
            now_ms = self._clock()
            records = [normalize_process(raw, now_ms) for raw in self._enumerate()]
        except Exception as exc:
            logger.warning("Process snapshot failed: %s", exc)
            return SnapshotResult(ok=False, error=str(exc) or type(exc).__name__)

        return SnapshotResult(ok=True, processes=sort_records(records))
