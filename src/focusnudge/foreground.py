"""Foreground-window probes for focusnudge."""

import asyncio
import logging
import os
import shutil
import sys
from collections.abc import Awaitable, Callable, Mapping

import psutil

from focusnudge.models import ForegroundWindow

logger = logging.getLogger(__name__)

ForegroundQuery = Callable[[], Awaitable[ForegroundWindow | None]]

PROBE_TIMEOUT = 2.0

FRONTMOST_SCRIPT = """
tell application "System Events"
    set frontApp to first application process whose frontmost is true
    return (name of frontApp) & linefeed & (unix id of frontApp)
end tell
"""


def resolve_app_name(window: ForegroundWindow) -> str:
    """Pick the identity of the focused application."""
    return window.process_name or window.owner_name or window.title or "Unknown"


def process_name_for(pid: int | None) -> str:
    """Return the name of the process owning a window, or "" if unknown."""
    if not pid:
        return ""
    try:
        return psutil.Process(pid).name()
    except psutil.Error:
        return ""


async def _run(*args: str, timeout: float = PROBE_TIMEOUT) -> str:
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        logger.warning("%s did not answer within %.1fs", args[0], timeout)
        proc.kill()
        await proc.wait()
        return ""
    if proc.returncode != 0:
        return ""
    return stdout.decode(errors="replace").strip()


def _parse_pid(text: str) -> int | None:
    return int(text) if text.isdigit() else None


class XdotoolForeground:
    """Reads the active X11 window through the ``xdotool`` CLI."""

    def __init__(self, executable: str) -> None:
        self._executable = executable

    async def __call__(self) -> ForegroundWindow | None:
        window_id = await _run(self._executable, "getactivewindow")
        if not window_id:
            return None
        title = await _run(self._executable, "getwindowname", window_id)
        pid = _parse_pid(await _run(self._executable, "getwindowpid", window_id))
        return ForegroundWindow(title=title, process_name=process_name_for(pid), pid=pid)


class AppleScriptForeground:
    """Asks System Events for the frontmost application on macOS."""

    def __init__(self, executable: str) -> None:
        self._executable = executable

    async def __call__(self) -> ForegroundWindow | None:
        output = await _run(self._executable, "-e", FRONTMOST_SCRIPT)
        if not output:
            return None
        owner_name, _, pid_text = output.partition("\n")
        pid = _parse_pid(pid_text.strip())
        return ForegroundWindow(
            owner_name=owner_name.strip(),
            process_name=process_name_for(pid),
            pid=pid,
        )


class Win32Foreground:
    """Uses pywin32 to read the foreground window on Windows."""

    def __init__(self, win32gui, win32process) -> None:
        self._win32gui = win32gui
        self._win32process = win32process

    async def __call__(self) -> ForegroundWindow | None:
        return await asyncio.to_thread(self._read)

    def _read(self) -> ForegroundWindow | None:
        hwnd = self._win32gui.GetForegroundWindow()
        if not hwnd:
            return None
        title = self._win32gui.GetWindowText(hwnd) or ""
        _, pid = self._win32process.GetWindowThreadProcessId(hwnd)
        return ForegroundWindow(title=title, process_name=process_name_for(pid), pid=pid)


def detect_foreground_query(
    platform: str | None = None,
    which: Callable[[str], str | None] = shutil.which,
    environ: Mapping[str, str] | None = None,
) -> ForegroundQuery | None:
    """
    Find an active-window facility for this platform.

    Returns None when none is available; callers then run without focus
    tracking.
    """
    platform = platform or sys.platform
    environ = os.environ if environ is None else environ

    if platform == "win32":
        try:
            import win32gui
            import win32process
        except ImportError:
            logger.info("pywin32 is not installed; focus tracking unavailable")
            return None
        return Win32Foreground(win32gui, win32process)

    if platform == "darwin":
        executable = which("osascript")
        if executable is None:
            logger.info("osascript not found; focus tracking unavailable")
            return None
        return AppleScriptForeground(executable)

    if not environ.get("DISPLAY"):
        logger.info("No X display; focus tracking unavailable")
        return None
    executable = which("xdotool")
    if executable is None:
        logger.info("xdotool not found; focus tracking unavailable")
        return None
    return XdotoolForeground(executable)
