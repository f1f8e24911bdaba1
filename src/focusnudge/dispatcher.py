"""Notification dispatch for focusnudge.

A notification is shown either as a non-modal alert carrying two actions or
as a modal dialog. Whichever channel is used, the user's answer comes back
as a single NotificationResult, returned through the Delivery future and
emitted once on the ResponseStream.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from focusnudge.models import NotificationChannel, NotificationResult

logger = logging.getLogger(__name__)

BUTTONS = ("Okay", "Cancel")
DEFAULT_INDEX = 0
CANCEL_INDEX = 1


class DispatchError(Exception):
    """Neither the alert nor the dialog could be shown."""


class DialogClosed(Exception):
    """The dialog went away before the user answered it."""


class Presenter(Protocol):
    """UI surface able to render alerts and dialogs."""

    async def show_dialog(
        self,
        title: str,
        body: str,
        buttons: Sequence[str],
        default_index: int,
        cancel_index: int,
    ) -> int:
        """Show a modal choice and return the index of the pressed button."""
        ...

    def show_alert(
        self,
        title: str,
        body: str,
        actions: Sequence[str],
        on_action: Callable[[int], None],
        on_close: Callable[[], None],
    ) -> None:
        """Show a non-modal alert; raise if it cannot be shown."""
        ...


ResponseCallback = Callable[[NotificationResult], None]


class ResponseStream:
    """Fan-out of notification results to any number of subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[ResponseCallback] = []

    def subscribe(self, callback: ResponseCallback) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, result: NotificationResult) -> None:
        """Deliver a result to every current subscriber."""
        for callback in list(self._subscribers):
            try:
                callback(result)
            except Exception:
                logger.exception("Notification response subscriber failed")

    def __len__(self) -> int:
        return len(self._subscribers)


@dataclass(slots=True)
class Delivery:
    """Handle for one shown notification."""

    channel: NotificationChannel
    result: asyncio.Future
    fallback: bool = False

    @property
    def done(self) -> bool:
        """Whether the user has answered (or dismissed) yet."""
        return self.result.done()

    async def wait(self) -> NotificationResult:
        """Wait for the user's answer."""
        return await self.result


class NotificationDispatcher:
    """Shows notifications and routes each answer to the response stream."""

    def __init__(self, presenter: Presenter, stream: ResponseStream | None = None) -> None:
        self._presenter = presenter
        self._stream = stream if stream is not None else ResponseStream()

    @property
    def stream(self) -> ResponseStream:
        """The stream every result is emitted on."""
        return self._stream

    async def notify(self, title: str, body: str, prefer_dialog: bool = False) -> Delivery:
        """
        Show a notification.

        Args:
            title: Notification title.
            body: Notification text.
            prefer_dialog: Use the modal dialog instead of an alert.

        Returns:
            A Delivery. For dialogs its result is already resolved; for
            alerts it resolves when the user acts on or closes the alert.

        Raises:
            DispatchError: Nothing could be shown.
        """
        if prefer_dialog:
            return await self._show_dialog(title, body)

        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def settle(result: NotificationResult) -> None:
            if future.done():
                logger.debug("Ignoring late alert trigger: %s", result)
                return
            future.set_result(result)
            self._stream.emit(result)

        def on_action(index: int) -> None:
            settle(NotificationResult.from_index(NotificationChannel.ALERT, index))

        def on_close() -> None:
            settle(NotificationResult.dismissed(NotificationChannel.ALERT))

        try:
            self._presenter.show_alert(title, body, BUTTONS, on_action, on_close)
        except Exception as exc:
            logger.warning("Alert could not be shown, falling back to dialog: %s", exc)
            return await self._show_dialog(title, body, fallback=True)

        return Delivery(channel=NotificationChannel.ALERT, result=future)

    async def _show_dialog(self, title: str, body: str, fallback: bool = False) -> Delivery:
        try:
            index = await self._presenter.show_dialog(
                title, body, BUTTONS, DEFAULT_INDEX, CANCEL_INDEX
            )
        except DialogClosed:
            result = NotificationResult.dismissed(NotificationChannel.DIALOG)
        except Exception as exc:
            raise DispatchError(f"Dialog could not be shown: {exc}") from exc
        else:
            result = NotificationResult.from_index(NotificationChannel.DIALOG, index)

        self._stream.emit(result)

        future = asyncio.get_running_loop().create_future()
        future.set_result(result)
        return Delivery(channel=NotificationChannel.DIALOG, result=future, fallback=fallback)
