"""Request/response surface exposed to the presentation layer."""

import asyncio
from collections.abc import Callable, Mapping

from focusnudge.dispatcher import DispatchError, NotificationDispatcher
from focusnudge.models import NotificationChannel, NotificationResult
from focusnudge.processes import ProcessSnapshotAdapter


class FocusApi:
    """Typed pass-through to the snapshot adapter and the dispatcher."""

    def __init__(self, adapter: ProcessSnapshotAdapter, dispatcher: NotificationDispatcher) -> None:
        self._adapter = adapter
        self._dispatcher = dispatcher

    async def get_processes(self) -> dict:
        """List processes now: ``{"ok": True, "list": [...]}`` or ``{"ok": False, "error": ...}``."""
        result = await asyncio.to_thread(self._adapter.snapshot)
        return result.to_payload()

    async def show_notification(self, options: Mapping | None = None) -> dict:
        """Show a notification; ``useDialog`` forces the modal dialog."""
        options = options or {}
        title = options.get("title") or "Notification"
        body = options.get("body") or ""
        use_dialog = bool(options.get("useDialog"))

        try:
            delivery = await self._dispatcher.notify(title, body, prefer_dialog=use_dialog)
        except DispatchError as exc:
            return {"dialog": True, "error": str(exc)}

        if delivery.channel is not NotificationChannel.DIALOG:
            return {"dialog": False}

        response: dict = {"dialog": True}
        index = delivery.result.result().raw_index
        if index is not None:
            response["response"] = index
        return response

    def on_notification_response(self, callback: Callable[[dict], None]) -> Callable[[], None]:
        """Subscribe to response events; returns an unsubscribe function."""

        def forward(result: NotificationResult) -> None:
            callback(result.to_event())

        return self._dispatcher.stream.subscribe(forward)
