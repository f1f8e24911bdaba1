"""Textual widgets that present focusnudge notifications."""

import asyncio
from collections.abc import Callable, Sequence

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static

from focusnudge.dispatcher import DialogClosed


class ConfirmDialog(ModalScreen[int]):
    """Modal two-button choice; dismisses with the index of the pressed button."""

    DEFAULT_CSS = """
    ConfirmDialog {
        align: center middle;
    }

    ConfirmDialog > Vertical {
        width: 60;
        height: auto;
        padding: 1 2;
        border: thick $primary;
        background: $surface;
    }

    ConfirmDialog .dialog-title {
        text-style: bold;
        margin-bottom: 1;
    }

    ConfirmDialog Horizontal {
        height: auto;
        margin-top: 1;
        align-horizontal: right;
    }

    ConfirmDialog Button {
        margin-left: 1;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(
        self,
        title: str,
        body: str,
        buttons: Sequence[str],
        default_index: int = 0,
        cancel_index: int = 1,
        on_closed: Callable[[], None] | None = None,
    ) -> None:
        super().__init__()
        self._title = title
        self._body = body
        self._buttons = list(buttons)
        self._default_index = default_index
        self._cancel_index = cancel_index
        self._on_closed = on_closed
        self._answered = False

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(self._title, classes="dialog-title", markup=False),
            Static(self._body, id="dialog-body", markup=False),
            Horizontal(
                *(
                    Button(
                        label,
                        id=f"choice-{index}",
                        variant="primary" if index == self._default_index else "default",
                    )
                    for index, label in enumerate(self._buttons)
                )
            ),
        )

    def on_mount(self) -> None:
        self.query_one(f"#choice-{self._default_index}", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self._answer(int(event.button.id.removeprefix("choice-")))

    def action_cancel(self) -> None:
        self._answer(self._cancel_index)

    def _answer(self, index: int) -> None:
        if self._answered:
            return
        self._answered = True
        self.dismiss(index)

    def on_unmount(self) -> None:
        # Torn down with the app, never answered.
        if not self._answered and self._on_closed is not None:
            self._answered = True
            self._on_closed()


class ActionAlert(Vertical):
    """Non-modal alert with labeled actions, a close button and a timeout."""

    DEFAULT_CSS = """
    ActionAlert {
        width: 48;
        height: auto;
        margin-top: 1;
        padding: 0 1;
        border: round $warning;
        background: $panel;
    }

    ActionAlert .alert-title {
        text-style: bold;
    }

    ActionAlert Horizontal {
        height: auto;
        align-horizontal: right;
    }

    ActionAlert Button {
        min-width: 8;
        margin-left: 1;
    }
    """

    def __init__(
        self,
        title: str,
        body: str,
        actions: Sequence[str],
        on_action: Callable[[int], None],
        on_close: Callable[[], None],
        timeout: float | None = 10.0,
    ) -> None:
        super().__init__(classes="action-alert")
        self._title = title
        self._body = body
        self._actions = list(actions)
        self._on_action = on_action
        self._on_close = on_close
        self._timeout = timeout
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def compose(self) -> ComposeResult:
        yield Label(self._title, classes="alert-title", markup=False)
        yield Static(self._body, classes="alert-body", markup=False)
        yield Horizontal(
            *(Button(label, id=f"action-{index}") for index, label in enumerate(self._actions)),
            Button("x", id="alert-close", variant="error"),
        )

    def on_mount(self) -> None:
        if self._timeout:
            self.set_timer(self._timeout, self.close)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "alert-close":
            self.close()
        else:
            self.choose(int(event.button.id.removeprefix("action-")))

    def choose(self, index: int) -> None:
        """Act as if the action at ``index`` was clicked."""
        if self._settle():
            self._on_action(index)
            self.remove()

    def close(self) -> None:
        """Dismiss without choosing an action."""
        if self._settle():
            self._on_close()
            self.remove()

    def _settle(self) -> bool:
        if self._settled:
            return False
        self._settled = True
        return True

    def on_unmount(self) -> None:
        if self._settle():
            self._on_close()


class AlertRack(Vertical):
    """Docked column that stacks the alerts currently on screen."""

    DEFAULT_CSS = """
    AlertRack {
        dock: right;
        width: 50;
        height: auto;
        layer: alerts;
    }
    """


class TextualPresenter:
    """Presents alerts and dialogs on a running Textual app."""

    def __init__(self, app: App, alert_timeout: float | None = 10.0) -> None:
        self._app = app
        self._alert_timeout = alert_timeout

    async def show_dialog(
        self,
        title: str,
        body: str,
        buttons: Sequence[str],
        default_index: int,
        cancel_index: int,
    ) -> int:
        """
        Push a ConfirmDialog and wait for the answer.

        Must not be awaited from the app's own message handlers; run it in a
        worker or a separate task so the screen can process input.
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def answered(index: int | None) -> None:
            if not future.done():
                future.set_result(cancel_index if index is None else index)

        def closed() -> None:
            if not future.done():
                future.set_exception(DialogClosed("dialog closed without an answer"))

        dialog = ConfirmDialog(title, body, buttons, default_index, cancel_index, on_closed=closed)
        self._app.push_screen(dialog, callback=answered)
        return await future

    def show_alert(
        self,
        title: str,
        body: str,
        actions: Sequence[str],
        on_action: Callable[[int], None],
        on_close: Callable[[], None],
    ) -> None:
        """Mount an ActionAlert into the AlertRack of the base screen."""
        rack = self._app.screen_stack[0].query_one(AlertRack)
        rack.mount(
            ActionAlert(title, body, actions, on_action, on_close, timeout=self._alert_timeout)
        )
