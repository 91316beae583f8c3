"""
Safety and diagnostic listeners bound to cancellation scopes.

Every subscription is an explicit ``emitter.on(event, handler)`` paired with a
teardown on the owning scope that calls ``emitter.remove_listener``, so
cancelling or releasing a scope always detaches its listeners. Handlers never
block: slow work (accepting a dialog) is spawned as a task inside the scope.
"""
from enum import Enum
from typing import Any, Callable

from webrender.components.renderer.scope import (
    BROWSER_DISCONNECTED,
    DIALOG_FAILED,
    TARGET_CRASHED,
    CancelScope,
)
from webrender.core.exceptions import DialogHandlingError, ListenerError
from webrender.core.logger import get_logger

logger = get_logger(__name__)


class ListenerKind(str, Enum):
    CRASH = "crash"
    DIALOG = "dialog"
    CONSOLE = "console"
    NETWORK = "network"


class EventWatcher:
    """
    Attaches listeners for one session.

    Crash listeners go on the browser scope and on every attempt scope; the
    dialog, console and network listeners only make sense per attempt.
    """

    def __init__(self, session):
        self.session = session

    def attach(self, scope: CancelScope, kind: ListenerKind) -> None:
        kind = ListenerKind(kind)
        is_browser_scope = scope is self.session.scope
        if is_browser_scope and kind is not ListenerKind.CRASH:
            raise ValueError(f"{kind.value} listeners can only be attached to attempt scopes.")

        if kind is ListenerKind.CRASH:
            self._attach_crash(scope, is_browser_scope)
        elif kind is ListenerKind.DIALOG:
            self._attach_dialog(scope)
        elif kind is ListenerKind.CONSOLE:
            self._attach_console(scope)
        else:
            self._attach_network(scope)

    def _subscribe(self, scope: CancelScope, emitter: Any, event: str, handler: Callable) -> None:
        emitter.on(event, handler)
        scope.add_teardown(lambda: emitter.remove_listener(event, handler))

    # --- safety listeners ---

    def _attach_crash(self, scope: CancelScope, is_browser_scope: bool) -> None:
        def on_crash(*_):
            logger.warning(f"Target crashed; cancelling scope '{scope.name}'.")
            scope.cancel(TARGET_CRASHED)

        self._subscribe(scope, self.session.page, "crash", on_crash)

        if is_browser_scope and self.session.browser is not None:
            def on_disconnected(*_):
                logger.warning("Browser disconnected; cancelling browser scope.")
                scope.cancel(BROWSER_DISCONNECTED)

            self._subscribe(scope, self.session.browser, "disconnected", on_disconnected)

    def _attach_dialog(self, scope: CancelScope) -> None:
        async def accept(dialog):
            try:
                await dialog.accept()
                logger.debug(f"Accepted {dialog.type} dialog: {dialog.message!r}")
            except Exception as e:
                error = DialogHandlingError(f"could not accept {getattr(dialog, 'type', 'page')} dialog: {e}")
                logger.warning(f"{error}; cancelling scope '{scope.name}'.")
                scope.cancel(DIALOG_FAILED, error)

        def on_dialog(dialog):
            scope.spawn(accept(dialog))

        self._subscribe(scope, self.session.page, "dialog", on_dialog)

    # --- diagnostic listeners ---

    @staticmethod
    def _diagnostic(name: str, handler: Callable) -> Callable:
        def safe_handler(*args):
            try:
                handler(*args)
            except Exception as e:
                logger.debug(str(ListenerError(f"{name} listener failed: {e}")))
        return safe_handler

    def _attach_console(self, scope: CancelScope) -> None:
        def on_console(message):
            logger.debug(f"console.{message.type}: {message.text}")

        def on_page_error(error):
            logger.debug(f"Uncaught page exception: {error}")

        self._subscribe(scope, self.session.page, "console", self._diagnostic("console", on_console))
        self._subscribe(scope, self.session.page, "pageerror", self._diagnostic("pageerror", on_page_error))

    def _attach_network(self, scope: CancelScope) -> None:
        def on_request(request):
            logger.debug(f"request: {request.method} {request.url}")

        def on_response(response):
            logger.debug(f"response: {response.status} {response.url}")

        def on_request_failed(request):
            logger.debug(f"request failed: {request.url} ({request.failure})")

        def on_websocket(ws):
            logger.debug(f"websocket created: {ws.url}")
            ws.on("socketerror", self._diagnostic(
                "websocket", lambda error: logger.debug(f"websocket error on {ws.url}: {error}")))
            ws.on("close", self._diagnostic(
                "websocket", lambda *_: logger.debug(f"websocket closed: {ws.url}")))

        page = self.session.page
        self._subscribe(scope, page, "request", self._diagnostic("request", on_request))
        self._subscribe(scope, page, "response", self._diagnostic("response", on_response))
        self._subscribe(scope, page, "requestfailed", self._diagnostic("requestfailed", on_request_failed))
        self._subscribe(scope, page, "websocket", self._diagnostic("websocket", on_websocket))
