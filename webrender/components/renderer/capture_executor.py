"""
The capture state machine.

    INIT -> LAUNCHING -> RUNNING_PRIMARY -> SUCCEEDED
                                         -> TIMED_OUT -> RUNNING_FALLBACK -> SUCCEEDED | FAILED
                                         -> FAILED

A primary attempt navigates and captures under its own deadline. If that
deadline fires, exactly one fallback attempt runs on the same page with a
fresh deadline and captures whatever has loaded, without navigating again.
The session is released before `run()` returns or raises, on every path.
"""
import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Type

from playwright.async_api import Error as PlaywrightError

from webrender.components.renderer.actions import (
    ActionStep,
    CaptureDOM,
    CapturePDF,
    CaptureScreenshot,
    EnableHeaderInterception,
    EvaluateScript,
    Navigate,
    SetHeaders,
    Sleep,
    StopLoading,
    build_pipeline,
)
from webrender.components.renderer.event_watcher import EventWatcher, ListenerKind
from webrender.components.renderer.models import LaunchConfig, RenderRequest, RenderResult
from webrender.components.renderer.scope import RELEASED
from webrender.components.renderer.session_manager import CaptureAttempt, Session, SessionManager
from webrender.core.exceptions import CaptureError, DeadlineExceededError, NavigationError
from webrender.core.logger import get_logger

logger = get_logger(__name__)

PRIMARY_LISTENERS = (ListenerKind.CRASH, ListenerKind.DIALOG, ListenerKind.CONSOLE, ListenerKind.NETWORK)
FALLBACK_LISTENERS = (ListenerKind.CRASH, ListenerKind.DIALOG)

DOM_SNAPSHOT_SCRIPT = "selector => { const el = document.querySelector(selector); return el ? el.outerHTML : ''; }"


class CaptureState(str, Enum):
    INIT = "init"
    LAUNCHING = "launching"
    RUNNING_PRIMARY = "running_primary"
    TIMED_OUT = "timed_out"
    RUNNING_FALLBACK = "running_fallback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class _Capture:
    """Output collected by the capture steps of one attempt."""
    def __init__(self):
        self.data: Optional[bytes] = None
        self.dom: str = ""


class CaptureExecutor:
    """
    Runs one render request from browser launch to release.

    An executor is single-use: create one per request and call `run()` once.

    Attributes:
        request (RenderRequest): The render job.
        state (CaptureState): Current state, for logging and inspection.
        error (Optional[Exception]): The terminal error when `state` is FAILED.
    """

    def __init__(self, request: RenderRequest, session_manager: Optional[SessionManager] = None,
                 browser_path: Optional[str] = None, proxy: Optional[str] = None):
        self.request = request
        self.session_manager = session_manager or SessionManager()
        self.launch_config = LaunchConfig.from_request(request, browser_path=browser_path, proxy=proxy)
        self.state = CaptureState.INIT
        self.error: Optional[Exception] = None
        self.session: Optional[Session] = None
        self._handlers: Dict[Type[ActionStep], Callable[[Session, ActionStep, _Capture], Awaitable[None]]] = {
            EnableHeaderInterception: self._enable_header_interception,
            SetHeaders: self._set_headers,
            Navigate: self._navigate,
            EvaluateScript: self._evaluate_script,
            Sleep: self._sleep,
            StopLoading: self._stop_loading,
            CaptureDOM: self._capture_dom,
            CaptureScreenshot: self._capture_screenshot,
            CapturePDF: self._capture_pdf,
        }

    def _transition(self, state: CaptureState) -> None:
        logger.debug(f"Render of {self.request.url}: {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> RenderResult:
        """
        Renders the request.

        Returns:
            RenderResult: Output bytes and DOM; `fallback` is True when the
            primary attempt timed out and the fallback capture produced it.

        Raises:
            BrowserLaunchError: The browser could not be started.
            NavigationError, CaptureError, ScopeCancelledError: The attempt failed.
            DeadlineExceededError: Only when the fallback attempt also ran out of time.
        """
        if self.state is not CaptureState.INIT:
            raise RuntimeError("CaptureExecutor.run() can only be called once.")

        self._transition(CaptureState.LAUNCHING)
        try:
            self.session = await self.session_manager.open(self.launch_config)
        except Exception as e:
            self._fail(e)
            raise

        try:
            watcher = EventWatcher(self.session)
            watcher.attach(self.session.scope, ListenerKind.CRASH)

            self._transition(CaptureState.RUNNING_PRIMARY)
            try:
                result = await self._run_attempt(watcher, fallback=False)
            except DeadlineExceededError as e:
                self._transition(CaptureState.TIMED_OUT)
                logger.warning(
                    f"Primary attempt for {self.request.url} timed out after {self.request.timeout}s ({e.message}); "
                    f"capturing whatever has loaded."
                )
                self._transition(CaptureState.RUNNING_FALLBACK)
                result = await self._run_attempt(watcher, fallback=True)

            self._transition(CaptureState.SUCCEEDED)
            logger.info(
                f"Rendered {self.request.url} as {result.kind.value} ({len(result.data)} bytes"
                f"{', fallback capture' if result.fallback else ''})."
            )
            return result
        except Exception as e:
            self._fail(e)
            raise
        finally:
            await self.session_manager.close(self.session)

    def _fail(self, error: Exception) -> None:
        self.error = error
        self._transition(CaptureState.FAILED)
        logger.error(f"Render of {self.request.url} failed: {error}")

    async def _run_attempt(self, watcher: EventWatcher, fallback: bool) -> RenderResult:
        session = self.session
        attempt = self.session_manager.new_attempt(session, self.request.timeout, fallback=fallback)
        for kind in (FALLBACK_LISTENERS if fallback else PRIMARY_LISTENERS):
            watcher.attach(attempt.scope, kind)
        attempt.steps = build_pipeline(self.request, navigate=not fallback)

        capture = _Capture()
        try:
            await attempt.scope.run(self._perform(session, attempt, capture))
        finally:
            attempt.scope.cancel(RELEASED)

        if not capture.data:
            raise CaptureError(f"{attempt.name} finished without capturing any output")
        return RenderResult(data=capture.data, dom=capture.dom, kind=self.request.kind, fallback=fallback)

    async def _perform(self, session: Session, attempt: CaptureAttempt, capture: _Capture) -> None:
        for step in attempt.steps:
            logger.debug(f"{attempt.name}: {step}")
            await self._handlers[type(step)](session, step, capture)

    # --- step handlers ---

    async def _enable_header_interception(self, session: Session, step: EnableHeaderInterception, capture: _Capture) -> None:
        try:
            await session.cdp.send("Network.enable")
        except PlaywrightError as e:
            raise NavigationError(f"could not enable network domain: {e}") from e

    async def _set_headers(self, session: Session, step: SetHeaders, capture: _Capture) -> None:
        try:
            await session.cdp.send("Network.setExtraHTTPHeaders", {"headers": dict(step.headers)})
        except PlaywrightError as e:
            raise NavigationError(f"could not set extra HTTP headers: {e}") from e

    async def _navigate(self, session: Session, step: Navigate, capture: _Capture) -> None:
        try:
            # The attempt deadline bounds navigation, not Playwright's own timeout.
            response = await session.page.goto(step.url, wait_until="load", timeout=0)
        except PlaywrightError as e:
            raise NavigationError(f"could not navigate to {step.url}: {e}") from e
        if response is not None:
            logger.debug(f"Navigated to {step.url}: HTTP {response.status}")

    async def _evaluate_script(self, session: Session, step: EvaluateScript, capture: _Capture) -> None:
        try:
            await session.page.evaluate(step.source)
        except PlaywrightError as e:
            raise NavigationError(f"script evaluation failed: {e}") from e

    async def _sleep(self, session: Session, step: Sleep, capture: _Capture) -> None:
        await asyncio.sleep(step.seconds)

    async def _stop_loading(self, session: Session, step: StopLoading, capture: _Capture) -> None:
        try:
            await session.cdp.send("Page.stopLoading")
        except PlaywrightError as e:
            raise NavigationError(f"could not stop page loading: {e}") from e

    async def _capture_dom(self, session: Session, step: CaptureDOM, capture: _Capture) -> None:
        try:
            capture.dom = await session.page.evaluate(DOM_SNAPSHOT_SCRIPT, step.selector)
        except PlaywrightError as e:
            raise CaptureError(f"could not capture DOM: {e}") from e

    async def _capture_screenshot(self, session: Session, step: CaptureScreenshot, capture: _Capture) -> None:
        try:
            capture.data = await session.page.screenshot(type="png", full_page=step.full_page, timeout=0)
        except PlaywrightError as e:
            raise CaptureError(f"could not capture screenshot: {e}") from e

    async def _capture_pdf(self, session: Session, step: CapturePDF, capture: _Capture) -> None:
        try:
            capture.data = await session.page.pdf(display_header_footer=step.display_header_footer)
        except PlaywrightError as e:
            raise CaptureError(f"could not print PDF: {e}") from e


async def render(request: RenderRequest, session_manager: Optional[SessionManager] = None,
                 browser_path: Optional[str] = None, proxy: Optional[str] = None) -> RenderResult:
    """Renders `request` with a fresh executor and returns the result."""
    executor = CaptureExecutor(request, session_manager=session_manager,
                               browser_path=browser_path, proxy=proxy)
    return await executor.run()
