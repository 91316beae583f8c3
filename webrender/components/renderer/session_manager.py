"""
Browser session lifecycle.

`SessionManager` launches one isolated Chromium per render through Playwright,
owns the browser-level `CancelScope`, derives deadline-bound attempt scopes
from it and releases everything exactly once. Sessions are never pooled or
shared between renders.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Any, List, Optional, Tuple

from playwright.async_api import (
    Browser,
    BrowserContext,
    CDPSession,
    Page,
    Playwright,
    async_playwright,
)

from webrender.components.renderer.actions import ActionStep
from webrender.components.renderer.models import LaunchConfig
from webrender.components.renderer.scope import CancelScope, RELEASED
from webrender.core.exceptions import BrowserLaunchError, RendererError
from webrender.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(eq=False)
class CaptureAttempt:
    """One deadline-bound run of a pipeline against a session's page."""
    scope: CancelScope
    timeout: float
    fallback: bool = False
    steps: Tuple[ActionStep, ...] = ()

    @property
    def name(self) -> str:
        return self.scope.name


@dataclass(eq=False)
class Session:
    """A launched browser, its page and DevTools session, and the browser scope."""
    config: LaunchConfig
    scope: CancelScope
    playwright: Optional[Playwright] = None
    browser: Optional[Browser] = None
    context: Optional[BrowserContext] = None
    page: Optional[Page] = None
    cdp: Optional[CDPSession] = None
    attempts: List[CaptureAttempt] = field(default_factory=list)
    closed: bool = False

    @property
    def fallback_opened(self) -> bool:
        return any(a.fallback for a in self.attempts)


class SessionManager:
    """
    Opens, subdivides and closes browser sessions.

    Use `session()` to get guaranteed release:

        async with manager.session(launch_config) as session:
            attempt = manager.new_attempt(session, timeout=10)
            ...
    """
    DEFAULT_BROWSER_TYPE = 'chromium'

    def __init__(self):
        self._live: List[Session] = []

    @property
    def live_sessions(self) -> int:
        return len(self._live)

    async def open(self, launch_config: LaunchConfig) -> Session:
        """
        Launches a browser and confirms it answers protocol calls.

        Raises:
            BrowserLaunchError: If any launch step fails. Whatever was started is
                released before raising; nothing is retried. A cancelled launch
                is released the same way and the cancellation propagates.
        """
        session = Session(config=launch_config, scope=CancelScope("browser"))
        self._live.append(session)
        logger.debug(
            f"Launching browser: viewport {launch_config.width}x{launch_config.height}, "
            f"path={launch_config.browser_path or 'bundled'}, proxy={launch_config.proxy or 'none'}."
        )
        try:
            (session.playwright, session.browser, session.context,
             session.page, session.cdp) = await self._launch(launch_config)
            # Initial no-op round trip: fails fast if the browser is not live.
            version = await session.cdp.send("Browser.getVersion")
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}", exc_info=True)
            await self.close(session)
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e
        except BaseException:
            # Cancelled mid-launch: release what was started, keep the cancellation.
            await self.close(session)
            raise

        logger.info(f"Browser launched: {version.get('product', 'unknown') if isinstance(version, dict) else version}.")
        return session

    async def _launch(self, launch_config: LaunchConfig) -> Tuple[Any, Any, Any, Any, Any]:
        playwright = await async_playwright().start()
        try:
            launch_options = {"headless": launch_config.headless, "args": launch_config.args}
            if launch_config.browser_path:
                launch_options["executable_path"] = launch_config.browser_path
            if launch_config.proxy:
                launch_options["proxy"] = {"server": launch_config.proxy}
            launcher = getattr(playwright, self.DEFAULT_BROWSER_TYPE)
            browser = await launcher.launch(**launch_options)
            try:
                context_options = {
                    "viewport": {"width": launch_config.width, "height": launch_config.height},
                    "ignore_https_errors": True,
                }
                if launch_config.user_agent:
                    context_options["user_agent"] = launch_config.user_agent
                context = await browser.new_context(**context_options)
                page = await context.new_page()
                cdp = await context.new_cdp_session(page)
            except BaseException:
                await browser.close()
                raise
        except BaseException:
            await playwright.stop()
            raise
        return playwright, browser, context, page, cdp

    def new_attempt(self, session: Session, timeout: float, fallback: bool = False) -> CaptureAttempt:
        """
        Derives an attempt scope from the browser scope with a fresh deadline of
        `timeout` seconds.

        Raises:
            RendererError: If the session is closed, or a fallback attempt was
                already opened for it.
        """
        if session.closed:
            raise RendererError("Cannot open an attempt on a closed session.")
        if fallback and session.fallback_opened:
            raise RendererError("A fallback attempt was already opened for this session.")

        name = "fallback" if fallback else f"attempt-{len(session.attempts) + 1}"
        attempt = CaptureAttempt(scope=session.scope.child(name, timeout=timeout),
                                 timeout=timeout, fallback=fallback)
        session.attempts.append(attempt)
        logger.debug(f"Opened {name} with a {timeout}s deadline.")
        return attempt

    async def close(self, session: Session) -> None:
        """
        Cancels the browser scope and shuts the browser down. Safe to call more
        than once; only the first call does anything. Shutdown errors are
        logged, not raised.
        """
        if session.closed:
            return
        session.closed = True
        session.scope.cancel(RELEASED)

        if session.cdp is not None:
            try:
                await session.cdp.detach()
            except Exception as e:
                logger.debug(f"DevTools session already gone: {e}")
        if session.context is not None:
            try:
                await session.context.close()
            except Exception as e:
                logger.error(f"Error closing browser context: {e}", exc_info=True)
        if session.browser is not None:
            try:
                await session.browser.close()
                logger.debug("Browser closed.")
            except Exception as e:
                logger.error(f"Error closing browser: {e}", exc_info=True)
        if session.playwright is not None:
            try:
                await session.playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}", exc_info=True)

        session.cdp = session.page = session.context = session.browser = session.playwright = None
        if session in self._live:
            self._live.remove(session)

    @asynccontextmanager
    async def session(self, launch_config: LaunchConfig) -> AsyncIterator[Session]:
        session = await self.open(launch_config)
        try:
            yield session
        finally:
            await self.close(session)
