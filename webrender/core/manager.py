from typing import Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from webrender.components.renderer.capture_executor import CaptureExecutor
from webrender.components.renderer.models import OutputKind, RenderDefaults, RenderRequest, RenderResult
from webrender.components.renderer.session_manager import SessionManager
from webrender.core.logger import get_logger

if TYPE_CHECKING:
    from webrender.api.models import RenderForm
    from webrender.core.config import ConfigurationManager

logger = get_logger(__name__)

DEFAULT_ENGINE = "chrome"


class RenderManager:
    """
    Turns decoded HTTP forms into render requests and runs them.

    Fields a caller leaves out are filled from the process-wide defaults in the
    ``renderer`` configuration section. Each call gets its own browser; the
    manager holds no per-request state.
    """
    def __init__(self, config: Optional['ConfigurationManager'] = None,
                 session_manager: Optional[SessionManager] = None):
        """
        Args:
            config (Optional[ConfigurationManager]): Source of the defaults. When
                None the built-in `RenderDefaults` are used.
            session_manager (Optional[SessionManager]): Launches browsers; a new
                one is created when omitted.
        """
        self.config = config
        self.defaults = RenderDefaults.from_config(config)
        self.session_manager = session_manager or SessionManager()
        self._engines: Dict[str, Callable[[RenderRequest], Awaitable[RenderResult]]] = {
            DEFAULT_ENGINE: self._chrome_render,
        }
        logger.info(
            f"RenderManager ready: default viewport {self.defaults.width}x{self.defaults.height}, "
            f"timeout {self.defaults.timeout}s, delay {self.defaults.delay}s."
        )

    def build_request(self, form: 'RenderForm') -> RenderRequest:
        """
        Merges a form with the defaults.

        Missing fields take the configured default. Width, height and timeout
        of 0 are treated as missing, since 0 is not a usable value for them.
        An explicit delay of 0 is kept and means no pause; only a missing
        delay takes the configured default.
        """
        d = self.defaults

        as_pdf = d.as_pdf if form.as_pdf is None else form.as_pdf
        return RenderRequest(
            url=form.url,
            width=form.width or d.width,
            height=form.height or d.height,
            user_agent=form.user_agent or d.user_agent,
            script=form.script or None,
            delay=d.delay if form.delay is None else form.delay,
            timeout=form.timeout or d.timeout,
            headers=dict(form.headers or {}),
            kind=OutputKind.PDF if as_pdf else OutputKind.SCREENSHOT,
            full_page=d.full_page if form.full_page is None else form.full_page,
        )

    def resolve_engine(self, kind: Optional[str]) -> str:
        """Returns the engine for `kind`; empty or unknown values map to the default."""
        engine = (kind or self.defaults.browser_kind or DEFAULT_ENGINE).lower()
        if engine not in self._engines:
            logger.debug(f"Unknown render engine '{kind}', using '{DEFAULT_ENGINE}'.")
            engine = DEFAULT_ENGINE
        return engine

    async def render_form(self, form: 'RenderForm') -> RenderResult:
        engine = self.resolve_engine(form.kind)
        request = self.build_request(form)
        logger.info(f"Rendering {request.url} with engine '{engine}' as {request.kind.value}.")
        return await self._engines[engine](request)

    async def _chrome_render(self, request: RenderRequest) -> RenderResult:
        executor = CaptureExecutor(
            request,
            session_manager=self.session_manager,
            browser_path=self.defaults.browser_path,
            proxy=self.defaults.proxy,
        )
        return await executor.run()
