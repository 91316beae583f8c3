"""
Value types shared by the renderer: requests, launch settings, results and
the process-wide defaults read from configuration.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from webrender.core.config import ConfigurationManager


class OutputKind(str, Enum):
    SCREENSHOT = "screenshot"
    PDF = "pdf"


CONTENT_TYPES = {
    OutputKind.SCREENSHOT: "image/png",
    OutputKind.PDF: "application/pdf",
}

# Flags passed to every launched browser.
HARDENING_FLAGS: Tuple[str, ...] = (
    "--disable-gpu",
    "--ignore-certificate-errors",
)


@dataclass(frozen=True)
class RenderRequest:
    """
    A single render job. Immutable once constructed.

    `timeout` bounds each capture attempt separately; `delay` is the pause
    after navigation (and script injection) before capture starts.
    """
    url: str
    width: int = 1920
    height: int = 1280
    user_agent: str = ""
    script: Optional[str] = None
    delay: float = 0
    timeout: float = 10
    headers: Mapping[str, str] = field(default_factory=dict)
    kind: OutputKind = OutputKind.SCREENSHOT
    full_page: bool = False

    def __post_init__(self):
        if not self.url:
            raise ValueError("RenderRequest.url is required.")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport must be positive, got {self.width}x{self.height}.")
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout}.")
        if self.delay < 0:
            raise ValueError(f"Delay cannot be negative, got {self.delay}.")
        object.__setattr__(self, "kind", OutputKind(self.kind))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers or {})))

    @property
    def as_pdf(self) -> bool:
        return self.kind is OutputKind.PDF


@dataclass(frozen=True)
class LaunchConfig:
    """Settings used to start one isolated browser instance."""
    width: int
    height: int
    user_agent: str = ""
    browser_path: Optional[str] = None
    proxy: Optional[str] = None
    headless: bool = True
    flags: Tuple[str, ...] = HARDENING_FLAGS

    @classmethod
    def from_request(cls, request: RenderRequest, browser_path: Optional[str] = None,
                     proxy: Optional[str] = None) -> 'LaunchConfig':
        return cls(
            width=request.width,
            height=request.height,
            user_agent=request.user_agent,
            browser_path=browser_path or None,
            proxy=proxy or None,
        )

    @property
    def args(self):
        return list(self.flags) + [f"--window-size={self.width},{self.height}"]


@dataclass(frozen=True)
class RenderResult:
    """Captured output bytes plus the DOM snapshot taken just before capture."""
    data: bytes
    dom: str
    kind: OutputKind
    fallback: bool = False

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[self.kind]


@dataclass(frozen=True)
class RenderDefaults:
    """Process-wide defaults applied to fields a caller leaves out."""
    width: int = 1920
    height: int = 1280
    timeout: float = 10
    delay: float = 3
    user_agent: str = "webrender"
    browser_kind: str = "chrome"
    browser_path: Optional[str] = None
    proxy: Optional[str] = None
    as_pdf: bool = False
    full_page: bool = True

    @classmethod
    def from_config(cls, config: Optional['ConfigurationManager']) -> 'RenderDefaults':
        if config is None:
            return cls()

        section = config.section("renderer")

        def setting(name: str) -> Any:
            return section.get(name, getattr(cls, name))

        return cls(
            width=int(setting("width")),
            height=int(setting("height")),
            timeout=float(setting("timeout")),
            delay=float(setting("delay")),
            user_agent=str(setting("user_agent") or ""),
            browser_kind=str(setting("browser_kind") or cls.browser_kind),
            browser_path=setting("browser_path") or None,
            proxy=setting("proxy") or None,
            as_pdf=bool(setting("as_pdf")),
            full_page=bool(setting("full_page")),
        )
