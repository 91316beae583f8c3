from .config import get_config, config_manager, ConfigurationManager, ConfigError, ConfigFileNotFoundError, InvalidYamlError
from .exceptions import (
    WebRenderError,
    ConfigurationError,
    ComponentError,
    RendererError,
    BrowserLaunchError,
    NavigationError,
    DeadlineExceededError,
    ScopeCancelledError,
    CaptureError,
    DialogHandlingError,
    ListenerError,
)
from .logger import setup_logging, get_logger

# RenderManager lives in core.manager and is imported from there directly;
# importing it here would create a cycle with the renderer component.

__all__ = [
    # Config
    "get_config",
    "config_manager",
    "ConfigurationManager",
    "ConfigError",
    "ConfigFileNotFoundError",
    "InvalidYamlError",
    # Logger
    "setup_logging",
    "get_logger",
    # Exceptions
    "WebRenderError",
    "ConfigurationError",
    "ComponentError",
    "RendererError",
    "BrowserLaunchError",
    "NavigationError",
    "DeadlineExceededError",
    "ScopeCancelledError",
    "CaptureError",
    "DialogHandlingError",
    "ListenerError",
]
