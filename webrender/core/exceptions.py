"""
Exception hierarchy for webrender.
"""
from typing import Optional


class WebRenderError(Exception):
    """
    Base class for all webrender exceptions.

    Attributes:
        message (str): A human-readable description of the error.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ConfigurationError(WebRenderError):
    """Raised when configuration values are missing or unusable."""
    def __init__(self, message: str):
        super().__init__(message)


class ComponentError(WebRenderError):
    """
    Base class for errors raised inside a component.

    Attributes:
        component_name (str): Name of the component where the error originated.
    """
    def __init__(self, component_name: str, message: str):
        full_message = f"Error in component '{component_name}': {message}"
        super().__init__(full_message)
        self.component_name = component_name


class RendererError(ComponentError):
    """Raised for failures of the browser rendering component."""
    def __init__(self, message: str):
        super().__init__(component_name="Renderer", message=message)


# --- Render failure taxonomy ---

class BrowserLaunchError(RendererError):
    """The browser process could not be started or did not answer. Not retried."""
    pass


class NavigationError(RendererError):
    """Navigation, header setup, script evaluation or load-stop failed."""
    pass


class DeadlineExceededError(RendererError):
    """
    An attempt ran past its deadline.

    The first occurrence during a render triggers the fallback capture instead
    of failing the request.
    """
    pass


class ScopeCancelledError(RendererError):
    """
    An attempt was cancelled for a reason other than its own deadline, e.g. a
    crashed target, a failed dialog or a cancelled browser scope.

    Attributes:
        scope_name (str): Name of the cancelled scope.
        reason (Optional[str]): Why it was cancelled.
    """
    def __init__(self, scope_name: str, reason: Optional[str]):
        self.scope_name = scope_name
        self.reason = reason
        super().__init__(f"scope '{scope_name}' cancelled: {reason}")


class CaptureError(RendererError):
    """DOM snapshot, screenshot or PDF capture failed."""
    pass


class DialogHandlingError(RendererError):
    """Accepting a page dialog failed. Used as the cause of a scope cancellation."""
    pass


class ListenerError(RendererError):
    """A diagnostic listener failed. Logged and swallowed, never propagated."""
    pass
