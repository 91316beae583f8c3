"""
Browser rendering session orchestrator.

Launches an isolated browser per request, runs the automation pipeline under
deadline-bound cancellation scopes, falls back to a no-navigation capture when
the page is too slow, and releases the browser on every exit path.
"""
from .actions import build_pipeline
from .capture_executor import CaptureExecutor, CaptureState, render
from .event_watcher import EventWatcher, ListenerKind
from .models import LaunchConfig, OutputKind, RenderDefaults, RenderRequest, RenderResult
from .scope import CancelScope
from .session_manager import CaptureAttempt, Session, SessionManager

__all__ = [
    "build_pipeline",
    "CaptureExecutor",
    "CaptureState",
    "render",
    "EventWatcher",
    "ListenerKind",
    "LaunchConfig",
    "OutputKind",
    "RenderDefaults",
    "RenderRequest",
    "RenderResult",
    "CancelScope",
    "CaptureAttempt",
    "Session",
    "SessionManager",
]
