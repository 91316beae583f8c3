"""
Components of webrender. The only component is the browser renderer.
"""
from .renderer import CaptureExecutor, SessionManager, render

__all__ = [
    "CaptureExecutor",
    "SessionManager",
    "render",
]
