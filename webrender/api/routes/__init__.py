"""
API routers. `render_router` serves the render endpoint and is included by
`webrender.api.main`.
"""

from .render_routes import router as render_router

__all__ = [
    "render_router",
]
