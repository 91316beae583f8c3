"""
HTTP layer of webrender: the FastAPI application, its routes and request
models. Import `webrender.api.main:app` to serve it.
"""

__all__ = []
