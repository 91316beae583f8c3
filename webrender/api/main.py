"""
FastAPI application for webrender.

Sets up logging, the global exception handlers, the render router, the
healthcheck and the counters endpoint. Run it with
``uvicorn webrender.api.main:app`` or ``python -m webrender.api.main``.
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from fastapi.exceptions import RequestValidationError

from webrender import __version__
from webrender.api.models import HealthResponse
from webrender.api.routes import render_router
from webrender.core.config import config_manager, get_config
from webrender.core.exceptions import WebRenderError
from webrender.core.logger import setup_logging, get_logger
from webrender.core.metrics import exposition

# --- Logging Setup ---
try:
    setup_logging(config_manager)
    logger = get_logger(__name__)
    logger.info("Logging initialized for the webrender API.")
except Exception as e:
    import logging as py_logging
    py_logging.basicConfig(level=py_logging.WARNING, format="%(asctime)s - %(levelname)s - %(message)s")
    py_logging.critical(f"Failed to initialize logging from configuration: {e}", exc_info=True)
    logger = py_logging.getLogger(__name__)

HEALTHCHECK_URL = get_config("server.healthcheck_url", "/healthcheck")

app = FastAPI(
    title="webrender",
    description="Renders web pages to PNG screenshots or PDF documents with a headless browser.",
    version=__version__,
)

# --- Global Exception Handlers ---


@app.exception_handler(WebRenderError)
async def webrender_exception_handler(request: Request, exc: WebRenderError):
    """Maps any uncaught framework error to a 500 JSON response."""
    logger.error(
        f"WebRenderError caught: {exc.__class__.__name__} - {exc.message} "
        f"for request: {request.method} {request.url}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"An application error occurred: {exc.message}"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"RequestValidationError caught for: {request.method} {request.url}. Errors: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Request validation failed", "errors": exc.errors()},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all so that clients always get a JSON body."""
    logger.critical(
        f"Generic unhandled exception caught: {exc.__class__.__name__} - {str(exc)} "
        f"for request: {request.method} {request.url}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected server error occurred."},
    )


# --- Routers ---
app.include_router(render_router, tags=["Rendering"])


@app.get(HEALTHCHECK_URL, response_model=HealthResponse, tags=["General"], summary="Liveness check")
async def healthcheck():
    return HealthResponse(status="ok", version=app.version)


@app.get("/metrics", tags=["General"], summary="Request and error counters", response_class=Response)
async def metrics():
    payload, content_type = exposition()
    return Response(content=payload, media_type=content_type)


if __name__ == "__main__":
    import uvicorn

    host = get_config("server.host", "127.0.0.1")
    port = int(get_config("server.port", 8000))
    logger.info(f"Starting Uvicorn on {host}:{port} (environment: {config_manager.current_environment}).")
    uvicorn.run(app, host=host, port=port)
