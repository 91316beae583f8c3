"""
Render endpoint.

Accepts the render fields from the query string, an urlencoded/multipart form
or a JSON body and answers with the captured bytes verbatim. Extra HTTP
headers for the target page are given as a JSON object under ``headers`` or,
in forms and query strings, as ``headers[Name]=value`` pairs.
"""
import json
import re
from functools import lru_cache
from typing import Any, Dict, Iterable, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from webrender.api.models import ErrorResponse, RenderForm
from webrender.core.config import config_manager, get_config
from webrender.core.exceptions import WebRenderError
from webrender.core.logger import get_logger
from webrender.core.manager import RenderManager
from webrender.core.metrics import errors_total, requests_total

logger = get_logger(__name__)

IMAGE_URL = get_config("server.image_url", "/image")

HEADER_FIELD = re.compile(r"headers\[(.+)\]")

router = APIRouter()


@lru_cache(maxsize=1)
def get_render_manager() -> RenderManager:
    """One manager per process; browsers are still launched per request."""
    return RenderManager(config=config_manager)


def _absorb(items: Iterable[Tuple[str, Any]], fields: Dict[str, Any], headers: Dict[str, str]) -> None:
    for key, value in items:
        match = HEADER_FIELD.fullmatch(key)
        if match:
            headers[match.group(1)] = value
        else:
            fields[key] = value


async def read_render_fields(request: Request) -> Dict[str, Any]:
    """
    Collects render fields from the query string and, for POST, the body.

    Raises:
        ValueError: If the body or the ``headers`` field cannot be decoded.
    """
    fields: Dict[str, Any] = {}
    headers: Dict[str, str] = {}
    _absorb(request.query_params.multi_items(), fields, headers)

    if request.method == "POST":
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            body = await request.json()
            if not isinstance(body, dict):
                raise ValueError("JSON body must be an object")
            fields.update(body)
        elif content_type:
            form = await request.form()
            _absorb(form.multi_items(), fields, headers)

    raw_headers = fields.get("headers")
    if isinstance(raw_headers, str):
        raw_headers = json.loads(raw_headers) if raw_headers.strip() else {}
    if raw_headers is not None and not isinstance(raw_headers, dict):
        raise ValueError("headers must be a JSON object")
    if headers or raw_headers is not None:
        merged = dict(raw_headers or {})
        merged.update(headers)
        fields["headers"] = {str(k): str(v) for k, v in merged.items()}
    return fields


@router.api_route(
    IMAGE_URL,
    methods=["GET", "POST"],
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}, "application/pdf": {}}},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Render a web page to PNG or PDF",
)
async def render_image_endpoint(request: Request, manager: RenderManager = Depends(get_render_manager)):
    """
    Renders the requested page and returns the PNG or PDF bytes.

    Raises:
        HTTPException:
            - 422: The fields could not be decoded or validated. Bad input never
              reaches the renderer, so it is not reported as a 500.
            - 500: Rendering failed; the detail carries the error message.
    """
    labels = {"channel": request.url.path.strip("/")}
    requests_total.labels(**labels).inc()

    try:
        form = RenderForm.model_validate(await read_render_fields(request))
    except ValueError as e:
        errors_total.labels(**labels).inc()
        logger.warning(f"Could not decode render request {request.method} {request.url}: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"could not decode form: {e}",
        )

    try:
        result = await manager.render_form(form)
    except WebRenderError as e:
        errors_total.labels(**labels).inc()
        logger.error(f"Render failed for {form.url}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"could not make image: {e.message}",
        )
    except Exception as e:
        errors_total.labels(**labels).inc()
        logger.critical(f"Unexpected error rendering {form.url}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"could not make image: {e}",
        )

    return Response(content=result.data, media_type=result.content_type)
