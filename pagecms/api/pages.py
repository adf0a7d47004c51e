"""Page endpoint: every path and method renders a CMS page."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from pagecms.api.deps import get_cms_context
from pagecms.services.page_service import CMSContext, render_path

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])

PAGE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/{path:path}", methods=PAGE_METHODS, response_class=HTMLResponse)
async def serve_page(
    request: Request,
    context: Annotated[CMSContext, Depends(get_cms_context)],
) -> HTMLResponse:
    """Resolve the request path to a page and render it."""
    logger.debug("%s %s", request.method, request.url.path)
    html = await render_path(context, request.url.path)
    return HTMLResponse(content=html)
