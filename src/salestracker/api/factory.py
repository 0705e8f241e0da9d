"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from salestracker.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import reprocess, sales, webhooks_evolution


def create_app() -> FastAPI:
    """Create FastAPI app with webhook, verification and maintenance routes."""
    app = FastAPI(
        title="Sales Tracker",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(webhooks_evolution.router)
    app.include_router(sales.router)
    app.include_router(reprocess.router)

    return app
