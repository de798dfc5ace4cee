#main.py

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from db2graphql.db import Settings, close_db, get_settings, init_db
from db2graphql.endpoints.graphql import router as graphql_router
from db2graphql.facade import DB2Graphql

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Custom Middleware for API Key Validation
# ─────────────────────────────────────────────────────────────────────────────

class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Validate the X-API-Key header on every request except the excluded paths.
    Only installed when API_KEY is configured.
    """
    def __init__(self, app, api_key: str, excluded_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.api_key = api_key
        self.excluded_paths = excluded_paths or []

    async def dispatch(self, request, call_next):
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key")
        if not api_key:
            return JSONResponse(
                status_code=406,
                content={"detail": "Missing required header: X-API-Key"}
            )
        if api_key != self.api_key:
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid API key"}
            )
        return await call_next(request)


def create_app(settings: Optional[Settings] = None, api: Optional[DB2Graphql] = None) -> FastAPI:
    """
    Build the FastAPI application.

    With ``api`` given the lifespan serves that facade as-is and opens no pool.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if api is not None:
            app.state.graphql = api
            yield
            return
        db = await init_db(settings)
        graphql = DB2Graphql.from_settings(db, settings)
        await graphql.connect()
        app.state.graphql = graphql
        logger.info("%s serving %d tables", settings.APP_NAME, len(graphql.graph.tables))
        yield
        await close_db()

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )

    if settings.API_KEY:
        app.add_middleware(APIKeyMiddleware, api_key=settings.API_KEY)

    app.include_router(graphql_router)

    @app.get("/health", tags=["system"])
    async def health():
        return {"status": "ok"}

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run(create_app(settings), host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))


if __name__ == "__main__":
    run()
