"""
HTTP responder for the KPSC notification feed.

Routes
------
GET /notifications?limit=<int>   ranked notification feed
GET /health                      liveness probe

Run with ``kpsc-feed-serve`` or ``uvicorn --factory kpsc_feed.api:create_app``.
"""

import os
from typing import Callable, Optional

import requests
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kpsc_feed.fetch import create_session
from kpsc_feed.main import build_envelope, build_error_envelope, run_pipeline
from kpsc_feed.rank import clamp_limit
from kpsc_feed.utils import FeedConfig, get_logger, load_feed_config, setup_logging


# Module logger
logger = get_logger("api")

# 3h fresh at shared caches, then up to 24h stale while revalidating
CACHE_CONTROL = "s-maxage=10800, stale-while-revalidate=86400"


def create_app(
    config: Optional[FeedConfig] = None,
    session_factory: Optional[Callable[[FeedConfig], requests.Session]] = None
) -> FastAPI:
    """
    Return a configured FastAPI application.

    Args:
        config: Feed configuration. Loaded from the environment if None.
        session_factory: Builds the HTTP session used for one request.
                         Defaults to create_session with the config's
                         retry, user agent and pool settings.
    """
    if config is None:
        config = load_feed_config()

    if session_factory is None:
        def session_factory(cfg: FeedConfig) -> requests.Session:
            return create_session(
                max_retries=cfg.max_retries,
                user_agent=cfg.user_agent,
                pool_size=cfg.max_workers
            )

    app = FastAPI(
        title="KPSC Notification Feed",
        description="Recent Kerala PSC gazette notifications as a JSON feed.",
        version="1.0.0",
    )
    app.state.config = config
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/notifications")
    def notifications(request: Request, limit: Optional[str] = None) -> JSONResponse:
        """Run the pipeline and return the ranked feed."""
        effective_limit = clamp_limit(limit)
        cfg: FeedConfig = request.app.state.config

        try:
            session = request.app.state.session_factory(cfg)
            try:
                result = run_pipeline(effective_limit, config=cfg, session=session)
            finally:
                session.close()
        except Exception as e:
            logger.exception(f"Notification feed failed: {e}")
            return JSONResponse(status_code=500, content=build_error_envelope(e))

        return JSONResponse(
            status_code=200,
            content=build_envelope(result),
            headers={"Cache-Control": CACHE_CONTROL},
        )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


def serve() -> None:
    """Console entry point: serve the feed with uvicorn."""
    import uvicorn

    setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(create_app(), host=host, port=port)
