from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
import logging
from typing import Optional
from contextlib import asynccontextmanager

from viewcounter import __version__
from viewcounter.config import ConfigManager
from viewcounter.constants import FILL_MODE_MILESTONE, NO_CACHE, SVG_CONTENT_TYPE
from viewcounter.exceptions import InvalidKey
from viewcounter.service import BadgeService

logger = logging.getLogger(__name__)


def create_app(config: Optional[ConfigManager] = None) -> FastAPI:
    """Build the FastAPI application.

    The badge service (palette, template, counter store) is created in the
    lifespan handler. Any startup error propagates out of the lifespan so the
    server never starts serving with a broken palette, template or store.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or ConfigManager()
        service = BadgeService.from_config(cfg)
        app.state.service = service
        app.state.config = cfg
        try:
            yield
        finally:
            logger.info("Shutting down badge service...")
            try:
                service.close()
            except Exception as e:
                logger.warning(f"Error closing badge service: {e}", exc_info=True)

    app = FastAPI(title="Profile View Counter", version=__version__, lifespan=lifespan)

    @app.get("/")
    def index():
        """Bare index so uptime checks get a 200."""
        return PlainTextResponse("OK")

    @app.get("/api/health")
    def health(request: Request):
        """Health endpoint reporting how many profiles are tracked."""
        service: BadgeService = request.app.state.service
        return {"status": "ok", "service": "viewcounter", "version": __version__, "profiles": len(service.store)}

    @app.get("/api/counts/{profile_key}")
    def read_count(request: Request, profile_key: str):
        """Return the current count for a profile without counting a visit."""
        service: BadgeService = request.app.state.service
        try:
            count = service.store.get(profile_key)
        except InvalidKey as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"key": profile_key, "count": count}

    # metrics router (registered before the catch-all badge route)
    from viewcounter.api import metrics as _metrics_module
    app.include_router(_metrics_module.router)

    @app.get("/{profile_key}")
    def badge(request: Request, profile_key: str, fill_mode: str = FILL_MODE_MILESTONE):
        """Count a visit to ``profile_key`` and return its SVG badge.

        Query: ?fill_mode=milestone|random
        """
        service: BadgeService = request.app.state.service
        body, status = service.get_badge(profile_key, fill_mode)
        if status != 200:
            return PlainTextResponse(body.decode("utf-8"), status_code=status)
        return Response(content=body, media_type=SVG_CONTENT_TYPE, headers={"Cache-Control": NO_CACHE})

    return app


app = create_app()
