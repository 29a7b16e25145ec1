import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Settings
from database import configure, ensure_indexes, get_db
from errors import install_error_handlers
from mailer import Mailer
from oauth import GoogleOAuth
from ratelimit import RateLimitMiddleware
from routers import admin, auth, bookings, listings, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = await get_db()
    await ensure_indexes(db)
    logger.info("Server running in %s mode", app.state.settings.environment)
    yield


def create_app(
    settings: Optional[Settings] = None,
    mailer: Optional[Mailer] = None,
    oauth: Optional[GoogleOAuth] = None,
    use_lifespan: bool = True,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure(settings.database_url, settings.database_name)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="EduSpace API", lifespan=lifespan if use_lifespan else None)
    app.state.settings = settings
    app.state.mailer = mailer or Mailer.from_settings(settings)
    app.state.oauth = oauth or GoogleOAuth.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_origin_regex=settings.allowed_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )
    install_error_handlers(app)

    for module in (auth, listings, bookings, users, admin):
        app.include_router(module.router)

    @app.get("/api/health")
    async def health():
        return {
            "success": True,
            "message": "EduSpace API is running",
            "timestamp": datetime.utcnow().isoformat(),
        }

    @app.get("/api/test")
    async def test_connection(db=Depends(get_db)):
        await db.command("ping")
        return {"success": True, "message": "Database connected"}

    return app


app = create_app()
