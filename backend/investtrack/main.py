from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from investtrack.api.routes import api_router
from investtrack.core.config import Settings, get_settings
from investtrack.db.base import Base
from investtrack.db.session import SessionLocal, build_engine, build_session_factory
from investtrack.services.repository import CollectionCache, PortfolioRepository, get_collection_cache
from investtrack.services.seed import seed_demo_data


logger = logging.getLogger("investtrack.api")


def _session_factory(settings: Settings) -> sessionmaker:
    if settings.database_url == get_settings().database_url:
        return SessionLocal
    return build_session_factory(build_engine(settings.database_url))


def _prepare_database(settings: Settings, session_factory: sessionmaker, cache: CollectionCache) -> None:
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=session_factory.kw["bind"])
    if not settings.seed_demo_data:
        return
    with session_factory() as db:
        try:
            seed_demo_data(db, PortfolioRepository(db, cache))
        except Exception:
            db.rollback()
            logger.exception("Demo seed failed; starting with the existing data.")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    session_factory = _session_factory(settings)
    cache = get_collection_cache() if session_factory is SessionLocal else CollectionCache()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _prepare_database(settings, session_factory, cache)
        logger.info("%s ready on %s", settings.app_name, settings.api_prefix)
        yield
        session_factory.kw["bind"].dispose()
        logger.info("%s stopped.", settings.app_name)

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.state.session_factory = session_factory
    app.state.collection_cache = cache
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as exc:  # pragma: no cover
            logger.exception("Unhandled error for %s %s", request.method, request.url.path, exc_info=exc)
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})
        logger.info(
            "%s %s -> %s %.2fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response

    @app.exception_handler(ValueError)
    async def invalid_value(request: Request, exc: ValueError) -> JSONResponse:
        # Malformed stored data (bad month, non-numeric weight) surfaces here.
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/healthz")
    def healthz() -> dict:
        return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/", include_in_schema=False)
    def root() -> dict[str, str]:
        return {"service": settings.app_name, "api_root": settings.api_prefix, "docs": "/docs"}

    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
