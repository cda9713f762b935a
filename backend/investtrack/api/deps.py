from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from investtrack.db.session import SessionLocal
from investtrack.services.repository import PortfolioRepository, get_collection_cache


def get_db(request: Request) -> Generator[Session, None, None]:
    session_factory = getattr(request.app.state, "session_factory", SessionLocal)
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_repository(request: Request, db: Session = Depends(get_db)) -> PortfolioRepository:
    cache = getattr(request.app.state, "collection_cache", None) or get_collection_cache()
    return PortfolioRepository(db, cache)
