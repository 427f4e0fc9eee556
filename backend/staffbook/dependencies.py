# backend/staffbook/dependencies.py
"""
FastAPI dependencies wiring the engine to the request-scoped DB session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .repos.sql import SqlUnitOfWork
from .services.external_calendar import GoogleCalendarAdapter, sql_token_loader


def get_uow(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SqlUnitOfWork:
    return SqlUnitOfWork(db, lock_timeout_ms=settings.lock_timeout_ms)


def get_calendar(db: Session = Depends(get_db)) -> GoogleCalendarAdapter:
    return GoogleCalendarAdapter(sql_token_loader(db))
