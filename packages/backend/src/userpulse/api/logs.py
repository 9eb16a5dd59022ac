"""Log API routes — other services POST their log lines here."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from userpulse.db.engine import get_db
from userpulse.schemas.log_entry import LogEntryCreate, LogEntryRead
from userpulse.services.log_service import LogService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> LogService:
    return LogService(db)


@router.post("/logs", response_model=LogEntryRead, status_code=201)
async def add_log(body: LogEntryCreate, svc: LogService = Depends(_svc)):
    return await svc.add(service=body.service, message=body.message)


@router.get("/logs", response_model=list[LogEntryRead])
async def read_logs(
    service: Optional[str] = Query(default=None),
    svc: LogService = Depends(_svc),
):
    """All log entries, oldest first, optionally for one service."""
    return await svc.read(service=service)
