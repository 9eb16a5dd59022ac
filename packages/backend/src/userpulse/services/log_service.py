"""Log service — stores and lists log lines posted by other services."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from userpulse.db.models import LogEntry, utcnow


class LogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, service: str, message: str) -> LogEntry:
        """Store a log line. The timestamp is always set server-side."""
        entry = LogEntry(service=service, message=message, timestamp=utcnow())
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    async def read(self, service: Optional[str] = None) -> list[LogEntry]:
        query = select(LogEntry).order_by(LogEntry.timestamp, LogEntry.id)
        if service:
            query = query.where(LogEntry.service == service)
        result = await self.db.execute(query)
        return list(result.scalars().all())
