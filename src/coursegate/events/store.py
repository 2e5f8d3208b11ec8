"""Audit log: one append-only stream per user, chapter and video.

Learn: Services append an event next to every state change they make,
inside the same session, so the change and its audit record commit
together (or not at all). Nothing ever updates or deletes an event, not
even when the user it describes is rejected and removed.

Streams are keyed "<kind>:<uuid>", e.g. "user:3f2a...", so the history of
one entity is a single indexed range scan.
"""

import uuid
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.db.models import Event

STREAM_KINDS = ("user", "chapter", "video")


def stream_key(kind: str, entity_id: Union[uuid.UUID, str]) -> str:
    if kind not in STREAM_KINDS:
        raise ValueError(f"Unknown stream kind: {kind}")
    return f"{kind}:{entity_id}"


class EventStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
        metadata: Optional[dict] = None,
    ) -> Event:
        """Stage an event in the caller's transaction (flushed, not committed)."""
        event = Event(
            stream_id=stream_id,
            type=event_type,
            data=data,
            meta=metadata or {},
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def read_stream(
        self,
        stream_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[Event]:
        """Events of one stream in append order, optionally after a position."""
        result = await self.db.execute(
            select(Event)
            .where(Event.stream_id == stream_id, Event.id > after_id)
            .order_by(Event.id)
            .limit(limit)
        )
        return list(result.scalars().all())
