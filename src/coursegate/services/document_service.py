"""Processed documents — text extracted from a user's uploaded files.

Extraction itself (OCR, PDF parsing) happens elsewhere; admins store
the result here, and the quiz blueprint reads the newest one.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.db.models import User, UserProcessedDocument
from coursegate.events.store import EventStore, stream_key
from coursegate.events.types import PROCESSED_DOCUMENT_CREATED

logger = structlog.get_logger()


class DocumentValidationError(Exception):
    pass


class DocumentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    async def list_for_user(self, user_id: uuid.UUID) -> list[UserProcessedDocument]:
        result = await self.db.execute(
            select(UserProcessedDocument)
            .where(UserProcessedDocument.user_id == user_id)
            .order_by(UserProcessedDocument.created_at.desc())
        )
        return list(result.scalars().all())

    async def create(
        self,
        user_id: uuid.UUID,
        *,
        file_name: Optional[str],
        extracted_data: Optional[str],
        total_pages: Optional[int] = None,
        processing_method: Optional[str] = None,
        processing_notes: Optional[str] = None,
        actor: str,
    ) -> Optional[UserProcessedDocument]:
        """Store an extraction result. Returns None for unknown users."""
        if not file_name or not extracted_data:
            raise DocumentValidationError("fileName and extractedData are required")
        if await self.db.get(User, user_id) is None:
            return None

        document = UserProcessedDocument(
            user_id=user_id,
            file_name=file_name,
            extracted_data=extracted_data,
            total_pages=total_pages,
            processing_method=processing_method,
            processing_notes=processing_notes,
        )
        self.db.add(document)
        await self.db.flush()
        await self.events.append(
            stream_id=stream_key("user", user_id),
            event_type=PROCESSED_DOCUMENT_CREATED,
            data={"document_id": str(document.id), "file_name": file_name},
            metadata={"actor": actor},
        )
        await self.db.commit()
        logger.info("document.processed_created", user_id=str(user_id), document_id=str(document.id))
        return document
