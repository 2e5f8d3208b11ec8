"""Pydantic schemas for processed user documents."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ProcessedDocumentCreate(BaseModel):
    file_name: Optional[str] = None
    extracted_data: Optional[str] = None
    total_pages: Optional[int] = None
    processing_method: Optional[str] = None
    processing_notes: Optional[str] = None


class ProcessedDocumentRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    file_name: str
    total_pages: Optional[int] = None
    extracted_data: str
    processing_method: Optional[str] = None
    processing_notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProcessedDocumentList(BaseModel):
    success: bool = True
    documents: list[ProcessedDocumentRead]


class ProcessedDocumentCreated(BaseModel):
    success: bool = True
    document: ProcessedDocumentRead
