"""Admin API — course content and processed user documents.

Learn: Unlike user management, these endpoints re-check the *stored*
user record: a token minted before a demotion no longer grants access.
Anonymous callers get 401 {"error": "Unauthorized"}; signed-in
non-admins get 403 {"error": "Forbidden - Admin access required"}.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.access import AccessContext
from coursegate.auth.dependencies import content_admin
from coursegate.db.engine import get_db
from coursegate.errors import InvalidInput, NotFound, handler_boundary
from coursegate.schemas.content import (
    ChapterCreate,
    ChapterCreated,
    ChapterList,
    ChapterMove,
    ChapterMoved,
    ChapterRead,
    ChapterWithCount,
    VideoCreate,
    VideoCreated,
    VideoList,
    VideoRead,
)
from coursegate.schemas.document import (
    ProcessedDocumentCreate,
    ProcessedDocumentCreated,
    ProcessedDocumentList,
    ProcessedDocumentRead,
)
from coursegate.services.course_service import (
    ChapterMoveError,
    ContentValidationError,
    CourseService,
)
from coursegate.services.document_service import DocumentService, DocumentValidationError

router = APIRouter(prefix="/admin")


# ─── Chapters ────────────────────────────────────────────


@router.get("/chapters", response_model=ChapterList)
@handler_boundary()
async def list_chapters(
    ctx: AccessContext = Depends(content_admin),
    db: AsyncSession = Depends(get_db),
):
    """Active chapters with video counts."""
    rows = await CourseService(db).list_chapters()
    return ChapterList(
        chapters=[
            ChapterWithCount(
                **ChapterRead.model_validate(chapter).model_dump(),
                video_count=count,
            )
            for chapter, count in rows
        ]
    )


@router.post("/chapters", response_model=ChapterCreated)
@handler_boundary()
async def create_chapter(
    body: ChapterCreate,
    ctx: AccessContext = Depends(content_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        chapter = await CourseService(db).create_chapter(
            title=body.title or "",
            description=body.description or "",
            module_key=body.module_key or "",
            order=body.order,
            actor=ctx.user.email,
        )
    except ContentValidationError as e:
        raise InvalidInput(str(e))
    return ChapterCreated(
        message="Chapter created successfully",
        chapter=ChapterRead.model_validate(chapter),
    )


@router.put("/chapters/{chapter_id}/move", response_model=ChapterMoved)
@handler_boundary()
async def move_chapter(
    chapter_id: uuid.UUID,
    body: ChapterMove,
    ctx: AccessContext = Depends(content_admin),
    db: AsyncSession = Depends(get_db),
):
    """Swap a chapter with its neighbour above or below."""
    try:
        chapter = await CourseService(db).move_chapter(
            chapter_id, body.direction or "", actor=ctx.user.email
        )
    except ChapterMoveError as e:
        raise InvalidInput(str(e))
    if chapter is None:
        raise NotFound("Chapter not found")
    return ChapterMoved(
        message="Chapter order updated successfully",
        chapter=ChapterRead.model_validate(chapter),
    )


# ─── Videos ──────────────────────────────────────────────


@router.get("/videos", response_model=VideoList)
@handler_boundary()
async def list_videos(
    chapter_id: Optional[uuid.UUID] = Query(None),
    ctx: AccessContext = Depends(content_admin),
    db: AsyncSession = Depends(get_db),
):
    videos = await CourseService(db).list_videos(chapter_id)
    return VideoList(videos=[VideoRead.model_validate(v) for v in videos])


@router.post("/videos", response_model=VideoCreated)
@handler_boundary()
async def create_video(
    body: VideoCreate,
    ctx: AccessContext = Depends(content_admin),
    db: AsyncSession = Depends(get_db),
):
    """Register a video whose asset is still being transcoded."""
    try:
        video = await CourseService(db).create_video(
            chapter_id=body.chapter_id,
            title=body.title or "",
            description=body.description or "",
            asset_id=body.asset_id,
            order=body.order,
            actor=ctx.user.email,
        )
    except ContentValidationError as e:
        raise InvalidInput(str(e))
    if video is None:
        raise NotFound("Chapter not found")
    return VideoCreated(
        message="Video created successfully",
        video=VideoRead.model_validate(video),
    )


# ─── Processed documents ─────────────────────────────────


@router.get("/users/{user_id}/processed-documents", response_model=ProcessedDocumentList)
@handler_boundary()
async def list_processed_documents(
    user_id: uuid.UUID,
    ctx: AccessContext = Depends(content_admin),
    db: AsyncSession = Depends(get_db),
):
    documents = await DocumentService(db).list_for_user(user_id)
    return ProcessedDocumentList(
        documents=[ProcessedDocumentRead.model_validate(d) for d in documents]
    )


@router.post("/users/{user_id}/processed-documents", response_model=ProcessedDocumentCreated)
@handler_boundary()
async def create_processed_document(
    user_id: uuid.UUID,
    body: ProcessedDocumentCreate,
    ctx: AccessContext = Depends(content_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        document = await DocumentService(db).create(
            user_id,
            file_name=body.file_name,
            extracted_data=body.extracted_data,
            total_pages=body.total_pages,
            processing_method=body.processing_method,
            processing_notes=body.processing_notes,
            actor=ctx.user.email,
        )
    except DocumentValidationError as e:
        raise InvalidInput(str(e))
    if document is None:
        raise NotFound("User not found")
    return ProcessedDocumentCreated(document=ProcessedDocumentRead.model_validate(document))
