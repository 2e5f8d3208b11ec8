"""Learner API — the course tree and video progress.

Learn: Learner endpoints load the caller's stored record and require an
approved (active) account. Progress is always read and written for the
caller only; the user id comes from the session, never from the body.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.access import AccessContext
from coursegate.auth.dependencies import active_user
from coursegate.db.engine import get_db
from coursegate.errors import InvalidInput, NotFound, handler_boundary
from coursegate.schemas.content import (
    CourseRead,
    CourseTree,
    ProgressList,
    ProgressRead,
    ProgressSaved,
    ProgressUpdate,
    TreeChapter,
    TreeVideo,
)
from coursegate.services.course_service import CourseService
from coursegate.services.progress_service import ProgressService

router = APIRouter()


@router.get("/course", response_model=CourseTree)
@handler_boundary()
async def get_course(
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    """The first active course with chapters, videos and the caller's progress."""
    tree = await CourseService(db).course_tree(ctx.user.id)
    if tree is None:
        return CourseTree(course=None, chapters=[], message="No course available")

    chapters = []
    for entry in tree["chapters"]:
        chapter = entry["chapter"]
        chapters.append(
            TreeChapter(
                id=chapter.id,
                title=chapter.title,
                description=chapter.description,
                module_key=chapter.module_key,
                order=chapter.order,
                videos=[
                    TreeVideo(
                        id=video.id,
                        title=video.title,
                        description=video.description,
                        duration=video.duration,
                        order=video.order,
                        playback_id=video.playback_id,
                        status=video.status,
                        progress=ProgressRead.model_validate(progress) if progress else None,
                    )
                    for video, progress in entry["videos"]
                ],
            )
        )
    return CourseTree(course=CourseRead.model_validate(tree["course"]), chapters=chapters)


@router.post("/video-progress", response_model=ProgressSaved)
@handler_boundary()
async def save_progress(
    body: ProgressUpdate,
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    """Upsert the caller's position in one video."""
    if (
        body.video_id is None
        or body.current_time is None
        or body.watched_duration is None
        or body.total_duration is None
    ):
        raise InvalidInput("Missing required fields")

    progress = await ProgressService(db).record(
        user_id=ctx.user.id,
        video_id=body.video_id,
        current_time=body.current_time,
        watched_duration=body.watched_duration,
        total_duration=body.total_duration,
    )
    if progress is None:
        raise NotFound("Video not found")
    return ProgressSaved(
        message="Progress saved successfully",
        progress=ProgressRead.model_validate(progress),
    )


@router.get("/video-progress", response_model=ProgressList)
@handler_boundary()
async def list_progress(
    video_id: Optional[uuid.UUID] = Query(None),
    chapter_id: Optional[uuid.UUID] = Query(None),
    course_id: Optional[uuid.UUID] = Query(None),
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    records = await ProgressService(db).list_for_user(
        ctx.user.id, video_id=video_id, chapter_id=chapter_id, course_id=course_id
    )
    return ProgressList(progress=[ProgressRead.model_validate(r) for r in records])
