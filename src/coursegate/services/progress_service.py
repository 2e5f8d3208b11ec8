"""Video progress — per (user, video) watch position and completion."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.db.models import Chapter, Video, VideoProgress, utcnow


class ProgressService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        *,
        user_id: uuid.UUID,
        video_id: uuid.UUID,
        current_time: float,
        watched_duration: float,
        total_duration: float,
        now: Optional[datetime] = None,
    ) -> Optional[VideoProgress]:
        """Upsert the caller's progress for one video.

        Returns None when the video does not exist. Chapter and course
        are taken from the video, never from the client.
        """
        video = await self.db.get(Video, video_id)
        if video is None:
            return None
        chapter = await self.db.get(Chapter, video.chapter_id)

        result = await self.db.execute(
            select(VideoProgress).where(
                VideoProgress.user_id == user_id,
                VideoProgress.video_id == video_id,
            )
        )
        progress = result.scalars().first()
        if progress is None:
            progress = VideoProgress(
                user_id=user_id,
                video_id=video_id,
                chapter_id=video.chapter_id,
                course_id=chapter.course_id,
                is_completed=False,
            )
            self.db.add(progress)

        progress.record_watch(
            current_time, watched_duration, total_duration, now=now or utcnow()
        )
        await self.db.commit()
        return progress

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        *,
        video_id: Optional[uuid.UUID] = None,
        chapter_id: Optional[uuid.UUID] = None,
        course_id: Optional[uuid.UUID] = None,
    ) -> list[VideoProgress]:
        """The user's progress records, most recently watched first."""
        query = select(VideoProgress).where(VideoProgress.user_id == user_id)
        if video_id is not None:
            query = query.where(VideoProgress.video_id == video_id)
        if chapter_id is not None:
            query = query.where(VideoProgress.chapter_id == chapter_id)
        if course_id is not None:
            query = query.where(VideoProgress.course_id == course_id)
        result = await self.db.execute(query.order_by(VideoProgress.last_watched_at.desc()))
        return list(result.scalars().all())
