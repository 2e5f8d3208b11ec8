"""Course content — chapters, videos and the learner's course tree.

Learn: The platform runs a single course. Chapters are created inside
it (the course itself is created on demand), tagged with a module key
and ordered by an integer that only has to define a total order. Moving
a chapter swaps its order with the chapter at order±1; there is no
renumbering pass.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.db.models import (
    MODULE_KEYS,
    Chapter,
    Course,
    Video,
    VideoProgress,
)
from coursegate.events.store import EventStore, stream_key
from coursegate.events.types import CHAPTER_CREATED, CHAPTER_MOVED, VIDEO_CREATED

logger = structlog.get_logger()

DEFAULT_COURSE_TITLE = "Default Course"
DEFAULT_COURSE_DESCRIPTION = "Default course for chapters"


class ContentValidationError(Exception):
    """Payload rejected before touching the store."""


class ChapterMoveError(Exception):
    """Chapter cannot move in the requested direction."""


class CourseService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    # ─── Courses ────────────────────────────────────────

    async def first_active_course(self) -> Optional[Course]:
        result = await self.db.execute(
            select(Course)
            .where(Course.is_active.is_(True))
            .order_by(Course.created_at)
            .limit(1)
        )
        return result.scalars().first()

    async def get_or_create_default_course(self) -> Course:
        result = await self.db.execute(select(Course).order_by(Course.created_at).limit(1))
        course = result.scalars().first()
        if course is None:
            course = Course(
                title=DEFAULT_COURSE_TITLE,
                description=DEFAULT_COURSE_DESCRIPTION,
            )
            self.db.add(course)
            await self.db.flush()
            logger.info("course.default_created", course_id=str(course.id))
        return course

    # ─── Chapters ───────────────────────────────────────

    async def list_chapters(self) -> list[tuple[Chapter, int]]:
        """Active chapters with their video counts, by order then newest."""
        video_count = (
            select(func.count(Video.id))
            .where(Video.chapter_id == Chapter.id)
            .correlate(Chapter)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Chapter, video_count)
            .where(Chapter.is_active.is_(True))
            .order_by(Chapter.order.asc(), Chapter.created_at.desc())
        )
        return [(chapter, int(count)) for chapter, count in result.all()]

    async def get_chapter(self, chapter_id: uuid.UUID) -> Optional[Chapter]:
        return await self.db.get(Chapter, chapter_id)

    async def create_chapter(
        self,
        *,
        title: str,
        description: str,
        module_key: str,
        order: Optional[int] = None,
        actor: str,
    ) -> Chapter:
        if not title or not description or not module_key:
            raise ContentValidationError("Title, description and moduleKey are required")
        if module_key not in MODULE_KEYS:
            raise ContentValidationError(f"Unknown module key: {module_key}")

        course = await self.get_or_create_default_course()
        if not order:
            result = await self.db.execute(
                select(func.max(Chapter.order)).where(
                    Chapter.course_id == course.id,
                    Chapter.module_key == module_key,
                )
            )
            last = result.scalar()
            order = last + 1 if last is not None else 1

        chapter = Chapter(
            course_id=course.id,
            module_key=module_key,
            title=title.strip(),
            description=description.strip(),
            order=order,
            is_active=True,
        )
        self.db.add(chapter)
        await self.db.flush()
        await self.events.append(
            stream_id=stream_key("chapter", chapter.id),
            event_type=CHAPTER_CREATED,
            data={"title": chapter.title, "module_key": module_key, "order": order},
            metadata={"actor": actor},
        )
        await self.db.commit()
        return chapter

    async def move_chapter(
        self, chapter_id: uuid.UUID, direction: str, *, actor: str
    ) -> Optional[Chapter]:
        """Swap a chapter with its neighbour. Returns None for unknown ids."""
        if direction not in ("up", "down"):
            raise ChapterMoveError('Direction must be "up" or "down"')

        chapter = await self.get_chapter(chapter_id)
        if chapter is None:
            return None

        current = chapter.order
        if direction == "up":
            target = current - 1
            if target < 1:
                raise ChapterMoveError("Chapter is already at the top")
        else:
            target = current + 1
            result = await self.db.execute(
                select(func.count(Chapter.id)).where(Chapter.course_id == chapter.course_id)
            )
            if target > result.scalar_one():
                raise ChapterMoveError("Chapter is already at the bottom")

        result = await self.db.execute(
            select(Chapter).where(
                Chapter.course_id == chapter.course_id,
                Chapter.order == target,
            )
        )
        neighbour = result.scalars().first()
        if neighbour is None:
            raise ChapterMoveError("No chapter found at target position")

        chapter.order, neighbour.order = target, current
        await self.events.append(
            stream_id=stream_key("chapter", chapter.id),
            event_type=CHAPTER_MOVED,
            data={"from": current, "to": target, "swapped_with": str(neighbour.id)},
            metadata={"actor": actor},
        )
        await self.db.commit()
        logger.info("chapter.moved", chapter_id=str(chapter.id), direction=direction)
        return chapter

    # ─── Videos ─────────────────────────────────────────

    async def list_videos(self, chapter_id: Optional[uuid.UUID] = None) -> list[Video]:
        query = select(Video).order_by(Video.order.asc(), Video.created_at.asc())
        if chapter_id is not None:
            query = query.where(Video.chapter_id == chapter_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_video(self, video_id: uuid.UUID) -> Optional[Video]:
        return await self.db.get(Video, video_id)

    async def create_video(
        self,
        *,
        chapter_id: uuid.UUID,
        title: str,
        description: str,
        asset_id: Optional[str] = None,
        order: Optional[int] = None,
        actor: str,
    ) -> Optional[Video]:
        """Create a video in `preparing` state. Returns None for unknown chapters."""
        if not title or not description:
            raise ContentValidationError("Title and description are required")
        chapter = await self.get_chapter(chapter_id)
        if chapter is None:
            return None

        if not order:
            result = await self.db.execute(
                select(func.max(Video.order)).where(Video.chapter_id == chapter_id)
            )
            last = result.scalar()
            order = last + 1 if last is not None else 1

        video = Video(
            chapter_id=chapter_id,
            title=title.strip(),
            description=description.strip(),
            asset_id=asset_id,
            order=order,
            status="preparing",
        )
        self.db.add(video)
        await self.db.flush()
        await self.events.append(
            stream_id=stream_key("video", video.id),
            event_type=VIDEO_CREATED,
            data={"chapter_id": str(chapter_id), "asset_id": asset_id},
            metadata={"actor": actor},
        )
        await self.db.commit()
        return video

    # ─── Learner view ───────────────────────────────────

    async def course_tree(self, user_id: uuid.UUID) -> Optional[dict]:
        """The first active course with chapters, videos and the user's progress.

        Returns None when no course is available.
        """
        course = await self.first_active_course()
        if course is None:
            return None

        chapters = (
            await self.db.execute(
                select(Chapter)
                .where(Chapter.course_id == course.id, Chapter.is_active.is_(True))
                .order_by(Chapter.order.asc(), Chapter.created_at.desc())
            )
        ).scalars().all()
        chapter_ids = [c.id for c in chapters]

        videos = []
        if chapter_ids:
            videos = (
                await self.db.execute(
                    select(Video)
                    .where(Video.chapter_id.in_(chapter_ids), Video.is_active.is_(True))
                    .order_by(Video.order.asc())
                )
            ).scalars().all()

        progress_by_video = {}
        if videos:
            records = (
                await self.db.execute(
                    select(VideoProgress).where(
                        VideoProgress.user_id == user_id,
                        VideoProgress.video_id.in_([v.id for v in videos]),
                    )
                )
            ).scalars().all()
            progress_by_video = {p.video_id: p for p in records}

        return {
            "course": course,
            "chapters": [
                {
                    "chapter": chapter,
                    "videos": [
                        (video, progress_by_video.get(video.id))
                        for video in videos
                        if video.chapter_id == chapter.id
                    ],
                }
                for chapter in chapters
            ],
        }
