"""Pydantic schemas for course content, the learner tree and progress."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Chapters ───────────────────────────────────────────

class ChapterCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    module_key: Optional[str] = None
    order: Optional[int] = None


class ChapterMove(BaseModel):
    direction: Optional[str] = None


class ChapterRead(BaseModel):
    id: uuid.UUID
    course_id: uuid.UUID
    module_key: str
    title: str
    description: str
    order: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ChapterWithCount(ChapterRead):
    video_count: int = 0


class ChapterList(BaseModel):
    chapters: list[ChapterWithCount]


class ChapterCreated(BaseModel):
    message: str
    chapter: ChapterRead


class ChapterMoved(BaseModel):
    message: str
    chapter: ChapterRead


# ─── Videos ─────────────────────────────────────────────

class VideoCreate(BaseModel):
    chapter_id: uuid.UUID
    title: Optional[str] = None
    description: Optional[str] = None
    asset_id: Optional[str] = None
    order: Optional[int] = None


class VideoRead(BaseModel):
    id: uuid.UUID
    chapter_id: uuid.UUID
    title: str
    description: str
    asset_id: Optional[str] = None
    playback_id: Optional[str] = None
    duration: float
    order: int
    is_active: bool
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class VideoList(BaseModel):
    videos: list[VideoRead]


class VideoCreated(BaseModel):
    message: str
    video: VideoRead


# ─── Progress ───────────────────────────────────────────

class ProgressUpdate(BaseModel):
    video_id: Optional[uuid.UUID] = None
    current_time: Optional[float] = None
    watched_duration: Optional[float] = None
    total_duration: Optional[float] = None


class ProgressRead(BaseModel):
    id: uuid.UUID
    video_id: uuid.UUID
    chapter_id: uuid.UUID
    course_id: uuid.UUID
    current_time: float
    watched_duration: float
    total_duration: float
    is_completed: bool
    completed_at: Optional[datetime] = None
    last_watched_at: datetime
    completion_percentage: int

    model_config = {"from_attributes": True}


class ProgressSaved(BaseModel):
    message: str
    progress: ProgressRead


class ProgressList(BaseModel):
    progress: list[ProgressRead]


# ─── Learner course tree ────────────────────────────────

class CourseRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str

    model_config = {"from_attributes": True}


class TreeVideo(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    duration: float
    order: int
    playback_id: Optional[str] = None
    status: str
    progress: Optional[ProgressRead] = None


class TreeChapter(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    module_key: str
    order: int
    videos: list[TreeVideo] = Field(default_factory=list)


class CourseTree(BaseModel):
    course: Optional[CourseRead] = None
    chapters: list[TreeChapter] = Field(default_factory=list)
    message: Optional[str] = None
