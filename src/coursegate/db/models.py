"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one collection. The platform stores loosely shaped documents
(intake answers, quiz choices, extracted case facts), so those fields are
JSON columns (JSONB on PostgreSQL) while everything the access layer
filters on (role, is_active, owner ids, tokens) is a real column.

Key concepts:
- UUID primary keys
- Python-side created_at defaults (microsecond precision, stable ordering)
- MODEL_REGISTRY: the explicit, read-only "collection name → model" map
  that the store lifecycle and admin statistics iterate over
"""

import math
import uuid
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

USER_ROLES = ("user", "admin")
MODULE_KEYS = ("alcohol_drugs", "traffic_points", "medicinal_cannabis", "extras")
VIDEO_STATUSES = ("preparing", "ready", "errored", "deleted")
QUESTION_TYPES = ("mcq", "short", "scenario")
VERIFICATION_STATUSES = (
    "pending",
    "documents_uploaded",
    "contract_signed",
    "verified",
    "rejected",
    "resubmission_required",
)

# Watched share of a video after which it counts as completed
VIDEO_COMPLETION_THRESHOLD = 0.9


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from stores without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


# ══════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════


class User(TimestampMixin, Base):
    """A platform account.

    Learn: Registration creates an inactive "user"; an admin approval
    flips is_active. role + is_active jointly gate every authorization
    decision. The reset token is a single-use capability: it is cleared
    in the same commit that changes the password.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
        Index("idx_users_reset_token", "reset_password_token"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verification_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending"
    )
    reset_password_token: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True
    )
    reset_password_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ══════════════════════════════════════════════════════════════
# Course → Chapter → Video
# ══════════════════════════════════════════════════════════════


class Course(TimestampMixin, Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Chapter(TimestampMixin, Base):
    """A chapter of a course, tagged with a module key.

    Learn: `order` only has to define a total display order — gaps are
    fine. Moving a chapter swaps its order with the neighbour at ±1.
    """

    __tablename__ = "chapters"
    __table_args__ = (Index("idx_chapters_course_order", "course_id", "order"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id"), nullable=False
    )
    module_key: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Video(TimestampMixin, Base):
    """A video inside a chapter, transcoded by the external video host.

    status follows the host's asynchronous asset lifecycle and is only
    changed by the status webhook.
    """

    __tablename__ = "videos"
    __table_args__ = (
        Index("idx_videos_chapter_order", "chapter_id", "order"),
        Index("idx_videos_asset", "asset_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    chapter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chapters.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    asset_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    playback_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="preparing")


class VideoProgress(TimestampMixin, Base):
    """How far one user got in one video."""

    __tablename__ = "video_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_video_progress_user_video"),
        Index("idx_video_progress_user_course", "user_id", "course_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("videos.id"), nullable=False
    )
    chapter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chapters.id"), nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id"), nullable=False
    )
    current_time: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    watched_duration: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_duration: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_watched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    @property
    def completion_percentage(self) -> int:
        if not self.total_duration:
            return 0
        return min(100, math.floor(self.watched_duration / self.total_duration * 100 + 0.5))

    def record_watch(
        self,
        current_time: float,
        watched_duration: float,
        total_duration: float,
        now: Optional[datetime] = None,
    ) -> None:
        """Store a player position report; completion is sticky."""
        now = now or utcnow()
        self.current_time = max(0.0, current_time)
        self.watched_duration = max(0.0, watched_duration)
        self.total_duration = max(0.0, total_duration)
        self.last_watched_at = now
        if not self.is_completed and self.total_duration > 0:
            if self.watched_duration / self.total_duration >= VIDEO_COMPLETION_THRESHOLD:
                self.is_completed = True
                self.completed_at = now


# ══════════════════════════════════════════════════════════════
# Quiz
# ══════════════════════════════════════════════════════════════


class QuizBlueprint(TimestampMixin, Base):
    """The category plan of a generated quiz, memoized by source_hash."""

    __tablename__ = "quiz_blueprints"
    __table_args__ = (Index("idx_quiz_blueprints_user_hash", "user_id", "source_hash"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    source_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    categories: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )  # [{"key": "knowledge", "count": 4}, ...]
    llm_meta: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)


class QuizQuestion(TimestampMixin, Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (Index("idx_quiz_questions_blueprint", "user_id", "blueprint_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    blueprint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quiz_blueprints.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    choices: Mapped[Optional[list[dict[str, str]]]] = mapped_column(
        JSONType, nullable=True
    )
    correct: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    rationales: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    rubric: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)


class QuizSession(TimestampMixin, Base):
    """One quiz attempt: an ordered selection of question ids."""

    __tablename__ = "quiz_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    question_ids: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    competency_scores: Mapped[Optional[dict[str, int]]] = mapped_column(
        JSONType, nullable=True
    )


class QuizResult(TimestampMixin, Base):
    __tablename__ = "quiz_results"
    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_quiz_results_session_question"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quiz_sessions.id"), nullable=False
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quiz_questions.id"), nullable=False
    )
    submitted: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    time_spent_sec: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ══════════════════════════════════════════════════════════════
# Per-user documents
# ══════════════════════════════════════════════════════════════


class UserCaseProfile(TimestampMixin, Base):
    """Case facts extracted for a user. The newest one is "the" profile."""

    __tablename__ = "user_case_profiles"
    __table_args__ = (Index("idx_user_case_profiles_user_created", "user_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    source_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    facts: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    risk_flags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)


class UserIntake(TimestampMixin, Base):
    """Baseline questionnaire answers, one document per user."""

    __tablename__ = "user_intakes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, unique=True
    )
    responses: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class UserProcessedDocument(TimestampMixin, Base):
    __tablename__ = "user_processed_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_pages: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    extracted_data: Mapped[str] = mapped_column(Text, nullable=False)
    processing_method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    processing_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ══════════════════════════════════════════════════════════════
# Audit log
# ══════════════════════════════════════════════════════════════


class Event(Base):
    """Immutable audit log of state changes.

    stream_id examples: "user:<uuid>", "chapter:<uuid>", "video:<uuid>"
    type examples: "user.approved", "password_reset.completed"
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_stream", "stream_id", "id"),
        Index("idx_events_type", "type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    # Python attr is "meta" because "metadata" is reserved by SQLAlchemy.
    meta: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


MODEL_REGISTRY = MappingProxyType({
    model.__tablename__: model
    for model in (
        User,
        Course,
        Chapter,
        Video,
        VideoProgress,
        QuizBlueprint,
        QuizQuestion,
        QuizSession,
        QuizResult,
        UserCaseProfile,
        UserIntake,
        UserProcessedDocument,
        Event,
    )
})
