"""Initial schema: users, course content, progress, quiz and documents

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # ─── Users ───────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("verification_status", sa.String(30), nullable=False),
        sa.Column("reset_password_token", sa.String(128), nullable=True),
        sa.Column("reset_password_expires", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])
    op.create_index("idx_users_reset_token", "users", ["reset_password_token"])

    # ─── Course → Chapter → Video ────────────────────────
    op.create_table(
        "courses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "chapters",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("course_id", sa.Uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_key", sa.String(40), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_chapters_course_order", "chapters", ["course_id", "order"])
    op.create_table(
        "videos",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("asset_id", sa.String(100), nullable=True),
        sa.Column("playback_id", sa.String(100), nullable=True),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_videos_chapter_order", "videos", ["chapter_id", "order"])
    op.create_index("idx_videos_asset", "videos", ["asset_id"])
    op.create_table(
        "video_progress",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("video_id", sa.Uuid(), sa.ForeignKey("videos.id"), nullable=False),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id"), nullable=False),
        sa.Column("course_id", sa.Uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("current_time", sa.Float(), nullable=False),
        sa.Column("watched_duration", sa.Float(), nullable=False),
        sa.Column("total_duration", sa.Float(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_watched_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "video_id", name="uq_video_progress_user_video"),
    )
    op.create_index(
        "idx_video_progress_user_course", "video_progress", ["user_id", "course_id"]
    )

    # ─── Quiz ────────────────────────────────────────────
    op.create_table(
        "quiz_blueprints",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("source_hash", sa.String(64), nullable=False),
        sa.Column("categories", JSONB, nullable=False),
        sa.Column("llm_meta", JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_quiz_blueprints_user_hash", "quiz_blueprints", ["user_id", "source_hash"]
    )
    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "blueprint_id", sa.Uuid(), sa.ForeignKey("quiz_blueprints.id"), nullable=False
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("difficulty", sa.Integer(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("choices", JSONB, nullable=True),
        sa.Column("correct", JSONB, nullable=True),
        sa.Column("rationales", JSONB, nullable=True),
        sa.Column("rubric", JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_quiz_questions_blueprint", "quiz_questions", ["user_id", "blueprint_id"]
    )
    op.create_table(
        "quiz_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("question_ids", JSONB, nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("competency_scores", JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_quiz_sessions_user_id", "quiz_sessions", ["user_id"])
    op.create_table(
        "quiz_results",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("session_id", sa.Uuid(), sa.ForeignKey("quiz_sessions.id"), nullable=False),
        sa.Column("question_id", sa.Uuid(), sa.ForeignKey("quiz_questions.id"), nullable=False),
        sa.Column("submitted", JSONB, nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("time_spent_sec", sa.Float(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "session_id", "question_id", name="uq_quiz_results_session_question"
        ),
    )

    # ─── Per-user documents ──────────────────────────────
    op.create_table(
        "user_case_profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("source_hash", sa.String(64), nullable=False),
        sa.Column("facts", JSONB, nullable=False),
        sa.Column("risk_flags", JSONB, nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "idx_user_case_profiles_user_created", "user_case_profiles", ["user_id", "created_at"]
    )
    op.create_table(
        "user_intakes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("responses", JSONB, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "user_processed_documents",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("total_pages", sa.Integer(), nullable=True),
        sa.Column("extracted_data", sa.Text(), nullable=False),
        sa.Column("processing_method", sa.String(100), nullable=True),
        sa.Column("processing_notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_user_processed_documents_user_id", "user_processed_documents", ["user_id"]
    )

    # ─── Audit log ───────────────────────────────────────
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stream_id", sa.String(200), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("metadata", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_events_stream", "events", ["stream_id", "id"])
    op.create_index("idx_events_type", "events", ["type"])


def downgrade() -> None:
    for table in (
        "events",
        "user_processed_documents",
        "user_intakes",
        "user_case_profiles",
        "quiz_results",
        "quiz_sessions",
        "quiz_questions",
        "quiz_blueprints",
        "video_progress",
        "videos",
        "chapters",
        "courses",
        "users",
    ):
        op.drop_table(table)
