"""Quiz service — intake, case profile, blueprints and quiz sessions.

Learn: A learner's quiz is built in three steps:
1. The baseline intake questionnaire is filled in (and marked complete).
2. A blueprint is generated from the intake plus the latest processed
   document. Blueprints are memoized by a hash of both sources, so
   asking again with unchanged data returns the same blueprint.
3. Sessions draw a balanced selection of the blueprint's questions;
   answers are scored as they arrive and totalled on finish.

Every query is scoped to the caller's user id: a session or question
belonging to someone else is reported as not found.
"""

import random
import uuid
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.db.models import (
    QuizBlueprint,
    QuizQuestion,
    QuizResult,
    QuizSession,
    UserCaseProfile,
    UserIntake,
    UserProcessedDocument,
    as_utc,
    utcnow,
)
from coursegate.events.store import EventStore, stream_key
from coursegate.events.types import (
    QUIZ_BLUEPRINT_CREATED,
    QUIZ_RESET,
    QUIZ_SESSION_FINISHED,
)
from coursegate.quiz import engine
from coursegate.quiz.question_bank import generate_blueprint

logger = structlog.get_logger()


class QuizStateError(Exception):
    """The caller's quiz data does not allow this step yet (400)."""


class QuizNotFoundError(Exception):
    """Session or question missing, or owned by someone else (404)."""


class QuizService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    # ─── Profile ────────────────────────────────────────

    async def latest_profile(self, user_id: uuid.UUID) -> Optional[UserCaseProfile]:
        """The most recently created profile, or None."""
        result = await self.db.execute(
            select(UserCaseProfile)
            .where(UserCaseProfile.user_id == user_id)
            .order_by(UserCaseProfile.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def sync_profile(self, user_id: uuid.UUID) -> UserCaseProfile:
        """Build a profile from the latest processed document (memoized by hash)."""
        document = await self.latest_document(user_id)
        text = document.extracted_data if document else ""
        source_hash = engine.sha256_hex(text)

        result = await self.db.execute(
            select(UserCaseProfile).where(
                UserCaseProfile.user_id == user_id,
                UserCaseProfile.source_hash == source_hash,
            )
        )
        existing = result.scalars().first()
        if existing:
            return existing

        facts, risk_flags = engine.normalize_facts(text)
        profile = UserCaseProfile(
            user_id=user_id,
            source_hash=source_hash,
            facts=facts,
            risk_flags=risk_flags,
        )
        self.db.add(profile)
        await self.db.commit()
        return profile

    async def latest_document(self, user_id: uuid.UUID) -> Optional[UserProcessedDocument]:
        result = await self.db.execute(
            select(UserProcessedDocument)
            .where(UserProcessedDocument.user_id == user_id)
            .order_by(UserProcessedDocument.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    # ─── Intake ─────────────────────────────────────────

    async def get_intake(self, user_id: uuid.UUID) -> Optional[UserIntake]:
        result = await self.db.execute(
            select(UserIntake).where(UserIntake.user_id == user_id)
        )
        return result.scalars().first()

    async def save_intake(
        self,
        user_id: uuid.UUID,
        responses: dict[str, Any],
        *,
        complete: bool = False,
        now: Optional[datetime] = None,
    ) -> UserIntake:
        """Merge new answers into the stored intake (created on first save)."""
        now = now or utcnow()
        intake = await self.get_intake(user_id)
        if intake is None:
            intake = UserIntake(user_id=user_id, responses={})
            self.db.add(intake)

        # Assign a new dict so the JSON column is flagged dirty.
        intake.responses = engine.merge_intake(
            dict(intake.responses or {}), responses or {}, engine.intake_timestamp(now)
        )
        if complete:
            intake.completed_at = now
        await self.db.commit()
        return intake

    # ─── Blueprint ──────────────────────────────────────

    async def create_blueprint(
        self, user_id: uuid.UUID, *, force: bool = False
    ) -> tuple[QuizBlueprint, bool]:
        """Return (blueprint, created). Reuses a blueprint with the same source hash."""
        intake = await self.get_intake(user_id)
        if intake is None or intake.completed_at is None:
            raise QuizStateError("Baseline intake not completed")

        document = await self.latest_document(user_id)
        document_text = (document.extracted_data if document else "").strip()
        responses = intake.responses or {}
        source_hash = engine.blueprint_source_hash(document_text, responses)
        if source_hash is None:
            raise QuizStateError("No baseline or document data found")

        result = await self.db.execute(
            select(QuizBlueprint).where(
                QuizBlueprint.user_id == user_id,
                QuizBlueprint.source_hash == source_hash,
            )
        )
        existing = result.scalars().first()
        if existing and not force:
            return existing, False
        if existing:
            # Answers point at the old questions; they go first.
            old_question_ids = select(QuizQuestion.id).where(
                QuizQuestion.blueprint_id == existing.id
            )
            await self.db.execute(
                delete(QuizResult).where(QuizResult.question_id.in_(old_question_ids))
            )
            await self.db.execute(
                delete(QuizQuestion).where(
                    QuizQuestion.user_id == user_id,
                    QuizQuestion.blueprint_id == existing.id,
                )
            )
            await self.db.delete(existing)
            await self.db.flush()

        facts = {"intake": responses}
        if document_text:
            facts["summary"] = document_text[: engine.SUMMARY_LIMIT]
        generated = generate_blueprint(facts)

        blueprint = QuizBlueprint(
            user_id=user_id,
            source_hash=source_hash,
            categories=generated["categories"],
            llm_meta=generated["meta"],
        )
        self.db.add(blueprint)
        await self.db.flush()
        for question in generated["questions"]:
            self.db.add(
                QuizQuestion(
                    user_id=user_id,
                    blueprint_id=blueprint.id,
                    type=question.type,
                    category=question.category,
                    difficulty=question.difficulty,
                    prompt=question.prompt,
                    choices=question.choices,
                    correct=question.correct,
                    rationales=question.rationales,
                    rubric=question.rubric,
                )
            )
        await self.events.append(
            stream_id=stream_key("user", user_id),
            event_type=QUIZ_BLUEPRINT_CREATED,
            data={"blueprint_id": str(blueprint.id), "forced": bool(existing)},
        )
        await self.db.commit()
        logger.info("quiz.blueprint_created", user_id=str(user_id), blueprint_id=str(blueprint.id))
        return blueprint, True

    # ─── Sessions ───────────────────────────────────────

    async def start_session(
        self,
        user_id: uuid.UUID,
        *,
        blueprint_id: Optional[uuid.UUID] = None,
        count: Any = None,
        rng: Optional[random.Random] = None,
    ) -> tuple[QuizSession, list[QuizQuestion]]:
        count = engine.clamp_count(count)
        query = select(QuizBlueprint).where(QuizBlueprint.user_id == user_id)
        if blueprint_id is not None:
            query = query.where(QuizBlueprint.id == blueprint_id)
        else:
            query = query.order_by(QuizBlueprint.created_at.desc()).limit(1)
        blueprint = (await self.db.execute(query)).scalars().first()
        if blueprint is None:
            raise QuizStateError("No blueprint found")

        questions = list(
            (
                await self.db.execute(
                    select(QuizQuestion)
                    .where(
                        QuizQuestion.user_id == user_id,
                        QuizQuestion.blueprint_id == blueprint.id,
                    )
                    .order_by(QuizQuestion.created_at)
                )
            ).scalars().all()
        )
        if not questions:
            raise QuizStateError("No questions available")

        selection = engine.select_questions(questions, blueprint.categories or [], count, rng)
        session = QuizSession(
            user_id=user_id,
            question_ids=[str(q.id) for q in selection],
            started_at=utcnow(),
        )
        self.db.add(session)
        await self.db.commit()
        return session, selection

    async def _owned_session(self, user_id: uuid.UUID, session_id: uuid.UUID) -> QuizSession:
        result = await self.db.execute(
            select(QuizSession).where(
                QuizSession.id == session_id, QuizSession.user_id == user_id
            )
        )
        session = result.scalars().first()
        if session is None:
            raise QuizNotFoundError("Session not found")
        return session

    async def answer(
        self,
        user_id: uuid.UUID,
        *,
        session_id: uuid.UUID,
        question_id: uuid.UUID,
        answer: Any,
        time_spent_sec: Optional[float] = None,
    ) -> tuple[QuizResult, QuizQuestion]:
        """Record (or overwrite) the answer to one question of a session."""
        session = await self._owned_session(user_id, session_id)
        result = await self.db.execute(
            select(QuizQuestion).where(
                QuizQuestion.id == question_id, QuizQuestion.user_id == user_id
            )
        )
        question = result.scalars().first()
        if question is None:
            raise QuizNotFoundError("Question not found")

        is_correct = None
        score = None
        if question.type == "mcq":
            is_correct = engine.mcq_is_correct(answer, question.correct)
            score = 1.0 if is_correct else 0.0

        existing = await self.db.execute(
            select(QuizResult).where(
                QuizResult.session_id == session.id,
                QuizResult.question_id == question.id,
            )
        )
        record = existing.scalars().first()
        if record is None:
            record = QuizResult(session_id=session.id, question_id=question.id)
            self.db.add(record)
        record.submitted = answer
        record.is_correct = is_correct
        record.score = score
        record.time_spent_sec = time_spent_sec
        await self.db.commit()
        return record, question

    async def finish(
        self,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> QuizSession:
        session = await self._owned_session(user_id, session_id)
        rows = await self.db.execute(
            select(QuizQuestion.type, QuizQuestion.category, QuizResult.is_correct)
            .select_from(QuizResult)
            .join(QuizQuestion, QuizQuestion.id == QuizResult.question_id)
            .where(QuizResult.session_id == session.id)
        )
        score, competencies = engine.score_results([tuple(row) for row in rows.all()])

        now = now or utcnow()
        session.finished_at = now
        session.duration_seconds = int((now - as_utc(session.started_at)).total_seconds())
        session.score = score
        session.competency_scores = competencies
        await self.events.append(
            stream_id=stream_key("user", user_id),
            event_type=QUIZ_SESSION_FINISHED,
            data={"session_id": str(session.id), "score": score},
        )
        await self.db.commit()
        logger.info("quiz.session_finished", user_id=str(user_id), score=score)
        return session

    # ─── Reset ──────────────────────────────────────────

    async def reset(self, user_id: uuid.UUID, *, reset_intake: bool = False) -> None:
        """Delete the caller's quiz data (and intake when asked)."""
        session_ids = select(QuizSession.id).where(QuizSession.user_id == user_id)
        await self.db.execute(
            delete(QuizResult).where(QuizResult.session_id.in_(session_ids))
        )
        await self.db.execute(delete(QuizSession).where(QuizSession.user_id == user_id))
        await self.db.execute(delete(QuizQuestion).where(QuizQuestion.user_id == user_id))
        await self.db.execute(delete(QuizBlueprint).where(QuizBlueprint.user_id == user_id))
        if reset_intake:
            await self.db.execute(delete(UserIntake).where(UserIntake.user_id == user_id))
        await self.events.append(
            stream_id=stream_key("user", user_id),
            event_type=QUIZ_RESET,
            data={"reset_intake": reset_intake},
        )
        await self.db.commit()
