"""Quiz API — case profile, intake, blueprint and sessions.

Learn: Every route is scoped to the caller. The profile lookup only
needs a signed-in caller with a stored record; everything that writes
quiz data also requires an approved account.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.access import AccessContext, authenticated
from coursegate.auth.dependencies import active_user, gate
from coursegate.db.engine import get_db
from coursegate.errors import InvalidInput, NotFound, handler_boundary
from coursegate.schemas.quiz import (
    AnswerFeedback,
    AnswerRecorded,
    AnswerSubmit,
    BlueprintCreated,
    BlueprintRequest,
    IntakeEnvelope,
    IntakeRead,
    IntakeSave,
    ProfileEnvelope,
    ProfileRead,
    QuestionRead,
    QuizReset,
    SessionFinish,
    SessionFinished,
    SessionStart,
    SessionStarted,
)
from coursegate.schemas.user import SuccessResponse
from coursegate.services.quiz_service import QuizNotFoundError, QuizService, QuizStateError

router = APIRouter(prefix="/quiz")

profile_reader = gate(authenticated(), load_user=True, missing_user_message="Not found")


# ─── Profile ─────────────────────────────────────────────


@router.get("/profile", response_model=ProfileEnvelope)
@handler_boundary()
async def get_profile(
    ctx: AccessContext = Depends(profile_reader),
    db: AsyncSession = Depends(get_db),
):
    """The caller's most recent case profile; null when there is none."""
    profile = await QuizService(db).latest_profile(ctx.user.id)
    return ProfileEnvelope(profile=ProfileRead.model_validate(profile) if profile else None)


@router.post("/profile/sync", response_model=ProfileEnvelope)
@handler_boundary()
async def sync_profile(
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    """Derive a case profile from the newest processed document."""
    profile = await QuizService(db).sync_profile(ctx.user.id)
    return ProfileEnvelope(profile=ProfileRead.model_validate(profile))


# ─── Intake ──────────────────────────────────────────────


@router.get("/intake", response_model=IntakeEnvelope)
@handler_boundary()
async def get_intake(
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    intake = await QuizService(db).get_intake(ctx.user.id)
    return IntakeEnvelope(intake=IntakeRead.model_validate(intake) if intake else None)


@router.post("/intake", response_model=IntakeEnvelope)
@handler_boundary()
async def save_intake(
    body: IntakeSave,
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    """Merge answers into the caller's intake; `complete` marks it finished."""
    intake = await QuizService(db).save_intake(
        ctx.user.id, body.responses, complete=body.complete
    )
    return IntakeEnvelope(intake=IntakeRead.model_validate(intake))


# ─── Blueprint ───────────────────────────────────────────


@router.post("/blueprint", response_model=BlueprintCreated)
@handler_boundary()
async def create_blueprint(
    body: Optional[BlueprintRequest] = None,
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    body = body or BlueprintRequest()
    try:
        blueprint, created = await QuizService(db).create_blueprint(
            ctx.user.id, force=body.force
        )
    except QuizStateError as e:
        raise InvalidInput(str(e))
    return BlueprintCreated(blueprint_id=blueprint.id, created=created)


# ─── Sessions ────────────────────────────────────────────


@router.post("/session/start", response_model=SessionStarted)
@handler_boundary()
async def start_session(
    body: Optional[SessionStart] = None,
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    """Draw a balanced set of questions; answers are never included."""
    body = body or SessionStart()
    try:
        session, questions = await QuizService(db).start_session(
            ctx.user.id, blueprint_id=body.blueprint_id, count=body.count
        )
    except QuizStateError as e:
        raise InvalidInput(str(e))
    return SessionStarted(
        session_id=session.id,
        questions=[QuestionRead.model_validate(q) for q in questions],
    )


@router.post("/session/answer", response_model=AnswerRecorded)
@handler_boundary()
async def answer_question(
    body: AnswerSubmit,
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    if body.session_id is None or body.question_id is None:
        raise InvalidInput("Invalid payload")
    try:
        result, question = await QuizService(db).answer(
            ctx.user.id,
            session_id=body.session_id,
            question_id=body.question_id,
            answer=body.answer,
            time_spent_sec=body.time_spent_sec,
        )
    except QuizNotFoundError as e:
        raise NotFound(str(e))

    feedback = None
    if question.type == "mcq" and question.rationales:
        feedback = AnswerFeedback(rationales=question.rationales, correct=question.correct)
    return AnswerRecorded(
        result_id=result.id,
        is_correct=result.is_correct,
        score=result.score,
        feedback=feedback,
    )


@router.post("/session/finish", response_model=SessionFinished)
@handler_boundary()
async def finish_session(
    body: SessionFinish,
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    if body.session_id is None:
        raise InvalidInput("Invalid payload")
    try:
        session = await QuizService(db).finish(ctx.user.id, body.session_id)
    except QuizNotFoundError as e:
        raise NotFound(str(e))
    return SessionFinished(
        score=session.score,
        competency_scores=session.competency_scores or {},
        duration_seconds=session.duration_seconds,
    )


# ─── Reset ───────────────────────────────────────────────


@router.post("/reset", response_model=SuccessResponse)
@handler_boundary()
async def reset_quiz(
    body: Optional[QuizReset] = None,
    ctx: AccessContext = Depends(active_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete the caller's blueprints, questions, sessions and results."""
    body = body or QuizReset()
    await QuizService(db).reset(ctx.user.id, reset_intake=body.reset_intake)
    return SuccessResponse()
