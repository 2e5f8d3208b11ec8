"""Pydantic schemas for intake, profile, blueprints and quiz sessions."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ProfileRead(BaseModel):
    id: uuid.UUID
    source_hash: str
    facts: dict[str, Any]
    risk_flags: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileEnvelope(BaseModel):
    success: bool = True
    profile: Optional[ProfileRead] = None


# ─── Intake ─────────────────────────────────────────────

class IntakeSave(BaseModel):
    responses: dict[str, Any] = Field(default_factory=dict)
    complete: bool = False


class IntakeRead(BaseModel):
    id: uuid.UUID
    responses: dict[str, Any]
    completed_at: Optional[datetime] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class IntakeEnvelope(BaseModel):
    success: bool = True
    intake: Optional[IntakeRead] = None


# ─── Blueprint ──────────────────────────────────────────

class BlueprintRequest(BaseModel):
    force: bool = False


class BlueprintCreated(BaseModel):
    success: bool = True
    blueprint_id: uuid.UUID
    created: bool


# ─── Sessions ───────────────────────────────────────────

class SessionStart(BaseModel):
    blueprint_id: Optional[uuid.UUID] = None
    count: Optional[int] = None


class QuestionRead(BaseModel):
    """A question as shown to the learner: no answer key, no rationales."""

    id: uuid.UUID
    type: str
    category: str
    difficulty: int
    prompt: str
    choices: Optional[list[dict[str, str]]] = None

    model_config = {"from_attributes": True}


class SessionStarted(BaseModel):
    success: bool = True
    session_id: uuid.UUID
    questions: list[QuestionRead]


class AnswerSubmit(BaseModel):
    session_id: Optional[uuid.UUID] = None
    question_id: Optional[uuid.UUID] = None
    answer: Any = None
    time_spent_sec: Optional[float] = None


class AnswerFeedback(BaseModel):
    rationales: dict[str, Any]
    correct: Any


class AnswerRecorded(BaseModel):
    success: bool = True
    result_id: uuid.UUID
    is_correct: Optional[bool] = None
    score: Optional[float] = None
    feedback: Optional[AnswerFeedback] = None


class SessionFinish(BaseModel):
    session_id: Optional[uuid.UUID] = None


class SessionFinished(BaseModel):
    success: bool = True
    score: int
    competency_scores: dict[str, int]
    duration_seconds: int


class QuizReset(BaseModel):
    reset_intake: bool = False
