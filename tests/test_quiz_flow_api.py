"""Quiz flow — intake, blueprint memoization, sessions, scoring, reset.

Learn: Every built-in multiple-choice question has "B" as its answer
key, which makes the scoring assertions deterministic.
"""

import uuid

import pytest
from sqlalchemy import select

from conftest import auth_headers
from coursegate.db.models import QuizBlueprint, QuizQuestion, QuizResult, QuizSession, UserIntake


async def _complete_intake(client, user, responses=None):
    r = await client.post(
        "/api/quiz/intake",
        json={"responses": responses or {"drinks_per_week": 2}, "complete": True},
        headers=auth_headers(user),
    )
    assert r.status_code == 200
    return r.json()["intake"]


async def _start(client, user, count=20):
    await _complete_intake(client, user)
    r = await client.post("/api/quiz/blueprint", headers=auth_headers(user))
    assert r.status_code == 200
    r = await client.post("/api/quiz/session/start", json={"count": count}, headers=auth_headers(user))
    assert r.status_code == 200
    return r.json()


# ═══════════════════════════════════════════════════════════
# Intake
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_intake_merge_keeps_unchanged_timestamps(client, learner):
    first = await _complete_intake(client, learner, {"a": 1, "nested": {"b": "x"}})
    ts = first["responses"]["a"]["ts"]
    assert first["responses"]["a"]["value"] == 1
    assert first["responses"]["nested"]["b"]["value"] == "x"
    assert first["completed_at"] is not None

    r = await client.post(
        "/api/quiz/intake",
        json={"responses": {"a": 1, "c": None}},
        headers=auth_headers(learner),
    )
    responses = r.json()["intake"]["responses"]
    assert responses["a"]["ts"] == ts
    assert responses["c"]["value"] is None
    assert responses["nested"]["b"]["value"] == "x"


@pytest.mark.asyncio
async def test_intake_get_empty(client, learner):
    r = await client.get("/api/quiz/intake", headers=auth_headers(learner))
    assert r.json() == {"success": True, "intake": None}


@pytest.mark.asyncio
async def test_intake_requires_active_account(client, make_user):
    pending = await make_user("pending@example.com", is_active=False)
    r = await client.post(
        "/api/quiz/intake",
        json={"responses": {"a": 1}},
        headers=auth_headers(pending),
    )
    assert r.status_code == 403


# ═══════════════════════════════════════════════════════════
# Blueprint
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_blueprint_needs_completed_intake(client, learner):
    await client.post(
        "/api/quiz/intake",
        json={"responses": {"a": 1}},
        headers=auth_headers(learner),
    )
    r = await client.post("/api/quiz/blueprint", headers=auth_headers(learner))
    assert r.status_code == 400
    assert r.json() == {"error": "Baseline intake not completed"}


@pytest.mark.asyncio
async def test_blueprint_is_memoized(client, db_session, learner):
    await _complete_intake(client, learner)

    first = (await client.post("/api/quiz/blueprint", headers=auth_headers(learner))).json()
    second = (await client.post("/api/quiz/blueprint", headers=auth_headers(learner))).json()
    assert first["created"] is True
    assert second["created"] is False
    assert first["blueprint_id"] == second["blueprint_id"]

    forced = (
        await client.post("/api/quiz/blueprint", json={"force": True}, headers=auth_headers(learner))
    ).json()
    assert forced["created"] is True
    assert forced["blueprint_id"] != first["blueprint_id"]

    blueprints = (await db_session.execute(select(QuizBlueprint))).scalars().all()
    assert len(blueprints) == 1


@pytest.mark.asyncio
async def test_blueprint_changes_with_intake(client, learner):
    await _complete_intake(client, learner, {"a": 1})
    first = (await client.post("/api/quiz/blueprint", headers=auth_headers(learner))).json()
    await _complete_intake(client, learner, {"a": 2})
    second = (await client.post("/api/quiz/blueprint", headers=auth_headers(learner))).json()
    assert second["created"] is True
    assert second["blueprint_id"] != first["blueprint_id"]


@pytest.mark.asyncio
async def test_force_after_answering(client, db_session, learner):
    started = await _start(client, learner, count=3)
    question = started["questions"][0]
    r = await client.post(
        "/api/quiz/session/answer",
        json={"session_id": started["session_id"], "question_id": question["id"], "answer": "A"},
        headers=auth_headers(learner),
    )
    assert r.status_code == 200

    r = await client.post("/api/quiz/blueprint", json={"force": True}, headers=auth_headers(learner))
    assert r.status_code == 200
    assert r.json()["created"] is True

    assert (await db_session.execute(select(QuizResult))).scalars().all() == []
    old = await db_session.get(QuizQuestion, uuid.UUID(question["id"]))
    assert old is None


# ═══════════════════════════════════════════════════════════
# Sessions
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_start_without_blueprint(client, learner):
    r = await client.post("/api/quiz/session/start", headers=auth_headers(learner))
    assert r.status_code == 400
    assert r.json() == {"error": "No blueprint found"}


@pytest.mark.asyncio
async def test_start_hides_answer_keys(client, learner):
    started = await _start(client, learner, count=5)
    assert len(started["questions"]) == 5
    for question in started["questions"]:
        assert "correct" not in question
        assert "rationales" not in question
        assert "rubric" not in question


@pytest.mark.asyncio
async def test_full_session_scoring(client, db_session, learner):
    started = await _start(client, learner, count=20)
    questions = started["questions"]
    assert len(questions) == 13  # the whole bank

    mcqs = [q for q in questions if q["type"] == "mcq"]
    assert len(mcqs) == 5
    for i, question in enumerate(mcqs):
        answer = "A" if i == 0 else "B"
        r = await client.post(
            "/api/quiz/session/answer",
            json={"session_id": started["session_id"], "question_id": question["id"], "answer": answer},
            headers=auth_headers(learner),
        )
        assert r.status_code == 200
        body = r.json()
        assert body["is_correct"] is (answer == "B")
        assert body["feedback"]["correct"] == "B"

    free = next(q for q in questions if q["type"] != "mcq")
    r = await client.post(
        "/api/quiz/session/answer",
        json={"session_id": started["session_id"], "question_id": free["id"], "answer": "My plan"},
        headers=auth_headers(learner),
    )
    assert r.json()["is_correct"] is None
    assert r.json()["feedback"] is None

    r = await client.post(
        "/api/quiz/session/finish",
        json={"session_id": started["session_id"]},
        headers=auth_headers(learner),
    )
    assert r.status_code == 200
    data = r.json()
    assert data["score"] == 80
    assert data["competency_scores"] == {"knowledge": 80}
    assert data["duration_seconds"] >= 0

    session = await db_session.get(QuizSession, uuid.UUID(started["session_id"]))
    assert session.finished_at is not None


@pytest.mark.asyncio
async def test_answer_overwrites_previous(client, learner):
    started = await _start(client, learner, count=20)
    mcq = next(q for q in started["questions"] if q["type"] == "mcq")
    payload = {"session_id": started["session_id"], "question_id": mcq["id"]}

    first = await client.post("/api/quiz/session/answer", json={**payload, "answer": "A"}, headers=auth_headers(learner))
    second = await client.post("/api/quiz/session/answer", json={**payload, "answer": "B"}, headers=auth_headers(learner))
    assert first.json()["result_id"] == second.json()["result_id"]

    r = await client.post(
        "/api/quiz/session/finish",
        json={"session_id": started["session_id"]},
        headers=auth_headers(learner),
    )
    assert r.json()["score"] == 100


@pytest.mark.asyncio
async def test_sessions_are_private(client, learner, make_user):
    started = await _start(client, learner, count=3)
    intruder = await make_user("intruder@example.com")

    r = await client.post(
        "/api/quiz/session/answer",
        json={
            "session_id": started["session_id"],
            "question_id": started["questions"][0]["id"],
            "answer": "B",
        },
        headers=auth_headers(intruder),
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Session not found"}

    r = await client.post(
        "/api/quiz/session/finish",
        json={"session_id": started["session_id"]},
        headers=auth_headers(intruder),
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_answer_invalid_payload(client, learner):
    r = await client.post("/api/quiz/session/answer", json={"answer": "B"}, headers=auth_headers(learner))
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid payload"}


# ═══════════════════════════════════════════════════════════
# Reset
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_reset_clears_quiz_data(client, db_session, learner):
    await _start(client, learner, count=3)

    r = await client.post("/api/quiz/reset", headers=auth_headers(learner))
    assert r.status_code == 200
    assert (await db_session.execute(select(QuizSession))).scalars().all() == []
    assert (await db_session.execute(select(QuizQuestion))).scalars().all() == []
    assert (await db_session.execute(select(UserIntake))).scalars().all() != []

    r = await client.post("/api/quiz/reset", json={"reset_intake": True}, headers=auth_headers(learner))
    assert (await db_session.execute(select(UserIntake))).scalars().all() == []
