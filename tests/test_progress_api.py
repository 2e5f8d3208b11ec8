"""Learner course tree and video progress."""

import uuid

import pytest

from conftest import auth_headers


async def _save(client, user, video, watched, total=100.0, current=None):
    return await client.post(
        "/api/video-progress",
        json={
            "video_id": str(video.id),
            "current_time": watched if current is None else current,
            "watched_duration": watched,
            "total_duration": total,
        },
        headers=auth_headers(user),
    )


# ═══════════════════════════════════════════════════════════
# Gate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_course_requires_session(client):
    r = await client.get("/api/course")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_course_requires_active_account(client, make_user, course_with_video):
    pending = await make_user("pending@example.com", is_active=False)
    r = await client.get("/api/course", headers=auth_headers(pending))
    assert r.status_code == 403
    assert r.json() == {"error": "Account is not active"}


@pytest.mark.asyncio
async def test_progress_write_requires_active_account(client, make_user, course_with_video):
    _, _, video = course_with_video
    pending = await make_user("pending@example.com", is_active=False)
    r = await _save(client, pending, video, 50)
    assert r.status_code == 403


# ═══════════════════════════════════════════════════════════
# Course tree
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_no_course_available(client, learner):
    r = await client.get("/api/course", headers=auth_headers(learner))
    assert r.status_code == 200
    assert r.json() == {"course": None, "chapters": [], "message": "No course available"}


@pytest.mark.asyncio
async def test_course_tree_includes_own_progress_only(client, learner, make_user, course_with_video):
    course, chapter, video = course_with_video
    other = await make_user("other@example.com")
    assert (await _save(client, other, video, 80)).status_code == 200

    r = await client.get("/api/course", headers=auth_headers(learner))
    data = r.json()
    assert data["course"]["id"] == str(course.id)
    assert data["chapters"][0]["id"] == str(chapter.id)
    tree_video = data["chapters"][0]["videos"][0]
    assert tree_video["playback_id"] == "play-1"
    assert tree_video["progress"] is None

    await _save(client, learner, video, 30)
    r = await client.get("/api/course", headers=auth_headers(learner))
    progress = r.json()["chapters"][0]["videos"][0]["progress"]
    assert progress["watched_duration"] == 30
    assert progress["completion_percentage"] == 30


# ═══════════════════════════════════════════════════════════
# Progress
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_progress_takes_chapter_and_course_from_video(client, learner, course_with_video):
    course, chapter, video = course_with_video
    r = await _save(client, learner, video, 10)
    assert r.status_code == 200
    progress = r.json()["progress"]
    assert progress["chapter_id"] == str(chapter.id)
    assert progress["course_id"] == str(course.id)
    assert progress["is_completed"] is False


@pytest.mark.asyncio
async def test_progress_completes_at_ninety_percent(client, learner, course_with_video):
    _, _, video = course_with_video
    r = await _save(client, learner, video, 89)
    assert r.json()["progress"]["is_completed"] is False

    r = await _save(client, learner, video, 90)
    progress = r.json()["progress"]
    assert progress["is_completed"] is True
    assert progress["completed_at"] is not None
    assert progress["completion_percentage"] == 90


@pytest.mark.asyncio
async def test_completion_is_sticky(client, learner, course_with_video):
    _, _, video = course_with_video
    await _save(client, learner, video, 95)
    r = await _save(client, learner, video, 5)
    progress = r.json()["progress"]
    assert progress["is_completed"] is True
    assert progress["watched_duration"] == 5


@pytest.mark.asyncio
async def test_progress_upserts_one_record(client, learner, course_with_video):
    _, _, video = course_with_video
    first = (await _save(client, learner, video, 10)).json()["progress"]
    second = (await _save(client, learner, video, 20)).json()["progress"]
    assert first["id"] == second["id"]

    r = await client.get("/api/video-progress", headers=auth_headers(learner))
    assert len(r.json()["progress"]) == 1


@pytest.mark.asyncio
async def test_progress_list_filters(client, learner, course_with_video):
    course, _, video = course_with_video
    await _save(client, learner, video, 10)

    r = await client.get(f"/api/video-progress?course_id={course.id}", headers=auth_headers(learner))
    assert len(r.json()["progress"]) == 1
    r = await client.get(f"/api/video-progress?video_id={uuid.uuid4()}", headers=auth_headers(learner))
    assert r.json()["progress"] == []


@pytest.mark.asyncio
async def test_progress_unknown_video(client, learner):
    r = await client.post(
        "/api/video-progress",
        json={
            "video_id": str(uuid.uuid4()),
            "current_time": 1,
            "watched_duration": 1,
            "total_duration": 10,
        },
        headers=auth_headers(learner),
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Video not found"}


@pytest.mark.asyncio
async def test_progress_missing_fields(client, learner, course_with_video):
    _, _, video = course_with_video
    r = await client.post(
        "/api/video-progress",
        json={"video_id": str(video.id), "current_time": 1},
        headers=auth_headers(learner),
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Missing required fields"}
