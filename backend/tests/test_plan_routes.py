"""HTTP tests for study-plan generation and recalculation."""

from __future__ import annotations

from datetime import date
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from studyplan.main import app
from studyplan.telemetry import (
    STUDY_PLAN_GENERATED,
    STUDY_PLAN_RECALCULATED,
    TelemetryEvent,
    clear_listeners,
    register_listener,
)


@pytest.fixture
def events() -> Iterator[List[TelemetryEvent]]:
    captured: List[TelemetryEvent] = []
    clear_listeners()
    register_listener(captured.append)
    yield captured
    clear_listeners()


def _request(**overrides) -> dict:
    payload = {
        "today": "2026-01-05",
        "exam_date": "2026-01-16",
        "daily_time_minutes": 30,
        "lessons": [
            {"course_id": "A", "course_title": "Algebra", "lesson_index": 0, "lesson_title": "Groups"},
            {"course_id": "A", "course_title": "Algebra", "lesson_index": 1, "lesson_title": "Rings"},
            {"course_id": "B", "lesson_index": 0},
        ],
        "review_placement": "even",
    }
    payload.update(overrides)
    return payload


def test_generate_returns_sequenced_plan(events: List[TelemetryEvent]) -> None:
    client = TestClient(app)

    response = client.post("/api/study-plan/generate", json=_request())

    assert response.status_code == 200
    body = response.json()
    assert len(body["study_days"]) == 10
    assert body["phases"] == {"total_days": 10, "acquisition_end": 4, "consolidation_end": 8, "intensive_end": 9}
    assert body["summary"]["task_count"] == len(body["tasks"])
    learn = [task for task in body["tasks"] if task["task_type"] == "learn_lesson"]
    assert [task["lesson_title"] for task in learn] == ["Groups", "Lesson 1", "Rings"]
    assert learn[1]["description"] == "Learn: Lesson 1 (B)"

    [event] = [event for event in events if event.name == STUDY_PLAN_GENERATED]
    assert event.payload["status"] == "success"
    assert event.payload["task_count"] == len(body["tasks"])
    assert event.payload["exam_date"] == "2026-01-16"


def test_generate_skips_recurring_weekdays() -> None:
    client = TestClient(app)

    response = client.post("/api/study-plan/generate", json=_request(skip_weekdays=[5, 6]))

    assert response.status_code == 200
    body = response.json()
    assert len(body["study_days"]) == 8
    task_days = {date.fromisoformat(task["scheduled_date"]) for task in body["tasks"]}
    assert all(day.weekday() < 5 for day in task_days)


def test_generate_without_study_days_is_empty(events: List[TelemetryEvent]) -> None:
    client = TestClient(app)

    response = client.post("/api/study-plan/generate", json=_request(exam_date="2026-01-06"))

    assert response.status_code == 200
    body = response.json()
    assert body["tasks"] == []
    assert body["summary"]["task_count"] == 0
    assert events[-1].payload["status"] == "empty"


@pytest.mark.parametrize(
    "overrides",
    [
        {"daily_time_minutes": 0},
        {"skip_weekdays": [7]},
        {"review_placement": "clustered"},
        {"mastery_data": [{"course_id": "A", "lesson_index": 0, "mastery": 1.5}]},
    ],
)
def test_generate_rejects_invalid_payloads(overrides: dict) -> None:
    client = TestClient(app)

    response = client.post("/api/study-plan/generate", json=_request(**overrides))

    assert response.status_code == 422


def test_recalculate_credits_completed_lessons(events: List[TelemetryEvent]) -> None:
    client = TestClient(app)
    completed = {
        "scheduled_date": "2026-01-05",
        "task_type": "learn_lesson",
        "course_id": "A",
        "lesson_index": 0,
        "lesson_title": "Groups",
        "description": "Learn: Groups (Algebra)",
        "estimated_minutes": 15,
        "status": "completed",
    }

    response = client.post(
        "/api/study-plan/recalculate",
        json={"completed_tasks": [completed], "plan": _request()},
    )

    assert response.status_code == 200
    tasks = response.json()["tasks"]
    relearned = [task for task in tasks if task["task_type"] == "learn_lesson" and task["course_id"] == "A" and task["lesson_index"] == 0]
    assert relearned == []
    assert any(task["task_type"] == "review_weak" and task["lesson_index"] == 0 for task in tasks)

    [event] = [event for event in events if event.name == STUDY_PLAN_RECALCULATED]
    assert event.payload["completed_task_count"] == 1
    assert event.payload["status"] == "success"


def test_skip_weekdays_use_monday_zero_numbering() -> None:
    client = TestClient(app)

    response = client.post("/api/study-plan/generate", json=_request(skip_weekdays=[6]))

    assert response.status_code == 200
    study_days = [date.fromisoformat(day) for day in response.json()["study_days"]]
    assert len(study_days) == 9
    assert all(day.weekday() != 6 for day in study_days)
    assert date(2026, 1, 10) in study_days
