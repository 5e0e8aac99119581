import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from timetable_engine.core.middleware import RequestSizeLimitMiddleware


def build_payload(**config_overrides):
    config = {
        "name": "CSE Semester 3",
        "department": "Computer Science",
        "semester": "3",
        "subjects": [
            {"id": "math", "name": "Mathematics", "classesPerWeek": 4, "faculty": "Dr. Smith"},
            {"id": "physics", "name": "Physics", "classesPerWeek": 3, "faculty": "Prof. Johnson"},
        ],
        "batches": [{"id": "cse-a", "name": "CSE A", "subjects": ["math", "physics"]}],
        "availableClassrooms": ["Room A101", "Room A102", "Lab L201"],
        "workingDays": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        "startTime": "09:00",
        "endTime": "17:00",
        "lunchTime": "13:00 - 14:00",
        "maxClassesPerDay": 8,
    }
    config.update(config_overrides)
    return {"config": config}


def test_generate_returns_camel_case_result(client):
    response = client.post("/api/timetables/generate", json=build_payload())
    assert response.status_code == 200
    payload = response.json()

    assert payload["status"] == "solved"
    assert payload["globalConflicts"] == 0
    assert payload["overallEfficiency"] == 100.0
    assert payload["strategy"] == "joint"
    timetable = payload["batches"][0]["timetables"][0]
    assert payload["batches"][0]["batchId"] == "cse-a"
    assert timetable["name"] == "CSE Semester 3 - CSE A"
    assert timetable["id"].startswith("tt-")
    lunches = [entry for entry in timetable["schedule"] if entry["type"] == "lunch"]
    assert len(lunches) == 5
    assert {entry["time"] for entry in lunches} == {"13:00 - 14:00"}


def test_generate_rejects_invalid_subject(client):
    payload = build_payload(
        subjects=[{"id": "math", "name": "Mathematics", "classesPerWeek": 0, "faculty": "Dr. Smith"}],
    )
    response = client.post("/api/timetables/generate", json=payload)
    assert response.status_code == 422


def test_generate_honours_settings_override(client):
    payload = build_payload()
    payload["settingsOverride"] = {"strategy": "sequential", "randomSeed": 3}
    response = client.post("/api/timetables/generate", json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["strategy"] == "sequential"
    assert body["batches"][0]["timetables"][0]["efficiency"] == 95.0


def test_generate_rejects_inconsistent_settings(client):
    payload = build_payload()
    payload["settingsOverride"] = {"strategy": "joint", "maxWorkers": 4}
    response = client.post("/api/timetables/generate", json=payload)
    assert response.status_code == 422


def test_detect_reports_double_booked_faculty(client):
    entries = [
        {
            "day": "Monday",
            "time": "09:00 - 10:00",
            "subject": "Mathematics",
            "faculty": "Dr. Smith",
            "room": "Room A101",
            "type": "theory",
            "batchId": "cse-a",
            "subjectId": "math",
        },
        {
            "day": "Monday",
            "time": "09:00 - 10:00",
            "subject": "Data Structures",
            "faculty": "Dr. Smith",
            "room": "Room A102",
            "type": "theory",
            "batchId": "cse-b",
            "subjectId": "dsa",
        },
    ]
    response = client.post("/api/conflicts/detect", json={"entries": entries})
    assert response.status_code == 200
    report = response.json()
    kinds = [conflict["conflict_type"] for conflict in report["conflicts"]]
    assert kinds == ["faculty_conflict"]
    actions = {item["action_type"] for item in report["suggested_resolutions"]}
    assert actions == {"change_faculty", "move_slot"}


def test_detect_ignores_shared_rooms_when_policy_allows(client):
    entries = [
        {"day": "Tuesday", "time": "10:00 - 11:00", "subject": "Algebra", "faculty": "A",
         "room": "Hall", "type": "theory", "batchId": "a", "subjectId": "x"},
        {"day": "Tuesday", "time": "10:00 - 11:00", "subject": "Biology", "faculty": "B",
         "room": "Hall", "type": "theory", "batchId": "b", "subjectId": "y"},
    ]
    exclusive = client.post("/api/conflicts/detect", json={"entries": entries})
    shared = client.post("/api/conflicts/detect", json={"entries": entries, "roomPolicy": "shared"})
    assert [item["conflict_type"] for item in exclusive.json()["conflicts"]] == ["room_conflict"]
    assert shared.json()["conflicts"] == []


def test_request_size_limit_rejects_large_bodies():
    app = FastAPI()
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=10)

    @app.post("/echo")
    def echo(payload: dict):
        return payload

    with TestClient(app) as test_client:
        small = test_client.post("/echo", json={})
        large = test_client.post("/echo", json={"config": "x" * 64})

    assert small.status_code == 200
    assert large.status_code == 413
    assert large.json()["details"]["max_bytes"] == 10


def test_detect_flags_entries_sharing_a_slot_without_batch(client):
    entry = {
        "day": "Monday",
        "time": "09:00 - 10:00",
        "subject": "Mathematics",
        "faculty": "Dr. Smith",
        "room": "R1",
        "type": "theory",
    }
    response = client.post("/api/conflicts/detect", json={"entries": [entry, dict(entry)]})
    assert response.status_code == 200
    kinds = [conflict["conflict_type"] for conflict in response.json()["conflicts"]]
    assert kinds == ["slot_double_booking"]


@pytest.mark.parametrize("window", ["10:00 - 09:00", "25:00 - 26:00", "9:00-9:00"])
def test_detect_rejects_malformed_windows(client, window):
    entry = {
        "day": "Monday",
        "time": window,
        "subject": "Mathematics",
        "faculty": "Dr. Smith",
        "room": "R1",
        "type": "theory",
        "variant": "continuation",
    }
    response = client.post("/api/conflicts/detect", json={"entries": [entry]})
    assert response.status_code == 422


def test_detect_normalises_short_hours(client):
    entries = [
        {"day": "Monday", "time": "9:00 - 10:00", "subject": "Algebra", "faculty": "A",
         "room": "Hall", "type": "theory", "batchId": "a"},
        {"day": "Monday", "time": "09:00 - 10:00", "subject": "Biology", "faculty": "A",
         "room": "Lab", "type": "theory", "batchId": "b"},
    ]
    response = client.post("/api/conflicts/detect", json={"entries": entries})
    assert [item["conflict_type"] for item in response.json()["conflicts"]] == ["faculty_conflict"]


def test_faculty_view_groups_generated_result(client):
    generated = client.post("/api/timetables/generate", json=build_payload()).json()
    response = client.post(
        "/api/timetables/faculty-view",
        json={"result": generated, "department": "Computer Science", "facultyRoster": ["Prof. Visiting"]},
    )
    assert response.status_code == 200
    payload = response.json()

    names = [item["faculty"] for item in payload["facultyTimetables"]]
    assert names[0] == "Prof. Visiting"
    assert {"Dr. Smith", "Prof. Johnson"} <= set(names)
    visiting = payload["facultyTimetables"][0]
    assert visiting["totalClasses"] == 0
    assert visiting["workload"]["weeklyTotal"] == 0
    assert payload["summary"]["totalFaculties"] == len(names)
    assert payload["summary"]["conflictsFound"] == 0
    lessons = sum(1 for entry in generated["batches"][0]["timetables"][0]["schedule"] if entry["type"] != "lunch")
    assert payload["summary"]["totalClasses"] == lessons
