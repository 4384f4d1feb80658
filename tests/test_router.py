from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from leveltest.engine import LevelAssessmentEngine
from leveltest.local import BankTestGenerator, LocalSubmissionGrader, StaticObjectiveCatalog
from leveltest.main import app
from leveltest.routers import level_test


class DownCatalog(StaticObjectiveCatalog):
    def __init__(self) -> None:
        super().__init__()
        self.down = False

    async def list(self):
        if self.down:
            raise ConnectionError("catalog down")
        return await super().list()


@pytest.fixture
def catalog() -> DownCatalog:
    return DownCatalog()


@pytest.fixture
def client(catalog: DownCatalog) -> Iterator[TestClient]:
    def factory(student_id: str) -> LevelAssessmentEngine:
        return LevelAssessmentEngine(
            student_id, catalog, BankTestGenerator(), LocalSubmissionGrader(), minutes_per_question=2
        )

    app.dependency_overrides[level_test.get_engine_factory] = lambda: factory
    level_test.reset_sessions()
    yield TestClient(app)
    app.dependency_overrides.clear()
    level_test.reset_sessions()


def start(client: TestClient, student_id: str = "s1", **overrides):
    body = {"student_id": student_id, "objectives": ["Domain of definition", "Limits"]}
    body.update(overrides)
    return client.post("/level-test/start", json=body)


def test_full_level_test_flow(client: TestClient) -> None:
    objectives = client.get("/level-test/objectives", params={"student_id": "s1"}).json()
    assert objectives == {"objectives": ["Domain of definition", "Limits"], "total": 2, "stale": False}

    r = start(client, questions_per_objective=2, max_level=3)
    assert r.status_code == 201
    state = r.json()
    assert state["status"] == "created"
    assert state["total_questions"] == 4
    assert state["estimated_duration_minutes"] == 8
    assert "correct_answer_index" not in state["questions"][0] or state["questions"][0]["correct_answer_index"] is None

    for question, selected in zip(state["questions"], [0, 1, 0, 2]):
        r = client.post(
            "/level-test/answer",
            json={"student_id": "s1", "question_id": question["id"], "selected_answer": selected},
        )
        assert r.status_code == 200
    assert r.json()["can_submit"] is True

    r = client.post("/level-test/submit", json={"student_id": "s1"})
    assert r.status_code == 200
    result = r.json()["result"]
    assert result["correct_answers"] == 3
    assert result["score_percentage"] == 75
    assert result["recommended_level"] == 2
    assert result["level_name"] == "intermediate"
    assert sum(s["total"] for s in result["objective_scores"].values()) == 4

    r = client.post("/level-test/answer", json={"student_id": "s1", "question_id": "dd_1_1", "selected_answer": 1})
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "AttemptAlreadySubmitted"


def test_navigation_endpoints(client: TestClient) -> None:
    start(client)
    assert client.post("/level-test/next", json={"student_id": "s1"}).json()["cursor"] == 1
    assert client.post("/level-test/move", json={"student_id": "s1", "index": 3}).json()["cursor"] == 3
    r = client.post("/level-test/next", json={"student_id": "s1"})
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "IndexOutOfRange"
    assert client.post("/level-test/previous", json={"student_id": "s1"}).json()["cursor"] == 2
    assert client.get("/level-test/state", params={"student_id": "s1"}).json()["cursor"] == 2


def test_start_errors(client: TestClient) -> None:
    r = start(client, objectives=[])
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "NoObjectivesSelected"

    r = start(client, questions_per_objective=9)
    assert r.status_code == 502
    assert r.json()["detail"]["error"] == "GenerationFailed"
    assert r.json()["detail"]["recoverable"] is True


def test_incomplete_submit_lists_missing_questions(client: TestClient) -> None:
    state = start(client).json()
    r = client.post("/level-test/submit", json={"student_id": "s1"})
    assert r.status_code == 400
    assert r.json()["detail"]["missing"] == [q["id"] for q in state["questions"]]


def test_restart_discards_attempt(client: TestClient) -> None:
    state = start(client).json()
    client.post(
        "/level-test/answer",
        json={"student_id": "s1", "question_id": state["questions"][0]["id"], "selected_answer": 0},
    )
    assert client.post("/level-test/restart", json={"student_id": "s1"}).json() == {"ok": True}
    assert client.get("/level-test/state", params={"student_id": "s1"}).status_code == 404

    fresh = start(client).json()
    assert fresh["attempt_id"] != state["attempt_id"]
    assert fresh["answered_count"] == 0


def test_objectives_fall_back_to_cached_list(client: TestClient, catalog: DownCatalog) -> None:
    assert client.get("/level-test/objectives", params={"student_id": "s1"}).status_code == 200
    catalog.down = True
    r = client.get("/level-test/objectives", params={"student_id": "s1"})
    assert r.status_code == 200
    assert r.json()["stale"] is True

    assert client.get("/level-test/objectives", params={"student_id": "s2"}).json()["stale"] is True

    level_test.reset_sessions()
    r = client.get("/level-test/objectives", params={"student_id": "s2"})
    assert r.status_code == 502
    assert r.json()["detail"]["error"] == "CatalogUnavailable"


def test_listing_objectives_keeps_no_session(client: TestClient) -> None:
    for student_id in ("s1", "s2", "s3"):
        assert client.get("/level-test/objectives", params={"student_id": student_id}).status_code == 200
    assert client.get("/level-test/objectives").status_code == 200
    assert level_test._engines == {}
    assert client.get("/level-test/state", params={"student_id": "s1"}).status_code == 404


def test_restart_forgets_finished_session(client: TestClient) -> None:
    state = start(client).json()
    for question, selected in zip(state["questions"], [0, 1, 1, 2]):
        client.post(
            "/level-test/answer",
            json={"student_id": "s1", "question_id": question["id"], "selected_answer": selected},
        )
    assert client.post("/level-test/submit", json={"student_id": "s1"}).status_code == 200
    assert "s1" in level_test._engines

    client.post("/level-test/restart", json={"student_id": "s1"})
    assert "s1" not in level_test._engines


def test_students_have_independent_attempts(client: TestClient) -> None:
    start(client, "s1")
    start(client, "s2", objectives=["Limits"])
    assert client.get("/level-test/state", params={"student_id": "s1"}).json()["total_questions"] == 4
    assert client.get("/level-test/state", params={"student_id": "s2"}).json()["total_questions"] == 2


def test_info_endpoint(client: TestClient) -> None:
    r = client.get("/info")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
