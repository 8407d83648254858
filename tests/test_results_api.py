from conftest import GRID


def bulk_payload(rows, **extra):
    return {**GRID, "rows": rows, **extra}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Latency-Ms" in response.headers


def test_bulk_save_then_read_back(client):
    response = client.post(
        "/v1/results/bulk",
        json=bulk_payload([
            {"student_id": "STU001", "entered_scores": {"ca": "8", "test": "15", "exam": "60"}},
            {"student_id": "STU010", "entered_scores": {"ca": 7}},
        ]),
    )
    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["saved_count"] == 2
    assert body["message"] == "2 records saved"

    listed = client.get("/v1/results/", params=GRID).json()["data"]
    by_student = {r["student_id"]: r for r in listed}
    assert by_student["STU001"]["total_score"] == 83
    assert by_student["STU001"]["grade"] == "A"
    assert by_student["STU010"]["grade"] == "F"


def test_bulk_save_reports_row_errors(client):
    response = client.post(
        "/v1/results/bulk",
        json=bulk_payload([
            {"student_id": "STU001", "entered_scores": {"exam": "75"}},
            {"student_id": "STU002", "entered_scores": {"exam": "65"}},
        ]),
    )
    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert body["data"]["saved_count"] == 1
    assert body["data"]["errors"][0]["student_id"] == "STU001"
    assert body["message"] == "1 record saved (1 failed)"


def test_bulk_delete_and_idempotent_resubmit(client):
    rows = [{"student_id": "STU001", "entered_scores": {"ca": "5"}}]
    client.post("/v1/results/bulk", json=bulk_payload(rows))

    again = client.post("/v1/results/bulk", json=bulk_payload(rows)).json()
    assert again["data"]["saved_count"] == 0
    assert again["message"] == "No changes applied"

    removed = client.post(
        "/v1/results/bulk",
        json=bulk_payload([{"student_id": "STU001", "entered_scores": {}, "marked_for_deletion": True}]),
    ).json()
    assert removed["data"]["removed_count"] == 1
    assert client.get("/v1/results/", params=GRID).json()["data"] == []


def test_bulk_save_rejects_over_long_keys_at_the_boundary(client):
    response = client.post(
        "/v1/results/bulk",
        json=bulk_payload([{"student_id": "S" * 25, "entered_scores": {"ca": "5"}}]),
    )
    assert response.status_code == 422

    response = client.post("/v1/results/bulk", json={**bulk_payload([]), "class_id": "C" * 41})
    assert response.status_code == 422


def test_delete_rejects_over_long_student_id(client):
    response = client.delete("/v1/results/", params={**GRID, "student_id": "S" * 25})
    assert response.status_code == 422


def test_student_results_and_period_summary(client):
    client.post(
        "/v1/results/bulk",
        json=bulk_payload([
            {"student_id": "STU001", "entered_scores": {"exam": "60"}},
            {"student_id": "STU002", "entered_scores": {"exam": "30"}},
        ]),
    )
    client.post(
        "/v1/results/bulk",
        json=bulk_payload([{"student_id": "STU001", "entered_scores": {"exam": "50"}}], subject_code="ENG101"),
    )

    student = client.get(
        "/v1/results/student",
        params={"student_id": "STU001", "class_id": GRID["class_id"], "session": GRID["session"], "term": GRID["term"]},
    ).json()["data"]
    assert student["subject_count"] == 2
    assert student["total_score"] == 110
    assert student["average"] == 55.0
    assert [r["subject_code"] for r in student["results"]] == ["ENG101", "MTH101"]

    period = client.get(
        "/v1/results/period-summary", params={"session": GRID["session"], "term": GRID["term"]}
    ).json()["data"]
    assert period["total_students"] == 2
    assert period["results_submitted"] == 3
    assert period["average_score"] == 42.5
    assert [(s["subject_code"], s["entries"], s["average"]) for s in period["subjects"]] == [
        ("ENG101", 1, 50.0),
        ("MTH101", 2, 45.0),
    ]


def test_upsert_recomputes_derived_fields(client):
    response = client.put(
        "/v1/results/",
        json={**GRID, "student_id": "STU003", "component_scores": {"ca": 10, "test": 20, "exam": 65}, "grade": "F"},
    )
    body = response.json()
    assert body["success"] is True
    assert body["data"]["total_score"] == 95
    assert body["data"]["grade"] == "A+"
    assert body["data"]["remark"] == "Outstanding performance"


def test_upsert_out_of_range_is_422(client):
    response = client.put("/v1/results/", json={**GRID, "student_id": "STU003", "component_scores": {"exam": 75}})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_SCORE"


def test_delete_missing_result(client):
    response = client.delete("/v1/results/", params={**GRID, "student_id": "STU404"})
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == 404


def test_preview_for_live_display(client):
    body = client.post(
        "/v1/results/preview",
        json={"session": GRID["session"], "term": GRID["term"], "entered_scores": {"ca": "8", "test": "15", "exam": "60"}},
    ).json()
    assert body["data"]["total_score"] == 83
    assert body["data"]["grade"] == "A"
    assert body["data"]["has_values"] is True

    empty = client.post("/v1/results/preview", json={"entered_scores": {"ca": ""}}).json()
    assert empty["data"]["grade"] is None
    assert empty["data"]["has_values"] is False


def test_summary_ranks_class_and_refreshes_after_save(client):
    client.post(
        "/v1/results/bulk",
        json=bulk_payload([
            {"student_id": "STU001", "entered_scores": {"exam": "60"}},
            {"student_id": "STU002", "entered_scores": {"exam": "60"}},
            {"student_id": "STU003", "entered_scores": {"exam": "30"}},
        ]),
    )
    data = client.get("/v1/results/summary", params=GRID).json()["data"]
    assert [r["position"] for r in data["rankings"]] == [1, 1, 3]
    assert data["summary"]["total_students"] == 3

    client.post("/v1/results/bulk", json=bulk_payload([{"student_id": "STU004", "entered_scores": {"exam": "70"}}]))
    data = client.get("/v1/results/summary", params=GRID).json()["data"]
    assert data["summary"]["total_students"] == 4
    assert data["rankings"][0]["student_id"] == "STU004"


def test_scoring_config_roundtrip_and_validation(client):
    default = client.get("/v1/scoring-config/", params={"session": "2025/2026", "term": "1st Term"}).json()["data"]
    assert default["total_max"] == 100

    saved = client.put(
        "/v1/scoring-config/",
        json={
            "session": "2025/2026",
            "term": "1st Term",
            "component_weights": {"ca": 40, "exam": 60},
            "boundaries": [{"letter": "P", "min_score": 50}, {"letter": "F", "min_score": 0}],
        },
    )
    assert saved.json()["success"] is True

    preview = client.post(
        "/v1/results/preview",
        json={"session": "2025/2026", "term": "1st Term", "entered_scores": {"ca": "30", "exam": "25"}},
    ).json()["data"]
    assert preview["grade"] == "P"

    rejected = client.put(
        "/v1/scoring-config/",
        json={
            "session": "2025/2026",
            "term": "1st Term",
            "component_weights": {"ca": 40, "exam": 60},
            "boundaries": [{"letter": "P", "min_score": 50}],
        },
    )
    assert rejected.status_code == 422
    assert rejected.json()["error"]["code"] == "CONFIGURATION_ERROR"


def test_remote_store_reconciles_through_the_api(client):
    from fastapi.testclient import TestClient
    from main import app
    from schemas.results import BulkGridRow
    from services.bulk_reconciler import BulkReconciler
    from services.results_store.http_store import HttpResultsStore
    from services.scoring_config_provider import StaticScoringConfigProvider

    remote = TestClient(app, base_url="http://testserver/v1")
    store = HttpResultsStore("http://testserver/v1", client=remote)
    reconciler = BulkReconciler(store, StaticScoringConfigProvider())

    saved = reconciler.reconcile([BulkGridRow(student_id="STU020", entered_scores={"ca": "6"})], **GRID)
    assert saved.saved_count == 1
    assert store.fetch_results(**GRID)[0].total_score == 6
    assert len(store.fetch_student_results("STU020", GRID["class_id"], GRID["session"], GRID["term"])) == 1
    assert [r.student_id for r in store.fetch_period_results(GRID["session"], GRID["term"])] == ["STU020"]

    removed = reconciler.reconcile([BulkGridRow(student_id="STU020", marked_for_deletion=True)], **GRID)
    assert removed.removed_count == 1
    assert store.fetch_results(**GRID) == []
