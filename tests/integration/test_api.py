"""HTTP and WebSocket flows against a temporary SQLite database."""

from __future__ import annotations

from fastapi.testclient import TestClient

from kas.core.deps import get_broadcaster, get_store
from kas.core.errors import StoreError
from kas.main import create_app

HYGIENE_REPORT = {
    "class": 3,
    "isadd": False,
    "changescore": 4,
    "note": "垃圾未倒",
    "submitter": "李晓鹏",
    "reducetype": "hygiene",
}


def _submit(client: TestClient, **overrides):
    body = dict(HYGIENE_REPORT)
    body.update(overrides)
    return client.post("/api/inputdata", json=body)


def test_health_reports_database_state(client: TestClient) -> None:
    body = client.get("/health").json()

    assert body["status"] == "OK"
    assert body["database"] == "connected"
    assert body["realtimeClients"] == 0


def test_submission_is_stored_and_broadcast_once(client: TestClient) -> None:
    with client.websocket_connect("/ws") as listener, client.websocket_connect("/ws") as bystander:
        hello = listener.receive_json()
        assert hello["type"] == "connected"
        assert bystander.receive_json()["type"] == "connected"

        listener.send_json({"type": "subscribe"})
        assert listener.receive_json() == {
            "type": "subscribed",
            "channels": ["reports"],
            "message": "已订阅频道: reports",
        }

        response = _submit(client)
        assert response.status_code == 200
        result = response.json()
        assert result["success"] is True
        assert result["delivered"] == 1
        assert result["headteacher"] == "张老师"
        assert result["database"] == result["date_partition"][:7]

        event = listener.receive_json()
        assert event["type"] == "new-report"
        assert event["channel"] == "reports"
        assert event["data"]["id"] == result["id"]
        assert event["data"]["class"] == 3
        assert event["data"]["changescore"] == 4
        assert event["data"]["isadd"] is False
        assert event["data"]["reducetype"] == "hygiene"
        assert event["data"]["headteacher"] == "张老师"

        # the next thing the bystander sees is its own subscribe ack, so no report was queued for it
        bystander.send_json({"type": "subscribe"})
        assert bystander.receive_json()["type"] == "subscribed"

    listed = client.get(f"/api/reports/date/{result['date_partition']}").json()
    assert listed["success"] is True
    assert listed["count"] == 1
    stored = listed["data"][0]
    assert stored["id"] == result["id"]
    assert stored["changescore"] == 4
    assert stored["isadd"] is False
    assert stored["reducetype"] == "hygiene"
    assert stored["date_partition"] == result["date_partition"]


def test_score_boundaries(client: TestClient) -> None:
    for score in (0, 21):
        response = _submit(client, changescore=score)
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "changescore" in response.json()["message"]

    for score in (1, 20):
        assert _submit(client, changescore=score).status_code == 200


def test_missing_fields_are_rejected_before_storing(client: TestClient) -> None:
    response = client.post("/api/inputdata", json={"class": 1, "isadd": True})

    assert response.status_code == 400
    assert client.get("/api/reports/today/stats").json()["data"]["summary"]["total"] == 0


def test_today_stats(client: TestClient) -> None:
    _submit(client, **{"class": 1, "isadd": True, "changescore": 5, "reducetype": None})
    _submit(client, **{"class": 2, "isadd": True, "changescore": 5, "reducetype": None})
    _submit(client, **{"class": 1, "changescore": 2, "reducetype": "discipline"})
    last = _submit(client, **{"class": 3, "changescore": 1}).json()

    data = client.get("/api/reports/today/stats").json()["data"]

    assert data["summary"] == {"total": 4, "positive": 2, "negative": 2, "activeClasses": 3}
    assert data["typeStats"] == {"表彰": 2, "小违纪": 2}
    assert [(c["class"], c["totalScore"]) for c in data["classRanking"]] == [(2, 5), (1, 3), (3, -1)]
    assert data["classRanking"][0]["headteacher"] == "李老师"
    assert data["recentReports"][0]["id"] == last["id"]
    assert data["recentReports"][0]["type"] == "卫生违纪"
    assert data["recentReports"][0]["level"] == "小违纪"
    assert len(data["recentReports"]) == 4


def test_history_queries(client: TestClient) -> None:
    first = _submit(client).json()
    _submit(client, **{"class": 5, "isadd": True, "changescore": 6})
    day = first["date_partition"]

    by_class = client.get(f"/api/reports/date/{day}/class/3").json()
    assert by_class["count"] == 1

    by_month = client.get(f"/api/reports/{day[:7]}").json()
    assert by_month["count"] == 2
    assert by_month["data"][0]["class"] == 5

    in_range = client.get(f"/api/reports/class/5/range/{day}/{day}").json()
    assert in_range["count"] == 1

    assert client.get("/api/reports/1999-01").json()["count"] == 0


def test_bad_dates_are_rejected(client: TestClient) -> None:
    assert client.get("/api/reports/date/2026-1-01").status_code == 400
    assert client.get("/api/reports/date/2026-02-30").status_code == 400
    assert client.get("/api/reports/2026-13").status_code == 400
    assert client.get("/api/reports/class/1/range/2026-03-02/2026-03-01").status_code == 400
    assert client.get("/api/reports/date/2026-03-01/class/abc").status_code == 400


def test_classes_listing(client: TestClient) -> None:
    body = client.get("/api/classes").json()

    assert body["count"] == 3
    assert body["data"][0] == {"class": 1, "headteacher": "王老师"}


def test_unknown_route_is_json_404(client: TestClient) -> None:
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "路由不存在"}


def test_requests_before_startup_get_503(app) -> None:
    # no context manager: lifespan never ran
    response = TestClient(app).get("/api/reports/date/2026-03-01")

    assert response.status_code == 503
    assert response.json()["success"] is False


class _FailingStore:
    async def query_by_date(self, day):
        raise StoreError(cause="database is locked")


def test_store_errors_are_sanitized_outside_development(test_settings) -> None:
    for env, expect_detail in (("development", True), ("production", False)):
        app = create_app(test_settings.model_copy(update={"APP_ENV": env}))
        app.dependency_overrides[get_store] = lambda: _FailingStore()
        with TestClient(app) as client:
            response = client.get("/api/reports/date/2026-03-01")

        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "服务器内部错误"
        assert ("error" in body) is expect_detail


class _ExplodingBroadcaster:
    async def publish(self, payload, channel="reports"):
        raise RuntimeError("fan-out down")


def test_broadcast_failure_does_not_fail_submission(app) -> None:
    app.dependency_overrides[get_broadcaster] = lambda: _ExplodingBroadcaster()
    with TestClient(app) as client:
        response = _submit(client)

        assert response.status_code == 200
        assert response.json()["delivered"] == 0
        assert client.get(f"/api/reports/date/{response.json()['date_partition']}").json()["count"] == 1


def test_listed_timestamps_match_the_submitted_one(client: TestClient) -> None:
    result = _submit(client).json()

    listed = client.get(f"/api/reports/date/{result['date_partition']}").json()["data"][0]
    recent = client.get("/api/reports/today/stats").json()["data"]["recentReports"][0]

    assert result["submittime"].endswith("Z")
    assert listed["submittime"] == result["submittime"]
    assert recent["time"] == result["submittime"]
