from fastapi.testclient import TestClient

from retread.main import app

client = TestClient(app)


def test_health_ok(fresh_db):
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["db"] is True
    # no sheet endpoint configured in tests
    assert body["sheet_endpoint"] is None
