"""状态、统计与健康检查接口的测试。"""

from fastapi.testclient import TestClient

from app.main import app
from app.packages.files.db import session as db_session
from app.packages.files.models.base import Base


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_status_reports_store_liveness(client: TestClient):
    response = client.get("/status")
    assert response.status_code == 200
    assert response.json() == {"redis": True, "db": True}


def test_stats_counts_users_and_files(client: TestClient, owner_headers, make_user):
    make_user()
    client.post("/files", json={"name": "docs", "type": "folder"}, headers=owner_headers)
    client.post("/files", json={"name": "a.txt", "type": "file", "data": "aGVsbG8="}, headers=owner_headers)

    response = client.get("/stats")
    assert response.status_code == 200
    assert response.json() == {"users": 2, "files": 2}


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["x-request-id"] == "abc-123"


def test_unknown_route_uses_error_payload(client: TestClient):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_startup_creates_missing_tables():
    Base.metadata.drop_all(bind=db_session.engine)

    with TestClient(app) as fresh_client:
        response = fresh_client.get("/stats")

    assert response.status_code == 200
    assert response.json() == {"users": 0, "files": 0}
