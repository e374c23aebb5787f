"""上传接口（POST /files）的集成测试。"""

from fastapi.testclient import TestClient

from app.main import app
from app.packages.files.core.dependencies import get_content_store, get_job_queue
from app.packages.files.core.exceptions import ContentWriteError
from app.packages.files.crud.files import file_crud
from app.packages.files.models.file import File
from app.packages.files.services.job_queue import RedisJobQueue
from conftest import b64, make_png


def _upload(client: TestClient, headers: dict, **body):
    return client.post("/files", json=body, headers=headers)


def test_upload_without_token_is_unauthorized(client: TestClient):
    response = client.post("/files", json={"name": "a.txt", "type": "file", "data": "aGVsbG8="})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_upload_with_unknown_token_is_unauthorized(client: TestClient):
    response = _upload(client, {"X-Token": "not-a-session"}, name="a.txt", type="file", data="aGVsbG8=")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_upload_with_stale_session_is_unauthorized(client: TestClient, in_memory_sessions):
    token = in_memory_sessions.create_session(9999, 3600)
    response = _upload(client, {"X-Token": token}, name="a.txt", type="file", data="aGVsbG8=")
    assert response.status_code == 401


def test_auth_is_checked_before_body_validation(client: TestClient):
    response = client.post("/files", json={})
    assert response.status_code == 401


def test_upload_text_file_and_read_it_back(client: TestClient, owner, owner_headers):
    user, _ = owner
    response = _upload(client, owner_headers, name="a.txt", type="file", data="aGVsbG8=")

    assert response.status_code == 201
    body = response.json()
    assert set(body) == {"id", "userId", "name", "type", "isPublic", "parentId"}
    assert body["userId"] == user.id
    assert body["name"] == "a.txt"
    assert body["type"] == "file"
    assert body["isPublic"] is False
    assert body["parentId"] == 0

    content = client.get(f"/files/{body['id']}/data", headers=owner_headers)
    assert content.status_code == 200
    assert content.text == "hello"


def test_validation_order_name_first(client: TestClient, owner_headers):
    response = _upload(client, owner_headers, type="nope")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing name"}


def test_validation_order_type_before_data(client: TestClient, owner_headers):
    response = _upload(client, owner_headers, name="a.txt")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing type"}

    response = _upload(client, owner_headers, name="a.txt", type="video", data="aGVsbG8=")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing type"}


def test_missing_data_for_file_and_image(client: TestClient, owner_headers):
    for file_type in ("file", "image"):
        response = _upload(client, owner_headers, name="x", type=file_type)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing data"}


def test_missing_data_is_checked_before_parent(client: TestClient, owner_headers):
    response = _upload(client, owner_headers, name="x", type="file", parentId=424242)
    assert response.json() == {"error": "Missing data"}


def test_parent_not_found(client: TestClient, owner_headers):
    response = _upload(client, owner_headers, name="x", type="file", data="aGVsbG8=", parentId=424242)
    assert response.status_code == 400
    assert response.json() == {"error": "Parent not found"}

    response = _upload(client, owner_headers, name="x", type="file", data="aGVsbG8=", parentId="not-an-id")
    assert response.status_code == 400
    assert response.json() == {"error": "Parent not found"}


def test_parent_must_be_a_folder(client: TestClient, owner_headers, content_store):
    plain = _upload(client, owner_headers, name="a.txt", type="file", data="aGVsbG8=").json()
    written_before = sorted(content_store.root.iterdir())

    for body in (
        {"name": "b.txt", "type": "file", "data": "aGVsbG8="},
        {"name": "sub", "type": "folder"},
        {"name": "i.png", "type": "image", "data": b64(make_png())},
    ):
        response = _upload(client, owner_headers, parentId=plain["id"], **body)
        assert response.status_code == 400
        assert response.json() == {"error": "Parent is not a folder"}

    # 父目录校验失败时不产生任何磁盘写入
    assert sorted(content_store.root.iterdir()) == written_before


def test_create_folder_and_upload_into_it(client: TestClient, owner_headers, db_session_fixture, content_store):
    folder = _upload(client, owner_headers, name="docs", type="folder", isPublic=True)
    assert folder.status_code == 201
    folder_body = folder.json()
    assert folder_body["type"] == "folder"
    assert folder_body["isPublic"] is True
    assert not content_store.root.exists()

    record = file_crud.get(db_session_fixture, folder_body["id"])
    assert record.local_path is None

    child = _upload(client, owner_headers, name="c.txt", type="file", data="aGVsbG8=", parentId=folder_body["id"])
    assert child.status_code == 201
    assert child.json()["parentId"] == folder_body["id"]

    child_record = file_crud.get(db_session_fixture, child.json()["id"])
    assert child_record.local_path
    assert child_record.local_path.startswith(str(content_store.root))


def test_parent_id_as_string_is_accepted(client: TestClient, owner_headers):
    folder = _upload(client, owner_headers, name="docs", type="folder").json()
    child = _upload(client, owner_headers, name="c.txt", type="file", data="aGVsbG8=", parentId=str(folder["id"]))
    assert child.status_code == 201
    assert child.json()["parentId"] == folder["id"]


def test_binary_content_is_preserved_exactly(client: TestClient, owner_headers):
    payload = bytes(range(256)) * 4
    created = _upload(client, owner_headers, name="blob.bin", type="file", data=b64(payload)).json()

    response = client.get(f"/files/{created['id']}/data", headers=owner_headers)
    assert response.status_code == 200
    assert response.content == payload


def test_malformed_base64_is_rejected(client: TestClient, owner_headers, db_session_fixture):
    response = _upload(client, owner_headers, name="a.txt", type="file", data="abc")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid data"}
    assert file_crud.count(db_session_fixture) == 0


def test_image_upload_enqueues_exactly_one_job(client: TestClient, owner, owner_headers, job_queue):
    user, _ = owner
    response = _upload(client, owner_headers, name="img.png", type="image", data=b64(make_png()))
    assert response.status_code == 201
    assert job_queue.enqueued_count == 1

    job = job_queue.dequeue()
    assert job.file_id == str(response.json()["id"])
    assert job.user_id == str(user.id)
    assert job.local_path
    assert set(job.to_payload()) == {"userId", "fileId", "localPath", "attempts"}


def test_file_and_folder_uploads_do_not_enqueue(client: TestClient, owner_headers, job_queue):
    _upload(client, owner_headers, name="a.txt", type="file", data="aGVsbG8=")
    _upload(client, owner_headers, name="docs", type="folder")
    assert job_queue.enqueued_count == 0


class _BrokenQueue:
    def enqueue(self, job):
        raise ConnectionError("queue down")


def test_enqueue_failure_keeps_the_uploaded_image(client: TestClient, owner_headers, db_session_fixture):
    app.dependency_overrides[get_job_queue] = lambda: _BrokenQueue()

    response = _upload(client, owner_headers, name="img.png", type="image", data=b64(make_png()))
    assert response.status_code == 201

    record = file_crud.get(db_session_fixture, response.json()["id"])
    assert record is not None
    content = client.get(f"/files/{record.id}/data", headers=owner_headers)
    assert content.status_code == 200


class _FailingStore:
    root = None

    def write(self, data: bytes) -> str:
        raise ContentWriteError()


def test_failed_write_does_not_insert_metadata(client: TestClient, owner_headers, db_session_fixture):
    app.dependency_overrides[get_content_store] = lambda: _FailingStore()

    response = _upload(client, owner_headers, name="a.txt", type="file", data="aGVsbG8=")
    assert response.status_code == 500
    assert "error" in response.json()
    assert db_session_fixture.query(File).count() == 0


def test_wrongly_typed_fields_are_bad_requests(client: TestClient, owner_headers, db_session_fixture):
    cases = [
        ({"name": 42, "type": "file", "data": "aGVsbG8="}, "Missing name"),
        ({"name": "a.txt", "type": 5, "data": "aGVsbG8="}, "Missing type"),
        ({"name": "a.txt", "type": ["file"], "data": "aGVsbG8="}, "Missing type"),
        ({"name": "a.txt", "type": "file", "data": 123}, "Missing data"),
        ({"name": "a.png", "type": "image", "data": {"b64": "aGVsbG8="}}, "Missing data"),
        ({"name": "a.txt", "type": "file", "data": "aGVsbG8=", "parentId": [1]}, "Parent not found"),
    ]
    for body, message in cases:
        response = _upload(client, owner_headers, **body)
        assert response.status_code == 400, body
        assert response.json() == {"error": message}
    assert file_crud.count(db_session_fixture) == 0


def test_folder_ignores_wrongly_typed_data(client: TestClient, owner_headers):
    response = _upload(client, owner_headers, name="docs", type="folder", data=123)
    assert response.status_code == 201
    assert response.json()["type"] == "folder"


def test_out_of_range_parent_id_is_not_found(client: TestClient, owner_headers):
    for parent_id in (10**25, 2**31, "3000000000", "9" * 5000):
        response = _upload(client, owner_headers, name="x", type="file", data="aGVsbG8=", parentId=parent_id)
        assert response.status_code == 400
        assert response.json() == {"error": "Parent not found"}


def test_non_folder_parent_fails_regardless_of_other_fields(client: TestClient, owner_headers, content_store):
    plain = _upload(client, owner_headers, name="a.txt", type="file", data="aGVsbG8=").json()
    written_before = sorted(content_store.root.iterdir())

    for body in (
        {"name": "sub", "type": "folder", "isPublic": True},
        {"name": "sub", "type": "folder", "data": "aGVsbG8="},
        {"name": "b.txt", "type": "file", "data": "aGVsbG8=", "isPublic": True},
        # 父目录校验先于 base64 解码
        {"name": "b.txt", "type": "file", "data": "abc"},
    ):
        response = _upload(client, owner_headers, parentId=str(plain["id"]), **body)
        assert response.status_code == 400
        assert response.json() == {"error": "Parent is not a folder"}

    assert sorted(content_store.root.iterdir()) == written_before


def test_unreachable_redis_queue_still_accepts_images(client: TestClient, owner_headers, db_session_fixture):
    app.dependency_overrides[get_job_queue] = lambda: RedisJobQueue("redis://127.0.0.1:1/0", "fileQueue")

    response = _upload(client, owner_headers, name="img.png", type="image", data=b64(make_png()))
    assert response.status_code == 201
    assert file_crud.get(db_session_fixture, response.json()["id"]) is not None
