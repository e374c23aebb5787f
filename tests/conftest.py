"""测试夹具：为 pytest 提供数据库、会话、队列、内容存储与客户端的共享配置。"""

import base64
import io
import os
import tempfile
from typing import Callable, Generator

# 在导入应用之前固定测试环境：SQLite 数据库、临时日志目录
TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="files_manager_logs_"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.files.core import session as session_store  # noqa: E402
from app.packages.files.core.dependencies import get_content_store, get_job_queue  # noqa: E402
from app.packages.files.crud.users import user_crud  # noqa: E402
from app.packages.files.db import session as db_session  # noqa: E402
from app.packages.files.models.base import Base  # noqa: E402
from app.packages.files.models.user import User  # noqa: E402
from app.packages.files.services.content_store import ContentStore  # noqa: E402
from app.packages.files.services.job_queue import InMemoryJobQueue  # noqa: E402
from app.packages.files.services.thumbnail_service import ThumbnailService  # noqa: E402
from app.packages.files.services.thumbnail_worker import ThumbnailWorker  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    """每个用例前清空数据表，保证分页等断言不受其他用例影响。"""
    with db_session.engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield


@pytest.fixture(autouse=True)
def in_memory_sessions() -> Generator[session_store.InMemorySessionBackend, None, None]:
    backend = session_store.InMemorySessionBackend()
    session_store.set_backend(backend)
    yield backend
    session_store.set_backend(None)


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def content_store(tmp_path) -> ContentStore:
    # 根目录故意不预先创建，由首次写入负责创建
    return ContentStore(tmp_path / "files_manager", write_timeout=5)


@pytest.fixture()
def job_queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture()
def client(content_store, job_queue) -> Generator[TestClient, None, None]:
    """构建 FastAPI TestClient，并注入测试专用的内容存储与任务队列。"""
    app.dependency_overrides[get_content_store] = lambda: content_store
    app.dependency_overrides[get_job_queue] = lambda: job_queue

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session_fixture) -> Callable[..., tuple[User, str]]:
    """创建用户并为其写入会话，返回 (用户, 令牌)。"""
    counter = {"n": 0}

    def _make(email: str | None = None) -> tuple[User, str]:
        counter["n"] += 1
        user = user_crud.create_with_password(
            db_session_fixture,
            email=email or f"user{counter['n']}@example.com",
            password="toto1234!",
        )
        token = session_store.create_session(user.id, 3600)
        return user, token

    return _make


@pytest.fixture()
def owner(make_user) -> tuple[User, str]:
    return make_user("bob@dylan.com")


@pytest.fixture()
def owner_headers(owner) -> dict[str, str]:
    return {"X-Token": owner[1]}


@pytest.fixture()
def worker(job_queue, content_store) -> Generator[ThumbnailWorker, None, None]:
    thumbnail_worker = ThumbnailWorker(
        job_queue=job_queue,
        session_factory=lambda: db_session.SessionLocal(),
        content_store=content_store,
        thumbnail_service=ThumbnailService(),
        max_attempts=3,
        poll_timeout=0,
    )
    yield thumbnail_worker
    thumbnail_worker.shutdown()


def make_png(width: int = 800, height: int = 600, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
