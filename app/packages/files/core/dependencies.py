"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Generator
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from app.packages.files.core.config import get_settings
from app.packages.files.core.constants import TOKEN_HEADER
from app.packages.files.db import session as db_session
from app.packages.files.models.user import User
from app.packages.files.services.access_service import access_service
from app.packages.files.services.content_store import ContentStore
from app.packages.files.services.file_service import FileService
from app.packages.files.services.job_queue import JobQueue, build_job_queue
from app.packages.files.services.upload_service import UploadService

token_header = APIKeyHeader(name=TOKEN_HEADER, auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    token: Optional[str] = Depends(token_header),
    db: Session = Depends(get_db),
) -> User:
    """解析 ``X-Token`` 头部并返回当前用户，缺失或失效时抛出 401。"""
    return access_service.resolve(db, token)


def get_optional_user(
    token: Optional[str] = Depends(token_header),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """与 ``get_current_user`` 相同，但解析失败时返回 ``None`` 而不是 401。"""
    return access_service.try_resolve(db, token)


def get_content_store() -> ContentStore:
    settings = get_settings()
    return ContentStore(settings.content_root, write_timeout=settings.content_write_timeout)


@lru_cache
def _default_job_queue() -> JobQueue:
    settings = get_settings()
    return build_job_queue(settings.redis_url, settings.thumbnail_queue_name)


def get_job_queue() -> JobQueue:
    """缩略图任务队列；测试中可通过 ``app.dependency_overrides`` 替换。"""
    return _default_job_queue()


def get_upload_service(
    content_store: ContentStore = Depends(get_content_store),
    job_queue: JobQueue = Depends(get_job_queue),
) -> UploadService:
    return UploadService(content_store, job_queue)


def get_file_service(content_store: ContentStore = Depends(get_content_store)) -> FileService:
    return FileService(content_store)
