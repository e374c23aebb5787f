"""文件查询与变更：分页列表、元数据读取、公开/取消公开、内容读取。"""

from __future__ import annotations

import mimetypes
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.packages.files.core.constants import DEFAULT_MIME_TYPE, PAGE_SIZE, ROOT_PARENT_ID, THUMBNAIL_SIZES
from app.packages.files.core.exceptions import NotFoundError, UnsupportedError
from app.packages.files.core.identifiers import MAX_ENTITY_ID, InvalidIdentifier, parse_id, parse_parent_id
from app.packages.files.core.logger import logger
from app.packages.files.crud.files import file_crud
from app.packages.files.models.file import File
from app.packages.files.models.user import User
from app.packages.files.services.access_service import access_service
from app.packages.files.services.content_store import ContentStore


def _guess_mime(name: str) -> str:
    mime, _ = mimetypes.guess_type(name or "")
    return mime or DEFAULT_MIME_TYPE


def _parse_page(raw: Any) -> int:
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 0
    return max(page, 0)


def _parse_size(raw: Any) -> Optional[int]:
    """仅识别 100/250/500，其它取值一律回退到原图。"""
    try:
        size = int(raw)
    except (TypeError, ValueError):
        return None
    return size if size in THUMBNAIL_SIZES else None


class FileService:
    def __init__(self, content_store: ContentStore) -> None:
        self.content_store = content_store

    # ----------------------------
    # 查询
    # ----------------------------
    def list_files(self, db: Session, *, user: User, parent_id: Any = ROOT_PARENT_ID, page: Any = 0) -> list[File]:
        """每页固定 20 条；调用方根据返回条数不足一页判断已到末页。"""
        try:
            parent = parse_parent_id(parent_id)
        except InvalidIdentifier:
            return []
        page_number = _parse_page(page)
        # 超出主键范围的页不可能有数据，也不能交给数据库做 OFFSET
        if page_number > MAX_ENTITY_ID // PAGE_SIZE:
            return []
        skip = page_number * PAGE_SIZE
        return file_crud.list_for_user(db, user_id=user.id, parent_id=parent, skip=skip, limit=PAGE_SIZE)

    def get_metadata(self, db: Session, *, user: User, file_id: Any) -> File:
        return self._get_owned(db, user=user, file_id=file_id)

    # ----------------------------
    # 变更
    # ----------------------------
    def set_visibility(self, db: Session, *, user: User, file_id: Any, is_public: bool) -> File:
        record = self._get_owned(db, user=user, file_id=file_id)
        record.is_public = is_public
        record = file_crud.save(db, record)
        logger.info("User %s set file %s public=%s", user.id, record.id, is_public)
        return record

    # ----------------------------
    # 内容
    # ----------------------------
    def get_content(
        self,
        db: Session,
        *,
        user: Optional[User],
        file_id: Any,
        size: Any = None,
    ) -> tuple[str, str]:
        """返回 (磁盘路径, Content-Type)。

        私有文件对匿名请求、无效令牌与非拥有者一律表现为 404，不暴露其存在。
        """
        try:
            parsed = parse_id(file_id)
        except InvalidIdentifier as exc:
            raise NotFoundError() from exc

        record = file_crud.get(db, parsed)
        if record is None or not access_service.authorize(user, record):
            raise NotFoundError()
        if record.is_folder:
            raise UnsupportedError("A folder doesn't have content")
        if not record.local_path:
            raise NotFoundError()

        path = record.local_path
        width = _parse_size(size)
        if width is not None:
            path = self.content_store.derived_path(path, width)
        if not self.content_store.exists(path):
            raise NotFoundError()
        return path, _guess_mime(record.name)

    def _get_owned(self, db: Session, *, user: User, file_id: Any) -> File:
        try:
            parsed = parse_id(file_id)
        except InvalidIdentifier as exc:
            raise NotFoundError() from exc
        record = file_crud.get_owned(db, file_id=parsed, user_id=user.id)
        if record is None:
            raise NotFoundError()
        return record
