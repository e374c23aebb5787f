"""文件元数据 CRUD。"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.packages.files.core.constants import ROOT_PARENT_ID
from app.packages.files.crud.base import CRUDBase
from app.packages.files.models.file import File


class CRUDFile(CRUDBase[File]):
    def get_owned(self, db: Session, *, file_id: int, user_id: int) -> File | None:
        """按 (file_id, user_id) 查询，非拥有者视为不存在。"""
        return (
            self.query(db)
            .filter(File.id == file_id)
            .filter(File.user_id == user_id)
            .first()
        )

    def list_for_user(
        self,
        db: Session,
        *,
        user_id: int,
        parent_id: int = ROOT_PARENT_ID,
        skip: int = 0,
        limit: int = 20,
    ) -> list[File]:
        """按拥有者（及非根目录时的父目录）过滤，ID 升序保证分页稳定。"""
        query = self.query(db).filter(File.user_id == user_id)
        if parent_id != ROOT_PARENT_ID:
            query = query.filter(File.parent_id == parent_id)
        return query.order_by(File.id.asc()).offset(max(skip, 0)).limit(max(limit, 1)).all()


file_crud = CRUDFile(File)
