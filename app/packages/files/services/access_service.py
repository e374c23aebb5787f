"""访问控制：令牌 -> 用户的解析，以及文件的可见性判定。"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from app.packages.files.core import session as session_store
from app.packages.files.core.exceptions import UnauthenticatedError
from app.packages.files.core.identifiers import InvalidIdentifier, parse_id
from app.packages.files.core.logger import logger
from app.packages.files.crud.users import user_crud
from app.packages.files.models.file import File
from app.packages.files.models.user import User


class AccessService:
    def try_resolve(self, db: Session, token: Optional[str]) -> Optional[User]:
        """解析令牌对应的用户；任何一步失败都返回 ``None``。"""
        user_id = session_store.lookup_user_id(token)
        if user_id is None:
            return None
        try:
            parsed = parse_id(user_id)
        except InvalidIdentifier:
            logger.warning("Session holds a malformed user id: %r", user_id)
            return None
        user = user_crud.get(db, parsed)
        if user is None:
            logger.info("Session refers to missing user %s", parsed)
        return user

    def resolve(self, db: Session, token: Optional[str]) -> User:
        """与 ``try_resolve`` 相同，但失败时抛出 401。"""
        user = self.try_resolve(db, token)
        if user is None:
            raise UnauthenticatedError()
        return user

    @staticmethod
    def authorize(user: Optional[User], file: File) -> bool:
        """公开文件对任何人可读；私有文件仅拥有者可读。"""
        if file.is_public:
            return True
        return user is not None and file.user_id == user.id


access_service = AccessService()
