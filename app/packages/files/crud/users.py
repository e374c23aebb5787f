"""用户 CRUD：集中管理用户相关的数据操作。"""

from sqlalchemy.orm import Session

from app.packages.files.core.security import get_password_hash
from app.packages.files.crud.base import CRUDBase
from app.packages.files.models.user import User


class CRUDUser(CRUDBase[User]):
    def create_with_password(self, db: Session, *, email: str, password: str) -> User:
        """以 bcrypt 哈希保存密码并创建用户。"""
        return self.create(db, {"email": email, "password_hash": get_password_hash(password)})


user_crud = CRUDUser(User)
