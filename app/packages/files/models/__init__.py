"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.files.models.file import File
from app.packages.files.models.user import User

__all__ = ["File", "User"]
