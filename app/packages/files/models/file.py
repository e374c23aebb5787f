"""文件元数据模型（文件、图片与文件夹共用一张表）。

存储规则：
- parent_id：所在文件夹的 ID，``0`` 表示根目录；创建后不再变更；
- local_path：仅 file/image 有值，指向内容存储中的原始文件；文件夹为 NULL；
- 图片的缩略图不入库，位于 ``<local_path>_<width>``。
"""

from typing import Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.files.core.enums import FileTypeEnum
from app.packages.files.models.base import Base, TimestampMixin


class File(TimestampMixin, Base):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(16), index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())
    parent_id: Mapped[int] = mapped_column(Integer, default=0, server_default="0", index=True)
    local_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    @property
    def is_folder(self) -> bool:
        return self.type == FileTypeEnum.FOLDER.value
