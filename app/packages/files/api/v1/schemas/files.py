"""文件接口的请求/响应模型。

上传请求体中的字段全部可选：必填校验由上传流程按固定顺序完成
（name -> type -> data -> parentId），以便返回确定的错误信息。
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from app.packages.files.core.constants import ROOT_PARENT_ID
from app.packages.files.models.file import File


class UploadRequest(BaseModel):
    """上传文件或新建文件夹。默认值：``isPublic=False``，``parentId=0``（根目录）。"""

    model_config = ConfigDict(extra="ignore")

    # 字段类型不在此处约束：类型错误与缺失一样由上传流程返回 400
    name: Optional[Any] = None
    type: Optional[Any] = None
    # base64 编码的文件内容，文件夹无需提供
    data: Optional[Any] = None
    isPublic: Optional[Any] = False
    parentId: Optional[Any] = ROOT_PARENT_ID


class FileView(BaseModel):
    """对外暴露的文件元数据，不包含本地路径。"""

    id: int
    userId: int
    name: str
    type: str
    isPublic: bool
    parentId: int

    @classmethod
    def from_model(cls, file: File) -> "FileView":
        return cls(
            id=file.id,
            userId=file.user_id,
            name=file.name,
            type=file.type,
            isPublic=bool(file.is_public),
            parentId=file.parent_id or ROOT_PARENT_ID,
        )
