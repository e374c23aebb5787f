"""上传流程：校验请求、维护父子目录约束、写盘并写入元数据、投递缩略图任务。

校验顺序固定（第一个失败即返回）：
name -> type -> data -> 父目录存在 -> 父目录是文件夹。
父目录检查先于 base64 解码与磁盘写入，避免注定失败的请求产生 I/O。

持久化顺序：先写内容，再插入元数据。写盘失败时不会产生元数据记录；
插入失败只会留下无人引用的孤立文件，可以接受。
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from sqlalchemy.orm import Session

from app.packages.files.core.constants import ROOT_PARENT_ID
from app.packages.files.core.enums import FileTypeEnum
from app.packages.files.core.exceptions import InvalidArgumentError
from app.packages.files.core.identifiers import InvalidIdentifier, parse_parent_id
from app.packages.files.core.logger import logger
from app.packages.files.crud.files import file_crud
from app.packages.files.models.file import File
from app.packages.files.models.user import User
from app.packages.files.services.content_store import ContentStore
from app.packages.files.services.job_queue import JobQueue, ThumbnailJob


class UploadService:
    def __init__(self, content_store: ContentStore, job_queue: JobQueue) -> None:
        self.content_store = content_store
        self.job_queue = job_queue

    def upload(
        self,
        db: Session,
        *,
        actor: User,
        name: Any,
        file_type: Any,
        data: Any = None,
        is_public: Any = False,
        parent_id: Any = ROOT_PARENT_ID,
    ) -> File:
        """创建文件/图片/文件夹。``is_public`` 缺省为 False，``parent_id`` 缺省为根目录。"""
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError("Missing name")

        if not isinstance(file_type, str) or file_type not in FileTypeEnum.values():
            raise InvalidArgumentError("Missing type")

        is_folder = file_type == FileTypeEnum.FOLDER.value
        if not is_folder and (not isinstance(data, str) or not data):
            raise InvalidArgumentError("Missing data")

        parent_id = self._check_parent(db, parent_id)
        is_public = bool(is_public)

        if is_folder:
            folder = file_crud.create(
                db,
                {
                    "user_id": actor.id,
                    "name": name,
                    "type": file_type,
                    "is_public": is_public,
                    "parent_id": parent_id,
                },
            )
            logger.info("User %s created folder %s (parent=%s)", actor.id, folder.id, parent_id)
            return folder

        content = self._decode(data)
        local_path = self.content_store.write(content)
        record = file_crud.create(
            db,
            {
                "user_id": actor.id,
                "name": name,
                "type": file_type,
                "is_public": is_public,
                "parent_id": parent_id,
                "local_path": local_path,
            },
        )
        logger.info(
            "User %s uploaded %s %s (%d bytes) to %s",
            actor.id, file_type, record.id, len(content), local_path,
        )

        if file_type == FileTypeEnum.IMAGE.value:
            self._enqueue_thumbnails(record)
        return record

    @staticmethod
    def _check_parent(db: Session, raw_parent_id) -> int:
        try:
            parent_id = parse_parent_id(raw_parent_id)
        except InvalidIdentifier as exc:
            raise InvalidArgumentError("Parent not found") from exc
        if parent_id == ROOT_PARENT_ID:
            return ROOT_PARENT_ID

        parent = file_crud.get(db, parent_id)
        if parent is None:
            raise InvalidArgumentError("Parent not found")
        if not parent.is_folder:
            raise InvalidArgumentError("Parent is not a folder")
        return parent_id

    @staticmethod
    def _decode(data: str) -> bytes:
        try:
            return base64.b64decode(data)
        except (binascii.Error, ValueError) as exc:
            raise InvalidArgumentError("Invalid data") from exc

    def _enqueue_thumbnails(self, record: File) -> None:
        job = ThumbnailJob(
            user_id=str(record.user_id),
            file_id=str(record.id),
            local_path=record.local_path,
        )
        try:
            self.job_queue.enqueue(job)
        except Exception:
            # 元数据已提交，原图仍然可用，只是暂时没有缩略图
            logger.exception("Failed to enqueue thumbnail job for file %s", record.id)
