"""内容存储：在本地根目录下放置原始文件字节与派生缩略图。

- 原始文件：``<root>/<uuid4>``，字节原样写入，不做任何重新编码；
- 缩略图：``<原始路径>_<宽度>``，宽度仅限 100/250/500；
- 不加锁：每次上传使用全新随机路径，并发写入天然不冲突；
- 先写同目录下的临时文件再原子替换，读者只会看到不存在或完整的文件。
"""

from __future__ import annotations

import os
import tempfile
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Optional

from app.packages.files.core.constants import THUMBNAIL_SIZES
from app.packages.files.core.exceptions import ContentWriteError
from app.packages.files.core.logger import logger

_write_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="content-write")


class ContentStore:
    def __init__(self, root: str | Path, *, write_timeout: Optional[float] = None) -> None:
        self.root = Path(root).resolve()
        self.write_timeout = write_timeout

    def ensure_root(self) -> Path:
        """确保根目录存在；并发的首次写入同时创建目录也不会报错。"""
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def write(self, data: bytes) -> str:
        """分配新的随机路径并写入字节，返回绝对路径字符串。"""
        self.ensure_root()
        path = self.root / str(uuid.uuid4())
        future = _write_pool.submit(self._write_bytes, path, data)
        try:
            future.result(timeout=self.write_timeout)
        except FutureTimeoutError as exc:
            logger.error("Content write to %s timed out after %ss", path, self.write_timeout)
            raise ContentWriteError("Timed out while storing file content") from exc
        except OSError as exc:
            logger.error("Content write to %s failed: %s", path, exc)
            raise ContentWriteError() from exc
        return str(path)

    def write_at(self, path: str, data: bytes) -> None:
        """在指定路径写入（覆盖）字节，供缩略图等派生文件使用。"""
        self._write_bytes(Path(path), data)

    @staticmethod
    def derived_path(path: str, size: int) -> str:
        if size not in THUMBNAIL_SIZES:
            raise ValueError(f"unsupported thumbnail size: {size}")
        return f"{path}_{size}"

    @staticmethod
    def exists(path: str) -> bool:
        return Path(path).is_file()

    @staticmethod
    def read(path: str) -> bytes:
        return Path(path).read_bytes()

    @staticmethod
    def _write_bytes(path: Path, data: bytes) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise
