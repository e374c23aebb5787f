"""枚举定义：约束文件类型与缩略图任务状态的可选值。"""

from enum import Enum


class FileTypeEnum(str, Enum):
    FOLDER = "folder"
    FILE = "file"
    IMAGE = "image"

    @classmethod
    def values(cls) -> set[str]:
        return {item.value for item in cls}


class JobStatusEnum(str, Enum):
    """缩略图任务的状态机：queued -> processing -> done | failed。"""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"
