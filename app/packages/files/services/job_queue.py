"""缩略图任务队列：上传流程与 worker 之间的唯一通道。

队列以接口形式注入（API 侧通过 FastAPI 依赖，worker 侧通过构造参数），
提供 Redis 列表实现与线程安全的内存实现。任务负载为 JSON：
``{"userId", "fileId", "localPath", "attempts"}``。
"""

from __future__ import annotations

import json
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

import redis

from app.packages.files.core.logger import logger


@dataclass
class ThumbnailJob:
    user_id: Optional[str]
    file_id: Optional[str]
    local_path: Optional[str]
    attempts: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "fileId": self.file_id,
            "localPath": self.local_path,
            "attempts": self.attempts,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ThumbnailJob":
        def _text(value: Any) -> Optional[str]:
            return None if value is None or value == "" else str(value)

        return cls(
            user_id=_text(payload.get("userId")),
            file_id=_text(payload.get("fileId")),
            local_path=_text(payload.get("localPath")),
            attempts=int(payload.get("attempts") or 0),
        )

    def dumps(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)

    @classmethod
    def loads(cls, raw: str) -> "ThumbnailJob":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("job payload must be a JSON object")
        return cls.from_payload(data)


@dataclass
class DeadLetter:
    job: ThumbnailJob
    reason: str
    extra: dict[str, Any] = field(default_factory=dict)


class JobQueue:
    """任务队列接口。"""

    def enqueue(self, job: ThumbnailJob) -> None:  # pragma: no cover - interface definition
        raise NotImplementedError

    def dequeue(self, timeout: int = 0) -> Optional[ThumbnailJob]:  # pragma: no cover
        raise NotImplementedError

    def dead_letter(self, job: ThumbnailJob, reason: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def is_alive(self) -> bool:  # pragma: no cover
        raise NotImplementedError


class RedisJobQueue(JobQueue):
    """基于 Redis 列表的队列：LPUSH 入队、BRPOP 出队，失败任务进入 ``<name>:failed``。"""

    def __init__(self, url: str, name: str) -> None:
        self.name = name
        self.failed_name = f"{name}:failed"
        self._client = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=5)

    def enqueue(self, job: ThumbnailJob) -> None:
        self._client.lpush(self.name, job.dumps())

    def dequeue(self, timeout: int = 0) -> Optional[ThumbnailJob]:
        item = self._client.brpop([self.name], timeout=timeout)
        if item is None:
            return None
        _, raw = item
        try:
            return ThumbnailJob.loads(raw)
        except ValueError:
            logger.error("Discarding malformed job payload from %s: %r", self.name, raw)
            self._client.lpush(self.failed_name, json.dumps({"raw": raw, "reason": "Malformed payload"}))
            return None

    def dead_letter(self, job: ThumbnailJob, reason: str) -> None:
        payload = {**job.to_payload(), "reason": reason}
        self._client.lpush(self.failed_name, json.dumps(payload, ensure_ascii=False))

    def is_alive(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


class InMemoryJobQueue(JobQueue):
    """进程内队列，仅用于测试：API 与 worker 分属不同进程，无法共享该队列。"""

    def __init__(self) -> None:
        self._queue: "queue.Queue[ThumbnailJob]" = queue.Queue()
        self._lock = threading.Lock()
        self.failed: list[DeadLetter] = []
        self.enqueued_count = 0

    def enqueue(self, job: ThumbnailJob) -> None:
        with self._lock:
            self.enqueued_count += 1
        self._queue.put(job)

    def dequeue(self, timeout: int = 0) -> Optional[ThumbnailJob]:
        try:
            if timeout and timeout > 0:
                return self._queue.get(timeout=timeout)
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def dead_letter(self, job: ThumbnailJob, reason: str) -> None:
        with self._lock:
            self.failed.append(DeadLetter(job=job, reason=reason))

    def is_alive(self) -> bool:
        return True

    def pending(self) -> int:
        return self._queue.qsize()


def build_job_queue(url: str, name: str) -> JobQueue:
    """创建 Redis 队列。连接是惰性的：Redis 不可用时入队抛出 ``redis.RedisError``，由调用方处理。"""
    logger.info("Thumbnail queue '%s' bound to Redis at %s", name, url)
    return RedisJobQueue(url, name)
