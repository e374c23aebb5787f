"""缩略图 worker：消费队列中的任务，为图片生成 500/250/100 三种宽度的缩略图。

单个任务的状态流转：queued -> processing -> done | failed。
- 负载缺少 fileId/userId、文件不存在、图片无法解码：直接失败并进入死信；
- 读写磁盘、数据库不可用等临时性错误：带 attempts 计数重新入队，超过上限后进入死信；
- 队列本身出错时记录日志并继续循环，单个任务不会让 worker 退出。
三个尺寸并行生成，全部完成才算 done；任一失败则整个任务失败。
任务失败不会修改文件元数据，原图始终可用。重复执行会覆盖同名缩略图。
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.files.core.constants import THUMBNAIL_SIZES
from app.packages.files.core.enums import JobStatusEnum
from app.packages.files.core.exceptions import JobFailedError
from app.packages.files.core.identifiers import InvalidIdentifier, parse_id
from app.packages.files.core.logger import logger
from app.packages.files.crud.files import file_crud
from app.packages.files.services.content_store import ContentStore
from app.packages.files.services.job_queue import JobQueue, ThumbnailJob
from app.packages.files.services.thumbnail_service import ThumbnailService


def _job_extra(job: ThumbnailJob) -> dict[str, Any]:
    return {"job_id": f"{job.file_id}#{job.attempts + 1}"}


class ThumbnailWorker:
    def __init__(
        self,
        *,
        job_queue: JobQueue,
        session_factory: Callable[[], Session],
        content_store: ContentStore,
        thumbnail_service: ThumbnailService,
        max_attempts: int = 3,
        poll_timeout: int = 5,
    ) -> None:
        self.job_queue = job_queue
        self.session_factory = session_factory
        self.content_store = content_store
        self.thumbnail_service = thumbnail_service
        self.max_attempts = max(max_attempts, 1)
        self.poll_timeout = poll_timeout
        self._pool = ThreadPoolExecutor(max_workers=len(THUMBNAIL_SIZES), thread_name_prefix="thumbnail")

    def process(self, job: ThumbnailJob) -> JobStatusEnum:
        """执行单个任务，失败时抛出 ``JobFailedError``。"""
        if not job.file_id:
            raise JobFailedError("Missing fileId")
        if not job.user_id:
            raise JobFailedError("Missing userId")

        local_path = self._load_local_path(job)
        try:
            original = self.content_store.read(local_path)
        except OSError as exc:
            raise JobFailedError(f"Cannot read original: {exc}", retryable=True) from exc

        futures = [
            self._pool.submit(self._derive, original, local_path, size)
            for size in THUMBNAIL_SIZES
        ]
        wait(futures)
        for future in futures:
            exc = future.exception()
            if exc is None:
                continue
            if isinstance(exc, JobFailedError):
                raise exc
            if isinstance(exc, OSError):
                raise JobFailedError(f"Cannot write thumbnail: {exc}", retryable=True) from exc
            raise JobFailedError(f"Thumbnail generation failed: {exc}") from exc
        return JobStatusEnum.DONE

    def handle(self, job: ThumbnailJob) -> JobStatusEnum:
        """执行任务并处理失败：可重试的错误重新入队，其余进入死信。"""
        extra = _job_extra(job)
        logger.info(
            "Thumbnail job %s file=%s attempt=%s",
            JobStatusEnum.PROCESSING.value, job.file_id, job.attempts + 1,
            extra=extra,
        )
        try:
            status = self.process(job)
        except JobFailedError as exc:
            return self._fail(job, exc)
        except Exception as exc:
            logger.exception("Unexpected error in thumbnail job for file %s", job.file_id, extra=extra)
            return self._fail(job, JobFailedError(f"Unexpected error: {exc}"))
        logger.info("Thumbnail job %s file=%s", status.value, job.file_id, extra=extra)
        return status

    def run(self, stop_event: Optional[threading.Event] = None, *, max_jobs: Optional[int] = None) -> int:
        """循环消费队列，直到 ``stop_event`` 被设置或处理满 ``max_jobs`` 个任务。"""
        handled = 0
        while stop_event is None or not stop_event.is_set():
            if max_jobs is not None and handled >= max_jobs:
                break
            try:
                job = self.job_queue.dequeue(timeout=self.poll_timeout)
            except Exception:
                logger.exception("Failed to dequeue thumbnail job")
                if max_jobs is not None:
                    break
                self._backoff(stop_event)
                continue
            if job is None:
                if max_jobs is not None:
                    break
                continue
            self.handle(job)
            handled += 1
        return handled

    def shutdown(self) -> None:
        self._pool.shutdown(wait=True)

    # --------------------- helpers ---------------------
    def _load_local_path(self, job: ThumbnailJob) -> str:
        try:
            file_id = parse_id(job.file_id)
            user_id = parse_id(job.user_id)
        except InvalidIdentifier as exc:
            raise JobFailedError("File not found") from exc

        try:
            db = self.session_factory()
            try:
                record = file_crud.get_owned(db, file_id=file_id, user_id=user_id)
            finally:
                db.close()
        except SQLAlchemyError as exc:
            raise JobFailedError(f"Cannot load file metadata: {exc}", retryable=True) from exc
        if record is None:
            raise JobFailedError("File not found")
        if not record.local_path:
            raise JobFailedError("File has no content")
        return record.local_path

    def _derive(self, original: bytes, local_path: str, size: int) -> str:
        thumbnail = self.thumbnail_service.make_thumbnail(original, width=size)
        target = self.content_store.derived_path(local_path, size)
        self.content_store.write_at(target, thumbnail)
        return target

    def _fail(self, job: ThumbnailJob, exc: JobFailedError) -> JobStatusEnum:
        extra = _job_extra(job)
        attempts = job.attempts + 1
        reason = exc.reason
        if exc.retryable and attempts < self.max_attempts:
            logger.warning(
                "Thumbnail job for file %s failed (%s), retrying (%s/%s)",
                job.file_id, reason, attempts, self.max_attempts,
                extra=extra,
            )
            retry = ThumbnailJob(
                user_id=job.user_id,
                file_id=job.file_id,
                local_path=job.local_path,
                attempts=attempts,
            )
            try:
                self.job_queue.enqueue(retry)
                return JobStatusEnum.QUEUED
            except Exception as enqueue_exc:
                logger.exception("Failed to re-enqueue thumbnail job for file %s", job.file_id, extra=extra)
                reason = f"{reason}; re-enqueue failed: {enqueue_exc}"

        logger.error(
            "Thumbnail job %s file=%s: %s", JobStatusEnum.FAILED.value, job.file_id, reason, extra=extra
        )
        try:
            self.job_queue.dead_letter(job, reason)
        except Exception:
            logger.exception("Failed to dead-letter thumbnail job for file %s", job.file_id, extra=extra)
        return JobStatusEnum.FAILED

    def _backoff(self, stop_event: Optional[threading.Event]) -> None:
        delay = self.poll_timeout or 1
        if stop_event is not None:
            stop_event.wait(delay)
        else:
            time.sleep(delay)
