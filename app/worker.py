"""缩略图 worker 入口：``python -m app.worker`` 或 ``files-manager-worker``。"""

import signal
import threading

from app.packages.files.core.config import get_settings
from app.packages.files.core.logger import logger, setup_logging
from app.packages.files.db import session as db_session
from app.packages.files.db.init_db import init_db
from app.packages.files.services.content_store import ContentStore
from app.packages.files.services.job_queue import build_job_queue
from app.packages.files.services.thumbnail_service import thumbnail_service
from app.packages.files.services.thumbnail_worker import ThumbnailWorker


def build_worker() -> ThumbnailWorker:
    """组装 worker；Redis 不可达时直接失败，不回退到进程内队列。"""
    settings = get_settings()
    job_queue = build_job_queue(settings.redis_url, settings.thumbnail_queue_name)
    if not job_queue.is_alive():
        raise RuntimeError(f"Redis is unreachable at {settings.redis_url}, thumbnail worker cannot start")
    return ThumbnailWorker(
        job_queue=job_queue,
        session_factory=db_session.SessionLocal,
        content_store=ContentStore(settings.content_root, write_timeout=settings.content_write_timeout),
        thumbnail_service=thumbnail_service,
        max_attempts=settings.thumbnail_max_attempts,
        poll_timeout=settings.worker_poll_timeout,
    )


def main() -> None:
    setup_logging("worker")
    init_db()
    try:
        worker = build_worker()
    except RuntimeError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc

    stop_event = threading.Event()

    def _stop(signum, _frame) -> None:
        logger.info("Received signal %s, stopping thumbnail worker", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    logger.info("Thumbnail worker started on queue '%s'", get_settings().thumbnail_queue_name)
    try:
        handled = worker.run(stop_event)
    finally:
        worker.shutdown()
    logger.info("Thumbnail worker stopped after %s jobs", handled)


if __name__ == "__main__":
    main()
