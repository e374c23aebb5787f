"""服务状态路由：存储连通性与数据量统计。"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.files.api.v1.schemas.status import StatsResponse, StatusResponse
from app.packages.files.core import session as session_store
from app.packages.files.core.dependencies import get_db
from app.packages.files.core.logger import logger
from app.packages.files.crud.files import file_crud
from app.packages.files.crud.users import user_crud

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
def get_status(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_alive = True
    except SQLAlchemyError as exc:
        logger.warning("Database liveness check failed: %s", exc)
        db_alive = False
    return StatusResponse(redis=session_store.get_backend().is_alive(), db=db_alive)


@router.get("/stats", response_model=StatsResponse)
def get_stats(db: Session = Depends(get_db)):
    return StatsResponse(users=user_crud.count(db), files=file_crud.count(db))
