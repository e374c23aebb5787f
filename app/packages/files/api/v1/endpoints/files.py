"""文件与文件夹路由：上传、查询、分页列表、公开/取消公开、内容读取。"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.packages.files.api.v1.schemas.files import FileView, UploadRequest
from app.packages.files.core.constants import ROOT_PARENT_ID
from app.packages.files.core.dependencies import (
    get_current_user,
    get_db,
    get_file_service,
    get_optional_user,
    get_upload_service,
)
from app.packages.files.models.user import User
from app.packages.files.services.file_service import FileService
from app.packages.files.services.upload_service import UploadService

router = APIRouter(tags=["files"])


@router.post("/files", response_model=FileView, status_code=status.HTTP_201_CREATED)
def upload_file(
    payload: Optional[UploadRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    upload_service: UploadService = Depends(get_upload_service),
):
    payload = payload or UploadRequest()
    record = upload_service.upload(
        db,
        actor=current_user,
        name=payload.name,
        file_type=payload.type,
        data=payload.data,
        is_public=payload.isPublic,
        parent_id=payload.parentId,
    )
    return FileView.from_model(record)


@router.get("/files", response_model=list[FileView])
def list_files(
    parent_id: Optional[str] = Query(str(ROOT_PARENT_ID), alias="parentId"),
    page: Optional[str] = Query("0"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    file_service: FileService = Depends(get_file_service),
):
    records = file_service.list_files(db, user=current_user, parent_id=parent_id, page=page)
    return [FileView.from_model(record) for record in records]


@router.get("/files/{file_id}", response_model=FileView)
def get_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    file_service: FileService = Depends(get_file_service),
):
    return FileView.from_model(file_service.get_metadata(db, user=current_user, file_id=file_id))


@router.put("/files/{file_id}/publish", response_model=FileView)
def publish_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    file_service: FileService = Depends(get_file_service),
):
    record = file_service.set_visibility(db, user=current_user, file_id=file_id, is_public=True)
    return FileView.from_model(record)


@router.put("/files/{file_id}/unpublish", response_model=FileView)
def unpublish_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    file_service: FileService = Depends(get_file_service),
):
    record = file_service.set_visibility(db, user=current_user, file_id=file_id, is_public=False)
    return FileView.from_model(record)


@router.get("/files/{file_id}/data")
def get_file_data(
    file_id: str,
    size: Optional[str] = Query(None),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    file_service: FileService = Depends(get_file_service),
):
    """读取文件内容；``size`` 为 100/250/500 时返回对应缩略图，其它值返回原图。"""
    path, media_type = file_service.get_content(db, user=current_user, file_id=file_id, size=size)
    return FileResponse(path, media_type=media_type)
