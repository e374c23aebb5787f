"""API v1 汇总路由：统一挂载所有子路由。"""

from fastapi import APIRouter

from app.packages.files.api.v1.endpoints import files, status

api_router = APIRouter()
api_router.include_router(status.router)
api_router.include_router(files.router)
