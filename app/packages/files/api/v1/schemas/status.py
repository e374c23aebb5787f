"""服务状态与统计接口的响应模型。"""

from pydantic import BaseModel


class StatusResponse(BaseModel):
    redis: bool
    db: bool


class StatsResponse(BaseModel):
    users: int
    files: int
