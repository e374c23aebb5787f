"""异常处理模块：定义统一的业务异常与 ``{"error": ...}`` 错误响应格式。"""

from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .logger import logger


class AppException(HTTPException):
    """携带 HTTP 状态码的业务异常，由全局处理器统一转换为错误响应。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(status_code=code, detail=msg)


class UnauthenticatedError(AppException):
    """缺少令牌、令牌失效或令牌对应的用户已不存在。"""

    def __init__(self, msg: str = "Unauthorized") -> None:
        super().__init__(msg, status.HTTP_401_UNAUTHORIZED)


class InvalidArgumentError(AppException):
    def __init__(self, msg: str) -> None:
        super().__init__(msg, status.HTTP_400_BAD_REQUEST)


class NotFoundError(AppException):
    """资源不存在、无权访问的私有资源，或派生文件尚未生成。"""

    def __init__(self, msg: str = "Not found") -> None:
        super().__init__(msg, status.HTTP_404_NOT_FOUND)


class UnsupportedError(AppException):
    def __init__(self, msg: str) -> None:
        super().__init__(msg, status.HTTP_400_BAD_REQUEST)


class ContentWriteError(AppException):
    """原始内容写盘失败或超时；此时不得写入元数据记录。"""

    def __init__(self, msg: str = "Failed to store file content") -> None:
        super().__init__(msg, status.HTTP_500_INTERNAL_SERVER_ERROR)


class JobFailedError(Exception):
    """缩略图任务失败。``retryable`` 为 False 时直接进入死信。"""

    def __init__(self, reason: str, *, retryable: bool = False) -> None:
        super().__init__(reason)
        self.reason = reason
        self.retryable = retryable


def error_payload(message: Any) -> dict[str, Any]:
    return {"error": message}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """将 ``HTTPException`` 转换为 ``{"error": msg}``。"""
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc.detail), headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """统一处理请求参数验证失败的场景。"""

    def _serialize(obj: Any) -> Any:
        if isinstance(obj, Exception):
            return str(obj)
        if isinstance(obj, dict):
            return {key: _serialize(value) for key, value in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [_serialize(item) for item in obj]
        return obj

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_payload(_serialize(exc.errors())),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底处理：记录堆栈并返回标准的 500 响应。"""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload("Internal server error"),
    )
