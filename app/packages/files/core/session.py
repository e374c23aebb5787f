"""会话存储：令牌到用户 ID 的映射，带 TTL，使用 Redis 或内存后端。

键格式为 ``<SESSION_KEY_PREFIX><token>``（默认 ``auth_<token>``），值为用户 ID。
本服务只读取会话；``create_session`` 供登录组件与测试写入会话使用。
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis

from app.packages.files.core.config import get_settings
from app.packages.files.core.logger import logger


class SessionBackend:
    """会话后端基类。"""

    def __init__(self, key_prefix: str) -> None:
        self.key_prefix = key_prefix

    def create_session(self, user_id: int, ttl_seconds: int) -> str:  # pragma: no cover - interface definition
        raise NotImplementedError

    def get_user_id(self, token: str) -> Optional[str]:  # pragma: no cover
        raise NotImplementedError

    def delete_session(self, token: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def is_alive(self) -> bool:  # pragma: no cover
        raise NotImplementedError

    def _build_key(self, token: str) -> str:
        return f"{self.key_prefix}{token}"


class RedisSessionBackend(SessionBackend):
    """基于 Redis 的会话后端，过期由 Redis 的 TTL 负责。"""

    def __init__(self, url: str, key_prefix: str) -> None:
        super().__init__(key_prefix)
        self._client = redis.Redis.from_url(url, decode_responses=True)
        self._client.ping()

    def create_session(self, user_id: int, ttl_seconds: int) -> str:
        token = str(uuid.uuid4())
        self._client.setex(self._build_key(token), ttl_seconds, str(user_id))
        return token

    def get_user_id(self, token: str) -> Optional[str]:
        return self._client.get(self._build_key(token))

    def delete_session(self, token: str) -> None:
        self._client.delete(self._build_key(token))

    def is_alive(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


class InMemorySessionBackend(SessionBackend):
    """内存后端用于测试或缺少 Redis 时的回退实现。"""

    def __init__(self, key_prefix: str = "auth_") -> None:
        super().__init__(key_prefix)
        self._store: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def create_session(self, user_id: int, ttl_seconds: int) -> str:
        token = str(uuid.uuid4())
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._store[self._build_key(token)] = (str(user_id), expires_at)
        return token

    def get_user_id(self, token: str) -> Optional[str]:
        key = self._build_key(token)
        with self._lock:
            record = self._store.get(key)
            if record is None:
                return None
            user_id, expires_at = record
            if expires_at <= datetime.now(timezone.utc):
                self._store.pop(key, None)
                return None
            return user_id

    def delete_session(self, token: str) -> None:
        with self._lock:
            self._store.pop(self._build_key(token), None)

    def is_alive(self) -> bool:
        return True


_backend: Optional[SessionBackend] = None


def get_backend() -> SessionBackend:
    global _backend
    if _backend is not None:
        return _backend

    settings = get_settings()
    try:
        backend: SessionBackend = RedisSessionBackend(settings.redis_url, settings.session_key_prefix)
        logger.info("Session store initialized with Redis at %s", settings.redis_url)
    except redis.RedisError as exc:  # pragma: no cover - fallback path
        logger.warning("Redis unavailable (%s), falling back to in-memory session store", exc)
        backend = InMemorySessionBackend(settings.session_key_prefix)
    _backend = backend
    return _backend


def set_backend(backend: Optional[SessionBackend]) -> None:
    """替换当前会话后端；传入 ``None`` 时下次访问重新探测 Redis。"""
    global _backend
    _backend = backend


def create_session(user_id: int, ttl_seconds: Optional[int] = None) -> str:
    """创建会话并返回令牌。"""
    ttl = ttl_seconds if ttl_seconds is not None else get_settings().session_ttl_seconds
    return get_backend().create_session(user_id, ttl)


def lookup_user_id(token: Optional[str]) -> Optional[str]:
    """返回令牌对应的用户 ID；令牌为空、不存在或已过期时返回 ``None``。"""
    if not token:
        return None
    return get_backend().get_user_id(token)
