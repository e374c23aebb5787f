"""实体标识：将外部传入的字符串 ID 显式解析为 ``EntityId``。

数据库主键为正整数；``0`` 仅作为 parent_id 的根目录哨兵出现，
不是任何记录的合法 ID。
"""

from __future__ import annotations

from typing import Any, NewType

EntityId = NewType("EntityId", int)

# 主键列为 32 位有符号整数
MAX_ENTITY_ID = 2**31 - 1


class InvalidIdentifier(ValueError):
    """无法解析为合法实体 ID 的输入。"""


def parse_id(raw: Any) -> EntityId:
    if isinstance(raw, bool):
        raise InvalidIdentifier(f"invalid identifier: {raw!r}")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw or "").strip()
        if not text.isdecimal() or len(text) > len(str(MAX_ENTITY_ID)):
            raise InvalidIdentifier(f"invalid identifier: {raw!r}")
        value = int(text)
    if value <= 0 or value > MAX_ENTITY_ID:
        raise InvalidIdentifier(f"invalid identifier: {raw!r}")
    return EntityId(value)


def parse_parent_id(raw: Any) -> int:
    """解析 parent_id：缺省、``0`` 或 ``"0"`` 视为根目录。"""
    if raw is None or raw == "" or raw == 0 or raw == "0":
        return 0
    return parse_id(raw)
