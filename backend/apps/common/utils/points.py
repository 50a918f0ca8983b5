# apps/common/utils/points.py

"""
名次积分表工具：竞速与挑战共用

积分表为 {名次: 积分}，名次从 1 开始；JSON 存储后键会变成字符串，读取时统一转回整数
"""

from __future__ import annotations

from typing import Any, Mapping

from apps.common.exceptions import ValidationError


def normalize_distribution(raw: Any, *, field_name: str = "points_distribution") -> dict[int, int]:
    """
    校验并规范化积分表：键为正整数名次，值为非负整数积分
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValidationError(message=f"{field_name} 必须为对象")
    table: dict[int, int] = {}
    for key, value in raw.items():
        try:
            placement = int(key)
        except (TypeError, ValueError) as exc:
            raise ValidationError(message=f"{field_name} 的名次必须为整数") from exc
        if placement < 1:
            raise ValidationError(message=f"{field_name} 的名次须从 1 开始")
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(message=f"{field_name} 的积分必须为非负整数")
        table[placement] = value
    return table


def to_storage(table: Mapping[int, int]) -> dict[str, int]:
    """JSONField 存储格式：键转为字符串并按名次排序"""
    return {str(k): int(v) for k, v in sorted(table.items())}


def points_for_placement(table: Mapping[Any, int] | None, placement: int | None) -> int:
    """按名次查积分；无名次或超出积分表范围时为 0"""
    if not table or placement is None:
        return 0
    value = table.get(str(placement), table.get(placement))  # type: ignore[call-overload]
    return int(value) if value is not None else 0
