"""
等级计算：等级由累计经验对照 LEVEL_THRESHOLDS 推导

LEVEL_THRESHOLDS 第 i 项（从 0 开始）为达到 i+1 级所需的最低累计经验，
首项应为 0；经验只增不减，因此等级也只升不降
"""

from __future__ import annotations

from typing import Sequence

from django.conf import settings


def get_thresholds() -> list[int]:
    from apps.system.services import ConfigService

    raw = ConfigService().get("LEVEL_THRESHOLDS", getattr(settings, "LEVEL_THRESHOLDS", [0]))
    try:
        thresholds = sorted(int(x) for x in raw)
    except (TypeError, ValueError):
        thresholds = list(getattr(settings, "LEVEL_THRESHOLDS", [0]))
    return thresholds or [0]


def level_for_xp(total_xp: int, thresholds: Sequence[int] | None = None) -> int:
    thresholds = list(thresholds) if thresholds is not None else get_thresholds()
    level = 0
    for min_xp in thresholds:
        if total_xp >= min_xp:
            level += 1
        else:
            break
    return max(1, level)


def level_progress(total_xp: int, thresholds: Sequence[int] | None = None) -> dict:
    """当前等级区间与下一级所需经验，供个人主页展示"""
    thresholds = list(thresholds) if thresholds is not None else get_thresholds()
    level = level_for_xp(total_xp, thresholds)
    current_min = thresholds[level - 1] if level - 1 < len(thresholds) else thresholds[-1]
    next_min = thresholds[level] if level < len(thresholds) else None
    return {
        "level": level,
        "current_level_xp": current_min,
        "next_level_xp": next_min,
        "xp_to_next": (next_min - total_xp) if next_min is not None else 0,
    }
