"""
挑战名次与积分计算（纯函数，不访问数据库）

- 计时类按用时升序，任务类按得分方向排序；同分按录入先后
- 未完成（计时无用时/任务无得分）的成绩不参与排名，积分为 0
- 固定分模式下名次仅用于展示，完成即得 fixed_points
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from apps.common.utils.points import normalize_distribution, points_for_placement
from .models import Challenge, ChallengeResult


@dataclass(frozen=True)
class PlacementRow:
    result_id: int
    team_id: int
    placement: Optional[int]
    points: int


def is_complete(challenge: Challenge, result: ChallengeResult) -> bool:
    return (result.time_ms if challenge.is_timed else result.score) is not None


def rank(challenge: Challenge, results: Iterable[ChallengeResult]) -> list[ChallengeResult]:
    """已完成的成绩按名次顺序排列"""
    completed = [r for r in results if is_complete(challenge, r)]
    if challenge.is_timed:
        return sorted(completed, key=lambda r: (r.time_ms, r.id))
    if challenge.score_direction == Challenge.ScoreDirection.ASC:
        return sorted(completed, key=lambda r: (r.score, r.id))
    return sorted(completed, key=lambda r: (-r.score, r.id))


def points_for(challenge: Challenge, placement: int) -> int:
    if challenge.points_mode == Challenge.PointsMode.FIXED:
        return challenge.fixed_points
    table = normalize_distribution(challenge.points_distribution, field_name="points_distribution")
    if challenge.points_mode == Challenge.PointsMode.TOP_N:
        limit = challenge.top_n or len(table)
        if placement > limit:
            return 0
    return points_for_placement(table, placement)


def compute_placements(challenge: Challenge, results: Sequence[ChallengeResult]) -> list[PlacementRow]:
    ranked = rank(challenge, results)
    rows = [
        PlacementRow(result_id=r.id, team_id=r.team_id, placement=index, points=points_for(challenge, index))
        for index, r in enumerate(ranked, start=1)
    ]
    ranked_ids = {r.id for r in ranked}
    rows.extend(
        PlacementRow(result_id=r.id, team_id=r.team_id, placement=None, points=0)
        for r in results
        if r.id not in ranked_ids
    )
    return rows


def team_totals(rows: Iterable[PlacementRow]) -> dict[int, int]:
    """按队伍汇总积分（保留 0 分队伍，便于展示）"""
    totals: dict[int, int] = {}
    for row in rows:
        totals[row.team_id] = totals.get(row.team_id, 0) + row.points
    return totals
