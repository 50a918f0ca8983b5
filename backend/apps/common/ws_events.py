# -*- coding: utf-8 -*-
"""
WebSocket 事件规范（供前后端对齐）：
- 列出事件名、推送分组、必选字段、可选字段与说明，避免魔法字符串
- 每个已提交的状态迁移推送一个事件；新增事件请在此处补充
"""

from __future__ import annotations

SUBMISSION_RESOLVED = "submission_resolved"
BID_ACCEPTED = "bid_accepted"
AUCTION_STARTED = "auction_started"
AUCTION_CLOSED = "auction_closed"
AUCTION_CANCELLED = "auction_cancelled"
RACE_STARTED = "race_started"
RACE_STOPPED = "race_stopped"
RACE_PLACEMENT_ASSIGNED = "race_placement_assigned"
CHALLENGE_STATUS_CHANGED = "challenge_status_changed"
CHALLENGE_PLACEMENTS_COMPUTED = "challenge_placements_computed"
CHALLENGE_POINTS_AWARDED = "challenge_points_awarded"
CREDIT_APPLIED = "credit_applied"
LEADERBOARD_SNAPSHOT = "leaderboard_snapshot"
TEAM_ASSIGNED = "team_assigned"

EVENT_SCHEMAS: list[dict] = [
    {
        "event": SUBMISSION_RESOLVED,
        "groups": ["user", "feed"],
        "required": ["submission_id", "mission_id", "user_id", "status", "xp_awarded"],
        "optional": ["quiz_score", "placement", "seq"],
        "desc": "任务提交已判定（自动通过/驳回或审核结果）",
    },
    {
        "event": BID_ACCEPTED,
        "groups": ["feed"],
        "required": ["auction_id", "bid_id", "team_id", "amount", "current_price"],
        "optional": ["user_id", "previous_team_id", "seq"],
        "desc": "出价成功，当前价格更新，领先者变更",
    },
    {
        "event": AUCTION_STARTED,
        "groups": ["feed"],
        "required": ["auction_id", "current_price"],
        "optional": ["seq"],
        "desc": "拍卖开始接受出价",
    },
    {
        "event": AUCTION_CLOSED,
        "groups": ["feed"],
        "required": ["auction_id", "winning_team_id", "winning_amount"],
        "optional": ["winning_user_id", "points_awarded", "seq"],
        "desc": "拍卖结束；无出价时 winning_team_id 为 null",
    },
    {
        "event": AUCTION_CANCELLED,
        "groups": ["feed"],
        "required": ["auction_id"],
        "optional": ["seq"],
        "desc": "拍卖取消，不发放积分",
    },
    {
        "event": RACE_STARTED,
        "groups": ["feed"],
        "required": ["mission_id", "started_at"],
        "optional": ["seq"],
        "desc": "竞速开始",
    },
    {
        "event": RACE_STOPPED,
        "groups": ["feed"],
        "required": ["mission_id"],
        "optional": ["seq"],
        "desc": "竞速停止，不再接受参赛提交",
    },
    {
        "event": RACE_PLACEMENT_ASSIGNED,
        "groups": ["team", "feed"],
        "required": ["mission_id", "submission_id", "team_id", "placement", "time_ms", "points"],
        "optional": ["user_id", "seq"],
        "desc": "竞速提交审核通过并分配名次",
    },
    {
        "event": CHALLENGE_STATUS_CHANGED,
        "groups": ["feed"],
        "required": ["challenge_id", "from_status", "to_status"],
        "optional": ["seq"],
        "desc": "挑战状态迁移",
    },
    {
        "event": CHALLENGE_PLACEMENTS_COMPUTED,
        "groups": ["feed"],
        "required": ["challenge_id", "results"],
        "optional": ["seq"],
        "desc": "挑战名次已（重新）计算，results 为 [{result_id, team_id, placement, points}]",
    },
    {
        "event": CHALLENGE_POINTS_AWARDED,
        "groups": ["feed"],
        "required": ["challenge_id", "team_points"],
        "optional": ["seq"],
        "desc": "挑战积分已发放，team_points 为 {team_id: points}",
    },
    {
        "event": CREDIT_APPLIED,
        "groups": ["user", "team"],
        "required": ["target", "amount", "total", "source_type", "source_id"],
        "optional": ["level", "level_up", "seq"],
        "desc": "积分入账；个人入账附带等级变化",
    },
    {
        "event": TEAM_ASSIGNED,
        "groups": ["user"],
        "required": ["team_id", "team"],
        "optional": ["seq"],
        "desc": "管理员将参与者分配到队伍",
    },
    {
        "event": LEADERBOARD_SNAPSHOT,
        "groups": ["feed"],
        "required": ["users", "teams", "generated_at"],
        "optional": ["top_limit", "seq"],
        "desc": "排行榜前 N 名快照（节流推送）",
    },
]
