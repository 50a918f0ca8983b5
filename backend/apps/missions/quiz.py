"""
测验判分

quiz_data 结构：
    {
        "questions": [
            {"id": "q1", "question": "...", "answers": [{"id": "a", "text": "...", "is_correct": true}, ...]},
        ],
        "passing_score": 60,
        "time_limit": 120,
        "mode": "classic" | "speedrun",
    }

提交的 answers 为 {题目 id: 选项 id}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from apps.common.exceptions import ValidationError


@dataclass(frozen=True)
class QuizOutcome:
    correct: int
    total: int
    score: int
    passed: bool
    time_ms: Optional[int]


def round_percent(correct: int, total: int) -> int:
    """round(100 * correct / total)，.5 向上取整"""
    if total <= 0:
        raise ValidationError(message="测验没有题目")
    return (200 * correct + total) // (2 * total)


def correct_answer_id(question: Mapping[str, Any]) -> Optional[str]:
    for answer in question.get("answers") or []:
        if answer.get("is_correct"):
            return str(answer.get("id"))
    return None


def grade(quiz_data: Mapping[str, Any], answers: Mapping[str, Any], *, time_ms: Optional[int] = None) -> QuizOutcome:
    """
    按题判分；通过线为 passing_score（百分制）
    speedrun 模式下只有全部答对且通过时才保留用时
    """
    questions = list(quiz_data.get("questions") or [])
    total = len(questions)
    correct = sum(
        1
        for q in questions
        if (expected := correct_answer_id(q)) is not None and str(answers.get(str(q.get("id")), "")) == expected
    )
    score = round_percent(correct, total)
    passed = score >= int(quiz_data.get("passing_score", 0))
    keep_time = quiz_data.get("mode") == "speedrun" and passed and correct == total
    return QuizOutcome(
        correct=correct,
        total=total,
        score=score,
        passed=passed,
        time_ms=time_ms if keep_time else None,
    )


def public_quiz(quiz_data: Mapping[str, Any]) -> dict:
    """参与者视角：去掉正确答案标记"""
    return {
        **{k: v for k, v in quiz_data.items() if k != "questions"},
        "questions": [
            {
                "id": q.get("id"),
                "question": q.get("question"),
                "answers": [{"id": a.get("id"), "text": a.get("text")} for a in q.get("answers") or []],
            }
            for q in quiz_data.get("questions") or []
        ],
    }
