"""Task hierarchy business rules — pure functions.

Progress math, comment threading and participant membership checks. Built
on the rules engine pattern; nothing here touches the database.
"""

import math
from typing import Iterable, Optional

from core.models.base import is_valid_id
from patterns.rules_engine import RuleResult, RuleSetResult, enforce, evaluate_rules
from verticals.tasks.models.schemas import TaskPriority

__all__ = [
    "RuleResult",
    "RuleSetResult",
    "enforce",
    "evaluate_rules",
    "clamp_progress",
    "aggregate_progress",
    "check_valid_id",
    "check_parent_comment",
    "check_not_participant",
    "PRIORITY_WEIGHT",
]


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

def clamp_progress(value: Optional[float], low: int = 0, high: int = 100) -> float:
    """Missing values count as 0; everything else is pinned into [low, high]."""
    if value is None:
        return float(low)
    return float(min(max(value, low), high))


def aggregate_progress(values: Iterable[Optional[float]]) -> int:
    """Rounded mean of subtask progress, 0 for an empty task.

    Halves round up (40.5 -> 41), matching what clients display.
    """
    clamped = [clamp_progress(v) for v in values]
    if not clamped:
        return 0
    return int(math.floor(sum(clamped) / len(clamped) + 0.5))


# ---------------------------------------------------------------------------
# Identity & membership
# ---------------------------------------------------------------------------

def check_valid_id(value: object, label: str = "ID") -> RuleResult:
    """Ids are canonical UUID strings."""
    passed = is_valid_id(value)
    return RuleResult(
        passed=passed,
        rule_name="valid_id",
        message=f"{label} is valid" if passed else f"Invalid {label} format",
        details={"value": value},
    )


def check_not_participant(participant_ids: Iterable[str], user_id: str) -> RuleResult:
    """A user can only be added to a task's participants once."""
    present = user_id in set(participant_ids)
    return RuleResult(
        passed=not present,
        rule_name="not_participant",
        message="User is already a participant" if present else "User can be added",
        details={"user_id": user_id},
    )


def check_parent_comment(
    parent_subtask_id: Optional[str],
    subtask_id: str,
) -> RuleResult:
    """A reply must point at an existing comment on the same subtask.

    `parent_subtask_id` is the subtask of the referenced comment, or None if
    the referenced comment does not exist. Since the parent must already
    exist, reply chains can never form a cycle.
    """
    if parent_subtask_id is None:
        return RuleResult(
            passed=False,
            rule_name="parent_comment",
            message="Parent comment not found",
        )
    same = parent_subtask_id == subtask_id
    return RuleResult(
        passed=same,
        rule_name="parent_comment",
        message=(
            "Parent comment is valid"
            if same
            else "Parent comment belongs to a different subtask"
        ),
        details={"parent_subtask_id": parent_subtask_id, "subtask_id": subtask_id},
    )


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

PRIORITY_WEIGHT = {
    TaskPriority.LOW.value: 1,
    TaskPriority.MEDIUM.value: 2,
    TaskPriority.HIGH.value: 3,
}

