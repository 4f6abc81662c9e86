"""Test task hierarchy rules (pure functions)."""
import pytest

from core.errors import Conflict, ValidationError
from core.models.base import new_id
from verticals.tasks.rules import (
    PRIORITY_WEIGHT,
    aggregate_progress,
    check_not_participant,
    check_parent_comment,
    check_valid_id,
    clamp_progress,
    enforce,
    evaluate_rules,
)


def test_aggregate_progress_no_subtasks():
    assert aggregate_progress([]) == 0


def test_aggregate_progress_mean():
    assert aggregate_progress([40, 100]) == 70
    assert aggregate_progress([40, 80, 0]) == 40


def test_aggregate_progress_ties_round_up():
    assert aggregate_progress([40, 41]) == 41
    assert aggregate_progress([0, 1]) == 1
    assert aggregate_progress([2, 3]) == 3


def test_aggregate_progress_missing_counts_as_zero():
    assert aggregate_progress([None, 100]) == 50


def test_aggregate_progress_clamps_out_of_range():
    assert aggregate_progress([150, -20]) == 50


def test_clamp_progress():
    assert clamp_progress(None) == 0
    assert clamp_progress(-5) == 0
    assert clamp_progress(101) == 100
    assert clamp_progress(55) == 55


def test_check_valid_id():
    assert check_valid_id(new_id()).passed
    result = check_valid_id("not-an-id", "task ID")
    assert not result.passed
    assert result.message == "Invalid task ID format"
    assert not check_valid_id(None).passed


def test_check_not_participant():
    assert check_not_participant(["u1", "u2"], "u3").passed
    result = check_not_participant(["u1", "u2"], "u1")
    assert not result.passed
    assert result.message == "User is already a participant"


def test_check_parent_comment():
    assert check_parent_comment("s1", "s1").passed
    missing = check_parent_comment(None, "s1")
    assert not missing.passed
    assert missing.message == "Parent comment not found"
    other = check_parent_comment("s2", "s1")
    assert not other.passed
    assert other.message == "Parent comment belongs to a different subtask"


def test_evaluate_rules_collects_failures():
    result = evaluate_rules(
        check_valid_id(new_id(), "task ID"),
        check_valid_id("bad", "user ID"),
    )
    assert not result.all_passed
    assert len(result.failed) == 1
    assert result.failed[0].message == "Invalid user ID format"


def test_enforce_raises_first_failure():
    with pytest.raises(ValidationError, match="Invalid task ID format"):
        enforce(evaluate_rules(check_valid_id("x", "task ID"), check_valid_id("y", "user ID")))


def test_enforce_custom_error():
    with pytest.raises(Conflict):
        enforce(check_not_participant(["u1"], "u1"), Conflict)
    enforce(check_not_participant([], "u1"), Conflict)


def test_priority_weight_order():
    assert PRIORITY_WEIGHT["low"] < PRIORITY_WEIGHT["medium"] < PRIORITY_WEIGHT["high"]
    assert set(PRIORITY_WEIGHT) == {"low", "medium", "high"}
