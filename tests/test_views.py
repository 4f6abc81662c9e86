"""Test the task view transformer."""
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import ValidationError
from verticals.tasks.models.refs import (
    CommentSnapshot,
    Resolved,
    SubTaskSnapshot,
    TaskSnapshot,
    Unresolved,
    UserSnapshot,
)
from verticals.tasks.views import build_comment_tree, render_task, render_task_summary

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
ALICE = UserSnapshot(id="u-alice", first_name="Alice", last_name="Nguyen", email="alice@example.com")
BOB = UserSnapshot(id="u-bob", first_name="Bob", last_name="Okafor", email="bob@example.com")


def _comment(cid, parent=None, minutes=0, author=ALICE):
    return CommentSnapshot(
        id=cid,
        text=f"comment {cid}",
        author=Resolved(author),
        subtask_id="s1",
        parent_comment_id=parent,
        is_edited=False,
        created_at=T0 + timedelta(minutes=minutes),
        updated_at=T0 + timedelta(minutes=minutes),
    )


def _subtask(comments=(), **overrides):
    data = dict(
        id="s1",
        task_id="t1",
        title="Draft",
        description=None,
        status="in-progress",
        priority="high",
        due_date=T0 + timedelta(days=2),
        created_by=Resolved(ALICE),
        assigned_to=None,
        progress=30,
        created_at=T0,
        updated_at=T0,
        comments=tuple(comments),
    )
    data.update(overrides)
    return SubTaskSnapshot(**data)


def _task(**overrides):
    data = dict(
        id="t1",
        title="Launch",
        description="Go live",
        status="in-progress",
        priority="medium",
        due_date=T0 + timedelta(days=1),
        created_by=Resolved(ALICE),
        assigned_to=Resolved(BOB),
        progress=30,
        created_at=T0,
        updated_at=T0,
        participants=(Resolved(ALICE), Resolved(BOB)),
        subtasks=(_subtask(),),
    )
    data.update(overrides)
    return TaskSnapshot(**data)


def test_render_task_shape():
    view = render_task(_task())
    assert view["id"] == "t1"
    assert view["dueDate"] == "2025-03-02T09:00:00+00:00"
    assert view["createdBy"] == {
        "id": "u-alice", "firstName": "Alice", "lastName": "Nguyen", "email": "alice@example.com",
    }
    assert view["assignedTo"]["id"] == "u-bob"
    assert [p["id"] for p in view["participants"]] == ["u-alice", "u-bob"]
    assert view["duration"] == 24 * 60 * 60 * 1000
    subtask = view["subtasks"][0]
    assert subtask["description"] == ""
    assert subtask["comments"] == []
    assert "assignedTo" not in subtask


def test_unassigned_task_omits_assignee():
    view = render_task(_task(assigned_to=None))
    assert "assignedTo" not in view


def test_reply_tree_nests_recursively():
    comments = [
        _comment("c1", minutes=0),
        _comment("c2", parent="c1", minutes=1, author=BOB),
        _comment("c3", parent="c2", minutes=2),
        _comment("c4", minutes=3),
        _comment("c5", parent="c1", minutes=4),
    ]
    tree = build_comment_tree(comments)

    assert [c["id"] for c in tree] == ["c1", "c4"]
    c1 = tree[0]
    assert [r["id"] for r in c1["replies"]] == ["c2", "c5"]
    assert c1["replies"][0]["author"]["id"] == "u-bob"
    assert [r["id"] for r in c1["replies"][0]["replies"]] == ["c3"]
    assert c1["replies"][0]["replies"][0]["replies"] == []
    assert tree[1]["replies"] == []


def test_subtask_comments_render_as_tree():
    subtask = _subtask(comments=[_comment("c1"), _comment("c2", parent="c1", minutes=1)])
    view = render_task(_task(subtasks=(subtask,)))
    comments = view["subtasks"][0]["comments"]
    assert len(comments) == 1
    assert comments[0]["replies"][0]["parentComment"] == "c1"


def test_unresolved_reference_is_rejected():
    with pytest.raises(ValidationError):
        render_task(_task(created_by=Unresolved("u-alice")))
    with pytest.raises(ValidationError):
        render_task(_task(participants=(Resolved(ALICE), Unresolved("u-ghost"))))


def test_missing_required_field_is_rejected():
    with pytest.raises(ValidationError, match="title"):
        render_task(_task(title=""))
    with pytest.raises(ValidationError, match="status"):
        render_task_summary(_task(status="paused"))


def test_summary_has_no_tree():
    view = render_task_summary(_task())
    assert "subtasks" not in view
    assert "participants" not in view
    assert view["progress"] == 30
