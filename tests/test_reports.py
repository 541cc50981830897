"""Tests for status and burndown reports."""

from datetime import datetime, timedelta, timezone

import pytest

from kanbn.errors import NotFoundError
from kanbn.models import Index, Task
from kanbn.query import hydrate_task
from kanbn.reports import auto_resolution, burndown, select_sprint, status, workload_in_period

JAN = [datetime(2020, 1, day, tzinfo=timezone.utc) for day in range(1, 32)]
NOW = JAN[19]


def _index(**options):
    return Index(
        name="Board",
        options={
            "startedColumns": ["Doing"],
            "completedColumns": ["Done"],
            "sprints": [
                {"start": JAN[0], "name": "Sprint 1"},
                {"start": JAN[14], "name": "Sprint 2", "description": "Second"},
            ],
            **options,
        },
        columns={"Todo": ("a", "b"), "Doing": ("c",), "Done": ("d",)},
    )


def _tasks(index):
    tasks = [
        Task(name="a", metadata={"created": JAN[1], "tags": ["Small"], "assigned": "amy"}),
        Task(name="b", metadata={"created": JAN[15], "tags": ["Large"], "due": JAN[17]}),
        Task(name="c", metadata={"created": JAN[2], "started": JAN[16], "tags": ["Medium"], "assigned": "amy"}),
        Task(name="d", metadata={"created": JAN[3], "started": JAN[4], "completed": JAN[16], "tags": ["Tiny"]}),
    ]
    return [hydrate_task(index, task, now=NOW) for task in tasks]


def test_select_sprint():
    sprints = _index().options["sprints"]
    assert select_sprint(sprints, None) == 1
    assert select_sprint(sprints, 1) == 0
    assert select_sprint(sprints, "Sprint 2") == 1
    with pytest.raises(NotFoundError, match="Sprint 3 does not exist"):
        select_sprint(sprints, 3)
    with pytest.raises(NotFoundError, match='No sprint found with name "Nope"'):
        select_sprint(sprints, "Nope")


def test_status_counts_only():
    assert status(_index()) == {
        "name": "Board",
        "tasks": 4,
        "columnTasks": {"Todo": 2, "Doing": 1, "Done": 1},
        "startedTasks": 1,
        "completedTasks": 1,
    }


def test_status_untracked():
    result = status(_index(), untracked=["loose", "other.md"])
    assert result["untrackedTasks"] == ["loose.md", "other.md"]


def test_status_workloads():
    index = _index()
    result = status(index, _tasks(index), now=NOW)
    assert result["totalWorkload"] == 2 + 5 + 3 + 1
    assert result["totalRemainingWorkload"] == 2 + 5 + 3
    assert result["columnWorkloads"]["Todo"] == {"workload": 7, "remainingWorkload": 7}
    assert result["columnWorkloads"]["Done"] == {"workload": 1, "remainingWorkload": 0}
    assert result["taskWorkloads"]["d"] == {"workload": 1, "progress": 1, "remainingWorkload": 0, "completed": True}
    assert result["assigned"] == {"amy": {"total": 2, "workload": 5, "remainingWorkload": 5}}
    assert "dueTasks" not in result


def test_status_due():
    index = _index()
    result = status(index, _tasks(index), due=True, now=NOW)
    assert len(result["dueTasks"]) == 1
    due = result["dueTasks"][0]
    assert due["task"] == "b"
    assert due["overdue"] is True
    assert due["dueDelta"] == 2 * 24 * 60 * 60 * 1000
    assert due["dueMessage"] == "2 days overdue"


def test_status_current_sprint():
    index = _index()
    sprint = status(index, _tasks(index), now=NOW)["sprint"]
    assert sprint["number"] == 2
    assert sprint["name"] == "Sprint 2"
    assert sprint["description"] == "Second"
    assert sprint["start"] == JAN[14]
    assert "end" not in sprint
    assert sprint["durationDelta"] == 5 * 24 * 60 * 60 * 1000
    assert sprint["durationMessage"] == "5 days"
    assert [t["id"] for t in sprint["created"]["tasks"]] == ["b"]
    assert sprint["started"]["workload"] == 3
    assert sprint["completed"]["tasks"] == [{"id": "d", "column": "Done", "workload": 1}]


def test_status_past_sprint():
    index = _index()
    sprint = status(index, _tasks(index), sprint=1, now=NOW)["sprint"]
    assert sprint["number"] == 1
    assert sprint["end"] == JAN[14]
    assert sprint["current"] == 2
    assert [t["id"] for t in sprint["created"]["tasks"]] == ["a", "c", "d"]


def test_status_single_day_period():
    index = _index()
    period = status(index, _tasks(index), dates=[JAN[16]], now=NOW)["period"]
    assert period["start"] == JAN[16]
    assert period["end"] == JAN[16] + timedelta(days=1) - timedelta(milliseconds=1)
    assert [t["id"] for t in period["started"]["tasks"]] == ["c"]
    assert [t["id"] for t in period["completed"]["tasks"]] == ["d"]


def test_status_custom_date_fields_in_period():
    index = _index(customFields=[{"name": "reviewed", "type": "date"}])
    tasks = [hydrate_task(index, Task(name="a", metadata={"reviewed": JAN[5]}), now=NOW)]
    period = status(index, tasks, dates=[JAN[0], JAN[9]], now=NOW)["period"]
    assert period["reviewed"]["tasks"] == [{"id": "a", "column": "Todo", "workload": 2}]


def test_workload_in_period_inclusive():
    index = _index()
    result = workload_in_period(_tasks(index), "created", JAN[1], JAN[3])
    assert [t["id"] for t in result["tasks"]] == ["a", "c", "d"]
    assert result["workload"] == 6


def test_auto_resolution():
    assert auto_resolution(timedelta(days=10)) == "days"
    assert auto_resolution(timedelta(days=2)) == "hours"
    assert auto_resolution(timedelta(hours=3)) == "minutes"
    assert auto_resolution(timedelta(minutes=5)) == "seconds"


def test_burndown_current_sprint():
    index = _index()
    result = burndown(index, _tasks(index), now=NOW)
    assert len(result["series"]) == 1
    series = result["series"][0]
    assert series["sprint"]["name"] == "Sprint 2"
    assert series["from"] == JAN[14]
    assert series["to"] == NOW

    points = series["dataPoints"]
    assert [p["x"] for p in points] == [JAN[14], JAN[15], JAN[16], NOW]
    # d started on the 5th and completed on the 17th; c started on the 17th
    assert [p["y"] for p in points] == [1, 1, 3, 3]
    assert points[2]["tasks"] == [
        {"eventType": "started", "task": "c"},
        {"eventType": "completed", "task": "d"},
    ]


def test_burndown_filters_assigned_and_columns():
    index = _index()
    result = burndown(index, _tasks(index), sprints=[2], assigned="amy", now=NOW)
    assert [p["y"] for p in result["series"][0]["dataPoints"]] == [0, 3, 3]
    result = burndown(index, _tasks(index), dates=[JAN[0], JAN[9]], columns=["Done"], now=NOW)
    points = result["series"][0]["dataPoints"]
    assert points[0]["x"] == JAN[0]
    assert points[-1]["x"] == JAN[9]
    assert max(p["y"] for p in points) == 1


def test_burndown_normalise():
    index = _index()
    now = NOW + timedelta(hours=5, minutes=3)
    result = burndown(index, _tasks(index), normalise="days", now=now)
    assert result["series"][0]["to"] == NOW


def test_burndown_without_sprints():
    index = _index(sprints=[])
    result = burndown(index, _tasks(index), now=NOW)
    assert result["series"][0]["from"] == JAN[1]
    with pytest.raises(NotFoundError, match="No sprints defined"):
        burndown(index, _tasks(index), sprints=[1], now=NOW)
