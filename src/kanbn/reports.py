"""Status and burndown reports over hydrated tasks.

Result dictionaries use camelCase keys; they are the output contract of
`kanbn status --json` and `kanbn burndown --json`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from kanbn.dates import RESOLUTIONS, humanize_delta, milliseconds, normalise_date, now as utc_now, to_utc
from kanbn.errors import NotFoundError
from kanbn.ids import add_file_extension
from kanbn.models import HydratedTask, Index

PERIOD_FIELDS = ("created", "started", "completed", "due")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def select_sprint(sprints: Sequence[dict[str, Any]], sprint: int | str | None) -> int:
    """Return the 0-based position of a sprint given by number or name.

    None selects the current (last) sprint.
    """
    if sprint is None:
        return len(sprints) - 1
    if isinstance(sprint, int):
        if sprint < 1 or sprint > len(sprints):
            raise NotFoundError(f"Sprint {sprint} does not exist")
        return sprint - 1
    for i, candidate in enumerate(sprints):
        if candidate.get("name") == sprint:
            return i
    raise NotFoundError(f'No sprint found with name "{sprint}"')


def _date_fields(index: Index) -> list[str]:
    custom = [f["name"] for f in index.options.get("customFields", ()) if f.get("type") == "date"]
    return [*PERIOD_FIELDS, *custom]


def workload_in_period(tasks: Iterable[HydratedTask], field: str, start: datetime, end: datetime) -> dict[str, Any]:
    """Tasks whose `field` date falls within [start, end], with their total workload."""
    matched = [
        task
        for task in tasks
        if isinstance(task.metadata.get(field), datetime) and start <= to_utc(task.metadata[field]) <= end
    ]
    return {
        "tasks": [{"id": t.id, "column": t.column, "workload": t.workload} for t in matched],
        "workload": sum(t.workload for t in matched),
    }


def _column_count(index: Index, columns: Iterable[str]) -> int:
    return sum(len(ids) for column, ids in index.columns.items() if column in columns)


def _completed(index: Index, task: HydratedTask) -> bool:
    return "completed" in task.metadata or task.column in index.options.get("completedColumns", ())


def _due_entry(task: HydratedTask) -> dict[str, Any]:
    due = task.due_data
    return {
        "task": task.id,
        "workload": task.workload,
        "progress": task.progress,
        "remainingWorkload": task.remaining_workload,
        "completed": due.completed,
        "completedDate": due.completed_date,
        "dueDate": due.due_date,
        "overdue": due.overdue,
        "dueDelta": milliseconds(due.delta),
        "dueMessage": due.message,
    }


def _sprint_status(
    index: Index,
    tasks: list[HydratedTask],
    sprint: int | str | None,
    now: datetime,
) -> dict[str, Any]:
    sprints = index.options["sprints"]
    position = select_sprint(sprints, sprint)
    current = len(sprints)
    selected = sprints[position]
    start = to_utc(selected["start"])
    last = position == current - 1
    end = now if last else to_utc(sprints[position + 1]["start"])

    result: dict[str, Any] = {
        "number": position + 1,
        "name": selected["name"],
        "start": start,
    }
    if not last:
        result["end"] = end
        result["current"] = current
    if selected.get("description"):
        result["description"] = selected["description"]

    duration = end - start
    result["durationDelta"] = milliseconds(duration)
    result["durationMessage"] = humanize_delta(duration)
    for field in _date_fields(index):
        result[field] = workload_in_period(tasks, field, start, end)
    return result


def _period_status(index: Index, tasks: list[HydratedTask], dates: Sequence[datetime]) -> dict[str, Any]:
    dates = [to_utc(d) for d in dates]
    if len(dates) == 1:
        start = dates[0].replace(hour=0, minute=0, second=0, microsecond=0)
        end = dates[0].replace(hour=23, minute=59, second=59, microsecond=999000)
    else:
        start, end = min(dates), max(dates)
    result: dict[str, Any] = {"start": start, "end": end}
    for field in _date_fields(index):
        result[field] = workload_in_period(tasks, field, start, end)
    return result


def status(
    index: Index,
    tasks: Iterable[HydratedTask] | None = None,
    untracked: Iterable[str] | None = None,
    due: bool = False,
    sprint: int | str | None = None,
    dates: Sequence[datetime] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Board statistics.

    Task counts come from the index alone. Workloads, due status, assignees,
    sprint and period figures are only added when hydrated tasks are given.
    """
    options = index.options
    result: dict[str, Any] = {"name": index.name}
    if untracked is not None:
        result["untrackedTasks"] = [add_file_extension(tid) for tid in untracked]

    result["tasks"] = sum(len(ids) for ids in index.columns.values())
    result["columnTasks"] = {column: len(ids) for column, ids in index.columns.items()}
    if options.get("startedColumns"):
        result["startedTasks"] = _column_count(index, options["startedColumns"])
    if options.get("completedColumns"):
        result["completedTasks"] = _column_count(index, options["completedColumns"])

    if tasks is None:
        return result
    tasks = list(tasks)
    now = now or utc_now()

    if due:
        result["dueTasks"] = [_due_entry(task) for task in tasks if task.due_data is not None]

    column_workloads = {column: {"workload": 0, "remainingWorkload": 0} for column in index.columns}
    for task in tasks:
        totals = column_workloads.setdefault(task.column, {"workload": 0, "remainingWorkload": 0})
        totals["workload"] += task.workload
        totals["remainingWorkload"] += task.remaining_workload
    result["totalWorkload"] = sum(task.workload for task in tasks)
    result["totalRemainingWorkload"] = sum(task.remaining_workload for task in tasks)
    result["columnWorkloads"] = column_workloads
    result["taskWorkloads"] = {
        task.id: {
            "workload": task.workload,
            "progress": task.progress,
            "remainingWorkload": task.remaining_workload,
            "completed": _completed(index, task),
        }
        for task in tasks
    }

    assigned: dict[str, dict[str, Any]] = {}
    for task in tasks:
        if "assigned" not in task.metadata:
            continue
        totals = assigned.setdefault(task.metadata["assigned"], {"total": 0, "workload": 0, "remainingWorkload": 0})
        totals["total"] += 1
        totals["workload"] += task.workload
        totals["remainingWorkload"] += task.remaining_workload
    if assigned:
        result["assigned"] = assigned

    if options.get("sprints"):
        result["sprint"] = _sprint_status(index, tasks, sprint, now)
    if dates:
        result["period"] = _period_status(index, tasks, dates)
    return result


# --- Burndown ---


@dataclass(frozen=True)
class _Events:
    id: str
    workload: float
    created: datetime
    started: datetime | None
    completed: datetime | None

    def active_at(self, when: datetime) -> bool:
        return self.started is not None and self.started <= when and (self.completed is None or self.completed > when)


def _events(index: Index, task: HydratedTask) -> _Events:
    metadata = task.metadata
    created = to_utc(metadata["created"]) if "created" in metadata else _EPOCH
    started = metadata.get("started")
    if started is None and task.column in index.options.get("startedColumns", ()):
        started = created
    completed = metadata.get("completed")
    if completed is None and task.column in index.options.get("completedColumns", ()):
        completed = created
    return _Events(
        id=task.id,
        workload=task.workload,
        created=created,
        started=to_utc(started) if started is not None else None,
        completed=to_utc(completed) if completed is not None else None,
    )


def _normalised(events: _Events, resolution: str) -> _Events:
    return _Events(
        id=events.id,
        workload=events.workload,
        created=normalise_date(events.created, resolution),
        started=normalise_date(events.started, resolution) if events.started else None,
        completed=normalise_date(events.completed, resolution) if events.completed else None,
    )


def auto_resolution(delta: timedelta) -> str:
    """Pick a date resolution suited to the length of a chart."""
    if delta >= timedelta(days=7):
        return "days"
    if delta >= timedelta(days=1):
        return "hours"
    if delta >= timedelta(hours=1):
        return "minutes"
    return "seconds"


def _data_point(events: list[_Events], when: datetime) -> dict[str, Any]:
    active = [e for e in events if e.active_at(when)]
    happened = [
        {"eventType": kind, "task": e.id}
        for kind in ("created", "started", "completed")
        for e in events
        if getattr(e, kind) == when
    ]
    return {
        "x": when,
        "y": sum(e.workload for e in active),
        "count": len(active),
        "tasks": happened,
    }


def burndown(
    index: Index,
    tasks: Iterable[HydratedTask],
    sprints: Sequence[int | str] | None = None,
    dates: Sequence[datetime] | None = None,
    assigned: str | None = None,
    columns: Sequence[str] | None = None,
    normalise: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Active workload over time, one series per sprint or date range.

    With no sprints or dates the chart covers the current sprint, or all
    time when the board has no sprints. Each series has a data point at
    its start, its end, and every created/started/completed date inside it.
    """
    now = now or utc_now()
    selected = [
        task
        for task in tasks
        if (assigned is None or task.metadata.get("assigned") == assigned)
        and (columns is None or task.column in columns)
    ]
    events = [_events(index, task) for task in selected]
    index_sprints = index.options.get("sprints") or []

    series: list[dict[str, Any]] = []
    if sprints is None and dates is None:
        if index_sprints:
            current = index_sprints[-1]
            series.append({"sprint": current, "from": to_utc(current["start"]), "to": now})
        else:
            known = [
                to_utc(task.metadata[field])
                for task in selected
                for field in ("created", "started", "completed")
                if isinstance(task.metadata.get(field), datetime)
            ]
            series.append({"from": min(known, default=now), "to": now})
    else:
        if sprints is not None:
            if not index_sprints:
                raise NotFoundError("No sprints defined")
            for sprint in sprints:
                position = select_sprint(index_sprints, sprint)
                last = position == len(index_sprints) - 1
                series.append(
                    {
                        "sprint": index_sprints[position],
                        "from": to_utc(index_sprints[position]["start"]),
                        "to": now if last else to_utc(index_sprints[position + 1]["start"]),
                    }
                )
        if dates:
            dates = [to_utc(d) for d in dates]
            series.append({"from": min(dates), "to": now if len(dates) == 1 else max(dates)})

    if normalise == "auto" and series:
        normalise = auto_resolution(series[0]["to"] - series[0]["from"])
    if normalise in RESOLUTIONS:
        for s in series:
            s["from"] = normalise_date(s["from"], normalise)
            s["to"] = normalise_date(s["to"], normalise)
        events = [_normalised(e, normalise) for e in events]

    for s in series:
        start, end = s["from"], s["to"]
        points = {start, end}
        for e in events:
            for when in (e.created, e.started, e.completed):
                if when is not None and start <= when <= end:
                    points.add(when)
        s["dataPoints"] = [_data_point(events, when) for when in sorted(points)]
    return {"series": series}
