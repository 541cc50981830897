"""Board layout: which tasks appear in which cell, rendered as text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from kanbn.config import DEFAULTS, Defaults
from kanbn.dates import format_date
from kanbn.errors import NotFoundError
from kanbn.models import HydratedTask, Index
from kanbn.query import filter_and_sort_tasks

TASK_SEPARATOR = "\n\n"

_PLACEHOLDER = re.compile(r"\$?\{(\w+)\}")


@dataclass(frozen=True)
class Heading:
    name: str
    completed: bool = False


@dataclass(frozen=True)
class Lane:
    """A row of the board. cells[i] holds the rendered tasks for headings[i]."""

    name: str
    cells: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class BoardLayout:
    headings: tuple[Heading, ...] = ()
    lanes: tuple[Lane, ...] = ()


def date_format(index: Index, defaults: Defaults = DEFAULTS) -> str:
    return index.options.get("dateFormat", defaults.date_format)


def task_template(index: Index, defaults: Defaults = DEFAULTS) -> str:
    return index.options.get("taskTemplate", defaults.task_template)


def _placeholders(hydrated: HydratedTask, fmt: str) -> dict[str, str]:
    metadata = hydrated.metadata

    def when(key: str) -> str:
        return format_date(metadata[key], fmt) if key in metadata else ""

    due = hydrated.due_data
    return {
        "id": hydrated.id,
        "name": hydrated.name,
        "column": hydrated.column or "",
        "created": when("created"),
        "updated": when("updated"),
        "started": when("started"),
        "completed": when("completed"),
        "due": when("due"),
        "workload": f"{hydrated.workload:g}",
        "progress": f"{hydrated.progress:g}",
        "remainingWorkload": str(hydrated.remaining_workload),
        "assigned": metadata.get("assigned", ""),
        "tags": ", ".join(metadata.get("tags") or []),
        "overdue": "overdue" if due and due.overdue else "",
        "dueMessage": due.message if due else "",
    }


def render_task(template: str, hydrated: HydratedTask, fmt: str = DEFAULTS.date_format) -> str:
    """Fill {placeholder} (or ${placeholder}) slots in template.

    Only the fixed set of task fields is available. Unknown placeholders are
    left as written. Blank lines left by empty fields are dropped.
    """
    values = _placeholders(hydrated, fmt)

    def substitute(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    text = _PLACEHOLDER.sub(substitute, template)
    return "\n".join(line for line in text.split("\n") if line.strip())


def board_layout(
    index: Index,
    tasks: Iterable[HydratedTask] | None = None,
    view: str | None = None,
    defaults: Defaults = DEFAULTS,
) -> BoardLayout:
    """Arrange tasks into headings and lanes.

    Without tasks, cells hold bare task ids and views are unavailable.
    Without a view there is one unnamed lane with every visible column in
    index order. A view's cell holds the tasks matching the column's
    filters merged with the lane's, sorted by the column's sorters.
    """
    completed_columns = index.options.get("completedColumns", ())
    if tasks is None:
        rendered = {tid: tid for ids in index.columns.values() for tid in ids}
        hydrated: dict[str, HydratedTask] = {}
        view = None
    else:
        template = task_template(index, defaults)
        fmt = date_format(index, defaults)
        hydrated = {h.id: h for h in tasks}
        rendered = {tid: render_task(template, h, fmt) for tid, h in hydrated.items()}

    if view is None:
        hidden = index.options.get("hiddenColumns", ())
        columns = [column for column in index.columns if column not in hidden]
        headings = tuple(Heading(column, column in completed_columns) for column in columns)
        cells = tuple(tuple(rendered.get(tid, tid) for tid in index.columns[column]) for column in columns)
        return BoardLayout(headings=headings, lanes=(Lane(name="", cells=cells),))

    settings = next((v for v in index.options.get("views", ()) if v.get("name") == view), None)
    if settings is None:
        raise NotFoundError(f'No view found with name "{view}"')

    headings = tuple(Heading(c["name"], c["name"] in completed_columns) for c in settings["columns"])
    plain_tasks = [h.task for h in hydrated.values()]
    lanes = []
    for lane in settings.get("lanes") or [{"name": ""}]:
        cells = []
        for column in settings["columns"]:
            filters = {**(column.get("filters") or {}), **(lane.get("filters") or {})}
            matched = filter_and_sort_tasks(index, plain_tasks, filters, column.get("sorters"), defaults)
            cells.append(tuple(rendered[task.id] for task in matched))
        lanes.append(Lane(name=lane["name"], cells=tuple(cells)))
    return BoardLayout(headings=headings, lanes=tuple(lanes))
