"""Derived task fields, filtering and multi-key sorting."""

from __future__ import annotations

import locale
import math
import re
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Iterable, Mapping, Sequence

from kanbn.config import DEFAULTS, Defaults
from kanbn.dates import format_iso, humanize_delta, now as utc_now, same_day, try_parse_date
from kanbn.errors import InvalidFilterError, SchemaValidationError
from kanbn.model.index import find_task_column
from kanbn.model.task import set_metadata
from kanbn.models import DueData, HydratedTask, Index, Sorter, Task

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_JS_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")

CUSTOM_FIELD_TYPES = {
    "boolean": (bool,),
    "string": (str,),
    "number": (int, float),
    "date": (datetime,),
}


# --- Derived fields ---


def workload(index: Index, task: Task, defaults: Defaults = DEFAULTS) -> float:
    """Sum of the weights of the task's workload tags, or the default workload."""
    default = index.options.get("defaultTaskWorkload", defaults.task_workload)
    weights = index.options.get("taskWorkloadTags", defaults.task_workload_tags)
    tags = task.metadata.get("tags") or []
    matched = [weights[tag] for tag in weights if tag in tags]
    if not matched:
        return default
    return sum(matched)


def task_completed(index: Index, task: Task) -> bool:
    """A task is complete if it has a completed date or sits in a completed column."""
    if "completed" in task.metadata:
        return True
    column = find_task_column(index, task.id)
    return column is not None and column in index.options.get("completedColumns", ())


def progress(index: Index, task: Task) -> float:
    if task_completed(index, task):
        return 1
    value = task.metadata.get("progress", 0)
    return max(0.0, min(1.0, value))


def due_data(index: Index, task: Task, now: datetime | None = None) -> DueData | None:
    """Due status for a task with a due date, None otherwise.

    The delta runs from the due date to the completed date, or to now for
    unfinished tasks. A positive delta means the due date has passed.
    """
    if "due" not in task.metadata:
        return None
    completed = task_completed(index, task)
    completed_date = task.metadata.get("completed")
    due = task.metadata["due"]
    delta = (completed_date or now or utc_now()) - due
    overdue = delta.total_seconds() > 0
    message = f"{humanize_delta(delta)} {'overdue' if overdue else 'remaining'}"
    if completed:
        message = f"Completed {message}"
    return DueData(
        completed=completed,
        completed_date=completed_date,
        due_date=due,
        overdue=not completed and overdue,
        delta=delta,
        message=message,
    )


def hydrate_task(
    index: Index,
    task: Task,
    defaults: Defaults = DEFAULTS,
    now: datetime | None = None,
) -> HydratedTask:
    """Compute column, workload, progress and due status for a task."""
    task_workload = workload(index, task, defaults)
    task_progress = progress(index, task)
    return HydratedTask(
        task=task,
        column=find_task_column(index, task.id),
        workload=task_workload,
        progress=task_progress,
        remaining_workload=max(0, math.ceil(task_workload * (1 - task_progress))),
        due_data=due_data(index, task, now),
    )


# --- Text views of list fields ---


def sub_tasks_text(task: Task) -> str:
    return "\n".join(f"[{'x' if s.completed else ' '}] {s.text}" for s in task.sub_tasks)


def relations_text(task: Task) -> str:
    return "\n".join(f"{r.type} {r.task}".strip() for r in task.relations)


def comments_text(task: Task) -> str:
    return "\n".join(f"{c.author or ''} {c.text}".strip() for c in task.comments)


def tags_text(task: Task) -> str:
    return "\n".join(task.metadata.get("tags") or [])


# --- Filtering ---


def compile_pattern(pattern: str, flags: int = re.IGNORECASE) -> re.Pattern:
    """Compile a filter regex, accepting (?<name>...) named groups too."""
    try:
        return re.compile(_JS_NAMED_GROUP.sub("(?P<", pattern), flags)
    except re.error as e:
        raise InvalidFilterError(f'Invalid filter "{pattern}": {e}') from e


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def string_filter(value: Any, text: Any) -> bool:
    """Case-insensitive regex search; a list of patterns is OR'd together.

    Non-string targets are matched against their str() form.
    """
    if text is None:
        return False
    pattern = "|".join(str(v) for v in _as_list(value))
    return compile_pattern(pattern).search(str(text)) is not None


def date_filter(value: Any, when: Any) -> bool:
    """One date matches the same calendar day; several match the range they span."""
    if not isinstance(when, datetime):
        return False
    dates = []
    for item in _as_list(value):
        parsed = try_parse_date(item)
        if parsed is None:
            raise InvalidFilterError(f'Invalid date filter "{item}"')
        dates.append(parsed)
    if len(dates) == 1:
        return same_day(when, dates[0])
    return min(dates) <= when <= max(dates)


def number_filter(value: Any, number: Any) -> bool:
    """Inclusive range test between the smallest and largest filter numbers."""
    if number is None or isinstance(number, bool):
        return False
    try:
        bounds = [float(item) for item in _as_list(value)]
    except (TypeError, ValueError) as e:
        raise InvalidFilterError(f'Invalid number filter "{value}"') from e
    return min(bounds) <= number <= max(bounds)


def _custom_field_matches(field_type: str, value: Any, actual: Any) -> bool:
    if field_type == "boolean":
        return isinstance(actual, bool) and actual == value
    if field_type == "number":
        return number_filter(value, actual)
    if field_type == "string":
        return string_filter(value, actual if isinstance(actual, str) else None)
    if field_type == "date":
        return date_filter(value, actual)
    return True


def task_matches(index: Index, task: Task, filters: Mapping[str, Any], defaults: Defaults = DEFAULTS) -> bool:
    """True if the task passes every filter in the set."""
    metadata = task.metadata
    strings = {
        "id": lambda: task.id,
        "name": lambda: task.name,
        "description": lambda: task.description,
        "column": lambda: find_task_column(index, task.id),
        "assigned": lambda: metadata.get("assigned"),
        "sub-task": lambda: sub_tasks_text(task),
        "tag": lambda: tags_text(task) if "tags" in metadata else None,
        "relation": lambda: relations_text(task),
        "comment": lambda: comments_text(task),
    }
    numbers = {
        "workload": lambda: workload(index, task, defaults),
        "progress": lambda: progress(index, task),
        "count-sub-tasks": lambda: len(task.sub_tasks),
        "count-tags": lambda: len(metadata.get("tags") or []),
        "count-relations": lambda: len(task.relations),
        "count-comments": lambda: len(task.comments),
    }
    dates = ("created", "updated", "started", "completed", "due")

    for key, value in filters.items():
        if key in strings:
            if not string_filter(value, strings[key]()):
                return False
        elif key in numbers:
            if not number_filter(value, numbers[key]()):
                return False
        elif key in dates:
            if not date_filter(value, metadata.get(key)):
                return False

    for custom_field in index.options.get("customFields", ()):
        name = custom_field["name"]
        if name not in filters:
            continue
        if name not in metadata:
            return False
        if not _custom_field_matches(custom_field["type"], filters[name], metadata[name]):
            return False

    return True


def filter_tasks(
    index: Index,
    tasks: Iterable[Task],
    filters: Mapping[str, Any] | None,
    defaults: Defaults = DEFAULTS,
) -> list[Task]:
    """Tasks passing every filter, in input order. No filters keeps everything."""
    tasks = list(tasks)
    if not filters:
        return tasks
    return [task for task in tasks if task_matches(index, task, filters, defaults)]


# --- Sorting ---


def sortable_view(index: Index, task: Task, defaults: Defaults = DEFAULTS) -> dict[str, Any]:
    """Flatten a task into the field mapping sorters read from.

    Metadata keys are spread in; list fields become newline-joined text with
    a matching count field.
    """
    metadata = task.metadata
    tags = metadata.get("tags") or []
    return {
        "id": task.id,
        "name": task.name,
        "description": task.description,
        "column": find_task_column(index, task.id),
        **metadata,
        "created": metadata.get("created"),
        "updated": metadata.get("updated"),
        "started": metadata.get("started"),
        "completed": metadata.get("completed"),
        "due": metadata.get("due"),
        "assigned": metadata.get("assigned"),
        "countSubTasks": len(task.sub_tasks),
        "subTasks": sub_tasks_text(task),
        "countTags": len(tags),
        "tags": "\n".join(tags),
        "countRelations": len(task.relations),
        "relations": relations_text(task),
        "countComments": len(task.comments),
        "comments": comments_text(task),
        "workload": workload(index, task, defaults),
        "progress": progress(index, task),
    }


def sort_filter(value: Any, pattern: str) -> str:
    """Reduce a value to the text its sort regex picks out.

    Each match contributes its named groups joined, else its first group,
    else the whole match. All matches are joined.
    """
    if value is None:
        text = ""
    elif isinstance(value, datetime):
        text = format_iso(value)
    else:
        text = str(value)
    regex = compile_pattern(pattern)
    parts = []
    for match in regex.finditer(text):
        if regex.groupindex:
            parts.append("".join(group or "" for group in match.groupdict().values()))
        elif regex.groups and match.group(1):
            parts.append(match.group(1))
        else:
            parts.append(match.group(0))
    return "".join(parts)


def _missing_like(other: Any) -> Any:
    if isinstance(other, str):
        return ""
    if isinstance(other, datetime):
        return _EPOCH
    return 0


def _sign(number: float) -> int:
    return (number > 0) - (number < 0)


def compare_values(a: Any, b: Any) -> int:
    """Three-way compare; missing values act as empty/zero.

    Strings are casefolded, then ordered by the process's LC_COLLATE
    setting, which the CLI takes from the environment.
    """
    if a is None and b is None:
        return 0
    if a is None:
        a = _missing_like(b)
    if b is None:
        b = _missing_like(a)
    if isinstance(a, str) and isinstance(b, str):
        return _sign(locale.strcoll(a.casefold(), b.casefold()))
    if isinstance(a, datetime) and isinstance(b, datetime):
        return _sign((a - b).total_seconds())
    try:
        return _sign(a - b)
    except TypeError:
        return _sign(locale.strcoll(str(a).casefold(), str(b).casefold()))


def _sorter(sorter: Sorter | Mapping[str, Any]) -> Sorter:
    return sorter if isinstance(sorter, Sorter) else Sorter.from_dict(dict(sorter))


def sort_tasks(items: Sequence[Mapping[str, Any]], sorters: Iterable[Sorter | Mapping[str, Any]]) -> list:
    """Stable multi-key sort of field mappings.

    Sorters are tried in order; the first one that tells two items apart
    decides. Items equal under every sorter keep their input order.
    """
    sorters = [_sorter(s) for s in sorters or ()]
    for sorter in sorters:
        if sorter.filter:
            compile_pattern(sorter.filter)
    if not sorters:
        return list(items)

    def compare(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
        for sorter in sorters:
            value_a = a.get(sorter.field)
            value_b = b.get(sorter.field)
            if sorter.filter:
                value_a = sort_filter(value_a, sorter.filter)
                value_b = sort_filter(value_b, sorter.filter)
            if value_a == value_b:
                continue
            result = compare_values(value_a, value_b)
            if result:
                return -result if sorter.descending else result
        return 0

    return sorted(items, key=cmp_to_key(compare))


def filter_and_sort_tasks(
    index: Index,
    tasks: Iterable[Task],
    filters: Mapping[str, Any] | None = None,
    sorters: Iterable[Sorter | Mapping[str, Any]] | None = None,
    defaults: Defaults = DEFAULTS,
) -> list[Task]:
    """Filter first, then sort by each task's sortable view."""
    filtered = filter_tasks(index, tasks, filters, defaults)
    sorters = list(sorters or ())
    if not sorters:
        return filtered
    views = [sortable_view(index, task, defaults) for task in filtered]
    by_id = {id(view): task for view, task in zip(views, filtered)}
    return [by_id[id(view)] for view in sort_tasks(views, sorters)]


# --- Column-linked dates and custom fields ---


def _stamp(index: Index, task: Task, column: str, field: str, policy: str, when: datetime) -> Task:
    if column not in index.options.get(f"{field}Columns", ()):
        return task
    if policy == "always" or policy == "once" and not task.metadata.get(field):
        return set_metadata(task, **{field: when})
    return task


def update_column_linked_fields(index: Index, task: Task, column: str, now: datetime | None = None) -> Task:
    """Stamp dates linked to the column the task is entering.

    completed and started are set once, when the column appears in
    completedColumns or startedColumns. Date custom fields follow their
    updateDate policy against a `<name>Columns` option.
    """
    when = now or utc_now()
    task = _stamp(index, task, column, "completed", "once", when)
    task = _stamp(index, task, column, "started", "once", when)
    for custom_field in index.options.get("customFields", ()):
        if custom_field["type"] == "date":
            task = _stamp(index, task, column, custom_field["name"], custom_field.get("updateDate", "none"), when)
    return task


def apply_custom_field_types(index: Index, metadata: Mapping[str, Any]) -> dict[str, Any]:
    """Check declared custom fields in metadata, parsing date fields."""
    result = dict(metadata)
    errors = []
    for custom_field in index.options.get("customFields", ()):
        name, field_type = custom_field["name"], custom_field["type"]
        if name not in result:
            continue
        value = result[name]
        if field_type == "date":
            parsed = try_parse_date(value)
            if parsed is None:
                errors.append(f"{name} unable to parse date")
                continue
            result[name] = parsed
        elif field_type == "number" and isinstance(value, bool):
            errors.append(f"{name} is not of a type(s) number")
        elif not isinstance(value, CUSTOM_FIELD_TYPES.get(field_type, (object,))):
            errors.append(f"{name} is not of a type(s) {field_type}")
    if errors:
        raise SchemaValidationError(errors)
    return result
