"""Shared helpers for CLI command handlers."""

import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path

from kanbn.dates import format_iso
from kanbn.errors import KanbnError
from kanbn.models import HydratedTask
from kanbn.query import sub_tasks_text
from kanbn.store import Kanbn


def store_for(args) -> Kanbn:
    return Kanbn(Path(args.root).resolve())


def run(coro, json_mode: bool):
    """Run a store coroutine. Exit 1 with the message on any board error."""
    try:
        return asyncio.run(coro)
    except KanbnError as e:
        error(str(e), json_mode)


def _json_default(value):
    if isinstance(value, datetime):
        return format_iso(value)
    if isinstance(value, (set, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def output_json(data: dict | list) -> None:
    """Write JSON to stdout."""
    print(json.dumps(data, indent=2, default=_json_default))


def output_result(data: dict, text: str, json_mode: bool) -> None:
    """Output mutation result as JSON or plain text."""
    if json_mode:
        output_json(data)
    else:
        print(text)


def error(message: str, json_mode: bool) -> None:
    """Print error to stderr and exit 1."""
    if json_mode:
        print(json.dumps({"error": message}), file=sys.stderr)
    else:
        print(f"error: {message}", file=sys.stderr)
    sys.exit(1)


def parse_pairs(pairs: list[str] | None, json_mode: bool) -> dict[str, list[str]]:
    """Turn repeated field=value arguments into {field: [values]}."""
    result: dict[str, list[str]] = {}
    for pair in pairs or []:
        field, sep, value = pair.partition("=")
        if not sep or not field:
            error(f'Expected field=value, got "{pair}"', json_mode)
        result.setdefault(field.strip(), []).append(value.strip())
    return result


def hydrated_to_dict(hydrated: HydratedTask) -> dict:
    """Plain dict of a hydrated task for JSON output."""
    task = hydrated.task
    data = {
        "id": hydrated.id,
        "name": task.name,
        "description": task.description,
        "column": hydrated.column,
        "metadata": dict(task.metadata),
        "subTasks": [{"text": s.text, "completed": s.completed} for s in task.sub_tasks],
        "relations": [{"task": r.task, "type": r.type} for r in task.relations],
        "comments": [{"text": c.text, "author": c.author, "date": c.date} for c in task.comments],
        "workload": hydrated.workload,
        "progress": hydrated.progress,
        "remainingWorkload": hydrated.remaining_workload,
    }
    if hydrated.due_data is not None:
        data["dueData"] = {
            "completed": hydrated.due_data.completed,
            "overdue": hydrated.due_data.overdue,
            "dueDate": hydrated.due_data.due_date,
            "dueMessage": hydrated.due_data.message,
        }
    return data


def format_task_line(hydrated: HydratedTask) -> str:
    """One-line summary of a task for plain text listings."""
    line = f"{hydrated.id}  {hydrated.name:<24} {hydrated.column or '-'}"
    if hydrated.task.sub_tasks:
        done = sub_tasks_text(hydrated.task).count("[x]")
        line += f"  [{done}/{len(hydrated.task.sub_tasks)}]"
    return line
