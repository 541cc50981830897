"""Data models for kanbn boards."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from kanbn.ids import task_id


@dataclass(frozen=True)
class SubTask:
    """A checklist entry in a task's Sub-tasks section."""

    text: str
    completed: bool = False


@dataclass(frozen=True)
class Relation:
    """A link from one task to another, e.g. "blocks my-task"."""

    task: str
    type: str = ""


@dataclass(frozen=True)
class Comment:
    """A comment entry, optionally signed and dated."""

    text: str
    author: str | None = None
    date: datetime | None = None


@dataclass(frozen=True)
class Task:
    """A task document. The id is derived from the name, never stored."""

    name: str
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    sub_tasks: tuple[SubTask, ...] = ()
    relations: tuple[Relation, ...] = ()
    comments: tuple[Comment, ...] = ()

    @property
    def id(self) -> str:
        return task_id(self.name)


@dataclass(frozen=True)
class Index:
    """The board's index document."""

    name: str
    description: str = ""
    options: dict[str, Any] = field(default_factory=dict)
    columns: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class DueData:
    """Due status of a task with a due date."""

    completed: bool
    completed_date: datetime | None
    due_date: datetime
    overdue: bool
    delta: timedelta
    message: str


@dataclass(frozen=True)
class HydratedTask:
    """A task plus the fields computed from its index."""

    task: Task
    column: str | None = None
    workload: float = 0
    progress: float = 0
    remaining_workload: int = 0
    due_data: DueData | None = None

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def name(self) -> str:
        return self.task.name

    @property
    def metadata(self) -> dict[str, Any]:
        return self.task.metadata


@dataclass(frozen=True)
class Sorter:
    """One key of a multi-key sort: field name, optional regex, direction."""

    field: str
    filter: str | None = None
    order: str = "ascending"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sorter:
        return cls(
            field=data["field"],
            filter=data.get("filter"),
            order=data.get("order", "ascending"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"field": self.field}
        if self.filter is not None:
            result["filter"] = self.filter
        result["order"] = self.order
        return result

    @property
    def descending(self) -> bool:
        return self.order == "descending"
