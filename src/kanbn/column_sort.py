"""Persist a sorted task order into index columns."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Mapping

from kanbn.config import DEFAULTS, Defaults
from kanbn.models import Index, Sorter, Task
from kanbn.query import sort_tasks, sortable_view

logger = logging.getLogger(__name__)


def sort_column(
    index: Index,
    tasks: Iterable[Task],
    column: str,
    sorters: Iterable[Sorter | Mapping[str, Any]],
    defaults: Defaults = DEFAULTS,
) -> Index:
    """Return a new Index with column reordered by sorters.

    tasks are the loaded tasks of that column. Entries with no loaded task
    keep their relative order after the sorted ones.
    """
    ids = index.columns.get(column, ())
    loaded = {task.id: task for task in tasks if task.id in ids}
    views = [sortable_view(index, loaded[tid], defaults) for tid in ids if tid in loaded]
    ordered = [view["id"] for view in sort_tasks(views, sorters)]
    ordered.extend(tid for tid in ids if tid not in loaded)
    return replace(index, columns={**index.columns, column: tuple(ordered)})


def sorted_columns(index: Index) -> dict[str, list[Any]]:
    """Saved columnSorting rules for columns that exist in the index."""
    rules = index.options.get("columnSorting") or {}
    return {column: sorters for column, sorters in rules.items() if column in index.columns}


def apply_column_sorting(
    index: Index,
    tasks: Iterable[Task],
    defaults: Defaults = DEFAULTS,
) -> Index:
    """Re-sort every column that has saved sorters. Other columns are untouched."""
    tasks = list(tasks)
    for column, sorters in sorted_columns(index).items():
        logger.debug("sorting column %s by %s", column, [s.get("field") for s in sorters])
        index = sort_column(index, tasks, column, sorters, defaults)
    return index
