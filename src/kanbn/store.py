"""Board storage: the index and task files under a root directory.

Every operation loads what it needs from disk, works on immutable values
and writes whole files back. Blocking file I/O runs in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from kanbn import reports
from kanbn.board import date_format, task_template
from kanbn.column_sort import apply_column_sorting, sort_column, sorted_columns
from kanbn.config import DEFAULTS, Defaults, Settings, config_path, load_config, save_config, settings_for
from kanbn.dates import now, parse_date, to_utc
from kanbn.errors import ConflictError, DomainRuleError, KanbnError, NotFoundError, NotInitializedError
from kanbn.ids import add_file_extension, remove_file_extension, task_id as make_task_id
from kanbn.model.index import (
    add_task_to_index,
    decode_index,
    duplicate_task_ids,
    encode_index,
    find_task_column,
    remove_task_from_index,
    rename_task_in_index,
    task_in_index,
    tracked_task_ids,
)
from kanbn.model.task import add_comment, decode_task, encode_task, set_metadata
from kanbn.models import HydratedTask, Index, Sorter, Task
from kanbn.query import apply_custom_field_types, filter_and_sort_tasks, filter_tasks, hydrate_task, update_column_linked_fields

logger = logging.getLogger(__name__)


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _write_text(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


def _list_ids(folder: Path) -> list[str]:
    if not folder.is_dir():
        return []
    return sorted(path.stem for path in folder.glob("*.md") if path.is_file())


class Kanbn:
    """A board rooted at a directory."""

    def __init__(self, root: str | Path = ".", defaults: Defaults = DEFAULTS) -> None:
        self.root = Path(root)
        self.defaults = defaults
        self._config_cache: dict[str, Any] | None = None
        self._config_loaded = False

    # --- Configuration and paths ---

    async def get_config(self) -> dict[str, Any] | None:
        """The kanbn.yml / kanbn.json mapping, read once and cached."""
        if not self._config_loaded:
            self._config_cache = await asyncio.to_thread(load_config, self.root)
            self._config_loaded = True
        return self._config_cache

    def clear_config_cache(self) -> None:
        self._config_cache = None
        self._config_loaded = False

    async def config_exists(self) -> bool:
        return await asyncio.to_thread(config_path, self.root) is not None

    async def settings(self) -> Settings:
        return settings_for(self.root, await self.get_config())

    async def _task_path(self, task_id: str) -> Path:
        return (await self.settings()).task_path / add_file_extension(task_id)

    async def _archived_path(self, task_id: str) -> Path:
        return (await self.settings()).archive_path / add_file_extension(task_id)

    async def _exists(self, path: Path) -> bool:
        return await asyncio.to_thread(path.is_file)

    def get_date_format(self, index: Index) -> str:
        return date_format(index, self.defaults)

    def get_task_template(self, index: Index) -> str:
        return task_template(index, self.defaults)

    # --- Guards ---

    async def initialised(self) -> bool:
        return await self._exists((await self.settings()).index_path)

    async def _require_initialised(self) -> None:
        if not await self.initialised():
            raise NotInitializedError()

    async def _require_task_file(self, task_id: str) -> None:
        if not await self._exists(await self._task_path(task_id)):
            raise NotFoundError(f'No task file found with id "{task_id}"')

    @staticmethod
    def _require_indexed(index: Index, task_id: str) -> None:
        if not task_in_index(index, task_id):
            raise NotFoundError(f'Task "{task_id}" is not in the index')

    @staticmethod
    def _require_column(index: Index, column: str) -> None:
        if column not in index.columns:
            raise DomainRuleError(f'Column "{column}" doesn\'t exist')

    async def _load_checked(self, task_id: str) -> Index:
        """Common preamble: board exists, task file exists, task is indexed."""
        await self._require_initialised()
        await self._require_task_file(task_id)
        index = await self.load_index()
        self._require_indexed(index, task_id)
        return index

    # --- Index and task files ---

    async def load_index(self) -> Index:
        """Read and decode the index, merging any config file over its options."""
        path = (await self.settings()).index_path
        try:
            text = await asyncio.to_thread(_read_text, path)
        except OSError as e:
            raise NotInitializedError(f"Couldn't access index file: {e}") from e
        index = decode_index(text)
        config = await self.get_config()
        options = {**index.options, **(config or {})}
        if options.get("sprints"):
            options["sprints"] = [{**s, "start": parse_date(s["start"], "sprint start")} for s in options["sprints"]]
        logger.debug("loaded index %s", path)
        return replace(index, options=options)

    async def save_index(self, index: Index) -> Index:
        """Write the index, re-sorting columns that have saved sorters.

        With a config file present the options go there instead of the
        index front-matter. Returns the index as written.
        """
        columns = sorted_columns(index)
        if columns:
            loaded = await asyncio.gather(*(self.load_all_tracked_tasks(index, column) for column in columns))
            index = apply_column_sorting(index, [task for tasks in loaded for task in tasks], self.defaults)

        ignore_options = False
        if await self.config_exists():
            await asyncio.to_thread(save_config, self.root, index.options)
            self.clear_config_cache()
            ignore_options = True

        path = (await self.settings()).index_path
        await asyncio.to_thread(_write_text, path, encode_index(index, ignore_options))
        logger.debug("saved index %s", path)
        return index

    def _typed(self, task: Task, index: Index | None) -> Task:
        if index is None:
            return task
        return replace(task, metadata=apply_custom_field_types(index, task.metadata))

    async def load_task(self, task_id: str, index: Index | None = None) -> Task:
        """Read and decode a task file. Custom fields are typed when index is given."""
        path = await self._task_path(task_id)
        try:
            text = await asyncio.to_thread(_read_text, path)
        except OSError as e:
            raise NotFoundError(f"Couldn't access task file: {e}") from e
        logger.debug("loaded task %s", path)
        return self._typed(decode_task(text), index)

    async def save_task(self, path: Path, task: Task) -> None:
        await asyncio.to_thread(_write_text, path, encode_task(task))
        logger.debug("saved task %s", path)

    async def load_all_tracked_tasks(self, index: Index, column: str | None = None) -> list[Task]:
        """Load every task in the index (or one column), in index order."""
        ids = tracked_task_ids(index, column)
        return list(await asyncio.gather(*(self.load_task(tid, index) for tid in ids)))

    async def load_archived_task(self, task_id: str) -> Task:
        path = await self._archived_path(task_id)
        try:
            text = await asyncio.to_thread(_read_text, path)
        except OSError as e:
            raise NotFoundError(f"Couldn't access archived task file: {e}") from e
        return decode_task(text)

    # --- Queries ---

    async def get_index(self) -> Index:
        await self._require_initialised()
        return await self.load_index()

    async def get_task(self, task_id: str) -> Task:
        index = await self._load_checked(remove_file_extension(task_id))
        return await self.load_task(remove_file_extension(task_id), index)

    def hydrate_task(self, index: Index, task: Task) -> HydratedTask:
        return hydrate_task(index, task, self.defaults)

    def filter_and_sort_tasks(
        self,
        index: Index,
        tasks: Iterable[Task],
        filters: Mapping[str, Any] | None = None,
        sorters: Iterable[Sorter | Mapping[str, Any]] | None = None,
    ) -> list[Task]:
        return filter_and_sort_tasks(index, tasks, filters, sorters, self.defaults)

    async def task_exists(self, task_id: str) -> None:
        """Raise unless the task has a file and an index entry."""
        await self._load_checked(remove_file_extension(task_id))

    async def find_task_column(self, task_id: str) -> str:
        task_id = remove_file_extension(task_id)
        index = await self._load_checked(task_id)
        return find_task_column(index, task_id)

    async def find_tracked_tasks(self, column: str | None = None) -> list[str]:
        await self._require_initialised()
        return tracked_task_ids(await self.load_index(), column)

    async def find_untracked_tasks(self) -> list[str]:
        """Ids of task files that no column lists."""
        await self._require_initialised()
        index = await self.load_index()
        tracked = set(tracked_task_ids(index))
        files = await asyncio.to_thread(_list_ids, (await self.settings()).task_path)
        return [tid for tid in files if tid not in tracked]

    async def search(self, filters: Mapping[str, Any] | None = None, quiet: bool = False) -> list:
        """Tracked tasks matching filters: ids when quiet, else hydrated tasks."""
        await self._require_initialised()
        index = await self.load_index()
        tasks = filter_tasks(index, await self.load_all_tracked_tasks(index), filters, self.defaults)
        if quiet:
            return [task.id for task in tasks]
        return [self.hydrate_task(index, task) for task in tasks]

    async def status(
        self,
        quiet: bool = False,
        untracked: bool = False,
        due: bool = False,
        sprint: int | str | None = None,
        dates: Sequence[datetime | str] | None = None,
    ) -> dict[str, Any] | list[str]:
        """Board statistics. quiet with untracked returns only untracked filenames."""
        await self._require_initialised()
        index = await self.load_index()
        untracked_ids = await self.find_untracked_tasks() if untracked else None
        if quiet and untracked_ids is not None:
            return [add_file_extension(tid) for tid in untracked_ids]
        hydrated = None
        if not quiet:
            hydrated = [self.hydrate_task(index, task) for task in await self.load_all_tracked_tasks(index)]
        return reports.status(
            index,
            hydrated,
            untracked=untracked_ids,
            due=due,
            sprint=sprint,
            dates=[parse_date(d) for d in dates] if dates else None,
        )

    async def burndown(
        self,
        sprints: Sequence[int | str] | None = None,
        dates: Sequence[datetime | str] | None = None,
        assigned: str | None = None,
        columns: Sequence[str] | None = None,
        normalise: str | None = None,
    ) -> dict[str, Any]:
        await self._require_initialised()
        index = await self.load_index()
        hydrated = [self.hydrate_task(index, task) for task in await self.load_all_tracked_tasks(index)]
        return reports.burndown(
            index,
            hydrated,
            sprints=sprints,
            dates=[parse_date(d) for d in dates] if dates else None,
            assigned=assigned,
            columns=columns,
            normalise=normalise,
        )

    async def validate(self, save: bool = False) -> list[dict[str, Any]] | bool:
        """Parse the index and every tracked task, collecting all failures.

        Returns True when everything parses, otherwise a list of
        {"task": id or None, "errors": message}. With save, files are
        rewritten in canonical form.
        """
        await self._require_initialised()
        try:
            index = await self.load_index()
            if save:
                index = await self.save_index(index)
        except KanbnError as e:
            logger.debug("index failed validation: %s", e)
            return [{"task": None, "errors": str(e)}]

        errors = [
            {"task": tid, "errors": f'Task "{tid}" is listed in more than one column'}
            for tid in duplicate_task_ids(index)
        ]
        for tid in tracked_task_ids(index):
            try:
                task = await self.load_task(tid, index)
                if save:
                    await self.save_task(await self._task_path(tid), task)
            except KanbnError as e:
                logger.debug("task %s failed validation: %s", tid, e)
                errors.append({"task": tid, "errors": str(e)})
        return errors or True

    # --- Board changes ---

    async def initialise(
        self,
        name: str | None = None,
        description: str | None = None,
        options: Mapping[str, Any] | None = None,
        columns: Sequence[str] | None = None,
    ) -> Index:
        """Create the board folders and index, or update an existing index."""
        settings = await self.settings()
        await asyncio.to_thread(settings.task_path.mkdir, parents=True, exist_ok=True)

        if not await self.initialised():
            config = await self.get_config()
            base_options: dict[str, Any] = {
                "startedColumns": list(self.defaults.started_columns),
                "completedColumns": list(self.defaults.completed_columns),
            }
            index = Index(
                name=name or self.defaults.name,
                description=description or "",
                options={**base_options, **(options or {}), **(config or {})},
                columns={column: () for column in (columns or self.defaults.columns)},
            )
        else:
            index = await self.load_index()
            if name is None and description is None and options is None and columns is None:
                return index
            index = replace(
                index,
                name=name if name is not None else index.name,
                description=description if description is not None else index.description,
                options={**index.options, **(options or {})},
                columns={**index.columns, **{c: index.columns.get(c, ()) for c in columns or ()}},
            )
        return await self.save_index(index)

    async def create_task(self, task: Task, column: str) -> str:
        """Write a new task file and add it to column. Returns its id."""
        await self._require_initialised()
        if not task.name.strip():
            raise DomainRuleError("Task name cannot be blank")
        tid = task.id
        if not tid:
            raise DomainRuleError(f'Task name "{task.name}" has no letters or digits to make an id from')
        path = await self._task_path(tid)
        if await self._exists(path):
            raise ConflictError(f'A task with id "{tid}" already exists')

        index = await self.load_index()
        self._require_column(index, column)
        if task_in_index(index, tid):
            raise ConflictError(f'A task with id "{tid}" is already in the index')

        task = set_metadata(task, created=now())
        task = update_column_linked_fields(index, task, column)
        await self.save_task(path, self._typed(task, index))
        await self.save_index(add_task_to_index(index, tid, column))
        return tid

    async def add_untracked_task_to_index(self, task_id: str, column: str) -> str:
        await self._require_initialised()
        task_id = remove_file_extension(task_id)
        await self._require_task_file(task_id)
        index = await self.load_index()
        self._require_column(index, column)
        if task_in_index(index, task_id):
            raise ConflictError(f'Task "{task_id}" is already in the index')

        task = update_column_linked_fields(index, await self.load_task(task_id, index), column)
        await self.save_task(await self._task_path(task_id), task)
        await self.save_index(add_task_to_index(index, task_id, column))
        return task_id

    async def update_task(self, task_id: str, task: Task, column: str | None = None) -> str:
        """Overwrite a task, renaming and moving it as needed. Returns its id."""
        task_id = remove_file_extension(task_id)
        index = await self._load_checked(task_id)
        if not task.name.strip():
            raise DomainRuleError("Task name cannot be blank")

        original = await self.load_task(task_id)
        if original.name != task.name:
            task_id = await self.rename_task(task_id, task.name)
            index = await self.load_index()
        if column:
            self._require_column(index, column)

        task = set_metadata(task, updated=now())
        await self.save_task(await self._task_path(task_id), self._typed(task, index))
        if column:
            await self.move_task(task_id, column)
        else:
            await self.save_index(index)
        return task_id

    async def rename_task(self, task_id: str, new_name: str) -> str:
        """Rename a task and its file, updating the index. Returns the new id."""
        task_id = remove_file_extension(task_id)
        index = await self._load_checked(task_id)
        if not new_name.strip():
            raise DomainRuleError("Task name cannot be blank")
        new_id = make_task_id(new_name)
        if not new_id:
            raise DomainRuleError(f'Task name "{new_name}" has no letters or digits to make an id from')
        new_path = await self._task_path(new_id)
        if new_id != task_id and await self._exists(new_path):
            raise ConflictError(f'A task with id "{new_id}" already exists')
        if new_id != task_id and task_in_index(index, new_id):
            raise ConflictError(f'A task with id "{new_id}" is already in the index')

        path = await self._task_path(task_id)
        task = set_metadata(replace(await self.load_task(task_id), name=new_name), updated=now())
        await self.save_task(path, task)
        await asyncio.to_thread(path.rename, new_path)
        await self.save_index(rename_task_in_index(index, task_id, new_id))
        return new_id

    async def move_task(
        self,
        task_id: str,
        column: str,
        position: int | None = None,
        relative: bool = False,
    ) -> str:
        """Move a task to column, optionally to a position.

        A relative position is an offset from the task's current position.
        """
        task_id = remove_file_extension(task_id)
        index = await self._load_checked(task_id)
        self._require_column(index, column)

        task = set_metadata(await self.load_task(task_id), updated=now())
        task = update_column_linked_fields(index, task, column)
        await self.save_task(await self._task_path(task_id), task)

        if position is not None and relative:
            current = find_task_column(index, task_id)
            position = index.columns[current].index(task_id) + position
        index = remove_task_from_index(index, task_id)
        if position is not None:
            position = max(0, min(position, len(index.columns[column])))
        await self.save_index(add_task_to_index(index, task_id, column, position))
        return task_id

    async def delete_task(self, task_id: str, remove_file: bool = False) -> str:
        await self._require_initialised()
        task_id = remove_file_extension(task_id)
        index = await self.load_index()
        self._require_indexed(index, task_id)
        index = remove_task_from_index(index, task_id)
        path = await self._task_path(task_id)
        if remove_file and await self._exists(path):
            await asyncio.to_thread(path.unlink)
        await self.save_index(index)
        return task_id

    async def comment(self, task_id: str, text: str, author: str | None = None) -> str:
        task_id = remove_file_extension(task_id)
        await self._load_checked(task_id)
        task = add_comment(await self.load_task(task_id), text, author=author, when=now())
        await self.save_task(await self._task_path(task_id), task)
        return task_id

    async def sort(
        self,
        column: str,
        sorters: Sequence[Sorter | Mapping[str, Any]],
        save: bool = False,
    ) -> Index:
        """Sort a column once, or with save keep it sorted on every index save."""
        await self._require_initialised()
        index = await self.load_index()
        self._require_column(index, column)
        rules = dict(index.options.get("columnSorting") or {})
        if save:
            rules[column] = [s.to_dict() if isinstance(s, Sorter) else dict(s) for s in sorters]
        else:
            rules.pop(column, None)
            index = sort_column(index, await self.load_all_tracked_tasks(index, column), column, sorters, self.defaults)
        options = {k: v for k, v in index.options.items() if k != "columnSorting"}
        if rules:
            options["columnSorting"] = rules
        return await self.save_index(replace(index, options=options))

    async def sprint(self, name: str | None, description: str | None, start: datetime | str | None = None) -> dict:
        """Start a sprint. A blank name becomes "Sprint <n>"."""
        await self._require_initialised()
        index = await self.load_index()
        sprints = list(index.options.get("sprints") or [])
        sprint: dict[str, Any] = {
            "start": parse_date(start, "sprint start") if start else now(),
            "name": name or f"Sprint {len(sprints) + 1}",
        }
        if description:
            sprint["description"] = description
        sprints.append(sprint)
        await self.save_index(replace(index, options={**index.options, "sprints": sprints}))
        return sprint

    # --- Archive ---

    async def list_archived_tasks(self) -> list[str]:
        await self._require_initialised()
        folder = (await self.settings()).archive_path
        if not await asyncio.to_thread(folder.is_dir):
            raise NotFoundError("Archive folder doesn't exist")
        return await asyncio.to_thread(_list_ids, folder)

    async def archive_task(self, task_id: str) -> str:
        """Move a task into the archive, remembering its column."""
        task_id = remove_file_extension(task_id)
        index = await self._load_checked(task_id)
        archived = await self._archived_path(task_id)
        if await self._exists(archived):
            raise ConflictError(f'An archived task with id "{task_id}" already exists')
        await asyncio.to_thread(archived.parent.mkdir, parents=True, exist_ok=True)

        task = set_metadata(await self.load_task(task_id), column=find_task_column(index, task_id))
        await self.save_task(archived, task)
        await self.delete_task(task_id, remove_file=True)
        return task_id

    async def restore_task(self, task_id: str, column: str | None = None) -> str:
        """Bring a task back from the archive, into column or the one it left."""
        await self._require_initialised()
        task_id = remove_file_extension(task_id)
        archived = await self._archived_path(task_id)
        path = await self._task_path(task_id)
        if not await asyncio.to_thread(archived.parent.is_dir):
            raise NotFoundError("Archive folder doesn't exist")
        if not await self._exists(archived):
            raise NotFoundError(f'No archived task found with id "{task_id}"')

        index = await self.load_index()
        if task_in_index(index, task_id):
            raise ConflictError(f'There is already an indexed task with id "{task_id}"')
        if await self._exists(path):
            raise ConflictError(f'There is already an untracked task with id "{task_id}"')
        if not index.columns:
            raise DomainRuleError("No columns defined in the index")

        task = await self.load_archived_task(task_id)
        target = column or task.metadata.get("column") or next(iter(index.columns))
        self._require_column(index, target)
        task = update_column_linked_fields(index, set_metadata(task, column=None), target)
        await self.save_task(path, self._typed(task, index))
        await self.save_index(add_task_to_index(index, task_id, target))
        await asyncio.to_thread(archived.unlink)
        return task_id

    async def remove_all(self) -> None:
        """Delete the board folder and everything in it."""
        await self._require_initialised()
        await asyncio.to_thread(shutil.rmtree, (await self.settings()).main_path)
