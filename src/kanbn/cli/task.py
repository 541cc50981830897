"""Handlers for task commands: add, edit, move, rename, remove, comment, archive, restore."""

from dataclasses import replace

from kanbn.cli._common import error, hydrated_to_dict, output_json, output_result, run, store_for
from kanbn.dates import parse_date
from kanbn.errors import DomainRuleError
from kanbn.git import git_user_name
from kanbn.model.task import (
    add_relation,
    add_sub_task,
    add_tags,
    remove_relation,
    remove_sub_task,
    remove_tags,
    set_metadata,
    set_sub_task_completed,
)
from kanbn.models import Task


def split_relation(text: str) -> tuple[str, str]:
    """"blocked by other-task" -> ("other-task", "blocked by")."""
    parts = text.split()
    if not parts:
        return "", ""
    return parts[-1], " ".join(parts[:-1])


def _apply_fields(task: Task, args) -> Task:
    """Metadata fields common to add and edit."""
    if getattr(args, "due", None) is not None:
        task = set_metadata(task, due=parse_date(args.due, "due") if args.due else None)
    if getattr(args, "assigned", None) is not None:
        task = set_metadata(task, assigned=args.assigned or None)
    if getattr(args, "progress", None) is not None:
        task = set_metadata(task, progress=args.progress)
    return task


def task_add(args) -> int:
    """Create a task, or add an untracked task file to the index."""
    store = store_for(args)

    async def add():
        index = await store.get_index()
        if not index.columns:
            raise DomainRuleError("No columns defined in the index")
        column = args.column or next(iter(index.columns))
        if args.untracked:
            return await store.add_untracked_task_to_index(args.untracked, column), column

        task = Task(name=args.name or "", description=args.description or "")
        task = _apply_fields(task, args)
        if args.tag:
            task = add_tags(task, *args.tag)
        for text in args.sub_task or []:
            task = add_sub_task(task, text)
        for text in args.relation or []:
            related, relation_type = split_relation(text)
            task = add_relation(task, related, relation_type)
        return await store.create_task(task, column), column

    if not args.untracked and not args.name:
        error("Task name is required", args.json)
    task_id, column = run(add(), args.json)
    output_result({"id": task_id, "column": column}, f"Created task {task_id} in {column}", args.json)
    return 0


def task_edit(args) -> int:
    """Change a task's name, description, metadata or lists."""
    store = store_for(args)

    async def edit():
        task = await store.get_task(args.id)
        if args.name is not None:
            task = replace(task, name=args.name)
        if args.description is not None:
            task = replace(task, description=args.description)
        task = _apply_fields(task, args)
        if args.add_tag:
            task = add_tags(task, *args.add_tag)
        if args.remove_tag:
            task = remove_tags(task, *args.remove_tag)
        for text in args.add_sub_task or []:
            task = add_sub_task(task, text)
        for text in args.complete_sub_task or []:
            task = set_sub_task_completed(task, text)
        for text in args.remove_sub_task or []:
            task = remove_sub_task(task, text)
        for text in args.add_relation or []:
            related, relation_type = split_relation(text)
            task = add_relation(task, related, relation_type)
        for text in args.remove_relation or []:
            related, relation_type = split_relation(text)
            task = remove_relation(task, related, relation_type or None)
        return await store.update_task(args.id, task, args.column)

    task_id = run(edit(), args.json)
    output_result({"id": task_id}, f"Updated task {task_id}", args.json)
    return 0


def task_move(args) -> int:
    """Move a task to a column, optionally to a position."""
    store = store_for(args)
    position = args.position
    if position is not None and not args.relative:
        position -= 1
    task_id = run(store.move_task(args.id, args.column, position, args.relative), args.json)
    output_result({"id": task_id, "column": args.column}, f"Moved task {task_id} to {args.column}", args.json)
    return 0


def task_rename(args) -> int:
    store = store_for(args)
    task_id = run(store.rename_task(args.id, args.name), args.json)
    output_result({"id": task_id, "previous": args.id}, f"Renamed task {args.id} to {task_id}", args.json)
    return 0


def task_remove(args) -> int:
    """Remove a task from the index, and its file unless --index is given."""
    store = store_for(args)
    task_id = run(store.delete_task(args.id, remove_file=not args.index), args.json)
    output_result({"id": task_id}, f"Removed task {task_id}", args.json)
    return 0


def task_comment(args) -> int:
    """Add a comment, signed with the git user name unless --author is given."""
    store = store_for(args)

    async def comment():
        author = args.author or await git_user_name(store.root)
        return await store.comment(args.id, args.text, author)

    task_id = run(comment(), args.json)
    output_result({"id": task_id}, f"Added comment to task {task_id}", args.json)
    return 0


def task_show(args) -> int:
    """Show one task."""
    store = store_for(args)

    async def show():
        index = await store.get_index()
        return store.hydrate_task(index, await store.get_task(args.id))

    data = hydrated_to_dict(run(show(), args.json))
    if args.json:
        output_json(data)
        return 0
    print(f"# {data['name']}  ({data['id']}, {data['column']})")
    if data["description"]:
        print(data["description"])
    for key, value in data["metadata"].items():
        print(f"  {key}: {value}")
    print(f"  workload: {data['workload']:g}  progress: {data['progress']:g}")
    return 0


def task_archive(args) -> int:
    """Archive a task, or list archived tasks with --list."""
    store = store_for(args)
    if args.list:
        ids = run(store.list_archived_tasks(), args.json)
        if args.json:
            output_json(ids)
        else:
            for task_id in ids:
                print(task_id)
        return 0
    if not args.id:
        error("Task id is required", args.json)
    task_id = run(store.archive_task(args.id), args.json)
    output_result({"id": task_id}, f"Archived task {task_id}", args.json)
    return 0


def task_restore(args) -> int:
    store = store_for(args)
    task_id = run(store.restore_task(args.id, args.column), args.json)
    output_result({"id": task_id}, f"Restored task {task_id}", args.json)
    return 0
