"""Handlers for board commands: init, board, find, status, sort, sprint, validate, burndown."""

from kanbn.board import TASK_SEPARATOR, board_layout
from kanbn.cli._common import (
    error,
    format_task_line,
    hydrated_to_dict,
    output_json,
    output_result,
    parse_pairs,
    run,
    store_for,
)
from kanbn.dates import format_iso, humanize_delta
from kanbn.models import Sorter
from kanbn.query import sub_tasks_text


def sprint_ref(value: str) -> int | str:
    """Sprints are picked by 1-based number or by name."""
    return int(value) if value.isdigit() else value


def parse_sorter(text: str) -> Sorter:
    """field[:ascending|descending[:regex]]"""
    field, _, rest = text.partition(":")
    order, _, pattern = rest.partition(":")
    return Sorter(field=field, filter=pattern or None, order=order or "ascending")


def _filter_value(values: list[str]):
    converted = [{"true": True, "false": False}.get(v.lower(), v) for v in values]
    return converted[0] if len(converted) == 1 else converted


def init_board(args) -> int:
    """Create a board in the root directory, or update its name/description/columns."""
    store = store_for(args)

    async def init():
        existed = await store.initialised()
        index = await store.initialise(args.name, args.description, None, args.column)
        return index, existed

    index, existed = run(init(), args.json)
    columns = list(index.columns)
    if args.json:
        output_json({"root": str(store.root), "name": index.name, "columns": columns, "created": not existed})
    else:
        verb = "Updated" if existed else "Initialised"
        print(f"{verb} board {index.name} at {store.root}")
        print(f"Columns: {', '.join(columns)}")
    return 0


def board_show(args) -> int:
    """Print the board, or a named view of it."""
    store = store_for(args)

    async def show():
        index = await store.get_index()
        tasks = await store.load_all_tracked_tasks(index)
        hydrated = [store.hydrate_task(index, task) for task in tasks]
        return index, board_layout(index, hydrated, args.view, store.defaults)

    index, layout = run(show(), args.json)
    if args.json:
        output_json(
            {
                "name": index.name,
                "headings": [{"name": h.name, "completed": h.completed} for h in layout.headings],
                "lanes": [
                    {"name": lane.name, "columns": [list(cell) for cell in lane.cells]} for lane in layout.lanes
                ],
            }
        )
        return 0

    print(index.name)
    for lane in layout.lanes:
        if lane.name:
            print(f"\n== {lane.name} ==")
        for heading, cell in zip(layout.headings, lane.cells):
            mark = " (done)" if heading.completed else ""
            print(f"\n## {heading.name}{mark}")
            if cell:
                print(TASK_SEPARATOR.join(cell))
    return 0


def find_tasks(args) -> int:
    """Search tracked tasks with field=value filters."""
    store = store_for(args)
    filters = {field: _filter_value(values) for field, values in parse_pairs(args.filter, args.json).items()}
    results = run(store.search(filters, quiet=args.quiet), args.json)

    if args.quiet:
        if args.json:
            output_json(results)
        else:
            for task_id in results:
                print(task_id)
        return 0

    if args.json:
        output_json([hydrated_to_dict(h) for h in results])
    else:
        for hydrated in results:
            print(format_task_line(hydrated))
            if args.show_sub_tasks and hydrated.task.sub_tasks:
                for line in sub_tasks_text(hydrated.task).splitlines():
                    print(f"    {line}")
    return 0


def _print_status(data: dict) -> None:
    print(data["name"])
    print(f"  tasks: {data['tasks']}")
    for column, count in data["columnTasks"].items():
        print(f"  {column:<16} {count}")
    for key in ("startedTasks", "completedTasks", "totalWorkload", "totalRemainingWorkload"):
        if key in data:
            print(f"  {key}: {data[key]}")
    for filename in data.get("untrackedTasks", []):
        print(f"  untracked: {filename}")
    for entry in data.get("dueTasks", []):
        print(f"  due: {entry['task']}  {entry['dueMessage']}")
    if "sprint" in data:
        sprint = data["sprint"]
        print(f"  sprint {sprint['number']}: {sprint['name']}  ({sprint['durationMessage']})")


def board_status(args) -> int:
    """Show board statistics."""
    store = store_for(args)
    sprint = sprint_ref(args.sprint) if args.sprint else None
    data = run(store.status(args.quiet, args.untracked, args.due, sprint, args.date), args.json)

    if args.json:
        output_json(data)
    elif isinstance(data, list):
        for filename in data:
            print(filename)
    else:
        _print_status(data)
    return 0


def sort_column(args) -> int:
    """Sort a column once, or keep it sorted with --save."""
    store = store_for(args)
    if not args.sorter:
        error("At least one --sorter is required", args.json)
    sorters = [parse_sorter(text) for text in args.sorter]
    index = run(store.sort(args.column, sorters, args.save), args.json)
    output_result(
        {"column": args.column, "tasks": list(index.columns[args.column]), "saved": args.save},
        f"Sorted column {args.column}",
        args.json,
    )
    return 0


def start_sprint(args) -> int:
    store = store_for(args)
    sprint = run(store.sprint(args.name, args.description, args.date), args.json)
    output_result(sprint, f"Started {sprint['name']} at {format_iso(sprint['start'])}", args.json)
    return 0


def validate_board(args) -> int:
    """Check the index and every tracked task parse. Exit 1 when any fail."""
    store = store_for(args)
    result = run(store.validate(args.save), args.json)
    if result is True:
        output_result({"valid": True}, "Everything OK", args.json)
        return 0
    if args.json:
        output_json({"valid": False, "errors": result})
    else:
        for entry in result:
            where = entry["task"] or "index"
            print(f"{where}: {entry['errors']}")
    return 1


def show_burndown(args) -> int:
    """Print burndown data points for sprints or date ranges."""
    store = store_for(args)
    sprints = [sprint_ref(s) for s in args.sprint] if args.sprint else None
    data = run(
        store.burndown(sprints, args.date, args.assigned, args.column, args.normalise),
        args.json,
    )
    if args.json:
        output_json(data)
        return 0
    for series in data["series"]:
        title = series["sprint"]["name"] if "sprint" in series else "Burndown"
        span = humanize_delta(series["to"] - series["from"]) or "0 seconds"
        print(f"{title}  {format_iso(series['from'])} .. {format_iso(series['to'])}  ({span})")
        for point in series["dataPoints"]:
            print(f"  {format_iso(point['x'])}  {point['y']:g}  ({point['count']} active)")
    return 0

