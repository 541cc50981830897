"""CLI argument parser and dispatch for kanbn."""

import argparse

from kanbn.cli.board import (
    board_show,
    board_status,
    find_tasks,
    init_board,
    show_burndown,
    sort_column,
    start_sprint,
    validate_board,
)
from kanbn.cli.task import (
    task_add,
    task_archive,
    task_comment,
    task_edit,
    task_move,
    task_remove,
    task_rename,
    task_restore,
    task_show,
)
from kanbn.dates import RESOLUTIONS


def build_parser() -> argparse.ArgumentParser:
    """Build the full CLI argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", default=".", help="Directory containing the board (default: .)")
    common.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    parser = argparse.ArgumentParser(
        prog="kanbn",
        description="Markdown kanban board",
        parents=[common],
    )

    commands = parser.add_subparsers(dest="command")

    # --- board ---
    init_p = commands.add_parser("init", help="Initialise a board", parents=[common])
    init_p.add_argument("-n", "--name", help="Board name")
    init_p.add_argument("-d", "--description", help="Board description")
    init_p.add_argument("-c", "--column", action="append", help="Column name (repeatable)")
    init_p.set_defaults(func=init_board)

    board_p = commands.add_parser("board", help="Show the board", parents=[common])
    board_p.add_argument("--view", help="Named view from the index options")
    board_p.set_defaults(func=board_show)

    find_p = commands.add_parser("find", help="Search tasks", parents=[common])
    find_p.add_argument("-f", "--filter", action="append", metavar="FIELD=VALUE", help="Filter (repeatable)")
    find_p.add_argument("-q", "--quiet", action="store_true", help="Only print task ids")
    find_p.add_argument("--sub-tasks", dest="show_sub_tasks", action="store_true", help="List sub-tasks")
    find_p.set_defaults(func=find_tasks)

    status_p = commands.add_parser("status", help="Board statistics", parents=[common])
    status_p.add_argument("-q", "--quiet", action="store_true", help="Only count tasks per column")
    status_p.add_argument("-u", "--untracked", action="store_true", help="List untracked task files")
    status_p.add_argument("--due", action="store_true", help="Include due dates")
    status_p.add_argument("-s", "--sprint", help="Sprint number or name")
    status_p.add_argument("-d", "--date", action="append", help="Period date (repeatable)")
    status_p.set_defaults(func=board_status)

    sort_p = commands.add_parser("sort", help="Sort a column", parents=[common])
    sort_p.add_argument("column", help="Column name")
    sort_p.add_argument(
        "-s",
        "--sorter",
        action="append",
        metavar="FIELD[:ORDER[:REGEX]]",
        help="Sort key (repeatable, first wins)",
    )
    sort_p.add_argument("--save", action="store_true", help="Keep the column sorted")
    sort_p.set_defaults(func=sort_column)

    sprint_p = commands.add_parser("sprint", help="Start a sprint", parents=[common])
    sprint_p.add_argument("-n", "--name", help="Sprint name")
    sprint_p.add_argument("-d", "--description", help="Sprint description")
    sprint_p.add_argument("--date", help="Start date (default: now)")
    sprint_p.set_defaults(func=start_sprint)

    validate_p = commands.add_parser("validate", help="Check the board parses", parents=[common])
    validate_p.add_argument("--save", action="store_true", help="Rewrite files in canonical form")
    validate_p.set_defaults(func=validate_board)

    burndown_p = commands.add_parser("burndown", help="Burndown data", parents=[common])
    burndown_p.add_argument("-s", "--sprint", action="append", help="Sprint number or name (repeatable)")
    burndown_p.add_argument("-d", "--date", action="append", help="Date range bound (repeatable)")
    burndown_p.add_argument("-a", "--assigned", help="Only tasks assigned to this user")
    burndown_p.add_argument("-c", "--column", action="append", help="Only tasks in this column (repeatable)")
    burndown_p.add_argument("--normalise", choices=[*RESOLUTIONS, "auto"], help="Date resolution")
    burndown_p.set_defaults(func=show_burndown)

    # --- tasks ---
    add_p = commands.add_parser("add", help="Create a task", parents=[common])
    add_p.add_argument("name", nargs="?", help="Task name")
    add_p.add_argument("-d", "--description", help="Task description")
    add_p.add_argument("-c", "--column", help="Target column (default: first)")
    add_p.add_argument("--due", help="Due date")
    add_p.add_argument("-a", "--assigned", help="Assigned user")
    add_p.add_argument("-t", "--tag", action="append", help="Tag (repeatable)")
    add_p.add_argument("--sub-task", action="append", help="Sub-task text (repeatable)")
    add_p.add_argument("-r", "--relation", action="append", metavar="[TYPE] TASK", help="Relation (repeatable)")
    add_p.add_argument("-u", "--untracked", metavar="ID", help="Add an existing untracked task file")
    add_p.set_defaults(func=task_add)

    show_p = commands.add_parser("show", help="Show a task", parents=[common])
    show_p.add_argument("id", help="Task id")
    show_p.set_defaults(func=task_show)

    edit_p = commands.add_parser("edit", help="Edit a task", parents=[common])
    edit_p.add_argument("id", help="Task id")
    edit_p.add_argument("-n", "--name", help="New name (renames the file)")
    edit_p.add_argument("-d", "--description", help="New description")
    edit_p.add_argument("-c", "--column", help="Move to column")
    edit_p.add_argument("--due", help="Due date (empty string clears)")
    edit_p.add_argument("-a", "--assigned", help="Assigned user (empty string clears)")
    edit_p.add_argument("-p", "--progress", type=float, help="Progress between 0 and 1")
    edit_p.add_argument("--add-tag", action="append", help="Tag to add (repeatable)")
    edit_p.add_argument("--remove-tag", action="append", help="Tag to remove (repeatable)")
    edit_p.add_argument("--add-sub-task", action="append", help="Sub-task to add (repeatable)")
    edit_p.add_argument("--complete-sub-task", action="append", help="Sub-task to tick (repeatable)")
    edit_p.add_argument("--remove-sub-task", action="append", help="Sub-task to remove (repeatable)")
    edit_p.add_argument("--add-relation", action="append", metavar="[TYPE] TASK", help="Relation to add")
    edit_p.add_argument("--remove-relation", action="append", metavar="[TYPE] TASK", help="Relation to remove")
    edit_p.set_defaults(func=task_edit)

    move_p = commands.add_parser("move", help="Move a task", parents=[common])
    move_p.add_argument("id", help="Task id")
    move_p.add_argument("column", help="Target column")
    move_p.add_argument("-p", "--position", type=int, help="Position in column (1-indexed)")
    move_p.add_argument("-r", "--relative", action="store_true", help="Position is an offset from the current one")
    move_p.set_defaults(func=task_move)

    rename_p = commands.add_parser("rename", help="Rename a task", parents=[common])
    rename_p.add_argument("id", help="Task id")
    rename_p.add_argument("name", help="New task name")
    rename_p.set_defaults(func=task_rename)

    remove_p = commands.add_parser("remove", help="Remove a task", parents=[common])
    remove_p.add_argument("id", help="Task id")
    remove_p.add_argument("-i", "--index", action="store_true", help="Only remove it from the index")
    remove_p.set_defaults(func=task_remove)

    comment_p = commands.add_parser("comment", help="Comment on a task", parents=[common])
    comment_p.add_argument("id", help="Task id")
    comment_p.add_argument("text", help="Comment text")
    comment_p.add_argument("-a", "--author", help="Author (default: git user.name)")
    comment_p.set_defaults(func=task_comment)

    archive_p = commands.add_parser("archive", help="Archive a task", parents=[common])
    archive_p.add_argument("id", nargs="?", help="Task id")
    archive_p.add_argument("-l", "--list", action="store_true", help="List archived tasks")
    archive_p.set_defaults(func=task_archive)

    restore_p = commands.add_parser("restore", help="Restore an archived task", parents=[common])
    restore_p.add_argument("id", help="Task id")
    restore_p.add_argument("-c", "--column", help="Target column (default: the one it was archived from)")
    restore_p.set_defaults(func=task_restore)

    return parser
