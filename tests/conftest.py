"""Shared fixtures: boards written to a temporary directory."""

import pytest

INDEX = """---
startedColumns:
  - In Progress
completedColumns:
  - Done
---

# Test Board

A board for tests.

## Backlog

- [first-task](tasks/first-task.md)
- [second-task](tasks/second-task.md)

## In Progress

- [third-task](tasks/third-task.md)

## Done
"""

TASKS = {
    "first-task": "---\ncreated: 2020-01-01T00:00:00.000Z\ntags:\n  - Small\n---\n\n# First task\n\nDescription one.\n",
    "second-task": "---\ncreated: 2020-01-02T00:00:00.000Z\nassigned: amy\n---\n\n# Second task\n\nDescription two.\n",
    "third-task": (
        "---\ncreated: 2020-01-03T00:00:00.000Z\nstarted: 2020-01-04T00:00:00.000Z\n---\n\n"
        "# Third task\n\n## Sub-tasks\n\n- [ ] one\n- [x] two\n"
    ),
}


def write_board(root, index=INDEX, tasks=None):
    """Write .kanbn/index.md and task files under root."""
    main = root / ".kanbn"
    (main / "tasks").mkdir(parents=True)
    (main / "index.md").write_text(index)
    for task_id, text in (TASKS if tasks is None else tasks).items():
        (main / "tasks" / f"{task_id}.md").write_text(text)
    return root


@pytest.fixture
def board_root(tmp_path):
    """A board with three columns and three tasks."""
    return write_board(tmp_path)


def read_index(root):
    return (root / ".kanbn" / "index.md").read_text()


def read_task(root, task_id):
    return (root / ".kanbn" / "tasks" / f"{task_id}.md").read_text()
