"""Task id derivation and task filename handling."""

import re

_CAMEL_BOUNDARIES = (
    re.compile(r"([a-z0-9])([A-Z])"),
    re.compile(r"([A-Z])([A-Z][a-z])"),
)
_NON_WORD = re.compile(r"[^A-Za-z0-9]+")

EXTENSION = ".md"


def task_id(name: str) -> str:
    """Convert a task name to its param-case id.

    "Fix login bug" → "fix-login-bug", "parseHTMLTable" → "parse-html-table"
    """
    text = name
    for boundary in _CAMEL_BOUNDARIES:
        text = boundary.sub(r"\1 \2", text)
    words = _NON_WORD.sub(" ", text).split()
    return "-".join(word.lower() for word in words)


def add_file_extension(task_id: str) -> str:
    """Append .md unless it is already there."""
    if task_id.endswith(EXTENSION):
        return task_id
    return f"{task_id}{EXTENSION}"


def remove_file_extension(task_id: str) -> str:
    """Strip a trailing .md if present."""
    if task_id.endswith(EXTENSION):
        return task_id[: -len(EXTENSION)]
    return task_id
