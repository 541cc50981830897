"""JSON schemas for index options, columns and task parts."""

from __future__ import annotations

from datetime import date
from typing import Any

from jsonschema import Draft7Validator, validators

from kanbn.errors import SchemaValidationError

_TYPE_CHECKER = Draft7Validator.TYPE_CHECKER.redefine(
    "date", lambda checker, instance: isinstance(instance, date)
)
Validator = validators.extend(Draft7Validator, type_checker=_TYPE_CHECKER)

_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_STRING_OR_DATE = {"oneOf": [{"type": "string"}, {"type": "date"}]}

SORTER = {
    "type": "object",
    "properties": {
        "field": {"type": "string"},
        "filter": {"type": "string"},
        "order": {"type": "string", "enum": ["ascending", "descending"]},
    },
    "required": ["field"],
}

OPTIONS = {
    "type": "object",
    "properties": {
        "hiddenColumns": _STRING_LIST,
        "startedColumns": _STRING_LIST,
        "completedColumns": _STRING_LIST,
        "sprints": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "start": {"type": "date"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["start", "name"],
            },
        },
        "defaultTaskWorkload": {"type": "number"},
        "taskWorkloadTags": {
            "type": "object",
            "additionalProperties": {"type": "number"},
        },
        "columnSorting": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": SORTER},
        },
        "taskTemplate": {"type": "string"},
        "dateFormat": {"type": "string"},
        "customFields": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "type": {"type": "string", "enum": ["boolean", "string", "number", "date"]},
                    "updateDate": {"type": "string", "enum": ["always", "once", "none"]},
                },
                "required": ["name", "type"],
            },
        },
        "views": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "filters": {"type": "object"},
                    "columns": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string"},
                                "filters": {"type": "object"},
                                "sorters": {"type": "array", "items": SORTER},
                            },
                            "required": ["name"],
                        },
                    },
                    "lanes": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string"},
                                "filters": {"type": "object"},
                            },
                            "required": ["name"],
                        },
                    },
                },
                "required": ["name", "columns"],
            },
        },
    },
}

COLUMNS = {
    "type": "object",
    "additionalProperties": _STRING_LIST,
}

# Metadata as read from markdown: dates may still be strings
METADATA_IN = {
    "type": "object",
    "properties": {
        "created": _STRING_OR_DATE,
        "updated": _STRING_OR_DATE,
        "started": _STRING_OR_DATE,
        "completed": _STRING_OR_DATE,
        "due": _STRING_OR_DATE,
        "progress": {"type": "number"},
        "assigned": {"type": "string"},
        "tags": _STRING_LIST,
    },
}

# Metadata about to be written: dates must already be dates
METADATA_OUT = {
    "type": "object",
    "properties": {
        "created": {"type": "date"},
        "updated": {"type": "date"},
        "started": {"type": "date"},
        "completed": {"type": "date"},
        "due": {"type": "date"},
        "progress": {"type": "number"},
        "tags": _STRING_LIST,
        "assigned": {"type": "string"},
    },
}

SUB_TASKS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "text": {"type": "string"},
            "completed": {"type": "boolean"},
        },
        "required": ["text", "completed"],
    },
}

RELATIONS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "type": {"type": "string"},
            "task": {"type": "string"},
        },
        "required": ["type", "task"],
    },
}

COMMENTS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "text": {"type": "string"},
            "author": {"type": ["string", "null"]},
            "date": {"oneOf": [{"type": "date"}, {"type": "null"}]},
        },
        "required": ["text"],
    },
}


def _path(error) -> str:
    parts = []
    for part in error.absolute_path:
        if isinstance(part, int):
            parts.append(f"[{part}]")
        else:
            parts.append(f".{part}" if parts else str(part))
    return "".join(parts) or "instance"


def check(instance: Any, schema: dict[str, Any]) -> None:
    """Validate instance, raising SchemaValidationError listing every problem."""
    errors = sorted(Validator(schema).iter_errors(instance), key=lambda e: list(map(str, e.absolute_path)))
    if errors:
        raise SchemaValidationError([f"{_path(e)} {e.message}" for e in errors])
