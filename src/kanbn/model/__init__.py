"""Index and task documents: codecs and edit operations."""

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
from kanbn.model.task import (
    add_comment,
    add_relation,
    add_sub_task,
    add_tags,
    decode_task,
    encode_task,
    remove_relation,
    remove_sub_task,
    remove_tags,
    set_metadata,
    set_sub_task_completed,
)

__all__ = [
    "add_comment",
    "add_relation",
    "add_sub_task",
    "add_tags",
    "add_task_to_index",
    "decode_index",
    "decode_task",
    "duplicate_task_ids",
    "encode_index",
    "encode_task",
    "find_task_column",
    "remove_relation",
    "remove_sub_task",
    "remove_tags",
    "remove_task_from_index",
    "rename_task_in_index",
    "set_metadata",
    "set_sub_task_completed",
    "task_in_index",
    "tracked_task_ids",
]
