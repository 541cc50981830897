"""Index document codec and column operations."""

from __future__ import annotations

from dataclasses import replace
from pathlib import PurePosixPath
from urllib.parse import unquote

from kanbn import schema
from kanbn.errors import DomainRuleError, KanbnError, MissingNameHeading, StructuralParseError, wrap
from kanbn.ids import add_file_extension, remove_file_extension
from kanbn.models import Index
from kanbn.parser import (
    RAW,
    extract_front_matter,
    front_matter_block,
    join_blocks,
    parse_list,
    parse_yaml_block,
    sectionize,
)

OPTIONS_SECTION = "Options"


def _entry_id(item) -> str:
    if item.link_target:
        return remove_file_extension(unquote(PurePosixPath(item.link_target).name))
    return remove_file_extension(item.text)


def _decode(text: str) -> Index:
    front = extract_front_matter(text)
    options = dict(front.attributes)
    sections = sectionize(front.body)

    titles = [title for title in sections if title != RAW]
    if not titles:
        raise MissingNameHeading("data is missing a name heading")
    name = titles[0]

    description = sections[name].content
    if RAW in sections and sections[RAW].content:
        description = "\n\n".join(part for part in (sections[RAW].content, description) if part)

    if OPTIONS_SECTION in sections and OPTIONS_SECTION != name:
        options.update(parse_yaml_block(sections[OPTIONS_SECTION].content, "options"))
    schema.check(options, schema.OPTIONS)

    columns: dict[str, tuple[str, ...]] = {}
    for title in titles[1:]:
        if title == OPTIONS_SECTION:
            continue
        parsed = parse_list(sections[title].content)
        if not parsed.ok:
            raise StructuralParseError(f'column "{title}" must contain a list')
        columns[title] = tuple(_entry_id(item) for item in parsed.items)

    return Index(name=name, description=description, options=options, columns=columns)


def decode_index(text: str) -> Index:
    """Parse index markdown into an Index.

    Options come from the front-matter, overlaid by an embedded Options
    section. Every other section after the name heading is a column.
    """
    try:
        return _decode(text)
    except KanbnError as e:
        raise wrap("Unable to parse index", e) from e


def _encode(index: Index, ignore_options: bool) -> str:
    if not index.name:
        raise StructuralParseError("data object is missing name")

    blocks = []
    if index.options and not ignore_options:
        schema.check(index.options, schema.OPTIONS)
        blocks.append(front_matter_block(index.options))

    blocks.append(f"# {index.name}")
    blocks.append(index.description)

    schema.check({column: list(ids) for column, ids in index.columns.items()}, schema.COLUMNS)
    for column, ids in index.columns.items():
        blocks.append(f"## {column}")
        blocks.append("\n".join(f"- [{tid}](tasks/{add_file_extension(tid)})" for tid in ids))

    return join_blocks(blocks)


def encode_index(index: Index, ignore_options: bool = False) -> str:
    """Render an Index as markdown, options in the front-matter."""
    try:
        return _encode(index, ignore_options)
    except KanbnError as e:
        raise wrap("Unable to build index", e) from e


# --- Column operations ---


def tracked_task_ids(index: Index, column: str | None = None) -> list[str]:
    """Task ids in the index (or one column), in column order, without repeats."""
    if column is not None:
        return list(dict.fromkeys(index.columns.get(column, ())))
    return list(dict.fromkeys(tid for ids in index.columns.values() for tid in ids))


def find_task_column(index: Index, task_id: str) -> str | None:
    """Return the first column holding task_id, or None."""
    for column, ids in index.columns.items():
        if task_id in ids:
            return column
    return None


def task_in_index(index: Index, task_id: str) -> bool:
    return find_task_column(index, task_id) is not None


def add_task_to_index(
    index: Index,
    task_id: str,
    column: str,
    position: int | None = None,
) -> Index:
    """Return a new Index with task_id inserted into column.

    position is clamped to the column; None appends.
    """
    if column not in index.columns:
        raise DomainRuleError(f'Column "{column}" doesn\'t exist')
    ids = list(index.columns[column])
    if position is None:
        ids.append(task_id)
    else:
        ids.insert(max(0, min(position, len(ids))), task_id)
    return replace(index, columns={**index.columns, column: tuple(ids)})


def remove_task_from_index(index: Index, task_id: str) -> Index:
    """Return a new Index with task_id removed from every column."""
    columns = {column: tuple(tid for tid in ids if tid != task_id) for column, ids in index.columns.items()}
    return replace(index, columns=columns)


def rename_task_in_index(index: Index, task_id: str, new_task_id: str) -> Index:
    """Return a new Index with every entry of task_id replaced by new_task_id."""
    columns = {
        column: tuple(new_task_id if tid == task_id else tid for tid in ids)
        for column, ids in index.columns.items()
    }
    return replace(index, columns=columns)


def duplicate_task_ids(index: Index) -> list[str]:
    """Task ids listed more than once across all columns."""
    seen: set[str] = set()
    duplicates: dict[str, None] = {}
    for ids in index.columns.values():
        for tid in ids:
            if tid in seen:
                duplicates[tid] = None
            seen.add(tid)
    return list(duplicates)
