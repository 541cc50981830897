"""Task document codec and task edit operations."""

from __future__ import annotations

import math
import re
from dataclasses import asdict, replace
from datetime import date, datetime
from typing import Any

from kanbn import schema
from kanbn.dates import format_iso, parse_date, to_utc
from kanbn.errors import (
    DomainRuleError,
    KanbnError,
    MissingNameHeading,
    SemanticNumberError,
    StructuralParseError,
    wrap,
)
from kanbn.ids import add_file_extension, remove_file_extension
from kanbn.models import Comment, Relation, SubTask, Task
from kanbn.parser import (
    RAW,
    extract_front_matter,
    front_matter_block,
    join_blocks,
    parse_list,
    parse_yaml_block,
    sectionize,
)

METADATA_SECTION = "Metadata"
SUB_TASKS_SECTION = "Sub-tasks"
RELATIONS_SECTION = "Relations"
COMMENTS_SECTION = "Comments"
RESERVED_SECTIONS = (RAW, METADATA_SECTION, SUB_TASKS_SECTION, RELATIONS_SECTION, COMMENTS_SECTION)

DATE_FIELDS = ("created", "updated", "started", "completed", "due")

_CHECKBOX = re.compile(r"^\[([ xX])\][ \t]*(.*)$", re.DOTALL)
_AUTHOR_PREFIX = "author: "
_DATE_PREFIX = "date: "


# --- Decoding ---


def _coerce_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    schema.check(metadata, schema.METADATA_IN)
    for name in DATE_FIELDS:
        if name in metadata:
            metadata[name] = parse_date(metadata[name], name)
    if "progress" in metadata:
        try:
            progress = float(metadata["progress"])
        except (TypeError, ValueError):
            progress = math.nan
        if math.isnan(progress):
            raise SemanticNumberError("progress value is not numeric")
        metadata["progress"] = progress
    return metadata


def _parse_sub_tasks(content: str) -> tuple[SubTask, ...]:
    parsed = parse_list(content)
    if not parsed.ok:
        raise StructuralParseError("sub-tasks must contain a list")
    sub_tasks = []
    for item in parsed.items:
        match = _CHECKBOX.match(item.text)
        if match:
            sub_tasks.append(SubTask(text=match.group(2).strip(), completed=match.group(1) != " "))
        else:
            sub_tasks.append(SubTask(text=item.text.strip()))
    return tuple(sub_tasks)


def _parse_relations(content: str) -> tuple[Relation, ...]:
    parsed = parse_list(content)
    if not parsed.ok:
        raise StructuralParseError("relations must contain a list")
    relations = []
    for item in parsed.items:
        parts = item.label.strip().split(" ")
        task = remove_file_extension(parts.pop().strip())
        relations.append(Relation(task=task, type=" ".join(parts).strip()))
    return tuple(relations)


def _parse_comments(content: str) -> tuple[Comment, ...]:
    parsed = parse_list(content)
    if not parsed.ok:
        raise StructuralParseError("comments must contain a list")
    comments = []
    for item in parsed.items:
        author = None
        when = None
        text = []
        for line in item.lines:
            if line.startswith(_DATE_PREFIX):
                when = parse_date(line[len(_DATE_PREFIX) :], "comment")
            elif line.startswith(_AUTHOR_PREFIX):
                author = line[len(_AUTHOR_PREFIX) :].strip()
            else:
                text.append(line)
        comments.append(Comment(text="\n".join(text).strip(), author=author, date=when))
    return tuple(comments)


def _decode(text: str) -> Task:
    front = extract_front_matter(text)
    metadata = dict(front.attributes)
    sections = sectionize(front.body)

    titles = [title for title in sections if title != RAW]
    if not titles:
        raise MissingNameHeading("data is missing a name heading")
    name = titles[0]

    if METADATA_SECTION in sections and METADATA_SECTION != name:
        metadata.update(parse_yaml_block(sections[METADATA_SECTION].content, "metadata"))
    metadata = _coerce_metadata(metadata)

    sub_tasks: tuple[SubTask, ...] = ()
    relations: tuple[Relation, ...] = ()
    comments: tuple[Comment, ...] = ()
    if SUB_TASKS_SECTION in sections:
        sub_tasks = _parse_sub_tasks(sections[SUB_TASKS_SECTION].content)
    if RELATIONS_SECTION in sections:
        relations = _parse_relations(sections[RELATIONS_SECTION].content)
    if COMMENTS_SECTION in sections:
        comments = _parse_comments(sections[COMMENTS_SECTION].content)

    # Leading text, the name section, then any other headings in order
    parts = []
    if RAW in sections:
        parts.append(sections[RAW].content)
    parts.append(sections[name].content)
    for title in titles[1:]:
        if title in RESERVED_SECTIONS:
            continue
        section = sections[title]
        if section.level != 1:
            parts.append(section.heading)
        parts.append(section.content)

    return Task(
        name=name,
        description="\n\n".join(part for part in parts if part),
        metadata=metadata,
        sub_tasks=sub_tasks,
        relations=relations,
        comments=comments,
    )


def decode_task(text: str) -> Task:
    """Parse task markdown into a Task.

    Metadata comes from the front-matter, overlaid by an embedded Metadata
    section. Dates are parsed to UTC datetimes and progress to a float.
    """
    try:
        return _decode(text)
    except KanbnError as e:
        raise wrap("Unable to parse task", e) from e


# --- Encoding ---


def _comment_block(comment: Comment) -> str:
    lines = []
    if comment.author:
        lines.append(f"{_AUTHOR_PREFIX}{comment.author}")
    if comment.date:
        lines.append(f"{_DATE_PREFIX}{format_iso(comment.date)}")
    lines.extend(comment.text.split("\n"))
    return "- " + "\n".join(line if i == 0 else f"  {line}" if line else "" for i, line in enumerate(lines))


def _encode(task: Task) -> str:
    if not task.name:
        raise StructuralParseError("data object is missing name")

    blocks = []
    if task.metadata:
        schema.check(task.metadata, schema.METADATA_OUT)
        blocks.append(front_matter_block(task.metadata))

    blocks.append(f"# {task.name}")
    blocks.append(task.description)

    if task.sub_tasks:
        schema.check([asdict(s) for s in task.sub_tasks], schema.SUB_TASKS)
        blocks.append(f"## {SUB_TASKS_SECTION}")
        blocks.append("\n".join(f"- [{'x' if s.completed else ' '}] {s.text}" for s in task.sub_tasks))

    if task.relations:
        schema.check([asdict(r) for r in task.relations], schema.RELATIONS)
        blocks.append(f"## {RELATIONS_SECTION}")
        blocks.append(
            "\n".join(
                f"- [{f'{r.type} ' if r.type else ''}{r.task}]({add_file_extension(r.task)})"
                for r in task.relations
            )
        )

    if task.comments:
        schema.check([asdict(c) for c in task.comments], schema.COMMENTS)
        blocks.append(f"## {COMMENTS_SECTION}")
        blocks.append("\n".join(_comment_block(c) for c in task.comments))

    return join_blocks(blocks)


def encode_task(task: Task) -> str:
    """Render a Task as markdown, metadata in the front-matter."""
    try:
        return _encode(task)
    except KanbnError as e:
        raise wrap("Unable to build task", e) from e


# --- Task edits; each returns a new Task ---


def set_metadata(task: Task, **values: Any) -> Task:
    """Set metadata properties. A value of None removes the property."""
    metadata = dict(task.metadata)
    for key, value in values.items():
        if value is None:
            metadata.pop(key, None)
        elif isinstance(value, (datetime, date)):
            metadata[key] = to_utc(value)
        else:
            metadata[key] = value
    return replace(task, metadata=metadata)


def add_tags(task: Task, *tags: str) -> Task:
    """Add tags that aren't already present, keeping existing order."""
    current = list(task.metadata.get("tags", []))
    current.extend(tag for tag in dict.fromkeys(tags) if tag not in current)
    return set_metadata(task, tags=current)


def remove_tags(task: Task, *tags: str) -> Task:
    current = list(task.metadata.get("tags", []))
    for tag in tags:
        if tag not in current:
            raise DomainRuleError(f'Task "{task.id}" doesn\'t have tag "{tag}"')
        current.remove(tag)
    return set_metadata(task, tags=current or None)


def add_sub_task(task: Task, text: str, completed: bool = False) -> Task:
    if not text.strip():
        raise DomainRuleError("Sub-task text cannot be blank")
    return replace(task, sub_tasks=(*task.sub_tasks, SubTask(text=text.strip(), completed=completed)))


def remove_sub_task(task: Task, text: str) -> Task:
    if not any(s.text == text for s in task.sub_tasks):
        raise DomainRuleError(f'Task "{task.id}" doesn\'t have sub-task "{text}"')
    return replace(task, sub_tasks=tuple(s for s in task.sub_tasks if s.text != text))


def set_sub_task_completed(task: Task, text: str, completed: bool = True) -> Task:
    if not any(s.text == text for s in task.sub_tasks):
        raise DomainRuleError(f'Task "{task.id}" doesn\'t have sub-task "{text}"')
    return replace(
        task,
        sub_tasks=tuple(replace(s, completed=completed) if s.text == text else s for s in task.sub_tasks),
    )


def add_relation(task: Task, related: str, relation_type: str = "") -> Task:
    relation = Relation(task=related, type=relation_type)
    if relation in task.relations:
        return task
    return replace(task, relations=(*task.relations, relation))


def remove_relation(task: Task, related: str, relation_type: str | None = None) -> Task:
    """Remove relations to `related`, only those of relation_type if given."""

    def matches(relation: Relation) -> bool:
        return relation.task == related and (relation_type is None or relation.type == relation_type)

    if not any(matches(r) for r in task.relations):
        raise DomainRuleError(f'Task "{task.id}" isn\'t related to "{related}"')
    return replace(task, relations=tuple(r for r in task.relations if not matches(r)))


def add_comment(task: Task, text: str, author: str | None = None, when: datetime | None = None) -> Task:
    if not text.strip():
        raise DomainRuleError("Comment text cannot be empty")
    comment = Comment(text=text.strip(), author=author, date=to_utc(when) if when else None)
    return replace(task, comments=(*task.comments, comment))

