"""Split markdown documents into front-matter, sections and list items."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import yaml
from markdown_it import MarkdownIt

from kanbn.dates import format_iso, to_utc
from kanbn.errors import EmptyDocumentError, EmptyInputError, StructuralParseError

RAW = "raw"

_HEADING = re.compile(r"^(#{1,6}) (.*)$", re.MULTILINE)
_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_FENCE = re.compile(r"```(?:yaml|yml)?")
_LIST_MARKER = re.compile(r"^(\s*(?:[-+*]|\d+[.)])(?:[ \t]+|$))")
_LIST_OPEN = ("bullet_list_open", "ordered_list_open")


@dataclass(frozen=True)
class Section:
    """A heading line and the trimmed text up to the next heading."""

    heading: str
    content: str

    @property
    def level(self) -> int:
        """Heading depth (1-6), or 0 for the synthetic raw section."""
        return len(self.heading) - len(self.heading.lstrip("#"))


@dataclass(frozen=True)
class FrontMatter:
    """YAML attributes from a leading --- block plus the remaining text."""

    attributes: dict[str, Any] = field(default_factory=dict)
    body: str = ""


def check_input(text) -> None:
    """Reject None and non-string document input."""
    if text is None:
        raise EmptyInputError("data is null or undefined")
    if not isinstance(text, str):
        raise TypeError("data is not a string")


def sectionize(text: str) -> dict[str, Section]:
    """Split markdown into {title: Section} in document order.

    Any line starting with 1-6 '#' and a space is a heading, at any depth.
    Titles are the keys, so a repeated title replaces the earlier section's
    content while keeping its position. Text before the first heading is
    stored under RAW with an empty heading.
    """
    check_input(text)
    text = text.strip()
    if not text:
        raise EmptyDocumentError("data is an empty string")

    headings = list(_HEADING.finditer(text))
    sections: dict[str, Section] = {}

    first_start = headings[0].start() if headings else len(text)
    if first_start > 0:
        sections[RAW] = Section(heading="", content=text[:first_start].strip())

    for i, match in enumerate(headings):
        title = match.group(2).strip()
        if not title:
            raise StructuralParseError(f"heading on line {text.count(chr(10), 0, match.start()) + 1} has no title")
        end = headings[i + 1].start() if i + 1 < len(headings) else len(text)
        sections[title] = Section(
            heading=match.group(0).rstrip(),
            content=text[match.end() : end].strip(),
        )

    return sections


def extract_front_matter(text: str) -> FrontMatter:
    """Detect and strip a leading ---...--- YAML block.

    Returns empty attributes and the untouched text when there is no block.
    """
    check_input(text)
    match = _FRONT_MATTER.match(text)
    if not match:
        return FrontMatter(attributes={}, body=text)

    try:
        attributes = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as e:
        raise StructuralParseError(f"invalid front-matter: {e}") from e
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, dict):
        raise StructuralParseError("front-matter must be a mapping")

    return FrontMatter(attributes=attributes, body=text[match.end() :])


def parse_yaml_block(content: str, label: str) -> dict[str, Any]:
    """Parse a section holding YAML, optionally wrapped in a ```yaml fence."""
    try:
        data = yaml.safe_load(_FENCE.sub("", content).strip())
    except yaml.YAMLError as e:
        raise StructuralParseError(f"invalid {label}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StructuralParseError(f"{label} must be a mapping")
    return data


class _Dumper(yaml.SafeDumper):
    pass


def _represent_datetime(dumper: yaml.SafeDumper, value: datetime) -> yaml.Node:
    return dumper.represent_scalar("tag:yaml.org,2002:timestamp", format_iso(to_utc(value)))


_Dumper.add_representer(datetime, _represent_datetime)
_Dumper.add_multi_representer(datetime, _represent_datetime)


def dump_yaml(data: dict[str, Any]) -> str:
    """Serialize a mapping to block-style YAML, keeping key order."""
    return yaml.dump(
        data,
        Dumper=_Dumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    ).rstrip()


def front_matter_block(data: dict[str, Any]) -> str:
    """Render a mapping as a ---...--- front-matter block."""
    return f"---\n{dump_yaml(data)}\n---"


def join_blocks(blocks: list[str]) -> str:
    """Join non-empty blocks with blank lines, ending with one newline."""
    return "\n\n".join(block for block in blocks if block).rstrip() + "\n"


# --- List grammar: section -> list items -> link or plain text ---


@dataclass(frozen=True)
class ListItem:
    """One top-level item of a markdown list.

    text is the inline source of the item's first paragraph. When that
    paragraph starts with a link, link_text and link_target hold its parts.
    lines is the item's source with the list marker and indentation removed.
    """

    text: str = ""
    link_text: str | None = None
    link_target: str | None = None
    lines: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        """The link text if the item starts with a link, else the item text."""
        return self.link_text if self.link_text is not None else self.text


@dataclass(frozen=True)
class ParsedList:
    """Result of parsing a section as a list: items, or an error."""

    items: tuple[ListItem, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _link_parts(children) -> tuple[str | None, str | None]:
    """Return (text, href) if the inline children start with a link."""
    if not children or children[0].type != "link_open":
        return None, None
    href = children[0].attrGet("href")
    text = []
    for child in children[1:]:
        if child.type == "link_close":
            break
        text.append(child.content)
    return "".join(text), str(href) if href is not None else ""


def _item_lines(lines: list[str], start: int, end: int) -> tuple[str, ...]:
    """Slice an item's source lines and strip the marker and indentation."""
    item_lines = lines[start:end]
    while item_lines and not item_lines[-1].strip():
        item_lines.pop()
    if not item_lines:
        return ()
    marker = _LIST_MARKER.match(item_lines[0])
    width = len(marker.group(1)) if marker else 0
    result = [item_lines[0][width:]]
    for line in item_lines[1:]:
        indent = len(line) - len(line.lstrip(" "))
        result.append(line[min(indent, width) :])
    return tuple(result)


def parse_list(content: str) -> ParsedList:
    """Parse section content that should be a single markdown list.

    Empty content is an empty list. Anything that doesn't start with a
    list is an error. Only top-level items are returned; content after
    the first list is ignored.
    """
    if not content.strip():
        return ParsedList()

    tokens = MarkdownIt("commonmark").parse(content)
    if not tokens or tokens[0].type not in _LIST_OPEN:
        return ParsedList(error="content is not a list")

    lines = content.split("\n")
    list_level = tokens[0].level
    items: list[ListItem] = []
    current: dict[str, Any] | None = None

    for token in tokens[1:]:
        if token.level == list_level and token.type.endswith("_list_close"):
            break
        if token.type == "list_item_open" and token.level == list_level + 1:
            start, end = token.map if token.map else (0, 0)
            current = {"lines": _item_lines(lines, start, end)}
        elif token.type == "list_item_close" and token.level == list_level + 1:
            if current is not None:
                items.append(ListItem(**current))
            current = None
        elif token.type == "inline" and current is not None and "text" not in current:
            if token.level != list_level + 3:
                continue
            link_text, link_target = _link_parts(token.children)
            current.update(text=token.content.strip(), link_text=link_text, link_target=link_target)

    return ParsedList(items=tuple(items))
