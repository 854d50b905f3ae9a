"""
Markdown splitting helpers shared by the document codecs.

Both document kinds use the same shape:

    # Title

    ## Section

    1. Item title
       - 説明: description
       - 優先度: high

Parsing is line-based and deliberately forgiving: text that does not fit the
shape is kept as section content but produces no items.
"""

import re
from dataclasses import dataclass

SECTION_SPLIT_RE = re.compile(r'^##[ \t]+', re.MULTILINE)
ITEM_SPLIT_RE = re.compile(r'^\d+\.[ \t]+', re.MULTILINE)
TITLE_LINE_RE = re.compile(r'^#[ \t]+.*$', re.MULTILINE)


@dataclass
class Section:
    title: str
    content: str


@dataclass
class NumberedItem:
    title: str
    field_lines: list[str]


def split_sections(markdown: str) -> tuple[str, list[Section]]:
    """Split a document on level-2 headings.

    Returns (preamble, sections). The preamble is everything before the first
    "## " heading with the leading "# " title line removed.
    """
    parts = SECTION_SPLIT_RE.split(markdown.replace("\r\n", "\n"))
    preamble = TITLE_LINE_RE.sub("", parts[0], count=1).strip()

    sections = []
    for part in parts[1:]:
        title, _, content = part.partition("\n")
        sections.append(Section(title=title.strip(), content=content.strip()))
    return preamble, sections


def split_numbered_items(content: str) -> list[NumberedItem]:
    """Split section content on "N. " markers. Text before the first marker is ignored."""
    chunks = ITEM_SPLIT_RE.split(content)
    items = []
    for chunk in chunks[1:]:
        lines = [line.strip() for line in chunk.splitlines() if line.strip()]
        if not lines:
            continue
        items.append(NumberedItem(title=lines[0], field_lines=lines[1:]))
    return items


def read_fields(lines: list[str], prefixes: tuple[str, ...]) -> dict[str, str]:
    """Collect "- label: value" lines whose prefix is known. Later lines win."""
    values = {}
    for line in lines:
        for prefix in prefixes:
            if line.startswith(prefix):
                values[prefix] = line[len(prefix):].strip()
                break
    return values


def split_list_value(value: str) -> list[str]:
    """Parse a comma-separated field value."""
    return [part.strip() for part in value.split(",") if part.strip()]


def format_item(index: int, title: str, fields: list[tuple[str, str]]) -> list[str]:
    """Render one numbered item followed by a blank line."""
    lines = [f"{index}. {title}"]
    for prefix, value in fields:
        lines.append(f"   {prefix} {value}")
    lines.append("")
    return lines
