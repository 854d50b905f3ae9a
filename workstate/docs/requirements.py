"""
Requirements document codec.

Maps a Requirements record to docs/requirements.md and back:

    # 要件定義

    <document text>

    ## 機能要件

    1. Title
       - 説明: ...
       - 優先度: high

    ## 非機能要件
    ...

    ## <any other section>

Items are classified by title: a title containing 非機能 is non-functional.
Decoding is heuristic; see markdown.py for what it tolerates.
"""

import logging

from workstate.docs.markdown import format_item, read_fields, split_numbered_items, split_sections
from workstate.docs.models import RequirementItem, Requirements, RequirementSection
from workstate.lib.constants import (
    FIELD_DESCRIPTION,
    FIELD_PRIORITY,
    FUNCTIONAL_HEADING,
    NON_FUNCTIONAL_HEADING,
    NON_FUNCTIONAL_MARKER,
    NON_FUNCTIONAL_PLACEHOLDER,
    PRIORITIES,
    REQUIREMENTS_TITLE,
)

logger = logging.getLogger(__name__)


def is_non_functional(item: RequirementItem) -> bool:
    return NON_FUNCTIONAL_MARKER in item.title


def _is_reserved_heading(title: str) -> bool:
    # 非機能要件 contains 機能要件, so one check covers both headings
    return FUNCTIONAL_HEADING in title


def _item_lines(items: list[RequirementItem]) -> list[str]:
    lines = []
    for index, item in enumerate(items, 1):
        lines.extend(format_item(index, item.title, [
            (FIELD_DESCRIPTION, item.description),
            (FIELD_PRIORITY, item.priority),
        ]))
    return lines


def encode_requirements(requirements: Requirements) -> str:
    """Render a Requirements record as Markdown."""
    lines = [f"# {REQUIREMENTS_TITLE}", ""]

    if requirements.document:
        lines.extend([requirements.document, ""])

    functional = [i for i in requirements.extracted_items if not is_non_functional(i)]
    non_functional = [i for i in requirements.extracted_items if is_non_functional(i)]

    lines.extend([f"## {FUNCTIONAL_HEADING}", ""])
    lines.extend(_item_lines(functional))

    lines.extend([f"## {NON_FUNCTIONAL_HEADING}", ""])
    if non_functional:
        lines.extend(_item_lines(non_functional))
    else:
        lines.extend([NON_FUNCTIONAL_PLACEHOLDER, ""])

    for section in requirements.sections:
        if not section.title or _is_reserved_heading(section.title):
            continue
        lines.extend([f"## {section.title}", "", section.content, ""])

    return "\n".join(lines)


def _parse_priority(value: str | None) -> str:
    if value is None:
        return "medium"
    value = value.lower()
    return value if value in PRIORITIES else "medium"


def decode_requirements(markdown: str) -> Requirements:
    """Parse Markdown into a Requirements record.

    Every level-2 heading becomes a section. Sections whose heading contains
    機能要件 (including 非機能要件) are also scanned for numbered items.
    """
    document, sections = split_sections(markdown)
    requirements = Requirements(document=document)

    for index, section in enumerate(sections, 1):
        requirements.sections.append(RequirementSection(
            id=f"section-{index:03d}",
            title=section.title,
            content=section.content,
        ))

        if not _is_reserved_heading(section.title):
            continue

        for numbered in split_numbered_items(section.content):
            values = read_fields(numbered.field_lines, (FIELD_DESCRIPTION, FIELD_PRIORITY))
            requirements.extracted_items.append(RequirementItem(
                id=f"req-{len(requirements.extracted_items) + 1:03d}",
                title=numbered.title,
                description=values.get(FIELD_DESCRIPTION, ""),
                priority=_parse_priority(values.get(FIELD_PRIORITY)),
            ))

    logger.debug(
        f"Decoded requirements: {len(requirements.sections)} sections, "
        f"{len(requirements.extracted_items)} items"
    )
    return requirements
