"""
Implementation scope document codec.

Maps an ImplementationScope record to docs/scope.md and back. Items are grouped
under one heading per status (## 完了, ## 進行中, ## 未着手); an empty group
renders a placeholder line. A trailing ## 進捗情報 section carries the overall
progress and the dates.

total_progress is always recomputed from item statuses, both when rendering
and when parsing, so a hand-edited percentage never wins.
"""

import logging
import re

from workstate.docs.markdown import (
    format_item,
    read_fields,
    split_list_value,
    split_numbered_items,
    split_sections,
)
from workstate.docs.models import ImplementationItem, ImplementationScope, compute_total_progress
from workstate.lib.constants import (
    COMPLETED_HEADING,
    COMPLEXITIES,
    FIELD_COMPLETED_ITEMS,
    FIELD_COMPLEXITY,
    FIELD_DEPENDENCIES,
    FIELD_DESCRIPTION,
    FIELD_IN_PROGRESS_ITEMS,
    FIELD_PENDING_ITEMS,
    FIELD_PRIORITY,
    FIELD_PROGRESS,
    FIELD_RELATED_FILES,
    FIELD_START_DATE,
    FIELD_TARGET_DATE,
    FIELD_TOTAL_ITEMS,
    FIELD_TOTAL_PROGRESS,
    IN_PROGRESS_HEADING,
    PENDING_HEADING,
    PRIORITIES,
    PROGRESS_HEADING,
    SCOPE_PLACEHOLDERS,
    SCOPE_TITLE,
    UNSET_DATE,
)

logger = logging.getLogger(__name__)

# Rendering order: heading -> item status
STATUS_SECTIONS = (
    (COMPLETED_HEADING, "completed"),
    (IN_PROGRESS_HEADING, "in-progress"),
    (PENDING_HEADING, "pending"),
)

# Progress assumed for an item whose 進捗 line is missing
DEFAULT_PROGRESS = {"completed": 100, "in-progress": 50, "pending": 0}

ITEM_FIELDS = (
    FIELD_DESCRIPTION,
    FIELD_PRIORITY,
    FIELD_COMPLEXITY,
    FIELD_PROGRESS,
    FIELD_RELATED_FILES,
    FIELD_DEPENDENCIES,
)

NUMBER_RE = re.compile(r'\d+')


def _item_fields(item: ImplementationItem) -> list[tuple[str, str]]:
    fields = [
        (FIELD_DESCRIPTION, item.description),
        (FIELD_PRIORITY, item.priority),
        (FIELD_COMPLEXITY, item.complexity),
    ]
    if item.status == "in-progress":
        fields.append((FIELD_PROGRESS, f"{item.progress}%"))
    if item.related_files:
        fields.append((FIELD_RELATED_FILES, ", ".join(item.related_files)))
    if item.dependencies:
        fields.append((FIELD_DEPENDENCIES, ", ".join(item.dependencies)))
    return fields


def encode_scope(scope: ImplementationScope) -> str:
    """Render an ImplementationScope record as Markdown."""
    lines = [f"# {SCOPE_TITLE}", ""]
    counts = {}

    for heading, status in STATUS_SECTIONS:
        items = scope.items_with_status(status)
        counts[status] = len(items)
        lines.extend([f"## {heading}", ""])
        if not items:
            lines.extend([SCOPE_PLACEHOLDERS[status], ""])
            continue
        for index, item in enumerate(items, 1):
            lines.extend(format_item(index, item.title, _item_fields(item)))

    lines.extend([
        f"## {PROGRESS_HEADING}",
        "",
        f"{FIELD_TOTAL_PROGRESS} {compute_total_progress(scope.items)}%",
        f"{FIELD_START_DATE} {scope.start_date or UNSET_DATE}",
        f"{FIELD_TARGET_DATE} {scope.target_date or UNSET_DATE}",
        f"{FIELD_TOTAL_ITEMS} {len(scope.items)}",
        f"{FIELD_COMPLETED_ITEMS} {counts['completed']}",
        f"{FIELD_IN_PROGRESS_ITEMS} {counts['in-progress']}",
        f"{FIELD_PENDING_ITEMS} {counts['pending']}",
        "",
    ])
    return "\n".join(lines)


def _parse_level(value: str | None, allowed: tuple[str, ...]) -> str:
    if value is None:
        return "medium"
    value = value.lower()
    return value if value in allowed else "medium"


def _parse_progress(value: str | None, status: str) -> int:
    if value is not None:
        match = NUMBER_RE.search(value)
        if match:
            return max(0, min(100, int(match.group(0))))
    return DEFAULT_PROGRESS[status]


def _parse_date(value: str | None) -> str:
    if not value or value == UNSET_DATE:
        return ""
    return value


def is_placeholder(content: str) -> bool:
    """True if a status section holds only its "no items yet" line."""
    return content.strip() in SCOPE_PLACEHOLDERS.values()


def decode_scope(markdown: str, project_path: str = "") -> ImplementationScope:
    """Parse Markdown into an ImplementationScope record.

    The returned scope has no id; callers carry the id of the stored record.
    All parsed items are selected.
    """
    _, sections = split_sections(markdown)
    by_title = {}
    for section in sections:
        by_title.setdefault(section.title, section)

    scope = ImplementationScope(project_path=project_path)

    progress_section = by_title.get(PROGRESS_HEADING)
    if progress_section:
        lines = [line.strip() for line in progress_section.content.splitlines()]
        values = read_fields(lines, (FIELD_START_DATE, FIELD_TARGET_DATE))
        scope.start_date = _parse_date(values.get(FIELD_START_DATE))
        scope.target_date = _parse_date(values.get(FIELD_TARGET_DATE))

    for heading, status in STATUS_SECTIONS:
        section = by_title.get(heading)
        if section is None:
            continue
        if is_placeholder(section.content):
            logger.debug(f"Section '{heading}' holds no items")
            continue

        for numbered in split_numbered_items(section.content):
            values = read_fields(numbered.field_lines, ITEM_FIELDS)
            scope.items.append(ImplementationItem(
                id=f"item-{len(scope.items) + 1:03d}",
                title=numbered.title,
                description=values.get(FIELD_DESCRIPTION, ""),
                priority=_parse_level(values.get(FIELD_PRIORITY), PRIORITIES),
                complexity=_parse_level(values.get(FIELD_COMPLEXITY), COMPLEXITIES),
                status=status,
                progress=_parse_progress(values.get(FIELD_PROGRESS), status),
                dependencies=split_list_value(values.get(FIELD_DEPENDENCIES, "")),
                related_files=split_list_value(values.get(FIELD_RELATED_FILES, "")),
            ))

    scope.selected_ids = [item.id for item in scope.items]
    scope.recompute_progress()
    logger.debug(f"Decoded scope: {len(scope.items)} items, {scope.total_progress}% complete")
    return scope
