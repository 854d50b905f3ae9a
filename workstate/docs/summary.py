"""
Summary document section updates.

After requirements or scope saves the store refreshes a few sections of a
human-facing summary document in the project root. The store only depends on
the SectionUpdater protocol; MarkdownSummaryUpdater is the default file-based
implementation.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from workstate.storage.atomic import AtomicFileStore

logger = logging.getLogger(__name__)


@runtime_checkable
class SectionUpdater(Protocol):
    """Receives section refreshes for a project's summary document."""

    def update_section(self, project_path: str, section_title: str, content: str) -> bool:
        ...


def _find_section(lines: list[str], section_title: str) -> tuple[int, int] | None:
    """Return (start, end) line indexes of a "## title" section, end exclusive."""
    heading = f"## {section_title}"
    start = None
    for i, line in enumerate(lines):
        if start is None:
            if line.rstrip() == heading:
                start = i
        elif line.startswith("## "):
            return start, i
    if start is None:
        return None
    return start, len(lines)


class MarkdownSummaryUpdater:
    """Rewrites "## <title>" sections of <project_path>/<filename>."""

    def __init__(self, filename: str = "PROJECT.md", file_store: Optional[AtomicFileStore] = None):
        self.filename = filename
        self.file_store = file_store or AtomicFileStore()

    def summary_path(self, project_path: str) -> Path:
        return Path(project_path) / self.filename

    def update_section(self, project_path: str, section_title: str, content: str) -> bool:
        """Replace the section's body with content, appending the section if missing.

        Creates the summary document when it does not exist. Returns False on I/O failure.
        """
        path = self.summary_path(project_path)
        try:
            if path.exists():
                text = path.read_text(encoding="utf-8")
            else:
                text = f"# {Path(project_path).name}\n"
            lines = text.splitlines()

            new_section = [f"## {section_title}", "", content.strip(), ""]
            bounds = _find_section(lines, section_title)
            if bounds:
                start, end = bounds
                lines[start:end] = new_section
            else:
                if lines and lines[-1].strip():
                    lines.append("")
                lines.extend(new_section)

            self.file_store.write_text(path, "\n".join(lines).rstrip("\n") + "\n", backup=False)
        except OSError as e:
            logger.warning(f"Failed to update section '{section_title}' in {path}: {e}")
            return False

        logger.debug(f"Updated section '{section_title}' in {path}")
        return True

    def get_section(self, project_path: str, section_title: str) -> Optional[str]:
        """Return the body of a section, or None if the document or section is missing."""
        path = self.summary_path(project_path)
        if not path.exists():
            return None
        lines = path.read_text(encoding="utf-8").splitlines()
        bounds = _find_section(lines, section_title)
        if not bounds:
            return None
        start, end = bounds
        return "\n".join(lines[start + 1:end]).strip()
