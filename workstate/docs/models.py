"""
Data models for stored workflow records.

Records serialise with dataclasses.asdict() and are rebuilt with from_dict().
from_dict() ignores unknown keys so records written by newer versions still load.
"""

import secrets
import time
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Optional

from workstate.lib.constants import PHASES


def new_id(prefix: str) -> str:
    """Generate a record ID like scope-1718000000000-a1b2c3."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def now_ms() -> int:
    return int(time.time() * 1000)


def _known(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def compute_total_progress(items: list["ImplementationItem"]) -> int:
    """Percentage of completed items, rounded half up. 0 for an empty list."""
    total = len(items)
    if total == 0:
        return 0
    completed = sum(1 for item in items if item.status == "completed")
    return (200 * completed + total) // (2 * total)


@dataclass
class RequirementSection:
    id: str
    title: str
    content: str = ""


@dataclass
class RequirementItem:
    id: str
    title: str
    description: str = ""
    priority: str = "medium"                   # high, medium, low


@dataclass
class Requirements:
    """Requirements document: free text, sections, and extracted items."""
    document: str = ""
    sections: list[RequirementSection] = field(default_factory=list)
    extracted_items: list[RequirementItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Requirements":
        return cls(
            document=data.get("document", ""),
            sections=[RequirementSection(**_known(RequirementSection, s)) for s in data.get("sections", [])],
            extracted_items=[RequirementItem(**_known(RequirementItem, i)) for i in data.get("extracted_items", [])],
        )


@dataclass
class ImplementationItem:
    id: str
    title: str
    description: str = ""
    priority: str = "medium"                   # high, medium, low
    complexity: str = "medium"                 # high, medium, low
    status: str = "pending"                    # pending, in-progress, completed
    progress: int = 0                          # 0-100
    dependencies: list[str] = field(default_factory=list)
    related_files: list[str] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class ImplementationScope:
    """Implementation scope: the items selected for a build and their progress.

    total_progress is derived from items; call recompute_progress() after
    changing item statuses.
    """
    id: str = ""
    items: list[ImplementationItem] = field(default_factory=list)
    selected_ids: list[str] = field(default_factory=list)
    total_progress: int = 0
    start_date: str = ""
    target_date: str = ""
    estimated_time: str = ""
    project_path: str = ""

    def recompute_progress(self) -> int:
        self.total_progress = compute_total_progress(self.items)
        return self.total_progress

    def items_with_status(self, status: str) -> list[ImplementationItem]:
        return [item for item in self.items if item.status == status]

    def find_item(self, item_id: str) -> Optional[ImplementationItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ImplementationScope":
        values = _known(cls, data)
        values["items"] = [ImplementationItem(**_known(ImplementationItem, i)) for i in data.get("items", [])]
        return cls(**values)


def default_phases() -> dict[str, bool]:
    return {phase: False for phase in PHASES}


@dataclass
class ProjectRecord:
    """A registered project and its workflow phase flags."""
    id: str                                    # project_1718000000000
    name: str
    path: str = ""                             # Project root holding docs/
    phases: dict[str, bool] = field(default_factory=default_phases)
    status: str = "active"                     # active, archived
    description: str = ""
    created_at: int = 0                        # epoch ms
    updated_at: int = 0                        # epoch ms
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectRecord":
        values = _known(cls, data)
        phases = default_phases()
        phases.update(values.get("phases") or {})
        values["phases"] = phases
        return cls(**values)


@dataclass
class Mockup:
    id: str
    name: str
    page_name: str = ""
    description: str = ""
    html: str = ""
    source_type: str = "manual"                # requirements, manual, imported
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Mockup":
        return cls(**_known(cls, data))
