"""Record models and the Markdown documents that mirror them."""

from workstate.docs.change_detector import is_changed
from workstate.docs.models import (
    ImplementationItem,
    ImplementationScope,
    Mockup,
    ProjectRecord,
    RequirementItem,
    Requirements,
    RequirementSection,
    compute_total_progress,
)
from workstate.docs.requirements import decode_requirements, encode_requirements
from workstate.docs.scope import decode_scope, encode_scope

__all__ = [
    "is_changed",
    "ImplementationItem",
    "ImplementationScope",
    "Mockup",
    "ProjectRecord",
    "RequirementItem",
    "Requirements",
    "RequirementSection",
    "compute_total_progress",
    "decode_requirements",
    "encode_requirements",
    "decode_scope",
    "encode_scope",
]
