"""
Template divergence check.

Decides whether a document has been edited enough, relative to the template
it was seeded from, to count as real content. Used to advance phase flags.
"""

LINE_COUNT_TOLERANCE = 3
DIFF_RATIO_THRESHOLD = 0.3


def _non_blank_lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line.strip() != ""]


def is_changed(content: str, template: str) -> bool:
    """Return True if content has moved meaningfully past template.

    Blank lines are ignored. More than 3 lines added or removed counts as a
    change. Otherwise lines are compared by position over the shorter
    document, and more than 30% differing counts as a change.
    """
    content_lines = _non_blank_lines(content)
    template_lines = _non_blank_lines(template)

    if abs(len(content_lines) - len(template_lines)) > LINE_COUNT_TOLERANCE:
        return True

    shorter = min(len(content_lines), len(template_lines))
    if shorter == 0:
        # At most 3 lines against an empty side is not a meaningful edit
        return False

    differing = sum(
        1 for i in range(shorter) if content_lines[i] != template_lines[i]
    )
    return differing / shorter > DIFF_RATIO_THRESHOLD
