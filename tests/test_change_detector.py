"""Tests for workstate.docs.change_detector module."""

from workstate.docs.change_detector import is_changed
from workstate.docs.templates import REQUIREMENTS_TEMPLATE, SCOPE_TEMPLATE


def numbered_lines(count, changed=0):
    """count lines; the first `changed` of them differ from the baseline."""
    return "\n".join(
        f"edited {i}" if i < changed else f"line {i}" for i in range(count)
    )


class TestIsChanged:
    """Tests for is_changed()."""

    def test_identical_content(self):
        assert is_changed(REQUIREMENTS_TEMPLATE, REQUIREMENTS_TEMPLATE) is False

    def test_four_extra_lines(self):
        content = REQUIREMENTS_TEMPLATE + "\n".join(["追加1", "追加2", "追加3", "追加4"])
        assert is_changed(content, REQUIREMENTS_TEMPLATE) is True

    def test_three_extra_lines_unchanged_prefix(self):
        content = REQUIREMENTS_TEMPLATE + "\n".join(["追加1", "追加2", "追加3"])
        assert is_changed(content, REQUIREMENTS_TEMPLATE) is False

    def test_four_removed_lines(self):
        lines = [line for line in SCOPE_TEMPLATE.split("\n") if line.strip()]
        assert is_changed("\n".join(lines[:-4]), SCOPE_TEMPLATE) is True

    def test_blank_lines_are_ignored(self):
        spaced = REQUIREMENTS_TEMPLATE.replace("\n", "\n\n\n")
        assert is_changed(spaced, REQUIREMENTS_TEMPLATE) is False

    def test_exactly_thirty_percent_is_not_a_change(self):
        assert is_changed(numbered_lines(10, changed=3), numbered_lines(10)) is False
        assert is_changed(numbered_lines(100, changed=30), numbered_lines(100)) is False

    def test_thirty_one_percent_is_a_change(self):
        assert is_changed(numbered_lines(100, changed=31), numbered_lines(100)) is True

    def test_ratio_uses_shorter_document(self):
        # 2 of the 8 compared lines differ (25%), the extra 2 lines are within tolerance
        assert is_changed(numbered_lines(10, changed=2), numbered_lines(8)) is False
        assert is_changed(numbered_lines(10, changed=3), numbered_lines(8)) is True

    def test_empty_against_short_template(self):
        assert is_changed("", "a\nb\nc") is False
        assert is_changed("", "") is False

    def test_empty_against_long_template(self):
        assert is_changed("", "a\nb\nc\nd") is True
