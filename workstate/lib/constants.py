"""Shared constants for the state store."""

import re

# Sibling files written next to a record during a save
TMP_SUFFIX = ".tmp"
BAK_SUFFIX = ".bak"

# Record keys under <state_dir>/<project_id>/<key>.json
REQUIREMENTS_KEY = "requirements"
SCOPE_KEY = "implementation_scope"
MOCKUPS_KEY = "mockups"

# KeyValueStore key for the mirror of a project record
KV_KEY_TEMPLATE = "projectData.{project_id}.{key}"

# Workflow phases, in order
PHASES = ("requirements", "design", "implementation", "testing", "deployment")

PRIORITIES = ("high", "medium", "low")
COMPLEXITIES = ("high", "medium", "low")
ITEM_STATUSES = ("pending", "in-progress", "completed")

PROJECT_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')

# Markdown documents inside <project_path>/<docs_dirname>/
REQUIREMENTS_DOC = "requirements.md"
SCOPE_DOC = "scope.md"
STRUCTURE_DOC = "structure.md"

# Field prefixes shared by both document kinds
FIELD_DESCRIPTION = "- 説明:"
FIELD_PRIORITY = "- 優先度:"
FIELD_COMPLEXITY = "- 複雑度:"
FIELD_PROGRESS = "- 進捗:"
FIELD_RELATED_FILES = "- 関連ファイル:"
FIELD_DEPENDENCIES = "- 依存関係:"

# Requirements document
REQUIREMENTS_TITLE = "要件定義"
FUNCTIONAL_HEADING = "機能要件"
NON_FUNCTIONAL_HEADING = "非機能要件"
NON_FUNCTIONAL_MARKER = "非機能"
NON_FUNCTIONAL_PLACEHOLDER = "準備中..."

# Scope document
SCOPE_TITLE = "実装スコープ"
COMPLETED_HEADING = "完了"
IN_PROGRESS_HEADING = "進行中"
PENDING_HEADING = "未着手"
PROGRESS_HEADING = "進捗情報"

FIELD_TOTAL_PROGRESS = "- 全体進捗:"
FIELD_START_DATE = "- 開始日:"
FIELD_TARGET_DATE = "- 目標日:"
FIELD_TOTAL_ITEMS = "- 合計項目数:"
FIELD_COMPLETED_ITEMS = "- 完了項目数:"
FIELD_IN_PROGRESS_ITEMS = "- 進行中項目数:"
FIELD_PENDING_ITEMS = "- 未着手項目数:"
UNSET_DATE = "未設定"

# Rendered in place of an empty status section; decoding treats them as zero items
SCOPE_PLACEHOLDERS = {
    "completed": "（まだ完了した項目はありません）",
    "in-progress": "（実装中の項目がここに表示されます）",
    "pending": "（未着手の項目がここに表示されます）",
}

# Summary document sections
SUMMARY_REQUIREMENTS_SECTION = "要件定義"
SUMMARY_SCOPE_SECTION = "実装スコープ"
SUMMARY_STATUS_SECTION = "進捗状況"
SUMMARY_CHECKLIST_SECTION = "チェックリスト"
SUMMARY_STRUCTURE_SECTION = "ディレクトリ構造"
