"""
Per-project state store.

Records live under <app_dir>/state/<project_id>/<key>.json. Every save goes
through AtomicFileStore and is mirrored into the KeyValueStore; every load goes
through TieredReader (primary, .bak, KV mirror, default).

Requirements and implementation scope also have a Markdown rendering in the
project's docs/ directory. The Markdown is the user-editable copy: getters
prefer it when present and fall back to the JSON record.

Construct with open_store() or wire the collaborators yourself:

    bus = EventBus()
    registry = ProjectRegistry(config, bus, file_store, kv)
    store = ProjectStateStore(config, registry, bus, kv=kv, section_updater=updater)
"""

import copy
import logging
import shutil
from pathlib import Path
from typing import Any, Optional

from workstate.docs.change_detector import is_changed
from workstate.docs.models import (
    ImplementationItem,
    ImplementationScope,
    Mockup,
    ProjectRecord,
    Requirements,
    new_id,
    now_ms,
)
from workstate.docs.requirements import decode_requirements, encode_requirements
from workstate.docs.scope import DEFAULT_PROGRESS, decode_scope, encode_scope
from workstate.docs.summary import MarkdownSummaryUpdater, SectionUpdater
from workstate.docs.templates import REQUIREMENTS_TEMPLATE, STRUCTURE_TEMPLATE
from workstate.events import Event, EventBus, EventType
from workstate.lib.config import StoreConfig, load_store_config
from workstate.lib.constants import (
    ITEM_STATUSES,
    KV_KEY_TEMPLATE,
    MOCKUPS_KEY,
    PROJECT_ID_PATTERN,
    REQUIREMENTS_DOC,
    REQUIREMENTS_KEY,
    SCOPE_DOC,
    SCOPE_KEY,
    STRUCTURE_DOC,
    SUMMARY_CHECKLIST_SECTION,
    SUMMARY_REQUIREMENTS_SECTION,
    SUMMARY_SCOPE_SECTION,
    SUMMARY_STATUS_SECTION,
    SUMMARY_STRUCTURE_SECTION,
)
from workstate.lib.locking import KeyLocks
from workstate.lib.validate import validate_before_write, validator_for
from workstate.projects import ProjectRegistry
from workstate.storage.atomic import AtomicFileStore, StorageIOError, ensure_directory_exists
from workstate.storage.kv import JsonSettingsStore, KeyValueStore
from workstate.storage.tiered import TieredReader

logger = logging.getLogger(__name__)

# Schema name per typed record key
RECORD_SCHEMAS = {
    REQUIREMENTS_KEY: "requirements",
    SCOPE_KEY: "scope",
    MOCKUPS_KEY: "mockups",
}


def _check_name(value: str, kind: str) -> str:
    if not value or not PROJECT_ID_PATTERN.match(value):
        raise ValueError(f"Invalid {kind}: {value!r}")
    return value


def _free_item_id(taken: set[str]) -> str:
    """Lowest item-NNN not in taken, so repeated reads agree on the id."""
    n = 1
    while f"item-{n:03d}" in taken:
        n += 1
    return f"item-{n:03d}"


def _done(flag: bool) -> str:
    return "完了" if flag else "未完了"


def _check(flag: bool) -> str:
    return "x" if flag else " "


class ProjectStateStore:
    """Durable per-project records plus their Markdown mirrors."""

    SOURCE = "ProjectStateStore"

    def __init__(
        self,
        config: StoreConfig,
        registry: ProjectRegistry,
        bus: EventBus,
        kv: Optional[KeyValueStore] = None,
        section_updater: Optional[SectionUpdater] = None,
        file_store: Optional[AtomicFileStore] = None,
    ):
        """
        Raises:
            StorageIOError: If the state directory cannot be created or written
        """
        self.config = config
        self.registry = registry
        self.bus = bus
        self.kv = kv
        self.section_updater = section_updater
        self.file_store = file_store or AtomicFileStore(KeyLocks(config.lock_timeout))
        self.reader = TieredReader(self.file_store, kv)

        ensure_directory_exists(config.state_dir)
        self._subscriptions = [
            bus.subscribe(EventType.PROJECT_CREATED, self._on_project_created),
            bus.subscribe(EventType.PROJECT_DELETED, self._on_project_deleted),
        ]
        logger.debug(f"State store ready at {config.state_dir}")

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions = []
        self.registry.close()

    # --- Paths -------------------------------------------------------------

    def project_state_dir(self, project_id: str) -> Path:
        return self.config.state_dir / _check_name(project_id, "project id")

    def record_path(self, project_id: str, key: str) -> Path:
        return self.project_state_dir(project_id) / f"{_check_name(key, 'record key')}.json"

    def _doc_path(self, project: Optional[ProjectRecord], filename: str) -> Optional[Path]:
        if project is None or not project.path:
            return None
        return self.config.docs_dir(project.path) / filename

    def _record_lock(self, project_id: str, key: str):
        return self.file_store.locks.hold(str(self.record_path(project_id, key)))

    # --- Event handlers ----------------------------------------------------

    def _on_project_created(self, event: Event) -> None:
        if event.project_id:
            ensure_directory_exists(self.project_state_dir(event.project_id))

    def _on_project_deleted(self, event: Event) -> None:
        if event.project_id:
            self.delete_project_data(event.project_id)

    # --- Generic records ---------------------------------------------------

    def _mirror(self, project_id: str, key: str, data: Any) -> None:
        if self.kv is None or not self.config.mirror_to_kv:
            return
        kv_key = KV_KEY_TEMPLATE.format(project_id=project_id, key=key)
        try:
            self.kv.set(kv_key, data, scope="global")
        except Exception as e:
            logger.warning(f"Failed to mirror {kv_key} to external store: {e}")

    def save_project_data(self, project_id: str, key: str, data: Any) -> None:
        """Write a record durably and mirror it into the KeyValueStore.

        Typed keys (requirements, implementation_scope, mockups) are validated
        against their schema first.

        Raises:
            ValidationError: If a typed record does not match its schema
            StorageIOError: If the record could not be written
            LockTimeout: If another writer holds the record too long
        """
        path = self.record_path(project_id, key)
        schema = RECORD_SCHEMAS.get(key)
        if schema:
            validate_before_write(data, schema, path)

        with self._record_lock(project_id, key):
            self.file_store.save(path, data)
            self._mirror(project_id, key, data)

        self.registry.touch(project_id)
        logger.debug(f"Saved {key} for project {project_id}")

    def get_project_data(self, project_id: str, key: str, default: Any = None) -> Any:
        """Load a record from the first tier that has a usable copy. Never raises on I/O."""
        schema = RECORD_SCHEMAS.get(key)
        return self.reader.load(
            self.record_path(project_id, key),
            external_key=KV_KEY_TEMPLATE.format(project_id=project_id, key=key),
            default=default,
            validator=validator_for(schema) if schema else None,
        )

    def delete_project_data(self, project_id: str) -> bool:
        """Remove every record of a project, including its KV mirrors.

        Returns False if the project had no state directory.
        """
        state_dir = self.project_state_dir(project_id)
        if not state_dir.exists():
            return False

        if self.kv is not None and self.config.mirror_to_kv:
            for record in state_dir.glob("*.json"):
                kv_key = KV_KEY_TEMPLATE.format(project_id=project_id, key=record.stem)
                try:
                    self.kv.set(kv_key, None, scope="global")
                except Exception as e:
                    logger.warning(f"Failed to clear {kv_key} from external store: {e}")

        try:
            shutil.rmtree(state_dir)
        except OSError as e:
            raise StorageIOError(f"Failed to delete {state_dir}: {e}") from e
        logger.info(f"Deleted state for project {project_id}")
        return True

    # --- Summary document --------------------------------------------------

    def _update_summary(self, project: ProjectRecord, sections: list[tuple[str, str]]) -> None:
        if self.section_updater is None or not project.path:
            return
        for title, content in sections:
            try:
                self.section_updater.update_section(project.path, title, content)
            except Exception as e:
                logger.warning(f"Failed to update summary section '{title}' for {project.id}: {e}")

    def _requirements_summary(self, requirements: Requirements) -> list[tuple[str, str]]:
        link = f"./{self.config.docs_dirname}/{REQUIREMENTS_DOC}"
        count = len(requirements.extracted_items)
        return [(SUMMARY_REQUIREMENTS_SECTION, f"[要件定義ファイル]({link}) - {count}個の要件が定義されています。")]

    def _structure_summary(self) -> list[tuple[str, str]]:
        # A link only; structure.md has its own headings
        link = f"./{self.config.docs_dirname}/{STRUCTURE_DOC}"
        return [(SUMMARY_STRUCTURE_SECTION, f"[ディレクトリ構造ファイル]({link}) - カスタム構造が定義されています。")]

    def _scope_summary(self, project: ProjectRecord, scope: ImplementationScope) -> list[tuple[str, str]]:
        link = f"./{self.config.docs_dirname}/{SCOPE_DOC}"
        done = len(scope.items_with_status("completed"))
        total = len(scope.items)
        phases = project.phases

        if phases.get("implementation"):
            implementation = "完了"
        elif scope.total_progress > 0:
            implementation = f"{scope.total_progress}%完了"
        else:
            implementation = "未開始"

        status = "\n".join([
            f"- 要件定義: {_done(phases.get('requirements'))}",
            f"- 設計: {_done(phases.get('design'))}",
            f"- 実装: {implementation}",
            f"- テスト: {_done(phases.get('testing'))}",
            f"- デプロイ: {_done(phases.get('deployment'))}",
        ])
        checklist = "\n".join([
            f"- [{_check(phases.get('requirements'))}] 要件定義の完了",
            f"- [{_check(phases.get('design'))}] 設計の完了",
            f"- [{_check(total > 0)}] 実装スコープの決定",
            f"- [{_check(scope.total_progress > 0)}] 実装の開始",
            f"- [{_check(phases.get('testing'))}] テストの実施",
            f"- [{_check(phases.get('deployment'))}] デプロイの準備",
        ])
        return [
            (SUMMARY_SCOPE_SECTION, f"[実装スコープファイル]({link}) - 進捗: {scope.total_progress}% ({done}/{total}項目完了)"),
            (SUMMARY_STATUS_SECTION, status),
            (SUMMARY_CHECKLIST_SECTION, checklist),
        ]

    # --- Requirements ------------------------------------------------------

    def _advance_phase(self, project_id: str, phase: str, content: str, template: str) -> None:
        if is_changed(content, template):
            self.registry.update_phase(project_id, phase, True)

    def save_requirements(self, project_id: str, requirements: Requirements) -> Requirements:
        """Save requirements as JSON and, when the project has a path, as docs/requirements.md.

        Marks the requirements phase complete once the Markdown has moved past
        the seed template, then emits requirements-updated.
        """
        project = self.registry.get_project(project_id)
        data = requirements.to_dict()
        markdown = encode_requirements(requirements)
        doc_path = self._doc_path(project, REQUIREMENTS_DOC)
        validate_before_write(data, RECORD_SCHEMAS[REQUIREMENTS_KEY], self.record_path(project_id, REQUIREMENTS_KEY))

        with self._record_lock(project_id, REQUIREMENTS_KEY):
            if doc_path is not None:
                self.file_store.write_text(doc_path, markdown, backup=False)
                logger.info(f"Saved requirements to {doc_path}")
            self.save_project_data(project_id, REQUIREMENTS_KEY, data)

        if project is not None:
            self._update_summary(project, self._requirements_summary(requirements))
            self._advance_phase(project_id, "requirements", markdown, REQUIREMENTS_TEMPLATE)

        self.bus.emit(EventType.REQUIREMENTS_UPDATED, Requirements.from_dict(data), self.SOURCE, project_id)
        return Requirements.from_dict(data)

    def _read_doc(self, path: Optional[Path]) -> Optional[str]:
        if path is None or not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    def get_requirements(self, project_id: str) -> Optional[Requirements]:
        """Requirements from docs/requirements.md if present, else the stored record."""
        project = self.registry.get_project(project_id)
        markdown = self._read_doc(self._doc_path(project, REQUIREMENTS_DOC))
        if markdown is not None:
            return decode_requirements(markdown)

        data = self.get_project_data(project_id, REQUIREMENTS_KEY)
        return Requirements.from_dict(data) if data is not None else None

    def sync_requirements_from_markdown(self, project_id: str) -> Optional[Requirements]:
        """Persist a hand-edited docs/requirements.md into the JSON record.

        Returns None when the project has no requirements document.
        """
        project = self.registry.get_project(project_id)
        markdown = self._read_doc(self._doc_path(project, REQUIREMENTS_DOC))
        if markdown is None:
            return None

        requirements = decode_requirements(markdown)
        data = requirements.to_dict()
        self.save_project_data(project_id, REQUIREMENTS_KEY, data)
        self._update_summary(project, self._requirements_summary(requirements))
        self._advance_phase(project_id, "requirements", markdown, REQUIREMENTS_TEMPLATE)

        self.bus.emit(EventType.REQUIREMENTS_UPDATED, Requirements.from_dict(data), self.SOURCE, project_id)
        return requirements

    # --- Directory structure -----------------------------------------------

    def save_structure(self, project_id: str, content: str) -> bool:
        """Write docs/structure.md. Returns True if it diverged from the template.

        Raises:
            ValueError: If the project is unknown or has no path
        """
        project = self.registry.get_project(project_id)
        doc_path = self._doc_path(project, STRUCTURE_DOC)
        if doc_path is None:
            raise ValueError(f"Project {project_id} has no project path")

        self.file_store.write_text(doc_path, content, backup=False)
        logger.info(f"Saved directory structure to {doc_path}")

        changed = is_changed(content, STRUCTURE_TEMPLATE)
        if changed:
            self.registry.update_phase(project_id, "design", True)
            self._update_summary(project, self._structure_summary())
            self.bus.emit(
                EventType.PROJECT_STRUCTURE_UPDATED,
                {"project_id": project_id, "content": content},
                self.SOURCE,
                project_id,
            )
        return changed

    # --- Mockups -----------------------------------------------------------

    def get_mockups(self, project_id: str) -> list[Mockup]:
        data = self.get_project_data(project_id, MOCKUPS_KEY, default=[])
        return [Mockup.from_dict(m) for m in data]

    def save_mockup(self, project_id: str, mockup: Mockup) -> Mockup:
        """Insert or replace a mockup by id, then mark the design phase complete."""
        saved = copy.deepcopy(mockup)
        if not saved.id:
            saved.id = new_id("mockup")
        now = now_ms()
        saved.created_at = saved.created_at or now
        saved.updated_at = now

        with self._record_lock(project_id, MOCKUPS_KEY):
            mockups = [m for m in self.get_mockups(project_id) if m.id != saved.id]
            mockups.append(saved)
            self.save_project_data(project_id, MOCKUPS_KEY, [m.to_dict() for m in mockups])

        if self.registry.get_project(project_id) is not None:
            self.registry.update_phase(project_id, "design", True)

        self.bus.emit(EventType.MOCKUP_CREATED, copy.deepcopy(saved), self.SOURCE, project_id)
        return saved

    # --- Implementation scope ----------------------------------------------

    def _write_scope(self, project_id: str, scope: ImplementationScope, project: Optional[ProjectRecord]) -> None:
        """Write scope.md and the JSON record. Caller holds the scope lock."""
        if not scope.id:
            scope.id = new_id("scope")
        _check_name(scope.id, "scope id")
        if project is not None and project.path and not scope.project_path:
            scope.project_path = project.path
        scope.recompute_progress()
        validate_before_write(scope.to_dict(), RECORD_SCHEMAS[SCOPE_KEY], self.record_path(project_id, SCOPE_KEY))

        doc_path = self._doc_path(project, SCOPE_DOC)
        if doc_path is not None:
            self.file_store.write_text(doc_path, encode_scope(scope), backup=False)
            logger.info(f"Saved implementation scope to {doc_path}")
        self.save_project_data(project_id, SCOPE_KEY, scope.to_dict())

    def _export_scope(self, scope: ImplementationScope) -> None:
        if not self.config.export_scopes:
            return
        path = self.config.scopes_dir / f"{scope.id}.json"
        try:
            self.file_store.save(path, scope.to_dict(), backup=False)
        except OSError as e:
            logger.warning(f"Failed to export scope {scope.id} to {path}: {e}")

    def _after_scope_saved(self, project_id: str, scope: ImplementationScope) -> None:
        self._export_scope(scope)
        if self.registry.get_project(project_id) is not None:
            project = self.registry.update_phase(project_id, "implementation", scope.total_progress >= 100)
            self._update_summary(project, self._scope_summary(project, scope))
        self.bus.emit(EventType.SCOPE_UPDATED, copy.deepcopy(scope), self.SOURCE, project_id)

    def save_scope(self, project_id: str, scope: ImplementationScope) -> ImplementationScope:
        """Save a scope as JSON and docs/scope.md, and return the saved copy.

        Assigns an id when missing and recomputes total_progress. The
        implementation phase is complete exactly when progress reaches 100.
        """
        saved = copy.deepcopy(scope)
        project = self.registry.get_project(project_id)
        with self._record_lock(project_id, SCOPE_KEY):
            self._write_scope(project_id, saved, project)

        self._after_scope_saved(project_id, saved)
        return copy.deepcopy(saved)

    def get_scope(self, project_id: str) -> Optional[ImplementationScope]:
        """Scope from docs/scope.md if present, else the stored record.

        The Markdown carries no ids, so the stored scope id is kept and items
        whose title matches a stored item keep that item's id. A new item whose
        positional id belongs to a stored item gets the lowest free item-NNN.
        """
        project = self.registry.get_project(project_id)
        stored_data = self.get_project_data(project_id, SCOPE_KEY)
        stored = ImplementationScope.from_dict(stored_data) if stored_data is not None else None

        markdown = self._read_doc(self._doc_path(project, SCOPE_DOC))
        if markdown is None:
            if stored is not None:
                stored.recompute_progress()
            return stored

        scope = decode_scope(markdown, project.path)
        if stored is not None:
            scope.id = stored.id
            scope.estimated_time = stored.estimated_time
            ids_by_title = {item.title: item.id for item in stored.items}
            stored_ids = {item.id for item in stored.items}
            unmatched = []
            for item in scope.items:
                if item.title in ids_by_title:
                    item.id = ids_by_title.pop(item.title)
                else:
                    unmatched.append(item)
            # Positional ids are unique among themselves but may collide with stored ones
            taken = stored_ids | {item.id for item in unmatched}
            for item in unmatched:
                if item.id in stored_ids:
                    item.id = _free_item_id(taken)
                    taken.add(item.id)
            scope.selected_ids = [item.id for item in scope.items]
        return scope

    def _announce_progress(self, project_id: str, scope: ImplementationScope) -> None:
        self._after_scope_saved(project_id, scope)
        self.bus.emit(
            EventType.IMPLEMENTATION_PROGRESS,
            {
                "items": [copy.deepcopy(item) for item in scope.items],
                "total_progress": scope.total_progress,
            },
            self.SOURCE,
            project_id,
        )

    def update_implementation_progress(
        self, project_id: str, items: list[ImplementationItem]
    ) -> Optional[ImplementationScope]:
        """Replace the scope's items and recompute progress. None if there is no scope."""
        project = self.registry.get_project(project_id)
        with self._record_lock(project_id, SCOPE_KEY):
            scope = self.get_scope(project_id)
            if scope is None:
                logger.warning(f"No implementation scope for project {project_id}")
                return None
            scope.items = copy.deepcopy(items)
            scope.selected_ids = [item.id for item in scope.items]
            self._write_scope(project_id, scope, project)

        self._announce_progress(project_id, scope)
        return copy.deepcopy(scope)

    def update_item_status(
        self, project_id: str, item_id: str, status: str, progress: Optional[int] = None
    ) -> Optional[ImplementationScope]:
        """Move one item to status. Progress defaults to 100/50/0 by status.

        Returns None if there is no scope or no such item.

        Raises:
            ValueError: If status or progress is out of range
        """
        if status not in ITEM_STATUSES:
            raise ValueError(f"Unknown status '{status}' (expected one of {', '.join(ITEM_STATUSES)})")
        if progress is not None and not 0 <= progress <= 100:
            raise ValueError(f"Progress must be between 0 and 100, got {progress}")

        project = self.registry.get_project(project_id)
        with self._record_lock(project_id, SCOPE_KEY):
            scope = self.get_scope(project_id)
            item = scope.find_item(item_id) if scope else None
            if item is None:
                logger.warning(f"No item {item_id} in implementation scope of {project_id}")
                return None
            item.status = status
            item.progress = progress if progress is not None else DEFAULT_PROGRESS[status]
            self._write_scope(project_id, scope, project)

        self._announce_progress(project_id, scope)
        return copy.deepcopy(scope)


def open_store(
    app_dir: Optional[Path] = None,
    kv: Optional[KeyValueStore] = None,
    config: Optional[StoreConfig] = None,
    section_updater: Optional[SectionUpdater] = None,
) -> ProjectStateStore:
    """Build a store with default collaborators.

    kv defaults to a JsonSettingsStore in the app directory; section_updater to
    a MarkdownSummaryUpdater writing config.summary_filename.

    Raises:
        StorageIOError: If the application directories cannot be created
    """
    config = config or load_store_config(app_dir)
    for directory in (config.app_dir, config.state_dir, config.projects_dir, config.scopes_dir):
        ensure_directory_exists(directory)

    file_store = AtomicFileStore(KeyLocks(config.lock_timeout))
    if kv is None:
        kv = JsonSettingsStore(config.settings_file, file_store)
    if section_updater is None:
        section_updater = MarkdownSummaryUpdater(config.summary_filename, file_store)

    bus = EventBus()
    registry = ProjectRegistry(config, bus, file_store, kv)
    return ProjectStateStore(config, registry, bus, kv, section_updater, file_store)
