"""
Project registry.

Projects are stored together in one JSON list:
  <app_dir>/projects/projects.json

Each project owns a state directory (see store.py) and, when it has a path,
a docs/ directory of seed Markdown documents. Lifecycle changes are announced
on the event bus.
"""

import copy
import logging
import threading
from pathlib import Path
from typing import Optional

from workstate.docs.models import ProjectRecord, now_ms
from workstate.docs.templates import create_initial_documents
from workstate.events import Event, EventBus, EventType
from workstate.lib.config import StoreConfig
from workstate.lib.constants import PHASES
from workstate.lib.validate import validate_before_write, validator_for
from workstate.storage.atomic import AtomicFileStore, StorageIOError, ensure_directory_exists
from workstate.storage.kv import KeyValueStore
from workstate.storage.tiered import TieredReader

logger = logging.getLogger(__name__)

PROJECTS_FILENAME = "projects.json"
PROJECTS_KV_KEY = "projects"

# Fields that update_project() may change directly
EDITABLE_FIELDS = ("name", "description", "status", "metadata")


class ProjectNotFoundError(KeyError):
    """No project with the given ID is registered."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class ProjectRegistry:
    """Creates, updates and deletes ProjectRecords.

    All getters return independent copies; mutate through the update methods.
    """

    SOURCE = "ProjectRegistry"

    def __init__(
        self,
        config: StoreConfig,
        bus: EventBus,
        file_store: Optional[AtomicFileStore] = None,
        kv: Optional[KeyValueStore] = None,
    ):
        self.config = config
        self.bus = bus
        self.file_store = file_store or AtomicFileStore()
        self.kv = kv
        self.reader = TieredReader(self.file_store, kv)
        self._lock = threading.RLock()

        ensure_directory_exists(config.projects_dir)
        self._projects = self._load()
        self._subscription = bus.subscribe(EventType.PHASE_COMPLETED, self._on_phase_completed)
        logger.info(f"Project registry loaded {len(self._projects)} projects from {self.metadata_path}")

    @property
    def metadata_path(self) -> Path:
        return self.config.projects_dir / PROJECTS_FILENAME

    def _load(self) -> dict[str, ProjectRecord]:
        data = self.reader.load(
            self.metadata_path,
            external_key=PROJECTS_KV_KEY,
            default=[],
            validator=validator_for("projects"),
        )
        return {p["id"]: ProjectRecord.from_dict(p) for p in data}

    def _persist(self) -> None:
        data = [p.to_dict() for p in self._projects.values()]
        validate_before_write(data, "projects", self.metadata_path)
        self.file_store.save(self.metadata_path, data)
        if self.kv is not None and self.config.mirror_to_kv:
            try:
                self.kv.set(PROJECTS_KV_KEY, data, scope="global")
            except Exception as e:
                logger.warning(f"Failed to mirror project list to external store: {e}")

    def _require(self, project_id: str) -> ProjectRecord:
        project = self._projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _generate_id(self) -> str:
        stamp = now_ms()
        while f"project_{stamp}" in self._projects:
            stamp += 1
        return f"project_{stamp}"

    def create_project(self, name: str, path: str = "", description: str = "") -> ProjectRecord:
        """Register a new project with every phase incomplete.

        When path is given, <path>/docs/ is created and seeded with the
        template documents. Failure to seed is logged, not raised.
        """
        with self._lock:
            now = now_ms()
            project = ProjectRecord(
                id=self._generate_id(),
                name=name,
                path=str(path) if path else "",
                description=description,
                created_at=now,
                updated_at=now,
            )
            self._projects[project.id] = project
            self._persist()
            created = copy.deepcopy(project)

        if created.path:
            self._seed_documents(created.path)

        logger.info(f"Project created: {created.id} ({created.name})")
        self.bus.emit(EventType.PROJECT_CREATED, copy.deepcopy(created), self.SOURCE, created.id)
        return created

    def _seed_documents(self, project_path: str) -> None:
        try:
            docs_dir = ensure_directory_exists(self.config.docs_dir(project_path))
            create_initial_documents(docs_dir, self.file_store)
        except StorageIOError as e:
            logger.error(f"Failed to create project structure at {project_path}: {e}")

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        with self._lock:
            project = self._projects.get(project_id)
            return copy.deepcopy(project) if project else None

    def list_projects(self) -> list[ProjectRecord]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._projects.values()]

    def get_active_project(self) -> Optional[ProjectRecord]:
        """The most recently updated project, or None."""
        projects = self.list_projects()
        if not projects:
            return None
        return max(projects, key=lambda p: p.updated_at)

    def get_project_path(self, project_id: str) -> str:
        project = self.get_project(project_id)
        return project.path if project else ""

    def get_current_project_path(self) -> str:
        project = self.get_active_project()
        return project.path if project else ""

    def search_projects(self, query: str) -> list[ProjectRecord]:
        """Case-insensitive match on name and description."""
        term = query.lower()
        return [
            p for p in self.list_projects()
            if term in p.name.lower() or term in p.description.lower()
        ]

    def update_project(self, project_id: str, **changes) -> ProjectRecord:
        """Apply changes to editable fields and bump updated_at.

        Raises:
            ProjectNotFoundError: If project_id is unknown
            ValueError: If a field is not editable here
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        with self._lock:
            project = self._require(project_id)
            for key, value in changes.items():
                setattr(project, key, value)
            project.updated_at = now_ms()
            self._persist()
            updated = copy.deepcopy(project)

        logger.info(f"Project updated: {project_id}")
        self.bus.emit(EventType.PROJECT_UPDATED, copy.deepcopy(updated), self.SOURCE, project_id)
        return updated

    def touch(self, project_id: str) -> None:
        """Bump updated_at without announcing it. Unknown IDs are ignored."""
        with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                return
            project.updated_at = now_ms()
            self._persist()

    def set_active_project(self, project_id: str) -> ProjectRecord:
        with self._lock:
            project = self._require(project_id)
            project.updated_at = now_ms()
            self._persist()
            selected = copy.deepcopy(project)

        self.bus.emit(EventType.PROJECT_SELECTED, copy.deepcopy(selected), self.SOURCE, project_id)
        return selected

    def archive_project(self, project_id: str, archived: bool = True) -> ProjectRecord:
        return self.update_project(project_id, status="archived" if archived else "active")

    def _set_phase(self, project_id: str, phase: str, completed: bool) -> tuple[ProjectRecord, bool]:
        if phase not in PHASES:
            raise ValueError(f"Unknown phase '{phase}' (expected one of {', '.join(PHASES)})")
        with self._lock:
            project = self._require(project_id)
            changed = project.phases.get(phase) != completed
            project.phases[phase] = completed
            project.updated_at = now_ms()
            self._persist()
            return copy.deepcopy(project), changed

    def update_phase(self, project_id: str, phase: str, completed: bool) -> ProjectRecord:
        """Set a phase flag. Emits phase-completed when the flag becomes true.

        Raises:
            ProjectNotFoundError: If project_id is unknown
            ValueError: If phase is not a known phase
        """
        project, changed = self._set_phase(project_id, phase, completed)
        logger.info(f"Project phase updated: {project_id}.{phase} = {completed}")
        if changed and completed:
            self.bus.emit(
                EventType.PHASE_COMPLETED,
                {"project_id": project_id, "phase": phase, "completed": completed},
                self.SOURCE,
                project_id,
            )
        return project

    def _on_phase_completed(self, event: Event) -> None:
        """Apply phase-completed events raised by other components."""
        if event.source == self.SOURCE:
            return
        payload = event.payload or {}
        project_id = event.project_id or payload.get("project_id")
        phase = payload.get("phase")
        if not project_id or not phase:
            logger.warning(f"Ignoring phase-completed event without project or phase from {event.source}")
            return
        completed = bool(payload.get("completed", True))
        logger.info(f"Phase completed event received: {project_id}.{phase} = {completed}")
        self._set_phase(project_id, phase, completed)

    def update_project_path(self, project_id: str, project_path: str) -> ProjectRecord:
        """Point a project at a new root. No-op (and no event) when unchanged."""
        if not project_id or not project_path:
            raise ValueError("Project ID and path are required")

        with self._lock:
            project = self._require(project_id)
            if project.path == str(project_path):
                logger.debug(f"Project path already set: {project_path}")
                return copy.deepcopy(project)
            project.path = str(project_path)
            project.updated_at = now_ms()
            self._persist()
            updated = copy.deepcopy(project)

        logger.info(f"Project path updated: {project_id} -> {project_path}")
        self.bus.emit(
            EventType.PROJECT_PATH_UPDATED,
            {"project_id": project_id, "project_path": str(project_path)},
            self.SOURCE,
            project_id,
        )
        return updated

    def delete_project(self, project_id: str) -> bool:
        """Remove a project. Listeners on project-deleted drop its stored records.

        Raises:
            ProjectNotFoundError: If project_id is unknown
        """
        with self._lock:
            project = self._require(project_id)
            del self._projects[project_id]
            self._persist()
            deleted = copy.deepcopy(project)

        logger.info(f"Project deleted: {project_id}")
        self.bus.emit(EventType.PROJECT_DELETED, deleted, self.SOURCE, project_id)
        return True

    def close(self) -> None:
        self._subscription.dispose()
