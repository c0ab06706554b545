"""In-process project store for development, the CLI and tests."""

from __future__ import annotations

import structlog

from storylens.interfaces.project_store import IProjectStore
from storylens.models.project import Project

logger = structlog.get_logger(logger_name=__name__)


class MemoryProjectStore(IProjectStore):
    """Keeps :class:`Project` records in a dict keyed by ``project_id``."""

    def __init__(self, projects: list[Project] | None = None) -> None:
        self._projects: dict[str, Project] = {p.project_id: p for p in projects or []}

    async def get_project(self, project_id: str) -> Project | None:
        return self._projects.get(project_id)

    async def save_project(self, project: Project) -> None:
        self._projects[project.project_id] = project
        logger.debug("project_saved", project_id=project.project_id, chars=len(project.content))

    async def delete_project(self, project_id: str) -> bool:
        return self._projects.pop(project_id, None) is not None
