"""Abstract base class for the project store collaborator.

Project CRUD lives outside the indexing engine.  The engine only needs to
read a project's current content, title and owner when a save notification
arrives, and to render result titles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storylens.models.project import Project


# Concrete implementation: MemoryProjectStore (storylens/providers/project/)
class IProjectStore(ABC):
    """Read-mostly access to writers' projects."""

    @abstractmethod
    async def get_project(self, project_id: str) -> Project | None:
        """Return the project, or ``None`` if it does not exist."""

    @abstractmethod
    async def save_project(self, project: Project) -> None:
        """Create or replace a project record."""

    @abstractmethod
    async def delete_project(self, project_id: str) -> bool:
        """Remove a project.  Returns ``True`` if it existed."""
