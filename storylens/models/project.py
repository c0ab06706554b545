"""Project record as seen by the indexing engine."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROJECT_TITLE = "Untitled project"


class Project(BaseModel):
    """The slice of a writer's project that indexing needs: content, title, owner."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    owner_id: str = ""
    title: str = Field(default=DEFAULT_PROJECT_TITLE)
    content: str = ""
