"""Markdown-backed issue model."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

EPIC_TYPE = "epic"


def normalize_title(value: str) -> str:
    """Key used to match a parent reference against issue titles."""

    return value.strip().casefold()


class IssuePhase(str, Enum):
    """Ordering phase. Epics are always synchronized after regular issues."""

    REGULAR = "regular"
    EPIC = "epic"


class Issue(BaseModel):
    """One ticket read from a markdown file.

    `id` holds the remote issue number once the issue exists on GitHub; it is empty for
    issues that still have to be created. `parent` references another issue by title.
    """

    path: Path = Field(default=Path("."))
    file_name: str = Field(default="")
    title: str
    body: str = Field(default="")
    labels: list[str] = Field(default_factory=list)
    type: str = Field(default="")
    id: str = Field(default="")
    project: str = Field(default="")
    parent: str = Field(default="")

    @property
    def source_path(self) -> Path:
        return self.path / self.file_name

    @property
    def phase(self) -> IssuePhase:
        if self.type.strip().casefold() == EPIC_TYPE:
            return IssuePhase.EPIC
        return IssuePhase.REGULAR

    @property
    def exists(self) -> bool:
        """True when the issue was already created remotely."""

        return bool(self.id.strip())

    @property
    def has_type(self) -> bool:
        return bool(self.type.strip())

    @property
    def has_parent(self) -> bool:
        return bool(self.parent.strip())

    @property
    def title_key(self) -> str:
        return normalize_title(self.title)

    @property
    def parent_key(self) -> str:
        return normalize_title(self.parent)
