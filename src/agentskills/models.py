"""
Data model for agentskills

Every tree node carries an explicit ``kind`` discriminant and a stable
``node_id`` so that callers dispatch on the kind and re-query the engine by
identifier instead of probing attributes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class MatchStatus(str, Enum):
    """Match status between an installed skill and a repository skill."""

    NOT_INSTALLED = "not_installed"
    MATCHED = "matched"
    CONFLICT = "conflict"


class NodeKind(str, Enum):
    """Discriminant of the tree node variants."""

    REPO = "repo"
    SKILL = "skill"
    LOCAL_GROUP = "local-group"
    LOCAL_SKILL = "local-skill"


@dataclass
class Skill:
    """A skill bundle discovered inside a cloned repository."""

    name: str
    description: str
    path: str
    repo_url: str
    local_path: Optional[str] = None
    match_status: Optional[MatchStatus] = None
    installed: bool = False

    kind = NodeKind.SKILL

    @property
    def node_id(self) -> str:
        return f"{self.repo_url}::{self.name}"


@dataclass
class SkillRepo:
    """A configured remote skill repository."""

    url: str
    name: str
    branch: Optional[str] = None
    is_preset: bool = False

    kind = NodeKind.REPO

    @property
    def node_id(self) -> str:
        return self.url

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkillRepo":
        """Create a SkillRepo from a configuration record."""
        return cls(
            url=data["url"],
            name=data.get("name") or data["url"],
            branch=data.get("branch") or None,
            is_preset=bool(data.get("isPreset", data.get("is_preset", False))),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a configuration record."""
        data: Dict[str, Any] = {"url": self.url, "name": self.name}
        if self.branch:
            data["branch"] = self.branch
        if self.is_preset:
            data["isPreset"] = True
        return data


@dataclass
class LocalSkillsGroup:
    """A candidate local skills directory (project or home relative)."""

    name: str
    path: str
    icon: str = "folder"
    exists: bool = False
    is_active: bool = False

    kind = NodeKind.LOCAL_GROUP

    @property
    def node_id(self) -> str:
        return self.path


@dataclass
class LocalSkill:
    """A skill found directly inside a local skills directory."""

    name: str
    description: str
    path: str
    group_path: str

    kind = NodeKind.LOCAL_SKILL

    @property
    def node_id(self) -> str:
        return self.path


@dataclass
class SkillDirectory:
    """A skills directory candidate with display metadata."""

    path: str
    display_name: str
    is_project: bool
    icon: str = field(default="folder")


TreeNode = Union[SkillRepo, Skill, LocalSkillsGroup, LocalSkill]
