"""
agentskills

Discover, index and install agent skills (directories holding a SKILL.md)
from git repositories and local skill folders.
"""

__version__ = "0.1.0"

from .config import Config
from .git_service import GitService
from .models import LocalSkill, LocalSkillsGroup, MatchStatus, NodeKind, Skill, SkillRepo
from .repo_config import RepoConfigManager
from .skill_indexer import SkillIndexer
from .skill_manager import SkillManager

__all__ = [
    "Config",
    "GitService",
    "LocalSkill",
    "LocalSkillsGroup",
    "MatchStatus",
    "NodeKind",
    "RepoConfigManager",
    "Skill",
    "SkillIndexer",
    "SkillManager",
    "SkillRepo",
]
