"""
Local skills directories

Enumerates the candidate skills directories of a workspace (one per distinct
IDE convention) and of the user's home, and lists the skills they hold.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from .ide import IDE_CONFIGS
from .models import LocalSkill, LocalSkillsGroup, SkillDirectory
from .skill_hash import SKILL_FILE
from .skill_scanner import extract_yaml_field, read_skill_file

logger = logging.getLogger(__name__)

GLOBAL_SKILL_DIRS = (
    (".claude/skills", "~/.claude/skills"),
    (".codex/skills", "~/.codex/skills"),
)


def get_skill_directories(
    workspace_root: Union[str, Path],
    home: Optional[Union[str, Path]] = None,
) -> List[SkillDirectory]:
    """
    Get all candidate skill directories with metadata.

    Args:
        workspace_root: Workspace (project) root
        home: Home directory override, defaults to the user's home

    Returns:
        Project directories (deduplicated) followed by global directories
    """
    workspace_root = Path(workspace_root)
    home = Path(home) if home is not None else Path.home()

    unique_project_dirs: List[str] = []
    for config in IDE_CONFIGS.values():
        if config.skills_dir not in unique_project_dirs:
            unique_project_dirs.append(config.skills_dir)

    directories = [
        SkillDirectory(
            path=str(workspace_root / rel_dir),
            display_name=rel_dir,
            is_project=True,
            icon="folder" if rel_dir.startswith(".claude/") else "folder-library",
        )
        for rel_dir in unique_project_dirs
    ]

    for rel_dir, display_name in GLOBAL_SKILL_DIRS:
        directories.append(SkillDirectory(
            path=str(home / rel_dir),
            display_name=display_name,
            is_project=False,
            icon="home",
        ))

    return directories


def _skill_subdirs(directory: Path) -> List[Path]:
    """Immediate non-hidden subdirectories holding a SKILL.md, in name order."""
    result = []
    with os.scandir(directory) as it:
        for entry in sorted(it, key=lambda e: e.name):
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            if (Path(entry.path) / SKILL_FILE).exists():
                result.append(Path(entry.path))
    return result


def has_local_skills(directory: Union[str, Path]) -> bool:
    """Check whether a directory holds at least one skill subdirectory."""
    try:
        return bool(_skill_subdirs(Path(directory)))
    except OSError:
        return False


def list_local_groups(
    workspace_root: Union[str, Path],
    active_path: Optional[Union[str, Path]],
    home: Optional[Union[str, Path]] = None,
) -> List[LocalSkillsGroup]:
    """
    Build the local skills groups shown in the tree.

    Only the active group and non-empty groups are returned; ``exists`` is
    probed on every call.

    Args:
        workspace_root: Workspace root
        active_path: Resolved install target of the detected IDE
        home: Home directory override

    Returns:
        List of local skills groups in discovery order
    """
    active = str(active_path) if active_path is not None else None
    groups = []

    for directory in get_skill_directories(workspace_root, home):
        group = LocalSkillsGroup(
            name=directory.display_name,
            path=directory.path,
            icon=directory.icon,
            exists=os.path.isdir(directory.path),
            is_active=directory.path == active,
        )
        if group.is_active or (group.exists and has_local_skills(group.path)):
            groups.append(group)

    return groups


def list_local_skills(group: LocalSkillsGroup) -> List[LocalSkill]:
    """
    List the skills directly inside a local group directory.

    Args:
        group: Local skills group

    Returns:
        Local skills, named after their directory
    """
    group_path = Path(group.path)
    if not group_path.is_dir():
        return []

    skills: List[LocalSkill] = []
    try:
        for skill_dir in _skill_subdirs(group_path):
            try:
                description = extract_yaml_field(read_skill_file(skill_dir), "description")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read {skill_dir / SKILL_FILE}: {e}")
                description = ""
            skills.append(LocalSkill(
                name=skill_dir.name,
                description=description,
                path=str(skill_dir),
                group_path=group.path,
            ))
    except OSError as e:
        logger.error(f"Error scanning local skills in {group.path}: {e}")

    return skills
