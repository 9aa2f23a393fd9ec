"""
Skill Scanner for agentskills

Walks a directory tree and extracts skill metadata from SKILL.md front
matter. Field extraction is line oriented: one ``key: value`` per line,
nested or multi-line values are not supported.
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Tuple, Union

from .errors import DiscoveryIOError
from .models import Skill
from .skill_hash import SKILL_FILE

logger = logging.getLogger(__name__)

_FRONT_MATTER_RE = re.compile(r"^---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)", re.DOTALL)
_NAME_LINE_RE = re.compile(r"^name\s*:", re.MULTILINE)

SKIPPED_DIRS = {".git"}


def extract_front_matter(content: str) -> Tuple[Dict[str, str], str]:
    """
    Extract the leading front matter block from skill content.

    Args:
        content: Raw SKILL.md content

    Returns:
        Tuple of (metadata dict, content without front matter)
    """
    metadata: Dict[str, str] = {}
    content = content.lstrip("\ufeff")
    body = content

    match = _FRONT_MATTER_RE.match(content)
    if match:
        body = content[match.end():]
        for line in match.group(1).splitlines():
            if ":" not in line or line[:1].isspace():
                continue
            key, val = line.split(":", 1)
            key = key.strip()
            if key and key not in metadata:
                metadata[key] = val.strip().strip('"').strip("'")

    return metadata, body


def has_valid_front_matter(content: str) -> bool:
    """Check that content starts with a delimited header holding a ``name`` key."""
    match = _FRONT_MATTER_RE.match(content.lstrip("\ufeff"))
    if not match:
        return False
    return bool(_NAME_LINE_RE.search(match.group(1)))


def extract_yaml_field(content: str, field: str) -> str:
    """Get a single front matter value, or "" when it is absent."""
    metadata, _ = extract_front_matter(content)
    return metadata.get(field, "")


def read_skill_file(skill_dir: Union[str, Path]) -> str:
    """Read the SKILL.md of a skill directory."""
    return (Path(skill_dir) / SKILL_FILE).read_text(encoding="utf-8")


def scan_skills_from_dir(root: Union[str, Path], repo_url: str) -> List[Skill]:
    """
    Recursively find skill bundles below a directory.

    A child directory holding a SKILL.md is a bundle and is never descended
    into, so skills that embed example skills are counted once. Directories
    without a marker are searched further. Symbolic links are not followed.
    Errors on one directory are logged and only that subtree is skipped.

    Args:
        root: Directory to scan (usually a repository clone)
        repo_url: Owning repository URL ("" for local directories)

    Returns:
        List of discovered skills, paths relative to ``root``
    """
    root = Path(root)
    skills: List[Skill] = []

    if not root.is_dir():
        return skills

    def find_skills(directory: Path) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning(str(DiscoveryIOError(directory, e)))
            return

        for entry in entries:
            if entry.name in SKIPPED_DIRS:
                continue
            full_path = Path(entry.path)
            skill_md = full_path / SKILL_FILE
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
                has_marker = skill_md.exists()
            except OSError as e:
                logger.warning(str(DiscoveryIOError(entry.path, e)))
                continue

            if has_marker:
                try:
                    content = skill_md.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(str(DiscoveryIOError(skill_md, e)))
                    continue

                if has_valid_front_matter(content):
                    metadata, _ = extract_front_matter(content)
                    skills.append(Skill(
                        name=metadata.get("name") or entry.name,
                        description=metadata.get("description", ""),
                        path=full_path.relative_to(root).as_posix(),
                        repo_url=repo_url,
                        local_path=str(full_path),
                    ))
                else:
                    logger.debug(f"Skipping {skill_md}: no valid front matter")
            else:
                find_skills(full_path)

    find_skills(root)
    return skills
