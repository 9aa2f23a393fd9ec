"""Content fingerprints of skill bundles, cached by marker modification time."""

import hashlib
import logging
from pathlib import Path
from typing import Dict, Tuple, Union

logger = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"


def compute_skill_hash(dir_path: Union[str, Path]) -> str:
    """Compute the hash of the SKILL.md file in a skill directory.

    Only SKILL.md takes part in the comparison.

    Args:
        dir_path: Skill bundle directory

    Returns:
        SHA256 hex digest of the raw marker bytes, or "" if there is no marker
    """
    skill_md = Path(dir_path) / SKILL_FILE
    if not skill_md.is_file():
        return ""
    return hashlib.sha256(skill_md.read_bytes()).hexdigest()


def compare_skill_directories(dir1: Union[str, Path], dir2: Union[str, Path]) -> bool:
    """Compare two skill directories based on their SKILL.md content."""
    if not Path(dir1).exists() or not Path(dir2).exists():
        return False
    return compute_skill_hash(dir1) == compute_skill_hash(dir2)


class SkillHashCache:
    """Memoizes skill hashes per directory, invalidated by SKILL.md mtime."""

    def __init__(self):
        self._entries: Dict[str, Tuple[str, int]] = {}

    def get(self, dir_path: Union[str, Path]) -> str:
        """Get the cached hash for a skill directory, recomputing if modified.

        Args:
            dir_path: Skill bundle directory

        Returns:
            Hex digest, or "" when SKILL.md is missing or unreadable
        """
        key = str(dir_path)
        skill_md = Path(dir_path) / SKILL_FILE

        try:
            mtime = skill_md.stat().st_mtime_ns
        except OSError:
            return ""

        cached = self._entries.get(key)
        if cached and cached[1] == mtime:
            return cached[0]

        try:
            digest = compute_skill_hash(dir_path)
        except OSError as e:
            logger.warning(f"Could not hash {skill_md}: {e}")
            return ""

        self._entries[key] = (digest, mtime)
        return digest

    def clear(self) -> None:
        """Drop every cached hash (after installs, deletes and full refreshes)."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
