"""
Installer for agentskills

Copies skill directories into an install target, removes them again, and
installs skills found by remote search from a downloaded ZIP archive.
"""

import io
import logging
import os
import re
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Union

import requests

from .errors import InstallError
from .skill_hash import SKILL_FILE

if TYPE_CHECKING:
    from .remote_search import RemoteSkill


logger = logging.getLogger(__name__)

ZIP_PROXY_URL = "https://github-zip-api.val.run/zip"
DOWNLOAD_TIMEOUT = 60
SKILL_ROOT_MAX_DEPTH = 4
SKIPPED_DIRS = {".git", "node_modules"}

_UNSAFE_NAME_RE = re.compile(r'[\\/:*"<>|?]+')

PathLike = Union[str, Path]


def sanitize_dir_name(name: str) -> str:
    """Turn a skill name into a safe directory name."""
    cleaned = _UNSAFE_NAME_RE.sub("-", name or "").strip().lstrip(".").strip()
    return cleaned or "skill"


def check_skill_dir_name(name: str) -> str:
    """
    Validate a skill name used verbatim as a directory under the target.

    The name must be a single visible path component.

    Raises:
        InstallError: If the name is empty, hidden or contains a path separator
    """
    if (
        not name
        or name != name.strip()
        or name.startswith(".")
        or "/" in name
        or "\\" in name
        or "\0" in name
    ):
        raise InstallError(f"Invalid skill directory name: {name!r}")
    return name


def copy_skill_dir(src: PathLike, dest: PathLike) -> Path:
    """
    Replace ``dest`` with a recursive copy of ``src``.

    Args:
        src: Source skill directory
        dest: Destination directory (removed first if present)

    Returns:
        The destination path
    """
    src, dest = Path(src), Path(dest)
    if dest.exists() or dest.is_symlink():
        delete_skill_dir(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dest)
    return dest


def install_skill_dir(source: PathLike, name: str, target_base: PathLike) -> Path:
    """
    Install a skill directory as ``target_base/name``.

    Raises:
        InstallError: If the name is unsafe or the source directory does not exist
    """
    check_skill_dir_name(name)
    source = Path(source)
    if not source.is_dir():
        raise InstallError(f"Source not found for skill {name}: {source}")

    target_base = Path(target_base)
    target_base.mkdir(parents=True, exist_ok=True)
    dest = copy_skill_dir(source, target_base / name)
    logger.info(f"Installed skill {name} -> {dest}")
    return dest


def delete_skill_dir(path: PathLike) -> bool:
    """Remove a skill directory; returns False if it did not exist."""
    path = Path(path)
    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True


def delete_installed_skill(name: str, target_base: PathLike) -> bool:
    """
    Remove ``target_base/name``.

    Raises:
        InstallError: If the name is not a single path component
    """
    check_skill_dir_name(name)
    removed = delete_skill_dir(Path(target_base) / name)
    if removed:
        logger.info(f"Deleted installed skill {name}")
    else:
        logger.debug(f"Skill {name} is not installed in {target_base}")
    return removed


def find_dirs_with_file(root: PathLike, file_name: str, max_depth: int) -> List[Path]:
    """
    Find directories under ``root`` (inclusive) that contain ``file_name``.

    Args:
        root: Directory to search
        file_name: File that marks a match
        max_depth: Maximum depth below root to descend

    Returns:
        Matching directories, shallowest first, sorted by name within a level
    """
    root = Path(root)
    found: List[Path] = []
    level = [root]
    for depth in range(max_depth + 1):
        next_level: List[Path] = []
        for directory in level:
            if (directory / file_name).is_file():
                found.append(directory)
            if depth == max_depth:
                continue
            try:
                children = sorted(
                    p for p in directory.iterdir()
                    if p.is_dir() and not p.is_symlink() and p.name not in SKIPPED_DIRS
                )
            except OSError as e:
                logger.warning(f"Could not list {directory}: {e}")
                continue
            next_level.extend(children)
        level = next_level
    return found


def pick_skill_root(extracted: PathLike, expected_name: Optional[str] = None) -> Path:
    """
    Choose the skill directory inside an extracted archive.

    Prefers a SKILL.md directory named like the skill, then the first one
    found, then the extraction directory itself.
    """
    extracted = Path(extracted)
    candidates = find_dirs_with_file(extracted, SKILL_FILE, SKILL_ROOT_MAX_DEPTH)
    if not candidates:
        return extracted

    if expected_name:
        expected = expected_name.lower()
        for candidate in candidates:
            if candidate.name.lower() == expected:
                return candidate
    return candidates[0]


def safe_extract_zip(data: bytes, dest: PathLike) -> Path:
    """
    Extract a ZIP archive, refusing members that would land outside ``dest``.

    Raises:
        InstallError: If the archive is invalid or a member escapes ``dest``
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    root = os.path.realpath(dest)

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            for member in zf.infolist():
                target = os.path.realpath(os.path.join(root, member.filename))
                if os.path.commonpath([root, target]) != root:
                    raise InstallError(f"Unsafe path in archive: {member.filename}")
            zf.extractall(root)
    except zipfile.BadZipFile as e:
        raise InstallError(f"Invalid ZIP archive: {e}") from e

    return dest


def download_skill_zip(source_url: str, session: Optional[requests.Session] = None) -> bytes:
    """Download a repository archive through the ZIP proxy."""
    http = session or requests
    try:
        response = http.get(ZIP_PROXY_URL, params={"source": source_url}, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise InstallError(f"Failed to download {source_url}: {e}") from e
    return response.content


def install_remote_skill_from_zip(
    remote_skill: "RemoteSkill",
    target_base: PathLike,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Install a remote search result into ``target_base``.

    Args:
        remote_skill: Search result with a ``source_url``
        target_base: Install target directory
        session: Optional requests session

    Returns:
        Path of the installed skill directory
    """
    if not remote_skill.source_url:
        raise InstallError(f"Remote skill {remote_skill.name} has no source URL")

    data = download_skill_zip(remote_skill.source_url, session)
    name = sanitize_dir_name(remote_skill.name)

    temp_dir = Path(tempfile.mkdtemp(prefix="agentskills_zip_"))
    logger.debug(f"Created temporary directory: {temp_dir}")
    try:
        extracted = safe_extract_zip(data, temp_dir / "extracted")
        skill_root = pick_skill_root(extracted, remote_skill.name)
        dest = copy_skill_dir(skill_root, Path(target_base) / name)
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    logger.info(f"Installed remote skill {remote_skill.name} -> {dest}")
    return dest
