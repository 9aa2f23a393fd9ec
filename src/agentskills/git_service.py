"""Git access layer for cached skill repositories."""

import asyncio
import base64
import logging
import re
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import urlparse

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from git import Repo as GitRepo
from git.cmd import Git

from .errors import CloneError, PullError
from .models import Skill
from .skill_scanner import scan_skills_from_dir


logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path(tempfile.gettempdir()) / "agentskills-git-cache"

_SCP_LIKE_RE = re.compile(r"^(?:.+@)?([^:/]+):.+$")


class GitService:
    """Clone, update and inspect skill repositories in an on-disk cache.

    Every repository lives in ``cache_dir/<encoded url>``. Failures are never
    retried here; callers decide whether to surface or skip them.
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None):
        """Initialize the git service.

        Args:
            cache_dir: Cache root, defaults to <tempdir>/agentskills-git-cache
        """
        self.cache_dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, url: str) -> threading.RLock:
        """Per-repository lock serializing work on one cache directory."""
        with self._locks_guard:
            lock = self._locks.get(url)
            if lock is None:
                lock = self._locks[url] = threading.RLock()
            return lock

    @staticmethod
    def encode_url(url: str) -> str:
        """Filesystem safe, deterministic directory name for a repository URL."""
        return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")

    def get_repo_path(self, url: str) -> Path:
        return self.cache_dir / self.encode_url(url)

    def is_repo_cloned(self, url: str) -> bool:
        return (self.get_repo_path(url) / ".git").exists()

    @staticmethod
    def _is_valid_git_repo(repo_path: Path) -> bool:
        try:
            output = GitRepo(repo_path).git.rev_parse("--is-inside-work-tree")
            return output.strip() == "true"
        except (GitCommandError, InvalidGitRepositoryError, NoSuchPathError):
            return False

    def ensure_repo_cloned(self, url: str, branch: Optional[str] = None) -> Path:
        """Make sure a valid clone of the repository exists in the cache.

        Stale or corrupt directories are removed and replaced by a shallow
        (depth 1) clone.

        Args:
            url: Repository URL
            branch: Optional branch to clone

        Returns:
            Path to the cached clone

        Raises:
            CloneError: If git clone fails
        """
        repo_path = self.get_repo_path(url)

        with self._lock_for(url):
            if (repo_path / ".git").exists() and self._is_valid_git_repo(repo_path):
                return repo_path

            if repo_path.exists():
                logger.debug(f"Removing stale clone at {repo_path}")
                shutil.rmtree(repo_path, ignore_errors=True)

            kwargs = {"depth": 1}
            if branch:
                kwargs["branch"] = branch

            logger.info(f"Cloning {url} to {repo_path}")
            try:
                GitRepo.clone_from(url, repo_path, **kwargs)
            except GitCommandError as e:
                shutil.rmtree(repo_path, ignore_errors=True)
                raise CloneError(str(e.stderr or e).strip(), url=url, orig_exc=e) from e

        return repo_path

    def pull_repo(self, url: str, branch: Optional[str] = None) -> None:
        """Fetch and pull a repository, cloning it first if needed.

        Args:
            url: Repository URL
            branch: Branch to check out and pull, the current one if None

        Raises:
            CloneError: If the initial clone fails
            PullError: If fetch, checkout or pull fails
        """
        with self._lock_for(url):
            repo_path = self.ensure_repo_cloned(url, branch)
            repo = GitRepo(repo_path)

            try:
                repo.git.fetch("origin")
                if branch:
                    self._fetch_branch(repo, branch)
                    repo.git.checkout(branch)
                    repo.git.pull("origin", branch)
                else:
                    repo.git.pull()
            except GitCommandError as e:
                raise PullError(str(e.stderr or e).strip(), url=url, orig_exc=e) from e

        logger.debug(f"Pulled {url} ({branch or 'default branch'})")

    @staticmethod
    def _fetch_branch(repo: GitRepo, branch: str) -> None:
        # Shallow single-branch clones only track their initial branch.
        repo.git.fetch("origin", f"+refs/heads/{branch}:refs/remotes/origin/{branch}")

    def get_remote_branches(self, url: str) -> List[str]:
        """List branch names on the remote without cloning.

        Args:
            url: Repository URL

        Returns:
            Branch names in remote order, empty on any failure
        """
        try:
            output = Git().ls_remote("--heads", url)
        except GitCommandError as e:
            logger.error(f"Failed to list branches for {url}: {e}")
            return []

        branches = []
        for line in output.splitlines():
            parts = line.strip().split("\t")
            if len(parts) == 2 and parts[1].startswith("refs/heads/"):
                branches.append(parts[1][len("refs/heads/"):])
        return branches

    @staticmethod
    def get_current_branch(repo_path: Union[str, Path]) -> str:
        return GitRepo(repo_path).git.rev_parse("--abbrev-ref", "HEAD").strip()

    @staticmethod
    def get_repo_host(url: str) -> Optional[str]:
        """Extract the host of a standard URL or of an SCP-like ``host:path``."""
        trimmed = url.strip()
        if not trimmed:
            return None

        parsed = urlparse(trimmed)
        if parsed.netloc and parsed.hostname:
            return parsed.hostname
        if "://" in trimmed:
            return None

        match = _SCP_LIKE_RE.match(trimmed)
        if match:
            return match.group(1)
        return None

    async def check_repo_connectivity(self, url: str, timeout_ms: int = 200) -> bool:
        """Check that the repository host resolves before a timeout.

        The DNS lookup races a timer; whichever settles first wins. A timeout
        is a normal "unreachable" answer, not an error.

        Args:
            url: Repository URL
            timeout_ms: Resolution timeout in milliseconds

        Returns:
            True if the host resolved in time
        """
        host = self.get_repo_host(url)
        if not host:
            return False

        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(loop.getaddrinfo(host, None), timeout=timeout_ms / 1000)
            return True
        except asyncio.TimeoutError:
            logger.debug(f"DNS lookup for {host} timed out after {timeout_ms}ms")
            return False
        except (OSError, UnicodeError) as e:
            logger.debug(f"DNS lookup for {host} failed: {e}")
            return False

    def get_skills_from_repo(self, url: str, branch: Optional[str] = None) -> List[Skill]:
        """List the skills of a repository, switching branch when needed.

        Args:
            url: Repository URL
            branch: Requested branch; the clone is force-checked-out onto
                origin/<branch> if it is on another branch

        Returns:
            Skills discovered in the clone

        Raises:
            CloneError: If the clone fails
            PullError: If the branch switch fails
        """
        with self._lock_for(url):
            repo_path = self.ensure_repo_cloned(url, branch)

            if branch:
                try:
                    current_branch = self.get_current_branch(repo_path)
                    if current_branch != branch:
                        repo = GitRepo(repo_path)
                        self._fetch_branch(repo, branch)
                        repo.git.checkout("-B", branch, f"origin/{branch}")
                except GitCommandError as e:
                    raise PullError(str(e.stderr or e).strip(), url=url, orig_exc=e) from e

            return scan_skills_from_dir(repo_path, url)
