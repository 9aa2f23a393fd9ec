"""Custom exception classes for agentskills."""

from pathlib import Path
from typing import Optional, Union


class AgentSkillsError(Exception):
    """Base class for all custom exceptions in agentskills."""

    pass


class GitOperationError(AgentSkillsError):
    """
    Raised when a git subprocess used to manage a cached repository
    exits with a non-zero status.
    """

    action = "Git operation"

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        orig_exc: Optional[Exception] = None,
    ):
        self.url = url
        self.orig_exc = orig_exc

        full_msg = f"{self.action} failed"
        if url:
            full_msg += f" (repo: {url})"
        full_msg += f": {message}"
        super().__init__(full_msg)


class CloneError(GitOperationError):
    """Raised when cloning a repository into the cache fails."""

    action = "Clone"


class PullError(GitOperationError):
    """Raised when fetching, checking out or pulling a cached repository fails."""

    action = "Pull"


class DiscoveryIOError(AgentSkillsError):
    """
    Raised for an I/O or permission problem on a single directory while
    scanning for skills. The scanner logs it and skips the subtree.
    """

    def __init__(self, path: Union[str, Path], orig_exc: Optional[Exception] = None):
        self.path = Path(path)
        self.orig_exc = orig_exc
        message = f"Could not scan {self.path}"
        if orig_exc:
            message += f": {orig_exc}"
        super().__init__(message)


class RemoteSearchError(AgentSkillsError):
    """Raised when a remote skill search backend keeps failing after retries."""

    def __init__(
        self,
        backend: str,
        message: str,
        orig_exc: Optional[Exception] = None,
    ):
        self.backend = backend
        self.orig_exc = orig_exc
        super().__init__(f"Remote search failed ({backend}): {message}")


class InstallError(AgentSkillsError):
    """Raised when a skill cannot be installed into or removed from a target directory."""

    pass


class PresetRepositoryError(AgentSkillsError):
    """Raised on an attempt to remove one of the bundled preset repositories."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Preset repository cannot be removed: {url}")
