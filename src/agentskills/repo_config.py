"""
Repository Configuration for agentskills

Manages the configured skill repositories. A fixed set of preset
repositories is always listed first; user entries are stored in the
``repositories`` key of the configuration file.
"""

import logging
from typing import Any, Dict, List, Optional

from .config import Config
from .errors import CloneError, PullError, PresetRepositoryError
from .models import SkillRepo


logger = logging.getLogger(__name__)


PRESET_REPOS: List[SkillRepo] = [
    SkillRepo(url="https://github.com/anthropics/skills.git", name="anthropics/skills", is_preset=True),
    SkillRepo(url="https://github.com/openai/skills.git", name="openai/skills", is_preset=True),
    SkillRepo(url="https://github.com/ComposioHQ/awesome-claude-skills.git", name="claude/skills", is_preset=True),
    SkillRepo(url="https://github.com/vercel-labs/agent-skills.git", name="vercel/skills", is_preset=True),
    SkillRepo(url="https://github.com/skillcreatorai/Ai-Agent-Skills.git", name="creatorai/skills", is_preset=True),
    SkillRepo(url="https://github.com/obra/superpowers.git", name="superpowers/skills", is_preset=True),
    SkillRepo(url="https://github.com/zxkane/aws-skills.git", name="aws/skills", is_preset=True),
    SkillRepo(url="https://github.com/huggingface/skills.git", name="huggingface/skills", is_preset=True),
    SkillRepo(url="https://github.com/ameyalambat128/swiftui-skills.git", name="swiftui/skills", is_preset=True),
]


def derive_repo_name(url: str) -> str:
    """Derive an "owner/repo" display name from a repository URL."""
    trimmed = url.strip().rstrip("/")
    if trimmed.endswith(".git"):
        trimmed = trimmed[: -len(".git")]
    parts = trimmed.replace(":", "/").split("/")
    repo = parts.pop() if parts else ""
    owner = parts.pop() if parts else ""
    if owner and repo:
        return f"{owner}/{repo}"
    return repo or url


class RepoConfigManager:
    """
    Reads and writes the repository list.

    Stored records for preset URLs only carry overrides (the branch); the
    preset itself cannot be removed.
    """

    REPOSITORIES_KEY = "repositories"

    def __init__(self, config: Config, presets: Optional[List[SkillRepo]] = None):
        """
        Initialize the repository configuration manager.

        Args:
            config: Configuration object
            presets: Preset repositories, defaults to PRESET_REPOS
        """
        self.config = config
        self.presets = list(PRESET_REPOS if presets is None else presets)

    def _preset_urls(self) -> set:
        return {p.url for p in self.presets}

    def is_preset(self, url: str) -> bool:
        return url in self._preset_urls()

    def _stored_records(self) -> List[Dict[str, Any]]:
        return self.config.repositories

    def get_repos(self) -> List[SkillRepo]:
        """
        Get all repositories, presets first.

        Returns:
            Presets (with stored branch overrides) then user repositories
        """
        stored = self._stored_records()
        overrides = {r["url"]: r for r in stored}

        repos: List[SkillRepo] = []
        for preset in self.presets:
            override = overrides.get(preset.url, {})
            repos.append(SkillRepo(
                url=preset.url,
                name=preset.name,
                branch=override.get("branch") or preset.branch,
                is_preset=True,
            ))

        preset_urls = self._preset_urls()
        seen = set(preset_urls)
        for record in stored:
            if record["url"] in seen:
                continue
            seen.add(record["url"])
            repo = SkillRepo.from_dict(record)
            repo.is_preset = False
            repos.append(repo)

        return repos

    def get_repo(self, url: str) -> Optional[SkillRepo]:
        for repo in self.get_repos():
            if repo.url == url:
                return repo
        return None

    def add_repo(self, url: str, name: Optional[str] = None) -> Optional[SkillRepo]:
        """
        Add a user repository.

        Args:
            url: Repository URL
            name: Display name, derived as "owner/repo" if omitted

        Returns:
            The new repository, or None if the URL was already configured
        """
        url = url.strip()
        if any(r.url == url for r in self.get_repos()):
            logger.info(f"Repository already configured: {url}")
            return None

        repo = SkillRepo(url=url, name=name or derive_repo_name(url))
        records = self._stored_records()
        records.append(repo.to_dict())
        self.config.set(self.REPOSITORIES_KEY, records)
        logger.info(f"Added repository {repo.name} ({url})")
        return repo

    def update_repo(self, url: str, **updates: Any) -> Optional[SkillRepo]:
        """
        Update fields of a configured repository (e.g. its branch).

        Args:
            url: Repository URL
            **updates: Fields to change (``name``, ``branch``)

        Returns:
            The updated repository, or None if the URL is unknown
        """
        repo = self.get_repo(url)
        if repo is None:
            return None

        for key in ("name", "branch"):
            if key in updates:
                setattr(repo, key, updates[key] or None)

        records = self._stored_records()
        if repo.is_preset:
            record: Dict[str, Any] = {"url": repo.url}
            if repo.branch:
                record["branch"] = repo.branch
        else:
            record = repo.to_dict()

        for i, existing in enumerate(records):
            if existing["url"] == url:
                records[i] = record
                break
        else:
            records.append(record)

        self.config.set(self.REPOSITORIES_KEY, records)
        return repo

    def remove_repo(self, url: str) -> bool:
        """
        Remove a user repository.

        Args:
            url: Repository URL

        Returns:
            True if a stored entry was removed

        Raises:
            PresetRepositoryError: If the URL belongs to a preset
        """
        if self.is_preset(url):
            raise PresetRepositoryError(url)

        records = self._stored_records()
        remaining = [r for r in records if r["url"] != url]
        if len(remaining) == len(records):
            return False

        self.config.set(self.REPOSITORIES_KEY, remaining)
        logger.info(f"Removed repository {url}")
        return True

    def ensure_preset_repos(self, git_service) -> Dict[str, List[str]]:
        """
        Clone or pull every preset repository.

        Args:
            git_service: GitService used for the pulls

        Returns:
            Dict with 'pulled' and 'failed' URL lists
        """
        result: Dict[str, List[str]] = {"pulled": [], "failed": []}
        for repo in self.get_repos():
            if not repo.is_preset:
                continue
            try:
                git_service.pull_repo(repo.url, repo.branch)
                result["pulled"].append(repo.url)
            except (CloneError, PullError) as e:
                logger.error(f"Failed to pull preset repo {repo.name}: {e}")
                result["failed"].append(repo.url)
        return result
