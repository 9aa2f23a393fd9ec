"""
Skill Manager for agentskills

Provides a unified API integrating the configuration, the repository list,
the git cache, the indexer and the install operations.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from .config import Config
from .errors import AgentSkillsError, InstallError
from .git_service import GitService
from .installer import (
    delete_installed_skill,
    delete_skill_dir,
    install_remote_skill_from_zip,
    install_skill_dir,
)
from .models import LocalSkill, Skill, SkillRepo
from .remote_search import RemoteSkill, RemoteSkillsResponse, fetch_remote_skills
from .repo_config import RepoConfigManager
from .skill_indexer import SkillIndexer


logger = logging.getLogger(__name__)


class SkillManager:
    """
    Unified manager for agentskills.

    Integrates all components to provide a simple API for:
    - Adding, removing, pulling and switching skill repositories
    - Installing and deleting skills in the workspace skills directory
    - Searching remote marketplaces and installing their results
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        workspace_root: Optional[Union[str, Path]] = None,
        git_service: Optional[GitService] = None,
        env: Optional[Mapping[str, str]] = None,
        app_name: Optional[str] = None,
        home: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the skill manager.

        Args:
            config: Configuration object, loaded from the default path if omitted
            workspace_root: Workspace that receives installed skills
            git_service: Git cache, created under ``config.cache_dir`` if omitted
            env: Environment used for IDE detection
            app_name: Application name hint for IDE detection
            home: Home directory override for global skill groups
        """
        self.config = config if config is not None else Config()
        self.repo_config = RepoConfigManager(self.config)
        self.git = git_service if git_service is not None else GitService(self.config.cache_dir)
        self.workspace_root = Path(workspace_root) if workspace_root else None

        self.indexer = SkillIndexer(
            self.repo_config,
            self.git,
            self.workspace_root,
            config=self.config,
            env=env,
            app_name=app_name,
            home=home,
        )

    def get_installed_skills_dir(self) -> Optional[Path]:
        return self.indexer.get_installed_skills_dir()

    def _require_target(self) -> Path:
        target = self.get_installed_skills_dir()
        if target is None:
            raise InstallError("Please open a workspace folder first.")
        return target

    def _after_install_change(self) -> None:
        self.indexer.clear_selection()
        self.indexer.refresh_installed_and_local()

    # === Repository Methods ===

    def list_repos(self) -> List[SkillRepo]:
        return self.repo_config.get_repos()

    def add_repo(self, url: str, name: Optional[str] = None) -> Optional[SkillRepo]:
        """
        Add a repository to the configuration.

        Returns:
            The new repository, or None if it was already configured
        """
        repo = self.repo_config.add_repo(url, name)
        if repo is not None:
            self.indexer.invalidate_repo(repo.url)
        return repo

    def remove_repo(self, url: str) -> bool:
        """Remove a user repository; raises PresetRepositoryError for presets."""
        removed = self.repo_config.remove_repo(url)
        if removed:
            self.indexer.invalidate_repo(url)
        return removed

    def list_branches(self, url: str) -> List[str]:
        return self.git.get_remote_branches(url)

    def switch_branch(self, url: str, branch: str) -> Optional[SkillRepo]:
        """
        Record a new branch for a repository.

        The cached clone is switched the next time the repository is listed.
        """
        repo = self.repo_config.update_repo(url, branch=branch)
        if repo is None:
            logger.warning(f"Unknown repository: {url}")
            return None
        logger.info(f"Switched {repo.name} to branch {branch}")
        self.indexer.invalidate_repo(url)
        return repo

    def pull_repo(self, url: str) -> SkillRepo:
        """
        Clone or update a repository in the cache.

        Raises:
            AgentSkillsError: If the repository is not configured
            CloneError, PullError: If git fails
        """
        repo = self.repo_config.get_repo(url)
        if repo is None:
            raise AgentSkillsError(f"Unknown repository: {url}")
        self.git.pull_repo(repo.url, repo.branch)
        logger.info(f"{repo.name} updated.")
        self.indexer.invalidate_repo(repo.url)
        return repo

    # === Install Methods ===

    def install_skills(self, skills: List[Skill]) -> Dict[str, List[str]]:
        """
        Copy repository skills into the install target.

        Skills whose cached source is missing are skipped with a warning.

        Returns:
            Dict with 'installed' and 'skipped' skill names
        """
        target = self._require_target()
        result: Dict[str, List[str]] = {"installed": [], "skipped": []}

        for skill in skills:
            if not skill.local_path or not Path(skill.local_path).exists():
                logger.warning(f"Source files missing for {skill.name}. Try refreshing.")
                result["skipped"].append(skill.name)
                continue
            try:
                install_skill_dir(skill.local_path, skill.name, target)
            except InstallError as e:
                logger.warning(f"Skipping {skill.name!r}: {e}")
                result["skipped"].append(skill.name)
                continue
            result["installed"].append(skill.name)

        self._after_install_change()
        return result

    def install_selected(self) -> Dict[str, List[str]]:
        return self.install_skills(self.indexer.get_checked_skills())

    def delete_skills(self, skills: List[Skill]) -> Dict[str, List[str]]:
        """Remove installed copies of the given skills."""
        return self.delete_installed([s.name for s in skills])

    def delete_installed(self, names: List[str]) -> Dict[str, List[str]]:
        """
        Remove installed skills by name.

        Returns:
            Dict with 'deleted' and 'missing' skill names
        """
        target = self._require_target()
        result: Dict[str, List[str]] = {"deleted": [], "missing": []}

        for name in names:
            try:
                removed = delete_installed_skill(name, target)
            except InstallError as e:
                logger.warning(f"Skipping {name!r}: {e}")
                removed = False
            if removed:
                result["deleted"].append(name)
            else:
                result["missing"].append(name)

        self._after_install_change()
        return result

    def delete_selected(self) -> Dict[str, List[str]]:
        return self.delete_skills(self.indexer.get_checked_skills())

    def delete_local_skill(self, skill: LocalSkill) -> bool:
        """Delete a skill directory from a local group."""
        removed = delete_skill_dir(skill.path)
        self._after_install_change()
        return removed

    def install_personal_skill(self, skill: LocalSkill) -> Path:
        """Copy a skill from a local group into the install target."""
        dest = install_skill_dir(skill.path, skill.name, self._require_target())
        self._after_install_change()
        return dest

    # === Lookup Methods ===

    async def find_skills(self, names: List[str], repo_url: Optional[str] = None) -> List[Skill]:
        """
        Find repository skills by name.

        Args:
            names: Skill names to look up
            repo_url: Only look in this repository (otherwise a full index is built)

        Returns:
            Matching skills in the order of ``names``; unknown names are skipped
        """
        if repo_url:
            repo = self.repo_config.get_repo(repo_url)
            if repo is None:
                raise AgentSkillsError(f"Unknown repository: {repo_url}")
            candidates = [n for n in await self.indexer.get_children(repo) if isinstance(n, Skill)]
        else:
            await self.indexer.refresh()
            candidates = []
            for repo in self.repo_config.get_repos():
                candidates.extend(self.indexer.get_repo_skills(repo.url) or [])

        by_name: Dict[str, Skill] = {}
        for skill in candidates:
            by_name.setdefault(skill.name, skill)

        found = []
        for name in names:
            if name in by_name:
                found.append(by_name[name])
            else:
                logger.warning(f"Skill not found: {name}")
        return found

    # === Remote Methods ===

    async def search_remote(self, query: str, limit: int = 20, offset: int = 0) -> RemoteSkillsResponse:
        return await fetch_remote_skills(query, limit, offset, token=self.config.github_token or None)

    def install_remote_skill(self, remote_skill: RemoteSkill) -> Path:
        """Download a remote search result and install it into the target."""
        dest = install_remote_skill_from_zip(remote_skill, self._require_target())
        self._after_install_change()
        return dest

    def find_local_skill(self, name: str, group_path: Optional[str] = None) -> Optional[LocalSkill]:
        """Find a skill in the local groups, optionally restricted to one group."""
        for group in self.indexer.get_local_groups():
            if group_path and Path(group.path) != Path(group_path).expanduser():
                continue
            for skill in self.indexer.get_local_group_skills(group):
                if skill.name == name:
                    return skill
        return None
