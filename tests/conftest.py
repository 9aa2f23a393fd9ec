"""Shared test fixtures for the agentskills test suite."""

import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import pytest
from git import Repo as GitRepo

from agentskills.config import Config
from agentskills.errors import PullError
from agentskills.git_service import GitService
from agentskills.models import Skill
from agentskills.repo_config import RepoConfigManager
from agentskills.skill_indexer import SkillIndexer
from agentskills.skill_scanner import scan_skills_from_dir


# ---------------------------------------------------------------------------
# Skill bundle helpers
# ---------------------------------------------------------------------------


def write_skill(
    parent: Path,
    dirname: str,
    name: Optional[str] = None,
    description: str = "",
    body: str = "Instructions.\n",
) -> Path:
    """Create ``parent/dirname/SKILL.md`` with a front matter header."""
    skill_dir = parent / dirname
    skill_dir.mkdir(parents=True, exist_ok=True)
    header = f"---\nname: {name or dirname}\ndescription: {description}\n---\n"
    (skill_dir / "SKILL.md").write_text(header + body, encoding="utf-8")
    return skill_dir


# ---------------------------------------------------------------------------
# Fake git layer
# ---------------------------------------------------------------------------


class FakeGitService:
    """Serves skills from plain directories and records every git call."""

    def __init__(
        self,
        sources: Optional[Dict[str, Path]] = None,
        reachable: Optional[Iterable[str]] = None,
        cloned: Optional[Iterable[str]] = None,
        list_delay: float = 0.0,
    ):
        self.sources = dict(sources or {})
        self.reachable: Set[str] = set(reachable or [])
        self.cloned: Set[str] = set(cloned or [])
        self.failing: Set[str] = set()
        self.list_delay = list_delay
        self.pull_calls: List[str] = []
        self.list_calls: List[str] = []
        self.connectivity_calls: List[str] = []

    def is_repo_cloned(self, url: str) -> bool:
        return url in self.cloned

    def pull_repo(self, url: str, branch: Optional[str] = None) -> None:
        self.pull_calls.append(url)
        if url in self.failing:
            raise PullError("remote hung up", url=url)
        self.cloned.add(url)

    def get_skills_from_repo(self, url: str, branch: Optional[str] = None) -> List[Skill]:
        self.list_calls.append(url)
        if self.list_delay:
            time.sleep(self.list_delay)
        if url in self.failing:
            raise PullError("checkout failed", url=url)
        return scan_skills_from_dir(self.sources[url], url)

    async def check_repo_connectivity(self, url: str, timeout_ms: int = 200) -> bool:
        self.connectivity_calls.append(url)
        return url in self.reachable


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(tmp_path / "config" / "config.yaml")


@pytest.fixture
def workspace(tmp_path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def home(tmp_path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def env() -> Dict[str, str]:
    """Pins the detected IDE so the active group is <workspace>/.github/skills."""
    return {"AGENTSKILLS_IDE": "vscode"}


@pytest.fixture
def target_dir(workspace) -> Path:
    return workspace / ".github" / "skills"


@pytest.fixture
def repo_config(config) -> RepoConfigManager:
    return RepoConfigManager(config, presets=[])


@pytest.fixture
def fake_git() -> FakeGitService:
    return FakeGitService()


@pytest.fixture
def indexer(repo_config, fake_git, workspace, env, home) -> SkillIndexer:
    return SkillIndexer(repo_config, fake_git, workspace, env=env, home=home)


@pytest.fixture
def git_service(tmp_path) -> GitService:
    return GitService(tmp_path / "git-cache")


@pytest.fixture
def make_git_repo(tmp_path):
    """Factory creating a local repository with one commit on ``main``."""

    def _make(name: str, skills: Dict[str, str]) -> GitRepo:
        path = tmp_path / "remotes" / name
        path.mkdir(parents=True)
        repo = GitRepo.init(path)
        with repo.config_writer() as cw:
            cw.set_value("user", "name", "Test User")
            cw.set_value("user", "email", "test@example.com")
        for dirname, description in skills.items():
            write_skill(path, dirname, description=description)
        repo.git.add(A=True)
        repo.git.commit("-m", "Add skills")
        repo.git.branch("-M", "main")
        return repo

    return _make
