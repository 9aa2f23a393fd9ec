"""Tests for the SkillManager facade."""

from unittest.mock import AsyncMock, patch

import pytest

from agentskills.errors import AgentSkillsError, InstallError, PresetRepositoryError
from agentskills.models import MatchStatus
from agentskills.remote_search import RemoteSkill, RemoteSkillsResponse
from agentskills.repo_config import PRESET_REPOS
from agentskills.skill_manager import SkillManager

from conftest import write_skill

URL = "https://example.com/team/skills.git"


@pytest.fixture
def manager(config, workspace, fake_git, env, home, tmp_path):
    source = tmp_path / "sources" / "skills"
    write_skill(source, "pdf", description="PDF tools")
    write_skill(source, "csv", description="Tables")
    fake_git.sources[URL] = source
    fake_git.cloned.add(URL)

    manager = SkillManager(config, workspace, git_service=fake_git, env=env, home=home)
    manager.add_repo(URL)
    return manager


async def test_install_and_delete_skills(manager, target_dir):
    skills = await manager.find_skills(["pdf", "nope"], repo_url=URL)
    assert [s.name for s in skills] == ["pdf"]

    result = manager.install_skills(skills)
    assert result == {"installed": ["pdf"], "skipped": []}
    assert (target_dir / "pdf" / "SKILL.md").exists()
    assert manager.indexer.get_skill_match_status(skills[0]) is MatchStatus.MATCHED

    result = manager.delete_installed(["pdf", "csv"])
    assert result == {"deleted": ["pdf"], "missing": ["csv"]}
    assert manager.indexer.get_repo_skills(URL)[1].match_status is MatchStatus.NOT_INSTALLED


async def test_install_selected_skips_missing_sources(manager, tmp_path):
    skills = await manager.find_skills(["pdf", "csv"], repo_url=URL)
    for skill in skills:
        manager.indexer.set_checked(skill, True)
    skills[1].local_path = str(tmp_path / "vanished")

    result = manager.install_selected()

    assert result["installed"] == ["pdf"]
    assert result["skipped"] == ["csv"]
    assert manager.indexer.get_checked_skills() == []


async def test_unsafe_front_matter_names_are_skipped(manager, fake_git, workspace, target_dir):
    write_skill(fake_git.sources[URL], "evil", name="..")
    write_skill(fake_git.sources[URL], "nested", name="a/b")
    keep = workspace / ".github" / "workflows" / "ci.yml"
    keep.parent.mkdir(parents=True)
    keep.write_text("on: push\n")

    skills = await manager.find_skills(["..", "a/b", "pdf"], repo_url=URL)
    result = manager.install_skills(skills)

    assert result == {"installed": ["pdf"], "skipped": ["..", "a/b"]}
    assert keep.exists()
    assert not (target_dir / "a").exists()

    result = manager.delete_installed(["../workflows", "pdf"])
    assert result == {"deleted": ["pdf"], "missing": ["../workflows"]}
    assert keep.exists()


async def test_find_skills_builds_index(manager):
    skills = await manager.find_skills(["csv"])
    assert [s.repo_url for s in skills] == [URL]


async def test_unknown_repo(manager):
    with pytest.raises(AgentSkillsError):
        await manager.find_skills(["pdf"], repo_url="https://example.com/unknown.git")
    with pytest.raises(AgentSkillsError):
        manager.pull_repo("https://example.com/unknown.git")


def test_personal_skill_install_and_delete(manager, home, target_dir):
    write_skill(home / ".claude" / "skills", "notes", description="My notes")

    local = manager.find_local_skill("notes", str(home / ".claude" / "skills"))
    assert local is not None
    dest = manager.install_personal_skill(local)
    assert dest == target_dir / "notes"

    installed = manager.find_local_skill("notes", str(target_dir))
    assert manager.delete_local_skill(installed)
    assert not (target_dir / "notes").exists()
    assert manager.find_local_skill("missing") is None


def test_repo_management(manager, fake_git):
    assert manager.add_repo(URL) is None
    assert manager.switch_branch(URL, "dev").branch == "dev"
    assert manager.switch_branch("https://example.com/none.git", "dev") is None

    repo = manager.pull_repo(URL)
    assert repo.branch == "dev"
    assert fake_git.pull_calls == [URL]

    with pytest.raises(PresetRepositoryError):
        manager.remove_repo(PRESET_REPOS[0].url)
    assert manager.remove_repo(URL)
    assert URL not in [r.url for r in manager.list_repos()]


def test_operations_need_a_workspace(config, fake_git, home):
    manager = SkillManager(config, None, git_service=fake_git, home=home)
    assert manager.get_installed_skills_dir() is None
    with pytest.raises(InstallError):
        manager.delete_installed(["pdf"])


async def test_search_and_install_remote(manager, target_dir, monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    response = RemoteSkillsResponse(skills=[RemoteSkill(id="1", name="pdf", source_url="https://x/pdf")])
    with patch("agentskills.skill_manager.fetch_remote_skills", AsyncMock(return_value=response)) as fetch:
        assert await manager.search_remote("pdf", 5) is response
    fetch.assert_awaited_once_with("pdf", 5, 0, token=None)

    with patch("agentskills.skill_manager.install_remote_skill_from_zip",
               return_value=target_dir / "pdf") as install:
        assert manager.install_remote_skill(response.skills[0]) == target_dir / "pdf"
    install.assert_called_once_with(response.skills[0], target_dir)
