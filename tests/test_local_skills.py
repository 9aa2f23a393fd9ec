"""Tests for IDE detection and local skills directory enumeration."""

from pathlib import Path

from agentskills.ide import IdeType, detect_ide, get_project_skills_dir, resolve_ide_type
from agentskills.local_skills import get_skill_directories, list_local_groups, list_local_skills

from conftest import write_skill


def test_resolve_ide_type_by_substring():
    assert resolve_ide_type("Cursor") is IdeType.CURSOR
    assert resolve_ide_type("Windsurf Next") is IdeType.WINDSURF
    assert resolve_ide_type("Visual Studio Code") is IdeType.VSCODE


def test_detect_ide_priority():
    assert detect_ide({"AGENTSKILLS_IDE": "trae", "VSCODE_BRAND": "Cursor"}) is IdeType.TRAE
    assert detect_ide({"VSCODE_BRAND": "Qoder", "PROG_IDE_NAME": "cursor"}) is IdeType.QODER
    assert detect_ide({"PROG_IDE_NAME": "CodeBuddy"}) is IdeType.CODEBUDDY
    assert detect_ide({}, app_name_hint="Antigravity") is IdeType.ANTIGRAVITY
    assert detect_ide({}) is IdeType.VSCODE


def test_project_skills_dir(workspace):
    assert get_project_skills_dir(workspace, IdeType.CURSOR) == workspace / ".cursor" / "skills"
    assert get_project_skills_dir(workspace, "vscode") == workspace / ".github" / "skills"


def test_skill_directories_are_deduplicated(workspace, home):
    dirs = get_skill_directories(workspace, home)
    paths = [d.path for d in dirs]

    assert len(paths) == len(set(paths))
    assert paths[-2:] == [str(home / ".claude/skills"), str(home / ".codex/skills")]
    assert all(d.is_project for d in dirs[:-2])


def test_groups_are_active_or_non_empty(workspace, home, target_dir):
    write_skill(workspace / ".cursor" / "skills", "lint")
    (workspace / ".trae" / "skills").mkdir(parents=True)
    write_skill(home / ".claude" / "skills", "notes")

    groups = list_local_groups(workspace, target_dir, home)
    by_path = {g.path: g for g in groups}

    assert str(target_dir) in by_path
    assert by_path[str(target_dir)].is_active
    assert not by_path[str(target_dir)].exists
    assert str(workspace / ".cursor" / "skills") in by_path
    assert str(workspace / ".trae" / "skills") not in by_path
    assert by_path[str(home / ".claude" / "skills")].icon == "home"


def test_list_local_skills(workspace, target_dir):
    write_skill(target_dir, "beta", description="Second")
    write_skill(target_dir, "alpha", name="other-name", description="First")
    write_skill(target_dir, ".hidden")
    (target_dir / "not-a-skill").mkdir()

    groups = list_local_groups(workspace, target_dir, workspace / "nohome")
    active = next(g for g in groups if g.is_active)
    skills = list_local_skills(active)

    assert [s.name for s in skills] == ["alpha", "beta"]
    assert skills[0].description == "First"
    assert skills[0].group_path == str(target_dir)
    assert Path(skills[1].path) == target_dir / "beta"
