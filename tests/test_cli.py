"""Tests for the command-line interface."""

import pytest
import yaml
from click.testing import CliRunner

from agentskills.cli import cli, format_compact_number

from conftest import write_skill


@pytest.fixture
def run(tmp_path, workspace, monkeypatch):
    config_path = tmp_path / "cli-config.yaml"
    config_path.write_text(yaml.safe_dump({"paths": {"cache_dir": str(tmp_path / "cache")}}))
    monkeypatch.setenv("AGENTSKILLS_IDE", "vscode")
    runner = CliRunner()

    def _run(*args, input=None):
        return runner.invoke(
            cli,
            ["--config", str(config_path), "--workspace", str(workspace), *args],
            input=input,
        )

    _run.config_path = config_path
    return _run


@pytest.mark.parametrize("value,expected", [
    (0, "0"),
    (950, "950"),
    (1000, "1k"),
    (1260, "1.3k"),
    (2_000_000, "2m"),
    (3_400_000_000, "3.4b"),
])
def test_format_compact_number(value, expected):
    assert format_compact_number(value) == expected


def test_repo_add_and_remove(run):
    result = run("repo", "add", "https://example.com/me/mine.git")
    assert result.exit_code == 0, result.output
    assert "me/mine" in result.output

    stored = yaml.safe_load(run.config_path.read_text())["repositories"]
    assert stored == [{"url": "https://example.com/me/mine.git", "name": "me/mine"}]

    result = run("repo", "add", "https://example.com/me/mine.git")
    assert "already configured" in result.output

    result = run("repo", "remove", "--yes", "https://example.com/me/mine.git")
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(run.config_path.read_text())["repositories"] == []


def test_removing_preset_is_an_error(run):
    result = run("repo", "remove", "--yes", "https://github.com/anthropics/skills.git")
    assert result.exit_code == 1
    assert "Preset repository cannot be removed" in result.output


def test_repo_move_persists_order(run):
    result = run("repo", "move", "https://github.com/openai/skills.git", "--up")
    assert result.exit_code == 0, result.output

    order = yaml.safe_load(run.config_path.read_text())["state"]["repo_order"]
    assert order[:2] == ["https://github.com/openai/skills.git", "https://github.com/anthropics/skills.git"]


def test_delete_reports_missing(run, workspace):
    write_skill(workspace / ".github" / "skills", "pdf")

    result = run("delete", "--yes", "pdf", "csv")

    assert result.exit_code == 0, result.output
    assert "Deleted: pdf" in result.output
    assert "Missing: csv" in result.output
    assert not (workspace / ".github" / "skills" / "pdf").exists()


def test_install_personal_skill(run, workspace, tmp_path):
    write_skill(workspace / ".cursor" / "skills", "lint")

    result = run("install", "--local", str(workspace / ".cursor" / "skills"), "lint")

    assert result.exit_code == 0, result.output
    assert (workspace / ".github" / "skills" / "lint" / "SKILL.md").exists()


def test_install_all_requires_repo(run):
    result = run("install", "--all")
    assert result.exit_code == 2
