"""Tests for remote skill search backends, retry and merging."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests
from github import GithubException

from agentskills.errors import RemoteSearchError
from agentskills.remote_search import (
    CLAUDE_PLUGINS_URL,
    RemoteSkill,
    RemoteSkillsResponse,
    build_github_query,
    fetch_from_claude_plugins,
    fetch_from_github,
    fetch_remote_skills,
    merge_responses,
    with_retry,
)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("agentskills.remote_search.time.sleep") as sleep:
        yield sleep


def json_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


def test_with_retry_sleeps_between_attempts(no_sleep):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise requests.ConnectionError("boom")
        return "ok"

    assert with_retry(flaky) == "ok"
    assert [c.args[0] for c in no_sleep.call_args_list] == [0.2, 0.5]


def test_with_retry_gives_up_after_three_attempts():
    def broken():
        raise ValueError("Invalid response")

    with pytest.raises(RemoteSearchError) as exc_info:
        with_retry(broken, backend="claude-plugins")
    assert exc_info.value.backend == "claude-plugins"
    assert isinstance(exc_info.value.orig_exc, ValueError)


def test_fetch_from_claude_plugins():
    session = MagicMock()
    session.get.return_value = json_response({
        "skills": [{
            "id": "1",
            "name": "pdf",
            "namespace": "acme",
            "sourceUrl": "https://github.com/acme/pdf",
            "description": "PDF tools",
            "author": "acme",
            "installs": 1200,
            "stars": 3,
        }],
        "total": 1,
        "limit": 10,
        "offset": 0,
    })

    response = fetch_from_claude_plugins("  pdf ", 10, 0, session=session)

    assert response.total == 1
    skill = response.skills[0]
    assert skill.source_url == "https://github.com/acme/pdf"
    assert skill.marketplace == "claude-plugins"
    assert skill.installs == 1200
    args, kwargs = session.get.call_args
    assert args[0] == CLAUDE_PLUGINS_URL
    assert kwargs["params"] == {"limit": 10, "offset": 0, "q": "pdf"}
    assert kwargs["headers"]["User-Agent"] == "claude-plugins-web/1.0"


def test_fetch_from_claude_plugins_invalid_payload():
    session = MagicMock()
    session.get.return_value = json_response({"items": []})

    with pytest.raises(RemoteSearchError):
        fetch_from_claude_plugins("", 10, 0, session=session)
    assert session.get.call_count == 3


def test_build_github_query():
    assert build_github_query("  ") == "topic:agent-skills"
    assert build_github_query("pdf") == "pdf topic:agent-skills OR pdf in:name,description"


def fake_repo(full_name, stars=5, description=None):
    owner = full_name.split("/")[0]
    return SimpleNamespace(
        full_name=full_name,
        html_url=f"https://github.com/{full_name}",
        description=description,
        stargazers_count=stars,
        owner=SimpleNamespace(login=owner),
    )


def test_fetch_from_github_maps_repositories():
    results = MagicMock()
    results.get_page.return_value = [fake_repo("acme/pdf-skill", 42, "PDF")]
    results.totalCount = 7
    github = MagicMock()
    github.search_repositories.return_value = results

    response = fetch_from_github("pdf", 10, 20, github=github)

    github.search_repositories.assert_called_once_with(
        query=build_github_query("pdf"), sort="stars", order="desc",
    )
    results.get_page.assert_called_once_with(2)
    assert response.total == 7
    assert response.skills == [RemoteSkill(
        id="gh-acme/pdf-skill",
        name="pdf-skill",
        namespace="acme",
        source_url="https://github.com/acme/pdf-skill",
        description="PDF",
        author="acme",
        installs=0,
        stars=42,
        marketplace="github",
    )]


def test_fetch_from_github_retries_api_errors():
    github = MagicMock()
    github.search_repositories.side_effect = GithubException(503, {"message": "unavailable"}, None)

    with pytest.raises(RemoteSearchError):
        fetch_from_github("pdf", 10, 0, github=github)
    assert github.search_repositories.call_count == 3


def skill(source_url, name="s", marketplace="github"):
    return RemoteSkill(id=source_url, name=name, source_url=source_url, marketplace=marketplace)


def test_merge_dedupes_by_source_url_and_truncates():
    a = RemoteSkillsResponse(skills=[skill("u1", "a1", "claude-plugins"), skill("u2")])
    b = RemoteSkillsResponse(skills=[skill("u1", "b1"), skill("u3")])

    merged = merge_responses([a, b], limit=2, offset=0)

    assert [s.source_url for s in merged.skills] == ["u1", "u2"]
    assert merged.skills[0].name == "b1"
    assert merged.total == 3


async def test_fetch_remote_skills_tolerates_one_failure():
    ok = RemoteSkillsResponse(skills=[skill("u1")], total=1)
    with patch("agentskills.remote_search.fetch_from_claude_plugins", return_value=ok), \
            patch("agentskills.remote_search.fetch_from_github",
                  side_effect=RemoteSearchError("github", "down")):
        response = await fetch_remote_skills("pdf", 10, 0)

    assert [s.source_url for s in response.skills] == ["u1"]


async def test_fetch_remote_skills_fails_when_both_fail():
    with patch("agentskills.remote_search.fetch_from_claude_plugins",
               side_effect=RemoteSearchError("claude-plugins", "down")), \
            patch("agentskills.remote_search.fetch_from_github",
                  side_effect=RemoteSearchError("github", "down")):
        with pytest.raises(RemoteSearchError):
            await fetch_remote_skills("pdf", 10, 0)
