"""Remote skill search across the claude-plugins registry and GitHub."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import requests
from github import Github, GithubException

from .errors import RemoteSearchError


logger = logging.getLogger(__name__)

T = TypeVar("T")

CLAUDE_PLUGINS_URL = "https://claude-plugins.dev/api/skills"
CLAUDE_PLUGINS_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "claude-plugins-web/1.0",
}
GITHUB_TOPIC = "agent-skills"
REQUEST_TIMEOUT = 30

RETRY_ATTEMPTS = 3
RETRY_DELAYS = (0.2, 0.5)
RETRYABLE_ERRORS = (requests.RequestException, GithubException, ValueError, KeyError, TypeError)


@dataclass
class RemoteSkill:
    """A skill found by a remote search backend."""

    id: str
    name: str
    namespace: str = ""
    source_url: str = ""
    description: str = ""
    author: str = ""
    installs: int = 0
    stars: int = 0
    marketplace: str = "claude-plugins"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], marketplace: str) -> "RemoteSkill":
        """Create from a claude-plugins API record."""
        return cls(
            id=str(data.get("id") or data.get("name") or ""),
            name=data.get("name") or "",
            namespace=data.get("namespace") or "",
            source_url=data.get("sourceUrl") or data.get("source_url") or "",
            description=data.get("description") or "",
            author=data.get("author") or "",
            installs=int(data.get("installs") or 0),
            stars=int(data.get("stars") or 0),
            marketplace=marketplace,
        )


@dataclass
class RemoteSkillsResponse:
    """One page of remote search results."""

    skills: List[RemoteSkill] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0


def with_retry(
    func: Callable[[], T],
    attempts: int = RETRY_ATTEMPTS,
    delays: Sequence[float] = RETRY_DELAYS,
    backend: str = "remote",
) -> T:
    """
    Call ``func`` up to ``attempts`` times, sleeping ``delays[i]`` between tries.

    Raises:
        RemoteSearchError: After the last attempt fails
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as e:
            last_error = e
            if attempt < attempts:
                logger.debug(f"{backend} search retry {attempt}/{attempts - 1}: {e}")
                time.sleep(delays[min(attempt - 1, len(delays) - 1)])

    raise RemoteSearchError(backend, str(last_error), last_error)


def fetch_from_claude_plugins(
    q: str,
    limit: int,
    offset: int,
    session: Optional[requests.Session] = None,
) -> RemoteSkillsResponse:
    """Search the claude-plugins skill registry."""
    http = session or requests
    params: Dict[str, Any] = {"limit": limit, "offset": offset}
    if q.strip():
        params["q"] = q.strip()

    def request() -> RemoteSkillsResponse:
        response = http.get(
            CLAUDE_PLUGINS_URL,
            params=params,
            headers=CLAUDE_PLUGINS_HEADERS,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict) or not isinstance(data.get("skills"), list):
            raise ValueError("Invalid response")
        return RemoteSkillsResponse(
            skills=[RemoteSkill.from_dict(s, "claude-plugins") for s in data["skills"]],
            total=int(data.get("total") or 0),
            limit=int(data.get("limit") or limit),
            offset=int(data.get("offset") or offset),
        )

    return with_retry(request, backend="claude-plugins")


def build_github_query(q: str) -> str:
    """Build the GitHub repository search query for a skill search."""
    trimmed = q.strip()
    if not trimmed:
        return f"topic:{GITHUB_TOPIC}"
    return f"{trimmed} topic:{GITHUB_TOPIC} OR {trimmed} in:name,description"


def fetch_from_github(
    q: str,
    limit: int,
    offset: int,
    token: Optional[str] = None,
    github: Optional[Github] = None,
) -> RemoteSkillsResponse:
    """Search GitHub repositories tagged with the agent-skills topic."""
    if github is None:
        # Pass None if no token provided (unauthenticated access with lower rate limits)
        github = Github(token, per_page=limit) if token else Github(per_page=limit)
    page = offset // limit if limit else 0

    def request() -> RemoteSkillsResponse:
        query = build_github_query(q)
        logger.info(f"Searching GitHub with query: {query}")
        results = github.search_repositories(query=query, sort="stars", order="desc")
        skills = []
        for repo in results.get_page(page):
            owner, _, repo_name = repo.full_name.partition("/")
            skills.append(RemoteSkill(
                id=f"gh-{repo.full_name}",
                name=repo_name or repo.full_name,
                namespace=owner,
                source_url=repo.html_url,
                description=repo.description or "",
                author=repo.owner.login,
                installs=0,
                stars=repo.stargazers_count,
                marketplace="github",
            ))
        return RemoteSkillsResponse(skills=skills, total=results.totalCount, limit=limit, offset=offset)

    return with_retry(request, backend="github")


def merge_responses(responses: List[RemoteSkillsResponse], limit: int, offset: int) -> RemoteSkillsResponse:
    """Merge result pages, de-duplicated by source URL, truncated to ``limit``."""
    unique: Dict[str, RemoteSkill] = {}
    for response in responses:
        for skill in response.skills:
            unique[skill.source_url] = skill
    skills = list(unique.values())
    return RemoteSkillsResponse(skills=skills[:limit], total=len(skills), limit=limit, offset=offset)


async def fetch_remote_skills(
    q: str,
    limit: int = 20,
    offset: int = 0,
    token: Optional[str] = None,
) -> RemoteSkillsResponse:
    """
    Query both backends in parallel and merge their results.

    A failing backend is logged and skipped.

    Raises:
        RemoteSearchError: If both backends fail
    """
    results = await asyncio.gather(
        asyncio.to_thread(fetch_from_claude_plugins, q, limit, offset),
        asyncio.to_thread(fetch_from_github, q, limit, offset, token),
        return_exceptions=True,
    )

    responses: List[RemoteSkillsResponse] = []
    errors: List[BaseException] = []
    for result in results:
        if isinstance(result, RemoteSkillsResponse):
            responses.append(result)
        else:
            logger.warning(f"Remote search backend failed: {result}")
            errors.append(result)

    if not responses:
        raise RemoteSearchError("all", "; ".join(str(e) for e in errors))

    return merge_responses(responses, limit, offset)
