"""
Skill Indexer for agentskills

Builds and refreshes the in-memory index of repository skills and local
skills, annotates repository skills with their match status against the
active install directory, and serves the tree through a pull based
children/parent contract with search, ordering and selection.

All mutation of the index happens on the event loop; blocking git and
filesystem work runs in worker threads and is stored once it completes.
"""

import asyncio
import dataclasses
import logging
import os
import time
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple, TypeVar, Union

from .concurrency import map_with_concurrency
from .config import Config
from .errors import AgentSkillsError
from .git_service import GitService
from .ide import detect_ide, get_project_skills_dir
from .local_skills import list_local_groups, list_local_skills
from .models import (
    LocalSkill,
    LocalSkillsGroup,
    MatchStatus,
    NodeKind,
    Skill,
    SkillRepo,
    TreeNode,
)
from .ordering import ensure_order, move_key, reorder_key, sort_by_order
from .repo_config import RepoConfigManager
from .skill_hash import SKILL_FILE, SkillHashCache


logger = logging.getLogger(__name__)

ChangeListener = Callable[[Optional[TreeNode]], None]
ErrorListener = Callable[[str], None]
S = TypeVar("S", Skill, LocalSkill)


class SkillIndexer:
    """
    Index and reconciliation engine for skills.

    Owns every cache it uses (skill hashes, reachability, per-repository and
    per-group skill lists, identifier tables), so each instance is
    independent.
    """

    CONNECTIVITY_TTL = 10 * 60
    CONNECTIVITY_TIMEOUT_MS = 200
    INDEX_CONCURRENCY = 6

    REPO_ORDER_KEY = "state.repo_order"
    LOCAL_GROUP_ORDER_KEY = "state.local_group_order"

    def __init__(
        self,
        repo_config: RepoConfigManager,
        git_service: GitService,
        workspace_root: Optional[Union[str, Path]] = None,
        config: Optional[Config] = None,
        env: Optional[Mapping[str, str]] = None,
        app_name: Optional[str] = None,
        home: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the indexer.

        Args:
            repo_config: Repository list manager (also gives access to config)
            git_service: Git access layer
            workspace_root: Workspace whose skills directory is the install target
            config: Key-value store for ordering state, defaults to repo_config.config
            env: Environment used for IDE detection, defaults to os.environ
            app_name: Optional application name hint for IDE detection
            home: Home directory override for global skill groups
        """
        self.repo_config = repo_config
        self.config = config if config is not None else repo_config.config
        self.git = git_service
        self.workspace_root = Path(workspace_root) if workspace_root else None
        self.env = env
        self.app_name = app_name
        self.home = home

        self.search_query = ""

        self._hash_cache = SkillHashCache()
        self._installed_skill_hashes: Dict[str, str] = {}
        self._installed_hashes_loaded = False
        self._repo_skills: Dict[str, List[Skill]] = {}
        self._local_skills: Dict[str, List[LocalSkill]] = {}
        self._connectivity: Dict[str, Tuple[bool, float]] = {}

        self._checked_skills: Set[str] = set()
        self._skill_cache: Dict[str, Skill] = {}
        self._repo_by_url: Dict[str, SkillRepo] = {}
        self._group_by_path: Dict[str, LocalSkillsGroup] = {}
        self._last_root_nodes: List[TreeNode] = []

        self._repo_order: List[str] = list(self.config.get(self.REPO_ORDER_KEY, []) or [])
        self._local_group_order: List[str] = list(self.config.get(self.LOCAL_GROUP_ORDER_KEY, []) or [])

        self._indexing_task: Optional["asyncio.Task[None]"] = None
        self._repo_loads: Dict[str, "asyncio.Task[List[Skill]]"] = {}
        self._change_listeners: List[ChangeListener] = []
        self._error_listeners: List[ErrorListener] = []

        logger.debug("SkillIndexer initialized")

    # === Listeners ===

    def on_did_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a tree change listener; returns an unsubscribe function."""
        self._change_listeners.append(listener)
        return lambda: self._change_listeners.remove(listener)

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        """Register a listener for user-facing error messages."""
        self._error_listeners.append(listener)
        return lambda: self._error_listeners.remove(listener)

    def _fire(self, node: Optional[TreeNode] = None) -> None:
        for listener in list(self._change_listeners):
            listener(node)

    def _fire_error(self, message: str) -> None:
        for listener in list(self._error_listeners):
            listener(message)

    # === Refresh ===

    def refresh(self) -> "asyncio.Task[None]":
        """
        Recompute installed state and start a full rebuild in the background.

        Must be called from the running event loop. Readers keep seeing the
        previous index until the rebuild completes.

        Returns:
            The (possibly shared) rebuild task
        """
        self._hash_cache.clear()
        self._update_installed_skill_hashes()
        self._fire()
        return self.build_index()

    def refresh_installed_and_local(self) -> None:
        """Recompute match status and local skill lists without touching git."""
        self._hash_cache.clear()
        self._update_installed_skill_hashes()
        self._recompute_repo_skill_states()
        self._rebuild_local_index()
        self._fire()

    def build_index(self) -> "asyncio.Task[None]":
        """
        Start a full rebuild, or join the one already in flight.

        Returns:
            The rebuild task shared by every concurrent caller
        """
        if self._indexing_task is None or self._indexing_task.done():
            loop = asyncio.get_running_loop()
            self._indexing_task = loop.create_task(self._do_build_index())
        return self._indexing_task

    @property
    def is_indexing(self) -> bool:
        return self._indexing_task is not None and not self._indexing_task.done()

    async def wait_for_indexing(self) -> None:
        if self._indexing_task is not None:
            await self._indexing_task

    def invalidate_repo(self, url: str) -> None:
        """Forget the indexed skills of one repository so the next expansion re-lists them."""
        self._repo_skills.pop(url, None)
        self._connectivity.pop(url, None)
        self._fire(self._repo_by_url.get(url))

    async def _do_build_index(self) -> None:
        logger.info("Indexing started")
        try:
            self._rebuild_local_index()
            logger.info(f"Local groups: {len(self._local_skills)}")

            repos = await self.get_visible_repos()
            logger.info(f"Visible repos: {len(repos)}")

            await map_with_concurrency(repos, self.INDEX_CONCURRENCY, self._index_repo)
        except Exception:
            logger.exception("Indexing failed")

        logger.info("Indexing finished")
        self._fire()

    async def _index_repo(self, repo: SkillRepo) -> Optional[List[Skill]]:
        logger.info(f"Indexing repo: {repo.url}")
        try:
            normalized = await self._load_repo_skills(repo)
        except (AgentSkillsError, OSError) as e:
            logger.error(f"Failed to index repo {repo.url}: {e}")
            return None

        logger.info(f"Indexed repo: {repo.url} (skills: {len(normalized)})")
        return normalized

    async def _load_repo_skills(self, repo: SkillRepo) -> List[Skill]:
        """
        Clone if needed, list and store a repository's skills.

        Concurrent callers for the same URL share one load.

        Raises:
            AgentSkillsError: If cloning, pulling or listing fails
        """
        task = self._repo_loads.get(repo.url)
        if task is None:
            loop = asyncio.get_running_loop()
            task = loop.create_task(self._do_load_repo_skills(repo))
            self._repo_loads[repo.url] = task
            task.add_done_callback(lambda t, url=repo.url: self._forget_repo_load(url, t))
        return await asyncio.shield(task)

    def _forget_repo_load(self, url: str, task: "asyncio.Task[List[Skill]]") -> None:
        if self._repo_loads.get(url) is task:
            del self._repo_loads[url]
        if not task.cancelled():
            # Marks the exception retrieved when every waiter was cancelled.
            task.exception()

    async def _do_load_repo_skills(self, repo: SkillRepo) -> List[Skill]:
        if not self.git.is_repo_cloned(repo.url):
            logger.info(f"Initializing {repo.name}...")
            await asyncio.to_thread(self.git.pull_repo, repo.url, repo.branch)
        skills = await asyncio.to_thread(self.git.get_skills_from_repo, repo.url, repo.branch)

        normalized = self._normalize_repo_skills(skills)
        self._repo_skills[repo.url] = normalized
        return normalized

    # === Installed state ===

    def get_installed_skills_dir(self) -> Optional[Path]:
        """Resolve the active install target for the detected IDE."""
        if self.workspace_root is None:
            return None
        return get_project_skills_dir(self.workspace_root, detect_ide(self.env, self.app_name))

    def is_skill_installed(self, skill_name: str) -> bool:
        target = self.get_installed_skills_dir()
        return bool(target) and (target / skill_name / SKILL_FILE).exists()

    def _update_installed_skill_hashes(self) -> None:
        self._installed_skill_hashes.clear()
        self._installed_hashes_loaded = True
        target = self.get_installed_skills_dir()
        if target is None or not target.is_dir():
            return

        try:
            with os.scandir(target) as it:
                for entry in it:
                    if entry.name.startswith(".") or not entry.is_dir():
                        continue
                    if (Path(entry.path) / SKILL_FILE).exists():
                        self._installed_skill_hashes[entry.name] = self._hash_cache.get(entry.path)
        except OSError as e:
            logger.error(f"Error updating installed skill hashes: {e}")

    def get_skill_match_status(self, skill: Skill) -> MatchStatus:
        """
        Compare a repository skill with the installed skill of the same name.

        Returns:
            NOT_INSTALLED if nothing of that name is installed, MATCHED if the
            SKILL.md hashes are equal, CONFLICT otherwise
        """
        installed_hash = self._installed_skill_hashes.get(skill.name)
        if not installed_hash:
            return MatchStatus.NOT_INSTALLED

        if skill.local_path and os.path.exists(skill.local_path):
            repo_hash = self._hash_cache.get(skill.local_path)
            return MatchStatus.MATCHED if installed_hash == repo_hash else MatchStatus.CONFLICT

        return MatchStatus.NOT_INSTALLED

    def _annotate(self, skill: Skill) -> None:
        skill.match_status = self.get_skill_match_status(skill)
        skill.installed = skill.match_status is MatchStatus.MATCHED
        self._skill_cache[skill.node_id] = skill

    def _normalize_repo_skills(self, skills: List[Skill]) -> List[Skill]:
        for skill in skills:
            self._annotate(skill)
        return skills

    def _recompute_repo_skill_states(self) -> None:
        for skills in self._repo_skills.values():
            for skill in skills:
                self._annotate(skill)

    # === Local groups ===

    def get_local_groups(self) -> List[LocalSkillsGroup]:
        if self.workspace_root is None:
            return []
        return list_local_groups(self.workspace_root, self.get_installed_skills_dir(), self.home)

    def _rebuild_local_index(self) -> None:
        self._local_skills.clear()
        for group in self.get_local_groups():
            self._local_skills[group.path] = list_local_skills(group)

    def get_local_group_skills(self, group: LocalSkillsGroup) -> List[LocalSkill]:
        skills = self._local_skills.get(group.path)
        if skills is None:
            skills = list_local_skills(group)
        return skills

    # === Reachability ===

    async def ensure_repo_connectivity(self, url: str) -> bool:
        """Probe repository reachability, cached for CONNECTIVITY_TTL seconds."""
        now = time.monotonic()
        cached = self._connectivity.get(url)
        if cached and now - cached[1] < self.CONNECTIVITY_TTL:
            return cached[0]

        ok = await self.git.check_repo_connectivity(url, self.CONNECTIVITY_TIMEOUT_MS)
        if not ok:
            logger.warning(f"Repo not reachable by DNS, hidden: {url}")
        self._connectivity[url] = (ok, now)
        return ok

    async def get_visible_repos(self) -> List[SkillRepo]:
        """
        Get configured repositories that are cloned or currently reachable.

        Returns:
            Visible repositories in display order
        """
        repos = self._sort_repos(self.repo_config.get_repos())

        async def check(repo: SkillRepo) -> Optional[SkillRepo]:
            if self.git.is_repo_cloned(repo.url):
                return repo
            return repo if await self.ensure_repo_connectivity(repo.url) else None

        checks = await map_with_concurrency(repos, self.INDEX_CONCURRENCY, check)
        return [r for r in checks if r is not None]

    # === Tree contract ===

    async def get_children(self, node: Optional[TreeNode] = None) -> List[TreeNode]:
        """
        Get the children of a tree node, or the root nodes when node is None.

        Args:
            node: Parent node

        Returns:
            Child nodes filtered by the active search query
        """
        if node is None:
            nodes = await self._get_root_nodes()
            self._last_root_nodes = nodes
            return nodes

        if node.kind is NodeKind.LOCAL_GROUP:
            return list(self.filter_skills(self.get_local_group_skills(node)))
        if node.kind is NodeKind.REPO:
            return list(await self._get_repo_children(node))
        if node.kind in (NodeKind.SKILL, NodeKind.LOCAL_SKILL):
            return []
        raise TypeError(f"Unknown tree node kind: {node.kind!r}")

    async def _get_repo_children(self, repo: SkillRepo) -> List[Skill]:
        if not self._installed_hashes_loaded:
            self._update_installed_skill_hashes()

        indexed = self._repo_skills.get(repo.url)
        if indexed is not None:
            return self.filter_skills(indexed)

        try:
            in_flight = repo.url in self._repo_loads
            if not in_flight and not self.git.is_repo_cloned(repo.url):
                if not await self.ensure_repo_connectivity(repo.url):
                    return []
            normalized = await self._load_repo_skills(repo)
        except (AgentSkillsError, OSError) as e:
            message = f"Failed to load skills from {repo.name}: {e}"
            logger.error(message)
            self._fire_error(message)
            return []

        self._fire()
        return self.filter_skills(normalized)

    async def _get_root_nodes(self) -> List[TreeNode]:
        local_groups = self._sort_local_groups(
            [self._reconcile(self._group_by_path, g) for g in self.get_local_groups()]
        )
        repos = [self._reconcile(self._repo_by_url, r) for r in await self.get_visible_repos()]

        active = [g for g in local_groups if g.is_active]
        others = [g for g in local_groups if not g.is_active]

        if self.search_query:
            others = [g for g in others if self.get_local_group_matched_count(g) > 0]
            repos = [r for r in repos if self.get_repo_matched_count(r) > 0]

        return [*active, *others, *repos]

    def get_parent(self, node: TreeNode) -> Optional[TreeNode]:
        """
        Get the parent of a node through the identifier tables.

        A parent that is not in the table yet is rebuilt from configuration
        (or from the local groups) and registered there.
        """
        if node.kind in (NodeKind.REPO, NodeKind.LOCAL_GROUP):
            return None

        if node.kind is NodeKind.SKILL:
            repo = self._repo_by_url.get(node.repo_url)
            if repo is not None:
                return repo
            fallback = self.repo_config.get_repo(node.repo_url)
            return self._reconcile(self._repo_by_url, fallback) if fallback else None

        if node.kind is NodeKind.LOCAL_SKILL:
            group = self._group_by_path.get(node.group_path)
            if group is not None:
                return group
            for candidate in self.get_local_groups():
                if candidate.path == node.group_path:
                    return self._reconcile(self._group_by_path, candidate)
            return None

        raise TypeError(f"Unknown tree node kind: {node.kind!r}")

    def get_node(self, node_id: str) -> Optional[TreeNode]:
        """Look up a previously served node by its identifier."""
        if node_id in self._repo_by_url:
            return self._repo_by_url[node_id]
        if node_id in self._group_by_path:
            return self._group_by_path[node_id]
        if node_id in self._skill_cache:
            return self._skill_cache[node_id]
        for skills in self._local_skills.values():
            for skill in skills:
                if skill.path == node_id:
                    return skill
        return None

    @staticmethod
    def _reconcile(table: Dict[str, TreeNode], fresh: TreeNode) -> TreeNode:
        # Existing objects are updated in place so held references stay valid.
        existing = table.get(fresh.node_id)
        if existing is None:
            table[fresh.node_id] = fresh
            return fresh
        for f in dataclasses.fields(fresh):
            setattr(existing, f.name, getattr(fresh, f.name))
        return existing

    async def recompute_root_nodes_for_reveal(self) -> None:
        self._last_root_nodes = await self._get_root_nodes()

    # === Search ===

    def set_search_query(self, query: str) -> None:
        self.search_query = (query or "").strip()
        self._fire()

    def filter_skills(self, skills: Sequence[S]) -> List[S]:
        """Filter skills by the active query (case-insensitive, name or description)."""
        if not self.search_query:
            return list(skills)
        q = self.search_query.lower()
        return [
            s for s in skills
            if q in (s.name or "").lower() or q in (s.description or "").lower()
        ]

    def get_expandable_roots_for_search(self) -> List[Union[SkillRepo, LocalSkillsGroup]]:
        """Root nodes that have matches under the active query."""
        if not self.search_query:
            return []
        result: List[Union[SkillRepo, LocalSkillsGroup]] = []
        for node in self._last_root_nodes:
            if node.kind is NodeKind.LOCAL_GROUP:
                if node.is_active or self.get_local_group_matched_count(node) > 0:
                    result.append(node)
            elif node.kind is NodeKind.REPO:
                if self.get_repo_matched_count(node) > 0:
                    result.append(node)
        return result

    # === Counts ===

    def get_repo_total_count(self, repo: SkillRepo) -> int:
        return len(self._repo_skills.get(repo.url, []))

    def get_repo_matched_count(self, repo: SkillRepo) -> int:
        return len(self.filter_skills(self._repo_skills.get(repo.url, [])))

    def get_repo_installed_count(self, repo: SkillRepo) -> int:
        count = 0
        for skill in self._repo_skills.get(repo.url, []):
            status = skill.match_status or self.get_skill_match_status(skill)
            if status in (MatchStatus.MATCHED, MatchStatus.CONFLICT):
                count += 1
        return count

    def get_local_group_total_count(self, group: LocalSkillsGroup) -> int:
        return len(self.get_local_group_skills(group))

    def get_local_group_matched_count(self, group: LocalSkillsGroup) -> int:
        return len(self.filter_skills(self.get_local_group_skills(group)))

    def get_repo_skills(self, url: str) -> Optional[List[Skill]]:
        """Indexed skills of a repository, None if it has not been indexed."""
        return self._repo_skills.get(url)

    # === Ordering ===

    def _sort_repos(self, repos: List[SkillRepo]) -> List[SkillRepo]:
        return sort_by_order(repos, self._repo_order, lambda r: r.url)

    def _sort_local_groups(self, groups: List[LocalSkillsGroup]) -> List[LocalSkillsGroup]:
        active = [g for g in groups if g.is_active]
        others = sort_by_order([g for g in groups if not g.is_active], self._local_group_order, lambda g: g.path)
        return [*active, *others]

    @property
    def repo_order(self) -> List[str]:
        return ensure_order(self._repo_order, [r.url for r in self.repo_config.get_repos()])

    @property
    def local_group_order(self) -> List[str]:
        keys = [g.path for g in self.get_local_groups() if not g.is_active]
        return ensure_order(self._local_group_order, keys)

    def _save_repo_order(self, order: List[str]) -> None:
        self._repo_order = order
        self.config.set(self.REPO_ORDER_KEY, order)

    def _save_local_group_order(self, order: List[str]) -> None:
        self._local_group_order = order
        self.config.set(self.LOCAL_GROUP_ORDER_KEY, order)

    def move_up(self, node: Union[SkillRepo, LocalSkillsGroup]) -> None:
        self._move_node(node, -1)

    def move_down(self, node: Union[SkillRepo, LocalSkillsGroup]) -> None:
        self._move_node(node, 1)

    def _move_node(self, node: Union[SkillRepo, LocalSkillsGroup], delta: int) -> None:
        if node.kind is NodeKind.LOCAL_GROUP:
            if node.is_active:
                return
            self._save_local_group_order(move_key(self.local_group_order, node.path, delta))
        elif node.kind is NodeKind.REPO:
            self._save_repo_order(move_key(self.repo_order, node.url, delta))
        else:
            raise TypeError(f"Node kind {node.kind!r} cannot be reordered")
        self._fire()

    def reorder_after_drop(self, kind: NodeKind, dragged_key: str, target_key: Optional[str] = None) -> None:
        """
        Move ``dragged_key`` directly before ``target_key`` and persist the order.

        Args:
            kind: NodeKind.REPO or NodeKind.LOCAL_GROUP
            dragged_key: Identifier of the moved node
            target_key: Identifier of the drop target; None drops at the end
        """
        if kind is NodeKind.LOCAL_GROUP:
            order = self.local_group_order
            if dragged_key not in order:
                # The active group is pinned first.
                return
            active_paths = {g.path for g in self.get_local_groups() if g.is_active}
            if target_key in active_paths:
                target_key = order[0]
            self._save_local_group_order(reorder_key(order, dragged_key, target_key))
        elif kind is NodeKind.REPO:
            self._save_repo_order(reorder_key(self.repo_order, dragged_key, target_key))
        else:
            raise TypeError(f"Node kind {kind!r} cannot be reordered")
        self._fire()

    # === Selection ===

    def set_checked(self, skill: Skill, checked: bool) -> None:
        key = skill.node_id
        if checked:
            self._checked_skills.add(key)
            self._skill_cache[key] = skill
        else:
            self._checked_skills.discard(key)

    def is_checked(self, skill: Skill) -> bool:
        return skill.node_id in self._checked_skills

    def get_checked_skills(self) -> List[Skill]:
        """Checked skills, including ones missing from the latest rebuild."""
        return [self._skill_cache[k] for k in self._checked_skills if k in self._skill_cache]

    def clear_selection(self) -> None:
        self._checked_skills.clear()
        self._fire()

    def uncheck_all_skills(self) -> None:
        self.clear_selection()

    def check_all_matching_repo_skills(self) -> None:
        """Check every repository skill matching the query, except conflicts."""
        for skills in self._repo_skills.values():
            for skill in self.filter_skills(skills):
                if skill.match_status is MatchStatus.CONFLICT:
                    continue
                self.set_checked(skill, True)
        self._fire()

    def check_all_skills_in_repo(self, repo: SkillRepo) -> None:
        for skill in self.filter_skills(self._repo_skills.get(repo.url, [])):
            status = skill.match_status or self.get_skill_match_status(skill)
            if status is MatchStatus.CONFLICT:
                continue
            self.set_checked(skill, True)
        self._fire()

    def clear_checked_skills_in_repo(self, repo: SkillRepo) -> None:
        for skill in self._repo_skills.get(repo.url, []):
            self._checked_skills.discard(skill.node_id)
        self._fire()
