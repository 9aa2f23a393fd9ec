"""Command-line interface for agentskills.

Renders the skill tree and drives repository, install and remote search
operations through ``SkillManager``.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
import questionary
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from . import __version__
from .config import Config
from .errors import AgentSkillsError
from .models import LocalSkillsGroup, MatchStatus, NodeKind, SkillRepo
from .remote_search import RemoteSkill
from .skill_indexer import SkillIndexer
from .skill_manager import SkillManager


logger = logging.getLogger(__name__)
console = Console()

STATUS_MARKERS = {
    MatchStatus.MATCHED: "[green]✓[/green]",
    MatchStatus.CONFLICT: "[yellow]≠[/yellow]",
    MatchStatus.NOT_INSTALLED: "[dim]·[/dim]",
}


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Set up logging configuration.

    Args:
        verbose: Log at INFO level instead of WARNING
        log_file: Optional file that also receives the log

    Returns:
        Configured logger
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    return logging.getLogger(__name__)


def format_compact_number(value: int) -> str:
    """Format a count as 950, 1.2k, 3m, ..."""
    for threshold, suffix in ((1_000_000_000, "b"), (1_000_000, "m"), (1_000, "k")):
        if abs(value) >= threshold:
            text = f"{value / threshold:.1f}".rstrip("0").rstrip(".")
            return f"{text}{suffix}"
    return str(value)


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


class AgentSkillsGroup(click.Group):
    """Click group that reports AgentSkillsError as a user message."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except AgentSkillsError as e:
            raise click.ClickException(str(e)) from e


@click.group(cls=AgentSkillsGroup)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to config.yaml")
@click.option(
    "--workspace", "-w",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Workspace that receives installed skills",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(__version__, prog_name="agentskills")
@click.pass_context
def cli(ctx, config_path: Optional[str], workspace: str, verbose: bool):
    """Browse, install and manage agent skills from git repositories."""
    config = Config(config_path)
    setup_logging(verbose, config.log_file)
    ctx.obj = SkillManager(config, workspace_root=Path(workspace).resolve())


# === Tree ===

def _group_label(indexer: SkillIndexer, group: LocalSkillsGroup) -> str:
    total = indexer.get_local_group_total_count(group)
    label = f"[bold]{group.name}[/bold] [dim]{group.path}[/dim]"
    if indexer.search_query:
        label += f" ({indexer.get_local_group_matched_count(group)}/{total})"
    else:
        label += f" ({total})"
    if group.is_active:
        label += " [magenta](active)[/magenta]"
    return label


def _repo_label(indexer: SkillIndexer, repo: SkillRepo) -> str:
    label = f"[cyan]{repo.name}[/cyan]"
    if repo.branch:
        label += f" [dim]@{repo.branch}[/dim]"
    total = indexer.get_repo_total_count(repo)
    if total:
        label += f" ({indexer.get_repo_installed_count(repo)}/{total} installed)"
    return label


def _skill_label(skill) -> str:
    description = _truncate(skill.description or "", 60)
    if skill.kind is NodeKind.SKILL:
        marker = STATUS_MARKERS.get(skill.match_status or MatchStatus.NOT_INSTALLED)
        return f"{marker} {skill.name} [dim]{description}[/dim]"
    return f"{skill.name} [dim]{description}[/dim]"


async def _render_tree(manager: SkillManager, query: str, build: bool) -> Tree:
    indexer = manager.indexer
    indexer.set_search_query(query)
    indexer.on_error(lambda message: console.print(f"[red]{message}[/red]"))
    if build:
        await indexer.refresh()

    tree = Tree("[bold]Skills[/bold]")
    for root in await indexer.get_children():
        if root.kind is NodeKind.LOCAL_GROUP:
            branch = tree.add(_group_label(indexer, root))
        else:
            branch = tree.add(_repo_label(indexer, root))
            if not build:
                continue
        for child in await indexer.get_children(root):
            branch.add(_skill_label(child))
    return tree


@cli.command("tree")
@click.option("--search", "-s", "query", default="", help="Only show skills matching this text")
@click.option("--no-index", is_flag=True, help="Do not clone or list repositories")
@click.pass_obj
def tree_command(manager: SkillManager, query: str, no_index: bool):
    """Show local skill groups and repository skills.

    \b
    Markers: ✓ installed and identical, ≠ installed but different, · not installed
    """
    console.print(asyncio.run(_render_tree(manager, query, not no_index)))


@cli.command("refresh")
@click.pass_obj
def refresh_command(manager: SkillManager):
    """Clone or update every visible repository and rebuild the index."""

    async def run() -> List[SkillRepo]:
        await manager.indexer.refresh()
        return await manager.indexer.get_visible_repos()

    repos = asyncio.run(run())

    table = Table(title="Repositories", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Skills", justify="right")
    table.add_column("Installed", justify="right")
    for repo in repos:
        table.add_row(
            repo.name,
            str(manager.indexer.get_repo_total_count(repo)),
            str(manager.indexer.get_repo_installed_count(repo)),
        )
    console.print(table)


# === Repositories ===

@cli.group("repo", cls=AgentSkillsGroup)
def repo_commands():
    """Manage skill repositories."""
    pass


@repo_commands.command("list")
@click.pass_obj
def repo_list(manager: SkillManager):
    """List configured repositories in display order."""
    order = manager.indexer.repo_order
    repos = sorted(manager.list_repos(), key=lambda r: order.index(r.url))

    table = Table(title=f"Repositories ({len(repos)})", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    table.add_column("Branch")
    table.add_column("Preset")
    table.add_column("Cloned")
    for repo in repos:
        table.add_row(
            repo.name,
            repo.url,
            repo.branch or "default",
            "yes" if repo.is_preset else "",
            "yes" if manager.git.is_repo_cloned(repo.url) else "",
        )
    console.print(table)


@repo_commands.command("add")
@click.argument("url")
@click.option("--name", help="Display name (default: owner/repo)")
@click.pass_obj
def repo_add(manager: SkillManager, url: str, name: Optional[str]):
    """Add a skill repository."""
    repo = manager.add_repo(url, name)
    if repo is None:
        console.print(f"[yellow]Repository already configured: {url}[/yellow]")
        return
    console.print(f"[green]Added {repo.name}[/green]")


@repo_commands.command("remove")
@click.argument("url")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def repo_remove(manager: SkillManager, url: str, yes: bool):
    """Remove a skill repository."""
    if not yes and not click.confirm(f"Remove repository {url}?"):
        return
    if manager.remove_repo(url):
        console.print(f"[green]Removed {url}[/green]")
    else:
        console.print(f"[yellow]Repository not configured: {url}[/yellow]")


@repo_commands.command("branch")
@click.argument("url")
@click.argument("branch", required=False)
@click.pass_obj
def repo_branch(manager: SkillManager, url: str, branch: Optional[str]):
    """Switch the branch of a repository (pick one interactively if omitted)."""
    repo = manager.repo_config.get_repo(url)
    if repo is None:
        raise click.ClickException(f"Unknown repository: {url}")

    if branch is None:
        with console.status("Fetching branches..."):
            branches = manager.list_branches(url)
        if not branches:
            raise click.ClickException("Could not list branches or no branches found.")
        branch = questionary.select(
            f"Select branch for {repo.name} (current: {repo.branch or 'default'})",
            choices=branches,
        ).ask()
        if not branch:
            return

    manager.switch_branch(url, branch)
    console.print(f"[green]{repo.name} now tracks {branch}[/green]")


@repo_commands.command("pull")
@click.argument("url")
@click.pass_obj
def repo_pull(manager: SkillManager, url: str):
    """Clone or update a repository."""
    with console.status(f"Pulling {url}..."):
        repo = manager.pull_repo(url)
    console.print(f"[green]{repo.name} updated.[/green]")


def _move(manager: SkillManager, kind: NodeKind, node, key: str, up: bool, down: bool, before: Optional[str]):
    indexer = manager.indexer
    if up:
        indexer.move_up(node)
    elif down:
        indexer.move_down(node)
    else:
        indexer.reorder_after_drop(kind, key, before)


@repo_commands.command("move")
@click.argument("url")
@click.option("--up", is_flag=True, help="Move one position up")
@click.option("--down", is_flag=True, help="Move one position down")
@click.option("--before", help="Place directly before this repository URL (default: last)")
@click.pass_obj
def repo_move(manager: SkillManager, url: str, up: bool, down: bool, before: Optional[str]):
    """Change the display position of a repository."""
    repo = manager.repo_config.get_repo(url)
    if repo is None:
        raise click.ClickException(f"Unknown repository: {url}")
    _move(manager, NodeKind.REPO, repo, url, up, down, before)
    console.print("\n".join(manager.indexer.repo_order))


@cli.group("group", cls=AgentSkillsGroup)
def group_commands():
    """Manage local skill groups."""
    pass


@group_commands.command("move")
@click.argument("path")
@click.option("--up", is_flag=True, help="Move one position up")
@click.option("--down", is_flag=True, help="Move one position down")
@click.option("--before", help="Place directly before this group path (default: last)")
@click.pass_obj
def group_move(manager: SkillManager, path: str, up: bool, down: bool, before: Optional[str]):
    """Change the display position of a local skill group."""
    groups = {g.path: g for g in manager.indexer.get_local_groups()}
    group = groups.get(str(Path(path).expanduser()))
    if group is None:
        raise click.ClickException(f"Unknown local group: {path}")
    if group.is_active:
        raise click.ClickException("The active group is always shown first.")
    _move(manager, NodeKind.LOCAL_GROUP, group, group.path, up, down, before)
    console.print("\n".join(manager.indexer.local_group_order))


# === Install / delete ===

def _print_result(result, labels) -> None:
    for key, style in labels:
        if result.get(key):
            console.print(f"[{style}]{key.capitalize()}: {', '.join(result[key])}[/{style}]")


@cli.command("install")
@click.argument("names", nargs=-1)
@click.option("--repo", "repo_url", help="Only look for skills in this repository")
@click.option("--all", "install_all", is_flag=True, help="Install every non-conflicting skill of --repo")
@click.option("--local", "local_group", help="Install from this local skill group instead")
@click.pass_obj
def install_command(
    manager: SkillManager,
    names: List[str],
    repo_url: Optional[str],
    install_all: bool,
    local_group: Optional[str],
):
    """Install skills into the workspace skills directory."""
    if local_group is not None:
        for name in names:
            skill = manager.find_local_skill(name, local_group)
            if skill is None:
                console.print(f"[yellow]Local skill not found: {name}[/yellow]")
                continue
            dest = manager.install_personal_skill(skill)
            console.print(f"[green]Installed skill \"{name}\" -> {dest}[/green]")
        return

    if install_all:
        if not repo_url:
            raise click.UsageError("--all requires --repo")
        repo = manager.repo_config.get_repo(repo_url)
        if repo is None:
            raise click.ClickException(f"Unknown repository: {repo_url}")
        asyncio.run(manager.indexer.get_children(repo))
        manager.indexer.check_all_skills_in_repo(repo)
        skills = manager.indexer.get_checked_skills()
    elif names:
        skills = asyncio.run(manager.find_skills(list(names), repo_url))
    else:
        if not repo_url:
            raise click.UsageError("Give skill names or --repo to pick interactively")
        repo = manager.repo_config.get_repo(repo_url)
        if repo is None:
            raise click.ClickException(f"Unknown repository: {repo_url}")
        candidates = asyncio.run(manager.indexer.get_children(repo))
        if not candidates:
            console.print("[yellow]No skills found[/yellow]")
            return
        picked = questionary.checkbox(
            f"Select skills from {repo.name}:",
            choices=[questionary.Choice(s.name, value=s) for s in candidates],
        ).ask()
        skills = picked or []

    if not skills:
        console.print("[yellow]Please select skills to install.[/yellow]")
        return

    with console.status(f"Installing {len(skills)} skill(s)..."):
        result = manager.install_skills(skills)
    _print_result(result, [("installed", "green"), ("skipped", "yellow")])


@cli.command("delete")
@click.argument("names", nargs=-1, required=True)
@click.option("--local", "local_group", help="Delete from this local skill group instead")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def delete_command(manager: SkillManager, names: List[str], local_group: Optional[str], yes: bool):
    """Delete installed skills from the workspace."""
    if not yes and not click.confirm(f"Delete {len(names)} skill(s)?"):
        return

    if local_group is not None:
        for name in names:
            skill = manager.find_local_skill(name, local_group)
            if skill is None:
                console.print(f"[yellow]Local skill not found: {name}[/yellow]")
                continue
            manager.delete_local_skill(skill)
            console.print(f"[green]Deleted skill \"{name}\".[/green]")
        return

    result = manager.delete_installed(list(names))
    _print_result(result, [("deleted", "green"), ("missing", "yellow")])


# === Remote ===

@cli.group("remote", cls=AgentSkillsGroup)
def remote_commands():
    """Search and install skills from remote marketplaces."""
    pass


def _remote_table(skills: List[RemoteSkill], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Author")
    table.add_column("Source")
    table.add_column("Stars", justify="right")
    table.add_column("Installs", justify="right")
    table.add_column("Description")
    for skill in skills:
        table.add_row(
            skill.name,
            skill.author or skill.namespace,
            skill.marketplace,
            format_compact_number(skill.stars),
            format_compact_number(skill.installs),
            _truncate(skill.description, 50),
        )
    return table


@remote_commands.command("search")
@click.argument("query", default="")
@click.option("--limit", "-l", type=int, default=20, help="Maximum results")
@click.option("--offset", type=int, default=0, help="Result offset")
@click.pass_obj
def remote_search(manager: SkillManager, query: str, limit: int, offset: int):
    """Search remote skill marketplaces."""
    response = asyncio.run(manager.search_remote(query, limit, offset))
    if not response.skills:
        console.print(f"[yellow]No skills found matching '{query}'[/yellow]")
        return
    console.print(_remote_table(response.skills, f"Remote skills ({response.total} found)"))


@remote_commands.command("install")
@click.argument("source_url", required=False)
@click.option("--name", help="Installed directory name (default: last URL segment)")
@click.option("--search", "query", help="Search and pick a result interactively")
@click.pass_obj
def remote_install(manager: SkillManager, source_url: Optional[str], name: Optional[str], query: Optional[str]):
    """Install a remote skill from its source URL."""
    if query is not None:
        response = asyncio.run(manager.search_remote(query))
        if not response.skills:
            console.print(f"[yellow]No skills found matching '{query}'[/yellow]")
            return
        remote_skill = questionary.select(
            "Select a skill to install:",
            choices=[
                questionary.Choice(f"{s.name} ({s.marketplace}) {_truncate(s.description, 40)}", value=s)
                for s in response.skills
            ],
        ).ask()
        if remote_skill is None:
            return
    elif source_url:
        skill_name = name or source_url.rstrip("/").split("/")[-1]
        remote_skill = RemoteSkill(id=source_url, name=skill_name, source_url=source_url)
    else:
        raise click.UsageError("Give a source URL or --search")

    with console.status(f"Installing {remote_skill.name}..."):
        dest = manager.install_remote_skill(remote_skill)
    console.print(f"[green]Installed skill \"{remote_skill.name}\" -> {dest}[/green]")


def main() -> None:
    cli(prog_name="agentskills")


if __name__ == "__main__":
    main()
