#!/usr/bin/env python3
"""Repository Sync Script - Clones or updates configured skill repositories.

This script can be run manually or via cron to keep the git cache warm, so
the tree and installs do not have to clone on first use.

Usage:
    python scripts/sync_repos.py                    # Sync every configured repo
    python scripts/sync_repos.py --presets-only     # Sync preset repos only
    python scripts/sync_repos.py --repo <url>       # Sync a specific repo

Cron (hourly sync):
    0 * * * * cd /path/to/agentskills && .venv/bin/python scripts/sync_repos.py >> logs/sync.log 2>&1
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from agentskills.config import Config
from agentskills.errors import CloneError, PullError
from agentskills.git_service import GitService
from agentskills.repo_config import RepoConfigManager


def setup_logging(verbose: bool = False):
    """Setup logging configuration.

    Args:
        verbose: Enable verbose logging
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Clone or update configured skill repositories"
    )
    parser.add_argument(
        "--presets-only",
        action="store_true",
        help="Only sync the preset repositories"
    )
    parser.add_argument(
        "--repo",
        type=str,
        help="Sync a specific repository URL"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be synced without making changes"
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    config = Config(args.config)
    repo_config = RepoConfigManager(config)
    git = GitService(config.cache_dir)

    if args.presets_only and not args.dry_run:
        result = repo_config.ensure_preset_repos(git)
        logger.info(f"Pulled: {len(result['pulled'])}, failed: {len(result['failed'])}")
        sys.exit(1 if result["failed"] else 0)

    repos = repo_config.get_repos()
    if args.repo:
        repos = [r for r in repos if r.url == args.repo]
        if not repos:
            logger.error(f"Repository not configured: {args.repo}")
            sys.exit(1)
    elif args.presets_only:
        repos = [r for r in repos if r.is_preset]

    if args.dry_run:
        logger.info("DRY RUN - Would sync:")
        for repo in repos:
            logger.info(f"  {repo.name} ({repo.url}) branch={repo.branch or 'default'}")
        return

    failed = []
    for repo in repos:
        logger.info(f"Syncing {repo.name}...")
        try:
            git.pull_repo(repo.url, repo.branch)
        except (CloneError, PullError) as e:
            logger.error(f"Failed to sync {repo.name}: {e}")
            failed.append(repo.url)

    logger.info(f"Synced {len(repos) - len(failed)}/{len(repos)} repositories")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
