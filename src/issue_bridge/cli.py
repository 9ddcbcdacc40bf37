"""Issue bridge command line.

Usage:
    issue-bridge serve                                  # Run the HTTP service
    issue-bridge backfill                               # List referenced identifiers (dry run)
    issue-bridge backfill --apply                       # ...and label each one public
    issue-bridge backfill --repo owner/repo --git-dir . # Override GITHUB_REPO / BACKFILL_GIT_DIR

Settings come from the environment and .env (see BridgeConfig). When
GITHUB_TOKEN is unset, backfill borrows the GitHub CLI's token.
"""

import argparse
import asyncio
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from issue_bridge.config import BridgeConfig, ConfigurationError, get_config, validate_repo
from issue_bridge.connectors.github import GitHubClient, RepoScanner
from issue_bridge.connectors.linear import LinearClient, PublicLabeler
from issue_bridge.logging_config import configure_logging

logger = logging.getLogger("issue_bridge.cli")

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _gh_auth_token() -> Optional[str]:
    """Token from `gh auth token`, or None if gh is missing or logged out."""
    try:
        proc = subprocess.run(
            ["gh", "auth", "token"], capture_output=True, text=True, check=False
        )
    except OSError:
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout.strip() or None


def run_serve(config: BridgeConfig) -> int:
    import uvicorn

    from issue_bridge.server import create_app

    config.require("linear_api_key", "linear_team_key")
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    return EXIT_SUCCESS


async def run_backfill(
    config: BridgeConfig,
    repo: str,
    git_dir: Optional[Path],
    apply: bool,
) -> int:
    """Scan the repository, print what was found and optionally label it."""
    token = config.github_token.get_secret_value() or _gh_auth_token()
    if not token:
        logger.warning("github_token_missing_unauthenticated_requests")

    async with GitHubClient(repo, token=token, base_url=config.github_api_url) as github:
        scanner = RepoScanner(github, git_dir=git_dir)
        identifiers = await scanner.scan_repo(config.linear_team_key)

    print(f"Found {len(identifiers)} {config.linear_team_key} identifiers in {repo}")
    for identifier in identifiers:
        print(f"  {identifier}")

    if not apply:
        print("\nDry run; pass --apply to label them public.")
        return EXIT_SUCCESS

    async with LinearClient(
        config.linear_api_key.get_secret_value(), endpoint=config.linear_api_url
    ) as linear:
        labeler = PublicLabeler(linear, config.linear_team_key)
        total = len(identifiers)
        for i, identifier in enumerate(identifiers, start=1):
            try:
                await labeler.ensure_public_label(identifier)
            except Exception as e:
                print(f"ERROR: {i}/{total} {identifier}: {e}")
                logger.error(
                    "backfill_apply_failed",
                    extra={"identifier": identifier, "position": i, "total": total, "error": str(e)},
                )
                return EXIT_FAILURE
            print(f"  {i}/{total} {identifier}")

    print("\nDone.")
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="issue-bridge",
        description="Expose public Linear issues and label issues referenced from GitHub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="Run the HTTP service")

    backfill = commands.add_parser(
        "backfill", help="Find identifiers referenced anywhere in a repository"
    )
    backfill.add_argument("--repo", help="owner/repo (default: GITHUB_REPO)")
    backfill.add_argument(
        "--git-dir", type=Path, help="Local checkout to scan (default: BACKFILL_GIT_DIR)"
    )
    backfill.add_argument(
        "--apply", action="store_true", help="Label every identifier found (default: dry run)"
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = get_config()
    except ValueError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG
    configure_logging(config.log_level, config.log_format)

    try:
        if args.command == "serve":
            return run_serve(config)

        repo = config.github_repo
        if args.repo:
            try:
                repo = validate_repo(args.repo)
            except ValueError as e:
                raise ConfigurationError(f"--repo: {e}") from e
        if not repo:
            raise ConfigurationError("GITHUB_REPO (or --repo) required")
        config.require("linear_team_key", *(["linear_api_key"] if args.apply else []))
        git_dir = args.git_dir or config.backfill_git_dir
        return asyncio.run(run_backfill(config, repo, git_dir, args.apply))
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except Exception as e:
        logger.error("fatal", extra={"command": args.command, "error": str(e)})
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
