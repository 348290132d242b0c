"""CLI entrypoint for the issue manager (`gim`).

Commands:
- create:   synchronize a folder of markdown issues with GitHub
- info:     show the target repository
- list:     show the front matter found in a folder
- examples: write example issue files
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from github_issue_manager import __version__
from github_issue_manager.manager.config import ManagerSettings, MissingTokenError
from github_issue_manager.manager.examples.generator import (
    generate_all_examples,
    generate_example,
)
from github_issue_manager.manager.git_remote import infer_owner_repo
from github_issue_manager.manager.github.client import GitHubApiError, GitHubClient
from github_issue_manager.manager.github.sync import CREATE, IssueSynchronizer, SyncReport
from github_issue_manager.manager.issues.collection import (
    FrontMatterError,
    IssueDirectoryError,
    extract_front_matter,
    list_markdown_files,
    read_issue_files,
)
from github_issue_manager.manager.issues.models import Issue, normalize_title
from github_issue_manager.manager.issues.ordering import find_duplicate_titles
from github_issue_manager.manager.logging import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_PARTIAL = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gim",
        description="Create and update GitHub issues from markdown files with front matter",
    )
    parser.add_argument(
        "--version", action="version", version=f"github-issue-manager {__version__}"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Emit logs as JSON lines (defaults to LOG_JSON)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser(
        "create", help="Create or update GitHub issues from a folder of markdown files"
    )
    create.add_argument(
        "-f", "--folder", type=Path, default=Path("issues"), help="Folder holding the issue files"
    )
    create.add_argument(
        "-o", "--owner", default="", help="Repository owner (inferred from the git origin remote)"
    )
    create.add_argument(
        "-r",
        "--repo",
        default="",
        help="Repository name (inferred from git origin, then the current directory name)",
    )
    create.add_argument(
        "-p", "--project", default="", help="GitHub Project name to use for every issue"
    )
    create.add_argument(
        "-m",
        "--parent",
        default="",
        help="Default parent issue title for issues that declare no parent",
    )
    create.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Show what would be created or updated without calling GitHub",
    )

    info = subparsers.add_parser("info", help="Show information about the GitHub repository")
    info.add_argument(
        "-o", "--owner", default="", help="Repository owner (inferred from the git origin remote)"
    )
    info.add_argument(
        "-r", "--repo", default="", help="Repository name (inferred from the git origin remote)"
    )

    list_cmd = subparsers.add_parser("list", help="List issue files and their front matter")
    list_cmd.add_argument(
        "-f", "--folder", type=Path, default=Path("issues"), help="Folder holding the issue files"
    )

    examples = subparsers.add_parser("examples", help="Generate example issue files")
    examples.add_argument(
        "-o", "--output", type=Path, default=Path("examples"), help="Output folder"
    )
    examples.add_argument(
        "-t",
        "--type",
        dest="issue_type",
        default="",
        help="Generate a single example of this type (epic, task, bug, feature)",
    )
    examples.add_argument("--title", default="", help="Title for the generated example")
    examples.add_argument("--project", default="", help="Project for the generated example")
    examples.add_argument("--status", default="", help="Status for the generated example")
    examples.add_argument(
        "--labels", default="", help="Comma-separated labels for the generated example"
    )
    examples.add_argument("--parent", default="", help="Parent title for the generated example")
    examples.add_argument(
        "--description", default="", help="Description for the generated example"
    )

    return parser


def _resolve_owner_repo(owner: str, repo: str, *, cwd: Path) -> tuple[str, str]:
    owner, repo = owner.strip(), repo.strip()
    if not owner or not repo:
        inferred = infer_owner_repo(cwd)
        if inferred is not None:
            owner = owner or inferred[0]
            repo = repo or inferred[1]
    if not repo:
        repo = cwd.resolve().name
    return owner, repo


def _apply_overrides(issues: Iterable[Issue], *, project: str, parent: str) -> None:
    project, parent = project.strip(), parent.strip()
    parent_key = normalize_title(parent)
    for issue in issues:
        if project:
            issue.project = project
        if parent and not issue.has_parent and issue.title_key != parent_key:
            issue.parent = parent


def _print_report(report: SyncReport, *, dry_run: bool) -> None:
    if dry_run:
        for outcome in report.planned:
            target = f" #{outcome.number}" if outcome.number is not None else ""
            print(f"Would {outcome.action}{target}: {outcome.title}")
        to_create = sum(1 for o in report.planned if o.action == CREATE)
        print(
            f"Dry run: {len(report.planned)} issues planned "
            f"(create {to_create}, update {len(report.planned) - to_create})."
        )
        return

    for outcome in report.failed:
        print(f"Failed to {outcome.action} '{outcome.title}': {outcome.error}", file=sys.stderr)
    print(
        f"Synchronized {len(report.synced)} issues "
        f"(created {report.created}, updated {report.updated}, failed {len(report.failed)})."
    )


def _connect(settings: ManagerSettings, *, repository: str) -> GitHubClient | None:
    try:
        token = settings.require_github_token()
    except MissingTokenError as e:
        logger.error("GitHub token not configured", extra={"error": str(e)})
        return None

    try:
        return GitHubClient(
            token=token,
            repository=repository,
            base_url=settings.github_base_url,
        )
    except (GitHubApiError, ValueError) as e:
        logger.error("Cannot access repository", extra={"repository": repository, "error": str(e)})
        return None


def _run_info(args: argparse.Namespace, settings: ManagerSettings) -> int:
    owner, repo = _resolve_owner_repo(args.owner, args.repo, cwd=Path.cwd())
    if not owner or not repo:
        logger.error("Could not determine repository owner; pass --owner")
        return EXIT_CONFIG

    github = _connect(settings, repository=f"{owner}/{repo}")
    if github is None:
        return EXIT_CONFIG

    try:
        info = github.get_repository_info()
    except GitHubApiError as e:
        logger.error("Failed to get repository info", extra={"error": str(e)})
        return EXIT_FAILURE
    finally:
        github.close()

    print(json.dumps(info, indent=2, default=str))
    return EXIT_OK


def _run_create(args: argparse.Namespace, settings: ManagerSettings) -> int:
    owner, repo = _resolve_owner_repo(args.owner, args.repo, cwd=Path.cwd())
    if not owner or not repo:
        logger.error("Could not determine repository owner; pass --owner")
        return EXIT_CONFIG

    try:
        issues = read_issue_files(args.folder)
    except IssueDirectoryError as e:
        logger.error("Cannot read issue folder", extra={"folder": str(args.folder), "error": str(e)})
        return EXIT_CONFIG

    _apply_overrides(issues, project=args.project, parent=args.parent)
    for title in find_duplicate_titles(issues):
        logger.warning(
            "Duplicate issue title, parent references resolve to the first one",
            extra={"title": title},
        )

    logger.info(
        "Synchronizing issues",
        extra={"repository": f"{owner}/{repo}", "count": len(issues), "dry_run": args.dry_run},
    )

    if args.dry_run:
        report = IssueSynchronizer(None, dry_run=True).sync(issues)
        _print_report(report, dry_run=True)
        return EXIT_OK

    github = _connect(settings, repository=f"{owner}/{repo}")
    if github is None:
        return EXIT_CONFIG

    try:
        report = IssueSynchronizer(github).sync(issues)
    finally:
        github.close()

    _print_report(report, dry_run=False)
    if report.failed or report.incomplete:
        return EXIT_PARTIAL
    return EXIT_OK


def _run_list(args: argparse.Namespace) -> int:
    try:
        files = list_markdown_files(args.folder)
    except IssueDirectoryError as e:
        logger.error("Cannot read issue folder", extra={"folder": str(args.folder), "error": str(e)})
        return EXIT_CONFIG

    for path in files:
        print(path.name)
        try:
            record = extract_front_matter(path)
        except FrontMatterError as e:
            print(f"  error: {e}")
            continue
        for key, value in record.items():
            if key != "body":
                print(f"  {key}: {value}")
    return EXIT_OK


def _run_examples(args: argparse.Namespace) -> int:
    if not args.issue_type:
        paths = generate_all_examples(args.output)
        for path in paths:
            print(f"Generated {path}")
        return EXIT_OK

    overrides = {
        "title": args.title,
        "project": args.project,
        "status": args.status,
        "labels": args.labels,
        "parent": args.parent,
        "description": args.description,
    }
    try:
        path = generate_example(args.issue_type, args.output, overrides)
    except ValueError as e:
        logger.error("Cannot generate example", extra={"error": str(e)})
        return EXIT_CONFIG
    print(f"Generated {path}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ManagerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment and .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(
        args.log_level or settings.log_level,
        json_format=settings.log_json if args.log_json is None else args.log_json,
    )

    try:
        if args.command == "create":
            return _run_create(args, settings)
        if args.command == "info":
            return _run_info(args, settings)
        if args.command == "list":
            return _run_list(args)
        if args.command == "examples":
            return _run_examples(args)

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except Exception:
        logger.exception("Command failed")
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
