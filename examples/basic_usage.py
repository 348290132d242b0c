#!/usr/bin/env python3
"""Programmatic synchronization example.

This demonstrates using the issue manager components directly:

* load settings from the environment / `.env` (or the GitHub CLI login)
* read a folder of markdown issues
* create or update them on GitHub in dependency order

Repository selection is passed as an argument (not read from `.env`).
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path

from github_issue_manager.manager.config import ManagerSettings
from github_issue_manager.manager.github.client import GitHubClient
from github_issue_manager.manager.github.sync import IssueSynchronizer
from github_issue_manager.manager.issues.collection import read_issue_files
from github_issue_manager.manager.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync a folder of issues (programmatic example).")
    parser.add_argument("--repo", required=True, help='Target repository in the form "owner/repo"')
    parser.add_argument("--folder", type=Path, default=Path("issues"), help="Issue folder")
    parser.add_argument("--dry-run", action="store_true", help="Plan only")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = ManagerSettings()
    configure_logging(settings.log_level, json_format=settings.log_json)

    issues = read_issue_files(args.folder)

    if args.dry_run:
        report = IssueSynchronizer(None, dry_run=True).sync(issues)
        for outcome in report.planned:
            print(f"Would {outcome.action}: {outcome.title}")
        return 0

    github = GitHubClient(
        token=settings.require_github_token(),
        repository=args.repo,
        base_url=settings.github_base_url,
    )
    try:
        report = IssueSynchronizer(github).sync(issues)
    finally:
        github.close()

    for title, number in report.synced.items():
        print(f"#{number}: {title}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
