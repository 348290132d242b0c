"""Best-effort owner/repo inference from the local git checkout.

Only a convenience default for the CLI: every failure is logged and yields `None`.
"""

from __future__ import annotations

import configparser
import logging
import re
from pathlib import Path

import git
from git.exc import InvalidGitRepositoryError, NoSuchPathError

logger = logging.getLogger(__name__)

ORIGIN_REMOTE = "origin"

_SSH_PREFIX = "git@github.com:"
_HTTPS_RE = re.compile(r"^https://(?:[^@/]+@)?github\.com/(?P<path>.+)$")


def _split_owner_repo(path: str, url: str) -> tuple[str, str]:
    path = path.strip().rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    parts = path.split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"invalid GitHub remote URL: {url}")
    return parts[0], parts[1]


def parse_git_remote_url(url: str) -> tuple[str, str]:
    """Return (owner, repo) for a GitHub SSH or HTTPS remote URL.

    Supported:
        git@github.com:owner/repo.git
        https://github.com/owner/repo.git
    The `.git` suffix is optional.

    Raises:
        ValueError: for any other URL shape.
    """

    url = url.strip()
    if url.startswith(_SSH_PREFIX):
        return _split_owner_repo(url[len(_SSH_PREFIX) :], url)

    match = _HTTPS_RE.match(url)
    if match:
        return _split_owner_repo(match.group("path"), url)

    raise ValueError(f"unsupported URL format: {url}")


def infer_owner_repo(repo_root: Path = Path(".")) -> tuple[str, str] | None:
    """Return (owner, repo) from the `origin` remote of the checkout containing `repo_root`.

    Parent directories are searched, so any path inside a working tree works.
    """

    try:
        repo = git.Repo(repo_root, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        logger.info("Not inside a git repository, cannot infer owner/repo")
        return None

    try:
        url = repo.remote(ORIGIN_REMOTE).url
    except (ValueError, configparser.Error) as e:
        logger.warning("No remote origin found", extra={"error": str(e)})
        return None
    finally:
        repo.close()

    try:
        return parse_git_remote_url(url)
    except ValueError as e:
        logger.error("Failed to parse remote URL", extra={"error": str(e)})
        return None
