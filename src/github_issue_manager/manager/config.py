"""Configuration for the issue manager.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The GitHub token is taken from `GITHUB_TOKEN` (or `GH_TOKEN`) first. When neither is
set, the token stored by the GitHub CLI (`gh auth login`) in its `hosts.yml` is used.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_GH_HOSTS_FILE = Path.home() / ".config" / "gh" / "hosts.yml"


class MissingTokenError(ValueError):
    """Raised when no GitHub token is available from any source."""


def _api_host(base_url: str) -> str:
    """Map the REST base URL onto the host key used by the GitHub CLI."""

    host = urlparse(base_url).hostname or ""
    if host in {"", "api.github.com"}:
        return "github.com"
    return host


def _token_from_host_entry(entry: object) -> str:
    if not isinstance(entry, dict):
        return ""

    token = entry.get("oauth_token")
    if isinstance(token, str) and token.strip():
        return token.strip()

    # Newer gh releases nest tokens per account: users.<login>.oauth_token
    users = entry.get("users")
    if not isinstance(users, dict):
        return ""
    preferred = entry.get("user")
    candidates = [users.get(preferred)] if isinstance(preferred, str) else []
    candidates.extend(users.values())
    for user in candidates:
        if isinstance(user, dict):
            token = user.get("oauth_token")
            if isinstance(token, str) and token.strip():
                return token.strip()
    return ""


def read_token_from_hosts_file(path: Path, *, host: str = "github.com") -> str:
    """Return the token stored by the GitHub CLI for `host`.

    The entry for `host` wins; otherwise the first entry carrying a token is used.

    Raises:
        MissingTokenError: if the file is missing, unreadable or holds no token.
    """

    try:
        raw: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise MissingTokenError(f"failed to read hosts file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise MissingTokenError(f"hosts file {path} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise MissingTokenError(f"oauth_token not found in hosts file {path}")

    token = _token_from_host_entry(raw.get(host))
    if token:
        return token
    for entry in raw.values():
        token = _token_from_host_entry(entry)
        if token:
            return token
    raise MissingTokenError(f"oauth_token not found in hosts file {path}")


class ManagerSettings(BaseSettings):
    """Settings for the issue manager.

    Environment variables:
    - GITHUB_TOKEN / GH_TOKEN
    - GH_HOSTS_FILE     (optional)
    - GITHUB_BASE_URL   (optional)
    - LOG_LEVEL         (optional)
    - LOG_JSON          (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `ManagerSettings(_env_file=path_to_env)`.
    """

    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("GITHUB_TOKEN", "GH_TOKEN"),
        description="GitHub token used for API authentication",
    )
    gh_hosts_file: Path = Field(
        default=DEFAULT_GH_HOSTS_FILE,
        validation_alias="GH_HOSTS_FILE",
        description="GitHub CLI credentials file consulted when no token variable is set",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )
    log_json: bool = Field(
        default=False,
        validation_alias="LOG_JSON",
        description="Emit logs as JSON lines instead of plain text",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _token_from_gh_cli(self) -> ManagerSettings:
        if self.github_token.strip():
            return self
        try:
            self.github_token = read_token_from_hosts_file(
                self.gh_hosts_file, host=_api_host(self.github_base_url)
            )
        except MissingTokenError as e:
            logger.debug("No token from GitHub CLI hosts file", extra={"reason": str(e)})
        return self

    def require_github_token(self) -> str:
        """Return the GitHub token or raise when none was found."""

        token = self.github_token.strip()
        if not token:
            raise MissingTokenError(
                "GITHUB_TOKEN is not set and no token was found in "
                f"{self.gh_hosts_file} (run `gh auth login` or export GITHUB_TOKEN)"
            )
        return token
