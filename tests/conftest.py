"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import Mock

import pytest

from github_issue_manager.manager.github.client import GitHubClient, IssueResult

ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN", "GH_HOSTS_FILE", "GITHUB_BASE_URL", "LOG_LEVEL", "LOG_JSON")

WriteIssue = Callable[..., Path]


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's tokens and gh login out of every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GH_HOSTS_FILE", str(tmp_path / "missing-hosts.yml"))


@pytest.fixture
def issue_dir(tmp_path: Path) -> Path:
    """Provide an empty issue folder."""
    folder = tmp_path / "issues"
    folder.mkdir()
    return folder


@pytest.fixture
def write_issue(issue_dir: Path) -> WriteIssue:
    """Write a markdown issue file into `issue_dir` and return its path."""

    def _write(file_name: str, body: str = "Body", **front_matter: str) -> Path:
        lines = ["---"]
        lines.extend(f"{key}: {value}" for key, value in front_matter.items())
        lines.extend(["---", "", body, ""])
        path = issue_dir / file_name
        path.write_text("\n".join(lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def mock_client() -> Mock:
    """Provide a GitHub client whose issue numbers count up from 101."""
    client = Mock(spec=GitHubClient)
    client.repository = "octo-org/octo-repo"
    client.owner = "octo-org"

    numbers = iter(range(101, 1000))

    def _create_issue(**kwargs: object) -> IssueResult:
        number = next(numbers)
        return IssueResult(number=number, node_id=f"I_{number}")

    def _update_issue(*, node_id: str, **kwargs: object) -> IssueResult:
        return IssueResult(number=int(node_id.removeprefix("I_")), node_id=node_id)

    client.create_issue.side_effect = _create_issue
    client.update_issue.side_effect = _update_issue
    client.resolve_issue_node_id.side_effect = lambda *, number: f"I_{number}"
    client.resolve_parent_issue_id.side_effect = lambda *, title: f"P_{title}"
    client.resolve_label_ids.side_effect = lambda *, names: [f"L_{n}" for n in names]
    client.resolve_issue_type_id.side_effect = lambda *, name: f"T_{name}"
    client.resolve_project_id.side_effect = lambda *, name, owner=None: f"PVT_{name}"
    client.add_issue_to_project.return_value = None
    client.set_parent_issue.return_value = None
    return client
