"""Unit tests for the issue synchronizer (mocked GitHub client)."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import Mock, call

import pytest

from github_issue_manager.manager.github.client import GitHubApiError, IssueResult
from github_issue_manager.manager.github.sync import CREATE, UPDATE, IssueSynchronizer
from github_issue_manager.manager.issues.collection import extract_front_matter, read_issue_files
from github_issue_manager.manager.issues.models import Issue


def test_create_writes_id_back_and_links_parent(
    write_issue, issue_dir: Path, mock_client: Mock
) -> None:
    epic = write_issue("epic.md", title="Epic1", type="Epic")
    task = write_issue("task.md", title="Task1", parent="Epic1", labels="backend, api")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    # Task1 is created before its epic parent, so the parent lookup happens first.
    assert [o.title for o in report.outcomes] == ["Task1", "Epic1"]
    assert report.synced == {"Task1": 101, "Epic1": 102}
    assert report.created == 2
    assert report.failed == []
    assert extract_front_matter(task)["id"] == "101"
    assert extract_front_matter(epic)["id"] == "102"

    mock_client.resolve_parent_issue_id.assert_called_once_with(title="Epic1")
    first_create = mock_client.create_issue.call_args_list[0]
    assert first_create == call(
        title="Task1",
        body="Body",
        label_ids=["L_backend", "L_api"],
        parent_id="P_Epic1",
        issue_type_id=None,
    )
    second_create = mock_client.create_issue.call_args_list[1]
    assert second_create.kwargs["issue_type_id"] == "T_Epic"


def test_issue_with_id_is_updated_never_created(write_issue, issue_dir: Path, mock_client: Mock) -> None:
    path = write_issue("existing.md", title="Existing", id="42")
    before = path.read_text(encoding="utf-8")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    mock_client.create_issue.assert_not_called()
    mock_client.resolve_issue_node_id.assert_called_once_with(number=42)
    mock_client.update_issue.assert_called_once_with(
        node_id="I_42", title="Existing", body="Body", label_ids=None, issue_type_id=None
    )
    assert report.updated == 1
    assert report.outcomes[0].action == UPDATE
    assert report.outcomes[0].id_written is None
    assert path.read_text(encoding="utf-8") == before


def test_second_run_updates_what_the_first_run_created(
    write_issue, issue_dir: Path, mock_client: Mock
) -> None:
    write_issue("a.md", title="A")
    write_issue("b.md", title="B", parent="A")

    IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))
    assert mock_client.create_issue.call_count == 2

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert mock_client.create_issue.call_count == 2
    assert [o.action for o in report.outcomes] == [UPDATE, UPDATE]
    assert report.synced == {"A": 101, "B": 102}
    mock_client.set_parent_issue.assert_called_once_with(child_node_id="I_102", parent_title="A")


def test_invalid_id_fails_only_that_issue(write_issue, issue_dir: Path, mock_client: Mock) -> None:
    write_issue("bad.md", title="Bad id", id="abc")
    write_issue("good.md", title="Good")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert [o.title for o in report.failed] == ["Bad id"]
    assert "not a valid issue number" in (report.failed[0].error or "")
    assert report.synced == {"Good": 101}
    mock_client.update_issue.assert_not_called()


def test_remote_failure_continues_with_next_issue(
    write_issue, issue_dir: Path, mock_client: Mock, caplog: pytest.LogCaptureFixture
) -> None:
    write_issue("a.md", title="A")
    write_issue("b.md", title="B")
    results = iter([GitHubApiError("boom"), IssueResult(number=9, node_id="I_9")])

    def _create_issue(**kwargs: object) -> IssueResult:
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    mock_client.create_issue.side_effect = _create_issue

    with caplog.at_level(logging.ERROR):
        report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert [o.title for o in report.failed] == ["A"]
    assert report.synced == {"B": 9}
    assert "id" not in extract_front_matter(issue_dir / "a.md")
    assert any(r.getMessage() == "Failed to create issue" for r in caplog.records)


def test_unresolvable_parent_still_creates_issue(
    write_issue, issue_dir: Path, mock_client: Mock
) -> None:
    write_issue("child.md", title="Child", parent="Ghost")
    mock_client.resolve_parent_issue_id.side_effect = GitHubApiError("not found")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert report.created == 1
    assert mock_client.create_issue.call_args.kwargs["parent_id"] is None


def test_unknown_issue_type_fails_the_issue(write_issue, issue_dir: Path, mock_client: Mock) -> None:
    write_issue("t.md", title="Typed", type="Spike")
    mock_client.resolve_issue_type_id.side_effect = GitHubApiError("issue type not found")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert [o.title for o in report.failed] == ["Typed"]
    mock_client.create_issue.assert_not_called()


def test_project_id_is_resolved_once_per_run(write_issue, issue_dir: Path, mock_client: Mock) -> None:
    write_issue("a.md", title="A", project="Auth Team")
    write_issue("b.md", title="B", project="auth team")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    mock_client.resolve_project_id.assert_called_once_with(name="Auth Team")
    assert mock_client.add_issue_to_project.call_args_list == [
        call(issue_node_id="I_101", project_node_id="PVT_Auth Team"),
        call(issue_node_id="I_102", project_node_id="PVT_Auth Team"),
    ]
    assert all(o.project_linked for o in report.outcomes)
    assert report.incomplete == []


def test_project_failure_marks_outcome_incomplete(
    write_issue, issue_dir: Path, mock_client: Mock
) -> None:
    path = write_issue("a.md", title="A", project="Missing")
    mock_client.resolve_project_id.side_effect = GitHubApiError("project not found")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert report.failed == []
    assert report.created == 1
    assert [o.title for o in report.incomplete] == ["A"]
    assert report.outcomes[0].project_error == "project not found"
    assert extract_front_matter(path)["id"] == "101"


def test_id_write_failure_skips_project_link(
    write_issue, issue_dir: Path, mock_client: Mock, monkeypatch: pytest.MonkeyPatch
) -> None:
    write_issue("a.md", title="A", project="Board")

    def _fail(path: Path, number: int) -> None:
        raise PermissionError("read-only")

    monkeypatch.setattr("github_issue_manager.manager.github.sync.write_issue_id", _fail)

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    outcome = report.outcomes[0]
    assert outcome.id_written is False
    assert outcome.number == 101
    assert report.incomplete == [outcome]
    mock_client.add_issue_to_project.assert_not_called()


def test_parent_update_failure_does_not_block_update(
    write_issue, issue_dir: Path, mock_client: Mock
) -> None:
    write_issue("a.md", title="A", id="5", parent="Gone")
    mock_client.set_parent_issue.side_effect = GitHubApiError("parent not found")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert report.updated == 1
    mock_client.update_issue.assert_called_once()


def test_label_lookup_failure_sends_no_labels(
    write_issue, issue_dir: Path, mock_client: Mock
) -> None:
    write_issue("a.md", title="A", labels="bug")
    mock_client.resolve_label_ids.side_effect = GitHubApiError("rate limited")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert report.created == 1
    assert mock_client.create_issue.call_args.kwargs["label_ids"] is None


def test_dry_run_makes_no_calls_and_writes_nothing(write_issue, issue_dir: Path) -> None:
    path = write_issue("a.md", title="A")
    write_issue("b.md", title="B", id="8")
    before = path.read_text(encoding="utf-8")

    report = IssueSynchronizer(None, dry_run=True).sync(read_issue_files(issue_dir))

    assert [(o.title, o.action, o.number) for o in report.planned] == [
        ("A", CREATE, None),
        ("B", UPDATE, 8),
    ]
    assert report.synced == {}
    assert path.read_text(encoding="utf-8") == before


def test_client_required_outside_dry_run() -> None:
    with pytest.raises(ValueError):
        IssueSynchronizer(None)


def test_dry_run_synchronizer_has_no_client() -> None:
    synchronizer = IssueSynchronizer(None, dry_run=True)

    with pytest.raises(RuntimeError, match="no GitHub client"):
        synchronizer.client


def test_issue_without_source_file_is_synced_in_memory(mock_client: Mock, tmp_path: Path) -> None:
    issue = Issue(path=tmp_path, file_name="never-written.md", title="Loose")

    report = IssueSynchronizer(mock_client).sync([issue])

    assert issue.id == "101"
    assert report.outcomes[0].id_written is False


def test_parent_title_with_colon_and_hash_is_resolved_verbatim(
    write_issue, issue_dir: Path, mock_client: Mock
) -> None:
    write_issue("a.md", title="Fix crash #12 in parser", parent="Auth: login flow")
    write_issue("b.md", title="Auth: login flow")

    report = IssueSynchronizer(mock_client).sync(read_issue_files(issue_dir))

    assert report.synced == {"Auth: login flow": 101, "Fix crash #12 in parser": 102}
    mock_client.resolve_parent_issue_id.assert_called_once_with(title="Auth: login flow")
    assert mock_client.create_issue.call_args.kwargs["parent_id"] == "P_Auth: login flow"
