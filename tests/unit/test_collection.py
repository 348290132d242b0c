"""Unit tests for reading issue files and writing ids back."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from github_issue_manager.manager.issues.collection import (
    FrontMatterError,
    IssueDirectoryError,
    extract_front_matter,
    list_markdown_files,
    parse_labels,
    read_issue_files,
    write_issue_id,
)
from github_issue_manager.manager.issues.ordering import sort_issues_by_dependency


def test_parse_labels_trims_and_drops_blanks() -> None:
    assert parse_labels(" bug, ui ,, backend ,") == ["bug", "ui", "backend"]
    assert parse_labels("") == []


def test_extract_front_matter_returns_strings_and_body(issue_dir: Path) -> None:
    path = issue_dir / "task.md"
    path.write_text(
        "---\n"
        "title: Implement User Registration API\n"
        "type: Task\n"
        "id: 42\n"
        "labels:\n"
        "  - backend\n"
        "  - api\n"
        "---\n"
        "\n"
        "Create the endpoints.\n",
        encoding="utf-8",
    )

    record = extract_front_matter(path)

    assert record["title"] == "Implement User Registration API"
    assert record["type"] == "Task"
    assert record["id"] == "42"
    assert record["labels"] == "backend, api"
    assert record["body"] == "Create the endpoints."


def test_extract_front_matter_uses_body_key_when_content_is_blank(issue_dir: Path) -> None:
    path = issue_dir / "only-meta.md"
    path.write_text("---\ntitle: T\nbody: From the block\n---\n", encoding="utf-8")

    assert extract_front_matter(path)["body"] == "From the block"


def test_extract_front_matter_requires_title(issue_dir: Path) -> None:
    path = issue_dir / "untitled.md"
    path.write_text("---\ntype: Task\n---\nBody\n", encoding="utf-8")

    with pytest.raises(FrontMatterError, match="no title"):
        extract_front_matter(path)


def test_extract_front_matter_keeps_colons_and_hashes_in_values(issue_dir: Path) -> None:
    path = issue_dir / "colon.md"
    path.write_text(
        "---\n"
        "title: Fix crash #12 in parser\n"
        "parent: Auth: login flow\n"
        "labels: bug, parser\n"
        "---\n"
        "Body\n",
        encoding="utf-8",
    )

    record = extract_front_matter(path)

    assert record["title"] == "Fix crash #12 in parser"
    assert record["parent"] == "Auth: login flow"
    assert record["labels"] == "bug, parser"


def test_extract_front_matter_unquotes_values(issue_dir: Path) -> None:
    path = issue_dir / "quoted.md"
    path.write_text(
        "---\n"
        'title: "Auth: login flow"\n'
        "project: 'Auth Team'\n"
        'parent: "Say \\"hello\\""\n'
        "---\n",
        encoding="utf-8",
    )

    record = extract_front_matter(path)

    assert record["title"] == "Auth: login flow"
    assert record["project"] == "Auth Team"
    assert record["parent"] == 'Say "hello"'


def test_extract_front_matter_ignores_delimiters_after_the_first_line(issue_dir: Path) -> None:
    path = issue_dir / "rule.md"
    path.write_text("Intro\n---\ntitle: Not front matter\n---\n", encoding="utf-8")

    with pytest.raises(FrontMatterError, match="no title"):
        extract_front_matter(path)


def test_read_issue_files_sorts_by_parent_title_with_colon(write_issue, issue_dir: Path) -> None:
    write_issue("a.md", title="Fix crash #12 in parser", parent="Auth: login flow")
    write_issue("b.md", title="Auth: login flow")

    issues = sort_issues_by_dependency(read_issue_files(issue_dir))

    assert [i.title for i in issues] == ["Auth: login flow", "Fix crash #12 in parser"]


def test_read_issue_files_builds_issues_in_file_name_order(write_issue, issue_dir: Path) -> None:
    write_issue("b.md", title="Second", labels="bug, ui", parent="First", project="Board")
    write_issue("a.md", title="First", type="Epic")

    issues = read_issue_files(issue_dir)

    assert [i.title for i in issues] == ["First", "Second"]
    first, second = issues
    assert first.type == "Epic"
    assert first.file_name == "a.md"
    assert first.source_path == issue_dir / "a.md"
    assert second.labels == ["bug", "ui"]
    assert second.parent == "First"
    assert second.project == "Board"
    assert second.id == ""
    assert second.body == "Body"


def test_read_issue_files_skips_bad_files_and_directories(
    write_issue, issue_dir: Path, caplog: pytest.LogCaptureFixture
) -> None:
    write_issue("good.md", title="Good")
    (issue_dir / "bad.md").write_text("---\ntype: Task\n---\n", encoding="utf-8")
    (issue_dir / "nested").mkdir()

    with caplog.at_level(logging.ERROR):
        issues = read_issue_files(issue_dir)

    assert [i.title for i in issues] == ["Good"]
    errors = [r for r in caplog.records if r.getMessage() == "Error parsing front matter"]
    assert [getattr(r, "file") for r in errors] == ["bad.md"]


def test_read_issue_files_missing_folder_raises(tmp_path: Path) -> None:
    with pytest.raises(IssueDirectoryError):
        read_issue_files(tmp_path / "nope")


def test_list_markdown_files_filters_by_suffix(write_issue, issue_dir: Path) -> None:
    write_issue("b.md", title="B")
    write_issue("a.md", title="A")
    (issue_dir / "notes.txt").write_text("x", encoding="utf-8")

    assert [p.name for p in list_markdown_files(issue_dir)] == ["a.md", "b.md"]


def test_write_issue_id_inserts_before_closing_delimiter(issue_dir: Path) -> None:
    path = issue_dir / "new.md"
    path.write_text("---\ntitle: New\ntype: Task\n---\n\nBody text\n", encoding="utf-8")

    write_issue_id(path, 7)

    assert path.read_text(encoding="utf-8") == (
        "---\ntitle: New\ntype: Task\nid: 7\n---\n\nBody text\n"
    )
    assert extract_front_matter(path)["id"] == "7"


def test_write_issue_id_replaces_existing_line(issue_dir: Path) -> None:
    path = issue_dir / "old.md"
    path.write_text("---\ntitle: Old\nid: \n---\nid: keep me\n", encoding="utf-8")

    write_issue_id(path, 12)

    assert path.read_text(encoding="utf-8") == "---\ntitle: Old\nid: 12\n---\nid: keep me\n"


def test_write_issue_id_is_stable_on_repeat(issue_dir: Path) -> None:
    path = issue_dir / "repeat.md"
    path.write_text("---\ntitle: Repeat\n---\nBody\n", encoding="utf-8")

    write_issue_id(path, 3)
    once = path.read_text(encoding="utf-8")
    write_issue_id(path, 3)

    assert path.read_text(encoding="utf-8") == once


def test_write_issue_id_without_block_appends(issue_dir: Path) -> None:
    path = issue_dir / "plain.md"
    path.write_text("just text\n", encoding="utf-8")

    write_issue_id(path, 5)

    assert path.read_text(encoding="utf-8") == "just text\nid: 5\n"


def test_write_issue_id_missing_file_raises(issue_dir: Path) -> None:
    with pytest.raises(OSError):
        write_issue_id(issue_dir / "gone.md", 1)


def test_write_issue_id_keeps_crlf_line_endings(issue_dir: Path) -> None:
    path = issue_dir / "windows.md"
    path.write_bytes(b"---\r\ntitle: Win\r\n---\r\n\r\nBody\r\n")

    write_issue_id(path, 9)

    assert path.read_bytes() == b"---\r\ntitle: Win\r\nid: 9\r\n---\r\n\r\nBody\r\n"

    write_issue_id(path, 10)

    assert path.read_bytes() == b"---\r\ntitle: Win\r\nid: 10\r\n---\r\n\r\nBody\r\n"
