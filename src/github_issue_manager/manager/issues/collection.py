"""Read issue files from a folder and write issue numbers back into them.

Each file is a markdown document with a YAML front-matter block:

    ---
    title: Implement User Registration API
    type: Task
    labels: backend, api
    project: Auth Team
    parent: User Authentication System Epic
    ---

    Free-form body.

Recognized keys are `title`, `body`, `labels`, `type`, `id`, `project` and `parent`.
Other keys are kept in the extracted record but ignored by the issue model.

The block is read as plain `key: value` lines rather than full YAML, so titles such as
`Auth: login flow` or `Fix crash #12` are taken verbatim. A value wrapped in quotes is
unquoted, and `- item` lines under an empty key are collected as a list.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import frontmatter  # type: ignore[import-untyped]
import yaml
from frontmatter.default_handlers import YAMLHandler  # type: ignore[import-untyped]

from github_issue_manager.manager.issues.models import Issue

logger = logging.getLogger(__name__)

FRONT_MATTER_DELIMITER = "---"
ID_KEY = "id"
LIST_ITEM_PREFIX = "- "


class FrontMatterError(ValueError):
    """Raised when a file cannot be turned into an issue record."""


class IssueDirectoryError(ValueError):
    """Raised when the issue folder itself cannot be listed."""


def _unquote(value: str) -> str:
    if len(value) < 2 or value[0] != value[-1] or value[0] not in "\"'":
        return value
    try:
        loaded = yaml.safe_load(value)
    except yaml.YAMLError:
        return value[1:-1]
    return loaded if isinstance(loaded, str) else value[1:-1]


class KeyValueHandler(YAMLHandler):
    """`---` delimited front matter parsed as one `key: value` pair per line."""

    def split(self, text: str) -> tuple[str, str]:
        # An explicit handler skips detection; a file not opening with `---` has no block.
        if not self.detect(text):
            raise ValueError("no front matter block")
        return super().split(text)

    def load(self, fm: str, **kwargs: object) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        list_key: str | None = None
        for raw in fm.splitlines():
            line = raw.strip()
            if not line:
                continue
            if list_key is not None and line.startswith(LIST_ITEM_PREFIX):
                metadata[list_key].append(_unquote(line[len(LIST_ITEM_PREFIX) :].strip()))
                continue

            key, sep, value = line.partition(":")
            list_key = None
            if not sep or not key.strip():
                continue
            key, value = key.strip(), value.strip()
            if value:
                metadata[key] = _unquote(value)
            else:
                metadata[key] = []
                list_key = key
        return metadata


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item).strip() for item in value if item is not None)
    return str(value).strip()


def extract_front_matter(path: Path) -> dict[str, str]:
    """Return the front-matter record of `path` with every value as a string.

    The markdown content after the block is returned under `body`; a `body:` key in the
    block is only used when the content is blank.

    Raises:
        FrontMatterError: if the file is unreadable or the record has no title.
    """

    try:
        post = frontmatter.load(path, handler=KeyValueHandler())
    except (OSError, UnicodeDecodeError) as e:
        raise FrontMatterError(f"failed to read {path}: {e}") from e

    record = {str(key): _as_text(value) for key, value in post.metadata.items()}
    content = post.content.strip()
    record["body"] = content or record.get("body", "")

    if not record.get("title"):
        raise FrontMatterError(f"no title in front matter of {path}")
    return record


def parse_labels(value: str) -> list[str]:
    """Split a comma-separated label string, dropping blanks."""

    return [label.strip() for label in value.split(",") if label.strip()]


def issue_from_record(record: dict[str, str], *, path: Path, file_name: str) -> Issue:
    return Issue(
        path=path,
        file_name=file_name,
        title=record.get("title", ""),
        body=record.get("body", ""),
        labels=parse_labels(record.get("labels", "")),
        type=record.get("type", ""),
        id=record.get(ID_KEY, ""),
        project=record.get("project", ""),
        parent=record.get("parent", ""),
    )


def _list_entries(directory: Path) -> list[Path]:
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        raise IssueDirectoryError(f"cannot list issue folder {directory}: {e}") from e
    # Stable ordering: filename sort.
    return sorted(entries, key=lambda p: p.name)


def read_issue_files(directory: Path, *, log: logging.Logger = logger) -> list[Issue]:
    """Build one Issue per file in `directory`.

    Files whose front matter cannot be extracted are logged and skipped.

    Raises:
        IssueDirectoryError: if the folder does not exist or cannot be listed.
    """

    issues: list[Issue] = []
    for entry in _list_entries(directory):
        if entry.is_dir():
            continue
        try:
            record = extract_front_matter(entry)
        except FrontMatterError as e:
            log.error(
                "Error parsing front matter", extra={"file": entry.name, "error": str(e)}
            )
            continue
        issues.append(issue_from_record(record, path=directory, file_name=entry.name))

    log.debug("Read issue files", extra={"folder": str(directory), "count": len(issues)})
    return issues


def list_markdown_files(directory: Path) -> list[Path]:
    """Return the `.md` files of `directory` in a stable order."""

    return [p for p in _list_entries(directory) if p.is_file() and p.suffix == ".md"]


def _front_matter_bounds(lines: list[str]) -> tuple[int, int] | None:
    delimiters = [i for i, line in enumerate(lines) if line.strip() == FRONT_MATTER_DELIMITER]
    if len(delimiters) < 2:
        return None
    return delimiters[0], delimiters[1]


def write_issue_id(path: Path, number: int) -> None:
    """Record the remote issue number in the front matter of `path`.

    An existing `id:` line in the block is replaced in place, otherwise the line is
    inserted just before the closing delimiter. Files without a complete block get the
    line appended. All other lines are written back unchanged.

    Raises:
        OSError: if the file cannot be read or written.
    """

    # newline="" keeps CRLF files byte-for-byte outside the edited line.
    with path.open(encoding="utf-8", newline="") as fh:
        text = fh.read()
    lines = text.split("\n")
    cr = "\r" if "\r\n" in text else ""
    id_line = f"{ID_KEY}: {number}"

    bounds = _front_matter_bounds(lines)
    if bounds is None:
        search = range(len(lines))
    else:
        search = range(bounds[0] + 1, bounds[1])

    for i in search:
        if lines[i].strip().startswith(f"{ID_KEY}:"):
            lines[i] = id_line + (cr if lines[i].endswith("\r") else "")
            break
    else:
        if bounds is not None:
            lines.insert(bounds[1], id_line + cr)
        elif lines and lines[-1] == "":
            lines.insert(len(lines) - 1, id_line + cr)
        else:
            if lines:
                lines[-1] += cr
            lines.append(id_line)

    with path.open("w", encoding="utf-8", newline="") as fh:
        fh.write("\n".join(lines))
