"""Create or update GitHub issues from markdown-backed issues.

Issues are processed strictly one at a time in dependency order (see
`issues.ordering`): a child looks up its parent on GitHub by title, so the parent must
already exist remotely.

For each issue:
- no `id`: create it (typed when `type` is set), then write `id: <number>` back into the
  source file
- with `id`: update the existing issue and re-attach its parent
- with `project`: add the issue to that GitHub Project

Remote and file failures are recorded against the issue that hit them and the run moves
on to the next issue; `sync()` never raises for a single bad issue.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from github_issue_manager.manager.github.client import GitHubApiError, GitHubClient, IssueResult
from github_issue_manager.manager.issues.collection import write_issue_id
from github_issue_manager.manager.issues.models import Issue
from github_issue_manager.manager.issues.ordering import sort_issues_by_dependency

logger = logging.getLogger(__name__)

CREATE = "create"
UPDATE = "update"


@dataclass(slots=True)
class IssueOutcome:
    """What happened to one issue during a run."""

    title: str
    action: str
    number: int | None = None
    error: str | None = None
    id_written: bool | None = None
    project_linked: bool | None = None
    project_error: str | None = None
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.number is not None


@dataclass(slots=True)
class SyncReport:
    """Outcome of a synchronization run."""

    outcomes: list[IssueOutcome] = field(default_factory=list)
    # title -> remote issue number for every create/update that succeeded
    synced: dict[str, int] = field(default_factory=dict)

    @property
    def created(self) -> int:
        return sum(1 for o in self.outcomes if o.action == CREATE and o.succeeded)

    @property
    def updated(self) -> int:
        return sum(1 for o in self.outcomes if o.action == UPDATE and o.succeeded)

    @property
    def failed(self) -> list[IssueOutcome]:
        return [o for o in self.outcomes if o.error is not None]

    @property
    def incomplete(self) -> list[IssueOutcome]:
        """Issues synced remotely whose id write-back or project linkage failed."""

        return [
            o
            for o in self.outcomes
            if o.error is None and (o.id_written is False or o.project_linked is False)
        ]

    @property
    def planned(self) -> list[IssueOutcome]:
        return [o for o in self.outcomes if o.dry_run]


class IssueSynchronizer:
    """Drive sorted issues through create-or-update, id write-back and project linkage."""

    def __init__(
        self,
        client: GitHubClient | None,
        *,
        dry_run: bool = False,
        log: logging.Logger = logger,
    ) -> None:
        if client is None and not dry_run:
            raise ValueError("a GitHub client is required unless running in dry-run mode")
        self._client = client
        self._dry_run = dry_run
        self._log = log
        self._project_ids: dict[str, str] = {}

    @property
    def client(self) -> GitHubClient:
        if self._client is None:
            raise RuntimeError("no GitHub client configured (dry-run mode)")
        return self._client

    def sync(self, issues: Iterable[Issue]) -> SyncReport:
        report = SyncReport()
        for issue in sort_issues_by_dependency(issues, log=self._log):
            outcome = self._sync_one(issue)
            report.outcomes.append(outcome)
            if outcome.succeeded and outcome.number is not None:
                report.synced[issue.title] = outcome.number

        self._log.info(
            "Synchronization finished",
            extra={
                "synced": len(report.synced),
                "created": report.created,
                "updated": report.updated,
                "failed": len(report.failed),
            },
        )
        return report

    def _sync_one(self, issue: Issue) -> IssueOutcome:
        action = UPDATE if issue.exists else CREATE
        outcome = IssueOutcome(title=issue.title, action=action)

        if self._dry_run:
            outcome.dry_run = True
            if issue.exists:
                outcome.number = _parse_number(issue.id)
            self._log.info(
                "Dry run: would %s issue",
                action,
                extra={"issue": issue.title, "id": issue.id, "parent": issue.parent},
            )
            return outcome

        try:
            result = self._update(issue) if issue.exists else self._create(issue)
        except (GitHubApiError, ValueError) as e:
            outcome.error = str(e)
            self._log.error(
                f"Failed to {action} issue", extra={"issue": issue.title, "error": str(e)}
            )
            return outcome

        outcome.number = result.number

        if action == CREATE:
            issue.id = str(result.number)
            try:
                write_issue_id(issue.source_path, result.number)
            except OSError as e:
                outcome.id_written = False
                self._log.error(
                    "Failed to update markdown file",
                    extra={"file": str(issue.source_path), "error": str(e)},
                )
                return outcome
            outcome.id_written = True

        if issue.project.strip():
            self._link_project(issue, result, outcome)
        return outcome

    def _create(self, issue: Issue) -> IssueResult:
        issue_type_id = None
        if issue.has_type:
            issue_type_id = self.client.resolve_issue_type_id(name=issue.type.strip())

        parent_id = None
        if issue.has_parent:
            try:
                parent_id = self.client.resolve_parent_issue_id(title=issue.parent)
            except GitHubApiError as e:
                self._log.warning(
                    "Could not resolve parent issue",
                    extra={"issue": issue.title, "parent": issue.parent, "error": str(e)},
                )
            else:
                self._log.info(
                    "Setting parent relationship",
                    extra={"child": issue.title, "parent": issue.parent},
                )

        return self.client.create_issue(
            title=issue.title,
            body=issue.body,
            label_ids=self._label_ids(issue),
            parent_id=parent_id,
            issue_type_id=issue_type_id,
        )

    def _update(self, issue: Issue) -> IssueResult:
        number = _parse_number(issue.id)
        if number is None:
            raise ValueError(f"issue id {issue.id!r} is not a valid issue number")

        node_id = self.client.resolve_issue_node_id(number=number)

        issue_type_id = None
        if issue.has_type:
            issue_type_id = self.client.resolve_issue_type_id(name=issue.type.strip())

        if issue.has_parent:
            # updateIssue has no parent field; the relationship is a sub-issue link.
            try:
                self.client.set_parent_issue(child_node_id=node_id, parent_title=issue.parent)
            except GitHubApiError as e:
                self._log.warning(
                    "Failed to update parent relationship",
                    extra={"issue": issue.title, "parent": issue.parent, "error": str(e)},
                )

        return self.client.update_issue(
            node_id=node_id,
            title=issue.title,
            body=issue.body,
            label_ids=self._label_ids(issue),
            issue_type_id=issue_type_id,
        )

    def _label_ids(self, issue: Issue) -> list[str] | None:
        if not issue.labels:
            return None
        try:
            return self.client.resolve_label_ids(names=issue.labels)
        except GitHubApiError as e:
            self._log.error(
                "Failed to resolve label IDs", extra={"issue": issue.title, "error": str(e)}
            )
            return None

    def _project_id(self, name: str) -> str:
        key = name.strip().casefold()
        if key not in self._project_ids:
            self._log.debug("Resolving project name to GraphQL node ID", extra={"project": name})
            self._project_ids[key] = self.client.resolve_project_id(name=name.strip())
        return self._project_ids[key]

    def _link_project(self, issue: Issue, result: IssueResult, outcome: IssueOutcome) -> None:
        try:
            issue_node_id = result.node_id or self.client.resolve_issue_node_id(
                number=result.number
            )
            project_node_id = self._project_id(issue.project)
            self.client.add_issue_to_project(
                issue_node_id=issue_node_id, project_node_id=project_node_id
            )
        except (GitHubApiError, ValueError) as e:
            outcome.project_linked = False
            outcome.project_error = str(e)
            self._log.error(
                "Failed to add issue to project",
                extra={"issue": issue.title, "project": issue.project, "error": str(e)},
            )
            return

        outcome.project_linked = True
        self._log.info(
            "Added issue to project",
            extra={"issue": issue.title, "project": issue.project, "issue_number": result.number},
        )


def _parse_number(value: str) -> int | None:
    try:
        number = int(value.strip())
    except ValueError:
        return None
    return number if number > 0 else None
