"""Dependency ordering for issue synchronization.

Issues are created one at a time and a child links to its parent by searching GitHub for
the parent's title, so every parent has to be synchronized before its children.

Ordering runs in two phases:

1. Regular issues (anything whose type is not "epic").
2. Epics, appended after every regular issue.

Within a phase, issues without a parent come first in input order. The rest are
resolved in waves: each pass over the unresolved issues appends every issue whose parent
title is already placed, including parents placed earlier in the same pass. When a pass
places nothing, the remaining issues reference a missing parent or form a cycle; they are
logged and appended as-is so that no issue is ever dropped.

Epics may name a regular issue or an earlier epic as their parent. A regular issue that
names an epic still comes first; the epic phase is a policy, not a dependency.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

from github_issue_manager.manager.issues.models import Issue, IssuePhase, normalize_title

logger = logging.getLogger(__name__)

PHASES: tuple[IssuePhase, ...] = (IssuePhase.REGULAR, IssuePhase.EPIC)


class _Placement:
    """Ordered output plus a normalized-title index of everything placed so far."""

    def __init__(self) -> None:
        self.issues: list[Issue] = []
        self._index: dict[str, int] = {}

    def add(self, issue: Issue) -> None:
        # First placement wins when two issues share a title.
        self._index.setdefault(issue.title_key, len(self.issues))
        self.issues.append(issue)

    def has_title(self, key: str) -> bool:
        return key in self._index


def _place_phase(
    phase: IssuePhase,
    issues: list[Issue],
    placement: _Placement,
    log: logging.Logger,
) -> None:
    remaining: list[Issue] = []
    for issue in issues:
        if issue.has_parent:
            remaining.append(issue)
        else:
            placement.add(issue)

    while remaining:
        still_remaining: list[Issue] = []
        for issue in remaining:
            if placement.has_title(issue.parent_key):
                placement.add(issue)
            else:
                still_remaining.append(issue)

        if len(still_remaining) == len(remaining):
            log.warning(
                "Found issues with missing parents, adding them anyway",
                extra={"phase": phase.value, "count": len(still_remaining)},
            )
            for issue in still_remaining:
                log.warning(
                    "Issue references missing parent",
                    extra={"issue": issue.title, "parent": issue.parent, "phase": phase.value},
                )
                placement.add(issue)
            return

        remaining = still_remaining


def sort_issues_by_dependency(
    issues: Iterable[Issue], *, log: logging.Logger = logger
) -> list[Issue]:
    """Return `issues` ordered parents-first, with epics after all regular issues.

    The result is always a permutation of the input.
    """

    by_phase: dict[IssuePhase, list[Issue]] = {phase: [] for phase in PHASES}
    for issue in issues:
        by_phase[issue.phase].append(issue)

    placement = _Placement()
    for phase in PHASES:
        _place_phase(phase, by_phase[phase], placement, log)
    return placement.issues


def find_duplicate_titles(issues: Iterable[Issue]) -> list[str]:
    """Titles shared by more than one issue (after normalization), in first-seen order."""

    counts = Counter(normalize_title(issue.title) for issue in issues)
    return [key for key, count in counts.items() if count > 1]
