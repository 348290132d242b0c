"""GitHub API client wrapper.

Issues, issue types, labels, sub-issues and Projects (v2) are driven through the GraphQL
API with a plain `requests` session. PyGithub provides the repository handle (and with it
the repository node id that `createIssue` needs).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse, urlunparse

import requests
from github import Auth, Github, GithubException
from github.Repository import Repository

logger = logging.getLogger(__name__)

PROJECTS_PAGE_SIZE = 50
LABELS_PAGE_SIZE = 100
ISSUE_TYPES_PAGE_SIZE = 50
SEARCH_RESULTS = 10

ALREADY_IN_PROJECT = "content already exists in the project"
DUPLICATE_SUB_ISSUE = "duplicate sub-issues"

CREATE_ISSUE_MUTATION = """
mutation($input: CreateIssueInput!) {
  createIssue(input: $input) {
    issue { id number title }
  }
}
"""

UPDATE_ISSUE_MUTATION = """
mutation($input: UpdateIssueInput!) {
  updateIssue(input: $input) {
    issue { id number title }
  }
}
"""

ISSUE_NODE_QUERY = """
query($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    issue(number: $number) { id number }
  }
}
"""

SEARCH_ISSUES_QUERY = """
query($query: String!, $first: Int!) {
  search(query: $query, type: ISSUE, first: $first) {
    nodes {
      ... on Issue {
        id
        title
        number
        repository { owner { login } name }
      }
    }
  }
}
"""

LABELS_QUERY = """
query($owner: String!, $name: String!, $first: Int!) {
  repository(owner: $owner, name: $name) {
    labels(first: $first) { nodes { id name } }
  }
}
"""

ISSUE_TYPES_QUERY = """
query($owner: String!, $name: String!, $first: Int!) {
  repository(owner: $owner, name: $name) {
    issueTypes(first: $first) { nodes { id name } }
  }
}
"""

ORG_PROJECTS_QUERY = """
query($login: String!, $first: Int!, $after: String) {
  organization(login: $login) {
    projectsV2(first: $first, after: $after, orderBy: {field: UPDATED_AT, direction: DESC}) {
      pageInfo { hasNextPage endCursor }
      nodes { id title }
    }
  }
}
"""

ADD_PROJECT_ITEM_MUTATION = """
mutation($projectId: ID!, $contentId: ID!) {
  addProjectV2ItemById(input: {projectId: $projectId, contentId: $contentId}) {
    item { id }
  }
}
"""

ADD_SUB_ISSUE_MUTATION = """
mutation($input: AddSubIssueInput!) {
  addSubIssue(input: $input) {
    issue { id title }
  }
}
"""


class GitHubApiError(RuntimeError):
    """A GitHub call failed (transport, HTTP status, GraphQL errors or empty result)."""

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def mentions(self, text: str) -> bool:
        needle = text.lower()
        return needle in str(self).lower() or any(needle in e.lower() for e in self.errors)


@dataclass(frozen=True, slots=True)
class IssueResult:
    """Issue number and GraphQL node id returned by create/update."""

    number: int
    node_id: str


def _same_title(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


def _search_phrase(title: str) -> str:
    # Search syntax has no escape for a quote inside a phrase.
    return " ".join(title.replace('"', " ").split())


class GitHubClient:
    """Small wrapper around the GitHub GraphQL API and PyGithub."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        base_url: str = "https://api.github.com",
        repo: Repository | None = None,
        github_api: Github | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        repository = repository.strip().strip("/")
        if not repository:
            raise ValueError("GitHub repository is required")

        self._repository_name = repository
        self._owner, self._name = self._split_repository(repository)
        self._rest_base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "github-issue-manager",
            }
        )

        if repo is not None:
            self._repo = repo
            self._github = None
            logger.debug("Using injected Repository instance")
            return

        auth = Auth.Token(token)
        self._github = github_api or Github(auth=auth, base_url=self._rest_base_url)

        try:
            self._repo = self._github.get_repo(repository)
        except GithubException as e:
            raise GitHubApiError(f"cannot access repository {repository}: {e}") from e
        logger.info(
            "Authenticated with GitHub and connected to repository", extra={"repo": repository}
        )

    @staticmethod
    def _split_repository(repository: str) -> tuple[str, str]:
        owner, sep, name = repository.partition("/")
        if not sep or not owner.strip() or not name.strip() or "/" in name:
            raise ValueError("repository must be in the form 'owner/repo'")
        return owner, name

    @property
    def repository(self) -> str:
        """Return the configured repository name ("owner/repo")."""

        return self._repository_name

    @property
    def owner(self) -> str:
        return self._owner

    def _graphql_url(self) -> str:
        """Derive the GitHub GraphQL endpoint from the configured REST base URL.

        GitHub.com:
            REST: https://api.github.com
            GQL:  https://api.github.com/graphql

        GitHub Enterprise typically exposes REST as:
            https://github.example.com/api/v3
        and GraphQL as:
            https://github.example.com/api/graphql
        """

        parsed = urlparse(self._rest_base_url)
        path = parsed.path.rstrip("/")

        if path.endswith("/api/v3"):
            path = path[: -len("/api/v3")] + "/api/graphql"
        elif path.endswith("/api"):
            path = path[: -len("/api")] + "/api/graphql"
        elif path == "":
            path = "/graphql"
        else:
            path = path + "/graphql"

        return urlunparse(parsed._replace(path=path))

    def _graphql(self, *, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL request and return its `data` object."""

        try:
            resp = self._session.post(
                self._graphql_url(), json={"query": query, "variables": variables}, timeout=30
            )
            resp.raise_for_status()
            payload: dict[str, Any] = resp.json()
        except requests.RequestException as e:
            raise GitHubApiError(f"GitHub GraphQL request failed: {e}") from e
        except ValueError as e:
            raise GitHubApiError("GitHub GraphQL response is not valid JSON") from e

        errors = payload.get("errors")
        if errors:
            # Avoid dumping the entire response; keep logs small and actionable.
            messages: list[str] = []
            if isinstance(errors, list):
                for item in errors:
                    if isinstance(item, dict):
                        msg = item.get("message")
                        if isinstance(msg, str):
                            messages.append(msg)
            message = "; ".join(messages) if messages else "Unknown GraphQL error"
            raise GitHubApiError(f"GitHub GraphQL error: {message}", errors=messages)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise GitHubApiError("GitHub GraphQL response has no data")
        return data

    @staticmethod
    def _dig(data: Any, *keys: str) -> Any:
        for key in keys:
            if not isinstance(data, dict):
                return None
            data = data.get(key)
        return data

    @classmethod
    def _nodes(cls, data: Any, *keys: str) -> list[dict[str, Any]]:
        nodes = cls._dig(data, *keys)
        if not isinstance(nodes, list):
            return []
        return [n for n in nodes if isinstance(n, dict)]

    @staticmethod
    def _parse_issue_result(issue: Any, *, operation: str) -> IssueResult:
        if not isinstance(issue, dict):
            raise GitHubApiError(f"{operation} returned no issue")
        node_id = issue.get("id")
        number = issue.get("number")
        if not isinstance(node_id, str) or not node_id:
            raise GitHubApiError(f"{operation} returned empty issue id")
        if not isinstance(number, int) or number <= 0:
            raise GitHubApiError(f"{operation} returned invalid issue number")
        return IssueResult(number=number, node_id=node_id)

    def get_repository_node_id(self) -> str:
        try:
            node_id = self._repo.node_id
        except GithubException as e:
            raise GitHubApiError(f"cannot read repository id for {self.repository}: {e}") from e
        if not isinstance(node_id, str) or not node_id:
            raise GitHubApiError(f"repository id empty for {self.repository}")
        return node_id

    def get_repository_info(self) -> dict[str, Any]:
        """Summary of the repository for the `info` command."""

        repo = self._repo
        try:
            return {
                "full_name": repo.full_name,
                "description": repo.description,
                "html_url": repo.html_url,
                "default_branch": repo.default_branch,
                "private": repo.private,
                "open_issues_count": repo.open_issues_count,
                "node_id": repo.node_id,
            }
        except GithubException as e:
            raise GitHubApiError(f"cannot read repository {self.repository}: {e}") from e

    def create_issue(
        self,
        *,
        title: str,
        body: str,
        label_ids: list[str] | None = None,
        parent_id: str | None = None,
        issue_type_id: str | None = None,
    ) -> IssueResult:
        if not title.strip():
            raise ValueError("Issue title is required")

        issue_input: dict[str, Any] = {
            "repositoryId": self.get_repository_node_id(),
            "title": title,
            "body": body,
        }
        if label_ids:
            issue_input["labelIds"] = label_ids
        if parent_id:
            issue_input["parentIssueId"] = parent_id
        if issue_type_id:
            issue_input["issueTypeId"] = issue_type_id

        data = self._graphql(query=CREATE_ISSUE_MUTATION, variables={"input": issue_input})
        result = self._parse_issue_result(
            self._dig(data, "createIssue", "issue"), operation="createIssue"
        )
        logger.info(
            "Issue created", extra={"issue_number": result.number, "title": title}
        )
        return result

    def update_issue(
        self,
        *,
        node_id: str,
        title: str,
        body: str,
        label_ids: list[str] | None = None,
        issue_type_id: str | None = None,
    ) -> IssueResult:
        issue_input: dict[str, Any] = {"id": node_id, "title": title, "body": body}
        if label_ids:
            issue_input["labelIds"] = label_ids
        if issue_type_id:
            issue_input["issueTypeId"] = issue_type_id

        data = self._graphql(query=UPDATE_ISSUE_MUTATION, variables={"input": issue_input})
        result = self._parse_issue_result(
            self._dig(data, "updateIssue", "issue"), operation="updateIssue"
        )
        logger.info(
            "Issue updated", extra={"issue_number": result.number, "title": title}
        )
        return result

    def resolve_issue_node_id(self, *, number: int) -> str:
        if number <= 0:
            raise ValueError(f"invalid issue number: {number}")

        data = self._graphql(
            query=ISSUE_NODE_QUERY,
            variables={"owner": self._owner, "name": self._name, "number": number},
        )
        node_id = self._dig(data, "repository", "issue", "id")
        if not isinstance(node_id, str) or not node_id:
            raise GitHubApiError(f"issue #{number} not found in {self.repository}")
        return node_id

    def resolve_parent_issue_id(self, *, title: str) -> str:
        """Find the node id of the issue in this repository titled `title`.

        Search results are fuzzy; only an exact (case-insensitive) title match in this
        repository counts. The first match wins when titles repeat.
        """

        if not title.strip():
            raise ValueError("parent title is empty")

        search = f'"{_search_phrase(title)}" repo:{self.repository} in:title'
        data = self._graphql(
            query=SEARCH_ISSUES_QUERY, variables={"query": search, "first": SEARCH_RESULTS}
        )
        for node in self._nodes(data, "search", "nodes"):
            login = self._dig(node, "repository", "owner", "login") or ""
            name = self._dig(node, "repository", "name") or ""
            if (
                _same_title(str(node.get("title", "")), title)
                and _same_title(str(login), self._owner)
                and _same_title(str(name), self._name)
                and isinstance(node.get("id"), str)
            ):
                return node["id"]
        raise GitHubApiError(f"parent issue with title {title!r} not found in {self.repository}")

    def resolve_label_ids(self, *, names: list[str]) -> list[str]:
        """Map label names to node ids. Unknown labels are logged and skipped."""

        if not names:
            return []

        data = self._graphql(
            query=LABELS_QUERY,
            variables={"owner": self._owner, "name": self._name, "first": LABELS_PAGE_SIZE},
        )
        labels = self._nodes(data, "repository", "labels", "nodes")

        label_ids: list[str] = []
        for name in names:
            match = next((lb for lb in labels if _same_title(str(lb.get("name", "")), name)), None)
            if match is None or not isinstance(match.get("id"), str):
                logger.warning(
                    "Label not found in repository",
                    extra={"label": name, "repo": self.repository},
                )
                continue
            label_ids.append(match["id"])
        return label_ids

    def resolve_issue_type_id(self, *, name: str) -> str:
        if not name.strip():
            raise ValueError("issue type name is empty")

        data = self._graphql(
            query=ISSUE_TYPES_QUERY,
            variables={"owner": self._owner, "name": self._name, "first": ISSUE_TYPES_PAGE_SIZE},
        )
        for node in self._nodes(data, "repository", "issueTypes", "nodes"):
            if _same_title(str(node.get("name", "")), name) and isinstance(node.get("id"), str):
                return node["id"]
        raise GitHubApiError(f"issue type {name!r} not found/enabled in {self.repository}")

    def resolve_project_id(self, *, name: str, owner: str | None = None) -> str:
        """Find an organization project (v2) by title, following pagination."""

        login = (owner or self._owner).strip()
        after: str | None = None
        while True:
            data = self._graphql(
                query=ORG_PROJECTS_QUERY,
                variables={"login": login, "first": PROJECTS_PAGE_SIZE, "after": after},
            )
            for node in self._nodes(data, "organization", "projectsV2", "nodes"):
                if _same_title(str(node.get("title", "")), name) and isinstance(
                    node.get("id"), str
                ):
                    return node["id"]

            page_info = self._dig(data, "organization", "projectsV2", "pageInfo") or {}
            cursor = page_info.get("endCursor") if isinstance(page_info, dict) else None
            if not (isinstance(page_info, dict) and page_info.get("hasNextPage")) or not cursor:
                break
            after = cursor

        raise GitHubApiError(f"project with name {name!r} not found for {login}")

    def add_issue_to_project(self, *, issue_node_id: str, project_node_id: str) -> None:
        """Add an issue to a project. An issue already in the project counts as success."""

        try:
            data = self._graphql(
                query=ADD_PROJECT_ITEM_MUTATION,
                variables={"projectId": project_node_id, "contentId": issue_node_id},
            )
        except GitHubApiError as e:
            if e.mentions(ALREADY_IN_PROJECT):
                logger.debug("Issue already in project", extra={"project_id": project_node_id})
                return
            raise

        item_id = self._dig(data, "addProjectV2ItemById", "item", "id")
        if not isinstance(item_id, str) or not item_id:
            raise GitHubApiError("addProjectV2ItemById returned empty item id")

    def set_parent_issue(self, *, child_node_id: str, parent_title: str) -> None:
        """Attach an existing issue to the parent titled `parent_title` as a sub-issue."""

        parent_node_id = self.resolve_parent_issue_id(title=parent_title)
        try:
            self._graphql(
                query=ADD_SUB_ISSUE_MUTATION,
                variables={
                    "input": {
                        "issueId": parent_node_id,
                        "subIssueId": child_node_id,
                        "replaceParent": True,
                    }
                },
            )
        except GitHubApiError as e:
            if e.mentions(DUPLICATE_SUB_ISSUE):
                logger.info("Parent relationship already exists", extra={"parent": parent_title})
                return
            raise

    def close(self) -> None:
        self._session.close()
        if self._github is not None:
            self._github.close()
