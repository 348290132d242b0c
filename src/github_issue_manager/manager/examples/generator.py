"""Generate example issue files.

The full example set is a small linked hierarchy (a parent epic with a child epic, plus
tasks, bugs and features pointing at them) that exercises the parent-first and
epics-last ordering when fed to `gim create`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

ISSUE_TYPES: dict[str, str] = {
    "epic": "epic.md.j2",
    "task": "task.md.j2",
    "bug": "bug.md.j2",
    "feature": "feature.md.j2",
}

OVERRIDABLE_FIELDS = ("title", "project", "status", "labels", "parent", "description")


@dataclass(frozen=True, slots=True)
class ExampleIssue:
    """Values rendered into an example issue file."""

    title: str
    type: str
    project: str = ""
    status: str = ""
    labels: str = ""
    parent: str = ""
    description: str = ""
    priority: str = ""
    severity: str = ""
    implementation_details: list[str] = field(default_factory=list)
    technical_requirements: list[str] = field(default_factory=list)
    design_requirements: list[str] = field(default_factory=list)
    testing_strategy: list[str] = field(default_factory=list)
    repro_steps: list[str] = field(default_factory=list)
    expected_result: str = ""
    actual_result: str = ""
    environment: list[str] = field(default_factory=list)
    workaround: str = ""


AUTH_EPIC = "User Authentication System Epic"
SEARCH_FEATURE = "Advanced Search and Filtering System"

DEFAULT_EXAMPLES: dict[str, ExampleIssue] = {
    "epic": ExampleIssue(
        title="Example Epic Title",
        type="Epic",
        project="Example Project",
        status="planning",
        labels="epic, example",
        description=(
            "This is an example epic description with comprehensive details about the "
            "feature or initiative."
        ),
        implementation_details=[
            "Define architecture and technical approach",
            "Break down into smaller tasks",
            "Establish acceptance criteria",
        ],
        testing_strategy=["Unit testing for all components", "User acceptance testing plan"],
    ),
    "task": ExampleIssue(
        title="Example Task Title",
        type="Task",
        project="Example Project",
        status="todo",
        labels="task, example",
        description="This is an example task description with specific implementation details.",
        implementation_details=["Implement core functionality", "Add error handling"],
        technical_requirements=["Response time < 500ms", "Follow coding standards"],
        testing_strategy=["Unit tests for business logic", "Integration tests for APIs"],
    ),
    "bug": ExampleIssue(
        title="Example Bug Title",
        type="Bug",
        project="Example Project",
        status="open",
        labels="bug, example",
        description="This is an example bug description with reproduction steps.",
        priority="High",
        severity="Medium",
        repro_steps=[
            "Navigate to the affected page",
            "Perform the specific action",
            "Observe the unexpected behavior",
        ],
        expected_result="The feature should work as designed",
        actual_result="The feature exhibits unexpected behavior",
        environment=["Browser: Chrome, Firefox", "OS: Windows, macOS"],
        workaround="Temporary workaround available",
    ),
    "feature": ExampleIssue(
        title="Example Feature Title",
        type="Feature",
        project="Example Project",
        status="backlog",
        labels="feature, example, enhancement",
        description="This is an example feature description with user value.",
        implementation_details=["Design user interface components", "Add API endpoints"],
        design_requirements=["Consistent with design system", "Clear visual hierarchy"],
        testing_strategy=["Usability testing with target users"],
    ),
}

EXAMPLE_SET: tuple[tuple[str, ExampleIssue], ...] = (
    (
        "epic-parent-example.md",
        ExampleIssue(
            title=AUTH_EPIC,
            type="Epic",
            project="Auth Team",
            status="in-progress",
            labels="epic, high-priority, authentication",
            description=(
                "Implement a comprehensive user authentication system including login, "
                "registration, password reset, multi-factor authentication, and session "
                "management."
            ),
            implementation_details=[
                "Use JWT for session management",
                "Implement OAuth2 for third-party authentication",
                "Rate limiting for authentication endpoints",
            ],
        ),
    ),
    (
        "epic-child-example.md",
        ExampleIssue(
            title="Multi-Factor Authentication Sub-Epic",
            type="Epic",
            project="Auth Team",
            status="backlog",
            labels="epic, security, mfa",
            parent=AUTH_EPIC,
            description=(
                "Add multi-factor authentication as part of the broader authentication "
                "system, including SMS, email, and authenticator app support."
            ),
            implementation_details=["TOTP library integration", "Secure backup code generation"],
        ),
    ),
    (
        "task-with-parent-example.md",
        ExampleIssue(
            title="Implement User Registration API",
            type="Task",
            project="Auth Team",
            status="todo",
            labels="backend, api, registration",
            parent=AUTH_EPIC,
            description=(
                "Create API endpoints for user registration including email validation, "
                "password strength requirements, and duplicate email checking."
            ),
            technical_requirements=["Response time < 500ms", "Secure password storage"],
            testing_strategy=["Unit tests for validation rules", "API contract tests"],
        ),
    ),
    (
        "task-standalone-example.md",
        ExampleIssue(
            title="Setup Monitoring Dashboard",
            type="Task",
            project="DevOps Team",
            status="todo",
            labels="monitoring, infrastructure, grafana",
            description="Set up dashboards for service health, latency and error rates.",
            implementation_details=["Provision Grafana", "Define alert thresholds"],
        ),
    ),
    (
        "bug-with-parent-example.md",
        ExampleIssue(
            title="Fix Password Reset Email Not Sending",
            type="Bug",
            project="Auth Team",
            status="open",
            labels="bug, critical, email, password-reset",
            parent=AUTH_EPIC,
            priority="Critical",
            severity="High",
            description="Users requesting a password reset never receive the email.",
            repro_steps=[
                "Open the login page and choose 'Forgot password'",
                "Submit a registered email address",
                "Wait for the reset email",
            ],
            expected_result="A reset email arrives within a minute",
            actual_result="No email is delivered",
            environment=["Production", "All browsers"],
        ),
    ),
    (
        "bug-standalone-example.md",
        ExampleIssue(
            title="Memory Leak in File Upload Component",
            type="Bug",
            project="Frontend Team",
            status="open",
            labels="bug, performance, memory-leak, file-upload",
            priority="Medium",
            severity="Medium",
            description="Memory usage grows with every uploaded file and is never released.",
            repro_steps=["Upload 50 files in a row", "Watch the tab's memory usage"],
            expected_result="Memory is released after each upload",
            actual_result="Memory keeps growing until the tab crashes",
            workaround="Reload the page after large batches",
        ),
    ),
    (
        "feature-parent-example.md",
        ExampleIssue(
            title=SEARCH_FEATURE,
            type="Feature",
            project="Product Team",
            status="backlog",
            labels="feature, search, user-experience, enhancement",
            description="Let users search and filter content with facets and saved queries.",
            design_requirements=["Consistent with design system", "Keyboard accessible"],
        ),
    ),
    (
        "feature-child-example.md",
        ExampleIssue(
            title="Search Autocomplete and Suggestions",
            type="Feature",
            project="Product Team",
            status="backlog",
            labels="feature, search, autocomplete, ui",
            parent=SEARCH_FEATURE,
            description="Suggest queries and results while the user types.",
            technical_requirements=["Suggestions within 100ms", "Debounced requests"],
        ),
    ),
    (
        "feature-standalone-example.md",
        ExampleIssue(
            title="Dark Mode Theme Support",
            type="Feature",
            project="Frontend Team",
            status="backlog",
            labels="feature, ui, theme, accessibility",
            description="Offer a dark theme that follows the operating system preference.",
            design_requirements=["WCAG AA contrast", "Persist the user's choice"],
        ),
    ),
)


def _yaml_str(value: Any) -> str:
    # A JSON string literal is a valid double-quoted YAML scalar.
    return json.dumps(str(value), ensure_ascii=False)


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["yaml_str"] = _yaml_str
    return env


def render_example(issue: ExampleIssue) -> str:
    key = issue.type.strip().lower()
    if key not in ISSUE_TYPES:
        raise ValueError(_unknown_type_message(issue.type))
    return _environment().get_template(ISSUE_TYPES[key]).render(issue=issue)


def _unknown_type_message(issue_type: str) -> str:
    return f"Unknown issue type: {issue_type}. Available types: {', '.join(ISSUE_TYPES)}"


def _write(output_dir: Path, file_name: str, issue: ExampleIssue) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / file_name
    path.write_text(render_example(issue), encoding="utf-8")
    logger.debug("Generated example file", extra={"path": str(path), "title": issue.title})
    return path


def generate_all_examples(output_dir: Path) -> list[Path]:
    """Write the linked example set into `output_dir`."""

    return [_write(output_dir, file_name, issue) for file_name, issue in EXAMPLE_SET]


def generate_example(
    issue_type: str, output_dir: Path, overrides: dict[str, str] | None = None
) -> Path:
    """Write one example of `issue_type`, with non-empty `overrides` applied.

    Raises:
        ValueError: for an unknown issue type or override field.
    """

    key = issue_type.strip().lower()
    if key not in DEFAULT_EXAMPLES:
        raise ValueError(_unknown_type_message(issue_type))

    changes = {name: value for name, value in (overrides or {}).items() if value}
    unknown = set(changes) - set(OVERRIDABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot override fields: {', '.join(sorted(unknown))}")

    issue = replace(DEFAULT_EXAMPLES[key], **changes)
    return _write(output_dir, f"{key}-example.md", issue)
