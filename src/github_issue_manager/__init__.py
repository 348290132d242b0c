"""GitHub Issue Manager.

Turns a folder of markdown files with front matter into GitHub issues:
- configuration loaded from the environment / `.env`
- structured logging
- dependency-ordered issue creation and update with id write-back
- GitHub Projects (v2) linkage
"""

__version__ = "0.1.0"

from github_issue_manager.manager.config import ManagerSettings

__all__ = ["__version__", "ManagerSettings"]
