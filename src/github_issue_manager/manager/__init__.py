"""Markdown-to-issue synchronization components.

- Settings loaded from the environment / .env
- Structured logging
- A small CLI surface
- Issue collection, dependency ordering and GitHub synchronization
"""
