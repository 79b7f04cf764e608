"""
EventSquare Test Suite.

This package contains:
- unit/: Unit tests (access evaluation, policies, store, config, CLI)
- integration/: Integration tests (HTTP API over a temporary SQLite database)
"""
