"""Pytest configuration."""

import os

# Ensure test environment
os.environ.setdefault("OIA_DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("OIA_DEBUG", "true")
os.environ.setdefault("OIA_BASE_URL", "https://oia.test")
