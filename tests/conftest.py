"""
Global pytest configuration and fixtures.

Provides a seeded in-memory Git Data API (see fixtures/git_data_api.py), a
commit author and a clean environment for configuration tests.
"""

from datetime import datetime, timezone

import pytest

from gitdata_commit.github.models import Author, TreeItem
from tests.fixtures.git_data_api import LINK_MODE, SUBMODULE_MODE, FakeGitDataAPI

SUBMODULE_SHA = "5" * 40


@pytest.fixture
def fake_api() -> FakeGitDataAPI:
    """Repository with ``main`` holding a handful of files."""
    fake = FakeGitDataAPI()
    fake.seed_branch(
        "main",
        {
            "a.txt": "hello",
            "b.txt": "world",
            "docs/guide.md": "# Guide\nversion 1.0\n",
            "docs/api.md": "# API\nversion 1.0\n",
            "link": (LINK_MODE, "a.txt"),
            "vendor/lib": (SUBMODULE_MODE, SUBMODULE_SHA),
        },
    )
    return fake


@pytest.fixture
def author() -> Author:
    return Author(
        name="Release Bot",
        email="release@example.com",
        date=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_items():
    """A tree listing without any server behind it."""
    return [
        TreeItem(path="a.txt", mode="100644", type="blob", sha="1" * 40),
        TreeItem(path="b.txt", mode="100644", type="blob", sha="2" * 40),
        TreeItem(path="docs", mode="040000", type="tree", sha="3" * 40),
        TreeItem(path="docs/guide.md", mode="100644", type="blob", sha="4" * 40),
        TreeItem(path="vendor/lib", mode="160000", type="commit", sha=SUBMODULE_SHA),
    ]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the configuration reads, including any a .env file sets later."""
    for name in (
        "GITHUB_USERNAME",
        "GITHUB_TOKEN",
        "GITHUB_REPO_URL",
        "GITDATA_MAX_CONCURRENCY",
        "GITDATA_TIMEOUT",
    ):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


def pytest_configure(config):
    """Register markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Tests against the in-memory Git Data API")
