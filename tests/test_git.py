"""Tests for git module."""

import pytest
from git import Repo

from kanbn.git import git_user_name, git_user_name_sync


@pytest.fixture
def temp_repo(tmp_path):
    """Create a temporary git repository with a configured user name."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    repo = Repo.init(repo_path)
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
    return repo_path


def test_user_name_from_repo(temp_repo):
    assert git_user_name_sync(temp_repo) == "Test User"


def test_user_name_from_subdirectory(temp_repo):
    sub = temp_repo / "docs" / "board"
    sub.mkdir(parents=True)
    assert git_user_name_sync(sub) == "Test User"


def test_user_name_outside_repo(tmp_path):
    assert git_user_name_sync(tmp_path / "missing") is None


@pytest.mark.asyncio
async def test_user_name_async(temp_repo):
    assert await git_user_name(temp_repo) == "Test User"
