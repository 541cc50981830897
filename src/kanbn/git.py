"""Git lookups used to sign comments."""

import asyncio
import logging
from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

logger = logging.getLogger(__name__)


def _get_repo(path: str | Path) -> Repo:
    return Repo(path, search_parent_directories=True)


def git_user_name_sync(path: str | Path = ".") -> str | None:
    """Return user.name from the git config of the repository containing path.

    None when path isn't inside a repository or no name is configured.
    """
    try:
        repo = _get_repo(path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        logger.debug("no git repository at %s", path)
        return None
    reader = repo.config_reader()
    name = reader.get_value("user", "name", default="")
    return str(name) or None


async def git_user_name(path: str | Path = ".") -> str | None:
    """Async wrapper for git_user_name_sync."""
    return await asyncio.to_thread(git_user_name_sync, path)
