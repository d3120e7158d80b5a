"""
Work item store backends.

    filesystem  durable file tree with a snapshot archive (default)
    github      GitHub Issues over the REST API
    memory      process-local, for tests and dry runs
"""

from __future__ import annotations

from ..config import StoreConfig
from ..errors import ConfigError
from .base import NO_CHANGES_TEXT, NO_SNAPSHOT_TEXT, WorkItemStore
from .filesystem import FileSystemIssueStore
from .github import GitHubAPIError, GitHubIssueStore, RateLimitError
from .memory import InMemoryIssueStore
from .snapshots import FileSnapshotArchive, MemorySnapshotArchive, SnapshotArchive


def create_store(config: StoreConfig) -> WorkItemStore:
    """Build the configured backend; missing GitHub settings are fatal."""
    if config.backend == "filesystem":
        return FileSystemIssueStore(config.path)

    if config.backend == "github":
        if not config.github_token or not config.github_repository:
            raise ConfigError("GitHub backend requires GITHUB_TOKEN and GITHUB_REPOSITORY")
        return GitHubIssueStore(
            token=config.github_token,
            repository=config.github_repository,
            api_url=config.github_api_url,
            snapshot_path=config.snapshot_path,
        )

    if config.backend == "memory":
        return InMemoryIssueStore()

    raise ConfigError(f"Unknown store backend: {config.backend}")


__all__ = [
    "FileSnapshotArchive",
    "FileSystemIssueStore",
    "GitHubAPIError",
    "GitHubIssueStore",
    "InMemoryIssueStore",
    "MemorySnapshotArchive",
    "NO_CHANGES_TEXT",
    "NO_SNAPSHOT_TEXT",
    "RateLimitError",
    "SnapshotArchive",
    "WorkItemStore",
    "create_store",
]
