"""
GitHub Issues backend for Prdtrack.

Maps the work item contract onto the GitHub REST API:
- create/update/list/get issues, list/create comments
- "not found" on reads becomes None; on mutations it becomes ItemNotFoundError
- pull requests returned by the issues endpoint are filtered out

GitHub has no place for PRD snapshots, so snapshot support is only available
when a local snapshot archive directory is configured.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Iterator

import requests

from .. import __version__
from ..errors import ItemNotFoundError, StoreError
from ..models import Comment, ItemFilter, ItemPatch, NewItem, WorkItem
from .base import WorkItemStore
from .snapshots import FileSnapshotArchive

logger = logging.getLogger(__name__)


GITHUB_API_BASE = "https://api.github.com"
DEFAULT_PER_PAGE = 100
MAX_RETRIES = 3
RETRY_DELAY = 1.0


class GitHubAPIError(StoreError):
    """Error from GitHub API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GitHubAPIError):
    """Rate limit exceeded."""
    def __init__(self, reset_time: int | None = None):
        super().__init__("GitHub API rate limit exceeded", 403)
        self.reset_time = reset_time


class GitHubIssueStore(WorkItemStore):
    """GitHub REST API issue store with pagination and rate limit handling."""

    name = "github"

    def __init__(
        self,
        token: str,
        repository: str,
        api_url: str = GITHUB_API_BASE,
        snapshot_path: Path | str | None = None,
    ):
        self.owner, self.repo = repository.split("/", 1)
        self.api_url = api_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers["Authorization"] = f"token {token}"
        self.session.headers["Accept"] = "application/vnd.github.v3+json"
        self.session.headers["User-Agent"] = f"prdtrack/{__version__}"
        self.snapshots = FileSnapshotArchive(snapshot_path) if snapshot_path else None

    @property
    def _issues_endpoint(self) -> str:
        return f"/repos/{self.owner}/{self.repo}/issues"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Make an API request with retry and rate limit handling."""
        url = f"{self.api_url}{endpoint}"

        for attempt in range(MAX_RETRIES):
            try:
                response = self.session.request(method, url, params=params, **kwargs)

                # Check rate limit
                if response.status_code == 403:
                    remaining = response.headers.get("X-RateLimit-Remaining")
                    if remaining == "0":
                        reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                        raise RateLimitError(reset_time)

                # Check for errors
                if response.status_code >= 400:
                    raise GitHubAPIError(
                        f"GitHub API error: {response.status_code} - {response.text}",
                        response.status_code
                    )

                return response

            except requests.RequestException as e:
                # Only reads are retried; a write may already have landed.
                if method.upper() == "GET" and attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY * (attempt + 1))
                    continue
                raise GitHubAPIError(f"Request failed: {e}")

        raise GitHubAPIError("Max retries exceeded")

    def _paginate(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Iterate through paginated API results."""
        params = dict(params or {})
        params.setdefault("per_page", DEFAULT_PER_PAGE)
        page = 1

        while True:
            params["page"] = page
            response = self._request("GET", endpoint, params=params)
            items = response.json()

            if not items:
                break

            for item in items:
                yield item

            # Check if there are more pages
            if len(items) < params["per_page"]:
                break

            page += 1

    def _mutate(self, item_id: int, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        try:
            return self._request(method, endpoint, **kwargs)
        except GitHubAPIError as e:
            if e.status_code in (404, 410):
                raise ItemNotFoundError(item_id) from e
            raise

    def _parse_issue(self, data: dict[str, Any], comments: list[Comment] | None = None) -> WorkItem:
        """Parse raw issue data into a WorkItem."""
        labels = data.get("labels", [])
        item = WorkItem(
            id=data.get("number", 0),
            title=data.get("title", ""),
            body=data.get("body") or "",
            state=data.get("state", "open"),
            labels=[
                label if isinstance(label, str) else label.get("name", "")
                for label in labels
                if isinstance(label, str) or label.get("name")
            ],
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            comments=comments or [],
            url=data.get("html_url"),
        )
        return self._attach_snapshot(item)

    def create_item(self, data: NewItem) -> int:
        response = self._request("POST", self._issues_endpoint, json={
            "title": data.title,
            "body": data.body,
            "labels": list(data.labels),
        })
        number = response.json()["number"]
        logger.info("Created GitHub issue #%d: %s", number, data.title)
        return number

    def update_item(self, item_id: int, patch: ItemPatch) -> None:
        payload = {
            key: value
            for key, value in (
                ("title", patch.title),
                ("body", patch.body),
                ("state", patch.state),
                ("labels", patch.labels),
            )
            if value is not None
        }
        self._mutate(item_id, "PATCH", f"{self._issues_endpoint}/{item_id}", json=payload)
        logger.info("Updated GitHub issue #%d (%s)", item_id, ", ".join(payload))

    def list_items(self, filters: ItemFilter | None = None) -> list[WorkItem]:
        filters = filters or ItemFilter(state="all")
        params: dict[str, Any] = {"state": filters.state or "all"}
        if filters.labels:
            params["labels"] = ",".join(filters.labels)
        if filters.updated_since:
            params["since"] = filters.updated_since

        items = [
            self._parse_issue(data)
            for data in self._paginate(self._issues_endpoint, params)
            if "pull_request" not in data
        ]
        return sorted(items, key=lambda item: item.id, reverse=True)

    def get_item(self, item_id: int) -> WorkItem | None:
        try:
            response = self._request("GET", f"{self._issues_endpoint}/{item_id}")
        except GitHubAPIError as e:
            if e.status_code in (404, 410):
                return None
            raise

        comments = [
            Comment(
                author=(comment.get("user") or {}).get("login", "unknown"),
                body=comment.get("body") or "",
                created_at=comment.get("created_at", ""),
            )
            for comment in self._paginate(f"{self._issues_endpoint}/{item_id}/comments")
        ]
        return self._parse_issue(response.json(), comments)

    def add_comment(self, item_id: int, body: str) -> None:
        self._mutate(
            item_id, "POST", f"{self._issues_endpoint}/{item_id}/comments", json={"body": body}
        )
        logger.info("Added comment to GitHub issue #%d", item_id)
