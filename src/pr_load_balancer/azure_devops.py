"""Azure DevOps REST access for pull requests and their reviewers.

Only the handful of Git endpoints the balancer needs are wrapped here:
repositories, pull requests (all statuses, paged), reviewer lists, and
adding a reviewer. Repository-scoped calls go through the organisation-level
route, which accepts a repository id without a project segment.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Iterator
from urllib.parse import quote

import requests

from .config import Settings
from .models import PullRequest, PullRequestStatus, Repository, ReviewerVote

logger = logging.getLogger(__name__)


class AzureDevOpsError(RuntimeError):
    def __init__(self, status_code: int, url: str, message: str = ""):
        super().__init__(f"Azure DevOps returned {status_code} for {url}. {message}".strip())
        self.status_code = status_code
        self.url = url


class AzureDevOpsClient:
    def __init__(
        self,
        org_url: str,
        token: str,
        settings: Settings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.org_url = org_url.rstrip("/")
        self.settings = settings or Settings()
        self.session = session or requests.Session()
        self.session.auth = ("", token)
        self.session.headers.update({"Accept": "application/json"})

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "AzureDevOpsClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _url(self, *segments: str) -> str:
        return "/".join([self.org_url, *(quote(str(segment), safe="") for segment in segments)])

    def _params(self, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"api-version": self.settings.api_version}
        if extra:
            params.update(extra)
        return params

    def _get_values(self, url: str, params: dict[str, Any] | None = None) -> list[dict]:
        response = self.session.get(url, params=self._params(params), timeout=self.settings.request_timeout)
        if response.status_code >= 400:
            raise AzureDevOpsError(response.status_code, url, response.text[:200])
        return list(response.json().get("value") or [])

    def list_repositories(self, project: str) -> list[Repository]:
        url = self._url(project, "_apis", "git", "repositories")
        return [Repository(id=row["id"], name=row.get("name") or row["id"]) for row in self._get_values(url)]

    def list_pull_requests(self, project: str, repository_id: str, status: str = "all") -> list[PullRequest]:
        url = self._url(project, "_apis", "git", "repositories", repository_id, "pullrequests")
        page_size = self.settings.page_size
        pull_requests: list[PullRequest] = []
        skip = 0
        while True:
            rows = self._get_values(
                url,
                {"searchCriteria.status": status, "$top": page_size, "$skip": skip},
            )
            pull_requests.extend(parse_pull_request(row, repository_id) for row in rows)
            if len(rows) < page_size:
                break
            skip += page_size
        return pull_requests

    def list_reviewers(self, repository_id: str, pull_request_id: int) -> list[ReviewerVote]:
        url = self._url(
            "_apis", "git", "repositories", repository_id, "pullRequests", str(pull_request_id), "reviewers"
        )
        return [parse_reviewer(row) for row in self._get_values(url)]

    def add_reviewer(self, repository_id: str, pull_request_id: int, reviewer_id: str) -> bool:
        url = self._url(
            "_apis",
            "git",
            "repositories",
            repository_id,
            "pullRequests",
            str(pull_request_id),
            "reviewers",
            reviewer_id,
        )
        response = self.session.put(
            url,
            params=self._params(),
            json={"vote": 0},
            timeout=self.settings.request_timeout,
        )
        if response.status_code >= 400:
            logger.warning("Adding reviewer returned %s: %s", response.status_code, response.text[:200])
            return False
        return True


def parse_reviewer(row: dict) -> ReviewerVote:
    reviewer_id = row.get("id") or ""
    return ReviewerVote(
        reviewer_id=reviewer_id,
        display_name=row.get("displayName") or reviewer_id,
        vote=int(row.get("vote") or 0),
    )


def parse_pull_request(row: dict, repository_id: str = "") -> PullRequest:
    created_by = row.get("createdBy") or {}
    repository = row.get("repository") or {}
    return PullRequest(
        id=int(row["pullRequestId"]),
        title=row.get("title") or "",
        status=PullRequestStatus.from_wire(row.get("status")),
        repository_id=repository.get("id") or repository_id,
        creator_id=created_by.get("id"),
        creator_name=created_by.get("displayName"),
        reviewers=[parse_reviewer(reviewer) for reviewer in row.get("reviewers") or []],
    )


@contextmanager
def devops_client(org_url: str, token: str, settings: Settings | None = None) -> Iterator[AzureDevOpsClient]:
    client = AzureDevOpsClient(org_url, token, settings=settings)
    try:
        yield client
    finally:
        client.close()


def fetch_snapshot(client: AzureDevOpsClient, project: str, max_workers: int = 8) -> list[PullRequest]:
    """Fetch every pull request in ``project`` with its current reviewer list.

    Reviewer lists are fetched in parallel; all of them are joined before the
    snapshot is returned, in repository then pull request order.
    """
    pull_requests: list[PullRequest] = []
    for repository in client.list_repositories(project):
        logger.info("Getting all pull requests for '%s'", repository.name)
        pull_requests.extend(client.list_pull_requests(project, repository.id, status="all"))

    if not pull_requests:
        return []

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="prlb-reviewers") as executor:
        futures = [
            executor.submit(client.list_reviewers, pull_request.repository_id, pull_request.id)
            for pull_request in pull_requests
        ]
        for pull_request, future in zip(pull_requests, futures):
            pull_request.reviewers = future.result()

    logger.info("Fetched %d pull requests", len(pull_requests))
    return pull_requests
