from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from .models import PullRequest, PullRequestStatus, ReviewerHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistorySnapshot:
    histories: dict[str, ReviewerHistory]
    reviewer_names: dict[str, str]
    authors: dict[str, int]
    total_pull_requests: int


def _bump(
    histories: dict[str, ReviewerHistory],
    reviewer_id: str,
    *,
    past: int = 0,
    active: int = 0,
) -> None:
    current = histories.get(reviewer_id) or ReviewerHistory(reviewer_id=reviewer_id)
    histories[reviewer_id] = replace(
        current,
        past_review_count=current.past_review_count + past,
        active_reviews_count=current.active_reviews_count + active,
        is_active=current.is_active or active > 0,
    )


def build_history(pull_requests: Iterable[PullRequest]) -> HistorySnapshot:
    """Aggregate per-reviewer load from a snapshot of pull requests.

    Completed pull requests count towards a reviewer's past reviews only when
    they cast a positive vote. Active pull requests count towards every
    reviewer listed on them, voted or not. Abandoned pull requests are
    ignored. The author tally is collected for reporting and has no bearing
    on reviewer selection.
    """
    histories: dict[str, ReviewerHistory] = {}
    reviewer_names: dict[str, str] = {}
    authors: dict[str, int] = {}
    total = 0

    for pull_request in pull_requests:
        total += 1
        if pull_request.creator_name:
            authors[pull_request.creator_name] = authors.get(pull_request.creator_name, 0) + 1

        for reviewer in pull_request.reviewers or []:
            if not reviewer.reviewer_id:
                continue
            reviewer_names[reviewer.reviewer_id] = reviewer.display_name or reviewer.reviewer_id
            if pull_request.status is PullRequestStatus.COMPLETED and reviewer.has_voted:
                _bump(histories, reviewer.reviewer_id, past=1)
            elif pull_request.status is PullRequestStatus.ACTIVE:
                _bump(histories, reviewer.reviewer_id, active=1)

    logger.info("Built review history for %d reviewers from %d pull requests", len(histories), total)
    return HistorySnapshot(
        histories=histories,
        reviewer_names=reviewer_names,
        authors=authors,
        total_pull_requests=total,
    )
