from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Collection, Iterable, Mapping, Protocol

import requests

from .models import AssignmentDecision, PullRequest, PullRequestStatus, ReviewerHistory, ReviewerVote

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_CAP = 2
DEFAULT_TARGET_REVIEWERS = 2


class ReviewerPoolExhausted(Exception):
    """No eligible reviewer is left for a pull request that is still short."""

    def __init__(self, pull_request: PullRequest, decisions: list[AssignmentDecision]):
        super().__init__(
            f"No eligible reviewer left for pull request {pull_request.id} ({pull_request.title})."
        )
        self.pull_request = pull_request
        self.decisions = decisions


class ReviewerSubmitter(Protocol):
    def add_reviewer(self, repository_id: str, pull_request_id: int, reviewer_id: str) -> bool:
        ...


@dataclass(frozen=True)
class Pick:
    histories: dict[str, ReviewerHistory]
    reviewer: ReviewerHistory | None


@dataclass(frozen=True)
class AssignmentPlan:
    decisions: list[AssignmentDecision]
    histories: dict[str, ReviewerHistory]


@dataclass
class SubmissionResult:
    submitted: list[AssignmentDecision] = field(default_factory=list)
    failed: list[AssignmentDecision] = field(default_factory=list)


def pick_next_reviewer(
    histories: Mapping[str, ReviewerHistory],
    cap: int = DEFAULT_CONCURRENCY_CAP,
    exclude: Collection[str] = (),
) -> Pick:
    """Pick the eligible reviewer with the fewest total reviews.

    Returns the pick together with a new history mapping in which the picked
    reviewer carries one more active review. When nobody is under ``cap``
    the input mapping is handed back untouched with ``reviewer=None``.
    """
    eligible = [
        history
        for history in histories.values()
        if history.active_reviews_count < cap and history.reviewer_id not in exclude
    ]
    if not eligible:
        return Pick(histories=dict(histories), reviewer=None)

    eligible.sort(key=lambda item: (item.total_reviews, item.reviewer_id))
    chosen = eligible[0]
    updated = replace(chosen, active_reviews_count=chosen.active_reviews_count + 1)
    next_histories = dict(histories)
    next_histories[updated.reviewer_id] = updated
    return Pick(histories=next_histories, reviewer=updated)


def plan_assignments(
    pull_requests: Iterable[PullRequest],
    histories: Mapping[str, ReviewerHistory],
    target: int = DEFAULT_TARGET_REVIEWERS,
    cap: int = DEFAULT_CONCURRENCY_CAP,
    reviewer_names: Mapping[str, str] | None = None,
) -> AssignmentPlan:
    """Fill every active pull request up to ``target`` reviewers.

    Raises ReviewerPoolExhausted as soon as a pull request cannot be filled;
    the whole run stops there and the decisions made so far travel on the
    exception.
    """
    names = reviewer_names or {}
    state = dict(histories)
    decisions: list[AssignmentDecision] = []

    needing = [
        pull_request
        for pull_request in pull_requests
        if pull_request.status is PullRequestStatus.ACTIVE and len(pull_request.reviewers) < target
    ]

    for pull_request in needing:
        reviewers = list(pull_request.reviewers)
        while len(reviewers) < target:
            exclude = {reviewer.reviewer_id for reviewer in reviewers}
            if pull_request.creator_id:
                exclude.add(pull_request.creator_id)

            pick = pick_next_reviewer(state, cap=cap, exclude=exclude)
            if pick.reviewer is None:
                raise ReviewerPoolExhausted(pull_request, decisions)

            state = pick.histories
            reviewer_id = pick.reviewer.reviewer_id
            decisions.append(AssignmentDecision(pull_request=pull_request, reviewer_id=reviewer_id))
            reviewers.append(ReviewerVote(reviewer_id, names.get(reviewer_id, reviewer_id), 0))
            logger.info(
                "Planned %s for pull request %s (total reviews now %d)",
                reviewer_id,
                pull_request.id,
                pick.reviewer.total_reviews,
            )

    return AssignmentPlan(decisions=decisions, histories=state)


def submit_assignments(
    decisions: Iterable[AssignmentDecision],
    submitter: ReviewerSubmitter,
) -> SubmissionResult:
    result = SubmissionResult()
    for decision in decisions:
        pull_request = decision.pull_request
        try:
            accepted = submitter.add_reviewer(pull_request.repository_id, pull_request.id, decision.reviewer_id)
        except requests.RequestException as exc:
            logger.warning("Adding %s to pull request %s failed: %s", decision.reviewer_id, pull_request.id, exc)
            result.failed.append(decision)
            continue
        if accepted:
            result.submitted.append(decision)
        else:
            logger.warning("Pull request %s did not accept reviewer %s", pull_request.id, decision.reviewer_id)
            result.failed.append(decision)
    return result
