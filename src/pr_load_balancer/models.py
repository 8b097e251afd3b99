from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PullRequestStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @classmethod
    def from_wire(cls, value: str | None) -> "PullRequestStatus":
        # notSet and anything unrecognised is ignored by the policy
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.ABANDONED


@dataclass(frozen=True)
class Repository:
    id: str
    name: str


@dataclass(frozen=True)
class ReviewerVote:
    reviewer_id: str
    display_name: str
    vote: int = 0

    @property
    def has_voted(self) -> bool:
        return self.vote > 0


@dataclass
class PullRequest:
    id: int
    title: str
    status: PullRequestStatus
    repository_id: str = ""
    creator_id: str | None = None
    creator_name: str | None = None
    reviewers: list[ReviewerVote] = field(default_factory=list)


@dataclass(frozen=True)
class ReviewerHistory:
    """Review load of one reviewer across the fetched pull requests.

    ``past_review_count`` counts completed pull requests the reviewer voted
    on; ``active_reviews_count`` counts active pull requests they sit on,
    plus any assignments planned during the current run.
    """

    reviewer_id: str
    past_review_count: int = 0
    active_reviews_count: int = 0
    is_active: bool = False

    def __post_init__(self) -> None:
        if self.past_review_count < 0 or self.active_reviews_count < 0:
            raise ValueError(f"Review counts for {self.reviewer_id} must not be negative.")

    @property
    def total_reviews(self) -> int:
        return self.past_review_count + self.active_reviews_count


@dataclass(frozen=True)
class AssignmentDecision:
    pull_request: PullRequest
    reviewer_id: str
