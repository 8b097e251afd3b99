import pytest
import requests

from pr_load_balancer.allocator import (
    ReviewerPoolExhausted,
    pick_next_reviewer,
    plan_assignments,
    submit_assignments,
)
from pr_load_balancer.models import PullRequest, PullRequestStatus, ReviewerHistory, ReviewerVote


def _histories(*items: ReviewerHistory) -> dict[str, ReviewerHistory]:
    return {item.reviewer_id: item for item in items}


def _active_pr(pr_id: int, *reviewer_ids: str, creator_id: str | None = None) -> PullRequest:
    return PullRequest(
        id=pr_id,
        title=f"PR {pr_id}",
        status=PullRequestStatus.ACTIVE,
        repository_id="repo",
        creator_id=creator_id,
        reviewers=[ReviewerVote(reviewer_id, reviewer_id) for reviewer_id in reviewer_ids],
    )


def test_pick_next_prefers_fewest_total_reviews():
    histories = _histories(
        ReviewerHistory("a", past_review_count=3),
        ReviewerHistory("b", past_review_count=1),
    )

    picked = []
    for _ in range(5):
        pick = pick_next_reviewer(histories, cap=2)
        histories = pick.histories
        picked.append(pick.reviewer.reviewer_id if pick.reviewer else None)

    assert picked == ["b", "b", "a", "a", None]
    assert histories["a"].active_reviews_count == 2
    assert histories["b"].active_reviews_count == 2


def test_pick_next_does_not_mutate_input_mapping():
    histories = _histories(ReviewerHistory("a"), ReviewerHistory("b", past_review_count=2))

    pick = pick_next_reviewer(histories)

    assert pick.reviewer.reviewer_id == "a"
    assert histories["a"].active_reviews_count == 0
    assert pick.histories["a"].active_reviews_count == 1
    assert pick.histories["b"] == histories["b"]


def test_pick_next_breaks_ties_by_reviewer_id():
    histories = _histories(
        ReviewerHistory("zed", past_review_count=1),
        ReviewerHistory("amy", active_reviews_count=1),
    )

    assert pick_next_reviewer(histories).reviewer.reviewer_id == "amy"


def test_pick_next_never_returns_reviewer_at_cap():
    histories = _histories(
        ReviewerHistory("busy", active_reviews_count=2),
        ReviewerHistory("veteran", past_review_count=40),
    )

    pick = pick_next_reviewer(histories, cap=2)

    assert pick.reviewer.reviewer_id == "veteran"
    assert pick.reviewer.active_reviews_count == 1


def test_pick_next_honours_exclusions():
    histories = _histories(ReviewerHistory("a"), ReviewerHistory("b", past_review_count=5))

    pick = pick_next_reviewer(histories, exclude={"a"})

    assert pick.reviewer.reviewer_id == "b"


def test_pick_next_is_idempotent_when_everyone_is_at_cap():
    histories = _histories(
        ReviewerHistory("a", active_reviews_count=2),
        ReviewerHistory("b", past_review_count=1, active_reviews_count=3),
    )

    first = pick_next_reviewer(histories, cap=2)
    second = pick_next_reviewer(first.histories, cap=2)

    assert first.reviewer is None
    assert second.reviewer is None
    assert second.histories == histories


def test_each_pick_raises_exactly_one_count_by_one():
    histories = _histories(
        ReviewerHistory("a", past_review_count=2),
        ReviewerHistory("b", past_review_count=1, active_reviews_count=1),
        ReviewerHistory("c", past_review_count=4),
    )

    for _ in range(4):
        pick = pick_next_reviewer(histories, cap=3)
        changed = [
            reviewer_id
            for reviewer_id, history in pick.histories.items()
            if history.active_reviews_count != histories[reviewer_id].active_reviews_count
        ]
        assert changed == [pick.reviewer.reviewer_id]
        assert pick.reviewer.active_reviews_count == histories[changed[0]].active_reviews_count + 1
        for history in pick.histories.values():
            assert history.total_reviews == history.past_review_count + history.active_reviews_count
        histories = pick.histories


def test_plan_assignments_fills_pull_requests_to_target():
    pull_requests = [_active_pr(1), _active_pr(2, "a")]
    histories = _histories(
        ReviewerHistory("a", past_review_count=1, active_reviews_count=1),
        ReviewerHistory("b", past_review_count=0),
        ReviewerHistory("c", past_review_count=2),
    )

    plan = plan_assignments(pull_requests, histories, target=2, cap=2)

    assigned = [(decision.pull_request.id, decision.reviewer_id) for decision in plan.decisions]
    assert assigned == [(1, "b"), (1, "a"), (2, "b")]
    assert plan.histories["b"].active_reviews_count == 2
    assert pull_requests[0].reviewers == []


def test_plan_assignments_skips_pull_requests_at_target_or_not_active():
    full = _active_pr(1, "a", "b")
    done = PullRequest(id=2, title="done", status=PullRequestStatus.COMPLETED)
    abandoned = PullRequest(id=3, title="gone", status=PullRequestStatus.ABANDONED)
    histories = _histories(ReviewerHistory("c"))

    plan = plan_assignments([full, done, abandoned], histories, target=2)

    assert plan.decisions == []
    assert plan.histories == histories


def test_plan_assignments_never_touches_pull_request_already_at_target():
    full = _active_pr(1, "a", "b")
    short = _active_pr(2, "a")
    histories = _histories(
        ReviewerHistory("a", active_reviews_count=2),
        ReviewerHistory("b", active_reviews_count=1),
        ReviewerHistory("c"),
    )

    plan = plan_assignments([full, short], histories, target=2)

    assert [(decision.pull_request.id, decision.reviewer_id) for decision in plan.decisions] == [(2, "c")]
    assert all(decision.pull_request is not full for decision in plan.decisions)


def test_plan_assignments_stops_run_when_reviewers_run_out():
    pull_requests = [_active_pr(1), _active_pr(2)]
    histories = _histories(ReviewerHistory("only", active_reviews_count=1))

    with pytest.raises(ReviewerPoolExhausted) as excinfo:
        plan_assignments(pull_requests, histories, target=2, cap=2)

    assert [decision.reviewer_id for decision in excinfo.value.decisions] == ["only"]
    assert excinfo.value.pull_request.id == 1


def test_plan_assignments_does_not_assign_creator_or_existing_reviewer():
    pull_request = _active_pr(7, "a", creator_id="author")
    histories = _histories(
        ReviewerHistory("author"),
        ReviewerHistory("a"),
        ReviewerHistory("b", past_review_count=9),
    )

    plan = plan_assignments([pull_request], histories, target=2)

    assert [decision.reviewer_id for decision in plan.decisions] == ["b"]


class RecordingSubmitter:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def add_reviewer(self, repository_id, pull_request_id, reviewer_id):
        self.calls.append((repository_id, pull_request_id, reviewer_id))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_submit_assignments_keeps_going_after_failures():
    plan = plan_assignments(
        [_active_pr(1), _active_pr(2)],
        _histories(ReviewerHistory("a"), ReviewerHistory("b")),
        target=1,
    )
    submitter = RecordingSubmitter([requests.ConnectionError("down"), True])

    result = submit_assignments(plan.decisions, submitter)

    assert submitter.calls == [("repo", 1, "a"), ("repo", 2, "b")]
    assert [decision.reviewer_id for decision in result.submitted] == ["b"]
    assert [decision.reviewer_id for decision in result.failed] == ["a"]


def test_submit_assignments_records_rejections():
    plan = plan_assignments([_active_pr(1)], _histories(ReviewerHistory("a")), target=1)

    result = submit_assignments(plan.decisions, RecordingSubmitter([False]))

    assert result.submitted == []
    assert len(result.failed) == 1
