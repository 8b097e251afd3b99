from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .history import HistorySnapshot


@dataclass(frozen=True)
class ShareRow:
    name: str
    count: int
    percent: float


def share_of(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return count / total


def build_reviewer_report(snapshot: HistorySnapshot) -> list[ShareRow]:
    """Completed reviews per reviewer as a share of every fetched pull request."""
    rows = [
        ShareRow(
            name=snapshot.reviewer_names.get(reviewer_id, reviewer_id),
            count=history.past_review_count,
            percent=share_of(history.past_review_count, snapshot.total_pull_requests),
        )
        for reviewer_id, history in snapshot.histories.items()
    ]
    rows.sort(key=lambda item: (-item.count, item.name))
    return rows


def build_author_report(authors: Mapping[str, int]) -> list[ShareRow]:
    total = sum(authors.values())
    rows = [
        ShareRow(name=name, count=count, percent=share_of(count, total))
        for name, count in authors.items()
    ]
    rows.sort(key=lambda item: (-item.count, item.name))
    return rows
