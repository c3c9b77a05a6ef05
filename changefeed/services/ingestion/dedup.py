"""Stable identity for PR sets and pre-grouping filtering."""

import hashlib
from collections.abc import Iterable

from changefeed.services.classifier.types import group_key
from changefeed.services.github.types import PullRequestData


def group_hash(pr_numbers: Iterable[int]) -> str:
    """
    SHA-256 hex digest of the numerically sorted PR numbers joined by "-".

    Independent of input order, so the same PR set always maps to the same
    Update regardless of how grouping listed it.
    """
    return hashlib.sha256(group_key(pr_numbers).encode()).hexdigest()


def filter_unseen(prs: list[PullRequestData], seen_numbers: set[int]) -> list[PullRequestData]:
    """Drop PRs already persisted, and repeats within the batch itself."""
    unseen: list[PullRequestData] = []
    batch: set[int] = set()
    for pr in prs:
        if pr.number in seen_numbers or pr.number in batch:
            continue
        batch.add(pr.number)
        unseen.append(pr)
    return unseen
