"""Unit tests for PR-set hashing and pre-grouping filtering."""

import hashlib

from changefeed.services.classifier.types import group_key
from changefeed.services.ingestion.dedup import filter_unseen, group_hash

from tests.helpers.mock_factories import make_pr


class TestGroupHash:
    def test_order_independent(self):
        assert group_hash([12, 3, 7]) == group_hash([7, 12, 3])

    def test_numeric_not_lexicographic_sort(self):
        assert group_key([10, 9]) == "9-10"
        assert group_hash([10, 9]) == hashlib.sha256(b"9-10").hexdigest()

    def test_distinct_sets_differ(self):
        assert group_hash([1, 2]) != group_hash([1, 2, 3])

    def test_hex_digest_length(self):
        assert len(group_hash([1])) == 64


class TestFilterUnseen:
    def test_drops_persisted_numbers(self):
        prs = [make_pr(n) for n in (1, 2, 3)]

        result = filter_unseen(prs, {2})

        assert [pr.number for pr in result] == [1, 3]

    def test_drops_repeats_within_batch(self):
        prs = [make_pr(1), make_pr(1), make_pr(2)]

        result = filter_unseen(prs, set())

        assert [pr.number for pr in result] == [1, 2]

    def test_all_seen(self):
        assert filter_unseen([make_pr(1)], {1}) == []
