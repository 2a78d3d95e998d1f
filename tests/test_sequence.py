"""
Case ID sequence tests.
"""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

from pymongo import ReturnDocument

from barangay.core.database import COUNTERS, init_db
from barangay.services.sequence import format_case_id, next_case_id


class TestFormatCaseId:

    def test_pads_to_four_digits(self):
        assert format_case_id("C-", 1) == "C-0001"
        assert format_case_id("C-", 42) == "C-0042"

    def test_padding_is_a_minimum(self):
        assert format_case_id("C-", 10000) == "C-10000"


class TestNextCaseId:

    def test_first_ids_after_init(self, db):
        # init_db already created the counter document without a seq
        assert "seq" not in db[COUNTERS].find_one({"_id": "case"})
        assert next_case_id(db) == "C-0001"
        assert next_case_id(db) == "C-0002"

    def test_works_without_counter_document(self, db):
        db[COUNTERS].delete_many({})
        assert next_case_id(db) == "C-0001"

    def test_init_db_does_not_reset_sequence(self, db):
        next_case_id(db)
        next_case_id(db)
        init_db(db)
        assert next_case_id(db) == "C-0003"

    def test_many_calls_are_distinct_and_increasing(self, db):
        ids = [next_case_id(db) for _ in range(25)]
        assert len(set(ids)) == 25
        assert ids == sorted(ids)

    def test_concurrent_calls_have_no_gaps_or_duplicates(self, db):
        calls = 200
        with ThreadPoolExecutor(max_workers=16) as pool:
            ids = list(pool.map(lambda _: next_case_id(db), range(calls)))

        numbers = sorted(int(case_id.removeprefix("C-")) for case_id in ids)
        assert numbers == list(range(1, calls + 1))

    def test_increment_is_single_atomic_update(self):
        db = MagicMock()
        counters = db.__getitem__.return_value
        counters.find_one_and_update.return_value = {"_id": "case", "seq": 7, "prefix": "C-"}

        assert next_case_id(db) == "C-0007"

        args, kwargs = counters.find_one_and_update.call_args
        query, update = args
        assert query == {"_id": "case"}
        assert update["$inc"] == {"seq": 1}
        assert "seq" not in update["$setOnInsert"]
        assert kwargs["upsert"] is True
        assert kwargs["return_document"] == ReturnDocument.AFTER

    def test_missing_read_back_falls_back_to_one(self):
        db = MagicMock()
        db.__getitem__.return_value.find_one_and_update.return_value = None
        assert next_case_id(db) == "C-0001"
