"""
Case ID sequence generator.

Human-readable case ids (C-0001, C-0002, ...) come from a single counter
document incremented atomically by MongoDB. Concurrent callers never see
the same number because the increment and the read-back are one server
operation.
"""

import logging

from pymongo import ReturnDocument
from pymongo.database import Database

from barangay.core.database import CASE_COUNTER_ID, CASE_ID_PREFIX, COUNTERS

logger = logging.getLogger(__name__)

SEQ_WIDTH = 4


def format_case_id(prefix: str, seq: int) -> str:
    """C-0001 ... C-9999, then C-10000 (padding is a minimum, never a cap)."""
    return f"{prefix}{str(seq).zfill(SEQ_WIDTH)}"


def next_case_id(db: Database) -> str:
    """
    Allocate the next case id.

    `seq` is only ever `$inc`-ed, never written through `$setOnInsert`: on a
    fresh database the upsert creates the document and the increment
    starts it at 1, so two racing first calls still get 1 and 2.
    """
    doc = db[COUNTERS].find_one_and_update(
        {"_id": CASE_COUNTER_ID},
        {"$inc": {"seq": 1}, "$setOnInsert": {"prefix": CASE_ID_PREFIX}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        logger.warning("Case counter read-back returned nothing; falling back to seq=1")
        doc = {}

    seq = doc.get("seq")
    if not isinstance(seq, int) or isinstance(seq, bool):
        seq = 1
    prefix = doc.get("prefix") or CASE_ID_PREFIX
    return format_case_id(prefix, seq)
