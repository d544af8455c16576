"""Record extraction: retrieval hits → flat list of validated transactions."""

import json
import logging
from typing import Iterable

from pydantic import ValidationError

from ..schemas import RetrievalHit, TransactionRecord

logger = logging.getLogger(__name__)


def _iter_transaction_payloads(parsed: object) -> Iterable[object]:
    """Yield the raw transaction values of one decoded batch blob.

    Stored batches key transactions by id (``{"transactions": {"tx1": {...}}}``);
    a plain list is accepted too.
    """
    if not isinstance(parsed, dict):
        return ()
    transactions = parsed.get("transactions")
    if isinstance(transactions, dict):
        return transactions.values()
    if isinstance(transactions, list):
        return transactions
    return ()


def extract_records(hits: Iterable[RetrievalHit]) -> list[TransactionRecord]:
    """Parse every hit's JSON blob and return the valid transactions, in hit order.

    A hit whose text is missing or is not valid JSON is skipped; a transaction
    without a date (or otherwise failing validation) is skipped. Neither aborts
    the batch. Each kept record carries its hit's similarity score.
    """
    records: list[TransactionRecord] = []
    for hit in hits:
        if not hit.text:
            continue
        try:
            parsed = json.loads(hit.text)
        except (json.JSONDecodeError, TypeError) as exc:
            logger.warning("Skipping retrieval hit %s: metadata text is not valid JSON (%s)", hit.id, exc)
            continue

        for payload in _iter_transaction_payloads(parsed):
            if not isinstance(payload, dict):
                continue
            try:
                record = TransactionRecord.model_validate(payload)
            except ValidationError as exc:
                logger.debug("Dropping transaction from hit %s: %s", hit.id, exc.errors()[0]["msg"])
                continue
            records.append(record.model_copy(update={"relevance_score": hit.score}))
    return records
