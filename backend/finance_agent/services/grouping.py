"""Grouping service: bucket filtered records and sum their magnitudes."""

from dataclasses import dataclass, field
from typing import Optional

from ..schemas import TransactionRecord
from .normalizer import clean_description_label, month_label, parse_date

UNCATEGORIZED = "Uncategorized"
UNKNOWN_MERCHANT = "Unknown Merchant"
UNKNOWN_TYPE = "Unknown Type"
UNKNOWN_DATE = "Unknown Date"


@dataclass
class Bucket:
    total_amount: float = 0.0
    most_recent_date: str = ""
    records: list[TransactionRecord] = field(default_factory=list)

    def add(self, record: TransactionRecord) -> None:
        self.total_amount += abs(record.amount or 0.0)
        if not self.most_recent_date or parse_date(record.date) > parse_date(self.most_recent_date):
            self.most_recent_date = record.date
        self.records.append(record)


def normalize_grouping(grouping: Optional[str]) -> str:
    """``"by_category"`` / ``"Category"`` / ``"by-month"`` → ``"category"`` / ``"month"``."""
    g = (grouping or "").strip().lower().replace("-", "_").replace(" ", "_")
    if g.startswith("by_"):
        g = g[3:]
    return g


def _description_label(record: TransactionRecord, default: str) -> str:
    if record.description:
        label = clean_description_label(record.description)
        if label:
            return label
    return default


def resolve_group_key(record: TransactionRecord, grouping: Optional[str]) -> str:
    """Return the display label ``record`` is bucketed under. Never empty."""
    g = normalize_grouping(grouping)
    if g == "category":
        return (record.category or "").strip() or UNCATEGORIZED
    if g == "merchant":
        return (record.merchant or "").strip() or _description_label(record, UNKNOWN_MERCHANT)
    if g == "type":
        return (record.type or "").strip() or UNKNOWN_TYPE
    if g == "month":
        return month_label(record.date) or UNKNOWN_DATE
    if g == "date":
        return record.date.strip() or UNKNOWN_DATE
    return _description_label(record, UNCATEGORIZED)


def group_records(
    records: list[TransactionRecord], grouping: Optional[str]
) -> dict[str, Bucket]:
    """Bucket ``records`` by ``grouping``; totals are sums of absolute amounts."""
    buckets: dict[str, Bucket] = {}
    for record in records:
        key = resolve_group_key(record, grouping)
        if key not in buckets:
            buckets[key] = Bucket()
        buckets[key].add(record)
    return buckets
