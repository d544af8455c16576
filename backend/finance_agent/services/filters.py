"""Relevance filtering: narrows extracted records to what the query is about.

Three strategies:
  - score threshold + query-term matching   (summary path, ``query_specific``)
  - transaction type / recurring detection  (``filterType`` from chart params)
  - model-supplied keywords                 (``queryKeywords`` from chart params)

Every strategy is followed by the leniency check: a filter that leaves fewer
than ``LENIENCY_MIN_KEPT`` records out of at least ``LENIENCY_MIN_AVAILABLE``
candidates is discarded and the unfiltered candidates are used instead.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from .. import config
from ..schemas import TransactionRecord
from .normalizer import normalize_description, to_datetime

# ── Constants ─────────────────────────────────────────────────────────────────

LENIENCY_MIN_KEPT = 3         # fewer survivors than this counts as over-restrictive …
LENIENCY_MIN_AVAILABLE = 6    # … but only when at least this many were available
AMOUNT_TOLERANCE = 5.0        # numeric query term matches amounts within ±5

_YEAR_RE = re.compile(r"^(?:19|20)\d{2}$")
_YEAR_MONTH_RE = re.compile(r"^(?:19|20)\d{2}-\d{2}$")
_FULL_DATE_RE = re.compile(r"^(?:19|20)\d{2}-\d{2}-\d{2}$")
_DATE_PREFIX_RES = (_YEAR_RE, _YEAR_MONTH_RE, _FULL_DATE_RE)

_MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}


@dataclass(frozen=True)
class QueryContext:
    query: str
    terms: tuple[str, ...]


def build_query_context(query: str) -> QueryContext:
    """Lower-case the query and keep whitespace-split terms longer than 2 chars."""
    terms = tuple(
        t.strip("?!.,;:\"'()") for t in query.lower().split()
    )
    return QueryContext(query=query, terms=tuple(t for t in terms if len(t) > 2))


# ── Leniency ──────────────────────────────────────────────────────────────────


def apply_leniency(
    filtered: list[TransactionRecord], candidates: list[TransactionRecord]
) -> list[TransactionRecord]:
    """Fall back to ``candidates`` when ``filtered`` is suspiciously small."""
    if len(filtered) < LENIENCY_MIN_KEPT and len(candidates) >= LENIENCY_MIN_AVAILABLE:
        return list(candidates)
    return filtered


# ── Score threshold + query terms ─────────────────────────────────────────────


def _parse_number(term: str) -> Optional[float]:
    try:
        return float(term.lstrip("$€£").replace(",", ""))
    except ValueError:
        return None


def _is_date_prefix(term: str) -> bool:
    return any(p.match(term) for p in _DATE_PREFIX_RES)


def _term_matches_date(term: str, date_str: str) -> bool:
    if _is_date_prefix(term):
        return term in date_str
    month = _MONTHS.get(term)
    if month is None:
        return False
    dt = to_datetime(date_str)
    return dt is not None and dt.month == month


def _is_date_term(term: str) -> bool:
    return _is_date_prefix(term) or term in _MONTHS


def matches_query(record: TransactionRecord, ctx: QueryContext) -> bool:
    """True when at least one query term matches text, amount, or date."""
    haystacks = [
        (record.description or "").lower(),
        (record.category or "").lower(),
        (record.top_level_category or "").lower(),
    ]
    for term in ctx.terms:
        if any(term in h for h in haystacks if h):
            return True
        if _is_date_term(term):
            if _term_matches_date(term, record.date):
                return True
            continue
        number = _parse_number(term)
        if number is not None and record.amount is not None:
            if abs(abs(record.amount) - abs(number)) <= AMOUNT_TOLERANCE:
                return True
    return False


def filter_by_score(
    records: list[TransactionRecord],
    ctx: QueryContext,
    min_score: Optional[float] = None,
) -> list[TransactionRecord]:
    """Drop low-similarity records, then keep those matching a query term."""
    threshold = config.MIN_RELEVANCE_SCORE if min_score is None else min_score
    scored = [
        r for r in records
        if r.relevance_score is None or r.relevance_score >= threshold
    ]
    if ctx.terms:
        scored = [r for r in scored if matches_query(r, ctx)]
    return apply_leniency(scored, records)


# ── Transaction type / recurring ──────────────────────────────────────────────


def _is_income(r: TransactionRecord) -> bool:
    return (r.type or "").lower() == "income" or (r.amount is not None and r.amount > 0)


def _is_expense(r: TransactionRecord) -> bool:
    return (r.type or "").lower() == "expense" or (r.amount is not None and r.amount < 0)


def filter_recurring(records: list[TransactionRecord]) -> list[TransactionRecord]:
    """Keep records whose normalised description occurs more than once.

    Records without a description never count as recurring.
    """
    counts = Counter(
        normalize_description(r.description) for r in records if r.description
    )
    return [
        r for r in records
        if r.description and counts[normalize_description(r.description)] > 1
    ]


def filter_by_type(
    records: list[TransactionRecord], filter_type: str, query: str = ""
) -> list[TransactionRecord]:
    """Apply the chart's ``filterType``; unknown types pass everything through."""
    if filter_type == "income_only":
        kept = [r for r in records if _is_income(r)]
    elif filter_type == "expenses_only":
        kept = [r for r in records if _is_expense(r)]
    elif filter_type == "query_specific":
        return filter_by_score(records, build_query_context(query))
    elif filter_type == "recurring_only" or "recurring" in query.lower():
        kept = filter_recurring(records)
    else:
        return list(records)
    return apply_leniency(kept, records)


# ── Keywords ──────────────────────────────────────────────────────────────────


def filter_by_keywords(
    records: list[TransactionRecord], keywords: Optional[list[str]]
) -> list[TransactionRecord]:
    """Case-insensitive substring match of any keyword against description,
    category, merchant or type. Survivors are re-ranked by similarity score
    when scores are present.
    """
    needles = [k.lower().strip() for k in (keywords or []) if k and k.strip()]
    if not needles:
        return list(records)

    kept = []
    for r in records:
        fields = [r.description, r.category, r.merchant, r.type]
        text = [f.lower() for f in fields if f]
        if any(n in f for n in needles for f in text):
            kept.append(r)

    if any(r.relevance_score is not None for r in kept):
        kept.sort(key=lambda r: r.relevance_score or 0.0, reverse=True)
    return apply_leniency(kept, records)
