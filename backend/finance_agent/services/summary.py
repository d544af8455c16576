"""Summary path: renders the most recent relevant transactions as plain text."""

from typing import Optional

from ..schemas import SummaryResponse, TransactionRecord
from .filters import build_query_context, filter_by_score
from .retrieval import FinanceServices, retrieve_records, sort_newest_first

MAX_SUMMARY_ROWS = 20
NO_TRANSACTIONS = "No valid transactions found."


def _fmt_amount(amount: float) -> str:
    return f"{amount:g}" if amount == int(amount) else f"{amount:.2f}"


def format_transaction(r: TransactionRecord) -> Optional[str]:
    """One summary line, or ``None`` when a field the line needs is missing."""
    if not (
        r.amount
        and r.currency_code
        and r.description
        and r.category
        and r.type
        and r.top_level_category
    ):
        return None
    return (
        f"- Date: {r.date}, Amount: {_fmt_amount(r.amount)} {r.currency_code}, "
        f"Description: {r.description}, Category: {r.category}, "
        f"User: {r.user_guid or 'N/A'}, "
        f"Top Level Category: {r.top_level_category}, Type: {r.type}"
    )


def summarize_records(query: str, records: list[TransactionRecord]) -> SummaryResponse:
    relevant = filter_by_score(records, build_query_context(query))
    selected = sort_newest_first(relevant)[:MAX_SUMMARY_ROWS]

    lines = [line for line in (format_transaction(r) for r in selected) if line]
    if not lines:
        return SummaryResponse(summary=NO_TRANSACTIONS)
    return SummaryResponse(
        summary=f"Found {len(selected)} relevant transactions:\n" + "\n".join(lines)
    )


async def get_finance_data(query: str, services: FinanceServices) -> SummaryResponse:
    records = await retrieve_records(query, services)
    return summarize_records(query, records)
