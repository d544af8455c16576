"""Vector-store seeder: idempotent embedding of the demo finance dataset.

Runs once from the app lifespan, before any request is served. Every stored
vector's ``metadata.text`` is a JSON blob; transaction blobs have the shape
the extractor expects: ``{"transactions": {<guid>: {...}}, "totals": {...}}``.
"""

import asyncio
import calendar
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from fastapi.concurrency import run_in_threadpool

from .retrieval import FinanceServices

logger = logging.getLogger(__name__)

BATCH_SIZE = 5


@dataclass
class InitState:
    """Process-wide "already seeded" flag, owned by the app rather than a module."""

    initialized: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


# ─────────────────────────────────────────────────────────────────────────────
# Demo dataset  (fictional data: no relation to any real user)
# ─────────────────────────────────────────────────────────────────────────────

# (months_ago, day, description, amount, category, top_level_category, merchant)
_DEMO_ROWS: list[tuple[int, int, str, float, str, str, str]] = [
    (2, 1,  "Payroll Deposit - Northwind Ltd",  4200.00, "Paycheck",       "Income",        "Northwind"),
    (2, 3,  "Payment to Riverside Apartments",  -1650.00, "Rent",          "Housing",       "Riverside Apartments"),
    (2, 5,  "Netflix.com",                        -15.49, "Streaming",     "Entertainment", "Netflix"),
    (2, 7,  "Whole Foods Market",                 -86.32, "Groceries",     "Food",          "Whole Foods"),
    (2, 12, "Shell Oil 5512",                     -48.10, "Gas",           "Transportation","Shell"),
    (2, 15, "Spotify USA",                        -10.99, "Streaming",     "Entertainment", "Spotify"),
    (2, 19, "Blue Bottle Coffee",                  -6.75, "Coffee Shops",  "Food",          "Blue Bottle"),
    (2, 22, "City Power & Light",                 -92.40, "Utilities",     "Bills",         "City Power"),
    (1, 1,  "Payroll Deposit - Northwind Ltd",  4200.00, "Paycheck",       "Income",        "Northwind"),
    (1, 3,  "Payment to Riverside Apartments",  -1650.00, "Rent",          "Housing",       "Riverside Apartments"),
    (1, 5,  "Netflix.com",                        -15.49, "Streaming",     "Entertainment", "Netflix"),
    (1, 9,  "Trader Joe's",                       -64.18, "Groceries",     "Food",          "Trader Joe's"),
    (1, 14, "Uber Trip",                          -23.60, "Rideshare",     "Transportation","Uber"),
    (1, 15, "Spotify USA",                        -10.99, "Streaming",     "Entertainment", "Spotify"),
    (1, 18, "Freelance Invoice 1042",             850.00, "Side Income",   "Income",        "Contoso Design"),
    (1, 22, "City Power & Light",                 -88.15, "Utilities",     "Bills",         "City Power"),
    (1, 27, "Amazon Marketplace Order",          -129.99, "Shopping",      "Shopping",      "Amazon"),
    (0, 1,  "Payroll Deposit - Northwind Ltd",  4200.00, "Paycheck",       "Income",        "Northwind"),
    (0, 3,  "Payment to Riverside Apartments",  -1650.00, "Rent",          "Housing",       "Riverside Apartments"),
    (0, 5,  "Netflix.com",                        -15.49, "Streaming",     "Entertainment", "Netflix"),
    (0, 8,  "Whole Foods Market",                 -92.75, "Groceries",     "Food",          "Whole Foods"),
    (0, 10, "Direct debit Apex Gym LLC",          -39.00, "Fitness",       "Health",        "Apex Gym"),
    (0, 15, "Spotify USA",                        -10.99, "Streaming",     "Entertainment", "Spotify"),
]

DEMO_USER = {
    "guid": "USR-demo-0001",
    "name": "Sample User",
    "currencyCode": "USD",
}


def _month_date(months_ago: int, day: int) -> str:
    """Rolling date: ``months_ago`` months before the current month."""
    today = date.today()
    year, month = today.year, today.month - months_ago
    while month <= 0:
        month += 12
        year -= 1
    day = min(day, calendar.monthrange(year, month)[1])
    return f"{year}-{month:02d}-{day:02d}"


def build_demo_dataset() -> dict[str, Any]:
    transactions: dict[str, dict] = {}
    for i, (ago, day, desc, amount, cat, top, merchant) in enumerate(_DEMO_ROWS, start=1):
        guid = f"TRN-demo-{i:04d}"
        transactions[guid] = {
            "guid": guid,
            "date": _month_date(ago, day),
            "amount": amount,
            "currencyCode": "USD",
            "description": desc,
            "category": cat,
            "topLevelCategory": top,
            "type": "income" if amount > 0 else "expense",
            "merchant": merchant,
            "userGuid": DEMO_USER["guid"],
        }

    income = sum(t["amount"] for t in transactions.values() if t["amount"] > 0)
    expenses = sum(-t["amount"] for t in transactions.values() if t["amount"] < 0)
    totals = {
        "totalIncome": round(income, 2),
        "totalExpenses": round(expenses, 2),
        "net": round(income - expenses, 2),
        "transactionCount": len(transactions),
    }
    return {"user": DEMO_USER, "transactions": transactions, "totals": totals}


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


async def initialize_finance_data(
    services: FinanceServices,
    state: InitState,
    data: Optional[dict[str, Any]] = None,
) -> bool:
    """Embed and upsert the user, the totals and every transaction batch.

    Idempotent: returns ``False`` without doing anything once ``state`` is
    initialized. A failed item is logged and skipped; the rest still load.
    When every item fails, ``state`` stays uninitialized and ``False`` is
    returned so a later call can retry.
    """
    async with state.lock:
        if state.initialized:
            return False

        dataset = data if data is not None else build_demo_dataset()
        user = dataset.get("user", {})
        transactions: dict[str, dict] = dataset.get("transactions", {})
        totals = dataset.get("totals", {})

        items: list[tuple[str, str, dict[str, Any]]] = [
            ("user", json.dumps({"user": user}), {"type": "user"}),
            ("totals", json.dumps({"totals": totals}), {"type": "totals"}),
        ]
        keys = list(transactions)
        for i in range(0, len(keys), BATCH_SIZE):
            batch_keys = keys[i:i + BATCH_SIZE]
            batch = {k: transactions[k] for k in batch_keys}
            batch_index = i // BATCH_SIZE
            items.append((
                f"transactions-{batch_index}",
                json.dumps({"transactions": batch, "totals": totals}),
                {
                    "type": "transactions",
                    "batchIndex": batch_index,
                    "transactionIds": ",".join(
                        str(transactions[k].get("guid", k)) for k in batch_keys
                    ),
                },
            ))

        loaded = 0
        index_ready = False
        for vector_id, text, metadata in items:
            try:
                [embedding] = await services.llm.embed_many([text])
                if not index_ready:
                    await run_in_threadpool(services.store.ensure_index, len(embedding))
                    index_ready = True
                await run_in_threadpool(
                    services.store.upsert, [(vector_id, embedding, {"text": text, **metadata})]
                )
                loaded += 1
            except Exception as exc:
                logger.error("Error embedding %s: %s", vector_id, exc)

        if loaded == 0:
            logger.warning(
                "Finance data initialization loaded no vectors (0/%d); it will run again on the next call",
                len(items),
            )
            return False
        if loaded < len(items):
            logger.warning("Finance data partially loaded (%d/%d vectors)", loaded, len(items))
        else:
            logger.info("Finance data initialization complete (%d/%d vectors)", loaded, len(items))
        state.initialized = True
        return True
