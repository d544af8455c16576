"""Chart parameter selection: one structured-output call per visualization request."""

import json
import logging

from pydantic import ValidationError

from ..schemas import ChartParameters, TransactionRecord
from .retrieval import LLMClient

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5  # records shown to the model; filtering always uses the full set

# JSON Schema enforced on the structured response
CHART_PARAMS_SCHEMA = {
    "type": "object",
    "properties": {
        "visualizationType": {
            "type": "string",
            "enum": ["bar", "line", "pie", "area", "scatter", "donut"],
        },
        "dataGrouping": {"type": "string"},
        "filterType": {
            "type": "string",
            "enum": ["all", "income_only", "expenses_only", "recurring_only", "query_specific"],
        },
        "title": {"type": "string"},
        "xAxis": {"type": "string"},
        "yAxis": {"type": "string"},
        "colors": {"type": "array", "items": {"type": "string"}},
        "queryKeywords": {"type": "array", "items": {"type": "string"}},
    },
    "required": [
        "visualizationType", "dataGrouping", "filterType",
        "title", "xAxis", "yAxis", "colors",
    ],
}


class ChartParameterError(Exception):
    """The model's chart parameters were missing, malformed or off-schema."""


def compute_totals(records: list[TransactionRecord]) -> dict:
    income = sum(r.amount for r in records if r.amount is not None and r.amount > 0)
    expenses = sum(abs(r.amount) for r in records if r.amount is not None and r.amount < 0)
    return {
        "transactionCount": len(records),
        "totalIncome": round(income, 2),
        "totalExpenses": round(expenses, 2),
    }


def build_prompt(query: str, sample: list[TransactionRecord], totals: dict) -> str:
    sample_json = json.dumps(
        [r.model_dump(by_alias=True, exclude_none=True) for r in sample]
    )
    return (
        "Based on the following user query and transaction data, determine the best "
        "visualization parameters.\n"
        f'Query: "{query}"\n'
        f"Transaction Data (sample): {sample_json}\n"
        f"Totals Data: {json.dumps(totals)}\n\n"
        "Respond ONLY with a JSON object containing:\n"
        "1. visualizationType: the best chart type (bar, line, pie, area, scatter, or donut)\n"
        "2. dataGrouping: how to group the data (by_date, by_month, by_category, by_merchant, by_type)\n"
        "3. filterType: which transactions to include "
        "(all, income_only, expenses_only, recurring_only, query_specific)\n"
        "4. title: a title for the visualization\n"
        "5. xAxis: label for the x-axis\n"
        "6. yAxis: label for the y-axis\n"
        "7. colors: array of hex color codes appropriate for this visualization\n"
        "8. queryKeywords: optional array of short keywords (merchant, category or "
        "description fragments) that identify the transactions the user asked about"
    )


async def select_chart_parameters(
    query: str,
    records: list[TransactionRecord],
    totals: dict,
    *,
    client: LLMClient,
) -> ChartParameters:
    """Ask the model for chart type, grouping, filter and labels.

    Not retried: a malformed or incomplete answer raises ``ChartParameterError``.
    """
    prompt = build_prompt(query, records[:SAMPLE_SIZE], totals)
    try:
        raw = await client.generate_structured(prompt, CHART_PARAMS_SCHEMA)
    except ValueError as exc:
        raise ChartParameterError(f"chart parameters were not valid JSON: {exc}") from exc

    try:
        params = ChartParameters.model_validate(raw)
    except ValidationError as exc:
        logger.error("Chart parameters failed validation: %s", exc)
        raise ChartParameterError(f"chart parameters failed validation: {exc}") from exc

    logger.info(
        "Chart parameters: type=%s grouping=%s filter=%s keywords=%s",
        params.visualization_type, params.data_grouping, params.filter_type, params.query_keywords,
    )
    return params
