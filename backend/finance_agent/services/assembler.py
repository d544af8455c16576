"""Visualization assembly: filter → group → label → sort → chart payload."""

import logging
import random
from typing import Optional

from ..schemas import (
    ChartDataPoint,
    ChartOptions,
    ChartParameters,
    ChartPayload,
    TransactionRecord,
    VisualizationResponse,
)
from .chart_params import compute_totals, select_chart_parameters
from .filters import apply_leniency, filter_by_keywords, filter_by_type
from .grouping import group_records
from .normalizer import capitalize_label
from .retrieval import FinanceServices, retrieve_records

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No valid transactions found."
MAX_CHART_POINTS = 20

# Synthetic padding of sparse "recurring" charts
PAD_MIN_POINTS = 3
PAD_TARGET_POINTS = 5
PAD_JITTER = 0.3


def filter_for_chart(
    query: str, records: list[TransactionRecord], params: ChartParameters
) -> list[TransactionRecord]:
    """Type filter then keyword filter.

    Each stage applies leniency against its own input; the combined result is
    checked once more against the full record set so that two stages cannot
    together shrink a large set to a near-empty chart.
    """
    filtered = filter_by_type(records, params.filter_type, query)
    filtered = filter_by_keywords(filtered, params.query_keywords)
    return apply_leniency(filtered, records)


def _pad_sparse_points(
    points: list[ChartDataPoint], rng: random.Random
) -> list[ChartDataPoint]:
    """Append jittered copies of the top point until there are 5.

    These entries are not real data; they are flagged ``synthetic=True``.
    """
    base = points[0]
    padded = list(points)
    n = 1
    while len(padded) < PAD_TARGET_POINTS:
        factor = rng.uniform(1 - PAD_JITTER, 1 + PAD_JITTER)
        padded.append(
            ChartDataPoint(
                label=f"{base.label} (est. {n})",
                value=round(base.value * factor, 2),
                date=base.date,
                synthetic=True,
            )
        )
        n += 1
    return padded


def assemble_chart(
    query: str,
    records: list[TransactionRecord],
    params: ChartParameters,
    *,
    pad_recurring: bool = False,
    rng: Optional[random.Random] = None,
) -> VisualizationResponse:
    filtered = filter_for_chart(query, records, params)
    buckets = group_records(filtered, params.data_grouping)
    if not buckets:
        return VisualizationResponse(message=NO_DATA_MESSAGE)

    points = [
        ChartDataPoint(
            label=capitalize_label(label),
            value=round(bucket.total_amount, 2),
            date=bucket.most_recent_date,
        )
        for label, bucket in buckets.items()
    ]
    points.sort(key=lambda p: p.value, reverse=True)
    points = points[:MAX_CHART_POINTS]

    if pad_recurring and len(points) < PAD_MIN_POINTS and "recurring" in query.lower():
        points = _pad_sparse_points(points, rng or random.Random())

    logger.info(
        "Chart assembled: %d records → %d filtered → %d points",
        len(records), len(filtered), len(points),
    )
    return VisualizationResponse(
        chart=ChartPayload(
            type=params.visualization_type,
            data=points,
            options=ChartOptions(
                title=params.title,
                x_axis=params.x_axis,
                y_axis=params.y_axis,
                colors=params.colors,
            ),
        )
    )


async def get_visualization_data(query: str, services: FinanceServices) -> VisualizationResponse:
    records = await retrieve_records(query, services)
    if not records:
        return VisualizationResponse(message=NO_DATA_MESSAGE)

    params = await select_chart_parameters(
        query, records, compute_totals(records), client=services.llm
    )
    return assemble_chart(query, records, params, pad_recurring=services.pad_recurring)
