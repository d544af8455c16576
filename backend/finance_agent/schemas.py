from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .services.normalizer import coerce_amount


# ─────────────────────────────────────────────────────────────────────────────
# Retrieval
# ─────────────────────────────────────────────────────────────────────────────


class RetrievalHit(BaseModel):
    """One nearest-neighbour match: similarity score plus ``metadata.text``."""

    id: Optional[str] = None
    score: Optional[float] = None
    text: Optional[str] = None


class TransactionRecord(BaseModel):
    """A transaction parsed out of a stored JSON batch.

    Keys arrive camelCase (``currencyCode``, ``topLevelCategory`` …) and are
    accepted as aliases. ``date`` is the only mandatory field; anything else
    the upstream JSON omits stays ``None``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date: str
    amount: Optional[float] = None
    currency_code: Optional[str] = Field(default=None, alias="currencyCode")
    description: Optional[str] = None
    category: Optional[str] = None
    top_level_category: Optional[str] = Field(default=None, alias="topLevelCategory")
    type: Optional[str] = None
    merchant: Optional[str] = None
    user_guid: Optional[str] = Field(default=None, alias="userGuid")
    relevance_score: Optional[float] = Field(default=None, alias="relevanceScore")

    @field_validator("date", mode="before")
    @classmethod
    def _require_date(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("transaction has no date")
        return v.strip()

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> Optional[float]:
        return coerce_amount(v)

    @field_validator(
        "currency_code", "description", "category", "top_level_category",
        "type", "merchant", "user_guid",
        mode="before",
    )
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Chart parameters (structured-generation output)
# ─────────────────────────────────────────────────────────────────────────────

VisualizationType = Literal["bar", "line", "pie", "area", "scatter", "donut"]
FilterType = Literal["all", "income_only", "expenses_only", "recurring_only", "query_specific"]


class ChartParameters(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    visualization_type: VisualizationType = Field(alias="visualizationType")
    data_grouping: str = Field(alias="dataGrouping")
    filter_type: FilterType = Field(alias="filterType")
    title: str
    x_axis: str = Field(alias="xAxis")
    y_axis: str = Field(alias="yAxis")
    colors: list[str]
    query_keywords: Optional[list[str]] = Field(default=None, alias="queryKeywords")


# ─────────────────────────────────────────────────────────────────────────────
# Chart payload
# ─────────────────────────────────────────────────────────────────────────────


class ChartDataPoint(BaseModel):
    label: str
    value: float
    date: str
    # True only for padded entries that do not come from real transactions
    synthetic: bool = False


class ChartOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    x_axis: str = Field(alias="xAxis")
    y_axis: str = Field(alias="yAxis")
    colors: list[str]


class ChartPayload(BaseModel):
    type: VisualizationType
    data: list[ChartDataPoint]
    options: ChartOptions


class VisualizationResponse(BaseModel):
    chart: Optional[ChartPayload] = None
    message: Optional[str] = None


class SummaryResponse(BaseModel):
    summary: str


# ─────────────────────────────────────────────────────────────────────────────
# HTTP bodies
# ─────────────────────────────────────────────────────────────────────────────


class QueryRequest(BaseModel):
    query: str = Field(min_length=1, max_length=2000)


class ToolCallSummary(BaseModel):
    id: int
    name: str
    summary: str


class AgentResponse(BaseModel):
    data: Any = None
    answer: str
    tools_called: list[ToolCallSummary]


class VisualizeEnvelope(BaseModel):
    """``data`` is the chart payload itself; ``message`` is set only when there is no chart."""

    data: Optional[ChartPayload] = None
    message: Optional[str] = None

    @classmethod
    def from_result(cls, result: VisualizationResponse) -> "VisualizeEnvelope":
        return cls(data=result.chart, message=result.message)


class HealthResponse(BaseModel):
    status: str
    version: str
