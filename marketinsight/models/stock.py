from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SourceLink(BaseModel):
    """A grounding citation attached to the model's answer."""
    model_config = ConfigDict(frozen=True)

    title: str  # Page title reported by the search grounding
    url: str  # Absolute http(s) URL


class ChartPoint(BaseModel):
    """One point of the synthetic trend; `time` is a relative label, not a timestamp."""
    model_config = ConfigDict(frozen=True)

    time: str  # e.g. "-4h", "now"
    value: float


class StockReport(BaseModel):
    """
    Validated market report for one ticker.
    `chart_data` is a synthetic visual approximation derived from price and change,
    not historical market data.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    ticker: str
    price: str  # Decimal string, e.g. "192.34"
    change_text: str = Field(alias="change")  # e.g. "+1.25%"
    change_value: float  # Signed percent matching change_text
    analysis: str
    sources: List[SourceLink] = Field(default_factory=list)
    last_updated: datetime  # Pipeline execution time (UTC)
    chart_data: List[ChartPoint]
    chart_degenerate: bool = False  # True when a total loss flattened the chart
