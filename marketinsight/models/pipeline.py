from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from marketinsight.models.errors import InsightError
from marketinsight.models.stock import ChartPoint, SourceLink, StockReport


class ModelRequest(BaseModel):
    """Query handed to the model-client collaborator."""
    model_config = ConfigDict(frozen=True)

    ticker: str
    prompt: str
    grounding: bool = True  # Ask the collaborator for search grounding + citations
    window: str = "24 hours"


class RawModelResponse(BaseModel):
    """Model reply as received: free text plus citations from grounding metadata."""
    text: str = ""
    citations: List[SourceLink] = Field(default_factory=list)


class ParsedFields(BaseModel):
    """Candidate values pulled out of a raw reply, not yet validated."""
    model_config = ConfigDict(frozen=True)

    price: str
    change_text: str
    change_value: float
    analysis: str
    citations: List[SourceLink] = Field(default_factory=list)


class ValidatedFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: str
    price_value: Decimal
    change_text: str
    change_value: float
    analysis: str
    citations: List[SourceLink] = Field(default_factory=list)


class ChartSeries(BaseModel):
    model_config = ConfigDict(frozen=True)

    points: List[ChartPoint]
    degenerate: bool = False


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class PipelineOutcome(BaseModel):
    """Terminal result of one pipeline run, tagged with the caller's generation number."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: OutcomeStatus
    generation: int = 0
    report: Optional[StockReport] = None
    error: Optional[InsightError] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS
