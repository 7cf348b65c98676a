# search_session.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from marketinsight.models.pipeline import PipelineOutcome
from marketinsight.models.stock import StockReport
from marketinsight.utils.logger import logger


class LoadingStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class LoadingState(BaseModel):
    status: LoadingStatus = LoadingStatus.IDLE
    message: Optional[str] = None


class SearchSession:
    """
    Caller-side state for one user's searches.
    Each search gets a new generation number; outcomes from older searches are discarded
    so a slow stale run never overwrites a newer result.
    """

    def __init__(self):
        self.generation = 0
        self.state = LoadingState()
        self.report: Optional[StockReport] = None

    def begin(self) -> int:
        self.generation += 1
        self.state = LoadingState(status=LoadingStatus.LOADING)
        self.report = None
        return self.generation

    def accept(self, outcome: PipelineOutcome) -> bool:
        if outcome.generation != self.generation:
            logger.info(f"Discarding stale outcome (generation {outcome.generation}, current {self.generation})")
            return False
        if outcome.ok:
            self.report = outcome.report
            self.state = LoadingState(status=LoadingStatus.SUCCESS)
        else:
            self.report = None
            self.state = LoadingState(status=LoadingStatus.ERROR, message=outcome.error.message)
        return True

    async def search(self, pipeline, ticker: str) -> bool:
        """Run one search through `pipeline`; returns False when a newer search superseded it."""
        generation = self.begin()
        outcome = await pipeline.run(ticker, generation=generation)
        return self.accept(outcome)
