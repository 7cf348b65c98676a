from fastapi import APIRouter, Depends, HTTPException

from marketinsight.api.dependencies import get_pipeline
from marketinsight.models.errors import InsightError, InvalidTicker, ModelCallFailed
from marketinsight.models.stock import StockReport
from marketinsight.utils.logger import logger

router = APIRouter(
    prefix="/insights",
    responses={
        422: {"description": "Invalid ticker"},
        502: {"description": "Model reply could not be turned into a report"},
        503: {"description": "Model temporarily unavailable"},
    },
)


def status_for(error: InsightError) -> int:
    if isinstance(error, InvalidTicker):
        return 422
    if isinstance(error, ModelCallFailed) and error.retryable:
        return 503
    return 502


@router.get("/{ticker}", response_model=StockReport)
async def get_insight(ticker: str, pipeline=Depends(get_pipeline)):
    """
    Grounded market report for a ticker (e.g. AAPL, BTC-USD).
    `chartData` is a synthetic trend, not historical prices.
    """
    logger.info(f"📡 Received insight request for: {ticker}")
    try:
        report = await pipeline.generate(ticker)
    except InsightError as e:
        logger.warning(f"❌ Insight request for {ticker!r} failed: {e.code.value}")
        raise HTTPException(status_code=status_for(e), detail=e.to_dict())
    return report
