from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from marketinsight.config import PipelineSettings
from marketinsight.models.errors import InsightError, ModelCallFailed
from marketinsight.models.pipeline import ModelRequest, OutcomeStatus, PipelineOutcome, RawModelResponse
from marketinsight.models.stock import StockReport
from marketinsight.services.chart_synthesizer import ChartSynthesizer
from marketinsight.services.request_builder import build_request, normalize_ticker
from marketinsight.services.response_parser import parse_response
from marketinsight.services.validator import validate_fields
from marketinsight.utils.logger import logger


class ModelClient(Protocol):
    async def query(self, request: ModelRequest) -> RawModelResponse:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InsightPipeline:
    """
    ticker -> request -> model call -> parse -> validate -> chart -> StockReport.

    Holds only read-only collaborators, so one instance can serve concurrent runs.
    Any failure surfaces as a typed InsightError; a partial report is never returned.
    """

    def __init__(self, client: ModelClient, settings: Optional[PipelineSettings] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.client = client
        self.settings = settings or PipelineSettings()
        self.synthesizer = ChartSynthesizer(
            points=self.settings.chart_points,
            interval_hours=self.settings.chart_interval_hours,
        )
        self.clock = clock

    async def generate(self, raw_ticker: str) -> StockReport:
        ticker = normalize_ticker(raw_ticker)
        request = build_request(ticker, window=self.settings.change_window)

        logger.info(f"📡 Requesting grounded market insight for {ticker}")
        try:
            raw = await self.client.query(request)
        except ModelCallFailed:
            raise
        except Exception as e:
            logger.error(f"❌ Model client failed for {ticker}: {e}", exc_info=True)
            raise ModelCallFailed(f"Model call failed: {e}", retryable=bool(getattr(e, "retryable", False))) from e

        return self.assemble(ticker, raw)

    def assemble(self, ticker: str, raw: RawModelResponse) -> StockReport:
        """Parse, validate and chart a raw reply. Deterministic apart from `last_updated`."""
        fields = parse_response(raw)
        validated = validate_fields(fields, max_analysis_chars=self.settings.analysis_max_chars)
        series = self.synthesizer.synthesize(ticker, validated.price_value, validated.change_value)

        report = StockReport(
            ticker=ticker,
            price=validated.price,
            change_text=validated.change_text,
            change_value=validated.change_value,
            analysis=validated.analysis,
            sources=validated.citations,
            last_updated=self.clock(),
            chart_data=series.points,
            chart_degenerate=series.degenerate,
        )
        logger.info(f"✅ Report ready for {ticker}: {report.price} ({report.change_text}), "
                    f"{len(report.sources)} sources")
        return report

    async def run(self, raw_ticker: str, generation: int = 0) -> PipelineOutcome:
        """Like generate(), but every InsightError comes back as a value tagged with `generation`."""
        try:
            report = await self.generate(raw_ticker)
        except InsightError as e:
            logger.warning(f"⚠️ Insight pipeline failed for {raw_ticker!r}: {e.code.value} - {e.message}")
            return PipelineOutcome(status=OutcomeStatus.ERROR, generation=generation, error=e)
        return PipelineOutcome(status=OutcomeStatus.SUCCESS, generation=generation, report=report)
