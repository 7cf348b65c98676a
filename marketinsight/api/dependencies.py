from functools import lru_cache

from marketinsight.config import Settings, load_config
from marketinsight.services.gemini_service import GeminiClient
from marketinsight.services.insight_pipeline import InsightPipeline


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_config()


@lru_cache(maxsize=1)
def get_pipeline() -> InsightPipeline:
    """Built on first request so the app can start (and be tested) without a Gemini key."""
    settings = get_settings()
    return InsightPipeline(GeminiClient(settings.gemini), settings.pipeline)
