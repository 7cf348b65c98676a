from typing import List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from marketinsight.config import GeminiSettings
from marketinsight.models.errors import ModelCallFailed
from marketinsight.models.pipeline import ModelRequest, RawModelResponse
from marketinsight.models.stock import SourceLink
from marketinsight.utils.logger import logger

# HTTP statuses from the Gemini API that a caller may retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

# Transport failures below the API layer
RETRYABLE_ERRORS = (httpx.TransportError, ConnectionError, TimeoutError)

# Finish reasons that mean the answer was withheld, not lost
BLOCKED_FINISH_REASONS = {"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII", "RECITATION"}


def grounding_tool(model_name: str) -> types.Tool:
    """
    Search grounding tool for the model family.
    Gemini 1.x only takes google_search_retrieval; 2.x and later reject it and take google_search.
    """
    name = model_name.split("/")[-1]
    if name.startswith("gemini-1"):
        return types.Tool(google_search_retrieval=types.GoogleSearchRetrieval())
    return types.Tool(google_search=types.GoogleSearch())


def extract_citations(response) -> List[SourceLink]:
    """Lift {title, url} pairs from the grounding metadata, in the order Gemini lists them."""
    citations = []
    for candidate in getattr(response, "candidates", None) or []:
        metadata = getattr(candidate, "grounding_metadata", None)
        if not metadata:
            continue
        for chunk in getattr(metadata, "grounding_chunks", None) or []:
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", "") if web else ""
            if uri:
                citations.append(SourceLink(title=getattr(web, "title", "") or "", url=uri))
    return citations


def blocked_reason(response) -> Optional[str]:
    """Name of the reason the reply was blocked, or None."""
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None) if feedback else None
    if reason:
        return getattr(reason, "name", str(reason))
    for candidate in getattr(response, "candidates", None) or []:
        finish = getattr(candidate, "finish_reason", None)
        name = getattr(finish, "name", finish)
        if name in BLOCKED_FINISH_REASONS:
            return name
    return None


class GeminiClient:
    """
    Model-client collaborator: sends a ModelRequest to Gemini and returns the raw reply.
    Credentials and model options come in through the constructor.
    """

    def __init__(self, settings: GeminiSettings):
        if not settings.api_key:
            raise ValueError("Gemini API key not configured (set GEMINI_API_KEY)")
        self.settings = settings
        self.client = genai.Client(api_key=settings.api_key)
        logger.info(f"✅ Gemini client ready ({settings.model_name}, grounding={settings.grounding})")

    def generation_config(self, grounding: bool) -> types.GenerateContentConfig:
        tools = [grounding_tool(self.settings.model_name)] if grounding and self.settings.grounding else None
        return types.GenerateContentConfig(
            temperature=self.settings.temperature,
            max_output_tokens=self.settings.max_output_tokens,
            tools=tools,
        )

    async def query(self, request: ModelRequest) -> RawModelResponse:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.model_name,
                contents=request.prompt,
                config=self.generation_config(request.grounding),
            )
        except genai_errors.APIError as e:
            retryable = e.code in RETRYABLE_STATUS_CODES
            logger.error(f"❌ Gemini API error {e.code} for {request.ticker}: {e}", exc_info=True)
            raise ModelCallFailed(f"Gemini API call failed: {e}", retryable=retryable) from e
        except RETRYABLE_ERRORS as e:
            logger.error(f"❌ Gemini transient error for {request.ticker}: {e}", exc_info=True)
            raise ModelCallFailed(f"Gemini is temporarily unavailable: {e}", retryable=True) from e

        text = response.text.strip() if response.text else ""
        if not text:
            reason = blocked_reason(response)
            if reason:
                logger.error(f"❌ Gemini withheld the answer for {request.ticker}: {reason}")
                raise ModelCallFailed(f"Gemini returned no usable text: blocked ({reason})", retryable=False)
            logger.error(f"❌ Gemini returned empty response for {request.ticker}")
            raise ModelCallFailed("Gemini returned empty response", retryable=True)

        citations = extract_citations(response)
        logger.info(f"✅ Gemini response received for {request.ticker} ({len(citations)} citations)")
        return RawModelResponse(text=text, citations=citations)
