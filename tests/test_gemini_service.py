from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from google.genai import errors as genai_errors
from google.genai import types

from marketinsight.config import GeminiSettings
from marketinsight.models.errors import ModelCallFailed
from marketinsight.models.pipeline import ModelRequest
from marketinsight.services.gemini_service import GeminiClient, extract_citations, grounding_tool

REQUEST = ModelRequest(ticker="AAPL", prompt="price please")


def chunk(uri, title):
    return SimpleNamespace(web=SimpleNamespace(uri=uri, title=title))


def gemini_response(text, chunks=(), finish_reason=None, block_reason=None):
    metadata = SimpleNamespace(grounding_chunks=list(chunks))
    candidate = SimpleNamespace(grounding_metadata=metadata, finish_reason=finish_reason)
    feedback = SimpleNamespace(block_reason=block_reason) if block_reason else None
    return SimpleNamespace(text=text, candidates=[candidate], prompt_feedback=feedback)


def api_error(cls, code, message):
    return cls(code, {"error": {"code": code, "message": message}})


@pytest.fixture
def mock_genai():
    with patch("marketinsight.services.gemini_service.genai") as genai:
        yield genai


def make_client(mock_genai, response=None, error=None, **settings):
    models = mock_genai.Client.return_value.aio.models
    models.generate_content = AsyncMock(return_value=response, side_effect=error)
    return GeminiClient(GeminiSettings(api_key="test-key", **settings)), models


def test_client_configures_sdk_from_settings(mock_genai):
    client, _ = make_client(mock_genai, model_name="gemini-test", temperature=0.2, max_output_tokens=512)
    mock_genai.Client.assert_called_once_with(api_key="test-key")
    config = client.generation_config(grounding=False)
    assert config.temperature == 0.2
    assert config.max_output_tokens == 512
    assert config.tools is None


def test_client_requires_api_key(mock_genai):
    with pytest.raises(ValueError):
        GeminiClient(GeminiSettings(api_key=None))


@pytest.mark.parametrize("model_name", ["gemini-2.0-flash", "gemini-2.5-pro", "models/gemini-2.0-flash"])
def test_current_models_ground_with_google_search(model_name):
    tool = grounding_tool(model_name)
    assert tool.google_search is not None
    assert tool.google_search_retrieval is None


@pytest.mark.parametrize("model_name", ["gemini-1.5-flash", "models/gemini-1.5-pro"])
def test_legacy_models_ground_with_search_retrieval(model_name):
    tool = grounding_tool(model_name)
    assert tool.google_search_retrieval is not None
    assert tool.google_search is None


@pytest.mark.asyncio
async def test_query_returns_text_and_citations(mock_genai):
    response = gemini_response(
        '  {"price": "192.34"}  ',
        [chunk("https://www.reuters.com/a", "Reuters"), SimpleNamespace(web=None), chunk("https://cnbc.com/b", None)],
    )
    client, models = make_client(mock_genai, response)
    raw = await client.query(REQUEST)

    models.generate_content.assert_awaited_once()
    kwargs = models.generate_content.await_args.kwargs
    assert kwargs["model"] == "gemini-2.0-flash"
    assert kwargs["contents"] == "price please"
    assert kwargs["config"].tools == [types.Tool(google_search=types.GoogleSearch())]
    assert raw.text == '{"price": "192.34"}'
    assert [(c.title, c.url) for c in raw.citations] == [
        ("Reuters", "https://www.reuters.com/a"),
        ("", "https://cnbc.com/b"),
    ]


@pytest.mark.asyncio
async def test_grounding_can_be_disabled(mock_genai):
    client, models = make_client(mock_genai, gemini_response("ok"), grounding=False)
    await client.query(REQUEST)
    assert models.generate_content.await_args.kwargs["config"].tools is None


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    api_error(genai_errors.ServerError, 503, "overloaded"),
    api_error(genai_errors.ServerError, 500, "internal"),
    api_error(genai_errors.ClientError, 429, "quota"),
    httpx.ConnectTimeout("slow"),
    ConnectionError("reset"),
])
async def test_transient_errors_are_retryable(mock_genai, error):
    client, _ = make_client(mock_genai, error=error)
    with pytest.raises(ModelCallFailed) as excinfo:
        await client.query(REQUEST)
    assert excinfo.value.retryable is True


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    api_error(genai_errors.ClientError, 403, "bad key"),
    api_error(genai_errors.ClientError, 400, "Search Grounding is not supported"),
])
async def test_permanent_errors_are_not_retryable(mock_genai, error):
    client, _ = make_client(mock_genai, error=error)
    with pytest.raises(ModelCallFailed) as excinfo:
        await client.query(REQUEST)
    assert excinfo.value.retryable is False


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    gemini_response(None, finish_reason=types.FinishReason.SAFETY),
    gemini_response(None, block_reason=types.BlockedReason.SAFETY),
])
async def test_blocked_response(mock_genai, response):
    client, _ = make_client(mock_genai, response)
    with pytest.raises(ModelCallFailed) as excinfo:
        await client.query(REQUEST)
    assert excinfo.value.retryable is False


@pytest.mark.asyncio
async def test_empty_response(mock_genai):
    client, _ = make_client(mock_genai, gemini_response("", finish_reason=types.FinishReason.STOP))
    with pytest.raises(ModelCallFailed) as excinfo:
        await client.query(REQUEST)
    assert excinfo.value.retryable is True


def test_extract_citations_without_metadata():
    response = SimpleNamespace(candidates=[SimpleNamespace(grounding_metadata=None)])
    assert extract_citations(response) == []
    assert extract_citations(SimpleNamespace()) == []
