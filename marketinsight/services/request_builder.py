import re

from marketinsight.models.errors import InvalidTicker
from marketinsight.models.pipeline import ModelRequest
from marketinsight.utils.logger import logger

MAX_TICKER_LENGTH = 12
TICKER_PATTERN = re.compile(r"^[A-Z0-9.\-]+$")
DEFAULT_WINDOW = "24 hours"


def normalize_ticker(raw_ticker: str) -> str:
    """Trim and upper-case a user-supplied ticker, rejecting anything malformed."""
    if not isinstance(raw_ticker, str):
        raise InvalidTicker(f"Ticker must be a string, got {type(raw_ticker).__name__}")
    ticker = raw_ticker.strip().upper()
    if not ticker:
        raise InvalidTicker("Ticker is empty")
    if len(ticker) > MAX_TICKER_LENGTH:
        raise InvalidTicker(f"Ticker '{ticker}' is longer than {MAX_TICKER_LENGTH} characters")
    if not TICKER_PATTERN.match(ticker):
        raise InvalidTicker(f"Ticker '{ticker}' contains invalid characters")
    return ticker


def build_request(ticker: str, window: str = DEFAULT_WINDOW) -> ModelRequest:
    """
    Build the grounded-search query for a ticker.
    The ticker must already be well formed; no network I/O happens here.
    """
    if not isinstance(ticker, str) or ticker != ticker.strip().upper() or not TICKER_PATTERN.match(ticker) \
            or len(ticker) > MAX_TICKER_LENGTH:
        raise InvalidTicker(f"Ticker '{ticker}' is not normalized")

    prompt = f"""
You are a market data assistant. Using Google Search, find the latest verified market data for the ticker "{ticker}".

Report:
1. The current price in the instrument's quote currency.
2. The percent change over the last {window}, with an explicit sign (e.g. "+1.25%" or "-0.80%").
3. A short qualitative analysis (2-4 sentences) of what is driving the move.

Return ONLY a valid JSON object with keys:
'price' (decimal string without currency symbol, e.g. "192.34"),
'change' (sign-prefixed percent string, e.g. "+1.25%"),
'changeValue' (the same percent as a signed number, e.g. 1.25),
'analysis' (plain text, no markdown).
Do not include any other text or markdown formatting outside the JSON structure.
    """
    logger.debug(f"Built grounded request for {ticker} (window: {window})")
    return ModelRequest(ticker=ticker, prompt=prompt.strip(), grounding=True, window=window)
