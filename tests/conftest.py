import json
from datetime import datetime, timezone

import pytest

from marketinsight.models.pipeline import RawModelResponse
from marketinsight.models.stock import SourceLink

FIXED_TIME = datetime(2026, 10, 17, 14, 30, tzinfo=timezone.utc)


class FakeModelClient:
    """Stands in for the Gemini client: records requests, returns a canned reply or raises."""

    def __init__(self, response: RawModelResponse = None, error: Exception = None):
        self.response = response
        self.error = error
        self.requests = []

    async def query(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def json_reply(citations=None, **fields) -> RawModelResponse:
    return RawModelResponse(text=json.dumps(fields), citations=citations or [])


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME


@pytest.fixture
def apple_reply():
    """The canonical good reply: one valid and one malformed citation."""
    return json_reply(
        price="192.34",
        change="+1.25%",
        changeValue=1.25,
        analysis="Steady growth driven by...",
        citations=[
            SourceLink(title="Reuters - Apple shares", url="https://www.reuters.com/markets/companies/AAPL.O"),
            SourceLink(title="Broken link", url="not a valid url"),
        ],
    )
