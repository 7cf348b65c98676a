import math
import re
from decimal import Decimal, InvalidOperation
from typing import List

from pydantic import HttpUrl, TypeAdapter, ValidationError

from marketinsight.models.errors import (
    AnalysisEmpty,
    AnalysisTooLong,
    ChangeMagnitudeMismatch,
    ChangeSignMismatch,
    InvalidChangeFormat,
    InvalidPrice,
)
from marketinsight.models.pipeline import ParsedFields, ValidatedFields
from marketinsight.models.stock import SourceLink
from marketinsight.utils.logger import logger

CHANGE_TEXT_RE = re.compile(r"^[+-]\d+(\.\d+)?%$")
MAGNITUDE_TOLERANCE = 0.01
DEFAULT_MAX_ANALYSIS_CHARS = 4000

_http_url = TypeAdapter(HttpUrl)


def validate_price(price: str) -> Decimal:
    try:
        value = Decimal(price)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidPrice(f"Price {price!r} is not a decimal number")
    if not value.is_finite() or value < 0:
        raise InvalidPrice(f"Price {price!r} must be a finite non-negative number")
    return value


def validate_change(change_text: str, change_value: float):
    if not CHANGE_TEXT_RE.match(change_text):
        raise InvalidChangeFormat(f"Change {change_text!r} is not a sign-prefixed percentage")
    if not math.isfinite(change_value):
        raise ChangeMagnitudeMismatch(f"Change value {change_value} is not a finite number")

    magnitude = float(change_text[1:-1])
    # '+' requires a value >= 0 and '-' requires a value < 0.
    # "-0.00%" is the one exception: it carries no direction, so it also accepts a zero value.
    if change_text[0] == "+" and change_value < 0:
        raise ChangeSignMismatch(f"Change {change_text} disagrees with value {change_value}")
    if change_text[0] == "-" and change_value >= 0 and not (magnitude == 0 and change_value == 0):
        raise ChangeSignMismatch(f"Change {change_text} disagrees with value {change_value}")

    if abs(abs(change_value) - magnitude) > MAGNITUDE_TOLERANCE:
        raise ChangeMagnitudeMismatch(f"Change {change_text} disagrees with value {change_value}")


def is_valid_url(url: str) -> bool:
    """Absolute http(s) URL with a host."""
    try:
        _http_url.validate_python(url)
    except ValidationError:
        return False
    return True


def filter_citations(citations: List[SourceLink]) -> List[SourceLink]:
    kept = []
    for citation in citations:
        if is_valid_url(citation.url):
            kept.append(citation)
        else:
            logger.warning(f"⚠️ Dropping citation with invalid URL: {citation.url!r}")
    return kept


def validate_analysis(analysis: str, max_chars: int = DEFAULT_MAX_ANALYSIS_CHARS) -> str:
    if len(analysis) < 1 or not analysis.strip():
        raise AnalysisEmpty("Analysis text is empty")
    if len(analysis) > max_chars:
        raise AnalysisTooLong(f"Analysis is {len(analysis)} characters, limit is {max_chars}")
    return analysis


def validate_fields(fields: ParsedFields, max_analysis_chars: int = DEFAULT_MAX_ANALYSIS_CHARS) -> ValidatedFields:
    """
    Enforce the report contract on parsed fields, stopping at the first failure:
    price, change format, change sign, change magnitude, citations, analysis length.
    Invalid citation URLs are the only condition recovered here (they are dropped).
    """
    price_value = validate_price(fields.price)
    validate_change(fields.change_text, fields.change_value)
    citations = filter_citations(fields.citations)
    analysis = validate_analysis(fields.analysis, max_analysis_chars)

    return ValidatedFields(
        price=fields.price,
        price_value=price_value,
        change_text=fields.change_text,
        change_value=fields.change_value,
        analysis=analysis,
        citations=citations,
    )
