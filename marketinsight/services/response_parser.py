"""
Pure extraction of report fields from a model reply.

The reply is either a JSON object (optionally wrapped in a ```json fence) or
free prose. Each field has its own narrow token contract and its own failure:
no price -> UnparseablePrice, no signed percent -> UnparseableChange, nothing
left to read -> EmptyAnalysis. Nothing here touches the network or uses
randomness, so identical input always gives identical output.
"""
import json
import math
import re
from decimal import Decimal
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from marketinsight.models.errors import EmptyAnalysis, UnparseableChange, UnparseablePrice
from marketinsight.models.pipeline import ParsedFields, RawModelResponse
from marketinsight.models.stock import SourceLink
from marketinsight.utils.logger import logger

CURRENCY_SYMBOLS = "$€£¥"
NUMBER = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"
# Prices may come back in scientific notation ("1.9234e2"); a price token never runs into more digits
PRICE_NUMBER = rf"{NUMBER}(?:[eE][+-]?\d+)?(?!\d|[.,]\d|[eE][+-]?\d)"
NOT_A_PERCENT = r"(?![\d.,]*\s*%)"

FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

LABELED_PRICE_RE = re.compile(
    rf"\b(?:current\s+)?price\b[^\S\n]*(?:is[^\S\n]+)?[:=]?[^\S\n]*"
    rf"(?P<sign>-)?[{CURRENCY_SYMBOLS}]?[^\S\n]*(?P<number>{PRICE_NUMBER}){NOT_A_PERCENT}",
    re.IGNORECASE,
)
CURRENCY_PRICE_RE = re.compile(rf"[{CURRENCY_SYMBOLS}][^\S\n]*(?P<number>{PRICE_NUMBER}){NOT_A_PERCENT}")
PRICE_VALUE_RE = re.compile(rf"(?<![\d.,])(?P<sign>-)?[{CURRENCY_SYMBOLS}]?\s*(?P<number>{PRICE_NUMBER})")

CHANGE_RE = re.compile(
    r"(?:\b(?:percent(?:age)?\s+)?change\b[^\S\n]*[:=]?[^\S\n]*)?"
    r"\(?(?<![\w.])(?P<sign>[+-])[^\S\n]?(?P<number>\d+(?:\.\d+)?)[^\S\n]?%\)?",
    re.IGNORECASE,
)
PERCENT_VALUE_RE = re.compile(r"(?P<sign>[+-])?\s?(?P<number>\d+(?:\.\d+)?)\s?%")

CITATION_MARKER_RE = re.compile(r"[^\S\n]*\[\s*\d+(?:\s*[,\-–]\s*\d+)*\s*\]")
ANALYSIS_LABEL_RE = re.compile(r"^\s*(?:analysis|summary)\s*:\s*", re.IGNORECASE | re.MULTILINE)
EMPTY_BRACKETS_RE = re.compile(r"\(\s*\)|\[\s*\]")
ORPHAN_PUNCTUATION_RE = re.compile(r"(?:^|\s)[,;.:|\-–]+(?=\s|$)")

PRICE_KEYS = ("price", "currentPrice", "current_price")
CHANGE_KEYS = ("change", "changePercent", "change_percent")
CHANGE_VALUE_KEYS = ("changeValue", "change_value")
ANALYSIS_KEYS = ("analysis", "summary")


def _normalize_signs(text: str) -> str:
    # Unicode minus and plus variants the model sometimes emits
    return text.replace("−", "-").replace("＋", "+")


def _first_key(data: dict, keys: Iterable[str]):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _load_json_object(text: str) -> Optional[dict]:
    """Return the reply's JSON object, or None when the reply is prose."""
    # Remove markdown code fences if present (e.g., ```json ... ```)
    match = FENCE_RE.match(text)
    body = match.group(1).strip() if match else text
    candidate = JSON_OBJECT_RE.search(body)
    if not candidate:
        return None
    try:
        data = json.loads(candidate.group(0), parse_float=Decimal)
    except json.JSONDecodeError as e:
        logger.debug(f"Reply contains braces but no valid JSON ({e}); scanning as prose")
        return None
    if not isinstance(data, dict):
        return None
    if _first_key(data, PRICE_KEYS + CHANGE_KEYS) is None:
        return None
    return data


def clean_analysis(text: str) -> str:
    """Strip citation markers, labels and leftover punctuation; collapse whitespace."""
    text = CITATION_MARKER_RE.sub("", text)
    text = ANALYSIS_LABEL_RE.sub("", text)
    text = EMPTY_BRACKETS_RE.sub(" ", text)
    text = re.sub(r"\s+", " ", text)
    text = ORPHAN_PUNCTUATION_RE.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def collect_citations(citations: Iterable[SourceLink]) -> List[SourceLink]:
    """First-seen order, one entry per URL. Titles fall back to the URL's host."""
    seen = set()
    collected = []
    for citation in citations:
        url = (citation.url or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)
        title = (citation.title or "").strip() or urlparse(url).netloc or url
        collected.append(SourceLink(title=title, url=url))
    return collected


# --- Price ---

def _plain_number(value) -> str:
    """Positional notation without thousands separators: "1,020.10" -> "1020.10", "1.9234e2" -> "192.34"."""
    if isinstance(value, str):
        value = Decimal(value.replace(",", ""))
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _price_from_value(value) -> str:
    if isinstance(value, bool):
        raise UnparseablePrice(f"Price field is not numeric: {value!r}")
    if isinstance(value, (int, Decimal)):
        return _plain_number(value)
    if isinstance(value, str):
        match = PRICE_VALUE_RE.search(_normalize_signs(value))
        if match:
            return (match.group("sign") or "") + _plain_number(match.group("number"))
    raise UnparseablePrice(f"Price field is not numeric: {value!r}")


def locate_price(text: str) -> re.Match:
    match = LABELED_PRICE_RE.search(text) or CURRENCY_PRICE_RE.search(text)
    if not match:
        raise UnparseablePrice("No price found in model response")
    return match


def _price_from_match(match: re.Match) -> str:
    sign = match.groupdict().get("sign") or ""
    return sign + _plain_number(match.group("number"))


# --- Change ---

def _change_text_from_value(value) -> str:
    if isinstance(value, bool):
        raise UnparseableChange(f"Change field is not a percentage: {value!r}")
    if isinstance(value, (int, Decimal)):
        # -0.0 has no direction and is written as "+0.0%"
        sign = "-" if value < 0 else "+"
        return f"{sign}{_plain_number(abs(value))}%"
    if isinstance(value, str):
        text = _normalize_signs(value).strip()
        match = PERCENT_VALUE_RE.search(text)
        if match and match.group("sign"):
            return f"{match.group('sign')}{match.group('number')}%"
        if match:
            # Unsigned: passed on as written for the validator to reject
            return text
    raise UnparseableChange(f"Change field is not a percentage: {value!r}")


def _value_from_change_text(change_text: str) -> float:
    match = PERCENT_VALUE_RE.search(change_text)
    if not match:
        raise UnparseableChange(f"No percent value in change text {change_text!r}")
    return float((match.group("sign") or "") + match.group("number"))


def _parse_change_value(value) -> float:
    if isinstance(value, bool):
        raise UnparseableChange(f"Change value is not numeric: {value!r}")
    number = None
    if isinstance(value, (int, Decimal, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(_normalize_signs(value).strip().rstrip("%").strip())
        except ValueError:
            pass
    # JSON NaN/Infinity literals and strings like "nan" parse as floats but are not percentages
    if number is None or not math.isfinite(number):
        raise UnparseableChange(f"Change value is not numeric: {value!r}")
    return number


def locate_change(text: str) -> re.Match:
    match = CHANGE_RE.search(text)
    if not match:
        raise UnparseableChange("No signed percent change found in model response")
    return match


# --- Entry points ---

def _parse_json(data: dict, citations: List[SourceLink]) -> ParsedFields:
    price_value = _first_key(data, PRICE_KEYS)
    if price_value is None:
        raise UnparseablePrice("Price field missing from model response")
    price = _price_from_value(price_value)

    change_field = _first_key(data, CHANGE_KEYS)
    if change_field is None:
        raise UnparseableChange("Change field missing from model response")
    change_text = _change_text_from_value(change_field)

    raw_change_value = _first_key(data, CHANGE_VALUE_KEYS)
    if raw_change_value is None:
        change_value = _value_from_change_text(change_text)
    else:
        change_value = _parse_change_value(raw_change_value)

    analysis_field = _first_key(data, ANALYSIS_KEYS)
    analysis = clean_analysis(analysis_field) if isinstance(analysis_field, str) else ""
    if not analysis:
        raise EmptyAnalysis("Analysis text missing from model response")

    return ParsedFields(price=price, change_text=change_text, change_value=change_value,
                        analysis=analysis, citations=citations)


def _parse_prose(text: str, citations: List[SourceLink]) -> ParsedFields:
    price_match = locate_price(text)
    price = _price_from_match(price_match)

    # Search for the change outside the price token so one number can't be read twice
    masked = text[:price_match.start()] + " " * (price_match.end() - price_match.start()) + text[price_match.end():]
    change_match = locate_change(masked)
    change_text = f"{change_match.group('sign')}{change_match.group('number')}%"
    change_value = float(change_match.group("sign") + change_match.group("number"))

    spans = sorted([price_match.span(), change_match.span()])
    remainder = text
    for start, end in reversed(spans):
        remainder = remainder[:start] + " " + remainder[end:]
    analysis = clean_analysis(remainder)
    if not analysis:
        raise EmptyAnalysis("No analysis text left after extracting price and change")

    return ParsedFields(price=price, change_text=change_text, change_value=change_value,
                        analysis=analysis, citations=citations)


def parse_response(raw: RawModelResponse) -> ParsedFields:
    """Extract price, change, analysis and citations from a raw model reply."""
    text = _normalize_signs((raw.text or "").strip())
    citations = collect_citations(raw.citations)

    data = _load_json_object(text)
    if data is not None:
        logger.debug("Parsing model response as JSON")
        return _parse_json(data, citations)

    logger.debug("Parsing model response as prose")
    return _parse_prose(text, citations)
