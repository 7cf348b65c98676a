from enum import Enum


class ErrorCode(str, Enum):
    """Stable codes for every failure the insight pipeline can report."""
    INVALID_TICKER = "InvalidTicker"
    MODEL_CALL_FAILED = "ModelCallFailed"
    UNPARSEABLE_PRICE = "UnparseablePrice"
    UNPARSEABLE_CHANGE = "UnparseableChange"
    EMPTY_ANALYSIS = "EmptyAnalysis"
    INVALID_PRICE = "InvalidPrice"
    INVALID_CHANGE_FORMAT = "InvalidChangeFormat"
    CHANGE_SIGN_MISMATCH = "ChangeSignMismatch"
    CHANGE_MAGNITUDE_MISMATCH = "ChangeMagnitudeMismatch"
    ANALYSIS_TOO_LONG = "AnalysisTooLong"
    ANALYSIS_EMPTY = "AnalysisEmpty"
    # Informational only, surfaced as StockReport.chart_degenerate
    CHART_SYNTHESIS_DEGENERATE = "ChartSynthesisDegenerate"


class InsightError(Exception):
    """Base class for pipeline failures. Every instance is also usable as a value."""
    code: ErrorCode = ErrorCode.MODEL_CALL_FAILED
    retryable: bool = False

    def __init__(self, message: str, retryable: bool | None = None):
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable

    def to_dict(self) -> dict:
        return {
            "error_code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
        }

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r}, retryable={self.retryable})"


class InvalidTicker(InsightError):
    code = ErrorCode.INVALID_TICKER


class ModelCallFailed(InsightError):
    code = ErrorCode.MODEL_CALL_FAILED


# --- Response parsing ---

class ParseError(InsightError):
    """The model reply did not contain a required field."""


class UnparseablePrice(ParseError):
    code = ErrorCode.UNPARSEABLE_PRICE


class UnparseableChange(ParseError):
    code = ErrorCode.UNPARSEABLE_CHANGE


class EmptyAnalysis(ParseError):
    code = ErrorCode.EMPTY_ANALYSIS


# --- Validation ---

class ValidationFailed(InsightError):
    """A parsed field broke the report contract."""


class InvalidPrice(ValidationFailed):
    code = ErrorCode.INVALID_PRICE


class InvalidChangeFormat(ValidationFailed):
    code = ErrorCode.INVALID_CHANGE_FORMAT


class ChangeSignMismatch(ValidationFailed):
    code = ErrorCode.CHANGE_SIGN_MISMATCH


class ChangeMagnitudeMismatch(ValidationFailed):
    code = ErrorCode.CHANGE_MAGNITUDE_MISMATCH


class AnalysisTooLong(ValidationFailed):
    code = ErrorCode.ANALYSIS_TOO_LONG


class AnalysisEmpty(ValidationFailed):
    code = ErrorCode.ANALYSIS_EMPTY
