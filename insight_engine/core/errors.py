"""
Error taxonomy and user-friendly error payloads.
"""
from typing import Any, Dict, Optional

# Error codes
class ErrorCodes:
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    PARSE_ERROR = "PARSE_ERROR"
    EMPTY_DATASET = "EMPTY_DATASET"
    NO_RELEVANT_DATA = "NO_RELEVANT_DATA"
    ANALYSIS_ERROR = "ANALYSIS_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

# User-facing messages, one entry per code
ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.UNSUPPORTED_FORMAT: {
        "message": "We can't read this file format yet",
        "detail": "Datasets can be analysed when they are stored as CSV, JSON, GeoJSON or Excel (.xlsx).",
        "suggestion": "Export the dataset as CSV or JSON and upload it again."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "We're having trouble reading this dataset",
        "detail": "The file doesn't look like valid tabular data. It might be corrupted or use an unexpected layout.",
        "suggestion": "Check that the first row holds column names and every row has the same columns."
    },
    ErrorCodes.EMPTY_DATASET: {
        "message": "This dataset looks empty",
        "detail": "We couldn't find any rows of data in the file.",
        "suggestion": "Make sure the file was saved with its data rows included."
    },
    ErrorCodes.NO_RELEVANT_DATA: {
        "message": "No data found for your question",
        "detail": "None of the catalogued datasets could be used to answer this question.",
        "suggestion": "Try rephrasing with broader terms such as a category (health, economics, education)."
    },
    ErrorCodes.ANALYSIS_ERROR: {
        "message": "Part of the analysis could not be completed",
        "detail": "Some patterns could not be computed for this dataset.",
        "suggestion": "The remaining insights are still valid. Cleaning unusual values may unlock more of them."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Hmm, something unexpected happened",
        "detail": "We encountered an issue we weren't expecting.",
        "suggestion": "Give it another try in a moment."
    }
}

def get_error_response(error_code: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """
    Get user-friendly error response for an error code.

    Args:
        error_code: One of the ErrorCodes constants
        additional_detail: Optional additional detail to append

    Returns:
        Dictionary with code, message, detail, and suggestion
    """
    error_info = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])

    response = {
        "code": error_code,
        "message": error_info["message"],
        "detail": error_info["detail"],
        "suggestion": error_info["suggestion"]
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"

    return response


class InsightEngineError(Exception):
    """Base class for errors surfaced to callers of the engine."""

    code = ErrorCodes.UNKNOWN_ERROR

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code

    def to_response(self) -> Dict[str, str]:
        return get_error_response(self.code, str(self))


class ParseError(InsightEngineError):
    """Raised when raw input cannot be turned into a non-empty table."""

    code = ErrorCodes.PARSE_ERROR


class NoRelevantDataError(InsightEngineError):
    """
    Raised when the catalog yields no dataset for a query.

    `guidance` (a DatasetGuidance, when the composer could build one) holds
    suggested queries and refinements for the caller to show instead.
    """

    code = ErrorCodes.NO_RELEVANT_DATA

    def __init__(self, message: str, code: Optional[str] = None, guidance: Any = None):
        super().__init__(message, code)
        self.guidance = guidance
