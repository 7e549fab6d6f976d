"""
Error codes, user-facing messages and the profiler's domain exception.
"""
from typing import Dict, Optional


class EmptyDatasetError(ValueError):
    """Raised when the profiler receives no rows to analyze."""

    def __init__(self, message: str = "Empty dataset"):
        super().__init__(message)


class ErrorCodes:
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_EMPTY = "FILE_EMPTY"
    EMPTY_DATASET = "EMPTY_DATASET"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    PARSE_ERROR = "PARSE_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.FILE_TOO_LARGE: {
        "message": "The file is too large",
        "detail": "The upload exceeds the configured size limit.",
        "suggestion": "Split the file or export only the columns you need, then upload again."
    },
    ErrorCodes.FILE_EMPTY: {
        "message": "The file is empty",
        "detail": "No bytes were received for the uploaded file.",
        "suggestion": "Check that the file was saved correctly and try again."
    },
    ErrorCodes.EMPTY_DATASET: {
        "message": "No rows to analyze",
        "detail": "The file was read successfully but it does not contain any data rows.",
        "suggestion": "Make sure the file has a header row followed by at least one row of data."
    },
    ErrorCodes.INVALID_FILE_TYPE: {
        "message": "Unsupported file type",
        "detail": "Supported formats are CSV, Excel (.xlsx, .xls), JSON and SQL dumps.",
        "suggestion": "Export your data to one of the supported formats and upload it again."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "The file could not be read",
        "detail": "The content does not match the format implied by the file extension.",
        "suggestion": "Re-save the file in a supported format and check the column headers."
    },
    ErrorCodes.PROCESSING_ERROR: {
        "message": "The data could not be processed",
        "detail": "Profiling failed for this dataset.",
        "suggestion": "Remove fully empty rows or columns and try again."
    },
    ErrorCodes.RATE_LIMIT_EXCEEDED: {
        "message": "Too many requests",
        "detail": "Uploads are rate limited per client.",
        "suggestion": "Wait a minute before uploading again."
    },
    ErrorCodes.TIMEOUT: {
        "message": "Processing took too long",
        "detail": "The request exceeded the configured timeout.",
        "suggestion": "Try a smaller sample of the dataset."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Something unexpected happened",
        "detail": "The server hit an error it did not anticipate.",
        "suggestion": "Try again in a moment."
    }
}


def get_error_response(error_code: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """
    Build the structured error body for an error code.

    Unknown codes fall back to the UNKNOWN_ERROR messages but keep the
    requested code.
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
