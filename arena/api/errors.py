"""
Mapping of domain errors onto HTTP errors.
"""

from fastapi import HTTPException

from common.exceptions import (
    AdmissionError,
    ArenaError,
    NotFoundError,
    ValidationError,
)


def to_http_exception(error: ArenaError) -> HTTPException:
    """
    Convert a domain error into an HTTPException.

    Args:
        error: Domain error raised by a business module

    Returns:
        HTTPException: 404 for missing entities, 400 for invalid input,
            403 for denied admission, 500 otherwise
    """
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, AdmissionError):
        return HTTPException(
            status_code=403,
            detail={"error": type(error).__name__, "message": str(error)}
        )
    return HTTPException(status_code=500, detail="Internal server error")
