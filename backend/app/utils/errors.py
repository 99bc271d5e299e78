from typing import Dict
import logging

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Build the ``{"message", "field_errors"}`` HTTP error used by the calendar routes."""
    logger.warning("Request rejected: %s", message, extra={"field_errors": field_errors})
    return HTTPException(status_code=code, detail={"message": message, "field_errors": field_errors})
