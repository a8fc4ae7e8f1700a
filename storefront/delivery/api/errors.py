# storefront/delivery/api/errors.py
import logging
import traceback

from fastapi import HTTPException, status

from storefront.domain.errors import (
    GenerationTimeoutError,
    NetworkError,
    NotFoundError,
    SignatureError,
    StorefrontError,
    ValidationError,
)

logger = logging.getLogger("uvicorn.error")

STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (SignatureError, status.HTTP_400_BAD_REQUEST),
    (GenerationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (NetworkError, status.HTTP_502_BAD_GATEWAY),
)


def to_http(exc: Exception, context: str) -> HTTPException:
    """Map a failure to the HTTP error the storefront UI expects."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, StorefrontError):
        for error_type, code in STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                logger.warning(f"[{context}] {type(exc).__name__}: {exc}")
                return HTTPException(status_code=code, detail=str(exc))
    logger.error(f"[{context}] Unexpected error: {exc}\n{traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error.",
    )
