"""Mapping of service errors to HTTP errors shared by the routers."""

from fastapi import HTTPException

from repositories.errors import StoreError
from services.errors import (
    PaymentNotFoundError,
    PaymentValidationError,
    SaleHasPaymentsError,
    SaleNotFoundError,
    SaleStatusError,
    SaleValidationError,
)


def to_http_error(error: Exception, action: str) -> HTTPException:
    if isinstance(error, (SaleNotFoundError, PaymentNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (PaymentValidationError, SaleValidationError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (SaleStatusError, SaleHasPaymentsError)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, StoreError):
        return HTTPException(status_code=502, detail=f"Failed to {action}: {error}")
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(error)}")
