"""
Payments API Endpoints.

Endpoints for recording, editing and deleting installment payments. Every
mutation resynchronizes the parent sale's balance before responding.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_payment_service
from api.models import PaymentCreateRequest, PaymentOutcomeResponse, PaymentResponse, PaymentUpdateRequest
from api.routers.errors import to_http_error
from services.errors import BalanceSyncError
from services.payment_service import PaymentOutcome, PaymentService

router = APIRouter()


def _outcome_response(outcome: PaymentOutcome, message: str) -> PaymentOutcomeResponse:
    if outcome.sale_completed:
        message = f"{message} Sale completed."
    return PaymentOutcomeResponse(
        payment=PaymentResponse.from_payment(outcome.payment),
        remaining_balance=outcome.sync.remaining_balance,
        status=outcome.sync.status,
        message=message,
    )


def _stale_response(error: BalanceSyncError, message: str) -> JSONResponse:
    """
    The payment write succeeded but the sale's balance was not updated.

    Respond 202 so the client does not retry the payment itself.
    """
    retries = " and ".join(f"POST /api/v1/sales/{sale_id}/recompute" for sale_id in error.stale_sale_ids)
    body = PaymentOutcomeResponse(
        payment=PaymentResponse.from_payment(error.payment),
        balance_stale=True,
        stale_sale_ids=list(error.stale_sale_ids),
        message=f"{message} Balance sync failed; retry {retries}.",
    )
    return JSONResponse(status_code=202, content=body.model_dump(mode="json"))


@router.post(
    "/payments",
    response_model=PaymentOutcomeResponse,
    status_code=201,
    summary="Record Payment",
    description="Record an installment and update the sale's remaining balance and status.",
)
async def record_payment(request: PaymentCreateRequest, service: PaymentService = Depends(get_payment_service)):
    """
    Record an installment payment.

    **Rules:**
    - Amount must be greater than 0 and not exceed the live remaining balance
    - Defaulted and fully paid sales do not accept payments

    **Example request:**
    ```json
    {"sale_id": "123e4567-e89b-12d3-a456-426614174000", "amount": "57.00", "payment_method": "cash"}
    ```
    """
    try:
        outcome = await service.record_payment(
            sale_id=request.sale_id,
            amount=request.amount,
            payment_method=request.payment_method,
            notes=request.notes,
            payment_date=request.payment_date,
            created_by=request.created_by,
        )
    except BalanceSyncError as e:
        return _stale_response(e, "Payment recorded.")
    except Exception as e:
        raise to_http_error(e, "record payment")
    return _outcome_response(outcome, "Payment recorded successfully.")


@router.patch("/payments/{payment_id}", response_model=PaymentOutcomeResponse, summary="Edit Payment")
async def edit_payment(
    payment_id: UUID,
    request: PaymentUpdateRequest,
    service: PaymentService = Depends(get_payment_service),
):
    try:
        outcome = await service.edit_payment(
            payment_id,
            amount=request.amount,
            payment_date=request.payment_date,
            payment_method=request.payment_method,
            notes=request.notes,
            sale_id=request.sale_id,
        )
    except BalanceSyncError as e:
        return _stale_response(e, "Payment updated.")
    except Exception as e:
        raise to_http_error(e, "edit payment")
    return _outcome_response(outcome, "Payment updated successfully.")


@router.delete("/payments/{payment_id}", response_model=PaymentOutcomeResponse, summary="Delete Payment")
async def delete_payment(payment_id: UUID, service: PaymentService = Depends(get_payment_service)):
    """Delete a payment. A sale completed by it goes back to active."""
    try:
        outcome = await service.delete_payment(payment_id)
    except BalanceSyncError as e:
        return _stale_response(e, "Payment deleted.")
    except Exception as e:
        raise to_http_error(e, "delete payment")
    return _outcome_response(outcome, "Payment deleted successfully.")
