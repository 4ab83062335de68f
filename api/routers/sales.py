"""
Sales API Endpoints.

Endpoints for recording sales, changing their terms, and reconciling their
balances with the payment ledger.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse

from api.dependencies import get_engine, get_payment_service, get_sale_service
from api.models import (
    PaymentResponse,
    RecomputeAllResponse,
    SaleCreateRequest,
    SaleListResponse,
    SaleResponse,
    SaleUpdateRequest,
    SyncResponse,
)
from api.routers.errors import to_http_error
from domain.sale import SaleStatus
from repositories.stores import SaleFilter
from services.balance_service import BalanceReconciliationEngine, outstanding_total
from services.errors import BalanceSyncError
from services.payment_service import PaymentService
from services.sale_service import SaleService, SaleTermsUpdate

router = APIRouter()


def _stale_response(error: BalanceSyncError, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=202,
        content={
            "sale_id": str(error.sale_id),
            "balance_stale": True,
            "detail": f"{message} Retry POST /api/v1/sales/{error.sale_id}/recompute.",
        },
    )


@router.get(
    "/sales",
    response_model=SaleListResponse,
    summary="List Sales",
    description="List sales, newest first, with live balances derived from the payment ledger.",
)
async def list_sales(
    status: Optional[SaleStatus] = Query(None),
    customer_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: Optional[int] = Query(None, gt=0, le=1000),
    live: bool = Query(True, description="Derive balances from payments instead of the stored snapshot"),
    service: SaleService = Depends(get_sale_service),
):
    """
    List sales.

    With `live=true` (default) every balance is derived from the payment
    ledger in one batched query. If that query fails, the stored balances are
    returned instead of an error.
    """
    try:
        sales = await service.list_sales(
            SaleFilter(
                status=status,
                customer_id=customer_id,
                date_from=date_from,
                date_to=date_to,
                limit=limit,
            ),
            live=live,
        )
    except Exception as e:
        raise to_http_error(e, "list sales")

    return SaleListResponse(
        items=[SaleResponse.from_sale(sale) for sale in sales],
        total_count=len(sales),
        outstanding_total=outstanding_total(sales),
    )


@router.post(
    "/sales",
    response_model=SaleResponse,
    status_code=201,
    summary="Record Sale",
)
async def create_sale(request: SaleCreateRequest, service: SaleService = Depends(get_sale_service)):
    """
    Record a credit sale.

    Total = selling price x quantity + service charge (once per sale).
    Opening balance = total - initial payment.
    """
    try:
        sale = await service.create_sale(
            customer_id=request.customer_id,
            product_id=request.product_id,
            quantity=request.quantity,
            selling_price=request.selling_price,
            initial_payment=request.initial_payment,
            service_charge=request.service_charge,
            sale_date=request.sale_date,
            created_by=request.created_by,
        )
    except Exception as e:
        raise to_http_error(e, "record sale")
    return SaleResponse.from_sale(sale)


@router.post(
    "/sales/recompute",
    response_model=RecomputeAllResponse,
    summary="Recompute All Balances",
)
async def recompute_all(
    status: Optional[SaleStatus] = Query(None),
    engine: BalanceReconciliationEngine = Depends(get_engine),
):
    """Recompute and persist the balance of every sale (optionally one status only)."""
    try:
        report = await engine.recompute_all(SaleFilter(status=status))
    except Exception as e:
        raise to_http_error(e, "recompute balances")
    return RecomputeAllResponse(
        synced=len(report.synced),
        corrected=len(report.corrected),
        failures={str(sale_id): message for sale_id, message in report.failures.items()},
    )


@router.get("/sales/{sale_id}", response_model=SaleResponse, summary="Get Sale")
async def get_sale(
    sale_id: UUID,
    live: bool = Query(True),
    service: SaleService = Depends(get_sale_service),
):
    try:
        sale = await service.get_sale(sale_id, live=live)
    except Exception as e:
        raise to_http_error(e, "get sale")
    return SaleResponse.from_sale(sale)


@router.patch("/sales/{sale_id}", response_model=SyncResponse, summary="Edit Sale Terms")
async def edit_sale(
    sale_id: UUID,
    request: SaleUpdateRequest,
    service: SaleService = Depends(get_sale_service),
):
    """
    Change quantity, total, initial payment or date, then resynchronize the
    balance. Returns 202 with `balance_stale` if the terms were saved but the
    balance could not be updated.
    """
    try:
        result = await service.edit_sale_terms(sale_id, SaleTermsUpdate(**request.model_dump()))
    except BalanceSyncError as e:
        return _stale_response(e, "Sale terms saved, balance sync failed.")
    except Exception as e:
        raise to_http_error(e, "edit sale")
    return SyncResponse.from_result(result)


@router.post("/sales/{sale_id}/recompute", response_model=SyncResponse, summary="Recompute Balance")
async def recompute_sale(sale_id: UUID, engine: BalanceReconciliationEngine = Depends(get_engine)):
    """Recompute one sale's balance from its payments and store it. Idempotent."""
    try:
        result = await engine.recompute_and_persist(sale_id)
    except BalanceSyncError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        raise to_http_error(e, "recompute balance")
    return SyncResponse.from_result(result)


@router.post("/sales/{sale_id}/default", response_model=SaleResponse, summary="Mark Sale Defaulted")
async def mark_defaulted(sale_id: UUID, service: SaleService = Depends(get_sale_service)):
    try:
        sale = await service.mark_sale_defaulted(sale_id)
    except Exception as e:
        raise to_http_error(e, "mark sale defaulted")
    return SaleResponse.from_sale(sale)


@router.post("/sales/{sale_id}/reinstate", response_model=SyncResponse, summary="Reinstate Defaulted Sale")
async def reinstate(sale_id: UUID, service: SaleService = Depends(get_sale_service)):
    try:
        result = await service.reinstate_sale(sale_id)
    except BalanceSyncError as e:
        return _stale_response(e, "Sale reinstated, balance sync failed.")
    except Exception as e:
        raise to_http_error(e, "reinstate sale")
    return SyncResponse.from_result(result)


@router.delete("/sales/{sale_id}", status_code=204, summary="Delete Sale")
async def delete_sale(sale_id: UUID, service: SaleService = Depends(get_sale_service)):
    """Delete a sale. Refused (409) while any payment references it."""
    try:
        await service.delete_sale(sale_id)
    except Exception as e:
        raise to_http_error(e, "delete sale")
    return Response(status_code=204)


@router.get("/sales/{sale_id}/payments", response_model=List[PaymentResponse], summary="Payment History")
async def list_sale_payments(sale_id: UUID, service: PaymentService = Depends(get_payment_service)):
    try:
        payments = await service.list_payments(sale_id)
    except Exception as e:
        raise to_http_error(e, "list payments")
    return [PaymentResponse.from_payment(payment) for payment in payments]
