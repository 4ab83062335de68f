"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Money is exchanged as decimal strings ("5090.00").
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.balance import installments_remaining
from domain.constants import DAILY_INSTALLMENT, SERVICE_CHARGE
from domain.payment import Payment, PaymentMethod
from domain.sale import Sale, SaleStatus
from services.balance_service import SyncResult


# ============================================================================
# Sale Models
# ============================================================================

class SaleResponse(BaseModel):
    """Single sale in API response."""
    id: UUID
    sale_number: Optional[str] = None
    customer_id: UUID
    product_id: UUID
    quantity: int
    sale_date: date
    initial_payment: Decimal
    total_amount: Decimal
    remaining_balance: Decimal
    status: SaleStatus
    installments_remaining: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_sale(cls, sale: Sale) -> "SaleResponse":
        return cls(
            id=sale.sale_id,
            sale_number=sale.sale_number,
            customer_id=sale.customer_id,
            product_id=sale.product_id,
            quantity=sale.quantity,
            sale_date=sale.sale_date,
            initial_payment=sale.initial_payment,
            total_amount=sale.total_amount,
            remaining_balance=sale.remaining_balance,
            status=sale.status,
            installments_remaining=installments_remaining(sale.remaining_balance, DAILY_INSTALLMENT),
            created_at=sale.created_at,
            updated_at=sale.updated_at,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "sale_number": "SALE-20250101-1A2B3C",
                "customer_id": "123e4567-e89b-12d3-a456-426614174001",
                "product_id": "123e4567-e89b-12d3-a456-426614174002",
                "quantity": 1,
                "sale_date": "2025-01-01",
                "initial_payment": "610.00",
                "total_amount": "5700.00",
                "remaining_balance": "5090.00",
                "status": "active",
                "installments_remaining": 90
            }
        }


class SaleListResponse(BaseModel):
    """Response for sale listing."""
    items: List[SaleResponse]
    total_count: int
    outstanding_total: Decimal


class SaleCreateRequest(BaseModel):
    """Request to record a new credit sale."""
    customer_id: UUID
    product_id: UUID
    quantity: int = Field(1, gt=0)
    selling_price: Decimal = Field(..., ge=0, description="Unit selling price of the product")
    service_charge: Decimal = Field(SERVICE_CHARGE, ge=0, description="Charged once per sale")
    initial_payment: Decimal = Field(..., ge=0)
    sale_date: Optional[date] = None
    created_by: Optional[UUID] = None

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "123e4567-e89b-12d3-a456-426614174001",
                "product_id": "123e4567-e89b-12d3-a456-426614174002",
                "quantity": 1,
                "selling_price": "5000.00",
                "service_charge": "700.00",
                "initial_payment": "610.00"
            }
        }


class SaleUpdateRequest(BaseModel):
    """Request to change a sale's terms."""
    quantity: Optional[int] = Field(None, gt=0)
    total_amount: Optional[Decimal] = Field(None, ge=0)
    initial_payment: Optional[Decimal] = Field(None, ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    service_charge: Optional[Decimal] = Field(None, ge=0)
    sale_date: Optional[date] = None


class SyncResponse(BaseModel):
    """Balance snapshot written by a recompute."""
    sale_id: UUID
    remaining_balance: Decimal
    status: SaleStatus
    corrected: bool

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResponse":
        return cls(
            sale_id=result.sale_id,
            remaining_balance=result.remaining_balance,
            status=result.status,
            corrected=result.changed,
        )


class RecomputeAllResponse(BaseModel):
    """Summary of a bulk recompute."""
    synced: int
    corrected: int
    failures: dict


# ============================================================================
# Payment Models
# ============================================================================

class PaymentResponse(BaseModel):
    """Single payment in API response."""
    id: UUID
    sale_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.payment_id,
            sale_id=payment.sale_id,
            amount=payment.amount,
            payment_date=payment.payment_date,
            payment_method=payment.payment_method,
            notes=payment.notes,
            created_at=payment.created_at,
        )


class PaymentCreateRequest(BaseModel):
    """Request to record an installment."""
    sale_id: UUID
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None

    class Config:
        json_schema_extra = {
            "example": {
                "sale_id": "123e4567-e89b-12d3-a456-426614174000",
                "amount": "57.00",
                "payment_method": "cash",
                "notes": "Daily installment"
            }
        }


class PaymentUpdateRequest(BaseModel):
    """Request to edit a recorded payment."""
    sale_id: Optional[UUID] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class PaymentOutcomeResponse(BaseModel):
    """
    Response after a payment mutation.

    balance_stale is True when the payment was saved but the sale's balance
    could not be updated; remaining_balance and status are then omitted.
    stale_sale_ids lists every sale that still needs a recompute.
    """
    payment: PaymentResponse
    remaining_balance: Optional[Decimal] = None
    status: Optional[SaleStatus] = None
    balance_stale: bool = False
    stale_sale_ids: List[UUID] = Field(default_factory=list)
    message: Optional[str] = None

