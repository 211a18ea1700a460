from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from app.models import Order, Payment
from app.services.reconciliation import PaymentStatistics

T = TypeVar("T")


def _format_amount(value: Decimal | None) -> str | None:
    if value is None:
        return None
    normalized = Decimal(str(value)).normalize()
    return format(normalized, "f")


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VerifyAction(str, Enum):
    CONFIRM = "confirm"
    REJECT = "reject"


class PaymentSubmitRequest(CamelModel):
    order_id: int = Field(alias="orderId", gt=0)
    transaction_code: str = Field(alias="transactionCode", min_length=1, max_length=64)
    amount: Decimal | None = Field(default=None, ge=0)

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"orderId": 1, "transactionCode": "QJK4H7XY2P", "amount": "2500"}]},
        populate_by_name=True,
    )


class PaymentVerifyRequest(CamelModel):
    action: VerifyAction = VerifyAction.CONFIRM
    rejection_reason: str | None = Field(default=None, alias="rejectionReason", max_length=500)
    transaction_code: str | None = Field(default=None, alias="transactionCode", max_length=64)
    notes: str | None = Field(default=None, max_length=2000)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"action": "confirm", "transactionCode": "QJK4H7XY2P"},
                {"action": "reject", "rejectionReason": "Code not found in M-Pesa statement"},
            ]
        },
        populate_by_name=True,
    )


class OrderPaymentSummary(CamelModel):
    id: int
    order_number: str = Field(alias="orderNumber")
    total_amount: Decimal = Field(alias="totalAmount")
    payment_status: str = Field(alias="paymentStatus")
    payment_method: str = Field(alias="paymentMethod")
    reference_code: str | None = Field(default=None, alias="referenceCode")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_serializer("total_amount")
    def serialize_amount(self, value: Decimal) -> str:
        return _format_amount(value)

    @classmethod
    def from_order(cls, order: Order) -> "OrderPaymentSummary":
        return cls(
            id=order.id,
            orderNumber=order.order_number,
            totalAmount=order.total_amount,
            paymentStatus=order.payment_status,
            paymentMethod=order.payment_method,
            referenceCode=order.reference_code,
            createdAt=order.created_at,
        )


class PaymentRecord(CamelModel):
    id: int
    order_id: int = Field(alias="orderId")
    user_id: int = Field(alias="userId")
    method: str
    amount: Decimal
    reference_code: str = Field(alias="referenceCode")
    state: str
    verified: bool
    verified_by: int | None = Field(default=None, alias="verifiedBy")
    verified_at: datetime | None = Field(default=None, alias="verifiedAt")
    rejection_reason: str | None = Field(default=None, alias="rejectionReason")
    rejected_at: datetime | None = Field(default=None, alias="rejectedAt")
    notes: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return _format_amount(value)

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentRecord":
        return cls(
            id=payment.id,
            orderId=payment.order_id,
            userId=payment.user_id,
            method=payment.method,
            amount=payment.amount,
            referenceCode=payment.reference_code,
            state=payment.state,
            verified=payment.verified,
            verifiedBy=payment.verified_by,
            verifiedAt=payment.verified_at,
            rejectionReason=payment.rejection_reason,
            rejectedAt=payment.rejected_at,
            notes=payment.notes,
            createdAt=payment.created_at,
            updatedAt=payment.updated_at,
        )


class OrderPaymentData(CamelModel):
    order: OrderPaymentSummary
    payment: PaymentRecord | None = None


class PaymentHistoryData(CamelModel):
    orders: list[OrderPaymentSummary]
    payments: list[PaymentRecord]


class PaymentStatsData(CamelModel):
    total_submitted: int = Field(alias="totalSubmitted")
    total_pending: int = Field(alias="totalPending")
    total_verified: int = Field(alias="totalVerified")
    total_rejected: int = Field(alias="totalRejected")
    total_verified_amount: Decimal = Field(alias="totalVerifiedAmount")
    average_verification_latency_seconds: float | None = Field(
        default=None, alias="averageVerificationLatencySeconds"
    )

    @field_serializer("total_verified_amount")
    def serialize_amount(self, value: Decimal) -> str:
        return _format_amount(value)

    @classmethod
    def from_statistics(cls, stats: PaymentStatistics) -> "PaymentStatsData":
        return cls(
            totalSubmitted=stats.total_submitted,
            totalPending=stats.total_pending,
            totalVerified=stats.total_verified,
            totalRejected=stats.total_rejected,
            totalVerifiedAmount=stats.total_verified_amount,
            averageVerificationLatencySeconds=stats.average_verification_latency_seconds,
        )


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str | None = None
    count: int | None = None
    data: T | None = None


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    errors: list[dict] | None = None
