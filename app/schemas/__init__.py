from app.schemas.payments import (
    ApiResponse,
    ErrorResponse,
    OrderPaymentData,
    OrderPaymentSummary,
    PaymentHistoryData,
    PaymentRecord,
    PaymentStatsData,
    PaymentSubmitRequest,
    PaymentVerifyRequest,
)

__all__ = [
    "ApiResponse",
    "ErrorResponse",
    "OrderPaymentData",
    "OrderPaymentSummary",
    "PaymentHistoryData",
    "PaymentRecord",
    "PaymentStatsData",
    "PaymentSubmitRequest",
    "PaymentVerifyRequest",
]
