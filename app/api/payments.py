from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from app.dependencies import get_caller, get_current_user, get_reconciliation_service
from app.models import User
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
    VerifyAction,
)
from app.services import notification_service
from app.services.reconciliation import Caller, ReconciliationService

router = APIRouter(
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Invalid request"},
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse, "description": "Not authenticated"},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse, "description": "Not allowed for this caller"},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Order not found"},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "Payment status has changed"},
    }
)

CallerDep = Annotated[Caller, Depends(get_caller)]
ServiceDep = Annotated[ReconciliationService, Depends(get_reconciliation_service)]


@router.post(
    "/submit",
    response_model=ApiResponse[OrderPaymentSummary],
    summary="Submit a mobile-money transaction code for an order",
)
def submit_payment(
    body: PaymentSubmitRequest,
    background_tasks: BackgroundTasks,
    caller: CallerDep,
    current_user: Annotated[User, Depends(get_current_user)],
    service: ServiceDep,
):
    """
    Record the transaction code the customer received from the mobile-money provider.
    The order moves to `awaiting` until an administrator verifies it.
    Submitting again before verification replaces the previous code.
    """
    order = service.submit_payment(
        order_id=body.order_id,
        caller=caller,
        reference_code=body.transaction_code,
        amount=body.amount,
    )
    background_tasks.add_task(
        notification_service.dispatch,
        notification_service.send_payment_submitted_email,
        current_user.email,
        current_user.display_name,
        order.order_number,
        order.reference_code,
    )
    return ApiResponse(
        message="Payment submitted for verification. You will receive a confirmation email once verified.",
        data=OrderPaymentSummary.from_order(order),
    )


@router.get(
    "/order/{order_id}",
    response_model=ApiResponse[OrderPaymentData],
    summary="Get payment details for an order",
)
def get_order_payment(
    order_id: int,
    caller: CallerDep,
    service: ServiceDep,
):
    """Order payment status and its ledger record. Owner or admin only."""
    order, payment = service.get_order_payment(order_id, caller)
    return ApiResponse(
        data=OrderPaymentData(
            order=OrderPaymentSummary.from_order(order),
            payment=PaymentRecord.from_payment(payment) if payment else None,
        )
    )


@router.get(
    "/history",
    response_model=ApiResponse[PaymentHistoryData],
    summary="List my orders and payments",
)
def get_payment_history(
    caller: CallerDep,
    service: ServiceDep,
):
    orders, payments = service.get_payment_history(caller)
    return ApiResponse(
        data=PaymentHistoryData(
            orders=[OrderPaymentSummary.from_order(o) for o in orders],
            payments=[PaymentRecord.from_payment(p) for p in payments],
        )
    )


@router.post(
    "/verify/{order_id}",
    response_model=ApiResponse[OrderPaymentData],
    summary="Confirm or reject a submitted payment (admin)",
)
def verify_payment(
    order_id: int,
    body: PaymentVerifyRequest,
    background_tasks: BackgroundTasks,
    caller: CallerDep,
    service: ServiceDep,
):
    """
    Confirm marks the order `paid` (terminal). Reject marks it `rejected`
    and lets the customer submit a new code. Only orders `awaiting`
    verification can be verified; anything else returns 409.
    """
    order, payment = service.verify(
        order_id=order_id,
        caller=caller,
        action=body.action.value,
        rejection_reason=body.rejection_reason,
        reference_code=body.transaction_code,
        notes=body.notes,
    )

    owner = service.get_order_owner(order)
    if owner:
        if body.action == VerifyAction.CONFIRM:
            background_tasks.add_task(
                notification_service.dispatch,
                notification_service.send_payment_confirmed_email,
                owner.email,
                owner.display_name,
                order.id,
                order.order_number,
            )
        else:
            background_tasks.add_task(
                notification_service.dispatch,
                notification_service.send_payment_rejected_email,
                owner.email,
                owner.display_name,
                order.id,
                order.order_number,
                payment.rejection_reason,
            )

    message = "Payment verified" if body.action == VerifyAction.CONFIRM else "Payment rejected"
    return ApiResponse(
        message=message,
        data=OrderPaymentData(
            order=OrderPaymentSummary.from_order(order),
            payment=PaymentRecord.from_payment(payment),
        ),
    )


@router.get(
    "",
    response_model=ApiResponse[list[PaymentRecord]],
    summary="List payments (admin)",
)
def list_payments(
    caller: CallerDep,
    service: ServiceDep,
    verified: bool | None = None,
    start_date: Annotated[datetime | None, Query(alias="startDate")] = None,
    end_date: Annotated[datetime | None, Query(alias="endDate")] = None,
):
    """Filters are combined; omitted filters match everything."""
    payments = service.list_payments(caller, verified=verified, start_date=start_date, end_date=end_date)
    return ApiResponse(
        count=len(payments),
        data=[PaymentRecord.from_payment(p) for p in payments],
    )


@router.get(
    "/stats",
    response_model=ApiResponse[PaymentStatsData],
    summary="Payment statistics (admin)",
)
def get_payment_stats(
    caller: CallerDep,
    service: ServiceDep,
):
    stats = service.get_statistics(caller)
    return ApiResponse(data=PaymentStatsData.from_statistics(stats))
