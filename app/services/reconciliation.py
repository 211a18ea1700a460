"""Submit/verify workflow for manually reconciled mobile-money payments.

Order status moves only along::

    pending  --submit-->  awaiting --confirm--> paid (terminal)
    awaiting --reject-->  rejected --submit-->  awaiting

Every transition is a conditional update on ``orders.payment_status`` that is
committed together with the ledger change, so two racing requests can never
both succeed and a failure leaves both rows untouched.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.models import Order, Payment, User
from app.models.order import (
    PAYMENT_STATUS_AWAITING,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_REJECTED,
)
from app.models.user import ROLE_ADMIN
from app.services.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidError,
    NotFoundError,
)
from app.services.order_store import OrderStore
from app.services.payment_ledger import PaymentLedger

logger = logging.getLogger(__name__)

ACTION_CONFIRM = "confirm"
ACTION_REJECT = "reject"
DEFAULT_REJECTION_REASON = "Payment could not be verified"

REFERENCE_CODE_PATTERN = re.compile(r"^[A-Z0-9]{6,32}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Caller:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class PaymentStatistics:
    total_submitted: int
    total_pending: int
    total_verified: int
    total_rejected: int
    total_verified_amount: Decimal
    average_verification_latency_seconds: float | None


def normalize_reference_code(raw: str | None) -> str:
    code = (raw or "").strip().upper()
    if not code:
        raise InvalidError("Transaction code is required")
    if not REFERENCE_CODE_PATTERN.match(code):
        raise InvalidError("Transaction code must be 6-32 letters or digits")
    return code


def _to_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidError("Amount must be a number") from exc
    if not amount.is_finite() or amount < 0:
        raise InvalidError("Amount must be a non-negative number")
    return amount


class ReconciliationService:
    def __init__(self, orders: OrderStore, ledger: PaymentLedger):
        self.orders = orders
        self.ledger = ledger
        # Both stores share the request's session, which is the transaction boundary.
        self.db = orders.db

    def _get_order(self, order_id: int) -> Order:
        order = self.orders.get(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def _require_admin(self, caller: Caller, action: str) -> None:
        if not caller.is_admin:
            logger.warning("User %s attempted admin action %s", caller.id, action)
            raise ForbiddenError("Admin access required")

    def _commit(self, context: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Integrity conflict during %s: %s", context, exc.orig)
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Persistence failure during %s", context)
            raise InternalError() from exc

    def submit_payment(
        self,
        order_id: int,
        caller: Caller,
        reference_code: str,
        amount=None,
    ) -> Order:
        code = normalize_reference_code(reference_code)
        order = self._get_order(order_id)

        if order.user_id != caller.id:
            logger.warning("User %s attempted to submit payment for order %s", caller.id, order_id)
            raise ForbiddenError("Not authorized to submit payment for this order")

        observed_status = order.payment_status
        if observed_status == PAYMENT_STATUS_PAID:
            raise ConflictError("Order is already paid")

        total = Decimal(str(order.total_amount))
        submitted_amount = total if amount is None else _to_amount(amount)
        if submitted_amount != total:
            raise InvalidError(f"Amount {submitted_amount} does not match order total {total}")

        try:
            moved = self.orders.transition_status(
                order_id,
                expected_status=observed_status,
                new_status=PAYMENT_STATUS_AWAITING,
                reference_code=code,
            )
            if not moved:
                self.db.rollback()
                logger.warning(
                    "Lost race submitting payment for order %s (expected status %s)",
                    order_id,
                    observed_status,
                )
                raise ConflictError()

            payment = self.ledger.get_for_order(order_id)
            if payment is None:
                payment = Payment(
                    order_id=order_id,
                    user_id=caller.id,
                    method=order.payment_method,
                    amount=submitted_amount,
                    reference_code=code,
                    verified=False,
                    created_at=utcnow(),
                )
                self.ledger.add(payment)
            elif payment.verified:
                # Only reachable if the ledger and the order disagree.
                self.db.rollback()
                logger.error("Order %s has a verified payment but status %s", order_id, observed_status)
                raise ConflictError("Payment for this order is already verified")
            else:
                payment.amount = submitted_amount
                payment.reference_code = code
                payment.rejection_reason = None
                payment.rejected_at = None
                payment.updated_at = utcnow()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Persistence failure submitting payment for order %s", order_id)
            raise InternalError() from exc

        self._commit(f"submit_payment order={order_id}")
        logger.info(
            "Payment reference submitted for order %s by user %s (%s -> %s)",
            order_id,
            caller.id,
            observed_status,
            PAYMENT_STATUS_AWAITING,
        )
        return self.orders.refresh(order)

    def verify(
        self,
        order_id: int,
        caller: Caller,
        action: str,
        rejection_reason: str | None = None,
        reference_code: str | None = None,
        notes: str | None = None,
    ) -> tuple[Order, Payment]:
        self._require_admin(caller, "verify")
        if action not in {ACTION_CONFIRM, ACTION_REJECT}:
            raise InvalidError("Action must be 'confirm' or 'reject'")

        order = self._get_order(order_id)
        if order.payment_status != PAYMENT_STATUS_AWAITING:
            raise ConflictError(f"Order payment is {order.payment_status}, not awaiting verification")

        payment = self.ledger.get_for_order(order_id)
        if payment is None:
            raise ConflictError("No payment has been submitted for this order")

        if action == ACTION_CONFIRM and reference_code is not None:
            if normalize_reference_code(reference_code) != payment.reference_code:
                raise InvalidError("Transaction code does not match the submitted payment")

        now = utcnow()
        if action == ACTION_CONFIRM:
            new_status = PAYMENT_STATUS_PAID
        else:
            new_status = PAYMENT_STATUS_REJECTED

        try:
            moved = self.orders.transition_status(
                order_id,
                expected_status=PAYMENT_STATUS_AWAITING,
                new_status=new_status,
                expected_reference_code=payment.reference_code,
            )
            if not moved:
                self.db.rollback()
                logger.warning("Lost race verifying order %s (admin %s, action %s)", order_id, caller.id, action)
                raise ConflictError()

            if action == ACTION_CONFIRM:
                payment.verified = True
                payment.verified_by = caller.id
                payment.verified_at = now
                payment.rejection_reason = None
                payment.rejected_at = None
            else:
                payment.verified = False
                payment.verified_by = None
                payment.verified_at = None
                payment.rejection_reason = (rejection_reason or "").strip() or DEFAULT_REJECTION_REASON
                payment.rejected_at = now
            if notes is not None:
                payment.notes = notes
            payment.updated_at = now
            self.db.flush()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Persistence failure verifying order %s (action %s)", order_id, action)
            raise InternalError() from exc

        self._commit(f"verify order={order_id} action={action}")
        logger.info("Order %s payment %s by admin %s (awaiting -> %s)", order_id, action, caller.id, new_status)
        self.db.refresh(payment)
        return self.orders.refresh(order), payment

    def get_order_payment(self, order_id: int, caller: Caller) -> tuple[Order, Payment | None]:
        order = self._get_order(order_id)
        if order.user_id != caller.id and not caller.is_admin:
            raise ForbiddenError("Not authorized to view this payment")
        return order, self.ledger.get_for_order(order_id)

    def get_order_owner(self, order: Order) -> User | None:
        """Account to notify about a verification outcome."""
        return self.orders.get_owner(order)

    def get_payment_history(self, caller: Caller) -> tuple[list[Order], list[Payment]]:
        return self.orders.list_for_user(caller.id), self.ledger.list_for_user(caller.id)

    def list_payments(
        self,
        caller: Caller,
        verified: bool | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Payment]:
        self._require_admin(caller, "list_payments")
        if start_date is not None:
            start_date = _as_utc(start_date)
        if end_date is not None:
            end_date = _as_utc(end_date)
        if start_date and end_date and start_date > end_date:
            raise InvalidError("startDate must not be after endDate")
        return self.ledger.search(verified=verified, start_date=start_date, end_date=end_date)

    def get_statistics(self, caller: Caller) -> PaymentStatistics:
        self._require_admin(caller, "get_statistics")

        submitted = verified = rejected = 0
        verified_amount = Decimal("0")
        latency_total = 0.0
        latency_count = 0
        for payment in self.ledger.iter_all():
            submitted += 1
            if payment.verified:
                verified += 1
                verified_amount += Decimal(str(payment.amount))
                if payment.verified_at and payment.created_at:
                    delta = _as_utc(payment.verified_at) - _as_utc(payment.created_at)
                    latency_total += delta.total_seconds()
                    latency_count += 1
            elif payment.rejected_at is not None:
                rejected += 1

        return PaymentStatistics(
            total_submitted=submitted,
            total_pending=submitted - verified - rejected,
            total_verified=verified,
            total_rejected=rejected,
            total_verified_amount=verified_amount,
            average_verification_latency_seconds=(latency_total / latency_count) if latency_count else None,
        )
