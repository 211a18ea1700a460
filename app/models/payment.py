from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from app.models.database import Base
from app.models.order import default_payment_method


class Payment(Base):
    """Ledger record of a submitted mobile-money reference.

    There is exactly one row per order (``order_id`` is unique). Resubmitting
    after a rejection overwrites the row, so the row is always the record
    that decides the order's payment status.
    """

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    method = Column(String(50), nullable=False, default=default_payment_method)
    amount = Column(Numeric(12, 2), nullable=False)
    reference_code = Column(String(64), nullable=False)
    verified = Column(Boolean, nullable=False, default=False, index=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def state(self) -> str:
        if self.verified:
            return "verified"
        if self.rejected_at is not None:
            return "rejected"
        return "submitted"
