from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from app.config import settings
from app.models.database import Base

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_AWAITING = "awaiting"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_REJECTED = "rejected"

PAYMENT_STATUSES = (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_AWAITING,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_REJECTED,
)


def default_payment_method() -> str:
    return settings.DEFAULT_PAYMENT_METHOD


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_number = Column(String(64), unique=True, nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    # pending | awaiting | paid | rejected
    payment_status = Column(String(20), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)
    payment_method = Column(String(50), nullable=False, default=default_payment_method)
    reference_code = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
