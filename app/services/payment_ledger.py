from datetime import datetime

from sqlalchemy.orm import Session

from app.models import Payment


class PaymentLedger:
    def __init__(self, db: Session):
        self.db = db

    def get_for_order(self, order_id: int) -> Payment | None:
        return self.db.query(Payment).filter(Payment.order_id == order_id).first()

    def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def list_for_user(self, user_id: int) -> list[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )

    def search(
        self,
        verified: bool | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Payment]:
        query = self.db.query(Payment)
        if verified is not None:
            query = query.filter(Payment.verified == verified)
        if start_date is not None:
            query = query.filter(Payment.created_at >= start_date)
        if end_date is not None:
            query = query.filter(Payment.created_at <= end_date)
        return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()

    def iter_all(self, batch_size: int = 500):
        return self.db.query(Payment).yield_per(batch_size)
