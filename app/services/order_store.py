from sqlalchemy.orm import Session

from app.models import Order, User


class OrderStore:
    """Order persistence with a compare-and-swap primitive on ``payment_status``."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: int) -> Order | None:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_owner(self, order: Order) -> User | None:
        return self.db.query(User).filter(User.id == order.user_id).first()

    def refresh(self, order: Order) -> Order:
        self.db.refresh(order)
        return order

    def list_for_user(self, user_id: int) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def transition_status(
        self,
        order_id: int,
        expected_status: str,
        new_status: str,
        expected_reference_code: str | None = None,
        **values,
    ) -> bool:
        """Move the order to ``new_status`` only if it is still ``expected_status``.

        With ``expected_reference_code`` the order must also still carry that
        code, so a resubmission that keeps the status at ``awaiting`` does not
        match. Returns False when no row matched, i.e. another request changed
        the order first. The caller owns the transaction.
        """
        changes = {Order.payment_status: new_status}
        for name, value in values.items():
            changes[getattr(Order, name)] = value

        query = self.db.query(Order).filter(
            Order.id == order_id,
            Order.payment_status == expected_status,
        )
        if expected_reference_code is not None:
            query = query.filter(Order.reference_code == expected_reference_code)
        updated = query.update(changes, synchronize_session=False)
        return updated == 1
