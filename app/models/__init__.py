from app.models.database import Base, get_db
from app.models.user import User
from app.models.order import Order
from app.models.payment import Payment

__all__ = ["Base", "get_db", "User", "Order", "Payment"]
