from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.models.database import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_USER)  # user | admin
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
