from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.models import User, get_db
from app.services.order_store import OrderStore
from app.services.payment_ledger import PaymentLedger
from app.services.reconciliation import Caller, ReconciliationService

security = HTTPBearer(auto_error=False)


def get_current_user_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User | None:
    if not credentials:
        return None
    token = credentials.credentials
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        sub = payload.get("sub")
        token_type = payload.get("type")
        if sub is None:
            return None
        if token_type not in {None, "access"}:
            return None
        user_id = int(sub) if not isinstance(sub, int) else sub
    except (JWTError, ValueError):
        return None
    user = db.query(User).filter(User.id == user_id).first()
    return user


def get_current_user(
    user: Annotated[User | None, Depends(get_current_user_optional)],
) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_caller(
    user: Annotated[User, Depends(get_current_user)],
) -> Caller:
    """Identity and role of the authenticated user, as seen by the reconciliation service."""
    return Caller(id=user.id, role=user.role)


def get_reconciliation_service(
    db: Annotated[Session, Depends(get_db)],
) -> ReconciliationService:
    return ReconciliationService(orders=OrderStore(db), ledger=PaymentLedger(db))
