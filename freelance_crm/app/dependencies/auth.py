"""Authentication dependency for retrieving the acting user."""

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.security import decode_access_token
from freelance_crm.app.db.session import get_db
from freelance_crm.app.models.user import User


def _unauthenticated() -> ApiError:
    return ApiError("UNAUTHENTICATED", "Not authenticated", status_code=401)


def get_current_user(db: Session = Depends(get_db), authorization: str | None = Header(default=None)) -> User:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthenticated()
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_access_token(token)
    except ValueError:
        raise _unauthenticated()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthenticated()

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise _unauthenticated()
    return user
