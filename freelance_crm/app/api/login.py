"""Login and current-user endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import serialize, success
from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.security import create_access_token, verify_password
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.login import LoginRequest, Token
from freelance_crm.app.schemas.user import UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email).first()
    if not user or not user.hashed_password:
        raise ApiError("INVALID_CREDENTIALS", "Invalid credentials", status_code=400)
    if not user.is_active:
        raise ApiError("USER_INACTIVE", "User is inactive", status_code=400)
    if not verify_password(credentials.password, user.hashed_password):
        raise ApiError("INVALID_CREDENTIALS", "Invalid credentials", status_code=400)

    token = Token(access_token=create_access_token(user_id=user.id))
    return success(token.model_dump())


@router.get("/me")
def read_me(current_user: User = Depends(get_current_user)):
    return success(serialize(UserRead, current_user))
