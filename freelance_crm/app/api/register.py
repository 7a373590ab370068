"""Account registration."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import serialize, success
from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.security import get_password_hash
from freelance_crm.app.db.session import get_db
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.user import UserCreate, UserRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register_user(user_in: UserCreate, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == user_in.email).first()
    if existing:
        raise ApiError("EMAIL_TAKEN", "Email already registered", status_code=400)
    user = User(
        email=user_in.email,
        full_name=user_in.full_name,
        hashed_password=get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return success(serialize(UserRead, user))
