"""Per-user settings (VAT rate, payment terms, invoice footer)."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import success
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.settings import UserSettingsUpdate
from freelance_crm.app.services import settings_store

router = APIRouter(prefix="/settings", tags=["settings"])


def _effective(db: Session, user_id: int) -> dict:
    stored = settings_store.get_all(db, user_id)
    return {
        "stored": stored,
        "default_vat_rate": str(settings_store.default_vat_rate(db, user_id)),
        "payment_terms_days": settings_store.payment_terms_days(db, user_id),
        "invoice_footer": stored.get("invoice_footer"),
    }


@router.get("")
async def get_user_settings(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(_effective(db, current_user.id))


@router.put("")
async def update_user_settings(
    payload: UserSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    for key, value in payload.model_dump(exclude_unset=True).items():
        settings_store.set_setting(db, current_user.id, key, value)
    db.commit()
    return success(_effective(db, current_user.id))
