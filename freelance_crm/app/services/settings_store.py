"""Per-user key/value settings with caller-supplied fallbacks."""

from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from freelance_crm.app.core.settings import get_settings
from freelance_crm.app.models.user_setting import UserSetting

KNOWN_KEYS = ("default_vat_rate", "default_payment_terms", "payment_terms_days", "invoice_footer")


def get_setting(db: Session, user_id: int, key: str, default=None):
    row = db.query(UserSetting).filter(UserSetting.user_id == user_id, UserSetting.key == key).first()
    if row is None or row.value is None or row.value == "":
        return default
    return row.value


def set_setting(db: Session, user_id: int, key: str, value) -> UserSetting:
    row = db.query(UserSetting).filter(UserSetting.user_id == user_id, UserSetting.key == key).first()
    stored = None if value is None else str(value)
    if row is None:
        row = UserSetting(user_id=user_id, key=key, value=stored)
        db.add(row)
    else:
        row.value = stored
    db.flush()
    return row


def get_all(db: Session, user_id: int) -> dict:
    rows = db.query(UserSetting).filter(UserSetting.user_id == user_id).order_by(UserSetting.key).all()
    return {row.key: row.value for row in rows}


def default_vat_rate(db: Session, user_id: int) -> Decimal:
    fallback = get_settings().default_vat_rate
    raw = get_setting(db, user_id, "default_vat_rate")
    if raw is None:
        return fallback
    try:
        return Decimal(str(raw)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return fallback


def payment_terms_days(db: Session, user_id: int) -> int:
    """Days until an invoice is due; ``default_payment_terms`` wins over ``payment_terms_days``."""
    fallback = get_settings().default_payment_terms_days
    for key in ("default_payment_terms", "payment_terms_days"):
        raw = get_setting(db, user_id, key)
        if raw is None:
            continue
        try:
            return int(raw)
        except ValueError:
            continue
    return fallback
