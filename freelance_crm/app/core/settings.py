import os
from decimal import Decimal


class Settings:
    def __init__(self):
        self.app_name = "Freelance CRM"
        self.api_version = "1.0.0"
        self.environment = os.getenv("ENVIRONMENT", "development")
        self.secret_key = os.getenv("SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./freelance_crm.db")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        # Fallbacks used when a user has not stored their own values
        self.default_vat_rate = Decimal(os.getenv("DEFAULT_VAT_RATE", "19.00"))
        self.default_payment_terms_days = int(os.getenv("DEFAULT_PAYMENT_TERMS_DAYS", "14"))

        self.batch_max_operations = 50
        self.recurring_reminder_hour = 9
        self.offer_followup_days = 7


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def reset_settings():
    """Drop the cached instance so the next call re-reads the environment."""
    global _settings_instance
    _settings_instance = None
