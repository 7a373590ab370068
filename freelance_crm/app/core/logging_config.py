"""Logging setup shared by the API process and the scheduler CLI."""

import logging

from freelance_crm.app.core.settings import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    settings = get_settings()
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
