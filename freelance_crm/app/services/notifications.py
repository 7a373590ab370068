"""Outgoing e-mail decision point.

Delivery (rendering, SMTP, retries) belongs to an external worker; this module
only decides that a message should go out and hands it to the configured sink.
The default sink writes the decision to the log and keeps nothing in memory.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from freelance_crm.app.core.time import utc_now

logger = logging.getLogger(__name__)

INVOICE_EMAIL = "invoice"
OFFER_EMAIL = "offer"


@dataclass
class QueuedEmail:
    kind: str
    entity_id: int
    user_id: int
    queued_at: datetime = field(default_factory=utc_now)


EmailSink = Callable[[QueuedEmail], None]


def log_sink(message: QueuedEmail) -> None:
    logger.info(
        "Queued %s e-mail for entity %s (user %s)",
        message.kind,
        message.entity_id,
        message.user_id,
    )


_sink: EmailSink = log_sink


def set_sink(sink: Optional[EmailSink]) -> EmailSink:
    """Route queued e-mails to ``sink`` (None restores the log sink); returns the previous sink."""
    global _sink
    previous = _sink
    _sink = sink or log_sink
    return previous


def queue_email(kind: str, entity_id: int, user_id: int) -> QueuedEmail:
    message = QueuedEmail(kind=kind, entity_id=entity_id, user_id=user_id)
    _sink(message)
    return message
