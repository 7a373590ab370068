"""Client records: creation, editing and guarded soft delete."""

import logging

from sqlalchemy.orm import Session

from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.time import utc_now
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.project import Project

logger = logging.getLogger(__name__)

CLIENT_FIELDS = (
    "type",
    "company_name",
    "contact_name",
    "email",
    "phone",
    "vat_id",
    "street",
    "postal_code",
    "city",
    "country",
    "notes",
)


def create_client(db: Session, user_id: int, data: dict) -> Client:
    client = Client(user_id=user_id, **{field: data.get(field) for field in CLIENT_FIELDS if field in data})
    if client.country is None:
        client.country = "DE"
    db.add(client)
    db.flush()
    logger.info("Created client %s for user %s", client.id, user_id)
    return client


def update_client(db: Session, client: Client, data: dict) -> Client:
    for field in CLIENT_FIELDS:
        if field in data and data[field] is not None:
            setattr(client, field, data[field])
    db.flush()
    return client


def delete_client(db: Session, client: Client) -> None:
    projects = db.query(Project).filter(Project.client_id == client.id, Project.deleted_at.is_(None)).count()
    invoices = db.query(Invoice).filter(Invoice.client_id == client.id, Invoice.deleted_at.is_(None)).count()
    if projects or invoices:
        raise ApiError(
            "CLIENT_HAS_RELATIONS",
            "Cannot delete client with existing projects or invoices.",
            suggestions=[
                f"Client has {projects} project(s) and {invoices} invoice(s).",
                "Delete or reassign related records first.",
            ],
        )
    client.deleted_at = utc_now()
    db.flush()
