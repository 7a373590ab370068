"""Invoice endpoints: drafts, creation from projects and status changes."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import extract
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import listing, serialize, success
from freelance_crm.app.db.scope import UserScope, get_owned, scoped_query
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.enums import InvoiceStatus
from freelance_crm.app.models.invoice import Invoice
from freelance_crm.app.models.project import Project
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.invoice import (
    InvoiceCreate,
    InvoiceFromProject,
    InvoiceMarkPaid,
    InvoiceRead,
    InvoiceUpdate,
)
from freelance_crm.app.services import invoice_creation
from freelance_crm.app.services import invoices as invoice_service

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("")
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    client_id: Optional[int] = None,
    project_id: Optional[int] = None,
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = scoped_query(db, Invoice, UserScope(current_user.id))
    if status:
        query = query.filter(Invoice.status == status)
    if client_id is not None:
        query = query.filter(Invoice.client_id == client_id)
    if project_id is not None:
        query = query.filter(Invoice.project_id == project_id)
    if year is not None:
        query = query.filter(extract("year", Invoice.issued_at) == year)
    return listing(InvoiceRead, query.order_by(Invoice.issued_at.desc(), Invoice.id.desc()).all())


@router.post("", status_code=201)
async def create_invoice(
    invoice_in: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = invoice_service.create_invoice(db, current_user.id, invoice_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(InvoiceRead, invoice))


@router.post("/from-project", status_code=201)
async def create_invoice_from_project(
    body: InvoiceFromProject,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = get_owned(db, Project, body.project_id, current_user.id)
    invoice = invoice_creation.create_from_project(db, project)
    db.commit()
    return success(serialize(InvoiceRead, invoice))


@router.get("/{invoice_id}")
async def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(serialize(InvoiceRead, get_owned(db, Invoice, invoice_id, current_user.id)))


@router.put("/{invoice_id}")
async def update_invoice(
    invoice_id: int,
    invoice_in: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = get_owned(db, Invoice, invoice_id, current_user.id)
    invoice_service.update_draft_invoice(db, invoice, invoice_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(InvoiceRead, invoice))


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoice = get_owned(db, Invoice, invoice_id, current_user.id)
    invoice_service.delete_invoice(db, invoice)
    db.commit()
    return success({"id": invoice_id, "deleted": True})


@router.post("/{invoice_id}/send")
async def send_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoice = get_owned(db, Invoice, invoice_id, current_user.id)
    invoice_service.mark_as_sent(invoice)
    db.commit()
    return success(serialize(InvoiceRead, invoice))


@router.post("/{invoice_id}/mark-paid")
async def mark_invoice_paid(
    invoice_id: int,
    body: Optional[InvoiceMarkPaid] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = get_owned(db, Invoice, invoice_id, current_user.id)
    body = body or InvoiceMarkPaid()
    invoice_service.mark_as_paid(invoice, body.paid_at, body.payment_method)
    db.commit()
    return success(serialize(InvoiceRead, invoice))


@router.post("/{invoice_id}/cancel")
async def cancel_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoice = get_owned(db, Invoice, invoice_id, current_user.id)
    invoice_service.cancel_invoice(invoice)
    db.commit()
    return success(serialize(InvoiceRead, invoice))
