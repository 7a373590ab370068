"""Client endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import listing, serialize, success
from freelance_crm.app.db.scope import UserScope, get_owned, scoped_query
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.client import Client
from freelance_crm.app.models.enums import ClientType
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.client import ClientCreate, ClientRead, ClientUpdate
from freelance_crm.app.services import clients as client_service

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("")
async def list_clients(
    search: Optional[str] = None,
    type: Optional[ClientType] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = scoped_query(db, Client, UserScope(current_user.id))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(Client.company_name.ilike(pattern), Client.contact_name.ilike(pattern), Client.email.ilike(pattern))
        )
    if type:
        query = query.filter(Client.type == type)
    return listing(ClientRead, query.order_by(Client.id).all())


@router.post("", status_code=201)
async def create_client(
    client_in: ClientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    client = client_service.create_client(db, current_user.id, client_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(ClientRead, client))


@router.get("/{client_id}")
async def get_client(client_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(serialize(ClientRead, get_owned(db, Client, client_id, current_user.id)))


@router.put("/{client_id}")
async def update_client(
    client_id: int,
    client_in: ClientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    client = get_owned(db, Client, client_id, current_user.id)
    client_service.update_client(db, client, client_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(ClientRead, client))


@router.delete("/{client_id}")
async def delete_client(client_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    client = get_owned(db, Client, client_id, current_user.id)
    client_service.delete_client(db, client)
    db.commit()
    return success({"id": client_id, "deleted": True})
