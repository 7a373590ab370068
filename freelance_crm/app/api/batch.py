"""Batch execution and dry-run validation endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import success
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.batch import BatchRequest
from freelance_crm.app.services.batch import execute_batch, validate_batch

router = APIRouter(tags=["batch"])


@router.post("/batch")
async def run_batch(body: BatchRequest, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(execute_batch(db, current_user, body.operations))


@router.post("/validate")
async def validate_operations(body: BatchRequest, current_user: User = Depends(get_current_user)):
    return success(validate_batch(body.operations))
