"""Project/offer endpoints including status transitions."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_crm.app.api.responses import listing, serialize, success
from freelance_crm.app.db.scope import UserScope, get_owned, scoped_query
from freelance_crm.app.db.session import get_db
from freelance_crm.app.dependencies.auth import get_current_user
from freelance_crm.app.models.project import Project
from freelance_crm.app.models.user import User
from freelance_crm.app.schemas.project import ProjectCreate, ProjectRead, ProjectTransition, ProjectUpdate
from freelance_crm.app.services import projects as project_service

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
async def list_projects(
    status: Optional[str] = None,
    client_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = scoped_query(db, Project, UserScope(current_user.id))
    if status:
        query = query.filter(Project.status == project_service.parse_status(status))
    if client_id is not None:
        query = query.filter(Project.client_id == client_id)
    return listing(ProjectRead, query.order_by(Project.id.desc()).all())


@router.post("", status_code=201)
async def create_project(
    project_in: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = project_service.create_project(db, current_user.id, project_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(ProjectRead, project))


@router.get("/{project_id}")
async def get_project(project_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success(serialize(ProjectRead, get_owned(db, Project, project_id, current_user.id)))


@router.put("/{project_id}")
async def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = get_owned(db, Project, project_id, current_user.id)
    project_service.update_project(db, project, project_in.model_dump(exclude_unset=True))
    db.commit()
    return success(serialize(ProjectRead, project))


@router.delete("/{project_id}")
async def delete_project(project_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    project = get_owned(db, Project, project_id, current_user.id)
    project_service.delete_project(db, project)
    db.commit()
    return success({"id": project_id, "deleted": True})


@router.post("/{project_id}/transition")
async def transition_project(
    project_id: int,
    body: ProjectTransition,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = get_owned(db, Project, project_id, current_user.id)
    project_service.apply_transition(db, project, body.status, body.start_date, body.end_date)
    db.commit()
    return success(serialize(ProjectRead, project))
