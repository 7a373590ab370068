"""Explicit ownership scoping for queries.

Every lookup states whose rows it may see: ``UserScope(user_id)`` for request
handlers, ``ALL_USERS`` for the scheduler. There is no ambient "current user".
"""

from dataclasses import dataclass
from typing import Type, TypeVar, Union

from sqlalchemy.orm import Query, Session

from freelance_crm.app.core.errors import NotFoundError

ModelT = TypeVar("ModelT")


@dataclass(frozen=True)
class UserScope:
    user_id: int


@dataclass(frozen=True)
class AllUsers:
    pass


ALL_USERS = AllUsers()

Scope = Union[UserScope, AllUsers]


def apply_scope(query: Query, model, scope: Scope) -> Query:
    if isinstance(scope, UserScope):
        query = query.filter(model.user_id == scope.user_id)
    if hasattr(model, "deleted_at"):
        query = query.filter(model.deleted_at.is_(None))
    return query


def scoped_query(db: Session, model, scope: Scope) -> Query:
    return apply_scope(db.query(model), model, scope)


def get_owned(db: Session, model: Type[ModelT], obj_id, user_id: int, label: str | None = None) -> ModelT:
    """Fetch a row owned by ``user_id`` or raise a uniform not-found error."""
    label = label or model.__name__
    try:
        obj_id = int(obj_id)
    except (TypeError, ValueError):
        raise NotFoundError(label)
    obj = scoped_query(db, model, UserScope(user_id)).filter(model.id == obj_id).first()
    if obj is None:
        raise NotFoundError(label)
    return obj
