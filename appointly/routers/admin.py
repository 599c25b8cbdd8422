"""Admin router - role check, platform stats and user management."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from appointly.core.deps import get_current_session, get_db, require_csrf_header, require_roles
from appointly.db.enums import Role
from appointly.schemas.admin import (
    CheckAdminResponse,
    UserAdminUpdate,
    UserListResponse,
    UserRead,
)
from appointly.schemas.auth import UserSession
from appointly.services import admin_service
from appointly.utils.pagination import PaginationParams, get_pagination

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_roles([Role.ADMIN])


@router.get("/check-admin", response_model=CheckAdminResponse)
def check_admin(session: UserSession = Depends(get_current_session)):
    """Any signed-in user may ask; only the answer differs."""
    return CheckAdminResponse(is_admin=session.role == Role.ADMIN)


@router.get("/stats")
def get_stats(
    _: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return admin_service.get_platform_stats(db)


@router.get("/users", response_model=UserListResponse)
def list_users(
    search: str | None = Query(None, max_length=200),
    role: Role | None = Query(None),
    pagination: PaginationParams = Depends(get_pagination),
    _: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users, total = admin_service.list_users(
        db,
        search=search,
        role=role.value if role else None,
        limit=pagination.per_page,
        offset=pagination.offset,
    )
    return UserListResponse(
        items=[UserRead.model_validate(u) for u in users],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.pages_for(total),
    )


@router.patch(
    "/users/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_user(
    user_id: UUID,
    data: UserAdminUpdate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Change role or ban/unban. Banning revokes the user's sessions."""
    user = admin_service.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        user = admin_service.update_user(
            db,
            user,
            actor_id=session.user_id,
            role=data.role,
            banned=data.banned,
            ban_reason=data.ban_reason,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UserRead.model_validate(user)
