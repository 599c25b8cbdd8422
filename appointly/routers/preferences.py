"""Preferences Router - /preferences endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from appointly.core.deps import get_current_session, get_db, require_csrf_header
from appointly.schemas.auth import UserSession
from appointly.schemas.preferences import PreferencesRead, PreferencesUpdate
from appointly.services import preferences_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=PreferencesRead)
def get_preferences(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get the current user's preferences, creating defaults on first access."""
    row = preferences_service.get_or_create_preferences(db, session.user_id)
    return PreferencesRead.model_validate(row, from_attributes=True)


@router.put(
    "",
    response_model=PreferencesRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_preferences(
    data: PreferencesUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    prefs = preferences_service.update_preferences(
        db, session.user_id, data.model_dump(exclude_unset=True)
    )
    logger.info("User %s updated their preferences", session.user_id)
    return PreferencesRead(**prefs.as_dict())
