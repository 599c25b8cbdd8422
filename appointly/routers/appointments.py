"""Appointments router - CRUD and status changes for a user's appointments."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from appointly.core.deps import (
    get_current_session,
    get_db,
    get_email_client,
    require_csrf_header,
)
from appointly.db.enums import AppointmentStatus, Role
from appointly.db.models import Appointment
from appointly.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRead,
    AppointmentStatsRead,
    AppointmentStatusUpdate,
    AppointmentUpdate,
)
from appointly.schemas.auth import UserSession
from appointly.services import appointment_email_service, appointment_service
from appointly.services.appointment_email_service import AppointmentEmailType
from appointly.services.email_sender import EmailClient
from appointly.utils.pagination import PaginationParams, get_pagination

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_owned_appointment(db: Session, appointment_id: UUID, session: UserSession) -> Appointment:
    appointment = appointment_service.get_appointment(db, appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    if appointment.user_id != session.user_id and session.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Not your appointment")
    return appointment


# =============================================================================
# Queries
# =============================================================================

@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    status: AppointmentStatus | None = Query(None),
    upcoming: bool | None = Query(None, description="true = future only, false = past only"),
    search: str | None = Query(None, max_length=200),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List the current user's appointments."""
    appointments, total = appointment_service.list_appointments(
        db=db,
        user_id=session.user_id,
        status=status.value if status else None,
        upcoming=upcoming,
        search=search,
        limit=pagination.per_page,
        offset=pagination.offset,
    )
    return AppointmentListResponse(
        items=[AppointmentRead.model_validate(a) for a in appointments],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.pages_for(total),
    )


@router.get("/stats", response_model=AppointmentStatsRead)
def get_stats(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    stats = appointment_service.get_user_stats(db, session.user_id)
    return AppointmentStatsRead(**stats._asdict())


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return AppointmentRead.model_validate(_get_owned_appointment(db, appointment_id, session))


# =============================================================================
# Mutations
# =============================================================================

@router.post(
    "",
    response_model=AppointmentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
async def create_appointment(
    data: AppointmentCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
):
    """Create an appointment and send the confirmation email."""
    try:
        appointment = appointment_service.create_appointment(
            db=db,
            user_id=session.user_id,
            title=data.title,
            start_date_time=data.start_date_time,
            end_date_time=data.end_date_time,
            description=data.description,
            location=data.location,
            meeting_url=data.meeting_url,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await appointment_email_service.send_quietly(
        appointment_email_service.send_confirmation(db, email_client, appointment),
        appointment,
        AppointmentEmailType.CONFIRMED,
    )
    db.refresh(appointment)
    return AppointmentRead.model_validate(appointment)


@router.patch(
    "/{appointment_id}",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
):
    """Update an appointment. Moving it re-arms the reminder."""
    appointment = _get_owned_appointment(db, appointment_id, session)
    try:
        outcome = appointment_service.update_appointment(
            db, appointment, data.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if outcome.rescheduled:
        await appointment_email_service.send_quietly(
            appointment_email_service.send_rescheduled(
                email_client, outcome.appointment, old_start=outcome.old_start
            ),
            outcome.appointment,
            AppointmentEmailType.RESCHEDULED,
        )
    return AppointmentRead.model_validate(outcome.appointment)


@router.post(
    "/{appointment_id}/status",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
):
    appointment = _get_owned_appointment(db, appointment_id, session)
    try:
        appointment = appointment_service.update_status(
            db, appointment, AppointmentStatus(data.status), cancel_reason=data.cancel_reason
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if appointment.status == AppointmentStatus.CANCELLED.value:
        await appointment_email_service.send_quietly(
            appointment_email_service.send_cancelled(
                email_client, appointment, reason=data.cancel_reason
            ),
            appointment,
            AppointmentEmailType.CANCELLED,
        )
    return AppointmentRead.model_validate(appointment)


@router.delete(
    "/{appointment_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_appointment(
    appointment_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Soft delete; the appointment disappears from every list and lookup."""
    appointment = _get_owned_appointment(db, appointment_id, session)
    appointment_service.soft_delete_appointment(db, appointment)
    logger.info("Appointment %s deleted by %s", appointment_id, session.user_id)
    return Response(status_code=204)
