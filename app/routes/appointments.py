"""
Appointments API Routes

Homeowners book, edit and cancel cleanings; cleaners browse the open
marketplace and request jobs; homeowners approve or deny those requests.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_homeowner, get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentUpdate,
    ApproveRequestBody,
    DenyRequestBody,
    EmployeeRequestCreate,
    LinensUpdate,
)
from ..serializers import serialize_appointment, serialize_home
from ..services.appointments import AppointmentService, serialize_appointments
from ..services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> AppointmentService:
    return AppointmentService(db, NotificationService(db, background_tasks))


# ============================================================================
# MARKETPLACE (fixed paths first, /{home_id} is a catch-all)
# ============================================================================


@router.get("/unassigned")
async def get_unassigned(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return {"appointments": serialize_appointments(service.list_unassigned(current_user))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching unassigned appointments: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch appointments")


@router.get("/unassigned/{appointment_id}")
async def get_unassigned_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.get_appointment(appointment_id)
    return {
        "appointment": serialize_appointment(appointment),
        "employeesAssigned": service.get_assigned_employees(appointment),
    }


@router.get("/booking-info/{appointment_id}")
async def get_booking_info(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Large-home details a cleaner must acknowledge before requesting the job"""
    return service.booking_info(appointment_id)


@router.get("/my-requests")
async def get_my_requests(
    current_user: User = Depends(get_current_homeowner),
    service: AppointmentService = Depends(get_appointment_service),
):
    return {"pendingRequestsEmployee": service.pending_requests_for(current_user)}


@router.get("/home/{home_id}")
async def get_home(
    home_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return {"home": serialize_home(service.get_home(home_id))}


# ============================================================================
# CLEANER REQUESTS
# ============================================================================


@router.patch("/request-employee")
async def request_employee(
    data: EmployeeRequestCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        service.request_employee(current_user, data.id, data.appointment_id, data.acknowledged)
        return {"message": "Request sent to the client for approval"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error requesting appointment {data.appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to send request")


@router.patch("/approve-request")
async def approve_request(
    data: ApproveRequestBody,
    current_user: User = Depends(get_current_homeowner),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return {"message": service.approve_request(current_user, data.request_id, data.approve)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error handling request {data.request_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update request")


@router.patch("/deny-request")
async def deny_request(
    data: DenyRequestBody,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        service.deny_request(current_user, data.id, data.appointment_id)
        return {"message": "Request removed"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error removing request for appointment {data.appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove request")


# ============================================================================
# HOMEOWNER BOOKING
# ============================================================================


@router.post("", status_code=201)
async def create_appointments(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return {"appointments": serialize_appointments(service.create(current_user, data))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error booking appointments for home {data.home_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create appointments")


@router.get("/{home_id}")
async def get_home_appointments(
    home_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return {"appointments": serialize_appointments(service.list_for_home(home_id))}


@router.patch("/{appointment_id}/linens")
async def update_linens(
    appointment_id: int,
    data: LinensUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.update_linens(appointment_id, current_user, data)
    return {"appointment": serialize_appointment(appointment)}


@router.patch("/{appointment_id}")
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Toggle linens or change the time window; the price and bill follow"""
    try:
        appointment = service.update(appointment_id, current_user, data)
        return {"appointment": serialize_appointment(appointment)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error updating appointment {appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update appointment")


@router.delete("/{appointment_id}", status_code=201)
async def delete_appointment(
    appointment_id: int,
    data: Optional[AppointmentCancel] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        service.cancel(appointment_id, current_user, data.fee if data else 0)
        return {"message": "Appointment Deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error deleting appointment {appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete appointment")
