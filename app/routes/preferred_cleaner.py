"""
Preferred Cleaner API Routes

Cleaners accept or decline jobs from homes that prefer them; homeowners
answer a decline by cancelling or opening the job to the marketplace.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_cleaner, get_current_homeowner
from ..database import get_db
from ..models import User
from ..schemas import ClientResponseBody
from ..services.notifications import NotificationService
from ..services.perks_config import PerksConfigService
from ..services.preferred_cleaner import PreferredCleanerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preferred-cleaner", tags=["Preferred Cleaner"])


def get_preferred_cleaner_service(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> PreferredCleanerService:
    return PreferredCleanerService(db, NotificationService(db, background_tasks))


@router.get("/perks")
async def get_perks(db: Session = Depends(get_db)):
    """Public tier table for the cleaner app"""
    service = PerksConfigService(db)
    return {"tiers": service.serialize_by_tier(service.get_config())}


# ============================================================================
# CLEANER SIDE
# ============================================================================


@router.get("/my-client-appointments")
async def get_my_client_appointments(
    current_user: User = Depends(get_current_cleaner),
    service: PreferredCleanerService = Depends(get_preferred_cleaner_service),
):
    return service.get_client_appointments(current_user)


@router.post("/appointments/{appointment_id}/accept")
async def accept_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_cleaner),
    service: PreferredCleanerService = Depends(get_preferred_cleaner_service),
):
    try:
        return service.accept(appointment_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error accepting appointment {appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to accept appointment")


@router.post("/appointments/{appointment_id}/decline")
async def decline_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_cleaner),
    service: PreferredCleanerService = Depends(get_preferred_cleaner_service),
):
    try:
        return service.decline(appointment_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error declining appointment {appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to decline appointment")


# ============================================================================
# CLIENT SIDE
# ============================================================================


@router.get("/pending-responses")
async def get_pending_responses(
    current_user: User = Depends(get_current_homeowner),
    service: PreferredCleanerService = Depends(get_preferred_cleaner_service),
):
    return {"appointments": service.pending_responses(current_user)}


@router.post("/appointments/{appointment_id}/respond")
async def respond_to_decline(
    appointment_id: int,
    data: ClientResponseBody,
    current_user: User = Depends(get_current_homeowner),
    service: PreferredCleanerService = Depends(get_preferred_cleaner_service),
):
    try:
        return service.respond(appointment_id, current_user, data.action)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error handling response for appointment {appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update appointment")
