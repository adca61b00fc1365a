"""
Owner Dashboard API Routes

Cleaner moderation, owner settings, platform balance and withdrawals,
service-area configuration and preferred-cleaner perk tiers.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..auth import get_current_owner
from ..config import STRIPE_WEBHOOK_SECRET
from ..database import get_db
from ..email_service import send_service_area_changed_email
from ..models import User
from ..schemas import ConfigUpdate, FreezeRequest, NotificationEmailUpdate, WarningRequest, WithdrawRequest
from ..serializers import serialize_home
from ..services.cleaner_management import CleanerManagementService
from ..services.notifications import NotificationService
from ..services.perks_config import PerksConfigService
from ..services.service_area_validator import ServiceAreaError, ServiceAreaValidator
from ..services.stripe_client import StripeClient, get_stripe_client
from ..services.withdrawals import WithdrawalService
from ..webhook_security import verify_stripe_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/owner-dashboard", tags=["Owner Dashboard"])


def get_cleaner_management_service(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> CleanerManagementService:
    return CleanerManagementService(db, NotificationService(db, background_tasks))


def get_withdrawal_service(
    db: Session = Depends(get_db), stripe: StripeClient = Depends(get_stripe_client)
) -> WithdrawalService:
    return WithdrawalService(db, stripe)


# ============================================================================
# CLEANERS
# ============================================================================


@router.get("/cleaners")
async def list_cleaners(
    status: str = Query("all"),
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    try:
        return {"cleaners": service.list_cleaners(status)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching cleaners: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch cleaners")


@router.get("/cleaners/{cleaner_id}/details")
async def get_cleaner_details(
    cleaner_id: int,
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    return service.get_details(cleaner_id)


@router.get("/cleaners/{cleaner_id}/job-history")
async def get_cleaner_job_history(
    cleaner_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    return service.get_job_history(cleaner_id, page=page, limit=limit, status=status)


@router.post("/cleaners/{cleaner_id}/freeze")
async def freeze_cleaner(
    cleaner_id: int,
    data: FreezeRequest,
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    try:
        return service.freeze(cleaner_id, data.reason, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error freezing cleaner {cleaner_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to freeze cleaner account")


@router.post("/cleaners/{cleaner_id}/unfreeze")
async def unfreeze_cleaner(
    cleaner_id: int,
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    try:
        return service.unfreeze(cleaner_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error unfreezing cleaner {cleaner_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to unfreeze cleaner account")


@router.post("/cleaners/{cleaner_id}/warning")
async def warn_cleaner(
    cleaner_id: int,
    data: WarningRequest,
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    try:
        return service.issue_warning(cleaner_id, data.reason, data.severity, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error issuing warning to cleaner {cleaner_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to issue warning")


# ============================================================================
# SETTINGS
# ============================================================================


@router.get("/settings")
async def get_settings(
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    return service.get_settings(current_user)


@router.put("/settings/notification-email")
async def update_notification_email(
    data: NotificationEmailUpdate,
    current_user: User = Depends(get_current_owner),
    service: CleanerManagementService = Depends(get_cleaner_management_service),
):
    return service.update_notification_email(current_user, data.value)


# ============================================================================
# BALANCE & WITHDRAWALS
# ============================================================================


@router.get("/stripe-balance")
async def get_stripe_balance(
    current_user: User = Depends(get_current_owner),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    return service.get_balance()


@router.get("/withdrawals")
async def list_withdrawals(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_owner),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    return service.list_withdrawals(limit=limit, offset=offset, status=status)


@router.post("/withdraw")
async def withdraw(
    data: WithdrawRequest,
    current_user: User = Depends(get_current_owner),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    try:
        return service.create_withdrawal(data.amount, data.description, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error creating withdrawal: {e}")
        raise HTTPException(status_code=500, detail="Failed to create withdrawal")


@router.post("/webhooks/stripe-payouts")
async def stripe_payout_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Stripe payout.* events. Not owner-authenticated: the Stripe-Signature
    header is checked instead when STRIPE_WEBHOOK_SECRET is configured.
    """
    if STRIPE_WEBHOOK_SECRET:
        body = await verify_stripe_webhook(request, STRIPE_WEBHOOK_SECRET)
    else:
        logger.warning("⚠️ STRIPE_WEBHOOK_SECRET not set - accepting unsigned payout webhook")
        body = await request.body()

    try:
        event = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    logger.info(f"📥 Stripe webhook received: {event.get('type')}")
    # The client is never called while handling payout events
    withdrawal = WithdrawalService(db, StripeClient()).handle_payout_event(event)
    return {"received": True, "withdrawalId": withdrawal.id if withdrawal else None}


# ============================================================================
# SERVICE AREAS
# ============================================================================


@router.get("/service-areas")
async def get_service_areas(current_user: User = Depends(get_current_owner), db: Session = Depends(get_db)):
    validator = ServiceAreaValidator(db)
    return {"config": validator.get_config_dict(), "stats": validator.get_stats()}


@router.put("/service-areas")
async def update_service_areas(
    data: ConfigUpdate,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    validator = ServiceAreaValidator(db)
    try:
        config = validator.update_config(data.values(), current_user, data.change_note)
    except ServiceAreaError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"❌ Error updating service areas: {e}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to update service area configuration")

    return {
        "success": True,
        "message": "Service area configuration updated",
        "config": config,
        "stats": validator.get_stats(),
    }


@router.get("/service-areas/history")
async def get_service_area_history(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return {"history": ServiceAreaValidator(db).get_history(limit)}


@router.post("/recheck-service-areas")
async def recheck_service_areas(
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Re-evaluate every home and tell homeowners whose status flipped"""
    try:
        result = ServiceAreaValidator(db).recheck_all_homes()
        notifications = NotificationService(db, background_tasks)

        for in_area, homes in ((True, result["nowInArea"]), (False, result["nowOutOfArea"])):
            for home in homes:
                if not home.user:
                    continue
                message = (
                    f"Good news! {home.nickname or home.address} is now within our service area."
                    if in_area
                    else f"{home.nickname or home.address} is now outside our service area."
                )
                notifications.notify(
                    home.user,
                    "service_area_changed",
                    "Service Area Update",
                    message,
                    data={"homeId": home.id, "inServiceArea": in_area},
                    email_func=send_service_area_changed_email,
                    email_kwargs={
                        "client_name": home.user.display_name,
                        "in_area": in_area,
                        "message": message,
                    },
                )
        db.commit()

        return {
            "updated": result["updated"],
            "nowInArea": [serialize_home(h) for h in result["nowInArea"]],
            "nowOutOfArea": [serialize_home(h) for h in result["nowOutOfArea"]],
            "totalHomes": result["totalHomes"],
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error rechecking service areas: {e}")
        raise HTTPException(status_code=500, detail="Failed to recheck service areas")


# ============================================================================
# PRIORITY PERKS
# ============================================================================


@router.get("/priority-perks/config")
async def get_perks_config(current_user: User = Depends(get_current_owner), db: Session = Depends(get_db)):
    service = PerksConfigService(db)
    return service.serialize_for_form(service.get_config())


@router.put("/priority-perks/config")
async def update_perks_config(
    data: ConfigUpdate,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    service = PerksConfigService(db)
    try:
        config = service.update_config(data.values(), current_user, data.change_note)
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"❌ Error updating perks config: {e}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to update perks configuration")

    return {
        "success": True,
        "message": "Perks configuration updated",
        "config": service.serialize_for_form(config),
    }


@router.get("/priority-perks/history")
async def get_perks_history(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return {"history": PerksConfigService(db).get_history(limit, offset)}
