"""
Service Areas API Routes

Public address checks against the owner's service-area config.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..rate_limiter import create_rate_limiter
from ..services.service_area_validator import US_STATES, ServiceAreaValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/service-areas", tags=["service-areas"])

rate_limit_check = create_rate_limiter(limit=60, window_seconds=60, key_prefix="service_area_check")


class ServiceAreaCheckResponse(BaseModel):
    isServiceable: bool = Field(..., description="Whether the address is inside the service area")
    message: Optional[str] = Field(None, description="Outside-area message shown to the homeowner")


class StateOption(BaseModel):
    code: str
    name: str


@router.get("/check", response_model=ServiceAreaCheckResponse)
async def check_service_area(
    zipcode: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check),
):
    """Public endpoint used by the add-home form before submitting"""
    try:
        is_serviceable, message = ServiceAreaValidator(db).check_location(
            zipcode=zipcode, city=city, state=state
        )
        return ServiceAreaCheckResponse(isServiceable=is_serviceable, message=message)
    except Exception as e:
        logger.error(f"❌ Error checking service area for {zipcode or city or state}: {e}")
        raise HTTPException(status_code=500, detail="Failed to check service area")


@router.get("/states", response_model=List[StateOption])
async def list_states():
    return [StateOption(code=code, name=name) for code, name in sorted(US_STATES.items(), key=lambda s: s[1])]
