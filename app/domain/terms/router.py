"""Terms router - FastAPI endpoints for terms and conditions"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ...auth import get_current_manager, get_current_user
from ...database import get_db
from ...models import User
from ...security_utils import get_client_ip
from .schemas import TermsAcceptRequest, TermsCreate
from .service import TermsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/terms", tags=["Terms"])


def get_terms_service(db: Session = Depends(get_db)) -> TermsService:
    """Dependency injection for TermsService"""
    return TermsService(db)


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/current/{terms_type}")
async def get_current_terms(terms_type: str, service: TermsService = Depends(get_terms_service)):
    try:
        return service.get_current(terms_type)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching current {terms_type} terms: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch terms")


@router.get("/pdf/{terms_id}")
async def get_terms_pdf(terms_id: int, service: TermsService = Depends(get_terms_service)):
    terms = service.get_pdf(terms_id)
    return FileResponse(
        terms.pdf_file_path,
        media_type="application/pdf",
        filename=terms.pdf_file_name,
        content_disposition_type="inline",
    )


# ============================================================================
# AUTHENTICATED USER
# ============================================================================


@router.get("/check")
async def check_terms(
    current_user: User = Depends(get_current_user),
    service: TermsService = Depends(get_terms_service),
):
    """Whether the caller must accept a newer terms version"""
    try:
        return service.check(current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error checking terms status for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to check terms status")


@router.post("/accept")
async def accept_terms(
    data: TermsAcceptRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: TermsService = Depends(get_terms_service),
):
    try:
        return service.accept(data.termsId, current_user, get_client_ip(request))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error accepting terms for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to accept terms")


# ============================================================================
# MANAGER (OWNER / HR)
# ============================================================================


@router.get("/history/{terms_type}")
async def get_terms_history(
    terms_type: str,
    current_user: User = Depends(get_current_manager),
    service: TermsService = Depends(get_terms_service),
):
    try:
        return service.get_history(terms_type)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching {terms_type} terms history: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch terms history")


@router.post("", status_code=201)
async def create_terms(
    data: TermsCreate,
    current_user: User = Depends(get_current_manager),
    service: TermsService = Depends(get_terms_service),
):
    """Publish a new text version; the version number is max + 1 for its type"""
    try:
        return service.create_text_terms(data.type, data.title, data.content, data.effectiveDate, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error creating terms: {e}")
        raise HTTPException(status_code=500, detail="Failed to create terms")


@router.post("/upload-pdf", status_code=201)
async def upload_terms_pdf(
    terms_type: Optional[str] = Form(None, alias="type"),
    title: Optional[str] = Form(None),
    effectiveDate: Optional[datetime] = Form(None),
    pdf: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_manager),
    service: TermsService = Depends(get_terms_service),
):
    logger.info(f"📤 Terms PDF upload by user {current_user.id}: type={terms_type}")
    try:
        content = await pdf.read() if pdf else b""
        return service.upload_pdf_terms(
            terms_type,
            title,
            effectiveDate,
            pdf.filename if pdf else None,
            pdf.content_type if pdf else None,
            content,
            current_user,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error uploading terms PDF: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload terms PDF")


@router.get("/user-acceptance/{user_id}")
async def get_user_acceptance(
    user_id: int,
    current_user: User = Depends(get_current_manager),
    service: TermsService = Depends(get_terms_service),
):
    try:
        return service.get_user_acceptance(user_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching terms acceptance for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch user acceptance")


@router.get("/acceptance-snapshot/{acceptance_id}")
async def get_acceptance_snapshot(
    acceptance_id: int,
    current_user: User = Depends(get_current_manager),
    service: TermsService = Depends(get_terms_service),
):
    """The exact terms a user agreed to: the PDF copy, or the stored text"""
    acceptance = service.get_acceptance(acceptance_id)
    snapshot_path = service.snapshot_pdf_path(acceptance)
    if snapshot_path:
        user = acceptance.user
        return FileResponse(
            snapshot_path,
            media_type="application/pdf",
            filename=f"terms_accepted_by_user_{user.id if user else 'unknown'}_v{acceptance.terms.version}.pdf",
            content_disposition_type="inline",
        )
    return service.serialize_text_snapshot(acceptance)


@router.get("/{terms_id}/acceptances")
async def get_terms_acceptances(
    terms_id: int,
    current_user: User = Depends(get_current_manager),
    service: TermsService = Depends(get_terms_service),
):
    """Who accepted a particular version"""
    try:
        return service.get_terms_acceptances(terms_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching acceptances for terms {terms_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch terms acceptances")
