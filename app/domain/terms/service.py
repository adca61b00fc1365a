"""Terms service - Business logic for terms versions, PDF storage and acceptances"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import MAX_TERMS_PDF_SIZE, TERMS_UPLOAD_DIR
from ...models import TermsAndConditions, User, UserTermsAcceptance
from ...security_utils import is_pdf_content, sanitize_filename, sanitize_html
from .repository import TermsRepository

logger = logging.getLogger(__name__)

TERMS_TYPES = ("homeowner", "cleaner")


def validate_terms_type(terms_type: Optional[str]) -> str:
    if terms_type not in TERMS_TYPES:
        raise HTTPException(status_code=400, detail="Type must be 'homeowner' or 'cleaner'")
    return terms_type


def terms_type_for(user: User) -> str:
    return "cleaner" if user.type == "cleaner" else "homeowner"


def pdf_url(terms: TermsAndConditions) -> str:
    return f"/api/v1/terms/pdf/{terms.id}"


def serialize_terms(terms: TermsAndConditions) -> dict[str, Any]:
    """Public view: text terms carry their content, PDF terms a download link"""
    data = {
        "id": terms.id,
        "type": terms.type,
        "version": terms.version,
        "title": terms.title,
        "contentType": terms.content_type,
        "effectiveDate": terms.effective_date,
    }
    if terms.content_type == "pdf":
        data["pdfFileName"] = terms.pdf_file_name
        data["pdfUrl"] = pdf_url(terms)
    else:
        data["content"] = terms.content
    return data


def _stamp() -> str:
    return datetime.utcnow().strftime("%Y%m%d")


class TermsService:
    """Service layer for terms business logic"""

    def __init__(self, db: Session, upload_dir: str = TERMS_UPLOAD_DIR):
        self.db = db
        self.repo = TermsRepository()
        self.upload_dir = Path(upload_dir)

    def _get_terms(self, terms_id: int) -> TermsAndConditions:
        terms = self.repo.get_by_id(self.db, terms_id)
        if not terms:
            raise HTTPException(status_code=404, detail="Terms not found")
        return terms

    # ========================================================================
    # PUBLIC / USER
    # ========================================================================

    def get_current(self, terms_type: str) -> dict[str, Any]:
        terms = self.repo.get_current(self.db, validate_terms_type(terms_type))
        if not terms:
            return {"terms": None, "message": "No terms available yet"}
        return {"terms": serialize_terms(terms)}

    def check(self, user: User) -> dict[str, Any]:
        """Whether the user still has to accept the latest version for their role"""
        current = self.repo.get_current(self.db, terms_type_for(user))
        if not current:
            return {"requiresAcceptance": False, "message": "No terms configured yet"}

        accepted = user.terms_accepted_version
        requires_acceptance = not accepted or accepted < current.version
        response = {
            "requiresAcceptance": requires_acceptance,
            "currentVersion": current.version,
            "acceptedVersion": accepted,
        }
        if requires_acceptance:
            response["terms"] = serialize_terms(current)
        return response

    def accept(self, terms_id: Optional[int], user: User, ip_address: Optional[str]) -> dict[str, Any]:
        if not terms_id:
            raise HTTPException(status_code=400, detail="termsId is required")
        terms = self._get_terms(terms_id)

        content_snapshot = None
        pdf_snapshot_path = None
        if terms.content_type == "pdf":
            pdf_snapshot_path = self._snapshot_pdf(terms, user)
        else:
            content_snapshot = terms.content

        self.repo.create_acceptance(
            self.db,
            user_id=user.id,
            terms_id=terms.id,
            accepted_at=datetime.utcnow(),
            ip_address=ip_address,
            terms_content_snapshot=content_snapshot,
            pdf_snapshot_path=pdf_snapshot_path,
        )
        user.terms_accepted_version = terms.version
        self.db.commit()
        logger.info(f"✅ User {user.id} accepted {terms.type} terms v{terms.version}")

        return {
            "success": True,
            "message": "Terms accepted successfully",
            "acceptedVersion": terms.version,
        }

    def _snapshot_pdf(self, terms: TermsAndConditions, user: User) -> Optional[str]:
        """Copy the accepted PDF so later versions cannot change what the user agreed to"""
        if not terms.pdf_file_path or not Path(terms.pdf_file_path).exists():
            logger.warning(f"⚠️ PDF for terms {terms.id} missing on disk, no snapshot taken")
            return None
        snapshot_dir = self.upload_dir / terms.type / "snapshots"
        snapshot_dir.mkdir(parents=True, exist_ok=True)
        snapshot_path = snapshot_dir / f"user_{user.id}_v{terms.version}_{_stamp()}.pdf"
        shutil.copyfile(terms.pdf_file_path, snapshot_path)
        return str(snapshot_path)

    def get_pdf(self, terms_id: int) -> TermsAndConditions:
        terms = self._get_terms(terms_id)
        if terms.content_type != "pdf" or not terms.pdf_file_path:
            raise HTTPException(status_code=400, detail="This terms version is not a PDF")
        if not Path(terms.pdf_file_path).exists():
            raise HTTPException(status_code=404, detail="PDF file not found")
        return terms

    # ========================================================================
    # MANAGER
    # ========================================================================

    def get_history(self, terms_type: str) -> dict[str, Any]:
        versions = self.repo.get_history(self.db, validate_terms_type(terms_type))
        return {
            "type": terms_type,
            "versions": [
                {
                    "id": t.id,
                    "version": t.version,
                    "title": t.title,
                    "contentType": t.content_type,
                    "effectiveDate": t.effective_date,
                    "createdAt": t.created_at,
                    "createdBy": t.creator.display_name if t.creator else "Unknown",
                    "pdfFileName": t.pdf_file_name,
                    "pdfUrl": pdf_url(t) if t.content_type == "pdf" else None,
                }
                for t in versions
            ],
        }

    def create_text_terms(
        self,
        terms_type: Optional[str],
        title: Optional[str],
        content: Optional[str],
        effective_date: Optional[datetime],
        manager: User,
    ) -> dict[str, Any]:
        if not terms_type or not title or not content:
            raise HTTPException(status_code=400, detail="type, title, and content are required")
        validate_terms_type(terms_type)

        terms = self.repo.create(
            self.db,
            type=terms_type,
            version=self.repo.next_version(self.db, terms_type),
            title=title.strip(),
            content=sanitize_html(content),
            content_type="text",
            effective_date=effective_date or datetime.utcnow(),
            created_by=manager.id,
        )
        logger.info(f"📄 {terms_type} terms v{terms.version} created by user {manager.id}")
        return {"success": True, "message": "Terms created successfully", "terms": serialize_terms(terms)}

    def upload_pdf_terms(
        self,
        terms_type: Optional[str],
        title: Optional[str],
        effective_date: Optional[datetime],
        file_name: Optional[str],
        media_type: Optional[str],
        content: bytes,
        manager: User,
    ) -> dict[str, Any]:
        if not terms_type or not title:
            raise HTTPException(status_code=400, detail="type and title are required")
        validate_terms_type(terms_type)
        if not content:
            raise HTTPException(status_code=400, detail="PDF file is required")
        if media_type != "application/pdf" or not is_pdf_content(content):
            raise HTTPException(status_code=400, detail="Only PDF files are allowed")
        if len(content) > MAX_TERMS_PDF_SIZE:
            raise HTTPException(status_code=400, detail="File too large")

        version = self.repo.next_version(self.db, terms_type)
        target_dir = self.upload_dir / terms_type
        target_dir.mkdir(parents=True, exist_ok=True)
        target_path = target_dir / f"v{version}_terms_{_stamp()}.pdf"
        target_path.write_bytes(content)

        try:
            terms = self.repo.create(
                self.db,
                type=terms_type,
                version=version,
                title=title.strip(),
                content_type="pdf",
                pdf_file_name=sanitize_filename(file_name or target_path.name),
                pdf_file_path=str(target_path),
                pdf_file_size=len(content),
                effective_date=effective_date or datetime.utcnow(),
                created_by=manager.id,
            )
        except Exception:
            target_path.unlink(missing_ok=True)
            raise

        logger.info(f"📄 {terms_type} terms PDF v{version} uploaded by user {manager.id} ({len(content)} bytes)")
        return {"success": True, "message": "Terms PDF uploaded successfully", "terms": serialize_terms(terms)}

    def get_user_acceptance(self, user_id: int) -> dict[str, Any]:
        user = self.repo.get_user(self.db, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        acceptances = self.repo.get_user_acceptances(self.db, user.id)
        return {
            "user": {
                "id": user.id,
                "name": user.display_name,
                "email": user.email,
                "type": user.type,
                "currentAcceptedVersion": user.terms_accepted_version,
            },
            "acceptances": [
                {
                    "id": a.id,
                    "termsId": a.terms_id,
                    "termsVersion": a.terms.version if a.terms else None,
                    "termsTitle": a.terms.title if a.terms else None,
                    "termsType": a.terms.type if a.terms else None,
                    "contentType": a.terms.content_type if a.terms else None,
                    "acceptedAt": a.accepted_at,
                    "ipAddress": a.ip_address,
                    "hasSnapshot": bool(a.terms_content_snapshot or a.pdf_snapshot_path),
                    "snapshotUrl": f"/api/v1/terms/acceptance-snapshot/{a.id}" if a.pdf_snapshot_path else None,
                }
                for a in acceptances
            ],
        }

    def get_acceptance(self, acceptance_id: int) -> UserTermsAcceptance:
        acceptance = self.repo.get_acceptance(self.db, acceptance_id)
        if not acceptance:
            raise HTTPException(status_code=404, detail="Acceptance record not found")
        return acceptance

    @staticmethod
    def snapshot_pdf_path(acceptance: UserTermsAcceptance) -> Optional[str]:
        """Path of the stored PDF copy, or None for text acceptances"""
        if not (acceptance.terms and acceptance.terms.content_type == "pdf" and acceptance.pdf_snapshot_path):
            return None
        if not Path(acceptance.pdf_snapshot_path).exists():
            raise HTTPException(status_code=404, detail="PDF snapshot file not found")
        return acceptance.pdf_snapshot_path

    @staticmethod
    def serialize_text_snapshot(acceptance: UserTermsAcceptance) -> dict[str, Any]:
        user = acceptance.user
        terms = acceptance.terms
        return {
            "acceptance": {
                "id": acceptance.id,
                "acceptedAt": acceptance.accepted_at,
                "ipAddress": acceptance.ip_address,
            },
            "user": {"id": user.id, "name": user.display_name, "email": user.email} if user else None,
            "terms": {
                "id": terms.id,
                "type": terms.type,
                "version": terms.version,
                "title": terms.title,
                "contentType": terms.content_type,
            }
            if terms
            else None,
            "snapshot": {"contentType": "text", "content": acceptance.terms_content_snapshot},
        }

    def get_terms_acceptances(self, terms_id: int) -> dict[str, Any]:
        terms = self._get_terms(terms_id)
        acceptances = self.repo.get_terms_acceptances(self.db, terms.id)
        return {
            "terms": {
                "id": terms.id,
                "type": terms.type,
                "version": terms.version,
                "title": terms.title,
                "contentType": terms.content_type,
                "effectiveDate": terms.effective_date,
            },
            "totalAcceptances": len(acceptances),
            "acceptances": [
                {
                    "id": a.id,
                    "user": {
                        "id": a.user.id,
                        "name": a.user.display_name,
                        "email": a.user.email,
                        "type": a.user.type,
                    }
                    if a.user
                    else None,
                    "acceptedAt": a.accepted_at,
                    "ipAddress": a.ip_address,
                    "hasSnapshot": bool(a.terms_content_snapshot or a.pdf_snapshot_path),
                }
                for a in acceptances
            ],
        }
