"""Terms domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class TermsCreate(BaseModel):
    type: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    effectiveDate: Optional[datetime] = None


class TermsAcceptRequest(BaseModel):
    termsId: Optional[int] = None
