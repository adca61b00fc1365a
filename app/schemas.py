from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Request bodies arrive camelCased from the mobile client"""

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Sessions / users
# ============================================================================


class LoginRequest(CamelModel):
    username: str
    password: str


class SignupRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=255)
    email: str
    password: str = Field(..., min_length=6)
    type: Optional[str] = "homeowner"
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    phone: Optional[str] = None
    terms_id: Optional[int] = Field(None, alias="termsId")


class PasswordUpdate(CamelModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword", min_length=6)


class EmailUpdate(CamelModel):
    email: Optional[str] = None


class PhoneUpdate(CamelModel):
    phone: Optional[str] = None


class NotificationPreferences(CamelModel):
    notifications: List[str]


# ============================================================================
# Homes
# ============================================================================


class HomeBase(CamelModel):
    nickname: Optional[str] = Field(None, alias="nickName")
    sheets_provided: Optional[str] = Field(None, alias="sheetsProvided")
    towels_provided: Optional[str] = Field(None, alias="towelsProvided")
    time_to_be_completed: Optional[str] = Field(None, alias="timeToBeCompleted")
    cleaners_needed: Optional[int] = Field(None, alias="cleanersNeeded", ge=1)
    special_notes: Optional[str] = Field(None, alias="specialNotes")
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class HomeCreate(HomeBase):
    address: str
    city: str
    state: str
    zipcode: str
    num_beds: str = Field(..., alias="numBeds")
    num_baths: str = Field(..., alias="numBaths")


class HomeUpdate(HomeBase):
    id: int
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    num_beds: Optional[str] = Field(None, alias="numBeds")
    num_baths: Optional[str] = Field(None, alias="numBaths")


class HomeDelete(CamelModel):
    id: int


# ============================================================================
# Appointments
# ============================================================================


class AppointmentDate(CamelModel):
    date: date
    price: str
    bring_sheets: str = Field("no", alias="bringSheets")
    bring_towels: str = Field("no", alias="bringTowels")


class AppointmentCreate(CamelModel):
    home_id: int = Field(..., alias="homeId")
    date_array: List[AppointmentDate] = Field(..., alias="dateArray", min_length=1)
    time_to_be_completed: Optional[str] = Field(None, alias="timeToBeCompleted")


class AppointmentUpdate(CamelModel):
    bring_sheets: Optional[str] = Field(None, alias="bringSheets")
    bring_towels: Optional[str] = Field(None, alias="bringTowels")
    time_to_be_completed: Optional[str] = Field(None, alias="timeToBeCompleted")


class LinensUpdate(CamelModel):
    sheet_configurations: Optional[List[Dict[str, Any]]] = Field(None, alias="sheetConfigurations")
    towel_configurations: Optional[List[Dict[str, Any]]] = Field(None, alias="towelConfigurations")


class AppointmentCancel(CamelModel):
    fee: float = 0


class EmployeeRequestCreate(CamelModel):
    id: int  # cleaner id
    appointment_id: int = Field(..., alias="appointmentId")
    acknowledged: bool = False


class ApproveRequestBody(CamelModel):
    request_id: int = Field(..., alias="requestId")
    approve: bool


class DenyRequestBody(CamelModel):
    id: int  # cleaner id
    appointment_id: int = Field(..., alias="appointmentId")


class ShiftsUpdate(CamelModel):
    days: List[str]


class ClientResponseBody(CamelModel):
    action: Optional[str] = None


# ============================================================================
# Owner dashboard
# ============================================================================


class FreezeRequest(CamelModel):
    reason: Optional[str] = None


class WarningRequest(CamelModel):
    reason: Optional[str] = None
    severity: str = "minor"


class NotificationEmailUpdate(CamelModel):
    email: Optional[str] = None
    notification_email: Optional[str] = Field(None, alias="notificationEmail")

    @property
    def value(self) -> Optional[str]:
        return self.notification_email if self.notification_email is not None else self.email


class WithdrawRequest(CamelModel):
    amount: int  # cents
    description: Optional[str] = None


class ConfigUpdate(CamelModel):
    """Service-area and perks updates: the fields are validated by their services"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    change_note: Optional[str] = Field(None, alias="changeNote")

    def values(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})
