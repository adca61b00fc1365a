"""
Model -> JSON dict conversion (camelCase keys, as the mobile client expects)
"""

from typing import Any, Optional

from .models import (
    Notification,
    User,
    UserAppointment,
    UserBill,
    UserHome,
    UserPendingRequest,
    UserReview,
)


def serialize_user(user: Optional[User]) -> Optional[dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "phone": user.phone,
        "type": user.type,
        "notifications": user.notifications or [],
        "daysWorking": user.days_working or [],
        "accountFrozen": user.account_frozen,
        "accountFrozenAt": user.account_frozen_at,
        "accountFrozenReason": user.account_frozen_reason,
        "warningCount": user.warning_count,
        "lastLogin": user.last_login,
        "termsAcceptedVersion": user.terms_accepted_version,
        "createdAt": user.created_at,
    }


def serialize_user_summary(user: Optional[User]) -> Optional[dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "type": user.type,
    }


def serialize_home(home: Optional[UserHome]) -> Optional[dict[str, Any]]:
    if home is None:
        return None
    return {
        "id": home.id,
        "userId": home.user_id,
        "nickName": home.nickname,
        "address": home.address,
        "city": home.city,
        "state": home.state,
        "zipcode": home.zipcode,
        "numBeds": home.num_beds,
        "numBaths": home.num_baths,
        "sheetsProvided": home.sheets_provided,
        "towelsProvided": home.towels_provided,
        "timeToBeCompleted": home.time_to_be_completed,
        "cleanersNeeded": home.cleaners_needed,
        "specialNotes": home.special_notes,
        "latitude": home.latitude,
        "longitude": home.longitude,
        "outsideServiceArea": home.outside_service_area,
        "preferredCleanerId": home.preferred_cleaner_id,
    }


def serialize_appointment(appointment: Optional[UserAppointment]) -> Optional[dict[str, Any]]:
    if appointment is None:
        return None
    return {
        "id": appointment.id,
        "userId": appointment.user_id,
        "homeId": appointment.home_id,
        "date": appointment.date.isoformat() if appointment.date else None,
        "price": appointment.price,
        "paid": appointment.paid,
        "bringSheets": appointment.bring_sheets,
        "bringTowels": appointment.bring_towels,
        "sheetConfigurations": appointment.sheet_configurations,
        "towelConfigurations": appointment.towel_configurations,
        "timeToBeCompleted": appointment.time_to_be_completed,
        "completed": appointment.completed,
        "hasBeenAssigned": appointment.has_been_assigned,
        "employeesAssigned": appointment.employees_assigned or [],
        "earlyAccessUntil": appointment.early_access_until,
        "preferredCleanerDeclined": appointment.preferred_cleaner_declined,
        "clientResponsePending": appointment.client_response_pending,
        "openToMarket": appointment.open_to_market,
        "businessOwnerPrice": appointment.business_owner_price,
    }


def serialize_bill(bill: Optional[UserBill]) -> Optional[dict[str, Any]]:
    if bill is None:
        return None
    return {
        "id": bill.id,
        "userId": bill.user_id,
        "cancellationFee": bill.cancellation_fee,
        "appointmentDue": bill.appointment_due,
        "totalDue": bill.total_due,
    }


def serialize_review(review: UserReview) -> dict[str, Any]:
    return {
        "id": review.id,
        "userId": review.user_id,
        "reviewerId": review.reviewer_id,
        "appointmentId": review.appointment_id,
        "review": review.review,
        "reviewComment": review.review_comment,
        "createdAt": review.created_at,
    }


def serialize_pending_request(request: UserPendingRequest) -> dict[str, Any]:
    return {
        "id": request.id,
        "employeeId": request.employee_id,
        "appointmentId": request.appointment_id,
        "homeId": request.home_id,
        "status": request.status,
        "employee": serialize_user_summary(request.employee),
        "appointment": serialize_appointment(request.appointment),
    }


def serialize_notification(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "data": notification.data or {},
        "isRead": notification.is_read,
        "createdAt": notification.created_at,
    }
