from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base

USER_TYPES = ("homeowner", "cleaner", "owner", "humanResources")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    type = Column(String(50), default="homeowner", nullable=False)  # homeowner, cleaner, owner, humanResources
    notifications = Column(JSON, default=list, nullable=True)  # channels: "email", "phone"
    days_working = Column(JSON, default=list, nullable=True)  # cleaner shift days
    is_demo_account = Column(Boolean, default=False, nullable=False)
    # Cleaner moderation
    account_frozen = Column(Boolean, default=False, nullable=False)
    account_frozen_at = Column(DateTime, nullable=True)
    account_frozen_reason = Column(Text, nullable=True)
    account_status_updated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    warning_count = Column(Integer, default=0, nullable=False)
    last_login = Column(DateTime, nullable=True)
    terms_accepted_version = Column(Integer, nullable=True)
    owner_notification_email = Column(String(255), nullable=True)  # Owner alerts go here when set
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    homes = relationship(
        "UserHome",
        back_populates="user",
        foreign_keys="UserHome.user_id",
        cascade="all, delete-orphan",
    )
    appointments = relationship(
        "UserAppointment", back_populates="user", cascade="all, delete-orphan"
    )
    bill = relationship("UserBill", back_populates="user", uselist=False, cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.username


class UserHome(Base):
    __tablename__ = "user_homes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    nickname = Column(String(255), nullable=True)
    address = Column(String(500), nullable=False)
    city = Column(String(255), nullable=False)
    state = Column(String(50), nullable=False)
    zipcode = Column(String(20), nullable=False)
    num_beds = Column(String(10), nullable=False)
    num_baths = Column(String(10), nullable=False)
    sheets_provided = Column(String(10), default="no")  # "yes" when the company brings sheets
    towels_provided = Column(String(10), default="no")
    time_to_be_completed = Column(String(20), default="anytime")  # anytime, 10-3, 11-4, 12-2
    cleaners_needed = Column(Integer, default=1)
    special_notes = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    outside_service_area = Column(Boolean, default=False, nullable=False)
    preferred_cleaner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="homes", foreign_keys=[user_id])
    appointments = relationship("UserAppointment", back_populates="home")


class UserAppointment(Base):
    __tablename__ = "user_appointments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    home_id = Column(Integer, ForeignKey("user_homes.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    price = Column(String(20), nullable=False)  # dollars, stored as string
    paid = Column(Boolean, default=False, nullable=False)
    bring_sheets = Column(String(10), default="no")
    bring_towels = Column(String(10), default="no")
    sheet_configurations = Column(JSON, nullable=True)
    towel_configurations = Column(JSON, nullable=True)
    time_to_be_completed = Column(String(20), default="anytime")
    completed = Column(Boolean, default=False, nullable=False)
    has_been_assigned = Column(Boolean, default=False, nullable=False)
    employees_assigned = Column(JSON, default=list)  # cleaner ids as strings
    early_access_until = Column(DateTime, nullable=True)  # platinum-only window
    # Preferred cleaner flow
    preferred_cleaner_declined = Column(Boolean, default=False, nullable=False)
    declined_at = Column(DateTime, nullable=True)
    client_response_pending = Column(Boolean, default=False, nullable=False)
    open_to_market = Column(Boolean, default=False, nullable=False)
    opened_to_market_at = Column(DateTime, nullable=True)
    business_owner_price = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="appointments")
    home = relationship("UserHome", back_populates="appointments")


class UserBill(Base):
    __tablename__ = "user_bills"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    cancellation_fee = Column(Float, default=0, nullable=False)
    appointment_due = Column(Float, default=0, nullable=False)
    total_due = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="bill")


class UserCleanerAppointment(Base):
    __tablename__ = "user_cleaner_appointments"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("user_appointments.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserPendingRequest(Base):
    __tablename__ = "user_pending_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("user_appointments.id", ondelete="CASCADE"), nullable=False)
    home_id = Column(Integer, ForeignKey("user_homes.id"), nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    employee = relationship("User", foreign_keys=[employee_id])
    appointment = relationship("UserAppointment")


class UserReview(Base):
    __tablename__ = "user_reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # reviewed user
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("user_appointments.id"), nullable=True)
    review = Column(Float, nullable=False)  # 1-5 rating
    review_comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class OwnerWithdrawal(Base):
    __tablename__ = "owner_withdrawals"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(100), unique=True, nullable=False)
    amount = Column(Integer, nullable=False)  # cents
    status = Column(
        String(20), default="pending", nullable=False
    )  # pending, processing, completed, failed, canceled
    stripe_payout_id = Column(String(255), nullable=True, index=True)
    bank_account_last4 = Column(String(4), nullable=True)
    bank_name = Column(String(255), nullable=True)
    description = Column(String(500), nullable=True)
    failure_reason = Column(Text, nullable=True)
    requested_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    estimated_arrival = Column(DateTime, nullable=True)


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    conversation_type = Column(String(20), nullable=False)  # appointment, broadcast, support
    appointment_id = Column(Integer, ForeignKey("user_appointments.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    participants = relationship(
        "ConversationParticipant", back_populates="conversation", cascade="all, delete-orphan"
    )
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.id",
    )


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"
    __table_args__ = (UniqueConstraint("conversation_id", "user_id"),)

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    last_read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(String(20), default="text", nullable=False)  # text, broadcast
    deleted_at = Column(DateTime, nullable=True)  # soft delete
    created_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User")
    reactions = relationship("MessageReaction", cascade="all, delete-orphan")


class MessageReaction(Base):
    __tablename__ = "message_reactions"
    __table_args__ = (UniqueConstraint("message_id", "user_id", "emoji"),)

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    emoji = Column(String(32), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")


class TermsAndConditions(Base):
    __tablename__ = "terms_and_conditions"
    __table_args__ = (UniqueConstraint("type", "version"),)

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(20), nullable=False)  # homeowner, cleaner
    version = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    content_type = Column(String(10), default="text", nullable=False)  # text, pdf
    pdf_file_name = Column(String(255), nullable=True)
    pdf_file_path = Column(String(500), nullable=True)
    pdf_file_size = Column(Integer, nullable=True)
    effective_date = Column(DateTime, default=datetime.utcnow)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    creator = relationship("User")


class UserTermsAcceptance(Base):
    __tablename__ = "user_terms_acceptances"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    terms_id = Column(Integer, ForeignKey("terms_and_conditions.id"), nullable=False)
    accepted_at = Column(DateTime, default=datetime.utcnow)
    ip_address = Column(String(100), nullable=True)
    terms_content_snapshot = Column(Text, nullable=True)  # text terms as accepted
    pdf_snapshot_path = Column(String(500), nullable=True)  # copy of the accepted PDF

    user = relationship("User")
    terms = relationship("TermsAndConditions")


class ServiceAreaConfig(Base):
    __tablename__ = "service_area_configs"

    id = Column(Integer, primary_key=True, index=True)
    enabled = Column(Boolean, default=False, nullable=False)
    mode = Column(String(10), default="list", nullable=False)  # list, radius
    cities = Column(JSON, default=list)
    states = Column(JSON, default=list)
    zipcodes = Column(JSON, default=list)  # exact values or prefixes
    center_address = Column(String(500), nullable=True)
    center_latitude = Column(Float, nullable=True)
    center_longitude = Column(Float, nullable=True)
    radius_miles = Column(Float, default=25, nullable=False)
    outside_area_message = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ServiceAreaConfigHistory(Base):
    __tablename__ = "service_area_config_history"

    id = Column(Integer, primary_key=True, index=True)
    config = Column(JSON, nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    change_note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    updater = relationship("User")


class PreferredPerksConfig(Base):
    __tablename__ = "preferred_perks_configs"

    id = Column(Integer, primary_key=True, index=True)
    bronze_min_homes = Column(Integer, default=1, nullable=False)
    bronze_max_homes = Column(Integer, default=2, nullable=False)
    bronze_bonus_percent = Column(Float, default=0, nullable=False)
    silver_min_homes = Column(Integer, default=3, nullable=False)
    silver_max_homes = Column(Integer, default=5, nullable=False)
    silver_bonus_percent = Column(Float, default=3, nullable=False)
    gold_min_homes = Column(Integer, default=6, nullable=False)
    gold_max_homes = Column(Integer, default=10, nullable=False)
    gold_bonus_percent = Column(Float, default=5, nullable=False)
    gold_faster_payouts = Column(Boolean, default=True, nullable=False)
    gold_payout_hours = Column(Integer, default=24, nullable=False)
    platinum_min_homes = Column(Integer, default=11, nullable=False)
    platinum_bonus_percent = Column(Float, default=7, nullable=False)
    platinum_faster_payouts = Column(Boolean, default=True, nullable=False)
    platinum_payout_hours = Column(Integer, default=24, nullable=False)
    platinum_early_access = Column(Boolean, default=True, nullable=False)
    early_access_minutes = Column(Integer, default=30, nullable=False)
    backup_cleaner_timeout_hours = Column(Integer, default=24, nullable=False)
    platform_max_daily_jobs = Column(Integer, default=5, nullable=False)
    platform_max_concurrent_jobs = Column(Integer, default=3, nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PreferredPerksConfigHistory(Base):
    __tablename__ = "preferred_perks_config_history"

    id = Column(Integer, primary_key=True, index=True)
    config_id = Column(Integer, ForeignKey("preferred_perks_configs.id"), nullable=False)
    changes = Column(JSON, nullable=False)  # {field: {"old": ..., "new": ...}}
    previous_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    change_note = Column(Text, nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    changer = relationship("User")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)  # account_frozen, warning_issued, ...
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
