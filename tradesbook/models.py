import uuid

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
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    # From the token's email_verified claim; unverified emails grant nothing
    email_verified = Column(Boolean, default=False, nullable=False)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default="customer", nullable=False)  # customer, installer, admin
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    installer_profile = relationship("Installer", back_populates="user", uselist=False)
    bookings = relationship(
        "Booking", back_populates="customer", foreign_keys="Booking.customer_id"
    )


class Installer(Base):
    __tablename__ = "installers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    business_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    service_area = Column(String(100), nullable=True)  # County, e.g. "Dublin"
    address = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    years_experience = Column(Integer, default=0)
    bio = Column(Text, nullable=True)
    profile_photo_url = Column(String(500), nullable=True)
    approval_status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    rejection_reason = Column(String(500), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    # Wallet used to pay lead fees
    wallet_balance = Column(Float, default=0.0, nullable=False)
    wallet_total_spent = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="installer_profile")
    assignments = relationship("JobAssignment", back_populates="installer")
    transactions = relationship(
        "WalletTransaction", back_populates="installer", order_by="WalletTransaction.id.desc()"
    )
    availability = relationship("InstallerAvailability", back_populates="installer")
    reviews = relationship("Review", back_populates="installer")


class WalletTransaction(Base):
    __tablename__ = "installer_transactions"

    id = Column(Integer, primary_key=True, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)  # lead_purchase, earnings, credit_topup, refund
    amount = Column(Float, nullable=False)  # negative for money leaving the wallet
    description = Column(String(500), nullable=True)
    job_assignment_id = Column(Integer, ForeignKey("job_assignments.id"), nullable=True)
    status = Column(String(20), default="completed")
    created_at = Column(DateTime, server_default=func.now())

    installer = relationship("Installer", back_populates="transactions")


# ============================================
# Pricing catalog
# ============================================


class ServiceTier(Base):
    __tablename__ = "service_tiers"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(50), unique=True, index=True, nullable=False)  # e.g. silver-large
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False)  # table-top, bronze, silver, gold
    tv_size_min = Column(Integer, nullable=True)
    tv_size_max = Column(Integer, nullable=True)  # NULL = no upper bound
    base_price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True)
    display_order = Column(Integer, default=0)

    fee_structure = relationship("FeeStructure", back_populates="service_tier", uselist=False)


class FeeStructure(Base):
    __tablename__ = "fee_structures"

    id = Column(Integer, primary_key=True, index=True)
    service_tier_id = Column(Integer, ForeignKey("service_tiers.id"), unique=True, nullable=False)
    fee_percentage = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service_tier = relationship("ServiceTier", back_populates="fee_structure")


class AddOnService(Base):
    __tablename__ = "add_on_services"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True)


class WallMountPricing(Base):
    __tablename__ = "wall_mount_pricing"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True)
    display_order = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ReferralCode(Base):
    __tablename__ = "referral_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)  # stored upper-case
    discount_percentage = Column(Float, nullable=False)
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)
    max_uses = Column(Integer, nullable=True)  # NULL = unlimited
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


# ============================================
# Bookings
# ============================================


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    qr_code = Column(String(50), unique=True, index=True, nullable=False)  # public reference
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL for guests
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=True)

    # Contact details (guests have no user row)
    contact_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False, index=True)
    contact_phone = Column(String(50), nullable=False)
    address = Column(String(500), nullable=False)
    eircode = Column(String(10), nullable=True)
    county = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Primary TV (first TV for multi-TV bookings)
    service_tier = Column(String(50), nullable=False)
    tv_size = Column(Integer, nullable=False)
    wall_type = Column(String(50), nullable=False)
    mount_type = Column(String(50), nullable=False)
    tv_quantity = Column(Integer, default=1, nullable=False)

    scheduled_date = Column(Date, nullable=True)
    time_slot = Column(String(10), nullable=True)  # HH:MM start of a 2 hour window
    customer_notes = Column(Text, nullable=True)
    room_photo_url = Column(String(1000), nullable=True)
    ai_preview_url = Column(String(1000), nullable=True)
    room_analysis = Column(JSON, nullable=True)

    status = Column(String(20), default="pending", nullable=False, index=True)
    # pending, open, confirmed, assigned, in-progress, completed, cancelled

    base_price = Column(Float, nullable=False)
    addon_total = Column(Float, default=0.0, nullable=False)
    total_price = Column(Float, nullable=False)  # base_price + addon_total
    app_fee = Column(Float, nullable=False)
    discount_amount = Column(Float, default=0.0, nullable=False)
    referral_code = Column(String(50), nullable=True)

    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("User", back_populates="bookings", foreign_keys=[customer_id])
    installer = relationship("Installer", foreign_keys=[installer_id])
    tv_installations = relationship(
        "BookingTvInstallation",
        back_populates="booking",
        order_by="BookingTvInstallation.position",
        cascade="all, delete-orphan",
    )
    addons = relationship("BookingAddOn", back_populates="booking", cascade="all, delete-orphan")
    assignments = relationship("JobAssignment", back_populates="booking", cascade="all, delete-orphan")
    negotiations = relationship(
        "ScheduleNegotiation", back_populates="booking", cascade="all, delete-orphan"
    )
    review = relationship("Review", back_populates="booking", uselist=False, cascade="all, delete-orphan")

    @property
    def final_price(self) -> float:
        return round((self.total_price or 0) - (self.discount_amount or 0), 2)


class BookingTvInstallation(Base):
    __tablename__ = "booking_tv_installations"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # 0-based order within the booking
    location = Column(String(100), nullable=True)  # e.g. "Living room"
    tv_size = Column(Integer, nullable=False)
    service_tier = Column(String(50), nullable=False)
    wall_type = Column(String(50), nullable=False)
    mount_type = Column(String(50), nullable=False)
    needs_wall_mount = Column(Boolean, default=False)
    wall_mount_option = Column(String(50), nullable=True)
    base_price = Column(Float, nullable=False)
    addon_total = Column(Float, default=0.0)

    booking = relationship("Booking", back_populates="tv_installations")


class BookingAddOn(Base):
    __tablename__ = "booking_add_ons"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    tv_position = Column(Integer, default=0)
    addon_key = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)  # price at time of booking

    booking = relationship("Booking", back_populates="addons")


class JobAssignment(Base):
    __tablename__ = "job_assignments"
    __table_args__ = (UniqueConstraint("booking_id", "installer_id", name="uq_assignment_booking_installer"),)

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)  # accepted, declined, in-progress, completed, cancelled
    lead_fee = Column(Float, default=0.0)
    lead_fee_status = Column(String(20), default="unpaid")  # unpaid, paid, refunded
    accepted_at = Column(DateTime, nullable=True)
    declined_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="assignments")
    installer = relationship("Installer", back_populates="assignments")


class InstallerAvailability(Base):
    __tablename__ = "installer_availability"
    __table_args__ = (UniqueConstraint("installer_id", "date", "time_slot", name="uq_availability_slot"),)

    id = Column(Integer, primary_key=True, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    time_slot = Column(String(10), nullable=False)
    is_available = Column(Boolean, default=True)

    installer = relationship("Installer", back_populates="availability")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rating = Column(Integer, nullable=False)  # 1-5
    title = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="review")
    installer = relationship("Installer", back_populates="reviews")


class ScheduleNegotiation(Base):
    __tablename__ = "schedule_negotiations"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=True)
    proposed_by = Column(String(20), nullable=False)  # customer or installer
    proposed_date = Column(Date, nullable=False)
    proposed_time_slot = Column(String(10), nullable=False)
    message = Column(String(1000), nullable=True)
    status = Column(String(20), default="pending")  # pending, accepted, rejected, countered
    response_message = Column(String(1000), nullable=True)
    responded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="negotiations")


class BookingDraft(Base):
    __tablename__ = "booking_drafts"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    state = Column(JSON, nullable=False)  # serialised wizard state
    status = Column(String(20), default="active")  # active, submitted
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
