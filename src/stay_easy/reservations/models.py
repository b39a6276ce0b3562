# stay_easy/reservations/models.py
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, Float, ForeignKey, Integer, String, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow():
    return datetime.now(timezone.utc)


def _values(enum_cls):
    # persist the enum *values* ("checked-in"), not the member names
    return [m.value for m in enum_cls]


class RoomStatus(enum.Enum):
    available = "available"
    reserved = "reserved"
    occupied = "occupied"
    maintenance = "maintenance"


class ReservationStatus(enum.Enum):
    pending = "pending"
    pending_payment = "pending_payment"
    paid = "paid"
    payment_failed = "payment_failed"
    checked_in = "checked-in"
    checked_out = "checked-out"
    refunded = "refunded"
    cancelled = "cancelled"


class BlockBookingStatus(enum.Enum):
    pending = "pending"
    reserved = "reserved"
    rejected = "rejected"


class Hotel(Base):
    __tablename__ = "hotels"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    slug = Column(String(150), nullable=False, unique=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    rooms = relationship("Room", back_populates="hotel")


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (UniqueConstraint("hotel_id", "number", name="uq_room_hotel_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    number = Column(String(10), nullable=False)
    type = Column(String(80), nullable=False)
    status = Column(Enum(RoomStatus, native_enum=False, values_callable=_values, length=20),
                    nullable=False, default=RoomStatus.available)
    price_per_night = Column(Float, nullable=False)

    hotel = relationship("Hotel", back_populates="rooms")


class Reservation(Base):
    __tablename__ = "reservations"
    id = Column(Integer, primary_key=True, autoincrement=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    customer_id = Column(Integer, nullable=True, index=True)  # null for staff-entered walk-ins
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    room_number = Column(String(10), nullable=True)
    room_type = Column(String(80), nullable=False)
    arrival_date = Column(Date, nullable=False)
    departure_date = Column(Date, nullable=True)  # open-ended residential stays
    guests = Column(Integer, nullable=False, default=1)
    total_amount = Column(Float, nullable=False)
    status = Column(Enum(ReservationStatus, native_enum=False, values_callable=_values, length=20),
                    nullable=False, default=ReservationStatus.pending, index=True)
    payment_intent_ref = Column(String(255), nullable=True, index=True)
    pay_at_property = Column(Boolean, nullable=False, default=False)
    last_payment_event_id = Column(String(255), nullable=True)
    guest_name = Column(String(200), nullable=True)
    guest_email = Column(String(200), nullable=True)
    guest_phone = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    hotel = relationship("Hotel")
    room = relationship("Room")
    billing_record = relationship("BillingRecord", back_populates="reservation", uselist=False)


class BillingRecord(Base):
    __tablename__ = "billing_records"
    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False, unique=True)
    room_charges = Column(Float, nullable=False, default=0.0)
    restaurant = Column(Float, nullable=False, default=0.0)
    room_service = Column(Float, nullable=False, default=0.0)
    laundry = Column(Float, nullable=False, default=0.0)
    telephone = Column(Float, nullable=False, default=0.0)
    club = Column(Float, nullable=False, default=0.0)
    other = Column(Float, nullable=False, default=0.0)
    late_checkout = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    reservation = relationship("Reservation", back_populates="billing_record")


class BlockBooking(Base):
    __tablename__ = "block_bookings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    travel_company_id = Column(Integer, nullable=False, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    arrival_date = Column(Date, nullable=False)
    departure_date = Column(Date, nullable=False)
    discount_rate = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(Enum(BlockBookingStatus, native_enum=False, values_callable=_values, length=20),
                    nullable=False, default=BlockBookingStatus.pending)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    hotel = relationship("Hotel")
    room_types = relationship("BlockBookingRoomType", back_populates="block_booking",
                              cascade="all, delete-orphan", lazy="selectin",
                              order_by="BlockBookingRoomType.id")

    @property
    def total_rooms(self) -> int:
        return sum(line.rooms for line in self.room_types)


class BlockBookingRoomType(Base):
    __tablename__ = "block_booking_room_types"
    id = Column(Integer, primary_key=True, autoincrement=True)
    block_booking_id = Column(Integer, ForeignKey("block_bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    room_type = Column(String(80), nullable=False)
    rooms = Column(Integer, nullable=False)

    block_booking = relationship("BlockBooking", back_populates="room_types")


class PaymentEvent(Base):
    """Every verified gateway event we have processed, keyed by the gateway's event id."""
    __tablename__ = "payment_events"
    id = Column(String(255), primary_key=True)
    type = Column(String(80), nullable=False)
    payment_intent_ref = Column(String(255), nullable=True, index=True)
    reservations_updated = Column(Integer, nullable=False, default=0)
    received_at = Column(DateTime, default=utcnow)
