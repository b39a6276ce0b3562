# stay_easy/reservations/schemas.py
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import BlockBookingStatus, ReservationStatus, RoomStatus


class RequestModel(BaseModel):
    # camelCase on the wire, unknown keys rejected instead of silently dropped
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ------------------------- Rooms -------------------------
class RoomOut(ResponseModel):
    id: int
    hotel_id: int
    number: str
    type: str
    status: RoomStatus
    price_per_night: float


# ------------------------- Reservations -------------------------
class CreateReservationRequest(RequestModel):
    hotel_id: int
    room_type: str
    room_ids: List[int] = Field(default_factory=list)
    arrival_date: date
    departure_date: Optional[date] = None
    guests: int = 1
    total_amount: float
    skip_payment: bool = False
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None


class ClerkReservationRequest(RequestModel):
    hotel_id: int
    guest_name: str
    guest_phone: str
    guest_email: Optional[str] = None
    room_type: str
    room_number: Optional[str] = None
    arrival_date: date
    departure_date: date
    guests: int = 1
    total_amount: float
    status: Literal["pending", "checked-in"] = "pending"


class UpdateReservationRequest(RequestModel):
    hotel_id: Optional[int] = None
    room_type: Optional[str] = None
    arrival_date: Optional[date] = None
    departure_date: Optional[date] = None
    guests: Optional[int] = None
    total_amount: Optional[float] = None


class CheckInRequest(RequestModel):
    reservation_id: int
    room_number: str


class Bill(RequestModel):
    room_charges: float = 0.0
    restaurant: float = 0.0
    room_service: float = 0.0
    laundry: float = 0.0
    telephone: float = 0.0
    club: float = 0.0
    other: float = 0.0
    late_checkout: float = 0.0
    total: float


class CheckOutRequest(RequestModel):
    reservation_id: int
    payment_method: Optional[str] = None
    bill: Bill


class ReservationOut(ResponseModel):
    id: int
    hotel_id: int
    customer_id: Optional[int] = None
    room_id: Optional[int] = None
    room_number: Optional[str] = None
    room_type: str
    arrival_date: date
    departure_date: Optional[date] = None
    guests: int
    total_amount: float
    status: ReservationStatus
    payment_intent_ref: Optional[str] = None
    pay_at_property: bool
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CreateReservationResponse(ResponseModel):
    reservations: List[ReservationOut]
    payment_client_secret: Optional[str] = None


class BillingRecordOut(ResponseModel):
    id: int
    reservation_id: int
    room_charges: float
    restaurant: float
    room_service: float
    laundry: float
    telephone: float
    club: float
    other: float
    late_checkout: float
    total: float
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None


class CheckOutResponse(ResponseModel):
    reservation: ReservationOut
    billing_record: BillingRecordOut


# ------------------------- Block bookings -------------------------
class BlockBookingLine(RequestModel):
    room_type: str
    rooms: int


class BlockBookingRequest(RequestModel):
    hotel_id: Optional[int] = None
    arrival_date: date
    departure_date: date
    discount_rate: Optional[float] = None
    total_amount: Optional[float] = None
    room_types: List[BlockBookingLine] = Field(default_factory=list)


class BlockBookingLineOut(ResponseModel):
    room_type: str
    rooms: int


class BlockBookingOut(ResponseModel):
    id: int
    travel_company_id: int
    hotel_id: int
    arrival_date: date
    departure_date: date
    discount_rate: float
    total_amount: float
    status: BlockBookingStatus
    room_types: List[BlockBookingLineOut] = []
    created_at: Optional[datetime] = None


# ------------------------- Webhook -------------------------
class WebhookAck(BaseModel):
    received: bool = True
