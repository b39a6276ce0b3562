# stay_easy/reservations/api.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from . import block_booking as blocks
from .actors import ROLES, Actor
from .billing import get_billing_record
from .database import get_db
from .errors import AuthorizationError, NotFoundError
from .models import ReservationStatus
from .reservations import ReservationEngine
from .rooms import list_rooms
from .schemas import (
    BillingRecordOut, BlockBookingOut, BlockBookingRequest, CheckInRequest, CheckOutRequest,
    CheckOutResponse, ClerkReservationRequest, CreateReservationRequest, CreateReservationResponse,
    ReservationOut, RoomOut, UpdateReservationRequest,
)
from .webhook import get_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ------------------------- Dependencies -------------------------
def get_actor(
    x_actor_role: Optional[str] = Header(None),
    x_actor_id: Optional[int] = Header(None),
    x_hotel_id: Optional[int] = Header(None),
) -> Actor:
    # identity is asserted by the upstream auth gateway
    if x_actor_role not in ROLES:
        raise AuthorizationError("Unauthorized")
    return Actor(role=x_actor_role, actor_id=x_actor_id, hotel_id=x_hotel_id)


def get_engine(gateway=Depends(get_gateway)) -> ReservationEngine:
    return ReservationEngine(gateway)


# ------------------------- Rooms -------------------------
@router.get("/rooms", response_model=List[RoomOut], tags=["rooms"])
def get_all_rooms(hotel_id: Optional[int] = Query(None, alias="hotelId"), db: Session = Depends(get_db)):
    return list_rooms(db, hotel_id)


@router.get("/rooms/available", response_model=List[RoomOut], tags=["rooms"])
def get_available_rooms(hotel_id: Optional[int] = Query(None, alias="hotelId"), db: Session = Depends(get_db)):
    return list_rooms(db, hotel_id, only_available=True)


# ------------------------- Reservations -------------------------
@router.post("/reservations", response_model=CreateReservationResponse, tags=["reservations"])
def create_reservation(req: CreateReservationRequest, actor: Actor = Depends(get_actor),
                       engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    reservations, client_secret = engine.create(db, actor, req)
    return {"reservations": reservations, "payment_client_secret": client_secret}


@router.post("/reservations/residential", response_model=CreateReservationResponse, tags=["reservations"])
def create_residential_reservation(req: CreateReservationRequest, actor: Actor = Depends(get_actor),
                                   engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    reservations, client_secret = engine.create_residential(db, actor, req)
    return {"reservations": reservations, "payment_client_secret": client_secret}


@router.post("/reservations/clerk", response_model=ReservationOut, tags=["reservations"])
def create_clerk_reservation(req: ClerkReservationRequest, actor: Actor = Depends(get_actor),
                             engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    return engine.create_walk_in(db, actor, req)


@router.get("/reservations", response_model=List[ReservationOut], tags=["reservations"])
def get_reservations(status: Optional[ReservationStatus] = None, actor: Actor = Depends(get_actor),
                     engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    return engine.list(db, actor, status)


@router.post("/reservations/checkin", response_model=ReservationOut, tags=["front desk"])
def checkin_reservation(req: CheckInRequest, actor: Actor = Depends(get_actor),
                        engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    return engine.check_in(db, actor, req.reservation_id, req.room_number)


@router.post("/reservations/checkout", response_model=CheckOutResponse, tags=["front desk"])
def checkout_reservation(req: CheckOutRequest, actor: Actor = Depends(get_actor),
                         engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    reservation, record = engine.check_out(db, actor, req)
    return {"reservation": reservation, "billing_record": record}


@router.get("/reservations/{reservation_id}", response_model=ReservationOut, tags=["reservations"])
def get_reservation(reservation_id: int, actor: Actor = Depends(get_actor),
                    engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    return engine.get(db, actor, reservation_id)


@router.get("/reservations/{reservation_id}/billing", response_model=BillingRecordOut, tags=["front desk"])
def get_reservation_bill(reservation_id: int, actor: Actor = Depends(get_actor),
                         engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    reservation = engine.get(db, actor, reservation_id)
    record = get_billing_record(db, reservation.id)
    if not record:
        raise NotFoundError("No billing record for this reservation.")
    return record


@router.put("/reservations/{reservation_id}", response_model=ReservationOut, tags=["reservations"])
def update_reservation(reservation_id: int, req: UpdateReservationRequest, actor: Actor = Depends(get_actor),
                       engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    return engine.update(db, actor, reservation_id, req)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationOut, tags=["reservations"])
def cancel_reservation(reservation_id: int, actor: Actor = Depends(get_actor),
                       engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    return engine.cancel(db, actor, reservation_id)


@router.delete("/reservations/{reservation_id}", tags=["reservations"])
def delete_reservation(reservation_id: int, actor: Actor = Depends(get_actor),
                       engine: ReservationEngine = Depends(get_engine), db: Session = Depends(get_db)):
    engine.delete(db, actor, reservation_id)
    return {"message": "Reservation cancelled successfully."}


# ------------------------- Block bookings -------------------------
@router.post("/block-bookings", response_model=BlockBookingOut, tags=["block bookings"])
def create_block_booking(req: BlockBookingRequest, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return blocks.create_block_booking(db, actor, req)


@router.get("/block-bookings", response_model=List[BlockBookingOut], tags=["block bookings"])
def get_block_bookings(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return blocks.list_block_bookings(db, actor)


@router.get("/block-bookings/{block_booking_id}", response_model=BlockBookingOut, tags=["block bookings"])
def get_block_booking(block_booking_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return blocks.get_block_booking(db, actor, block_booking_id)


@router.put("/block-bookings/{block_booking_id}", response_model=BlockBookingOut, tags=["block bookings"])
def update_block_booking(block_booking_id: int, req: BlockBookingRequest, actor: Actor = Depends(get_actor),
                         db: Session = Depends(get_db)):
    return blocks.update_block_booking(db, actor, block_booking_id, req)


@router.delete("/block-bookings/{block_booking_id}", tags=["block bookings"])
def delete_block_booking(block_booking_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    blocks.delete_block_booking(db, actor, block_booking_id)
    return {"message": "Block booking deleted."}


@router.get("/manager/block-bookings", response_model=List[BlockBookingOut], tags=["manager"])
def get_hotel_block_bookings(
    hotel_id: int = Query(..., alias="hotelId"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return blocks.list_hotel_block_bookings(db, actor, hotel_id, date_from, date_to)


@router.post("/manager/block-bookings/{block_booking_id}/approve", response_model=BlockBookingOut, tags=["manager"])
def approve_block_booking(block_booking_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return blocks.approve_block_booking(db, actor, block_booking_id)


@router.post("/manager/block-bookings/{block_booking_id}/reject", response_model=BlockBookingOut, tags=["manager"])
def reject_block_booking(block_booking_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return blocks.reject_block_booking(db, actor, block_booking_id)
