# stay_easy/reservations/block_booking.py
import calendar
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from . import actors
from .actors import Actor
from .database import transaction
from .errors import InvalidTransitionError, NotFoundError, ValidationError
from .models import BlockBooking, BlockBookingRoomType, BlockBookingStatus, Hotel
from .schemas import BlockBookingRequest

logger = logging.getLogger(__name__)

MIN_BLOCK_ROOMS = 3


def validate_block_request(db: Session, req: BlockBookingRequest) -> None:
    if not req.hotel_id:
        raise ValidationError("Hotel is required.")
    if not db.get(Hotel, req.hotel_id):
        raise ValidationError("Hotel not found.")
    if not req.room_types:
        raise ValidationError("At least one room type is required.")
    for line in req.room_types:
        if not line.room_type:
            raise ValidationError("Every line needs a room type.")
        if line.rooms is None or line.rooms < 1:
            raise ValidationError(f"Room count for {line.room_type} must be at least 1.")
    total_rooms = sum(line.rooms for line in req.room_types)
    if total_rooms < MIN_BLOCK_ROOMS:
        raise ValidationError(f"A block booking needs at least {MIN_BLOCK_ROOMS} rooms (got {total_rooms}).")
    if req.departure_date <= req.arrival_date:
        raise ValidationError("Departure date must be after the arrival date.")
    if req.discount_rate is None or req.total_amount is None:
        raise ValidationError("Missing required fields.")
    if req.discount_rate < 0 or req.total_amount < 0:
        raise ValidationError("Discount and total must be non-negative.")


def _lines(req: BlockBookingRequest) -> List[BlockBookingRoomType]:
    return [BlockBookingRoomType(room_type=line.room_type, rooms=line.rooms) for line in req.room_types]


def _owned(db: Session, actor: Actor, block_booking_id: int) -> BlockBooking:
    actors.require_role(actor, actors.TRAVEL_COMPANY)
    company_id = actors.require_profile(actor)
    bb = db.query(BlockBooking).filter(
        BlockBooking.id == block_booking_id, BlockBooking.travel_company_id == company_id
    ).first()
    if not bb:
        raise NotFoundError("Block booking not found.")
    return bb


def create_block_booking(db: Session, actor: Actor, req: BlockBookingRequest) -> BlockBooking:
    actors.require_role(actor, actors.TRAVEL_COMPANY)
    company_id = actors.require_profile(actor)
    validate_block_request(db, req)

    with transaction(db):
        bb = BlockBooking(
            travel_company_id=company_id,
            hotel_id=req.hotel_id,
            arrival_date=req.arrival_date,
            departure_date=req.departure_date,
            discount_rate=req.discount_rate,
            total_amount=req.total_amount,
            status=BlockBookingStatus.pending,
            room_types=_lines(req),
        )
        db.add(bb)
    db.refresh(bb)
    logger.info("Block Booking Created: %s (company=%s, hotel=%s, rooms=%s)", bb.id, company_id, bb.hotel_id, bb.total_rooms)
    return bb


def list_block_bookings(db: Session, actor: Actor) -> List[BlockBooking]:
    actors.require_role(actor, actors.TRAVEL_COMPANY)
    company_id = actors.require_profile(actor)
    return (
        db.query(BlockBooking)
        .filter(BlockBooking.travel_company_id == company_id)
        .order_by(BlockBooking.created_at.desc(), BlockBooking.id.desc())
        .all()
    )


def get_block_booking(db: Session, actor: Actor, block_booking_id: int) -> BlockBooking:
    if actor.role == actors.MANAGER:
        bb = db.get(BlockBooking, block_booking_id)
        if not bb or bb.hotel_id != actor.hotel_id:
            raise NotFoundError("Block booking not found.")
        return bb
    return _owned(db, actor, block_booking_id)


def update_block_booking(db: Session, actor: Actor, block_booking_id: int, req: BlockBookingRequest) -> BlockBooking:
    bb = _owned(db, actor, block_booking_id)
    if bb.status != BlockBookingStatus.pending:
        raise InvalidTransitionError(f"Block booking {bb.id} is {bb.status.value} and can no longer be edited.")
    validate_block_request(db, req)

    with transaction(db):
        bb.hotel_id = req.hotel_id
        bb.arrival_date = req.arrival_date
        bb.departure_date = req.departure_date
        bb.discount_rate = req.discount_rate
        bb.total_amount = req.total_amount
        # full replace of the lines: delete them all, then insert the new set
        bb.room_types.clear()
        db.flush()
        bb.room_types.extend(_lines(req))
    db.refresh(bb)
    logger.info("Block booking %s updated (rooms=%s)", bb.id, bb.total_rooms)
    return bb


def delete_block_booking(db: Session, actor: Actor, block_booking_id: int) -> None:
    bb = _owned(db, actor, block_booking_id)
    if bb.status == BlockBookingStatus.reserved:
        raise InvalidTransitionError(f"Block booking {bb.id} is already approved and cannot be deleted.")
    with transaction(db):
        db.delete(bb)
    logger.info("Block booking %s deleted", block_booking_id)


def list_hotel_block_bookings(db: Session, actor: Actor, hotel_id: int,
                              date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[BlockBooking]:
    """Block bookings overlapping [date_from, date_to] for a manager's hotel; defaults to this month."""
    actors.require_role(actor, actors.MANAGER)
    actors.require_hotel(actor, hotel_id)
    today = date.today()
    date_from = date_from or today.replace(day=1)
    date_to = date_to or today.replace(day=calendar.monthrange(today.year, today.month)[1])
    return (
        db.query(BlockBooking)
        .filter(
            BlockBooking.hotel_id == hotel_id,
            BlockBooking.arrival_date <= date_to,
            BlockBooking.departure_date >= date_from,
        )
        .order_by(BlockBooking.arrival_date.asc())
        .all()
    )


def _decide(db: Session, actor: Actor, block_booking_id: int, target: BlockBookingStatus) -> BlockBooking:
    actors.require_role(actor, actors.MANAGER)
    bb = db.get(BlockBooking, block_booking_id)
    if not bb:
        raise NotFoundError("Block booking not found.")
    actors.require_hotel(actor, bb.hotel_id)

    with transaction(db):
        updated = (
            db.query(BlockBooking)
            .filter(BlockBooking.id == bb.id, BlockBooking.status == BlockBookingStatus.pending)
            .update({BlockBooking.status: target}, synchronize_session="fetch")
        )
        if updated == 0:
            db.refresh(bb)
            raise InvalidTransitionError(f"Block booking {bb.id} is {bb.status.value}; only pending requests can be decided.")
    db.refresh(bb)
    return bb


def approve_block_booking(db: Session, actor: Actor, block_booking_id: int) -> BlockBooking:
    bb = _decide(db, actor, block_booking_id, BlockBookingStatus.reserved)
    # TODO: hold inventory on approval once product decides whether staff hold block rooms manually
    logger.info("Block booking %s approved by manager of hotel %s; room ledger not adjusted", bb.id, bb.hotel_id)
    return bb


def reject_block_booking(db: Session, actor: Actor, block_booking_id: int) -> BlockBooking:
    bb = _decide(db, actor, block_booking_id, BlockBookingStatus.rejected)
    logger.info("Block booking %s rejected by manager of hotel %s", bb.id, bb.hotel_id)
    return bb
