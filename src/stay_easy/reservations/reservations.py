# stay_easy/reservations/reservations.py
import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from . import actors
from .actors import Actor
from .billing import create_billing_record, validate_bill
from .database import transaction
from .errors import (
    AuthorizationError, InvalidTransitionError, NotFoundError, PaymentGatewayError,
    RoomUnavailableError, ValidationError,
)
from .models import BillingRecord, Hotel, Reservation, ReservationStatus, Room, RoomStatus
from .payment import StripeGateway, to_minor_units
from .rooms import RoomLedger, find_room_by_number
from .schemas import (
    CheckOutRequest, ClerkReservationRequest, CreateReservationRequest, UpdateReservationRequest,
)

logger = logging.getLogger(__name__)

EDITABLE = (
    ReservationStatus.pending,
    ReservationStatus.pending_payment,
    ReservationStatus.payment_failed,
    ReservationStatus.paid,
)
CANCELLABLE = EDITABLE
AWAITING_PAYMENT = (ReservationStatus.pending_payment, ReservationStatus.payment_failed)
CHECKIN_FROM = (ReservationStatus.paid, ReservationStatus.pending)


def _check_dates(arrival: date, departure: Optional[date], open_ended: bool = False) -> None:
    if departure is None:
        if not open_ended:
            raise ValidationError("Departure date is required.")
        return
    if departure <= arrival:
        raise ValidationError("Departure date must be after the arrival date.")


def _check_amounts(guests: int, total_amount: float) -> None:
    if guests is None or guests < 1:
        raise ValidationError("At least one guest is required.")
    if total_amount is None or total_amount < 0:
        raise ValidationError("Total amount must be a non-negative number.")


def _require_hotel(db: Session, hotel_id: Optional[int]) -> Hotel:
    if not hotel_id:
        raise ValidationError("Hotel ID is required.")
    hotel = db.get(Hotel, hotel_id)
    if not hotel:
        raise ValidationError("Hotel not found.")
    return hotel


def transition(db: Session, reservation: Reservation, allowed: Iterable[ReservationStatus],
               target: ReservationStatus, **values) -> None:
    """Conditional status change: only applies if the row is still in one of `allowed`."""
    allowed = list(allowed)
    values[Reservation.status.key] = target
    updated = (
        db.query(Reservation)
        .filter(Reservation.id == reservation.id, Reservation.status.in_(allowed))
        .update(values, synchronize_session="fetch")
    )
    if updated == 0:
        db.refresh(reservation)
        raise InvalidTransitionError(
            f"Reservation {reservation.id} is {reservation.status.value}; cannot move to {target.value}."
        )
    logger.info("reservation %s -> %s", reservation.id, target.value)


class ReservationEngine:
    """
    Orchestrates the reservation lifecycle: validates the request, talks to the payment
    gateway, writes reservation rows and keeps the room ledger in step with them.
    """

    def __init__(self, gateway: StripeGateway, ledger: Optional[RoomLedger] = None):
        self.gateway = gateway
        self.ledger = ledger or RoomLedger()

    # ------------------------- create -------------------------
    def create(self, db: Session, actor: Actor, req: CreateReservationRequest, open_ended: bool = False) -> Tuple[List[Reservation], Optional[str]]:
        """
        Book every room in `req.room_ids` or none of them. Returns the reservation rows
        and the client secret of the payment intent (None for pay-at-property).
        """
        actors.require_role(actor, actors.CUSTOMER)
        customer_id = actors.require_profile(actor)

        if not req.room_type:
            raise ValidationError("Room type is required.")
        if not req.room_ids:
            raise ValidationError("At least one room must be selected.")
        if len(set(req.room_ids)) != len(req.room_ids):
            raise ValidationError("The same room was selected more than once.")
        _check_dates(req.arrival_date, req.departure_date, open_ended=open_ended)
        _check_amounts(req.guests, req.total_amount)
        hotel = _require_hotel(db, req.hotel_id)

        rooms = db.query(Room).filter(Room.id.in_(req.room_ids), Room.hotel_id == hotel.id).all()
        missing = set(req.room_ids) - {r.id for r in rooms}
        if missing:
            raise ValidationError(f"Room(s) not found in this hotel: {sorted(missing)}")
        taken = [r.number for r in rooms if r.status != RoomStatus.available]
        if taken:
            raise RoomUnavailableError(f"Room(s) not available: {', '.join(sorted(taken))}")
        # keep the caller's order for the rows we write
        by_id = {r.id: r for r in rooms}
        rooms = [by_id[i] for i in req.room_ids]

        intent = None
        # pay-at-property bookings are paid-equivalent from the start
        status = ReservationStatus.paid
        if not req.skip_payment:
            intent = self.gateway.create_intent(
                to_minor_units(req.total_amount),
                metadata={"hotel_id": str(hotel.id), "customer_id": str(customer_id)},
            )
            status = ReservationStatus.pending_payment

        try:
            with transaction(db):
                reservations = []
                for room in rooms:
                    self.ledger.reserve(db, room.id)
                    reservation = Reservation(
                        hotel_id=hotel.id,
                        customer_id=customer_id,
                        room_id=room.id,
                        room_number=room.number,
                        room_type=req.room_type,
                        arrival_date=req.arrival_date,
                        departure_date=req.departure_date,
                        guests=req.guests,
                        total_amount=req.total_amount,
                        status=status,
                        payment_intent_ref=intent.intent_id if intent else None,
                        pay_at_property=req.skip_payment,
                        guest_name=req.guest_name,
                        guest_email=req.guest_email,
                        guest_phone=req.guest_phone,
                    )
                    db.add(reservation)
                    db.flush()
                    reservations.append(reservation)
        except Exception:
            if intent:
                self._abandon_intent(intent.intent_id)
            raise

        for r in reservations:
            db.refresh(r)
        logger.info("created %d reservation(s) %s for customer %s (status=%s, intent=%s)",
                    len(reservations), [r.id for r in reservations], customer_id, status.value,
                    intent.intent_id if intent else None)
        return reservations, intent.client_secret if intent else None

    def create_residential(self, db: Session, actor: Actor, req: CreateReservationRequest):
        return self.create(db, actor, req, open_ended=True)

    def _abandon_intent(self, intent_id: str) -> None:
        try:
            self.gateway.cancel_intent(intent_id)
        except PaymentGatewayError:
            # the booking outcome stands either way
            logger.exception("could not cancel payment intent %s", intent_id)

    def create_walk_in(self, db: Session, actor: Actor, req: ClerkReservationRequest) -> Reservation:
        """Staff-entered reservation; always pay-at-property, optionally checked in on the spot."""
        actors.require_role(actor, actors.CLERK, actors.MANAGER)
        hotel = _require_hotel(db, req.hotel_id)
        actors.require_hotel(actor, hotel.id)
        if not req.guest_name or not req.guest_phone or not req.room_type:
            raise ValidationError("All required fields must be filled.")
        _check_dates(req.arrival_date, req.departure_date)
        _check_amounts(req.guests, req.total_amount)
        checked_in = req.status == ReservationStatus.checked_in.value
        if checked_in and not req.room_number:
            raise ValidationError("A room number is required to check a guest in.")

        with transaction(db):
            room = None
            if req.room_number:
                if checked_in:
                    room = self.ledger.occupy(db, hotel.id, req.room_number)
                else:
                    room = find_room_by_number(db, hotel.id, req.room_number)
                    self.ledger.reserve(db, room.id)
            reservation = Reservation(
                hotel_id=hotel.id,
                customer_id=None,
                room_id=room.id if room else None,
                room_number=room.number if room else None,
                room_type=req.room_type,
                arrival_date=req.arrival_date,
                departure_date=req.departure_date,
                guests=req.guests,
                total_amount=req.total_amount,
                status=ReservationStatus(req.status),
                pay_at_property=True,
                guest_name=req.guest_name,
                guest_email=req.guest_email,
                guest_phone=req.guest_phone,
            )
            db.add(reservation)
        db.refresh(reservation)
        logger.info("walk-in reservation %s created by %s at hotel %s (status=%s, room=%s)",
                    reservation.id, actor.role, hotel.id, reservation.status.value, reservation.room_number)
        return reservation

    # ------------------------- read -------------------------
    def get(self, db: Session, actor: Actor, reservation_id: int) -> Reservation:
        reservation = db.get(Reservation, reservation_id)
        if actor.role == actors.CUSTOMER:
            customer_id = actors.require_profile(actor)
            if not reservation or reservation.customer_id != customer_id:
                raise NotFoundError("Reservation not found.")
        elif actor.is_staff:
            if not reservation or reservation.hotel_id != actor.hotel_id:
                raise NotFoundError("Reservation not found.")
        else:
            raise AuthorizationError("Unauthorized")
        return reservation

    def list(self, db: Session, actor: Actor, status: Optional[ReservationStatus] = None) -> List[Reservation]:
        q = db.query(Reservation)
        if actor.role == actors.CUSTOMER:
            q = q.filter(Reservation.customer_id == actors.require_profile(actor))
        elif actor.is_staff:
            if actor.hotel_id is None:
                raise AuthorizationError("You do not manage this hotel.")
            q = q.filter(Reservation.hotel_id == actor.hotel_id)
        else:
            raise AuthorizationError("Unauthorized")
        if status is not None:
            q = q.filter(Reservation.status == status)
        return q.order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()

    # ------------------------- edit / cancel -------------------------
    def update(self, db: Session, actor: Actor, reservation_id: int, req: UpdateReservationRequest) -> Reservation:
        # availability against the new dates is not re-checked here
        reservation = self.get(db, actor, reservation_id)
        if reservation.status not in EDITABLE:
            raise InvalidTransitionError(f"Reservation {reservation.id} is {reservation.status.value} and can no longer be edited.")

        changes = {k: getattr(req, k) for k in req.model_fields_set}
        if changes.get("hotel_id") is not None and changes["hotel_id"] != reservation.hotel_id:
            _require_hotel(db, changes["hotel_id"])
            if reservation.room_id:
                raise ValidationError("A reservation with an assigned room cannot move to another hotel.")
        if "room_type" in changes and not changes["room_type"]:
            raise ValidationError("Room type is required.")
        arrival = changes.get("arrival_date") or reservation.arrival_date
        departure = changes["departure_date"] if "departure_date" in changes else reservation.departure_date
        _check_dates(arrival, departure, open_ended=reservation.departure_date is None)
        _check_amounts(changes.get("guests", reservation.guests), changes.get("total_amount", reservation.total_amount))

        with transaction(db):
            for key, value in changes.items():
                if value is None and key != "departure_date":
                    continue
                setattr(reservation, key, value)
        db.refresh(reservation)
        logger.info("reservation %s edited: %s", reservation.id, sorted(changes))
        return reservation

    def cancel(self, db: Session, actor: Actor, reservation_id: int) -> Reservation:
        """Soft cancel; the row stays for audit and the room is released at most once."""
        reservation = self.get(db, actor, reservation_id)
        if reservation.status == ReservationStatus.cancelled:
            logger.info("reservation %s already cancelled", reservation.id)
            return reservation
        awaiting_payment = reservation.status in AWAITING_PAYMENT
        with transaction(db):
            transition(db, reservation, CANCELLABLE, ReservationStatus.cancelled)
            if reservation.room_id:
                self.ledger.release(db, reservation.room_id, expected=(RoomStatus.reserved,))
        db.refresh(reservation)
        ref = reservation.payment_intent_ref
        if ref and awaiting_payment:
            # the intent stays payable while any other room of the same booking still awaits it
            siblings = db.query(Reservation.id).filter(
                Reservation.payment_intent_ref == ref, Reservation.status.in_(list(AWAITING_PAYMENT))
            ).first()
            if not siblings:
                self._abandon_intent(ref)
        elif ref and not reservation.pay_at_property:
            logger.warning("reservation %s cancelled with payment intent %s; refund must be issued through the gateway",
                           reservation.id, reservation.payment_intent_ref)
        return reservation

    delete = cancel

    # ------------------------- stay -------------------------
    def check_in(self, db: Session, actor: Actor, reservation_id: int, room_number: str) -> Reservation:
        actors.require_role(actor, actors.CLERK, actors.MANAGER)
        if not room_number:
            raise ValidationError("Missing fields.")
        reservation = self.get(db, actor, reservation_id)
        if reservation.status not in CHECKIN_FROM:
            raise InvalidTransitionError(f"Reservation {reservation.id} is {reservation.status.value} and cannot be checked in.")

        with transaction(db):
            room = self.ledger.occupy(db, reservation.hotel_id, room_number, held_room_id=reservation.room_id)
            if reservation.room_id and reservation.room_id != room.id:
                # guest moved to another room at the desk
                self.ledger.release(db, reservation.room_id, expected=(RoomStatus.reserved,))
            transition(db, reservation, CHECKIN_FROM, ReservationStatus.checked_in,
                       room_id=room.id, room_number=room.number)
        db.refresh(reservation)
        return reservation

    def check_out(self, db: Session, actor: Actor, req: CheckOutRequest) -> Tuple[Reservation, BillingRecord]:
        actors.require_role(actor, actors.CLERK, actors.MANAGER)
        validate_bill(req.bill)
        reservation = self.get(db, actor, req.reservation_id)
        if reservation.status != ReservationStatus.checked_in:
            raise InvalidTransitionError(f"Reservation {reservation.id} is {reservation.status.value}; only checked-in guests can check out.")

        with transaction(db):
            transition(db, reservation, [ReservationStatus.checked_in], ReservationStatus.checked_out)
            record = create_billing_record(db, reservation, req.bill, req.payment_method)
            if reservation.room_id:
                self.ledger.release(db, reservation.room_id, expected=(RoomStatus.occupied,))
        db.refresh(reservation)
        db.refresh(record)
        return reservation, record
