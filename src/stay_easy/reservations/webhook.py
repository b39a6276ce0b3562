# stay_easy/reservations/webhook.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from stay_easy.config import Config
from .database import get_db, transaction
from .errors import ConflictError, InvalidTransitionError, SignatureError
from .models import PaymentEvent, Reservation, ReservationStatus, RoomStatus
from .payment import EVENT_FAILED, EVENT_REFUNDED, EVENT_SUCCEEDED, GatewayEvent, StripeGateway
from .rooms import RoomLedger
from .schemas import WebhookAck

logger = logging.getLogger(__name__)

# once any row of a booking reached one of these, a success event has nothing left to do
SETTLED = (
    ReservationStatus.paid,
    ReservationStatus.checked_in,
    ReservationStatus.checked_out,
    ReservationStatus.refunded,
)
PAYABLE = (ReservationStatus.pending_payment, ReservationStatus.payment_failed)
REFUNDABLE = (ReservationStatus.paid, ReservationStatus.checked_out)


def _stamp(db: Session, ref: str, from_statuses, target: ReservationStatus, event_id: str) -> int:
    return (
        db.query(Reservation)
        .filter(Reservation.payment_intent_ref == ref, Reservation.status.in_(list(from_statuses)))
        .update({Reservation.status: target, Reservation.last_payment_event_id: event_id},
                synchronize_session="fetch")
    )


def _mark_paid(db: Session, event: GatewayEvent) -> int:
    ref = event.payment_intent_ref
    already = db.query(Reservation.id).filter(
        Reservation.payment_intent_ref == ref, Reservation.status.in_(list(SETTLED))
    ).first()
    if already:
        logger.info("Reservation(s) already marked paid for paymentIntent: %s", ref)
        return 0
    updated = _stamp(db, ref, PAYABLE, ReservationStatus.paid, event.id)
    if updated == 0 and db.query(Reservation.id).filter(
        Reservation.payment_intent_ref == ref, Reservation.status == ReservationStatus.cancelled
    ).first():
        logger.warning("Payment captured for cancelled reservation(s), PaymentIntent %s needs a refund", ref)
        return 0
    logger.info("Updated %d reservation(s) to 'paid' for PaymentIntent: %s", updated, ref)
    return updated


def _mark_failed(db: Session, event: GatewayEvent) -> int:
    # a late failure never overrides a success that already landed
    updated = _stamp(db, event.payment_intent_ref, [ReservationStatus.pending_payment],
                     ReservationStatus.payment_failed, event.id)
    logger.info("Updated %d reservation(s) to 'payment_failed' for PaymentIntent: %s", updated, event.payment_intent_ref)
    return updated


def _mark_refunded(db: Session, event: GatewayEvent, ledger: RoomLedger) -> int:
    ref = event.payment_intent_ref
    if db.query(Reservation.id).filter(
        Reservation.payment_intent_ref == ref, Reservation.status == ReservationStatus.checked_in
    ).first():
        # guest still in house; the event is left unrecorded so a redelivery after checkout applies it
        raise InvalidTransitionError(f"Refund for PaymentIntent {ref} arrived during the stay; retry after checkout.")
    rows = db.query(Reservation).filter(
        Reservation.payment_intent_ref == ref, Reservation.status.in_(list(REFUNDABLE))
    ).all()
    for r in rows:
        if r.status == ReservationStatus.paid and r.room_id:
            ledger.release(db, r.room_id, expected=(RoomStatus.reserved,))
    updated = _stamp(db, ref, REFUNDABLE, ReservationStatus.refunded, event.id)
    logger.info("Marked %d reservation(s) as 'refunded' for PaymentIntent: %s", updated, ref)
    return updated


def apply_payment_event(db: Session, event: GatewayEvent, ledger: Optional[RoomLedger] = None) -> int:
    """
    Apply one verified gateway event. Safe under redelivery: an event id already
    recorded is ignored, and status precedence keeps late events from undoing later
    states. Returns the number of reservations updated.
    """
    ledger = ledger or RoomLedger()
    with transaction(db):
        if db.get(PaymentEvent, event.id):
            logger.info("Stripe event %s already processed, skipping", event.id)
            return 0
        record = PaymentEvent(id=event.id, type=event.type, payment_intent_ref=event.payment_intent_ref)
        db.add(record)

        if not event.payment_intent_ref:
            logger.info("Stripe event %s (%s) carries no payment_intent", event.id, event.type)
            return 0
        if event.type == EVENT_SUCCEEDED:
            updated = _mark_paid(db, event)
        elif event.type == EVENT_FAILED:
            updated = _mark_failed(db, event)
        elif event.type == EVENT_REFUNDED:
            updated = _mark_refunded(db, event, ledger)
        else:
            logger.info("Unhandled Stripe event type: %s", event.type)
            updated = 0
        record.reservations_updated = updated
    return updated


# ------------------------- HTTP -------------------------
router = APIRouter(tags=["payments"])

_gateway = StripeGateway()


def get_gateway() -> StripeGateway:
    return _gateway


def get_webhook_secret() -> Optional[str]:
    return Config.STRIPE_WEBHOOK_SECRET


@router.post("/api/stripe/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
    webhook_secret: Optional[str] = Depends(get_webhook_secret),
):
    if not webhook_secret:
        logger.error("Stripe webhook secret is not configured (STRIPE_WEBHOOK_SECRET)")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    payload = await request.body()
    try:
        event = await run_in_threadpool(gateway.verify_and_parse_event, payload, stripe_signature, webhook_secret)
    except SignatureError as e:
        logger.warning("Stripe webhook signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    logger.info("Stripe webhook received: %s (id: %s)", event.type, event.id)
    try:
        await run_in_threadpool(apply_payment_event, db, event)
    except ConflictError as e:
        logger.warning("Stripe webhook event %s deferred: %s", event.id, e.message)
        raise HTTPException(status_code=409, detail=f"Webhook deferred: {e.message}")
    except Exception:
        logger.exception("Error processing stripe webhook event %s", event.id)
        raise HTTPException(status_code=500, detail="Internal server error")
    return {"received": True}
