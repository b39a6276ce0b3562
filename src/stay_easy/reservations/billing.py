# stay_easy/reservations/billing.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from .errors import ConflictError, ValidationError
from .models import BillingRecord, Reservation
from .schemas import Bill

logger = logging.getLogger(__name__)

CHARGE_BUCKETS = ("room_charges", "restaurant", "room_service", "laundry", "telephone", "club", "other", "late_checkout")


def validate_bill(bill: Bill) -> None:
    if bill.total is None or bill.total < 0:
        raise ValidationError("Bill total must be a non-negative amount.")
    negative = [b for b in CHARGE_BUCKETS if getattr(bill, b) < 0]
    if negative:
        raise ValidationError(f"Negative charges are not allowed: {', '.join(negative)}")


def create_billing_record(db: Session, reservation: Reservation, bill: Bill, payment_method: Optional[str] = None) -> BillingRecord:
    """Append the one billing record of a checked-out reservation. Records are never updated."""
    if db.query(BillingRecord.id).filter(BillingRecord.reservation_id == reservation.id).first():
        raise ConflictError(f"Reservation {reservation.id} already has a billing record.")
    record = BillingRecord(
        reservation_id=reservation.id,
        payment_method=payment_method,
        total=bill.total,
        **{b: getattr(bill, b) for b in CHARGE_BUCKETS},
    )
    db.add(record)
    db.flush()
    logger.info("billing record %s created for reservation %s (total=%s)", record.id, reservation.id, record.total)
    return record


def get_billing_record(db: Session, reservation_id: int) -> Optional[BillingRecord]:
    return db.query(BillingRecord).filter(BillingRecord.reservation_id == reservation_id).first()
