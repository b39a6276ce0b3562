# stay_easy/reservations/payment.py
import json
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import stripe

from stay_easy.config import Config
from .errors import PaymentGatewayError, SignatureError

logger = logging.getLogger(__name__)

stripe.api_key = Config.STRIPE_SECRET_KEY

EVENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_FAILED = "payment_intent.payment_failed"
EVENT_REFUNDED = "charge.refunded"


@dataclass
class PaymentIntent:
    intent_id: str
    client_secret: str


@dataclass
class GatewayEvent:
    id: str
    type: str
    payment_intent_ref: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)


def to_minor_units(amount: float) -> int:
    """
    amount: major currency units (e.g. dollars). Stripe expects cents as an integer,
    rounded half up.
    """
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway:
    """Thin adapter over the Stripe SDK. It never touches reservation state."""

    def __init__(self, api_key: Optional[str] = None, currency: str = Config.PAYMENT_CURRENCY):
        self.api_key = api_key or stripe.api_key
        self.currency = currency

    def create_intent(self, amount_minor_units: int, currency: Optional[str] = None, metadata: Optional[Dict[str, str]] = None) -> PaymentIntent:
        if not self.api_key:
            raise PaymentGatewayError("STRIPE_SECRET_KEY not set")
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_minor_units,
                currency=currency or self.currency,
                metadata=metadata or {},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("[Stripe PaymentIntent Error] %s", e)
            raise PaymentGatewayError(f"Payment gateway error: {e.user_message or e}") from e
        logger.info("created payment intent %s for %s %s", intent.id, amount_minor_units, currency or self.currency)
        return PaymentIntent(intent_id=intent.id, client_secret=intent.client_secret)

    def cancel_intent(self, intent_id: str) -> None:
        try:
            stripe.PaymentIntent.cancel(intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Could not cancel payment intent {intent_id}: {e}") from e
        logger.info("cancelled payment intent %s", intent_id)

    def verify_and_parse_event(self, payload: bytes, signature_header: Optional[str], secret: str,
                               tolerance: int = Config.STRIPE_WEBHOOK_TOLERANCE) -> GatewayEvent:
        if not signature_header:
            raise SignatureError("Missing Stripe-Signature header")
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            raise SignatureError("Malformed event payload") from e
        try:
            stripe.WebhookSignature.verify_header(body, signature_header, secret, tolerance)
        except stripe.SignatureVerificationError as e:
            raise SignatureError(str(e)) from e
        try:
            event = json.loads(body)
            obj = event["data"]["object"]
            return GatewayEvent(
                id=event["id"],
                type=event["type"],
                payment_intent_ref=_intent_ref(event["type"], obj),
                payload=obj,
            )
        except (ValueError, KeyError, TypeError) as e:
            raise SignatureError(f"Malformed event payload: {e}") from e


def _intent_ref(event_type: str, obj: Dict[str, Any]) -> Optional[str]:
    # refunds arrive on the charge; the originating intent is referenced from it
    if event_type.startswith("charge."):
        return obj.get("payment_intent")
    return obj.get("id")
