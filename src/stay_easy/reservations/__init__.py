# stay_easy/reservations/__init__.py
from .reservations import ReservationEngine
from .rooms import RoomLedger
from .payment import StripeGateway
from .webhook import apply_payment_event
