# stay_easy/reservations/actors.py
from dataclasses import dataclass
from typing import Optional

from .errors import AuthorizationError

CUSTOMER = "customer"
CLERK = "clerk"
MANAGER = "manager"
TRAVEL_COMPANY = "travel-company"
ROLES = (CUSTOMER, CLERK, MANAGER, TRAVEL_COMPANY)


@dataclass(frozen=True)
class Actor:
    """Who is calling. `actor_id` is the customer or travel-company profile id,
    `hotel_id` the hotel a clerk or manager works for."""
    role: str
    actor_id: Optional[int] = None
    hotel_id: Optional[int] = None

    @property
    def is_staff(self) -> bool:
        return self.role in (CLERK, MANAGER)


def require_role(actor: Actor, *roles: str) -> None:
    if actor.role not in roles:
        raise AuthorizationError("Unauthorized")


def require_profile(actor: Actor) -> int:
    if actor.actor_id is None:
        if actor.role == TRAVEL_COMPANY:
            raise AuthorizationError("Missing travel company profile. Please contact support.")
        raise AuthorizationError("Customer profile not found. Please log in again.")
    return actor.actor_id


def require_hotel(actor: Actor, hotel_id: int) -> None:
    if actor.hotel_id is None or actor.hotel_id != hotel_id:
        raise AuthorizationError("You do not manage this hotel.")
