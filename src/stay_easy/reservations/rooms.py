# stay_easy/reservations/rooms.py
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from .errors import NotFoundError, RoomUnavailableError
from .models import Room, RoomStatus

logger = logging.getLogger(__name__)


class RoomLedger:
    """
    Per-room availability. Every mutation is a single conditional UPDATE keyed by
    room identity and guarded by the expected prior status, so two requests racing
    for the same room cannot both win. Callers own the transaction.
    """

    def _swap(self, db: Session, room_id: int, expected: Iterable[RoomStatus], target: RoomStatus) -> int:
        return (
            db.query(Room)
            .filter(Room.id == room_id, Room.status.in_(list(expected)))
            .update({Room.status: target}, synchronize_session="fetch")
        )

    def reserve(self, db: Session, room_id: int) -> None:
        if self._swap(db, room_id, [RoomStatus.available], RoomStatus.reserved) == 0:
            logger.warning("reserve: room %s is not available", room_id)
            raise RoomUnavailableError(f"Room {room_id} is no longer available.")
        logger.info("room %s -> reserved", room_id)

    def occupy(self, db: Session, hotel_id: int, room_number: str, held_room_id: Optional[int] = None) -> Room:
        """Occupy a room by number. A room that is `reserved` may only be occupied by the
        reservation holding it (`held_room_id`)."""
        room = find_room_by_number(db, hotel_id, room_number)
        expected = [RoomStatus.available]
        if held_room_id == room.id:
            expected.append(RoomStatus.reserved)
        if self._swap(db, room.id, expected, RoomStatus.occupied) == 0:
            logger.warning("occupy: room %s (%s) is %s", room.number, room.id, room.status.value)
            raise RoomUnavailableError(f"Room {room_number} cannot be occupied right now.")
        logger.info("room %s (%s) -> occupied", room.number, room.id)
        return room

    def release(self, db: Session, room_id: int, expected: Iterable[RoomStatus] = (RoomStatus.reserved, RoomStatus.occupied)) -> bool:
        # zero rows means the room was already released; releasing twice must not
        # free a room somebody else has since taken
        released = self._swap(db, room_id, expected, RoomStatus.available) > 0
        if released:
            logger.info("room %s -> available", room_id)
        else:
            logger.info("release: room %s was not in %s, left untouched", room_id, [s.value for s in expected])
        return released


def find_room_by_number(db: Session, hotel_id: int, room_number: str) -> Room:
    room = db.query(Room).filter(Room.hotel_id == hotel_id, Room.number == str(room_number)).first()
    if not room:
        raise NotFoundError(f"Room {room_number} not found.")
    return room


def list_rooms(db: Session, hotel_id: Optional[int] = None, only_available: bool = False) -> List[Room]:
    q = db.query(Room)
    if hotel_id is not None:
        q = q.filter(Room.hotel_id == hotel_id)
    if only_available:
        q = q.filter(Room.status == RoomStatus.available)
    return q.order_by(Room.type.asc(), Room.number.asc()).all()
