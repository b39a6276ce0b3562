# stay_easy/seed_rooms.py
from sqlalchemy.orm import Session

from stay_easy.logger import setup_logger
from stay_easy.reservations.database import SessionLocal, init_db
from stay_easy.reservations.models import Hotel, Room, RoomStatus

logger = setup_logger("stay_easy.seed")

HOTEL = {
    "name": "Stay Easy - Main Hotel",
    "slug": "stay-easy-main",
    "city": "Colombo",
    "country": "Sri Lanka",
}

sample_rooms = [
    {"number": "101", "type": "standard", "price_per_night": 120},
    {"number": "102", "type": "standard", "price_per_night": 120},
    {"number": "103", "type": "standard", "price_per_night": 120},
    {"number": "201", "type": "deluxe", "price_per_night": 180},
    {"number": "202", "type": "deluxe", "price_per_night": 180},
    {"number": "301", "type": "suite", "price_per_night": 320},
    {"number": "401", "type": "residential", "price_per_night": 95},
    {"number": "402", "type": "residential", "price_per_night": 95},
]


def seed(session: Session, hotel_data=HOTEL, rooms=sample_rooms) -> Hotel:
    """Create the demo hotel and upsert its rooms by (hotel, number). Safe to re-run."""
    hotel = session.query(Hotel).filter_by(slug=hotel_data["slug"]).first()
    if not hotel:
        hotel = Hotel(**hotel_data)
        session.add(hotel)
        session.flush()
    logger.info("Using hotel id=%s (slug=%s)", hotel.id, hotel.slug)

    for data in rooms:
        room = session.query(Room).filter_by(hotel_id=hotel.id, number=data["number"]).first()
        if room:
            # only the catalogue fields; live status belongs to the reservation engine
            room.type = data["type"]
            room.price_per_night = data["price_per_night"]
        else:
            session.add(Room(hotel_id=hotel.id, status=RoomStatus.available, **data))

    session.commit()
    return hotel


if __name__ == "__main__":
    init_db()
    session = SessionLocal()
    try:
        seeded = seed(session)
        logger.info("Seeded %d rooms for %s", len(sample_rooms), seeded.name)
    finally:
        session.close()
