from datetime import date

import pytest

from conftest import headers_for
from stay_easy.reservations import block_booking as blocks
from stay_easy.reservations.actors import MANAGER, TRAVEL_COMPANY, Actor
from stay_easy.reservations.errors import (
    AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError,
)
from stay_easy.reservations.models import BlockBooking, BlockBookingRoomType, BlockBookingStatus, Room, RoomStatus
from stay_easy.reservations.schemas import BlockBookingLine, BlockBookingRequest


@pytest.fixture
def block_request(hotel):
    def build(*lines, **overrides):
        lines = lines or (("standard", 2), ("deluxe", 1))
        data = dict(
            hotel_id=hotel.id,
            arrival_date=date(2026, 12, 20),
            departure_date=date(2026, 12, 27),
            discount_rate=0.15,
            total_amount=4200,
            room_types=[BlockBookingLine(room_type=t, rooms=n) for t, n in lines],
        )
        data.update(overrides)
        return BlockBookingRequest(**data)
    return build


@pytest.fixture
def pending_block(db_session, travel_company, block_request):
    return blocks.create_block_booking(db_session, travel_company, block_request())


class TestCreate:

    def test_two_rooms_is_below_minimum(self, db_session, travel_company, block_request):
        with pytest.raises(ValidationError, match="at least 3 rooms"):
            blocks.create_block_booking(db_session, travel_company, block_request(("standard", 1), ("deluxe", 1)))
        assert db_session.query(BlockBooking).count() == 0

    def test_three_rooms_is_accepted(self, db_session, travel_company, block_request):
        bb = blocks.create_block_booking(db_session, travel_company, block_request(("standard", 2), ("deluxe", 1)))

        assert bb.status == BlockBookingStatus.pending
        assert bb.travel_company_id == travel_company.actor_id
        assert bb.total_rooms == 3
        assert sorted((line.room_type, line.rooms) for line in bb.room_types) == [("deluxe", 1), ("standard", 2)]

    @pytest.mark.parametrize("overrides", [
        {"room_types": []},
        {"hotel_id": None},
        {"hotel_id": 999},
        {"departure_date": date(2026, 12, 20)},
        {"discount_rate": None},
        {"total_amount": -5},
    ])
    def test_invalid_requests(self, db_session, travel_company, block_request, overrides):
        with pytest.raises(ValidationError):
            blocks.create_block_booking(db_session, travel_company, block_request(**overrides))

    def test_each_line_needs_a_room(self, db_session, travel_company, block_request):
        with pytest.raises(ValidationError):
            blocks.create_block_booking(db_session, travel_company, block_request(("standard", 3), ("suite", 0)))

    def test_only_travel_companies_request_blocks(self, db_session, customer, block_request):
        with pytest.raises(AuthorizationError):
            blocks.create_block_booking(db_session, customer, block_request())

    def test_missing_company_profile(self, db_session, block_request):
        with pytest.raises(AuthorizationError, match="travel company profile"):
            blocks.create_block_booking(db_session, Actor(role=TRAVEL_COMPANY), block_request())


class TestCompanyAccess:

    def test_update_replaces_all_lines(self, db_session, travel_company, pending_block, block_request):
        bb = blocks.update_block_booking(
            db_session, travel_company, pending_block.id, block_request(("suite", 4), total_amount=9000)
        )

        assert [(line.room_type, line.rooms) for line in bb.room_types] == [("suite", 4)]
        assert bb.total_amount == 9000
        assert db_session.query(BlockBookingRoomType).count() == 1

    def test_invalid_update_keeps_old_lines(self, db_session, travel_company, pending_block, block_request):
        with pytest.raises(ValidationError):
            blocks.update_block_booking(db_session, travel_company, pending_block.id, block_request(("suite", 1)))
        assert db_session.query(BlockBookingRoomType).count() == 2

    def test_other_companies_see_nothing(self, db_session, pending_block, block_request):
        other = Actor(role=TRAVEL_COMPANY, actor_id=32)
        with pytest.raises(NotFoundError):
            blocks.get_block_booking(db_session, other, pending_block.id)
        with pytest.raises(NotFoundError):
            blocks.update_block_booking(db_session, other, pending_block.id, block_request())
        with pytest.raises(NotFoundError):
            blocks.delete_block_booking(db_session, other, pending_block.id)
        assert blocks.list_block_bookings(db_session, other) == []

    def test_delete_removes_lines(self, db_session, travel_company, pending_block):
        blocks.delete_block_booking(db_session, travel_company, pending_block.id)
        assert db_session.query(BlockBooking).count() == 0
        assert db_session.query(BlockBookingRoomType).count() == 0


class TestManagerDecision:

    def test_approve_leaves_room_ledger_alone(self, db_session, manager, pending_block):
        bb = blocks.approve_block_booking(db_session, manager, pending_block.id)

        assert bb.status == BlockBookingStatus.reserved
        assert {r.status for r in db_session.query(Room)} == {RoomStatus.available}

    def test_reject(self, db_session, manager, pending_block):
        assert blocks.reject_block_booking(db_session, manager, pending_block.id).status == BlockBookingStatus.rejected

    def test_decision_is_final(self, db_session, manager, pending_block):
        blocks.approve_block_booking(db_session, manager, pending_block.id)
        with pytest.raises(InvalidTransitionError):
            blocks.reject_block_booking(db_session, manager, pending_block.id)
        with pytest.raises(InvalidTransitionError):
            blocks.approve_block_booking(db_session, manager, pending_block.id)
        assert db_session.get(BlockBooking, pending_block.id).status == BlockBookingStatus.reserved

    def test_losing_a_race_reports_the_winning_decision(self, db_session, manager, pending_block):
        # another manager's decision lands after this session loaded the block booking
        db_session.query(BlockBooking).filter(BlockBooking.id == pending_block.id).update(
            {BlockBooking.status: BlockBookingStatus.rejected}, synchronize_session=False
        )
        assert pending_block.status == BlockBookingStatus.pending

        with pytest.raises(InvalidTransitionError, match="is rejected"):
            blocks.approve_block_booking(db_session, manager, pending_block.id)

    def test_approved_block_is_locked_for_the_company(self, db_session, manager, travel_company, pending_block, block_request):
        blocks.approve_block_booking(db_session, manager, pending_block.id)
        with pytest.raises(InvalidTransitionError):
            blocks.update_block_booking(db_session, travel_company, pending_block.id, block_request())
        with pytest.raises(InvalidTransitionError):
            blocks.delete_block_booking(db_session, travel_company, pending_block.id)

    def test_manager_of_another_hotel(self, db_session, hotel, pending_block):
        outsider = Actor(role=MANAGER, hotel_id=hotel.id + 1)
        with pytest.raises(AuthorizationError):
            blocks.approve_block_booking(db_session, outsider, pending_block.id)
        with pytest.raises(NotFoundError):
            blocks.get_block_booking(db_session, outsider, pending_block.id)

    def test_clerks_cannot_decide(self, db_session, clerk, pending_block):
        with pytest.raises(AuthorizationError):
            blocks.approve_block_booking(db_session, clerk, pending_block.id)

    def test_hotel_listing_filters_by_overlap(self, db_session, hotel, manager, travel_company, pending_block, block_request):
        blocks.create_block_booking(db_session, travel_company, block_request(
            arrival_date=date(2027, 2, 1), departure_date=date(2027, 2, 4)))

        december = blocks.list_hotel_block_bookings(db_session, manager, hotel.id, date(2026, 12, 1), date(2026, 12, 31))
        assert [bb.id for bb in december] == [pending_block.id]

        spanning = blocks.list_hotel_block_bookings(db_session, manager, hotel.id, date(2026, 12, 25), date(2027, 2, 2))
        assert len(spanning) == 2

        with pytest.raises(AuthorizationError):
            blocks.list_hotel_block_bookings(db_session, manager, hotel.id + 1)


class TestHttp:

    def test_company_request_and_manager_approval(self, client, hotel, travel_company, manager):
        body = {
            "hotelId": hotel.id,
            "arrivalDate": "2026-12-20",
            "departureDate": "2026-12-27",
            "discountRate": 0.1,
            "totalAmount": 3000,
            "roomTypes": [{"roomType": "standard", "rooms": 3}],
        }
        resp = client.post("/api/block-bookings", json=body, headers=headers_for(travel_company))
        assert resp.status_code == 200, resp.text
        created = resp.json()
        assert created["status"] == "pending"
        assert created["roomTypes"] == [{"roomType": "standard", "rooms": 3}]

        resp = client.get("/api/manager/block-bookings", params={"hotelId": hotel.id, "from": "2026-12-01", "to": "2026-12-31"},
                          headers=headers_for(manager))
        assert [bb["id"] for bb in resp.json()] == [created["id"]]

        resp = client.post(f"/api/manager/block-bookings/{created['id']}/approve", headers=headers_for(manager))
        assert resp.status_code == 200
        assert resp.json()["status"] == "reserved"

        resp = client.post(f"/api/manager/block-bookings/{created['id']}/reject", headers=headers_for(manager))
        assert resp.status_code == 409
        assert resp.json()["success"] is False

    def test_too_small_block_is_400(self, client, hotel, travel_company):
        body = {
            "hotelId": hotel.id,
            "arrivalDate": "2026-12-20",
            "departureDate": "2026-12-27",
            "discountRate": 0.1,
            "totalAmount": 1000,
            "roomTypes": [{"roomType": "standard", "rooms": 2}],
        }
        resp = client.post("/api/block-bookings", json=body, headers=headers_for(travel_company))
        assert resp.status_code == 400
        assert "at least 3 rooms" in resp.json()["error"]

    def test_unknown_fields_are_rejected(self, client, hotel, travel_company):
        body = {
            "hotelId": hotel.id,
            "arrivalDate": "2026-12-20",
            "departureDate": "2026-12-27",
            "discountRate": 0.1,
            "totalAmount": 3000,
            "roomTypes": [{"roomType": "standard", "rooms": 3}],
            "rooms": 3,
        }
        resp = client.post("/api/block-bookings", json=body, headers=headers_for(travel_company))
        assert resp.status_code == 400
