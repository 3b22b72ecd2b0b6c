from __future__ import annotations

import random
import re
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import delete, func, select

from airline_tickets.database import session_scope
from airline_tickets.models import (
    Airline,
    Booking,
    BookingStatus,
    Flight,
    Passenger,
    Ticket,
    TicketClass,
    TicketStatus,
)
from airline_tickets.services import (
    cancel_booking,
    create_booking,
    create_flight,
    find_or_create_passenger,
    get_booking,
    get_booking_by_number,
    get_flight_by_number,
    get_statistics,
    list_airlines,
    list_bookings,
    new_ticket,
    summarize_capacity,
    ticket_price,
)

BOOKED_AT = datetime(2029, 12, 20, 9, 30, 15)


def _passenger(session, passport="1234567890"):
    passenger, _ = find_or_create_passenger(
        session,
        passport_number=passport,
        first_name="Иван",
        last_name="Петров",
        email="ivan.petrov@example.com",
        phone="+7-999-123-45-67",
        date_of_birth=date(1990, 5, 15),
    )
    return passenger


def _book(session_factory, flight_number="SU123", ticket_class=TicketClass.BUSINESS, passports=("1234567890",)):
    with session_scope(session_factory) as session:
        flight = get_flight_by_number(session, flight_number)
        tickets = [new_ticket(flight, _passenger(session, passport), ticket_class) for passport in passports]
        booking = create_booking(session, tickets, now=BOOKED_AT)
        return booking.id if booking else None


def test_ticket_price_follows_class_multiplier():
    assert ticket_price(Decimal("5000"), TicketClass.ECONOMY) == Decimal("5000")
    assert ticket_price(Decimal("5000"), TicketClass.BUSINESS) == Decimal("10000")
    assert ticket_price(Decimal("5000"), TicketClass.FIRST) == Decimal("15000")


def test_business_booking_on_su123(seeded_factory):
    booking_id = _book(seeded_factory)

    with session_scope(seeded_factory) as session:
        booking = get_booking(session, booking_id)
        flight = get_flight_by_number(session, "SU123")
    assert flight.available_seats == 149
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.total_amount == Decimal("10000")
    assert len(booking.tickets) == 1
    ticket = booking.tickets[0]
    assert ticket.price == Decimal("10000")
    assert ticket.status == TicketStatus.ACTIVE
    assert ticket.booking_id == booking.id
    assert re.fullmatch(r"BK20291220093015\d{4}", booking.booking_number)
    assert re.fullmatch(r"TK\d{14}\d{4}", ticket.ticket_number)


def test_total_amount_is_sum_of_ticket_prices(seeded_factory):
    with session_scope(seeded_factory) as session:
        su123 = get_flight_by_number(session, "SU123")
        u6789 = get_flight_by_number(session, "U6789")
        passenger = _passenger(session)
        tickets = [
            new_ticket(su123, passenger, TicketClass.ECONOMY),
            new_ticket(su123, passenger, TicketClass.FIRST),
            new_ticket(u6789, passenger, TicketClass.BUSINESS),
        ]
        booking = create_booking(session, tickets)
        booking_id = booking.id

    with session_scope(seeded_factory) as session:
        booking = get_booking(session, booking_id)
        assert booking.total_amount == sum(ticket.price for ticket in booking.tickets)
        assert booking.total_amount == Decimal("5000") + Decimal("15000") + Decimal("24000")
        assert len({ticket.ticket_number for ticket in booking.tickets}) == 3
        assert get_flight_by_number(session, "SU123").available_seats == 148
        assert get_flight_by_number(session, "U6789").available_seats == 179


def test_create_booking_requires_tickets(seeded_factory):
    with session_scope(seeded_factory) as session:
        with pytest.raises(ValueError):
            create_booking(session, [])


def test_shortfall_leaves_no_partial_booking(seeded_factory):
    with session_scope(seeded_factory) as session:
        airline_id = list_airlines(session)[0].id
        create_flight(
            session,
            flight_number="SU001",
            departure_city="Москва",
            arrival_city="Калининград",
            departure_time=datetime(2030, 1, 6, 7, 0),
            arrival_time=datetime(2030, 1, 6, 9, 0),
            total_seats=1,
            base_price=4000,
            airline_id=airline_id,
        )

    with session_scope(seeded_factory) as session:
        su123 = get_flight_by_number(session, "SU123")
        tiny = get_flight_by_number(session, "SU001")
        first = _passenger(session, "A1")
        second = _passenger(session, "A2")
        tickets = [
            new_ticket(su123, first, TicketClass.ECONOMY),
            new_ticket(tiny, first, TicketClass.ECONOMY),
            new_ticket(tiny, second, TicketClass.ECONOMY),
        ]
        assert create_booking(session, tickets) is None
        assert su123.available_seats == 150
        assert tiny.available_seats == 1

    with session_scope(seeded_factory) as session:
        assert session.scalar(select(func.count(Booking.id))) == 0
        assert session.scalar(select(func.count(Ticket.id))) == 0
        assert get_flight_by_number(session, "SU123").available_seats == 150
        assert get_flight_by_number(session, "SU001").available_seats == 1


def test_cancel_booking_cancels_tickets_and_restores_seats(seeded_factory):
    booking_id = _book(seeded_factory, passports=("P1", "P2"))
    cancelled_at = datetime(2029, 12, 21, 8, 0)

    with session_scope(seeded_factory) as session:
        assert cancel_booking(session, booking_id, now=cancelled_at) is True

    with session_scope(seeded_factory) as session:
        booking = get_booking(session, booking_id)
        flight = get_flight_by_number(session, "SU123")
    assert booking.status == BookingStatus.CANCELLED
    assert booking.cancellation_date == cancelled_at
    assert all(ticket.status == TicketStatus.CANCELLED for ticket in booking.tickets)
    assert all(ticket.cancellation_date == cancelled_at for ticket in booking.tickets)
    assert flight.available_seats == 150


def test_cancelling_twice_or_missing_booking_fails(seeded_factory):
    booking_id = _book(seeded_factory)
    with session_scope(seeded_factory) as session:
        assert cancel_booking(session, booking_id) is True
    with session_scope(seeded_factory) as session:
        assert cancel_booking(session, booking_id) is False
        assert cancel_booking(session, 4242) is False
        assert get_flight_by_number(session, "SU123").available_seats == 150


def test_completed_booking_can_be_cancelled(seeded_factory):
    booking_id = _book(seeded_factory)
    with session_scope(seeded_factory) as session:
        get_booking(session, booking_id).status = BookingStatus.COMPLETED
    with session_scope(seeded_factory) as session:
        assert cancel_booking(session, booking_id) is True
    with session_scope(seeded_factory) as session:
        booking = get_booking(session, booking_id)
        assert booking.status == BookingStatus.CANCELLED
        assert booking.tickets[0].status == TicketStatus.CANCELLED
        assert get_flight_by_number(session, "SU123").available_seats == 150


def test_seat_counters_stay_in_bounds(seeded_factory):
    rng = random.Random(7)
    booking_ids = []
    for step in range(30):
        if booking_ids and rng.random() < 0.4:
            with session_scope(seeded_factory) as session:
                cancel_booking(session, booking_ids.pop(rng.randrange(len(booking_ids))))
        else:
            passports = [f"S{step}-{index}" for index in range(rng.randint(1, 3))]
            booking_id = _book(seeded_factory, flight_number="SU123", passports=passports)
            if booking_id is not None:
                booking_ids.append(booking_id)
        with session_scope(seeded_factory) as session:
            for flight in session.scalars(select(Flight)):
                assert 0 <= flight.available_seats <= flight.total_seats

    with session_scope(seeded_factory) as session:
        active = session.scalar(
            select(func.count(Ticket.id)).where(Ticket.status == TicketStatus.ACTIVE)
        )
        assert get_flight_by_number(session, "SU123").available_seats == 150 - active


def test_booking_lookup_by_number_and_listing(seeded_factory):
    first_id = _book(seeded_factory, passports=("P1",))
    second_id = _book(seeded_factory, flight_number="S7456", passports=("P2",))
    with session_scope(seeded_factory) as session:
        number = get_booking(session, first_id).booking_number
        assert get_booking_by_number(session, number).id == first_id
        assert get_booking_by_number(session, "BK-missing") is None
        bookings = list_bookings(session)
    assert {booking.id for booking in bookings} == {first_id, second_id}
    assert bookings[0].tickets[0].flight.airline.name


def test_deleting_booking_keeps_tickets(seeded_factory):
    booking_id = _book(seeded_factory)
    with session_scope(seeded_factory) as session:
        session.delete(session.get(Booking, booking_id))
    with session_scope(seeded_factory) as session:
        ticket = session.scalars(select(Ticket)).one()
        assert ticket.booking_id is None


def _ticket_count(session):
    return session.scalar(select(func.count(Ticket.id)))


def test_deleting_airline_removes_its_flights_and_tickets(seeded_factory):
    _book(seeded_factory, passports=("P1",))
    _book(seeded_factory, flight_number="S7456", passports=("P2",))
    with session_scope(seeded_factory) as session:
        session.delete(get_flight_by_number(session, "SU123").airline)
    with session_scope(seeded_factory) as session:
        assert get_flight_by_number(session, "SU123") is None
        assert get_flight_by_number(session, "S7456") is not None
        assert _ticket_count(session) == 1
        assert len(list_bookings(session)) == 2


def test_database_cascades_without_the_orm(seeded_factory):
    _book(seeded_factory, passports=("P1",))
    with session_scope(seeded_factory) as session:
        session.execute(delete(Airline).where(Airline.code == "SU"))
    with session_scope(seeded_factory) as session:
        assert get_flight_by_number(session, "SU123") is None
        assert _ticket_count(session) == 0


def test_deleting_flight_removes_its_tickets(seeded_factory):
    _book(seeded_factory, passports=("P1",))
    _book(seeded_factory, flight_number="U6789", passports=("P1",))
    with session_scope(seeded_factory) as session:
        session.delete(get_flight_by_number(session, "SU123"))
    with session_scope(seeded_factory) as session:
        tickets = session.scalars(select(Ticket)).all()
        assert [ticket.flight.flight_number for ticket in tickets] == ["U6789"]


def test_deleting_passenger_removes_tickets_but_keeps_booking(seeded_factory):
    booking_id = _book(seeded_factory, passports=("P1", "P2"))
    with session_scope(seeded_factory) as session:
        passenger = session.scalars(select(Passenger).where(Passenger.passport_number == "P1")).one()
        session.delete(passenger)
    with session_scope(seeded_factory) as session:
        booking = get_booking(session, booking_id)
        assert booking is not None
        assert [ticket.passenger.passport_number for ticket in booking.tickets] == ["P2"]
        assert _ticket_count(session) == 1


def test_statistics_exclude_cancelled_revenue(seeded_factory):
    kept = _book(seeded_factory, passports=("P1",))
    dropped = _book(seeded_factory, flight_number="S7456", ticket_class=TicketClass.FIRST, passports=("P2",))
    with session_scope(seeded_factory) as session:
        cancel_booking(session, dropped)
        stats = get_statistics(session)
        capacity = {row["flight"]: row for row in summarize_capacity(session)}
    assert kept
    assert stats.flights == 3
    assert stats.passengers == 2
    assert stats.bookings == 2
    assert stats.revenue == Decimal("10000")
    assert capacity["SU123"]["tickets"] == 1
    assert capacity["S7456"]["tickets"] == 0
    assert capacity["S7456"]["available"] == 120
