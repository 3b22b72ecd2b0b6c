"""Business logic for the airline ticket system."""
from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import Select, case, func, select, update
from sqlalchemy.orm import Session, joinedload, selectinload

from .models import (
    Airline,
    Booking,
    BookingStatus,
    Flight,
    Passenger,
    Ticket,
    TicketClass,
    TicketStatus,
)
from .numbers import next_booking_number, next_ticket_number

logger = logging.getLogger(__name__)

CLASS_MULTIPLIERS: Dict[TicketClass, Decimal] = {
    TicketClass.ECONOMY: Decimal("1"),
    TicketClass.BUSINESS: Decimal("2"),
    TicketClass.FIRST: Decimal("3"),
}


class SeatsUnavailableError(RuntimeError):
    """Raised inside a booking savepoint when a flight cannot supply the seats."""

    def __init__(self, flight_id: int, requested: int):
        super().__init__(f"flight {flight_id} cannot supply {requested} seat(s)")
        self.flight_id = flight_id
        self.requested = requested


@dataclass
class Statistics:
    flights: int
    passengers: int
    bookings: int
    revenue: Decimal


# Airlines


def list_airlines(session: Session) -> List[Airline]:
    return list(session.scalars(select(Airline).order_by(Airline.id)))


def get_airline(session: Session, airline_id: int) -> Optional[Airline]:
    return session.get(Airline, airline_id)


def create_airline(
    session: Session,
    *,
    name: str,
    code: str = "",
    description: Optional[str] = None,
) -> Airline:
    if not name or not name.strip():
        raise ValueError("airline name is required")
    airline = Airline(name=name, code=code, description=description)
    session.add(airline)
    session.flush()
    return airline


# Flights


def _flights_with_airline() -> Select[tuple[Flight]]:
    return select(Flight).options(joinedload(Flight.airline))


def list_flights(session: Session) -> List[Flight]:
    return list(session.scalars(_flights_with_airline().order_by(Flight.departure_time)))


def get_flight(session: Session, flight_id: int) -> Optional[Flight]:
    return session.scalar(_flights_with_airline().where(Flight.id == flight_id))


def get_flight_by_number(session: Session, flight_number: str) -> Optional[Flight]:
    return session.scalar(_flights_with_airline().where(Flight.flight_number == flight_number))


def create_flight(
    session: Session,
    *,
    flight_number: str,
    departure_city: str,
    arrival_city: str,
    departure_time: datetime,
    arrival_time: datetime,
    total_seats: int,
    base_price: Decimal | int | str,
    airline_id: int,
) -> Flight:
    """Create a flight entry with every seat available."""

    flight = Flight(
        flight_number=flight_number,
        departure_city=departure_city,
        arrival_city=arrival_city,
        departure_time=departure_time,
        arrival_time=arrival_time,
        total_seats=total_seats,
        available_seats=total_seats,
        base_price=Decimal(base_price),
        airline_id=airline_id,
    )
    session.add(flight)
    session.flush()
    return flight


def substring_position(dialect: str, column, text: str):
    """1-based position of ``text`` in ``column``, 0 when absent."""

    if dialect == "postgresql":
        return func.strpos(column, text)
    return func.instr(column, text)


def search_flights(
    session: Session,
    departure_city: str,
    arrival_city: str,
    departure_date: Optional[date] = None,
) -> List[Flight]:
    """Return bookable flights whose cities contain the given substrings.

    Matching is case-sensitive (a substring position rather than ``LIKE``,
    which folds ASCII case on SQLite). When ``departure_date`` is given
    only flights leaving on that calendar day are returned. Results are
    ordered by departure time.
    """

    dialect = session.get_bind().dialect.name
    stmt = _flights_with_airline().where(
        substring_position(dialect, Flight.departure_city, departure_city) > 0,
        substring_position(dialect, Flight.arrival_city, arrival_city) > 0,
        Flight.available_seats > 0,
    )
    if departure_date is not None:
        start = datetime(departure_date.year, departure_date.month, departure_date.day)
        end = start + timedelta(days=1)
        stmt = stmt.where(Flight.departure_time >= start, Flight.departure_time < end)
    return list(session.scalars(stmt.order_by(Flight.departure_time)))


def _refresh_seat_counts(session: Session, flight_ids: Iterable[int]) -> None:
    # Bulk updates bypass the identity map; reload counters of flights the session holds.
    for flight_id in flight_ids:
        flight = session.identity_map.get(session.identity_key(Flight, flight_id))
        if flight is not None:
            session.refresh(flight, ["available_seats"])


def reserve_seats(session: Session, flight_id: int, count: int) -> bool:
    """Take ``count`` seats from a flight in a single conditional update.

    Returns ``False`` when the flight does not exist or has fewer than
    ``count`` seats left; the row is untouched in that case.
    """

    if count <= 0:
        raise ValueError("seat count must be positive")
    result = session.execute(
        update(Flight)
        .where(Flight.id == flight_id, Flight.available_seats >= count)
        .values(available_seats=Flight.available_seats - count)
        .execution_options(synchronize_session=False)
    )
    reserved = result.rowcount == 1
    if reserved:
        _refresh_seat_counts(session, [flight_id])
    return reserved


def release_seats(session: Session, flight_id: int, count: int) -> bool:
    """Give ``count`` seats back to a flight, never exceeding its capacity."""

    if count <= 0:
        raise ValueError("seat count must be positive")
    restored = Flight.available_seats + count
    result = session.execute(
        update(Flight)
        .where(Flight.id == flight_id)
        .values(
            available_seats=case(
                (restored > Flight.total_seats, Flight.total_seats),
                else_=restored,
            )
        )
        .execution_options(synchronize_session=False)
    )
    released = result.rowcount == 1
    if released:
        _refresh_seat_counts(session, [flight_id])
    return released


# Passengers


def list_passengers(session: Session) -> List[Passenger]:
    return list(session.scalars(select(Passenger).order_by(Passenger.id)))


def get_passenger(session: Session, passenger_id: int) -> Optional[Passenger]:
    return session.get(Passenger, passenger_id)


def get_passenger_by_passport(session: Session, passport_number: str) -> Optional[Passenger]:
    return session.scalar(select(Passenger).where(Passenger.passport_number == passport_number))


def create_passenger(
    session: Session,
    *,
    first_name: str,
    last_name: str,
    passport_number: str,
    date_of_birth: date,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> Passenger:
    passenger = Passenger(
        first_name=first_name,
        last_name=last_name,
        passport_number=passport_number,
        email=email,
        phone=phone,
        date_of_birth=date_of_birth,
    )
    session.add(passenger)
    session.flush()
    return passenger


def find_or_create_passenger(
    session: Session,
    *,
    passport_number: str,
    first_name: str,
    last_name: str,
    date_of_birth: date,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> Tuple[Passenger, bool]:
    """Return the passenger holding ``passport_number``, creating one if needed.

    The second element tells whether a new row was inserted. An existing
    passenger is returned as stored; the other arguments are ignored.
    """

    passenger = get_passenger_by_passport(session, passport_number)
    if passenger is not None:
        return passenger, False
    passenger = create_passenger(
        session,
        first_name=first_name,
        last_name=last_name,
        passport_number=passport_number,
        email=email,
        phone=phone,
        date_of_birth=date_of_birth,
    )
    return passenger, True


def update_passenger(
    session: Session,
    passenger_id: int,
    *,
    first_name: str,
    last_name: str,
    passport_number: str,
    phone: Optional[str],
    date_of_birth: date,
) -> bool:
    """Overwrite a passenger's details. The email address is kept as registered."""

    passenger = session.get(Passenger, passenger_id)
    if passenger is None:
        return False
    passenger.first_name = first_name
    passenger.last_name = last_name
    passenger.passport_number = passport_number
    passenger.phone = phone
    passenger.date_of_birth = date_of_birth
    session.flush()
    return True


# Tickets


def ticket_price(base_price: Decimal, ticket_class: TicketClass) -> Decimal:
    return Decimal(base_price) * CLASS_MULTIPLIERS[ticket_class]


def new_ticket(
    flight: Flight,
    passenger: Passenger,
    ticket_class: TicketClass,
    *,
    now: Optional[datetime] = None,
) -> Ticket:
    """Build an unsaved active ticket priced for ``ticket_class``."""

    # Ids only: assigning the relationships would cascade the ticket into the
    # session before it has a number.
    return Ticket(
        flight_id=flight.id,
        passenger_id=passenger.id,
        price=ticket_price(flight.base_price, ticket_class),
        ticket_class=ticket_class,
        status=TicketStatus.ACTIVE,
        booking_date=now or datetime.now(),
    )


def find_ticket(session: Session, *, passenger_id: int, flight_id: int) -> Optional[Ticket]:
    return session.scalar(
        select(Ticket)
        .where(Ticket.passenger_id == passenger_id, Ticket.flight_id == flight_id)
        .order_by(Ticket.id)
        .limit(1)
    )


# Bookings


def _bookings_with_details() -> Select[tuple[Booking]]:
    return select(Booking).options(
        selectinload(Booking.tickets).joinedload(Ticket.flight).joinedload(Flight.airline),
        selectinload(Booking.tickets).joinedload(Ticket.passenger),
    )


def list_bookings(session: Session) -> List[Booking]:
    stmt = _bookings_with_details().order_by(Booking.booking_date.desc(), Booking.id.desc())
    return list(session.scalars(stmt))


def get_booking(session: Session, booking_id: int) -> Optional[Booking]:
    return session.scalar(_bookings_with_details().where(Booking.id == booking_id))


def get_booking_by_number(session: Session, booking_number: str) -> Optional[Booking]:
    return session.scalar(_bookings_with_details().where(Booking.booking_number == booking_number))


def create_booking(
    session: Session,
    tickets: Sequence[Ticket],
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Optional[Booking]:
    """Book ``tickets`` as one unit and take their seats from the flights.

    Everything happens inside a savepoint: when any flight lacks seats the
    savepoint is rolled back and ``None`` is returned, leaving no booking,
    no ticket and no seat change behind.
    """

    if not tickets:
        raise ValueError("a booking needs at least one ticket")
    now = now or datetime.now()
    seats_needed = Counter(ticket.flight_id for ticket in tickets)

    try:
        with session.begin_nested():
            for flight_id, count in seats_needed.items():
                if not reserve_seats(session, flight_id, count):
                    raise SeatsUnavailableError(flight_id, count)

            with session.no_autoflush:
                booking = Booking(
                    booking_number=next_booking_number(session, now=now, rng=rng),
                    status=BookingStatus.CONFIRMED,
                    booking_date=now,
                    total_amount=sum((Decimal(ticket.price) for ticket in tickets), Decimal("0")),
                )
                issued: set[str] = set()
                for ticket in tickets:
                    ticket.ticket_number = next_ticket_number(session, now=now, rng=rng, taken=issued)
                    booking.tickets.append(ticket)
            session.add(booking)
            session.flush()
    except SeatsUnavailableError as exc:
        _refresh_seat_counts(session, seats_needed)
        logger.info("Booking rejected: %s", exc)
        return None

    logger.info(
        "Booking %s created with %d ticket(s), total %s",
        booking.booking_number,
        len(tickets),
        booking.total_amount,
    )
    return booking


def cancel_booking(session: Session, booking_id: int, *, now: Optional[datetime] = None) -> bool:
    """Cancel a booking and its tickets, handing their seats back.

    Returns ``False`` when the booking does not exist or is already
    cancelled. Seats of tickets that were still active are released here.
    Earlier versions left that to the caller, which never did it, so
    cancelled seats stayed sold.
    """

    booking = session.scalar(
        select(Booking).options(selectinload(Booking.tickets)).where(Booking.id == booking_id)
    )
    if booking is None or booking.status == BookingStatus.CANCELLED:
        return False
    now = now or datetime.now()

    with session.begin_nested():
        booking.status = BookingStatus.CANCELLED
        booking.cancellation_date = now
        released: Counter[int] = Counter()
        for ticket in booking.tickets:
            if ticket.status == TicketStatus.ACTIVE:
                released[ticket.flight_id] += 1
            ticket.status = TicketStatus.CANCELLED
            ticket.cancellation_date = now
        session.flush()
        for flight_id, count in released.items():
            release_seats(session, flight_id, count)

    logger.info("Booking %s cancelled, %d seat(s) released", booking.booking_number, sum(released.values()))
    return True


# Statistics


def get_statistics(session: Session) -> Statistics:
    revenue = session.scalar(
        select(func.coalesce(func.sum(Booking.total_amount), 0)).where(
            Booking.status != BookingStatus.CANCELLED
        )
    )
    return Statistics(
        flights=session.scalar(select(func.count(Flight.id))) or 0,
        passengers=session.scalar(select(func.count(Passenger.id))) or 0,
        bookings=session.scalar(select(func.count(Booking.id))) or 0,
        revenue=Decimal(str(revenue or 0)),
    )


def summarize_capacity(session: Session) -> List[dict]:
    active_tickets = func.count(Ticket.id).filter(Ticket.status == TicketStatus.ACTIVE)
    rows = session.execute(
        select(
            Flight.flight_number,
            Flight.departure_city,
            Flight.arrival_city,
            Flight.available_seats,
            Flight.total_seats,
            active_tickets.label("tickets"),
        )
        .outerjoin(Ticket)
        .group_by(Flight.id)
        .order_by(Flight.departure_time)
    ).all()
    return [
        {
            "flight": row.flight_number,
            "route": f"{row.departure_city} -> {row.arrival_city}",
            "available": row.available_seats,
            "capacity": row.total_seats,
            "tickets": row.tickets,
        }
        for row in rows
    ]
