"""Airline ticket booking system package."""
from .database import create_session_factory, init_db, session_scope
from .models import BookingStatus, TicketClass, TicketStatus
from .seed import seed_database
from .services import (
    cancel_booking,
    create_booking,
    find_or_create_passenger,
    get_statistics,
    new_ticket,
    release_seats,
    reserve_seats,
    search_flights,
    update_passenger,
)

__all__ = [
    "BookingStatus",
    "TicketClass",
    "TicketStatus",
    "create_session_factory",
    "init_db",
    "session_scope",
    "seed_database",
    "cancel_booking",
    "create_booking",
    "find_or_create_passenger",
    "get_statistics",
    "new_ticket",
    "release_seats",
    "reserve_seats",
    "search_flights",
    "update_passenger",
]
