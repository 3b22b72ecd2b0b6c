"""Scripted walkthrough of the booking system without user input."""
from __future__ import annotations

import sys
from datetime import date
from typing import TextIO

from sqlalchemy.orm import Session, sessionmaker
from tabulate import tabulate

from . import services
from .database import session_scope
from .models import TicketClass
from .shell import DATETIME_FORMAT, format_money, render_booking, render_flights, render_statistics

DEMO_PASSENGER = {
    "passport_number": "1234567890",
    "first_name": "Иван",
    "last_name": "Петров",
    "email": "ivan.petrov@example.com",
    "phone": "+7-999-123-45-67",
    "date_of_birth": date(1990, 5, 15),
}


def run_demo(session_factory: sessionmaker[Session], out: TextIO | None = None) -> int:
    out = out or sys.stdout

    def say(message: str = "") -> None:
        print(message, file=out)

    with session_scope(session_factory) as session:
        flights = services.list_flights(session)
        say("All flights:")
        say(render_flights(flights))
        say()

        say("Search Москва -> Санкт-Петербург:")
        found = services.search_flights(session, "Москва", "Санкт-Петербург")
        rows = [
            [
                flight.flight_number,
                flight.airline.name,
                f"{flight.departure_time:{DATETIME_FORMAT}}",
                format_money(flight.base_price),
            ]
            for flight in found
        ]
        headers = ["Flight", "Airline", "Departure", "Price"]
        say(tabulate(rows, headers=headers, tablefmt="github", disable_numparse=True))
        say()

        passenger, created = services.find_or_create_passenger(session, **DEMO_PASSENGER)
        verb = "created" if created else "found"
        say(f"Passenger {verb}: {passenger.full_name} (ID: {passenger.id})")
        say()

        if not flights:
            say("No flights to book.")
        else:
            flight = flights[0]
            existing = services.find_ticket(session, passenger_id=passenger.id, flight_id=flight.id)
            if existing is None:
                ticket = services.new_ticket(flight, passenger, TicketClass.BUSINESS)
                booking = services.create_booking(session, [ticket])
                if booking is None:
                    say(f"Flight {flight.flight_number} is sold out.")
                else:
                    say("Booking created!")
                    say(f"Booking number: {booking.booking_number}")
                    say(f"Ticket number: {ticket.ticket_number}")
                    say(f"Class: {ticket.ticket_class.value}")
                    say(f"Price: {format_money(ticket.price)}")
            else:
                say("Booking already exists!")
                say(f"Ticket number: {existing.ticket_number}")
                say(f"Class: {existing.ticket_class.value}")
                say(f"Price: {format_money(existing.price)}")
        say()

    with session_scope(session_factory) as session:
        say("Statistics:")
        say(render_statistics(services.get_statistics(session)))
        say()
        say("Bookings:")
        for booking in services.list_bookings(session):
            say(render_booking(booking))
            say()
    return 0
