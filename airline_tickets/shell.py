"""Interactive text menu for booking airline tickets."""
from __future__ import annotations

import logging
import sys
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, TextIO

from sqlalchemy.orm import Session, sessionmaker
from tabulate import tabulate

from . import services
from .database import session_scope
from .models import Booking, BookingStatus, Flight, Passenger, TicketClass

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d.%m.%Y"
DATETIME_FORMAT = "%d.%m.%Y %H:%M"

FLIGHT_HEADERS = [
    "#",
    "Flight",
    "Airline",
    "From",
    "To",
    "Departure",
    "Arrival",
    "Free seats",
    "Price",
]


def format_money(value: Decimal | float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,.2f}"


def parse_date(text: str) -> Optional[date]:
    """Parse ``dd.mm.yyyy``; ``None`` when the text is not a valid date."""

    try:
        return datetime.strptime(text.strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def render_flights(flights: Sequence[Flight]) -> str:
    rows = [
        [
            index,
            flight.flight_number,
            flight.airline.name,
            flight.departure_city,
            flight.arrival_city,
            f"{flight.departure_time:{DATETIME_FORMAT}}",
            f"{flight.arrival_time:{DATETIME_FORMAT}}",
            flight.available_seats,
            format_money(flight.base_price),
        ]
        for index, flight in enumerate(flights, start=1)
    ]
    return tabulate(rows, headers=FLIGHT_HEADERS, tablefmt="github", disable_numparse=True)


def render_passengers(passengers: Sequence[Passenger]) -> str:
    rows = [
        [
            index,
            passenger.first_name,
            passenger.last_name,
            passenger.passport_number,
            passenger.email or "",
            passenger.phone or "",
            f"{passenger.date_of_birth:{DATE_FORMAT}}",
        ]
        for index, passenger in enumerate(passengers, start=1)
    ]
    headers = ["#", "First name", "Last name", "Passport", "Email", "Phone", "Date of birth"]
    return tabulate(rows, headers=headers, tablefmt="github", disable_numparse=True)


def render_booking(booking: Booking) -> str:
    header = [
        f"Booking #{booking.id}",
        f"  Number: {booking.booking_number}",
        f"  Status: {booking.status.value}",
        f"  Booked: {booking.booking_date:{DATETIME_FORMAT}}",
        f"  Total:  {format_money(booking.total_amount)}",
    ]
    if booking.cancellation_date is not None:
        header.append(f"  Cancelled: {booking.cancellation_date:{DATETIME_FORMAT}}")
    rows = [
        [
            ticket.ticket_number,
            ticket.passenger.full_name,
            f"{ticket.flight.flight_number} ({ticket.flight.route})",
            ticket.ticket_class.value,
            ticket.status.value,
            format_money(ticket.price),
        ]
        for ticket in booking.tickets
    ]
    headers = ["Ticket", "Passenger", "Flight", "Class", "Status", "Price"]
    table = tabulate(rows, headers=headers, tablefmt="github", disable_numparse=True)
    return "\n".join(header) + "\n" + table


class Shell:
    """Menu loop dispatching each choice to the booking services.

    Every action runs in its own unit of work. Expected failures are
    reported as messages; unexpected exceptions are logged, printed, and
    the loop carries on.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        input_fn: Callable[[str], str] = input,
        out: TextIO | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.input_fn = input_fn
        self.out = out or sys.stdout
        self.actions: List[tuple[str, Callable[[], None]]] = [
            ("Search flights", self.search_flights),
            ("List all flights", self.list_flights),
            ("Book a ticket", self.book_ticket),
            ("Manage passengers", self.manage_passengers),
            ("List bookings", self.list_bookings),
            ("Cancel a booking", self.cancel_booking),
            ("Statistics", self.show_statistics),
        ]

    def say(self, message: str = "") -> None:
        print(message, file=self.out)

    def ask(self, prompt: str) -> str:
        return self.input_fn(f"{prompt}: ").strip()

    def confirm(self, prompt: str) -> bool:
        return self.ask(f"{prompt} [y/N]").lower() in {"y", "yes"}

    def choose(self, prompt: str, options: Sequence[str]) -> Optional[int]:
        """Show numbered ``options`` and return the zero based pick, if valid."""

        for index, option in enumerate(options, start=1):
            self.say(f"  {index}. {option}")
        answer = self.ask(prompt)
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return int(answer) - 1
        self.say("Invalid choice.")
        return None

    def show_menu(self) -> None:
        self.say()
        self.say("Airline tickets")
        for index, (label, _) in enumerate(self.actions, start=1):
            self.say(f"  {index}. {label}")
        self.say(f"  {len(self.actions) + 1}. Exit")

    def run(self) -> int:
        while True:
            self.show_menu()
            try:
                answer = self.ask("Choose an action")
            except EOFError:
                break
            if answer.lower() in {"exit", "quit", "q", str(len(self.actions) + 1)}:
                break
            if not (answer.isdigit() and 1 <= int(answer) <= len(self.actions)):
                self.say("Unknown action.")
                continue
            label, action = self.actions[int(answer) - 1]
            try:
                action()
            except EOFError:
                break
            except Exception as exc:
                logger.exception("Action %r failed", label)
                self.say(f"Error: {exc}")
        self.say("Goodbye!")
        return 0

    def search_flights(self) -> None:
        departure_city = self.ask("Departure city")
        arrival_city = self.ask("Arrival city")
        date_text = self.ask("Departure date (dd.mm.yyyy, Enter for any)")
        departure_date = None
        if date_text:
            departure_date = parse_date(date_text)
            if departure_date is None:
                self.say("Invalid date format.")
                return
        with session_scope(self.session_factory) as session:
            flights = services.search_flights(session, departure_city, arrival_city, departure_date)
            if not flights:
                self.say("No flights found.")
                return
            self.say(render_flights(flights))

    def list_flights(self) -> None:
        with session_scope(self.session_factory) as session:
            flights = services.list_flights(session)
            if not flights:
                self.say("No flights found.")
                return
            self.say(render_flights(flights))

    def _ask_passenger_details(self) -> Optional[dict]:
        details = {
            "first_name": self.ask("First name"),
            "last_name": self.ask("Last name"),
            "passport_number": self.ask("Passport number"),
            "email": self.ask("Email") or None,
            "phone": self.ask("Phone") or None,
        }
        date_of_birth = parse_date(self.ask("Date of birth (dd.mm.yyyy)"))
        if date_of_birth is None:
            self.say("Invalid date format.")
            return None
        if not (details["first_name"] and details["last_name"] and details["passport_number"]):
            self.say("Name and passport number are required.")
            return None
        details["date_of_birth"] = date_of_birth
        return details

    def book_ticket(self) -> None:
        with session_scope(self.session_factory) as session:
            flights = services.list_flights(session)
            if not flights:
                self.say("No flights found.")
                return
            labels = [
                f"{flight.flight_number} - {flight.route} ({flight.departure_time:{DATETIME_FORMAT}})"
                for flight in flights
            ]
            picked = self.choose("Select a flight", labels)
            if picked is None:
                return
            flight = flights[picked]

            details = self._ask_passenger_details()
            if details is None:
                return
            passenger, created = services.find_or_create_passenger(session, **details)
            if not created:
                self.say(f"Using existing passenger {passenger.full_name}.")

            classes = list(TicketClass)
            picked_class = self.choose("Select a class", [ticket_class.value for ticket_class in classes])
            if picked_class is None:
                return
            ticket = services.new_ticket(flight, passenger, classes[picked_class])

            if not self.confirm(f"Confirm booking for {format_money(ticket.price)}?"):
                self.say("Booking aborted.")
                return
            booking = services.create_booking(session, [ticket])
            if booking is None:
                self.say("Not enough free seats on this flight.")
                return
            self.say("Booking created!")
            self.say(f"Booking number: {booking.booking_number}")
            self.say(f"Ticket number: {ticket.ticket_number}")

    def manage_passengers(self) -> None:
        with session_scope(self.session_factory) as session:
            passengers = services.list_passengers(session)
            if not passengers:
                self.say("No passengers found.")
                return
            self.say(render_passengers(passengers))

            passport_number = self.ask("Passport number to edit (Enter to go back)")
            if not passport_number:
                return
            passenger = services.get_passenger_by_passport(session, passport_number)
            if passenger is None:
                self.say("Passenger not found.")
                return

            self.say("Press Enter to keep the current value.")
            first_name = self.ask(f"First name [{passenger.first_name}]") or passenger.first_name
            last_name = self.ask(f"Last name [{passenger.last_name}]") or passenger.last_name
            new_passport = self.ask(f"Passport number [{passenger.passport_number}]") or passenger.passport_number
            phone = self.ask(f"Phone [{passenger.phone or ''}]") or passenger.phone
            date_text = self.ask(f"Date of birth [{passenger.date_of_birth:{DATE_FORMAT}}]")
            date_of_birth = passenger.date_of_birth
            if date_text:
                date_of_birth = parse_date(date_text)
                if date_of_birth is None:
                    self.say("Invalid date format.")
                    return
            if new_passport != passenger.passport_number and services.get_passenger_by_passport(
                session, new_passport
            ):
                self.say("Another passenger already uses that passport number.")
                return

            services.update_passenger(
                session,
                passenger.id,
                first_name=first_name,
                last_name=last_name,
                passport_number=new_passport,
                phone=phone,
                date_of_birth=date_of_birth,
            )
            self.say("Passenger updated.")

    def list_bookings(self) -> None:
        with session_scope(self.session_factory) as session:
            bookings = services.list_bookings(session)
            if not bookings:
                self.say("No bookings found.")
                return
            for booking in bookings:
                self.say(render_booking(booking))
                self.say()

    def cancel_booking(self) -> None:
        booking_number = self.ask("Booking number")
        with session_scope(self.session_factory) as session:
            booking = services.get_booking_by_number(session, booking_number)
            if booking is None:
                self.say("Booking not found.")
                return
            if booking.status == BookingStatus.CANCELLED:
                self.say("Booking is already cancelled.")
                return
            if not self.confirm(f"Cancel booking {booking_number}?"):
                self.say("Cancellation aborted.")
                return
            if services.cancel_booking(session, booking.id):
                self.say("Booking cancelled.")
            else:
                self.say("Booking could not be cancelled.")

    def show_statistics(self) -> None:
        with session_scope(self.session_factory) as session:
            stats = services.get_statistics(session)
            capacity = services.summarize_capacity(session)
        self.say(render_statistics(stats))
        if capacity:
            self.say()
            self.say(tabulate(capacity, headers="keys", tablefmt="github", disable_numparse=True))


def render_statistics(stats: services.Statistics) -> str:
    rows = [
        ["Flights", stats.flights],
        ["Passengers", stats.passengers],
        ["Bookings", stats.bookings],
        ["Revenue", format_money(stats.revenue)],
    ]
    return tabulate(rows, headers=["Metric", "Value"], tablefmt="github", disable_numparse=True)


def run_shell(session_factory: sessionmaker[Session], **kwargs) -> int:
    return Shell(session_factory, **kwargs).run()
