"""SQLAlchemy models for the airline ticket system."""
from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class TicketClass(enum.Enum):
    ECONOMY = "Economy"
    BUSINESS = "Business"
    FIRST = "First"


class TicketStatus(enum.Enum):
    ACTIVE = "Active"
    CANCELLED = "Cancelled"
    USED = "Used"


class BookingStatus(enum.Enum):
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class Airline(Base):
    __tablename__ = "airlines"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(10), default="", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(200))

    flights: Mapped[List["Flight"]] = relationship(back_populates="airline", cascade="all, delete-orphan")


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="ck_available_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="ck_available_within_total"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    departure_city: Mapped[str] = mapped_column(String(100), nullable=False)
    arrival_city: Mapped[str] = mapped_column(String(100), nullable=False)
    departure_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    arrival_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    airline_id: Mapped[int] = mapped_column(ForeignKey("airlines.id", ondelete="CASCADE"), nullable=False)

    airline: Mapped[Airline] = relationship(back_populates="flights")
    tickets: Mapped[List["Ticket"]] = relationship(back_populates="flight", cascade="all, delete-orphan")

    @property
    def route(self) -> str:
        return f"{self.departure_city} -> {self.arrival_city}"


class Passenger(Base):
    __tablename__ = "passengers"

    id: Mapped[int] = mapped_column(primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    passport_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)

    tickets: Mapped[List["Ticket"]] = relationship(back_populates="passenger", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"), default=BookingStatus.CONFIRMED, nullable=False
    )
    booking_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    cancellation_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Deleting a booking leaves its tickets in place with booking_id set to NULL.
    tickets: Mapped[List["Ticket"]] = relationship(back_populates="booking", passive_deletes=True)


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    ticket_class: Mapped[TicketClass] = mapped_column(Enum(TicketClass, name="ticket_class"), nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        Enum(TicketStatus, name="ticket_status"), default=TicketStatus.ACTIVE, nullable=False
    )
    booking_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    cancellation_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    flight_id: Mapped[int] = mapped_column(ForeignKey("flights.id", ondelete="CASCADE"), nullable=False)
    passenger_id: Mapped[int] = mapped_column(ForeignKey("passengers.id", ondelete="CASCADE"), nullable=False)
    booking_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bookings.id", ondelete="SET NULL"))

    flight: Mapped[Flight] = relationship(back_populates="tickets")
    passenger: Mapped[Passenger] = relationship(back_populates="tickets")
    booking: Mapped[Optional[Booking]] = relationship(back_populates="tickets")
