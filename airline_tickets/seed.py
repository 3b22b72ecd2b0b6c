"""First-run data for demos and manual testing."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Airline
from .services import create_airline, create_flight

logger = logging.getLogger(__name__)

AIRLINES: Sequence[Tuple[str, str, str]] = (
    ("Аэрофлот", "SU", "Российская авиакомпания"),
    ("S7 Airlines", "S7", "Сибирские авиалинии"),
    ("Уральские авиалинии", "U6", "Уральские авиалинии"),
    ("Победа", "DP", "Бюджетная авиакомпания"),
)

# flight number, from, to, days ahead, departure hour offset, duration hours,
# seats, base price, index into AIRLINES
FLIGHTS: Sequence[Tuple[str, str, str, int, int, int, int, str, int]] = (
    ("SU123", "Москва", "Санкт-Петербург", 1, 10, 2, 150, "5000", 0),
    ("S7456", "Москва", "Екатеринбург", 2, 14, 4, 120, "8000", 1),
    ("U6789", "Санкт-Петербург", "Сочи", 3, 8, 4, 180, "12000", 2),
)


def seed_database(session: Session, *, now: Optional[datetime] = None) -> Dict[str, int]:
    """Insert the reference airlines and flights unless airlines already exist."""

    if session.scalar(select(Airline.id).limit(1)) is not None:
        return {"airlines": 0, "flights": 0}

    now = now or datetime.now()
    airlines = [
        create_airline(session, name=name, code=code, description=description)
        for name, code, description in AIRLINES
    ]
    for number, origin, destination, days, hours, duration, seats, price, owner in FLIGHTS:
        departure = now + timedelta(days=days, hours=hours)
        create_flight(
            session,
            flight_number=number,
            departure_city=origin,
            arrival_city=destination,
            departure_time=departure,
            arrival_time=departure + timedelta(hours=duration),
            total_seats=seats,
            base_price=Decimal(price),
            airline_id=airlines[owner].id,
        )
    logger.info("Seeded %d airlines and %d flights", len(AIRLINES), len(FLIGHTS))
    return {"airlines": len(AIRLINES), "flights": len(FLIGHTS)}
