"""Generation of human readable booking and ticket numbers."""
from __future__ import annotations

import random
from datetime import datetime
from typing import Optional, Set

from sqlalchemy import exists, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from .models import Booking, Ticket

BOOKING_PREFIX = "BK"
TICKET_PREFIX = "TK"
MAX_ATTEMPTS = 50

_system_random = random.SystemRandom()


class NumberExhaustedError(RuntimeError):
    """Raised when no unused number could be drawn for the current second."""


def format_number(prefix: str, moment: datetime, suffix: int) -> str:
    """Return ``<prefix><yyyyMMddHHmmss><suffix>`` with a four digit suffix."""

    if not 1000 <= suffix <= 9999:
        raise ValueError(f"suffix must have four digits, got {suffix}")
    return f"{prefix}{moment:%Y%m%d%H%M%S}{suffix}"


def _unique_number(
    session: Session,
    column: InstrumentedAttribute,
    prefix: str,
    *,
    now: Optional[datetime],
    rng: Optional[random.Random],
    taken: Optional[Set[str]],
) -> str:
    rng = rng or _system_random
    moment = now or datetime.now()
    taken = taken if taken is not None else set()
    for _ in range(MAX_ATTEMPTS):
        candidate = format_number(prefix, moment, rng.randint(1000, 9999))
        if candidate in taken:
            continue
        if session.scalar(select(exists().where(column == candidate))):
            continue
        taken.add(candidate)
        return candidate
    raise NumberExhaustedError(f"could not allocate a unique {prefix} number after {MAX_ATTEMPTS} attempts")


def next_booking_number(
    session: Session,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    taken: Optional[Set[str]] = None,
) -> str:
    """Draw a booking number that is not stored yet and not in ``taken``."""

    return _unique_number(session, Booking.booking_number, BOOKING_PREFIX, now=now, rng=rng, taken=taken)


def next_ticket_number(
    session: Session,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    taken: Optional[Set[str]] = None,
) -> str:
    """Draw a ticket number; pass the same ``taken`` set for every ticket of a batch."""

    return _unique_number(session, Ticket.ticket_number, TICKET_PREFIX, now=now, rng=rng, taken=taken)
