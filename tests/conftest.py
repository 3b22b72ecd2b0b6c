from __future__ import annotations

from datetime import datetime

import pytest

from airline_tickets.database import init_db, session_scope
from airline_tickets.seed import seed_database

SEED_TIME = datetime(2030, 1, 1, 0, 0)


@pytest.fixture
def session_factory(tmp_path):
    return init_db(f"sqlite+pysqlite:///{tmp_path / 'airline-test.db'}")


@pytest.fixture
def seeded_factory(session_factory):
    with session_scope(session_factory) as session:
        seed_database(session, now=SEED_TIME)
    return session_factory
