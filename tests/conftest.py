"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator

import pytest

from hearth.core.db_client import Database, init_db
from hearth.core.dispatcher import EventDispatcher
from hearth.domain.member import Member, PushSubscription
from hearth.repositories import member_repository
from hearth.services.event_handlers import register_handlers
from tests.unit.helpers import RecordingSender


@pytest.fixture
async def db(tmp_path) -> AsyncIterator[Database]:
    """Provides a fresh file-backed SQLite database with the schema applied."""
    database = Database(db_path=str(tmp_path / "hearth.db"), pool_size=2)
    await database.open()
    await init_db(database)
    yield database
    await database.close()


@pytest.fixture
def dispatcher() -> EventDispatcher:
    """Dispatcher with all synchronous handlers registered."""
    return register_handlers(EventDispatcher(), max_retries=5)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
async def members(db) -> dict[str, Member]:
    """Three household members, each with one active push subscription."""
    created = {}
    async with db.transaction() as session:
        for name in ("alice", "bob", "carol"):
            member = Member(name=name.title())
            await member_repository.add_member(session, member)
            await member_repository.add_subscription(
                session, PushSubscription(member_id=member.id, endpoint=f"push://{name}")
            )
            created[name] = member
    return created
