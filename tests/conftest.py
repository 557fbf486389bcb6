# -*- coding: utf-8 -*-
"""Shared pytest fixtures for Formular test suite"""

import asyncio
import sys
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add Formular to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent / "Formular"))

from utils.database import BASE
from utils.errors import StoreUnavailableError
from utils.store import KeyValueStore
from utils.strings import load_strings


class FakeClock:
    """Settable clock, passed wherever production code takes ``clock=``."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeStore(KeyValueStore):
    """In-memory ``KeyValueStore``; a lock makes ``set_if_absent`` atomic across tasks."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.data: dict[str, tuple[str, datetime]] = {}
        self.writes = 0
        self._lock = asyncio.Lock()

    def _live(self, key: str):
        entry = self.data.get(key)
        if entry is None or entry[1] <= self.clock():
            return None
        return entry

    async def set_if_absent(self, key, value, ttl):
        async with self._lock:
            # yield inside the critical section so racing tasks really interleave
            await asyncio.sleep(0)
            if self._live(key) is not None:
                return False
            self.writes += 1
            self.data[key] = (value, self.clock() + ttl)
            return True

    async def get(self, key):
        entry = self._live(key)
        return entry[0] if entry is not None else None

    async def delete(self, key):
        self.writes += 1
        return self.data.pop(key, None) is not None

    async def delete_prefix(self, prefix):
        keys = [key for key in self.data if key.startswith(prefix)]
        for key in keys:
            del self.data[key]
        self.writes += 1
        return len(keys)


class FailingStore(KeyValueStore):
    """Store that is down: every call raises ``StoreUnavailableError``."""

    async def set_if_absent(self, key, value, ttl):
        raise StoreUnavailableError("store is down")

    async def get(self, key):
        raise StoreUnavailableError("store is down")

    async def delete(self, key):
        raise StoreUnavailableError("store is down")

    async def delete_prefix(self, prefix):
        raise StoreUnavailableError("store is down")


@pytest.fixture(autouse=True)
def _load_locale_strings():
    """Load the shipped locale files."""
    load_strings()


@pytest.fixture
def db_engine():
    """Create an in-memory SQLite engine shared by every thread of the test."""
    engine = create_engine(
        "sqlite:///:memory:", echo=False, connect_args={"check_same_thread": False}, poolclass=StaticPool
    )

    # Import all models to ensure they're registered with BASE.metadata
    from models.form import Form, FormField  # noqa: F401
    from models.keyvalue import KeyValueEntry  # noqa: F401

    BASE.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    """Create a new database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_store(clock):
    return FakeStore(clock)


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def mock_log():
    """Mock logger that can be attached to bot."""
    log = MagicMock()
    log.info = MagicMock()
    log.debug = MagicMock()
    log.warning = MagicMock()
    log.error = MagicMock()
    return log


@pytest.fixture
def mock_bot(db_session, mock_log):
    """Create a mock bot with session_scope context manager."""
    bot = MagicMock()
    bot.log = mock_log
    bot.language = "en"

    @contextmanager
    def session_scope():
        yield db_session
        db_session.flush()

    bot.session_scope = session_scope
    bot.enforcer.clear_form = AsyncMock(return_value=0)
    bot.config = {"bot": {"token": "x"}, "store": {"purge_interval_minutes": 60}}

    return bot


@pytest.fixture
def mock_member():
    """Create a mock discord.Member."""
    member = MagicMock()
    member.id = 123456789
    member.name = "TestUser"
    member.display_name = "Test User"
    member.mention = "<@123456789>"
    member.display_avatar.url = "https://cdn.example/avatar.png"
    return member


@pytest.fixture
def mock_guild():
    """Create a mock discord.Guild."""
    guild = MagicMock()
    guild.id = 987654321
    guild.name = "Test Guild"
    return guild


@pytest.fixture
def mock_channel():
    """Create a mock discord.TextChannel."""
    channel = MagicMock()
    channel.id = 111222333
    channel.name = "test-channel"
    channel.mention = "<#111222333>"
    channel.send = AsyncMock()
    return channel


@pytest.fixture
def mock_context(mock_bot, mock_member, mock_guild, mock_channel):
    """Create a mock discord Context for prefix command testing."""
    ctx = MagicMock()
    ctx.bot = mock_bot
    ctx.author = mock_member
    ctx.guild = mock_guild
    ctx.channel = mock_channel
    ctx.send = AsyncMock()
    return ctx


@pytest.fixture
def mock_interaction(mock_bot, mock_member, mock_guild, mock_channel):
    """Create a mock discord Interaction for slash command testing."""
    interaction = MagicMock()
    interaction.client = mock_bot
    interaction.user = mock_member
    interaction.guild = mock_guild
    interaction.guild_id = mock_guild.id
    interaction.channel = mock_channel
    interaction.channel_id = mock_channel.id
    interaction.response = MagicMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.send_modal = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()
    interaction.command = MagicMock()
    interaction.command.qualified_name = "test"
    return interaction


@pytest.fixture
def make_form(db_session):
    """Persist a form with the given field labels and return it."""
    from models.form import Form, FormField

    def _make(labels=("Name",), name="Feedback", guild_id=987654321, channel_id=111222333, cooldown=0, **field_kw):
        form = Form.create(guild_id, name, channel_id, cooldown=timedelta(seconds=cooldown))
        for label in labels:
            form.add_field(FormField.create(label, **field_kw))
        db_session.add(form)
        db_session.flush()
        return form

    return _make
