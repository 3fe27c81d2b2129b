"""Pytest configuration and fixtures."""

import asyncio
from collections import Counter
from typing import Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from alertcast.main import app
from alertcast.db.base import Base
from alertcast.db.session import get_db
from alertcast.models.recipient import PushSubscription, Recipient, RecipientRole
from alertcast.models.template import NotificationSeverity, NotificationTemplate
from alertcast.services.push_gateway import PushGateway
from alertcast.services.renderer import RenderedMessage

TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


class FakePushGateway(PushGateway):
    """In-process gateway with scripted per-handle outcomes.

    ``outcomes[handle]`` is a list consumed one call at a time; the last
    entry repeats. An entry that is an exception is raised, anything else
    is a success.
    """

    name = "fake"

    def __init__(
        self,
        outcomes: Optional[Dict[str, list]] = None,
        delay: float = 0.0,
        on_deliver: Optional[Callable[[str], None]] = None,
    ):
        self.outcomes = outcomes or {}
        self.delay = delay
        self.on_deliver = on_deliver
        self.calls: Counter = Counter()
        self.delivered: List[tuple] = []
        self.bound: List[tuple] = []
        self.tagged: List[tuple] = []
        self.bind_error: Optional[Exception] = None
        self.tag_error: Optional[Exception] = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def deliver(self, handle: str, message: RenderedMessage) -> str:
        self.calls[handle] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_deliver is not None:
                self.on_deliver(handle)
            if self.delay:
                await asyncio.sleep(self.delay)
            script = self.outcomes.get(handle)
            if script:
                outcome = script.pop(0) if len(script) > 1 else script[0]
                if isinstance(outcome, Exception):
                    raise outcome
            self.delivered.append((handle, message))
            return f"msg-{handle}"
        finally:
            self.in_flight -= 1

    async def bind_identity(self, handle: str, external_id: str) -> None:
        if self.bind_error is not None:
            raise self.bind_error
        self.bound.append((handle, external_id))

    async def add_tags(self, handle: str, tags: Dict[str, str]) -> None:
        if self.tag_error is not None:
            raise self.tag_error
        self.tagged.append((handle, tags))


@pytest_asyncio.fixture
async def async_engine():
    """Create async test engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create async test session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakePushGateway()


@pytest_asyncio.fixture
async def client(db_session, gateway):
    """Create test client with overridden dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # ASGITransport does not run the lifespan, so install the gateway directly.
    app.state.push_gateway = gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def operator_id():
    """Matches the debug-mode mock operator."""
    return "00000000-0000-0000-0000-000000000001"


@pytest.fixture
def make_recipient(db_session):
    """Add a recipient with ``handles`` as active push subscriptions."""

    async def _make(
        role: RecipientRole,
        name: str = "Recipient",
        handles: tuple = (),
        is_active: bool = True,
        id: Optional[str] = None,
        **attributes,
    ) -> Recipient:
        recipient = Recipient(role=role, full_name=name, is_active=is_active, attributes=attributes)
        if id is not None:
            recipient.id = id
        recipient.subscriptions = [PushSubscription(handle=h, is_active=True) for h in handles]
        db_session.add(recipient)
        await db_session.commit()
        return recipient

    return _make


@pytest.fixture
def make_template(db_session):
    async def _make(
        code: str = "sos_created",
        title: str = "SOS Alert",
        body: str = "An SOS alert was raised near {{location}}.",
        variables: tuple = ("location",),
        target_roles: tuple = ("police", "hospital", "admin"),
        is_active: bool = True,
        category: str = "emergency",
    ) -> NotificationTemplate:
        template = NotificationTemplate(
            code=code,
            name=code.replace("_", " ").title(),
            category=category,
            severity=NotificationSeverity.CRITICAL,
            title=title,
            body=body,
            variables=list(variables),
            target_roles=list(target_roles),
            is_active=is_active,
            version=1,
        )
        db_session.add(template)
        await db_session.commit()
        return template

    return _make
