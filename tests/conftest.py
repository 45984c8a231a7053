"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database (aiosqlite) with the
full schema and the four system roles.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from psicozen.models import (
    Base,
    EmociogramaAlert,
    EmociogramaSubmission,
    EmotionCategory,
    Organization,
    OrganizationType,
    SystemRole,
    User,
    emoji_for_level,
)
from psicozen.services.alert_engine import AlertEngine
from psicozen.services.notifications import EmailDeliveryError, EmailMessage
from psicozen.services.organizations import OrganizationService
from psicozen.services.roles import RoleDirectory


# =============================================================================
# EMAIL DOUBLES
# =============================================================================


class RecordingEmailSender:
    """Keeps every message; fails for addresses listed in ``fail_for``."""

    def __init__(self, fail_for: set[str] | None = None):
        self.sent: list[EmailMessage] = []
        self.fail_for = fail_for or set()

    async def send(self, message: EmailMessage) -> str:
        if message.to in self.fail_for:
            raise EmailDeliveryError(f"Rejected {message.to}", status_code=422)
        self.sent.append(message)
        return f"email-{len(self.sent)}"


class FailingEmailSender:
    """Provider that is always down."""

    def __init__(self):
        self.attempts = 0

    async def send(self, message: EmailMessage) -> str:
        self.attempts += 1
        raise ConnectionError("provider unreachable")


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncSession:
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


@pytest.fixture
async def roles(session):
    """System roles keyed by name."""
    created = await RoleDirectory(session).ensure_system_roles()
    return {role.name: role for role in created}


# =============================================================================
# DOMAIN FIXTURES
# =============================================================================


@pytest.fixture
async def organization(session) -> Organization:
    return await OrganizationService(session).create_organization(
        name="Acme Saúde", type=OrganizationType.COMPANY
    )


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    async def _make_user(first_name: str = "User", **kwargs) -> User:
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"user{counter['n']}@example.com"),
            first_name=first_name,
            **kwargs,
        )
        session.add(user)
        await session.flush()
        return user

    return _make_user


@pytest.fixture
async def user(make_user) -> User:
    return await make_user("Carla")


@pytest.fixture
async def category(session) -> EmotionCategory:
    category = EmotionCategory(name="Trabalho", display_order=0, is_active=True)
    session.add(category)
    await session.flush()
    return category


@pytest.fixture
def make_submission(session, category):
    async def _make_submission(
        organization_id,
        user_id,
        level: int = 5,
        **kwargs,
    ) -> EmociogramaSubmission:
        submission = EmociogramaSubmission(
            organization_id=organization_id,
            user_id=user_id,
            emotion_level=level,
            emotion_emoji=emoji_for_level(level),
            category_id=category.id,
            is_anonymous=kwargs.pop("is_anonymous", False),
            submitted_at=kwargs.pop("submitted_at", datetime.now(timezone.utc)),
            **kwargs,
        )
        session.add(submission)
        await session.flush()
        return submission

    return _make_submission


@pytest.fixture
def make_alert(session, make_submission, user):
    """Insert an alert row directly, bypassing the trigger."""

    async def _make_alert(organization_id, severity: str, **kwargs) -> EmociogramaAlert:
        submission = await make_submission(organization_id, user.id, level=6)
        alert = EmociogramaAlert(
            organization_id=organization_id,
            submission_id=submission.id,
            alert_type="threshold_exceeded",
            severity=severity,
            message=f"{severity} alert",
            notified_users=[],
            **kwargs,
        )
        session.add(alert)
        await session.flush()
        return alert

    return _make_alert


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def failing_email_sender() -> FailingEmailSender:
    return FailingEmailSender()


@pytest.fixture
def make_email_sender():
    """Recording sender that rejects the given addresses."""
    return lambda *addresses: RecordingEmailSender(fail_for=set(addresses))


@pytest.fixture
def alert_engine(session, email_sender) -> AlertEngine:
    return AlertEngine(session, email_sender=email_sender, frontend_url="https://app.test")


@pytest.fixture
async def manager(session, roles, organization, make_user) -> User:
    """A gestor of ``organization``."""
    manager = await make_user("Bruno", email="bruno@acme.com.br")
    await RoleDirectory(session).assign_role_to_user(
        manager.id, roles[SystemRole.GESTOR.value].id, organization.id
    )
    return manager


@pytest.fixture
def anyid():
    return uuid4
