from datetime import date, time
from decimal import Decimal
from pathlib import Path
import hashlib
import hmac
import os
import sys
import time as clock
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

WEBHOOK_SECRET = "whsec_test_secret"

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)

from main import create_app  # noqa: E402
from src.core.database import Base, get_db  # noqa: E402
from src.core.security import create_access_token  # noqa: E402
from src.modules.appointments.models import Appointment  # noqa: E402
from src.modules.catalog.models import Service  # noqa: E402
from src.modules.payments.gateway import (  # noqa: E402
    CheckoutSession,
    PaymentIntentDetails,
    StripeGateway,
    get_payment_gateway,
)
from src.modules.schedule.models import StaffAvailability  # noqa: E402,F401
from src.modules.users.models import Profile  # noqa: E402
from src.shared.enums import AppointmentStatus, PaymentStatus, UserRole  # noqa: E402


class FakeGateway(StripeGateway):
    """Records provider calls instead of talking to Stripe; signatures are still verified."""

    def __init__(self):
        super().__init__(api_key=None, webhook_secret=WEBHOOK_SECRET)
        self.sessions: list[dict] = []
        self.refunds: list[dict] = []
        self.retrieved: list[str] = []

    async def create_checkout_session(self, **kwargs) -> CheckoutSession:
        self.sessions.append(kwargs)
        session_id = f"cs_test_{len(self.sessions)}"
        return CheckoutSession(session_id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentDetails:
        self.retrieved.append(payment_intent_id)
        return PaymentIntentDetails(payment_intent_id=payment_intent_id, status="succeeded")

    async def create_refund(self, *, payment_intent_id: str, amount: int, metadata: dict[str, str]) -> str:
        self.refunds.append({"payment_intent_id": payment_intent_id, "amount": amount, "metadata": metadata})
        return f"re_test_{len(self.refunds)}"


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    async with SessionLocal() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def client(db_session, gateway):
    app = create_app()

    async def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


@pytest.fixture
def auth_headers():
    def _headers(profile: Profile) -> dict[str, str]:
        token = create_access_token(profile.profile_id, email=profile.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def sign_webhook():
    """Build a ``Stripe-Signature`` header the way Stripe does."""

    def _sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = timestamp if timestamp is not None else int(clock.time())
        digest = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


def _profile(role: UserRole, name: str) -> Profile:
    return Profile(
        profile_id=str(uuid.uuid4()),
        email=f"{name.lower().replace(' ', '.')}@clinic.test",
        full_name=name,
        role=role,
        is_active=True,
    )


@pytest_asyncio.fixture
async def clinic(db_session):
    """One patient, one doctor, one admin and a 60 minute consultation priced at 1000 INR."""
    patient = _profile(UserRole.PATIENT, "Asha Patient")
    other_patient = _profile(UserRole.PATIENT, "Ravi Patient")
    staff = _profile(UserRole.STAFF, "Dr Mehta")
    other_staff = _profile(UserRole.STAFF, "Dr Rao")
    admin = _profile(UserRole.ADMIN, "Clinic Admin")
    service = Service(
        name="General Consultation",
        description="Initial consultation",
        duration_minutes=60,
        price=Decimal("1000.00"),
        currency="INR",
        is_active=True,
    )
    db_session.add_all([patient, other_patient, staff, other_staff, admin, service])
    await db_session.commit()
    return {
        "patient": patient,
        "other_patient": other_patient,
        "staff": staff,
        "other_staff": other_staff,
        "admin": admin,
        "service": service,
    }


@pytest.fixture
def make_appointment(db_session, clinic):
    async def _make(
        *,
        appointment_date: date = date(2025, 3, 1),
        start: time = time(10, 0),
        end: time = time(11, 0),
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        payment_intent_id: str | None = None,
        payment_amount: Decimal | None = None,
        staff: Profile | None = None,
    ) -> Appointment:
        appointment = Appointment(
            patient_id=clinic["patient"].profile_id,
            staff_id=(staff or clinic["staff"]).profile_id,
            service_id=clinic["service"].service_id,
            appointment_date=appointment_date,
            start_time=start,
            end_time=end,
            status=status,
            payment_status=payment_status,
            stripe_payment_intent_id=payment_intent_id,
            payment_amount=payment_amount,
            payment_currency="INR" if payment_amount is not None else None,
        )
        db_session.add(appointment)
        await db_session.commit()
        return appointment

    return _make
