import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backoffice.main import app
from backoffice.auth.models import Role, User
from backoffice.auth.security import create_access_token
from backoffice.core.models import (
    FeeCategory,
    FeeType,
    FeeTypeGroup,
    Installment,
    PaymentMethod,
    School,
    SchoolClass,
    Student,
    StudentFeeConcession,
    StudentFeePayment,
)
from backoffice.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database per test; StaticPool keeps every session on the same connection."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, future=True, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and assertions; requests get their own sessions."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(subject={"user_id": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """
    One school with two students in class 10-A.

    Asha: Tuition 1000 (paid 400 cash on 2026-04-05, concession 150), Transport 200 (unpaid).
    Bala: Tuition 1000 (paid in full by UPI on 2026-04-05), Term 1 installment 500 (unpaid).
    Payment methods: Cash and UPI.
    A second school holds one student and fee line of its own.
    """
    school = School(name="Green Valley School")
    other_school = School(name="Hill Side School")
    db_session.add_all([school, other_school])
    await db_session.flush()

    admin = User(school_id=school.id, full_name="Admin", email="admin@example.com", role="ADMIN")
    teacher = User(school_id=school.id, full_name="Teacher", email="teacher@example.com", role="TEACHER")
    orphan = User(school_id=None, full_name="Orphan", email="orphan@example.com", role="ADMIN")
    db_session.add_all([
        admin,
        teacher,
        orphan,
        Role(school_id=school.id, name="TEACHER", permissions={"fees": {"read": True}}),
    ])

    cls = SchoolClass(school_id=school.id, name="10", division="A")
    db_session.add(cls)
    await db_session.flush()

    asha = Student(
        school_id=school.id, class_id=cls.id, name="Asha Verma",
        father_name="Ravi Verma", roll_number="1",
    )
    bala = Student(
        school_id=school.id, class_id=cls.id, name="Bala Kumar",
        father_name="Suresh Kumar", roll_number="2", contact_number="9876543210",
    )
    outsider = Student(school_id=other_school.id, name="Chitra Rao", father_name="Mohan Rao")
    tuition = FeeCategory(school_id=school.id, name="Tuition")
    transport = FeeCategory(school_id=school.id, name="Transport")
    other_category = FeeCategory(school_id=other_school.id, name="Tuition")
    tuition_fee = FeeType(school_id=school.id, name="Tuition Fee", installment_type="installments")
    late_fee = FeeType(school_id=school.id, name="Late Fee", installment_type="extra_charge")
    term1 = Installment(school_id=school.id, title="Term 1", due_date=date(2026, 6, 10))
    group = FeeTypeGroup(school_id=school.id, name="Day scholar")
    cash = PaymentMethod(school_id=school.id, name="Cash")
    upi = PaymentMethod(school_id=school.id, name="UPI", description="Any UPI app")
    other_method = PaymentMethod(school_id=other_school.id, name="Cheque")
    db_session.add_all([
        asha, bala, outsider, tuition, transport, other_category, tuition_fee, late_fee, term1, group,
        cash, upi, other_method,
    ])
    await db_session.flush()

    asha_tuition = StudentFeePayment(
        school_id=school.id, student_id=asha.id, fee_category_id=tuition.id,
        assigned_amount=Decimal("1000"), paid_amount=Decimal("400"), status="Partially Paid",
        due_date=date(2026, 4, 10), payment_date=date(2026, 4, 5), payment_mode="Cash",
    )
    asha_transport = StudentFeePayment(
        school_id=school.id, student_id=asha.id, fee_category_id=transport.id,
        assigned_amount=Decimal("200"), paid_amount=Decimal("0"), status="Pending",
        due_date=date(2026, 5, 10),
    )
    bala_tuition = StudentFeePayment(
        school_id=school.id, student_id=bala.id, fee_category_id=tuition.id, fee_type_id=tuition_fee.id,
        assigned_amount=Decimal("1000"), paid_amount=Decimal("1000"), status="Paid",
        due_date=date(2026, 4, 10), payment_date=date(2026, 4, 5), payment_mode="UPI",
    )
    bala_term1 = StudentFeePayment(
        school_id=school.id, student_id=bala.id, installment_id=term1.id,
        assigned_amount=Decimal("500"), paid_amount=Decimal("0"), status="Pending",
        due_date=date(2026, 6, 10),
    )
    outsider_fee = StudentFeePayment(
        school_id=other_school.id, student_id=outsider.id, fee_category_id=other_category.id,
        assigned_amount=Decimal("800"), paid_amount=Decimal("0"), status="Pending",
        due_date=date(2026, 4, 10),
    )
    db_session.add_all([asha_tuition, asha_transport, bala_tuition, bala_term1, outsider_fee])
    await db_session.flush()

    db_session.add(
        StudentFeeConcession(
            school_id=school.id, fee_payment_id=asha_tuition.id,
            concession_amount=Decimal("150"), reason="Sibling discount", granted_by=admin.id,
        )
    )
    await db_session.commit()

    return SimpleNamespace(
        school=school,
        other_school=other_school,
        admin=admin,
        teacher=teacher,
        orphan=orphan,
        cls=cls,
        asha=asha,
        bala=bala,
        outsider=outsider,
        tuition=tuition,
        transport=transport,
        other_category=other_category,
        tuition_fee=tuition_fee,
        late_fee=late_fee,
        term1=term1,
        group=group,
        cash=cash,
        upi=upi,
        other_method=other_method,
        asha_tuition=asha_tuition,
        asha_transport=asha_transport,
        bala_tuition=bala_tuition,
        bala_term1=bala_term1,
        outsider_fee=outsider_fee,
    )


@pytest.fixture()
def admin_headers(seed: SimpleNamespace) -> Dict[str, str]:
    return auth_headers(seed.admin)


@pytest.fixture()
def teacher_headers(seed: SimpleNamespace) -> Dict[str, str]:
    return auth_headers(seed.teacher)


@pytest.fixture()
def orphan_headers(seed: SimpleNamespace) -> Dict[str, str]:
    return auth_headers(seed.orphan)
