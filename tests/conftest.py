import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "false")

from datetime import date
from typing import AsyncGenerator, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.auth.models import Role, User
from app.auth.security import create_access_token
from app.core.ledger import compute_fee_status
from app.core.models import FeeCategory, Guardian, SchoolSettings, Student, StudentFee
from app.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; overrides the FastAPI session dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# --- Data builders ---
@pytest.fixture()
def make_guardian(db_session: AsyncSession):
    async def _make(phone: Optional[str] = None, full_name: str = "Jane Wanjiku") -> Guardian:
        guardian = Guardian(full_name=full_name, phone=phone)
        db_session.add(guardian)
        await db_session.commit()
        return guardian

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession):
    async def _make(
        username: str,
        guardian: Optional[Guardian] = None,
        phone: Optional[str] = None,
        class_name: str = "Grade 4",
    ) -> Student:
        student = Student(
            username=username,
            full_name=f"Student {username}",
            phone=phone,
            guardian_id=guardian.id if guardian else None,
            class_name=class_name,
        )
        db_session.add(student)
        await db_session.commit()
        return student

    return _make


@pytest.fixture()
def make_category(db_session: AsyncSession):
    async def _make(name: str) -> FeeCategory:
        category = FeeCategory(name=name)
        db_session.add(category)
        await db_session.commit()
        return category

    return _make


@pytest.fixture()
def make_fee(db_session: AsyncSession):
    async def _make(
        student: Student,
        category: Optional[FeeCategory],
        amount_due: int,
        amount_paid: int = 0,
        term: Optional[str] = "TERM1",
        academic_year: Optional[int] = 2025,
        due_date: Optional[date] = None,
        locked: bool = False,
    ) -> StudentFee:
        fee = StudentFee(
            student_id=student.id,
            fee_category_id=category.id if category else None,
            term=term,
            academic_year=academic_year,
            base_amount=amount_due,
            amount_due=amount_due,
            amount_paid=amount_paid,
            locked=locked,
            status=compute_fee_status(amount_due, amount_paid).value,
            due_date=due_date,
        )
        db_session.add(fee)
        await db_session.commit()
        return fee

    return _make


@pytest.fixture()
def set_current_period(db_session: AsyncSession):
    async def _set(academic_year: int = 2025, term: str = "TERM1") -> SchoolSettings:
        row = SchoolSettings(id=1, current_academic_year=academic_year, current_term=term)
        db_session.add(row)
        await db_session.commit()
        return row

    return _set


@pytest.fixture()
def auth_headers(db_session: AsyncSession):
    """Create a user (and its role row) and return bearer headers for it."""

    async def _headers(
        role: str = "ADMIN",
        permissions: Optional[Dict[str, Dict[str, bool]]] = None,
        guardian: Optional[Guardian] = None,
        email: Optional[str] = None,
    ) -> Dict[str, str]:
        if permissions is not None:
            db_session.add(Role(name=role, permissions=permissions))
        user = User(
            full_name=f"{role.title()} User",
            email=email or f"{role.lower()}@school.test",
            role=role,
            guardian_id=guardian.id if guardian else None,
        )
        db_session.add(user)
        await db_session.commit()
        token = create_access_token(subject={"user_id": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers
