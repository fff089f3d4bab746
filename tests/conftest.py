"""Pytest fixtures for payroll workflow tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_workflow.calculators.engine import PayrollCalculator
from payroll_workflow.models import (
    AppUser,
    AttendanceRecord,
    Base,
    Department,
    Employee,
    PayrollPeriod,
)
from payroll_workflow.services.approval_service import PayrollApprovalCoordinator
from payroll_workflow.services.period_service import PayrollPeriodService
from payroll_workflow.services.record_service import PayrollRecordService
from payroll_workflow.services.reporting_service import PayrollReportingService

# In-memory SQLite shared across connections of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

MARCH_START = date(2025, 3, 3)


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def calculator() -> PayrollCalculator:
    return PayrollCalculator(overtime_multiplier=Decimal("1.5"))


@pytest.fixture
def period_service(session: AsyncSession) -> PayrollPeriodService:
    return PayrollPeriodService(session)


@pytest.fixture
def record_service(session: AsyncSession, calculator: PayrollCalculator) -> PayrollRecordService:
    return PayrollRecordService(session, calculator=calculator)


@pytest.fixture
def coordinator(
    session: AsyncSession, record_service: PayrollRecordService
) -> PayrollApprovalCoordinator:
    return PayrollApprovalCoordinator(session, record_service=record_service)


@pytest.fixture
def reporting(session: AsyncSession) -> PayrollReportingService:
    return PayrollReportingService(session)


@pytest.fixture
async def approvers(session: AsyncSession) -> dict[str, AppUser]:
    """One HR approver and two department heads."""
    users = {
        "hr": AppUser(
            email="helen.reyes@example.com",
            first_name="Helen",
            last_name="Reyes",
            role="hr",
        ),
        "engineering": AppUser(
            email="ethan.cole@example.com",
            first_name="Ethan",
            last_name="Cole",
            role="department_head",
        ),
        "operations": AppUser(
            email="olivia.park@example.com",
            first_name="Olivia",
            last_name="Park",
            role="department_head",
        ),
    }
    session.add_all(users.values())
    await session.flush()
    return users


@pytest.fixture
async def departments(
    session: AsyncSession, approvers: dict[str, AppUser]
) -> dict[str, Department]:
    """Engineering and Operations, each with a head."""
    depts = {
        "engineering": Department(
            name="Engineering",
            department_head_user_id=approvers["engineering"].user_id,
        ),
        "operations": Department(
            name="Operations",
            department_head_user_id=approvers["operations"].user_id,
        ),
    }
    session.add_all(depts.values())
    await session.flush()
    return depts


@pytest.fixture
async def employees(
    session: AsyncSession, departments: dict[str, Department]
) -> dict[str, Employee]:
    """Alice in Engineering (16,000/month) and Bob in Operations (12,000/month)."""
    emps = {
        "alice": Employee(
            employee_number="EMP001",
            first_name="Alice",
            last_name="Santos",
            position="Engineer",
            department_id=departments["engineering"].department_id,
            base_salary=Decimal("16000.00"),
            hire_date=date(2023, 1, 9),
        ),
        "bob": Employee(
            employee_number="EMP002",
            first_name="Bob",
            last_name="Tan",
            position="Operator",
            department_id=departments["operations"].department_id,
            base_salary=Decimal("12000.00"),
            hire_date=date(2023, 6, 1),
        ),
    }
    session.add_all(emps.values())
    await session.flush()
    return emps


@pytest.fixture
async def period(session: AsyncSession) -> PayrollPeriod:
    """Draft March 2025 period with 160 expected hours."""
    period = PayrollPeriod(
        period_name="March 2025",
        start_date=date(2025, 3, 1),
        end_date=date(2025, 3, 31),
        working_days=21,
        expected_monthly_hours=160,
        status="draft",
    )
    session.add(period)
    await session.flush()
    return period


@pytest.fixture
async def attendance(
    session: AsyncSession, employees: dict[str, Employee], period: PayrollPeriod
) -> list[AttendanceRecord]:
    """March attendance.

    Alice: 150 regular, 5 overtime, 2 late hours over 15 days.
    Bob: 160 regular hours over 20 days.
    """
    rows = []
    for day in range(15):
        rows.append(
            AttendanceRecord(
                employee_id=employees["alice"].employee_id,
                work_date=MARCH_START + timedelta(days=day),
                regular_hours=Decimal("10.00"),
                overtime_hours=Decimal("1.00") if day < 5 else Decimal("0"),
                late_hours=Decimal("1.00") if day < 2 else Decimal("0"),
            )
        )
    for day in range(20):
        rows.append(
            AttendanceRecord(
                employee_id=employees["bob"].employee_id,
                work_date=MARCH_START + timedelta(days=day),
                regular_hours=Decimal("8.00"),
            )
        )
    session.add_all(rows)
    await session.flush()
    return rows
