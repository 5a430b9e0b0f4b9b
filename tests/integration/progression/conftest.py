# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for progression integration tests.

Runs against an in-memory SQLite database through aiosqlite, or against
the database in TEST_DATABASE_URL when it is set.
"""

import os
from collections.abc import AsyncGenerator
from datetime import date, datetime

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from academic_progression.core.config.settings import ProgressionSettings, Settings
from academic_progression.infrastructure.database.models import Base
from academic_progression.infrastructure.database.models.tenant import (
    AcademicCycle,
    Class,
    Course,
    Enrollment,
    ExamResultAggregate,
    Period,
    School,
    Student,
    StudentPromotion,
)

SQLITE_URL = "sqlite+aiosqlite://"


@pytest.fixture(scope="session")
def progression_db_url() -> str:
    """Get database URL for progression tests."""
    return os.environ.get("TEST_DATABASE_URL", SQLITE_URL)


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on SQLite."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def db_engine(progression_db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine with a fresh schema."""
    if progression_db_url.startswith("sqlite"):
        engine = create_async_engine(
            progression_db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_async_engine(progression_db_url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessionmaker configured like the application one."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for progression tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app_settings(progression_defaults: ProgressionSettings) -> Settings:
    """Application settings with fixed progression defaults."""
    return Settings(_env_file=None, progression=progression_defaults)  # type: ignore[call-arg]


class SchoolFactory:
    """Creates school data and flushes each row as it is added."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def school(
        self,
        code: str = "SCH",
        progression_mode: str | None = None,
        pass_threshold: float | None = None,
    ) -> School:
        return await self._save(
            School(
                code=code,
                name=f"School {code}",
                progression_mode=progression_mode,
                pass_threshold=pass_threshold,
            )
        )

    async def cycle(self, school: School, name: str = "2024-2025") -> AcademicCycle:
        return await self._save(
            AcademicCycle(
                school_id=school.id,
                name=name,
                start_date=date(2024, 9, 1),
                end_date=date(2025, 7, 31),
                is_active=True,
            )
        )

    async def period(
        self,
        school: School,
        position: int,
        cycle: AcademicCycle | None = None,
        is_current: bool = False,
        is_completed: bool = False,
        start_date: date | None = None,
    ) -> Period:
        return await self._save(
            Period(
                school_id=school.id,
                cycle_id=cycle.id if cycle else None,
                name=f"Term {position}",
                position=position,
                start_date=start_date or date(2025, 1 + (position - 1) * 4, 1),
                is_current=is_current,
                is_completed=is_completed,
            )
        )

    async def klass(self, school: School | None, name: str, rank: int) -> Class:
        return await self._save(
            Class(school_id=school.id if school else None, name=name, rank=rank)
        )

    async def course(
        self,
        school: School,
        name: str,
        klass: Class | None = None,
        enrollment_count: int = 0,
    ) -> Course:
        return await self._save(
            Course(
                school_id=school.id,
                class_id=klass.id if klass else None,
                code=name.upper().replace(" ", "_"),
                name=name,
                enrollment_count=enrollment_count,
            )
        )

    async def student(
        self,
        school: School | None,
        klass: Class | None,
        first_name: str = "Ada",
        last_name: str = "Lovelace",
    ) -> Student:
        return await self._save(
            Student(
                school_id=school.id if school else None,
                class_id=klass.id if klass else None,
                first_name=first_name,
                last_name=last_name,
            )
        )

    async def enroll(self, student: Student, course: Course, period: Period) -> Enrollment:
        return await self._save(
            Enrollment(
                student_id=student.id,
                course_id=course.id,
                period_id=period.id,
                school_id=student.school_id,
                status="active",
            )
        )

    async def score(
        self,
        student: Student,
        course: Course,
        period: Period,
        final_percentage: float | None,
    ) -> ExamResultAggregate:
        return await self._save(
            ExamResultAggregate(
                student_id=student.id,
                course_id=course.id,
                period_id=period.id,
                school_id=student.school_id,
                final_percentage=final_percentage,
            )
        )

    async def promotion_record(
        self,
        school: School,
        student: Student,
        from_class: Class | None,
        to_class: Class,
        execution_id: str,
        created_at: datetime,
        progression_id: str | None = None,
        changes: dict | None = None,
        previous_enrollments: list | None = None,
        executed_at: datetime | None = None,
    ) -> StudentPromotion:
        return await self._save(
            StudentPromotion(
                school_id=school.id,
                student_id=student.id,
                from_class_id=from_class.id if from_class else None,
                to_class_id=to_class.id,
                execution_id=execution_id,
                progression_id=progression_id,
                changes=changes or {"added": [], "removed": [], "retained": []},
                previous_enrollments=previous_enrollments or [],
                new_enrollments=[],
                created_at=created_at,
                executed_at=executed_at,
            )
        )


@pytest.fixture
def factory(db_session: AsyncSession) -> SchoolFactory:
    """Data factory bound to the test session."""
    return SchoolFactory(db_session)


class DatabaseLookup:
    """Reads state straight from the database, bypassing loaded objects."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def class_of(self, student_id: str) -> str | None:
        return await self.session.scalar(select(Student.class_id).where(Student.id == student_id))

    async def enrollment_count(self, course_id: str) -> int:
        return await self.session.scalar(
            select(Course.enrollment_count).where(Course.id == course_id)
        )

    async def enrolled_course_ids(self, student_id: str) -> set[str]:
        result = await self.session.execute(
            select(Enrollment.course_id).where(Enrollment.student_id == student_id)
        )
        return set(result.scalars())

    async def enrollment_period(self, student_id: str, course_id: str) -> str | None:
        return await self.session.scalar(
            select(Enrollment.period_id).where(
                Enrollment.student_id == student_id, Enrollment.course_id == course_id
            )
        )

    async def promotion_records(self, student_id: str | None = None) -> list[StudentPromotion]:
        query = select(StudentPromotion).order_by(StudentPromotion.created_at)
        if student_id:
            query = query.where(StudentPromotion.student_id == student_id)
        result = await self.session.execute(query)
        return list(result.scalars())

    async def cycle(self, cycle_id: str) -> AcademicCycle:
        result = await self.session.execute(
            select(AcademicCycle)
            .where(AcademicCycle.id == cycle_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()


@pytest.fixture
def lookup(db_session: AsyncSession) -> DatabaseLookup:
    """Database lookup bound to the test session."""
    return DatabaseLookup(db_session)
