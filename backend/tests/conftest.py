"""
Test configuration and shared fixtures for the Practice Portal test suite.

Runs against an in-memory SQLite database by default. Point
TEST_DATABASE_URL at a PostgreSQL database to run the suite against the
Alembic migrations with transaction-based isolation instead.
"""

import os

# Must be set before core.config is imported anywhere
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

import pytest
from pathlib import Path
from typing import Generator, Optional

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from core.constants import ROLE_DOCTOR, ROLE_PATIENT
from core.database import Base, get_db

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from models import (
    Principal, DoctorRecord, PatientRecord, Practice, StaffMembership,
    PhysicianPatientRequest, PatientAssignment, StaffInvitation, PracticeJoinRequest, PatientInvitation,
)
from services.jwt_service import jwt_service, TokenPayload
from services.onboarding_service import OnboardingChoice, OnboardingFields, OnboardingService
from services.principal_service import PrincipalService

USE_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):  # type: ignore
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(scope="session")
def db_engine():
    """
    Create a database engine for the test session.

    SQLite uses a single shared in-memory connection (StaticPool) so the
    schema survives across sessions; PostgreSQL uses NullPool so each test
    gets a fresh connection.
    """
    if USE_POSTGRES:
        engine = create_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)
    else:
        engine = create_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    yield engine

    engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def setup_test_database(db_engine):
    """
    Create the schema once per test session.

    On PostgreSQL the schema comes from running every Alembic migration from
    scratch, which also checks that the migrations match the models. SQLite
    cannot run the PostgreSQL-specific DDL, so it uses the model metadata.
    """
    if USE_POSTGRES:
        from alembic import command
        from alembic.config import Config

        alembic_cfg = Config(str(Path(__file__).resolve().parent.parent / "alembic.ini"))
        alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)

        with db_engine.connect() as conn:
            conn.execute(text("DROP TABLE IF EXISTS alembic_version CASCADE"))
            conn.commit()
        Base.metadata.drop_all(bind=db_engine)
        command.upgrade(alembic_cfg, "head")
    else:
        Base.metadata.create_all(bind=db_engine)

    yield

    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session with a clean database state.

    PostgreSQL: the "nested transaction" pattern. Application commits only
    release a savepoint and everything is rolled back at teardown.
    SQLite: plain commits, with every table emptied at teardown.
    """
    if not USE_POSTGRES:
        TestSession = sessionmaker(bind=db_engine, expire_on_commit=False)
        session = TestSession()

        yield session

        session.close()
        with db_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())
        return

    connection = db_engine.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(bind=connection, expire_on_commit=False)
    session = TestSession()
    connection.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(session, transaction):
        if transaction.nested and not transaction._parent.nested:
            # Re-establish a new savepoint after the nested transaction ends
            session.begin_nested()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Test client whose requests share the test's database session."""
    from main import app

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


def create_identity_token(principal_id: str, email: Optional[str] = None) -> str:
    """Token as the identity provider would issue it."""
    return jwt_service.create_access_token(TokenPayload(sub=principal_id, email=email))


def auth_headers(principal_id: str, email: Optional[str] = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_identity_token(principal_id, email)}"}


def create_principal(
    db_session: Session,
    principal_id: str,
    role: str = ROLE_DOCTOR,
    email: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> Principal:
    """Register a principal the way signup does."""
    return PrincipalService.register_principal(
        db_session,
        principal_id=principal_id,
        email=email or f"{principal_id}@example.com",
        role=role,
        first_name=first_name,
        last_name=last_name,
    )


def create_practice_with_owner(
    db_session: Session,
    owner_id: str = "doctor-owner",
    practice_name: str = "Acme Clinic",
) -> Practice:
    """
    Register a doctor and run owner onboarding for them.

    Returns:
        The practice, whose owner holds an admin membership
    """
    if db_session.get(Principal, owner_id) is None:
        create_principal(db_session, owner_id, role=ROLE_DOCTOR, first_name="Olivia", last_name="Owner")
    practice = OnboardingService.complete_onboarding(
        db_session,
        owner_id,
        OnboardingChoice.OWNER,
        OnboardingFields(
            specialty="Family Medicine",
            license_number="LIC-0001",
            practice_name=practice_name,
            practice_address="1 Main Street",
        ),
    )
    assert practice is not None
    return practice


def create_patient(
    db_session: Session,
    principal_id: str = "patient-1",
    email: Optional[str] = None,
    first_name: str = "Pat",
    last_name: str = "Patient",
) -> PatientRecord:
    """Register a patient principal and return its PatientRecord."""
    principal = create_principal(
        db_session, principal_id, role=ROLE_PATIENT, email=email, first_name=first_name, last_name=last_name
    )
    assert principal.patient_record is not None
    return principal.patient_record


def get_membership(db_session: Session, principal_id: str, practice_id: int) -> StaffMembership:
    return db_session.query(StaffMembership).filter(
        StaffMembership.principal_id == principal_id,
        StaffMembership.practice_id == practice_id,
        StaffMembership.status == "active",
    ).one()
