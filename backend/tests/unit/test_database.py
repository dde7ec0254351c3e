"""
Tests for store error handling: commit conflicts, error translation and retry.
"""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from core.database import commit_or_conflict, translate_store_error
from core.exceptions import ConflictError, StoreTimeoutError, StoreUnavailableError
from models import StaffMembership
from services.onboarding_service import OnboardingChoice, OnboardingFields, OnboardingService
from utils.retry import retry_on_store_error
from tests.conftest import create_practice_with_owner


class _PgError(Exception):
    def __init__(self, message: str, pgcode: str = None):
        super().__init__(message)
        self.pgcode = pgcode


def test_commit_or_conflict_translates_unique_violation(db_session):
    practice = create_practice_with_owner(db_session)
    # Bypass the service checks to hit the partial unique index directly
    db_session.add(StaffMembership(
        principal_id="doctor-owner", practice_id=practice.id, role="doctor", permissions=[], status="active",
    ))

    with pytest.raises(ConflictError) as exc_info:
        commit_or_conflict(db_session, "duplicate")

    assert exc_info.value.detail == "duplicate"
    assert db_session.query(StaffMembership).count() == 1


def test_translate_statement_timeout():
    error = OperationalError("SELECT 1", {}, _PgError("canceling statement", pgcode="57014"))

    assert isinstance(translate_store_error(error), StoreTimeoutError)


def test_translate_connection_failure():
    error = OperationalError("SELECT 1", {}, _PgError("could not connect to server"))

    translated = translate_store_error(error)
    assert isinstance(translated, StoreUnavailableError)
    assert translated.status_code == 503


class TestRetryOnStoreError:

    def test_transient_error_retried_once(self):
        calls = Mock(side_effect=[OperationalError("SELECT 1", {}, _PgError("server closed")), "ok"])

        @retry_on_store_error(base_delay=0)
        def operation(db):
            return calls()

        db = Mock()
        assert operation(db) == "ok"
        assert calls.call_count == 2

    def test_gives_up_after_one_retry(self):
        error = OperationalError("SELECT 1", {}, _PgError("server closed"))
        calls = Mock(side_effect=[error, error, "never"])

        @retry_on_store_error(base_delay=0)
        def operation():
            return calls()

        with pytest.raises(OperationalError):
            operation()
        assert calls.call_count == 2

    def test_integrity_error_not_retried(self):
        calls = Mock(side_effect=IntegrityError("INSERT", {}, _PgError("duplicate key")))

        @retry_on_store_error(base_delay=0)
        def operation():
            return calls()

        with pytest.raises(IntegrityError):
            operation()
        assert calls.call_count == 1

    def test_timeout_not_retried(self):
        calls = Mock(side_effect=OperationalError("SELECT 1", {}, _PgError("canceling", pgcode="57014")))

        @retry_on_store_error(base_delay=0)
        def operation():
            return calls()

        with pytest.raises(OperationalError):
            operation()
        assert calls.call_count == 1

    def test_business_errors_pass_through(self):
        calls = Mock(side_effect=ConflictError("taken"))

        @retry_on_store_error(base_delay=0)
        def operation():
            return calls()

        with pytest.raises(ConflictError):
            operation()
        assert calls.call_count == 1

    def test_nested_operations_retry_only_at_the_outermost_call(self):
        calls = Mock(side_effect=OperationalError("SELECT 1", {}, _PgError("server closed")))

        @retry_on_store_error(base_delay=0)
        def inner():
            return calls()

        @retry_on_store_error(base_delay=0)
        def middle():
            return inner()

        @retry_on_store_error(base_delay=0)
        def outer():
            return middle()

        with pytest.raises(OperationalError):
            outer()
        assert calls.call_count == 2

    def test_inner_call_retries_again_after_outer_returns(self):
        calls = Mock(side_effect=[OperationalError("SELECT 1", {}, _PgError("server closed")), "ok"])

        @retry_on_store_error(base_delay=0)
        def operation():
            return calls()

        @retry_on_store_error(base_delay=0)
        def wrapper():
            return "done"

        assert wrapper() == "done"
        assert operation() == "ok"
        assert calls.call_count == 2

    def test_service_call_against_failing_store_makes_two_attempts(self, monkeypatch):
        monkeypatch.setattr("utils.retry.STORE_RETRY_BASE_DELAY_SECONDS", 0)
        db = Mock(spec=Session)
        db.get.side_effect = OperationalError("SELECT 1", {}, _PgError("server closed"))

        with pytest.raises(OperationalError):
            OnboardingService.complete_onboarding(
                db, "doctor-1", OnboardingChoice.EMPLOYEE,
                OnboardingFields(specialty="Cardiology", license_number="LIC-1"),
            )

        assert db.get.call_count == 2
        assert db.rollback.call_count == 1
