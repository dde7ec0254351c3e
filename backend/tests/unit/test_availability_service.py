"""
Unit tests for doctor availability and its change broadcaster.
"""

import asyncio

import pytest

from core.constants import AVAILABILITY_ACTIVE, AVAILABILITY_AWAY, ROLE_PATIENT
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from models import DoctorRecord
from services.availability_service import AvailabilityBroker, AvailabilityService
from tests.conftest import create_practice_with_owner, create_principal


class TestAvailabilityBroker:

    @pytest.mark.asyncio
    async def test_subscriber_receives_published_events_in_order(self):
        broker = AvailabilityBroker()
        subscription = broker.subscribe(7, "viewer-1:tab")

        broker.publish(7, AVAILABILITY_AWAY)
        broker.publish(7, AVAILABILITY_ACTIVE)

        first = await asyncio.wait_for(subscription.get(), timeout=1)
        second = await asyncio.wait_for(subscription.get(), timeout=1)
        assert (first.status, first.sequence) == (AVAILABILITY_AWAY, 1)
        assert (second.status, second.sequence) == (AVAILABILITY_ACTIVE, 2)

    @pytest.mark.asyncio
    async def test_events_are_scoped_to_one_doctor(self):
        broker = AvailabilityBroker()
        subscription = broker.subscribe(7, "viewer-1:tab")

        broker.publish(8, AVAILABILITY_AWAY)
        broker.publish(7, AVAILABILITY_AWAY)

        event = await asyncio.wait_for(subscription.get(), timeout=1)
        assert event.doctor_id == 7
        assert event.sequence == 1
        assert broker.current_sequence(8) == 1

    @pytest.mark.asyncio
    async def test_resubscribe_replaces_previous_subscription(self):
        broker = AvailabilityBroker()
        old = broker.subscribe(7, "viewer-1:tab")
        new = broker.subscribe(7, "viewer-1:tab")

        assert await asyncio.wait_for(old.get(), timeout=1) is None
        assert broker.subscriber_count(7) == 1

        broker.publish(7, AVAILABILITY_AWAY)
        assert (await asyncio.wait_for(new.get(), timeout=1)).status == AVAILABILITY_AWAY

    @pytest.mark.asyncio
    async def test_different_sessions_subscribe_independently(self):
        broker = AvailabilityBroker()
        broker.subscribe(7, "viewer-1:tab-a")
        broker.subscribe(7, "viewer-1:tab-b")

        assert broker.subscriber_count(7) == 2

    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self):
        broker = AvailabilityBroker(max_queue_size=1)
        subscription = broker.subscribe(7, "viewer-1:tab")

        broker.publish(7, AVAILABILITY_AWAY)
        broker.publish(7, AVAILABILITY_ACTIVE)
        await asyncio.sleep(0)

        event = await asyncio.wait_for(subscription.get(), timeout=1)
        assert event.sequence == 1
        assert subscription._queue.empty()
        assert broker.current_sequence(7) == 2

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        broker = AvailabilityBroker()
        subscription = broker.subscribe(7, "viewer-1:tab")

        broker.unsubscribe(subscription)
        broker.publish(7, AVAILABILITY_AWAY)
        await asyncio.sleep(0)

        assert broker.subscriber_count(7) == 0
        assert await subscription.get() is None

    def test_snapshot_does_not_advance_sequence(self):
        broker = AvailabilityBroker()
        broker.publish(7, AVAILABILITY_AWAY)

        snapshot = broker.snapshot(7, AVAILABILITY_AWAY)

        assert snapshot.sequence == 1
        assert broker.current_sequence(7) == 1
        assert snapshot.to_dict()["status"] == AVAILABILITY_AWAY

    @pytest.mark.asyncio
    async def test_change_after_snapshot_sequence_arrives_as_later_event(self):
        broker = AvailabilityBroker()
        subscription = broker.subscribe(7, "viewer-1:tab")
        sequence = broker.current_sequence(7)

        # Published after the sequence was taken but before the snapshot went out
        broker.publish(7, AVAILABILITY_AWAY)
        snapshot = broker.snapshot(7, AVAILABILITY_AWAY, sequence)

        event = await asyncio.wait_for(subscription.get(), timeout=1)
        assert snapshot.sequence == 0
        assert (event.status, event.sequence) == (AVAILABILITY_AWAY, 1)

    def test_sequences_are_per_broker_process_state(self):
        broker = AvailabilityBroker()
        broker.publish(7, AVAILABILITY_AWAY)
        broker.publish(7, AVAILABILITY_ACTIVE)

        restarted = AvailabilityBroker()

        assert broker.current_sequence(7) == 2
        assert restarted.current_sequence(7) == 0
        assert restarted.snapshot(7, AVAILABILITY_ACTIVE).sequence == 0


class TestSetAvailability:

    def test_doctor_changes_own_status_and_publishes(self, db_session):
        create_practice_with_owner(db_session)
        broker = AvailabilityBroker()

        record = AvailabilityService.set_availability(db_session, "doctor-owner", AVAILABILITY_AWAY, broker=broker)

        assert record.availability_status == AVAILABILITY_AWAY
        assert AvailabilityService.get_availability(db_session, record.id).availability_status == AVAILABILITY_AWAY
        assert broker.current_sequence(record.id) == 1

    def test_unchanged_status_publishes_nothing(self, db_session):
        create_practice_with_owner(db_session)
        broker = AvailabilityBroker()

        record = AvailabilityService.set_availability(db_session, "doctor-owner", AVAILABILITY_ACTIVE, broker=broker)

        assert broker.current_sequence(record.id) == 0

    def test_invalid_status(self, db_session):
        create_practice_with_owner(db_session)

        with pytest.raises(ValidationError):
            AvailabilityService.set_availability(db_session, "doctor-owner", "busy", broker=AvailabilityBroker())

    def test_patient_has_no_availability(self, db_session):
        create_principal(db_session, "patient-1", role=ROLE_PATIENT)

        with pytest.raises(PermissionDeniedError):
            AvailabilityService.set_availability(db_session, "patient-1", AVAILABILITY_AWAY, broker=AvailabilityBroker())

    def test_doctor_without_record(self, db_session):
        create_principal(db_session, "doc-new")

        with pytest.raises(NotFoundError):
            AvailabilityService.set_availability(db_session, "doc-new", AVAILABILITY_AWAY, broker=AvailabilityBroker())

    def test_only_own_record_changes(self, db_session):
        create_practice_with_owner(db_session)
        create_practice_with_owner(db_session, owner_id="doctor-two", practice_name="Other Clinic")

        AvailabilityService.set_availability(db_session, "doctor-two", AVAILABILITY_AWAY, broker=AvailabilityBroker())

        statuses = {r.principal_id: r.availability_status for r in db_session.query(DoctorRecord).all()}
        assert statuses == {"doctor-owner": AVAILABILITY_ACTIVE, "doctor-two": AVAILABILITY_AWAY}

    def test_get_unknown_doctor(self, db_session):
        with pytest.raises(NotFoundError):
            AvailabilityService.get_availability(db_session, 999)
