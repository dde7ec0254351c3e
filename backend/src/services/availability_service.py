"""
Doctor availability service and in-process change broadcaster.

The DoctorRecord's availability_status is the authoritative value; only the
doctor may change it. Changes are pushed to viewers through
AvailabilityBroker, a publish/subscribe channel keyed by DoctorRecord id.
Delivery is best effort: each event carries a per-doctor sequence number so
consumers can drop stale or duplicate events, and a (re)connecting viewer is
sent the stored value first.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from core.config import AVAILABILITY_QUEUE_MAX_SIZE
from core.constants import AVAILABILITY_STATUSES, ROLE_DOCTOR
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from models import DoctorRecord
from services.principal_service import PrincipalService
from utils.datetime_utils import utc_now
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityEvent:
    """One availability value for a doctor."""
    doctor_id: int
    status: str
    sequence: int
    changed_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "doctor_id": self.doctor_id,
            "status": self.status,
            "sequence": self.sequence,
            "changed_at": self.changed_at.isoformat(),
        }


class AvailabilitySubscription:
    """
    A viewer's subscription to one doctor's availability.

    Events are queued on the subscriber's event loop; get() returns None once
    the subscription is closed (unsubscribed or replaced by a newer one).
    """

    def __init__(
        self,
        doctor_id: int,
        viewer_key: str,
        loop: asyncio.AbstractEventLoop,
        max_queue_size: int,
    ):
        self.doctor_id = doctor_id
        self.viewer_key = viewer_key
        self._loop = loop
        self._queue: "asyncio.Queue[Optional[AvailabilityEvent]]" = asyncio.Queue(maxsize=max_queue_size)
        self.closed = False

    def deliver(self, event: Optional[AvailabilityEvent]) -> None:
        """Hand an event (or the close marker) to the subscriber's loop. Safe from any thread."""
        try:
            self._loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            # Loop already closed; the viewer is gone
            self.closed = True

    def _enqueue(self, event: Optional[AvailabilityEvent]) -> None:
        if event is None:
            self.closed = True
            # Make room so the close marker is never lost
            while self._queue.full():
                self._queue.get_nowait()
            self._queue.put_nowait(None)
            return
        if self.closed:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                f"Availability queue full for viewer {self.viewer_key} of doctor {self.doctor_id}; "
                f"dropping event {event.sequence}"
            )

    async def get(self) -> Optional[AvailabilityEvent]:
        """Wait for the next event; None means the subscription ended."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()


class AvailabilityBroker:
    """
    Publish/subscribe channel per DoctorRecord.

    A viewer holds at most one subscription per doctor: subscribing again
    with the same viewer key closes the previous subscription.

    Sequences are kept in process memory. They start again from 0 after a
    restart and each worker process counts on its own, so they only order
    events within one connection. A viewer that reconnects must take the
    snapshot as its new baseline rather than compare it with sequences seen
    on an earlier connection.
    """

    def __init__(self, max_queue_size: int = AVAILABILITY_QUEUE_MAX_SIZE):
        self._max_queue_size = max_queue_size
        self._lock = threading.Lock()
        self._subscriptions: Dict[int, Dict[str, AvailabilitySubscription]] = {}
        self._sequences: Dict[int, int] = {}

    def subscribe(self, doctor_id: int, viewer_key: str) -> AvailabilitySubscription:
        """Subscribe from inside a running event loop."""
        subscription = AvailabilitySubscription(
            doctor_id, viewer_key, asyncio.get_running_loop(), self._max_queue_size
        )
        with self._lock:
            viewers = self._subscriptions.setdefault(doctor_id, {})
            previous = viewers.get(viewer_key)
            viewers[viewer_key] = subscription
        if previous is not None:
            previous.deliver(None)
            logger.info(f"Replaced availability subscription of viewer {viewer_key} for doctor {doctor_id}")
        return subscription

    def unsubscribe(self, subscription: AvailabilitySubscription) -> None:
        with self._lock:
            viewers = self._subscriptions.get(subscription.doctor_id, {})
            if viewers.get(subscription.viewer_key) is subscription:
                del viewers[subscription.viewer_key]
            if not viewers:
                self._subscriptions.pop(subscription.doctor_id, None)
        subscription.closed = True

    def current_sequence(self, doctor_id: int) -> int:
        with self._lock:
            return self._sequences.get(doctor_id, 0)

    def snapshot(self, doctor_id: int, status: str, sequence: Optional[int] = None) -> AvailabilityEvent:
        """
        An event describing the stored value, without advancing the sequence.

        Pass the sequence observed before reading the stored value; a change
        published after that point then arrives as a later event.
        """
        if sequence is None:
            sequence = self.current_sequence(doctor_id)
        return AvailabilityEvent(doctor_id=doctor_id, status=status, sequence=sequence)

    def publish(self, doctor_id: int, status: str) -> AvailabilityEvent:
        """Broadcast a new value to every current subscriber of the doctor."""
        with self._lock:
            sequence = self._sequences.get(doctor_id, 0) + 1
            self._sequences[doctor_id] = sequence
            subscribers = list(self._subscriptions.get(doctor_id, {}).values())

        event = AvailabilityEvent(doctor_id=doctor_id, status=status, sequence=sequence)
        for subscription in subscribers:
            subscription.deliver(event)
            if subscription.closed:
                self.unsubscribe(subscription)
        logger.debug(f"Published availability {status} (#{sequence}) for doctor {doctor_id} to {len(subscribers)} viewer(s)")
        return event

    def subscriber_count(self, doctor_id: int) -> int:
        with self._lock:
            return len(self._subscriptions.get(doctor_id, {}))


# Global singleton instance
_availability_broker: Optional[AvailabilityBroker] = None


def get_availability_broker() -> AvailabilityBroker:
    """Get the process-wide availability broker."""
    global _availability_broker
    if _availability_broker is None:
        _availability_broker = AvailabilityBroker()
    return _availability_broker


class AvailabilityService:
    """
    Service class for doctor availability.
    """

    @staticmethod
    @retry_on_store_error()
    def get_availability(db: Session, doctor_id: int) -> DoctorRecord:
        """
        Get the DoctorRecord holding the authoritative availability.

        Raises:
            NotFoundError: Unknown doctor
        """
        record = db.get(DoctorRecord, doctor_id)
        if record is None:
            raise NotFoundError("Doctor not found")
        return record

    @staticmethod
    @retry_on_store_error()
    def set_availability(
        db: Session,
        principal_id: str,
        status: str,
        broker: Optional[AvailabilityBroker] = None,
    ) -> DoctorRecord:
        """
        Change the calling doctor's own availability and notify viewers.

        Args:
            db: Database session
            principal_id: The doctor changing their status
            status: 'active' or 'away'
            broker: Broker to publish on; the process-wide one when None

        Raises:
            ValidationError: Unknown status
            PermissionDeniedError: The principal is not a doctor
            NotFoundError: The doctor has no DoctorRecord yet
        """
        if status not in AVAILABILITY_STATUSES:
            raise ValidationError(f"Invalid availability status '{status}'")
        principal = PrincipalService.resolve(db, principal_id)
        if principal.role != ROLE_DOCTOR:
            raise PermissionDeniedError("Only doctors have an availability status")
        record = db.query(DoctorRecord).filter(DoctorRecord.principal_id == principal_id).first()
        if record is None:
            raise NotFoundError("Doctor profile not found; complete onboarding first")

        if record.availability_status == status:
            return record

        record.availability_status = status
        db.commit()
        db.refresh(record)
        logger.info(f"Doctor {principal_id} set availability to {status}")

        (broker or get_availability_broker()).publish(record.id, status)
        return record
