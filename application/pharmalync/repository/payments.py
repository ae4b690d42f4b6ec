"""
Payment Repository

State changes are validated against the payment state machine inside the
same transaction that writes them, and each one appends a ``STATE_CHANGE``
document to ``paymentEvents``.
"""
import threading
from datetime import datetime
from typing import Optional, Protocol

from firebase_admin import firestore
from pydantic.alias_generators import to_snake

from pharmalync.core.constants import (
    PAYMENT_EVENT_STATE_CHANGE,
    PAYMENT_EVENTS_COLLECTION,
    PAYMENTS_COLLECTION,
    TIMELINE_FIELDS,
    PaymentState,
)
from pharmalync.core.errors import PaymentNotFoundError
from pharmalync.core.state_machine import validate_transition
from pharmalync.models.payments import PaymentEvent, PaymentRecord

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger(__name__)


def apply_transition(record: PaymentRecord, to_state: PaymentState, now: datetime) -> tuple[PaymentRecord, PaymentEvent]:
    validate_transition(record.id, record.state, to_state)
    event = PaymentEvent(
        payment_id=record.id,
        type=PAYMENT_EVENT_STATE_CHANGE,
        from_state=record.state,
        to_state=to_state,
        at=now,
    )
    timeline = record.timeline.model_copy(update={to_snake(TIMELINE_FIELDS[to_state]): now})
    return record.model_copy(update={"state": to_state, "timeline": timeline}), event


class PaymentRepository(Protocol):
    def get(self, payment_id: str) -> Optional[PaymentRecord]: ...

    def transition(self, payment_id: str, to_state: PaymentState, now: datetime) -> PaymentRecord: ...


class FirestorePaymentRepository:
    def __init__(self, db):
        self.db = db
        self.collection = db.collection(PAYMENTS_COLLECTION)
        self.events = db.collection(PAYMENT_EVENTS_COLLECTION)

    @staticmethod
    def _to_record(payment_id: str, data: dict) -> PaymentRecord:
        return PaymentRecord.from_document({**data, "id": payment_id})

    def get(self, payment_id: str) -> Optional[PaymentRecord]:
        snapshot = self.collection.document(payment_id).get()
        if not snapshot.exists:
            return None
        return self._to_record(payment_id, snapshot.to_dict() or {})

    def transition(self, payment_id: str, to_state: PaymentState, now: datetime) -> PaymentRecord:
        doc_ref = self.collection.document(payment_id)

        @firestore.transactional
        def _run(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise PaymentNotFoundError(payment_id)
            record = self._to_record(payment_id, snapshot.to_dict() or {})
            updated, event = apply_transition(record, to_state, now)
            transaction.update(doc_ref, {
                "state": updated.state.value,
                f"timeline.{TIMELINE_FIELDS[to_state]}": now,
                "updatedAt": now,
            })
            transaction.set(self.events.document(), {
                **event.to_document(),
                "fromState": event.from_state.value,
                "toState": event.to_state.value,
            })
            return updated

        return _run(self.db.transaction())


class InMemoryPaymentRepository:
    def __init__(self):
        self._payments: dict[str, PaymentRecord] = {}
        self.events: list[PaymentEvent] = []
        self._lock = threading.Lock()

    def add(self, record: PaymentRecord) -> None:
        with self._lock:
            self._payments[record.id] = record.model_copy()

    def get(self, payment_id: str) -> Optional[PaymentRecord]:
        with self._lock:
            record = self._payments.get(payment_id)
            return record.model_copy() if record else None

    def transition(self, payment_id: str, to_state: PaymentState, now: datetime) -> PaymentRecord:
        with self._lock:
            record = self._payments.get(payment_id)
            if record is None:
                raise PaymentNotFoundError(payment_id)
            updated, event = apply_transition(record, to_state, now)
            self._payments[payment_id] = updated
            self.events.append(event)
            return updated.model_copy()
