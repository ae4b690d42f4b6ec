"""
OTP Repository

One document per payment in ``secure_otps``. Every state change goes through
:meth:`transact`, a single atomic read-modify-write: the caller's ``decide``
function sees the current record and returns an :class:`OTPMutation`
describing what to write. Firestore may retry a transaction, so ``decide``
must not have side effects.
"""
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from pharmalync.core.constants import OTP_COLLECTION, OTP_HISTORY_SUBCOLLECTION
from pharmalync.models.otp import OTPRecord

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger(__name__)


@dataclass
class OTPMutation:
    result: Any = None
    write: Optional[OTPRecord] = None
    archive_previous: bool = False


Decide = Callable[[Optional[OTPRecord]], OTPMutation]


class OTPRepository(Protocol):
    def get(self, payment_id: str) -> Optional[OTPRecord]: ...

    def transact(self, payment_id: str, decide: Decide) -> OTPMutation: ...

    def list_unused_for_retailer(self, retailer_id: str) -> list[OTPRecord]: ...


class FirestoreOTPRepository:
    def __init__(self, db):
        self.db = db
        self.collection = db.collection(OTP_COLLECTION)

    def get(self, payment_id: str) -> Optional[OTPRecord]:
        snapshot = self.collection.document(payment_id).get()
        if not snapshot.exists:
            return None
        return OTPRecord.from_document(snapshot.to_dict())

    def transact(self, payment_id: str, decide: Decide) -> OTPMutation:
        doc_ref = self.collection.document(payment_id)

        @firestore.transactional
        def _run(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            raw = snapshot.to_dict() if snapshot.exists else None
            current = OTPRecord.from_document(raw) if raw else None
            mutation = decide(current)
            if mutation.archive_previous and raw:
                history_ref = doc_ref.collection(OTP_HISTORY_SUBCOLLECTION).document()
                transaction.set(history_ref, {**raw, "archivedAt": firestore.SERVER_TIMESTAMP})
            if mutation.write is not None:
                transaction.set(doc_ref, mutation.write.to_document())
            return mutation

        return _run(self.db.transaction())

    def list_unused_for_retailer(self, retailer_id: str) -> list[OTPRecord]:
        query = (
            self.collection
            .where(filter=FieldFilter("retailerId", "==", retailer_id))
            .where(filter=FieldFilter("isUsed", "==", False))
        )
        return [OTPRecord.from_document(doc.to_dict()) for doc in query.stream()]


class InMemoryOTPRepository:
    """Process-local store; a single lock serialises every transaction."""

    def __init__(self):
        self._records: dict[str, OTPRecord] = {}
        self.history: dict[str, list[OTPRecord]] = {}
        self._lock = threading.Lock()

    def get(self, payment_id: str) -> Optional[OTPRecord]:
        with self._lock:
            record = self._records.get(payment_id)
            return record.model_copy() if record else None

    def transact(self, payment_id: str, decide: Decide) -> OTPMutation:
        with self._lock:
            current = self._records.get(payment_id)
            mutation = decide(current.model_copy() if current else None)
            if mutation.archive_previous and current is not None:
                self.history.setdefault(payment_id, []).append(current)
            if mutation.write is not None:
                self._records[payment_id] = mutation.write.model_copy()
            return mutation

    def list_unused_for_retailer(self, retailer_id: str) -> list[OTPRecord]:
        with self._lock:
            return [
                record.model_copy()
                for record in self._records.values()
                if record.retailer_id == retailer_id and not record.is_used
            ]
