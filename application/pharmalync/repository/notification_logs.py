import threading
from typing import Protocol

from firebase_admin import firestore

from pharmalync.core.constants import FCM_LOGS_COLLECTION


class NotificationLogRepository(Protocol):
    def record(self, entry: dict) -> None: ...


class FirestoreNotificationLogRepository:
    """Appends one document per push attempt to ``fcmLogs``."""

    def __init__(self, db):
        self.collection = db.collection(FCM_LOGS_COLLECTION)

    def record(self, entry: dict) -> None:
        self.collection.add({**entry, "sentAt": firestore.SERVER_TIMESTAMP})


class InMemoryNotificationLogRepository:
    def __init__(self):
        self.entries: list[dict] = []
        self._lock = threading.Lock()

    def record(self, entry: dict) -> None:
        with self._lock:
            self.entries.append(dict(entry))
