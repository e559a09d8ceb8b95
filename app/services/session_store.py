# session_store.py
"""
Transcript persistence.

One document per (userId, sessionId) holding the ordered list of turns.
Documents are created on the first exchange of a session and expire
`retention_days` after creation (Firestore TTL policy on `expireAt`).
"""
import copy
import hashlib
import itertools
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from app.models.chat import SessionSummary, Turn
from app.utils.config import MAX_LIST_LIMIT, Settings
from app.utils.errors import StoreError
from app.utils.logger import logger

DEFAULT_RETENTION = timedelta(days=30)
PURGE_BATCH_SIZE = 200

# Backend call failures plus credential errors raised when the client is first built
STORE_FAILURES = (GoogleAPIError, GoogleAuthError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def transcript_key(session_id: str, user_id: Optional[str] = None) -> str:
    """Document id for a transcript; any client-chosen session id maps to a valid id."""
    raw = f"{user_id or ''}\x1f{session_id}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def turn_to_doc(turn: Turn) -> dict:
    return {"role": turn.role.value, "content": turn.content, "timestamp": turn.timestamp}


def summary_from_doc(doc_id: str, data: dict) -> SessionSummary:
    return SessionSummary(
        id=doc_id,
        session_id=data["sessionId"],
        created_at=data["createdAt"],
        messages=[Turn(**m) for m in data.get("messages", [])],
    )


class TranscriptStore(ABC):
    """Contract for chat transcript persistence."""

    @abstractmethod
    def append(self, session_id: str, user_turn: Turn, assistant_turn: Turn, user_id: Optional[str] = None) -> None:
        """Atomically append one exchange, creating the transcript if absent."""

    @abstractmethod
    def read(self, session_id: str, user_id: Optional[str] = None) -> list[Turn]:
        """Full ordered transcript, or [] when the session is unknown."""

    @abstractmethod
    def list_sessions(self, user_id: Optional[str] = None, limit: int = MAX_LIST_LIMIT) -> list[SessionSummary]:
        """Newest-first transcripts of one owner, at most 50."""

    @abstractmethod
    def delete(self, session_id: str, user_id: Optional[str] = None) -> None:
        """Remove a transcript. Succeeds whether or not it existed."""

    @abstractmethod
    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete transcripts past their expiry; returns how many were removed."""


# -----------------------------------------------------------------------------
# Firestore backend
# -----------------------------------------------------------------------------
def _append_turns(transaction, doc_ref, session_id, user_id, new_messages, now, retention):
    snapshot = doc_ref.get(transaction=transaction)
    if snapshot.exists:
        existing = (snapshot.to_dict() or {}).get("messages", [])
        transaction.update(doc_ref, {
            "messages": list(existing) + new_messages,
            "updatedAt": now,
        })
        return False
    transaction.set(doc_ref, {
        "sessionId": session_id,
        "userId": user_id,
        "messages": new_messages,
        "createdAt": now,
        "updatedAt": now,
        "expireAt": now + retention,
    })
    return True


_append_transactional = firestore.transactional(_append_turns)


class FirestoreTranscriptStore(TranscriptStore):
    def __init__(
        self,
        collection: str = "chat_histories",
        project: Optional[str] = None,
        retention: timedelta = DEFAULT_RETENTION,
        client: Optional[firestore.Client] = None,
    ):
        self.collection_name = collection
        self.project = project
        self.retention = retention
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirestoreTranscriptStore":
        return cls(
            collection=settings.store_collection,
            project=settings.store_project,
            retention=timedelta(days=settings.retention_days),
        )

    @property
    def client(self) -> firestore.Client:
        if self._client is None:
            self._client = firestore.Client(project=self.project)
            logger.info(f"✅ Firestore client initialized for collection '{self.collection_name}'")
        return self._client

    def _doc(self, session_id: str, user_id: Optional[str]):
        return self.client.collection(self.collection_name).document(transcript_key(session_id, user_id))

    def append(self, session_id, user_turn, assistant_turn, user_id=None):
        new_messages = [turn_to_doc(user_turn), turn_to_doc(assistant_turn)]
        try:
            doc_ref = self._doc(session_id, user_id)
            created = _append_transactional(
                self.client.transaction(), doc_ref, session_id, user_id,
                new_messages, _utcnow(), self.retention,
            )
        except STORE_FAILURES as e:
            logger.error(f"❌ Failed to save chat for session {session_id}: {e}", exc_info=True)
            raise StoreError("Failed to save chat history.", details=str(e)) from e
        if created:
            logger.info(f"✅ New transcript created for session {session_id}")

    def read(self, session_id, user_id=None):
        try:
            snapshot = self._doc(session_id, user_id).get()
        except STORE_FAILURES as e:
            logger.error(f"❌ Error fetching chat history for {session_id}: {e}", exc_info=True)
            raise StoreError("Failed to fetch chat history.", details=str(e)) from e
        if not snapshot.exists:
            return []
        data = snapshot.to_dict() or {}
        # Guard against hash collisions across owners
        if data.get("sessionId") != session_id or data.get("userId") != user_id:
            return []
        return [Turn(**m) for m in data.get("messages", [])]

    def list_sessions(self, user_id=None, limit=MAX_LIST_LIMIT):
        limit = max(0, min(limit, MAX_LIST_LIMIT))
        try:
            query = (
                self.client.collection(self.collection_name)
                .where(filter=FieldFilter("userId", "==", user_id))
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
                .limit(limit)
            )
            return [summary_from_doc(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        except STORE_FAILURES as e:
            logger.error(f"❌ Error fetching sessions: {e}", exc_info=True)
            raise StoreError("Failed to fetch sessions.", details=str(e)) from e

    def delete(self, session_id, user_id=None):
        try:
            self._doc(session_id, user_id).delete()
        except STORE_FAILURES as e:
            logger.error(f"❌ Error deleting chat {session_id}: {e}", exc_info=True)
            raise StoreError("Failed to delete chat.", details=str(e)) from e
        logger.info(f"🗑️ Chat {session_id} deleted")

    def purge_expired(self, now=None):
        now = now or _utcnow()
        removed = 0
        try:
            query = (
                self.client.collection(self.collection_name)
                .where(filter=FieldFilter("expireAt", "<=", now))
                .limit(PURGE_BATCH_SIZE)
            )
            while True:
                docs = list(query.stream())
                if not docs:
                    break
                batch = self.client.batch()
                for doc in docs:
                    batch.delete(doc.reference)
                batch.commit()
                removed += len(docs)
                if len(docs) < PURGE_BATCH_SIZE:
                    break
        except STORE_FAILURES as e:
            logger.error(f"❌ Error purging expired transcripts: {e}", exc_info=True)
            raise StoreError("Failed to purge expired transcripts.", details=str(e)) from e
        return removed


# -----------------------------------------------------------------------------
# In-memory backend (local development and tests)
# -----------------------------------------------------------------------------
class InMemoryTranscriptStore(TranscriptStore):
    def __init__(self, retention: timedelta = DEFAULT_RETENTION, clock: Callable[[], datetime] = _utcnow):
        self.retention = retention
        self.clock = clock
        self._docs: dict[str, dict] = {}
        self._lock = threading.Lock()
        self._created = itertools.count()

    def append(self, session_id, user_turn, assistant_turn, user_id=None):
        key = transcript_key(session_id, user_id)
        now = self.clock()
        with self._lock:
            doc = self._docs.get(key)
            if doc is None:
                doc = {
                    "sessionId": session_id,
                    "userId": user_id,
                    "messages": [],
                    "createdAt": now,
                    "expireAt": now + self.retention,
                    "_seq": next(self._created),
                }
                self._docs[key] = doc
            doc["messages"].extend([turn_to_doc(user_turn), turn_to_doc(assistant_turn)])
            doc["updatedAt"] = now

    def read(self, session_id, user_id=None):
        with self._lock:
            doc = self._docs.get(transcript_key(session_id, user_id))
            messages = copy.deepcopy(doc["messages"]) if doc else []
        return [Turn(**m) for m in messages]

    def list_sessions(self, user_id=None, limit=MAX_LIST_LIMIT):
        limit = max(0, min(limit, MAX_LIST_LIMIT))
        with self._lock:
            owned = [(key, copy.deepcopy(doc)) for key, doc in self._docs.items() if doc["userId"] == user_id]
        # Creation order breaks ties between equal clock readings
        owned.sort(key=lambda item: (item[1]["createdAt"], item[1]["_seq"]), reverse=True)
        return [summary_from_doc(key, doc) for key, doc in owned[:limit]]

    def delete(self, session_id, user_id=None):
        with self._lock:
            self._docs.pop(transcript_key(session_id, user_id), None)

    def purge_expired(self, now=None):
        now = now or self.clock()
        with self._lock:
            expired = [key for key, doc in self._docs.items() if doc["expireAt"] <= now]
            for key in expired:
                del self._docs[key]
        return len(expired)


def build_store(settings: Settings) -> TranscriptStore:
    if settings.store_backend == "memory":
        logger.warning("⚠️ Using in-memory transcript store; history is lost on restart.")
        return InMemoryTranscriptStore(retention=timedelta(days=settings.retention_days))
    if settings.store_backend == "firestore":
        return FirestoreTranscriptStore.from_settings(settings)
    raise ValueError(f"Unknown store backend: {settings.store_backend}")
