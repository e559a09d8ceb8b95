from datetime import datetime, timedelta, timezone
from unittest.mock import ANY, MagicMock

import pytest
from google.api_core.exceptions import ServiceUnavailable
from google.auth.exceptions import DefaultCredentialsError

from app.models.chat import Role, Turn
from app.services import session_store
from app.services.session_store import FirestoreTranscriptStore, _append_turns, transcript_key
from app.utils.errors import StoreError

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)
NEW_MESSAGES = [
    {"role": "user", "content": "hello", "timestamp": NOW},
    {"role": "assistant", "content": "hi there", "timestamp": NOW},
]


def snapshot(data=None):
    snap = MagicMock()
    snap.exists = data is not None
    snap.to_dict.return_value = data
    return snap


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def firestore_store(client):
    return FirestoreTranscriptStore(collection="chat_histories", client=client)


def test_append_creates_transcript_when_absent():
    transaction, doc_ref = MagicMock(), MagicMock()
    doc_ref.get.return_value = snapshot(None)

    created = _append_turns(transaction, doc_ref, "s1", "u1", NEW_MESSAGES, NOW, timedelta(days=30))

    assert created is True
    doc_ref.get.assert_called_once_with(transaction=transaction)
    transaction.set.assert_called_once_with(doc_ref, {
        "sessionId": "s1",
        "userId": "u1",
        "messages": NEW_MESSAGES,
        "createdAt": NOW,
        "updatedAt": NOW,
        "expireAt": NOW + timedelta(days=30),
    })
    transaction.update.assert_not_called()


def test_append_extends_existing_transcript():
    transaction, doc_ref = MagicMock(), MagicMock()
    earlier = [{"role": "user", "content": "hello", "timestamp": NOW}]
    doc_ref.get.return_value = snapshot({"sessionId": "s1", "userId": "u1", "messages": earlier, "createdAt": NOW})

    created = _append_turns(transaction, doc_ref, "s1", "u1", NEW_MESSAGES, NOW, timedelta(days=30))

    assert created is False
    transaction.update.assert_called_once_with(doc_ref, {
        "messages": earlier + NEW_MESSAGES,
        "updatedAt": NOW,
    })
    transaction.set.assert_not_called()


def test_documents_are_keyed_by_owner_and_session(firestore_store, client):
    firestore_store.delete("s1", "u1")
    client.collection.assert_called_with("chat_histories")
    client.collection.return_value.document.assert_called_with(transcript_key("s1", "u1"))
    assert transcript_key("s1", "u1") != transcript_key("s1", "u2")


def test_read_returns_turns_in_order(firestore_store, client):
    doc = client.collection.return_value.document.return_value
    doc.get.return_value = snapshot({"sessionId": "s1", "userId": "u1", "messages": NEW_MESSAGES})

    turns = firestore_store.read("s1", "u1")

    assert [(t.role, t.content) for t in turns] == [(Role.USER, "hello"), (Role.ASSISTANT, "hi there")]


def test_read_missing_or_foreign_transcript_is_empty(firestore_store, client):
    doc = client.collection.return_value.document.return_value
    doc.get.return_value = snapshot(None)
    assert firestore_store.read("s1", "u1") == []

    doc.get.return_value = snapshot({"sessionId": "s1", "userId": "someone-else", "messages": NEW_MESSAGES})
    assert firestore_store.read("s1", "u1") == []


def test_list_sessions_queries_owner_newest_first(firestore_store, client):
    query = client.collection.return_value.where.return_value
    ordered = query.order_by.return_value
    doc = MagicMock(id="doc-1")
    doc.to_dict.return_value = {"sessionId": "s1", "userId": "u1", "createdAt": NOW, "messages": NEW_MESSAGES}
    ordered.limit.return_value.stream.return_value = [doc]

    sessions = firestore_store.list_sessions("u1", limit=500)

    ordered.limit.assert_called_once_with(50)
    query.order_by.assert_called_once_with("createdAt", direction=session_store.firestore.Query.DESCENDING)
    assert len(sessions) == 1
    assert sessions[0].id == "doc-1"
    assert sessions[0].session_id == "s1"
    assert len(sessions[0].messages) == 2


def test_append_failure_raises_store_error(firestore_store, monkeypatch):
    monkeypatch.setattr(session_store, "_append_transactional", MagicMock(side_effect=ServiceUnavailable("down")))
    user_turn, assistant_turn = (Turn(**m) for m in NEW_MESSAGES)

    with pytest.raises(StoreError) as exc_info:
        firestore_store.append("s1", user_turn, assistant_turn, user_id="u1")

    assert exc_info.value.status_code == 500
    assert "down" in exc_info.value.details


def test_delete_failure_raises_store_error(firestore_store, client):
    client.collection.return_value.document.return_value.delete.side_effect = ServiceUnavailable("down")
    with pytest.raises(StoreError):
        firestore_store.delete("s1", "u1")


def test_purge_expired_deletes_in_batches(firestore_store, client):
    expired = [MagicMock(reference=f"ref-{i}") for i in range(3)]
    client.collection.return_value.where.return_value.limit.return_value.stream.return_value = expired

    removed = firestore_store.purge_expired(now=NOW)

    assert removed == 3
    batch = client.batch.return_value
    assert batch.delete.call_count == 3
    batch.commit.assert_called_once()


def test_append_runs_inside_a_transaction(firestore_store, client, monkeypatch):
    assert session_store._append_transactional.to_wrap is _append_turns

    transactional = MagicMock(return_value=True)
    monkeypatch.setattr(session_store, "_append_transactional", transactional)
    user_turn, assistant_turn = (Turn(**m) for m in NEW_MESSAGES)

    firestore_store.append("s1", user_turn, assistant_turn, user_id="u1")

    doc_ref = client.collection.return_value.document.return_value
    transactional.assert_called_once_with(
        client.transaction.return_value, doc_ref, "s1", "u1", NEW_MESSAGES, ANY, timedelta(days=30),
    )
    doc_ref.set.assert_not_called()
    doc_ref.update.assert_not_called()


def test_missing_credentials_raise_store_error(monkeypatch):
    def no_credentials(*args, **kwargs):
        raise DefaultCredentialsError("credentials unavailable")

    monkeypatch.setattr(session_store.firestore, "Client", no_credentials)
    store = FirestoreTranscriptStore()
    user_turn, assistant_turn = (Turn(**m) for m in NEW_MESSAGES)

    with pytest.raises(StoreError) as exc_info:
        store.append("s1", user_turn, assistant_turn, user_id="u1")
    assert exc_info.value.details == "credentials unavailable"
    for call in (lambda: store.read("s1", "u1"), lambda: store.list_sessions("u1"), lambda: store.delete("s1", "u1")):
        with pytest.raises(StoreError):
            call()
