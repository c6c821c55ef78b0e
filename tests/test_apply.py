"""Tests for idempotent object application."""

from constants import SECRET
from fakes import FakeObjectStore
from resources.apply import apply_all, apply_object, create_if_absent


def _secret(name="s", labels=None, data=None):
    secret = {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": "ns"},
    }
    if labels is not None:
        secret["metadata"]["labels"] = labels
    if data is not None:
        secret["data"] = data
    return secret


class TestApplyObject:
    """Tests for apply_object function."""

    def test_creates_missing_object(self):
        store = FakeObjectStore()

        assert apply_object(store, _secret(data={"k": "dg=="})) is True
        assert store.stored(SECRET, "s", "ns")["data"] == {"k": "dg=="}

    def test_no_write_when_up_to_date(self):
        store = FakeObjectStore([_secret(labels={"a": "b"}, data={"k": "dg=="})])

        assert apply_object(store, _secret(labels={"a": "b"})) is False
        assert store.mutations == []

    def test_updates_and_keeps_server_fields(self):
        store = FakeObjectStore([_secret(data={"k": "dg=="})])

        assert apply_object(store, _secret(labels={"a": "b"})) is True

        stored = store.stored(SECRET, "s", "ns")
        assert stored["metadata"]["labels"] == {"a": "b"}
        assert stored["data"] == {"k": "dg=="}
        assert store.mutations == [("update", "Secret", "s", "ns")]


class TestCreateIfAbsent:
    def test_creates(self):
        store = FakeObjectStore()
        assert create_if_absent(store, _secret()) is True
        assert store.stored(SECRET, "s", "ns") is not None

    def test_never_touches_existing(self):
        store = FakeObjectStore([_secret(data={"k": "old"})])

        assert create_if_absent(store, _secret(data={"k": "new"})) is False
        assert store.stored(SECRET, "s", "ns")["data"] == {"k": "old"}
        assert store.mutations == []


class TestApplyAll:
    def test_counts_writes(self):
        store = FakeObjectStore([_secret("a")])

        assert apply_all(store, [_secret("a"), _secret("b"), _secret("c")]) == 2
        assert [call[0] for call in store.mutations] == ["create", "create"]
