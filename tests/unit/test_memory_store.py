"""Unit tests for the in-memory document store."""

from datetime import datetime
from datetime import timezone

import pytest

from firestore_batcher.exceptions import DocumentStoreError
from firestore_batcher.models import Precondition
from firestore_batcher.store.base import TRANSACTION_TOO_BIG_MESSAGE
from firestore_batcher.store.base import is_transaction_too_large_error
from firestore_batcher.store.memory import ALREADY_EXISTS
from firestore_batcher.store.memory import FAILED_PRECONDITION
from firestore_batcher.store.memory import NOT_FOUND
from firestore_batcher.store.memory import MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


async def _seed(store, collection, documents):
    batch = store.batch()
    for document_id, data in documents.items():
        batch.set(store.collection(collection).document(document_id), data)
    await batch.commit()


class TestMemoryWriteBatch:
    """Test atomic batch semantics."""

    @pytest.mark.asyncio
    async def test_set_and_read_back(self, store):
        ref = store.document("users/ada")
        batch = store.batch()
        batch.set(ref, {"name": "Ada"})

        await batch.commit()

        snapshot = await ref.get()
        assert snapshot.exists
        assert snapshot.to_dict() == {"name": "Ada"}
        assert snapshot.create_time == snapshot.update_time

    @pytest.mark.asyncio
    async def test_nothing_applied_before_commit(self, store):
        ref = store.document("users/ada")
        batch = store.batch()
        batch.set(ref, {"name": "Ada"})

        assert len(batch) == 1
        assert not (await ref.get()).exists

    @pytest.mark.asyncio
    async def test_staged_data_is_copied(self, store):
        data = {"name": "Ada"}
        ref = store.document("users/ada")
        batch = store.batch()
        batch.set(ref, data)
        data["name"] = "Grace"

        await batch.commit()

        assert (await ref.get()).get("name") == "Ada"

    @pytest.mark.asyncio
    async def test_create_existing_fails_atomically(self, store):
        await _seed(store, "users", {"ada": {"name": "Ada"}})
        batch = store.batch()
        batch.set(store.document("users/grace"), {"name": "Grace"})
        batch.create(store.document("users/ada"), {"name": "Ada again"})

        with pytest.raises(DocumentStoreError) as exc_info:
            await batch.commit()

        assert exc_info.value.code == ALREADY_EXISTS
        assert not (await store.document("users/grace").get()).exists
        assert (await store.document("users/ada").get()).get("name") == "Ada"

    @pytest.mark.asyncio
    async def test_update_merges_dotted_fields(self, store):
        await _seed(store, "users", {"ada": {"name": "Ada", "address": {"city": "London", "zip": "N1"}}})
        batch = store.batch()
        batch.update(store.document("users/ada"), {"address.city": "Paris", "age": 36})

        await batch.commit()

        snapshot = await store.document("users/ada").get()
        assert snapshot.to_dict() == {"name": "Ada", "address": {"city": "Paris", "zip": "N1"}, "age": 36}
        assert snapshot.update_time > snapshot.create_time

    @pytest.mark.asyncio
    async def test_update_missing_document(self, store):
        batch = store.batch()
        batch.update(store.document("users/nobody"), {"name": "x"})

        with pytest.raises(DocumentStoreError) as exc_info:
            await batch.commit()

        assert exc_info.value.code == NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_missing_document_is_allowed(self, store):
        batch = store.batch()
        batch.delete(store.document("users/nobody"))

        await batch.commit()

        assert store.commit_log == [1]

    @pytest.mark.asyncio
    async def test_delete_with_exists_precondition(self, store):
        batch = store.batch()
        batch.delete(store.document("users/nobody"), Precondition(exists=True))

        with pytest.raises(DocumentStoreError) as exc_info:
            await batch.commit()

        assert exc_info.value.code == NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_with_stale_last_update_time(self, store):
        await _seed(store, "users", {"ada": {"name": "Ada"}})
        stale = datetime(2000, 1, 1, tzinfo=timezone.utc)
        batch = store.batch()
        batch.update(store.document("users/ada"), {"name": "x"}, Precondition(last_update_time=stale))

        with pytest.raises(DocumentStoreError) as exc_info:
            await batch.commit()

        assert exc_info.value.code == FAILED_PRECONDITION

    @pytest.mark.asyncio
    async def test_update_with_current_last_update_time(self, store):
        await _seed(store, "users", {"ada": {"name": "Ada"}})
        snapshot = await store.document("users/ada").get()
        batch = store.batch()
        batch.update(
            store.document("users/ada"), {"name": "Lovelace"}, Precondition(last_update_time=snapshot.update_time)
        )

        await batch.commit()

        assert (await store.document("users/ada").get()).get("name") == "Lovelace"

    @pytest.mark.asyncio
    async def test_batch_cannot_be_reused(self, store):
        batch = store.batch()
        batch.set(store.document("users/ada"), {"name": "Ada"})
        await batch.commit()

        with pytest.raises(ValueError):
            batch.set(store.document("users/grace"), {"name": "Grace"})
        with pytest.raises(ValueError):
            await batch.commit()

    @pytest.mark.asyncio
    async def test_too_many_writes_is_not_the_oversize_error(self):
        store = MemoryDocumentStore(max_writes_per_batch=2)
        batch = store.batch()
        for i in range(3):
            batch.set(store.document(f"items/{i}"), {"i": i})

        with pytest.raises(DocumentStoreError) as exc_info:
            await batch.commit()

        assert exc_info.value.code == 3
        assert not store.is_transaction_too_large(exc_info.value)

    @pytest.mark.asyncio
    async def test_byte_ceiling_raises_transaction_too_big(self):
        store = MemoryDocumentStore(max_transaction_bytes=200)
        batch = store.batch()
        batch.set(store.document("items/big"), {"payload": "x" * 500})

        with pytest.raises(DocumentStoreError) as exc_info:
            await batch.commit()

        assert exc_info.value.code == 3
        assert exc_info.value.store_details == TRANSACTION_TOO_BIG_MESSAGE
        assert store.is_transaction_too_large(exc_info.value)
        assert is_transaction_too_large_error(exc_info.value)
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_foreign_reference_rejected(self, store):
        other = MemoryDocumentStore()
        batch = store.batch()
        batch.set(other.document("users/ada"), {"name": "Ada"})

        with pytest.raises(DocumentStoreError):
            await batch.commit()


class TestMemoryQuery:
    """Test collection queries."""

    @pytest.mark.asyncio
    async def test_collection_lists_direct_children_in_id_order(self, store):
        await _seed(store, "users", {"b": {"n": 2}, "a": {"n": 1}})
        await _seed(store, "users/a/posts", {"p1": {"n": 3}})

        snapshots = await store.collection("users").get()

        assert [s.id for s in snapshots] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_limit(self, store):
        await _seed(store, "items", {f"{i:03d}": {"i": i} for i in range(10)})

        snapshots = await store.collection("items").limit(3).get()

        assert [s.get("i") for s in snapshots] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_where_and_order_by(self, store):
        await _seed(
            store,
            "items",
            {
                "a": {"status": "open", "rank": 3},
                "b": {"status": "closed", "rank": 1},
                "c": {"status": "open", "rank": 2},
            },
        )

        query = store.collection("items").where("status", "==", "open").order_by("rank", "DESCENDING")
        snapshots = await query.get()

        assert [s.id for s in snapshots] == ["a", "c"]

    @pytest.mark.asyncio
    async def test_order_by_mixed_types(self, store):
        await _seed(
            store,
            "items",
            {
                "map": {"v": {"a": 1}},
                "text": {"v": "b"},
                "number": {"v": 2.5},
                "null": {"v": None},
                "array": {"v": [1, "x"]},
                "flag": {"v": True},
                "int": {"v": 1},
                "missing": {"other": 1},
            },
        )

        snapshots = await store.collection("items").order_by("v").get()

        assert [s.id for s in snapshots] == ["null", "flag", "int", "number", "text", "array", "map"]

    @pytest.mark.asyncio
    async def test_queries_are_immutable(self, store):
        await _seed(store, "items", {"a": {"x": 1}, "b": {"x": 2}})
        collection = store.collection("items")
        collection.where("x", "==", 1)
        collection.limit(1)

        assert len(await collection.get()) == 2

    @pytest.mark.asyncio
    async def test_query_reflects_later_writes(self, store):
        await _seed(store, "items", {"a": {"x": 1}})
        query = store.collection("items").limit(5)

        await _seed(store, "items", {"b": {"x": 2}})

        assert len(await query.get()) == 2

    @pytest.mark.asyncio
    async def test_add_generates_id(self, store):
        ref = await store.collection("items").add({"x": 1})

        assert ref.parent.path == "items"
        assert len(ref.id) == 20
        assert (await ref.get()).to_dict() == {"x": 1}

    def test_unsupported_operator(self, store):
        with pytest.raises(ValueError):
            store.collection("items").where("x", "~", 1)

    def test_negative_limit(self, store):
        with pytest.raises(ValueError):
            store.collection("items").limit(-1)

    def test_backend_type(self, store):
        assert store.backend_type == "memory"
