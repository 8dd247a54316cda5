"""Tests for the in-memory vector store."""

import math
import threading

import numpy as np
import pytest

from conftest import make_chunk
from sift.src.core.errors import DuplicateChunkError, InvalidEmbeddingError, SiftError
from sift.src.database.locks import ReadWriteLock
from sift.src.database.vector_store import InMemoryVectorStore, as_readonly_vector


class TestAsReadonlyVector:

    def test_copies_into_readonly_float_array(self):
        source = [1, 2, 3]
        vector = as_readonly_vector(source)
        assert vector.dtype == np.float64
        assert not vector.flags.writeable
        with pytest.raises(ValueError):
            vector[0] = 9.0

    @pytest.mark.parametrize("embedding", [[], [[1.0, 2.0]], [1.0, math.nan], [math.inf], ["a", "b"]])
    def test_rejects_invalid(self, embedding):
        with pytest.raises(InvalidEmbeddingError):
            as_readonly_vector(embedding)


class TestInMemoryVectorStore:

    def test_add_assigns_sequential_ids(self, store):
        first = store.add(make_chunk(0, 0), [1.0, 0.0])
        second = store.add(make_chunk(0, 1), [0.0, 1.0])

        assert (first.vector_id, second.vector_id) == (0, 1)
        assert len(store) == 2
        assert store.get(1) is second
        assert store.get(5) is None
        assert store.get(-1) is None
        assert "0_chunk_1" in store
        assert first.dimension == 2

    def test_duplicate_chunk_rejected(self, store):
        store.add(make_chunk(0, 0), [1.0])
        with pytest.raises(DuplicateChunkError):
            store.add(make_chunk(0, 0), [2.0])
        assert len(store) == 1

    def test_invalid_embedding_not_inserted(self, store):
        with pytest.raises(SiftError):
            store.add(make_chunk(0, 0), [math.nan])
        assert len(store) == 0
        assert "0_chunk_0" not in store

    def test_snapshot_is_immutable_view(self, store):
        store.add(make_chunk(0, 0), [1.0])
        snapshot = store.snapshot()
        store.add(make_chunk(0, 1), [1.0])

        assert len(snapshot) == 1
        assert len(store.snapshot()) == 2
        assert [r.vector_id for r in store] == [0, 1]

    def test_allocate_document_ids(self, store):
        assert list(store.allocate_document_ids(3)) == [0, 1, 2]
        assert list(store.allocate_document_ids(2)) == [3, 4]
        assert list(store.allocate_document_ids(0)) == []
        with pytest.raises(ValueError):
            store.allocate_document_ids(-1)

    def test_stores_are_isolated(self):
        a, b = InMemoryVectorStore("a"), InMemoryVectorStore("b")
        a.add(make_chunk(0, 0), [1.0])
        assert len(a) == 1
        assert len(b) == 0
        assert "records=1" in repr(a)

    def test_concurrent_threads_get_unique_ids(self):
        store = InMemoryVectorStore()

        def writer(document_id):
            for index in range(50):
                store.add(make_chunk(document_id, index), [float(index), 1.0])

        threads = [threading.Thread(target=writer, args=(d,)) for d in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = [r.vector_id for r in store.snapshot()]
        assert ids == list(range(400))


class TestReadWriteLock:

    def test_readers_share_the_lock(self):
        lock = ReadWriteLock()
        with lock.read_lock():
            with lock.read_lock():
                pass

    def test_writer_waits_for_reader(self):
        lock = ReadWriteLock()
        events = []
        reader_in = threading.Event()
        release_reader = threading.Event()

        def reader():
            with lock.read_lock():
                reader_in.set()
                release_reader.wait(timeout=5)
                events.append("read done")

        def writer():
            with lock.write_lock():
                events.append("write")

        t_reader = threading.Thread(target=reader)
        t_reader.start()
        reader_in.wait(timeout=5)
        t_writer = threading.Thread(target=writer)
        t_writer.start()
        t_writer.join(timeout=0.1)
        assert events == []

        release_reader.set()
        t_reader.join(timeout=5)
        t_writer.join(timeout=5)
        assert events == ["read done", "write"]

    def test_lock_released_after_error(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            with lock.write_lock():
                raise RuntimeError("boom")
        with lock.read_lock():
            pass
