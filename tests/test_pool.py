"""Tests for the reusable resource pools."""

import hashlib
import threading

import pytest

from s3_checksum.pool import HashState, ResourcePool, reset_hash_state


class TestResourcePool:
    """Tests for ResourcePool."""

    def test_reuses_released_instance(self):
        pool = ResourcePool(lambda: bytearray(8))

        with pool.acquire() as first:
            pass
        with pool.acquire() as second:
            pass

        assert first is second
        assert pool.created == 1

    def test_allocates_when_empty(self):
        """Nested acquisitions never block; the pool grows instead."""
        pool = ResourcePool(lambda: bytearray(8))

        with pool.acquire() as first, pool.acquire() as second:
            assert first is not second
            assert pool.in_use == 2

        assert pool.in_use == 0
        assert pool.created == 2
        assert pool.peak_in_use == 2

    def test_reset_runs_on_every_acquisition(self):
        calls = []
        pool = ResourcePool(list, reset=lambda item: calls.append(item))

        with pool.acquire():
            pass
        with pool.acquire():
            pass

        assert len(calls) == 2

    def test_released_on_error(self):
        pool = ResourcePool(lambda: bytearray(8))

        with pytest.raises(RuntimeError):
            with pool.acquire():
                raise RuntimeError("boom")

        assert pool.in_use == 0
        with pool.acquire():
            pass
        assert pool.created == 1

    def test_concurrent_acquire_release(self):
        pool = ResourcePool(lambda: bytearray(8))
        barrier = threading.Barrier(4)

        def worker():
            barrier.wait()
            for _ in range(200):
                with pool.acquire() as item:
                    item[0] = 1

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert pool.in_use == 0
        assert 1 <= pool.peak_in_use <= 4
        assert pool.created <= 4


class TestHashState:
    """Tests for HashState's reset-before-reuse contract."""

    def test_digest_matches_hashlib(self):
        state = HashState(hashlib.sha256)
        state.update(b"hello")
        assert state.digest() == hashlib.sha256(b"hello").digest()

    def test_update_after_digest_requires_reset(self):
        state = HashState(hashlib.md5)
        state.update(b"first")
        state.digest()

        with pytest.raises(RuntimeError, match="reset"):
            state.update(b"second")

    def test_reset_discards_previous_data(self):
        pool = ResourcePool(lambda: HashState(hashlib.sha256), reset_hash_state)

        with pool.acquire() as state:
            state.update(b"stale")
            state.digest()
        with pool.acquire() as state:
            state.update(b"fresh")
            digest = state.digest()

        assert digest == hashlib.sha256(b"fresh").digest()

    def test_digest_is_a_copy(self):
        state = HashState(hashlib.sha256)
        state.update(b"data")
        digest = state.digest()
        state.reset()
        state.update(b"other")

        assert digest == hashlib.sha256(b"data").digest()
        assert isinstance(digest, bytes)
