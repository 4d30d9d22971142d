"""Unit tests for state locking and versioned state cells."""

import asyncio

import pytest

from snipe_bot.core.state_lock import StateLock, VersionedState


class TestStateLock:
    """Tests for StateLock class."""

    @pytest.mark.asyncio
    async def test_lock_context_manager(self):
        lock = StateLock("test_lock")

        async with lock.locked():
            assert lock.is_locked()

        assert not lock.is_locked()

    @pytest.mark.asyncio
    async def test_concurrent_access_blocked(self):
        """Holders run one after another, never interleaved."""
        lock = StateLock("test_lock")
        results = []

        async def worker(worker_id, delay):
            async with lock.locked():
                results.append(f"start_{worker_id}")
                await asyncio.sleep(delay)
                results.append(f"end_{worker_id}")

        await asyncio.gather(worker(1, 0.05), worker(2, 0.05))

        assert results in [
            ["start_1", "end_1", "start_2", "end_2"],
            ["start_2", "end_2", "start_1", "end_1"],
        ]


class TestVersionedState:
    """Tests for VersionedState read-modify-write protocol."""

    @pytest.mark.asyncio
    async def test_update_replaces_value(self):
        cell = VersionedState("map", {"a": 1})

        result = await cell.update(lambda d: {**d, "b": 2})

        assert result == {"a": 1, "b": 2}
        assert cell.read() == {"a": 1, "b": 2}

    def test_readers_get_copies(self):
        cell = VersionedState("map", {"a": [1, 2]})

        copy = cell.read()
        copy["a"].append(3)

        assert cell.read() == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_failed_update_changes_nothing(self):
        cell = VersionedState("map", {"a": 1})

        def explode(value):
            value["a"] = 99
            raise ValueError("rejected")

        with pytest.raises(ValueError):
            await cell.update(explode)

        assert cell.read() == {"a": 1}

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self):
        cell = VersionedState("counter", {"n": 0})

        async def bump():
            await cell.update(lambda d: {"n": d["n"] + 1})

        await asyncio.gather(*(bump() for _ in range(50)))

        assert cell.read() == {"n": 50}
