"""Tests for the action batcher."""

import pytest

from conftest import NOW, RecordingSink
from hubspot_sync.core.exceptions import SinkError
from hubspot_sync.schemas.action import Action
from hubspot_sync.services.batcher import ActionBatcher


def _action(i: int) -> Action:
    return Action(action_name="Contact Updated", action_date=NOW, identity=f"user{i}@example.com")


async def test_flushes_snapshot_when_threshold_exceeded(sink):
    batcher = ActionBatcher(sink, threshold=2000)

    for i in range(2001):
        batcher.push(_action(i))

    # the working list is cleared synchronously, before the flush task runs
    assert len(batcher) == 0

    await batcher.drain()

    assert len(sink.batches) == 1
    assert len(sink.batches[0]) == 2001
    assert sink.batches[0][-1].identity == "user2000@example.com"


async def test_no_flush_at_threshold(sink):
    batcher = ActionBatcher(sink, threshold=2000)

    for i in range(2000):
        batcher.push(_action(i))

    assert len(batcher) == 2000
    assert sink.batches == []


async def test_drain_flushes_residue_after_pending(sink):
    batcher = ActionBatcher(sink, threshold=3)

    for i in range(6):
        batcher.push(_action(i))

    accepted = await batcher.drain()

    assert [len(b) for b in sink.batches] == [4, 2]
    assert accepted == 6
    assert [a.identity for a in sink.actions] == [f"user{i}@example.com" for i in range(6)]


async def test_drain_with_nothing_buffered(sink):
    batcher = ActionBatcher(sink, threshold=3)
    assert await batcher.drain() == 0
    assert sink.batches == []


async def test_flushed_batch_is_independent_copy(sink):
    batcher = ActionBatcher(sink, threshold=1)
    first, second = _action(1), _action(2)

    batcher.push(first)
    batcher.push(second)
    first.identity = "changed@example.com"
    await batcher.drain()

    assert sink.batches[0][0].identity == "user1@example.com"
    assert sink.batches[0][0] is not first


async def test_failed_flush_surfaces_on_drain():
    batcher = ActionBatcher(RecordingSink(fail=True), threshold=2)

    for i in range(4):
        batcher.push(_action(i))

    with pytest.raises(SinkError) as exc_info:
        await batcher.drain()

    assert exc_info.value.count == 4
