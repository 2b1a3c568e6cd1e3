import asyncio
import logging

import anyio
import pytest

from recommender.batch_queue import BatchInsertQueue, QueueState


class RecordingInserter:
    def __init__(self, fail_for=(), failures_before_success=0):
        self.calls = []
        self.inserted = []
        self.fail_for = list(fail_for)
        self.failures_before_success = failures_before_success

    def insert(self, payload):
        self.calls.append(payload)
        if payload in self.fail_for:
            raise RuntimeError(f"insert failed for {payload}")
        if self.failures_before_success:
            self.failures_before_success -= 1
            raise RuntimeError("database unavailable")
        self.inserted.append(payload)


class SlowInserter:
    """Async inserter that tracks how many inserts overlap."""

    def __init__(self, delay=0.01):
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.inserted = []

    async def insert(self, payload):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(self.delay)
        self.active -= 1
        self.inserted.append(payload)


async def _wait_until_idle(queue, timeout=5.0):
    with anyio.fail_after(timeout):
        while queue.processing or len(queue):
            await asyncio.sleep(0.005)


def _queue(inserter, **kwargs):
    kwargs.setdefault("batch_delay", 0)
    return BatchInsertQueue(inserter=inserter, **kwargs)


def test_status_snapshot_of_new_queue():
    queue = _queue(RecordingInserter())

    assert queue.get_status() == {"queue_length": 0, "processing": False, "batch_size": 10}
    assert queue.state is QueueState.IDLE


def test_rejects_zero_batch_size():
    with pytest.raises(ValueError):
        BatchInsertQueue(inserter=RecordingInserter(), batch_size=0)


def test_all_items_processed_and_queue_empties():
    inserter = RecordingInserter()
    queue = _queue(inserter)

    async def main():
        for i in range(25):
            queue.enqueue(i)
        assert queue.processing
        await _wait_until_idle(queue)

    anyio.run(main)

    assert sorted(inserter.inserted) == list(range(25))
    assert queue.processed == 25
    assert queue.get_status() == {"queue_length": 0, "processing": False, "batch_size": 10}


def test_always_failing_item_is_retried_max_retries_then_dropped(caplog):
    inserter = RecordingInserter(fail_for={"bad"})
    queue = _queue(inserter, max_retries=3)

    async def main():
        queue.enqueue("bad")
        await _wait_until_idle(queue)

    with caplog.at_level(logging.WARNING, logger="recommender.batch_queue"):
        anyio.run(main)

    # one first attempt plus three retries
    assert inserter.calls.count("bad") == 4
    assert queue.dropped == 1
    assert len(queue) == 0
    terminal = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(terminal) == 1
    assert "terminal failure" in terminal[0].getMessage()


def test_failure_does_not_affect_batch_siblings():
    inserter = RecordingInserter(fail_for={3})
    queue = _queue(inserter, max_retries=1)

    async def main():
        for i in range(6):
            queue.enqueue(i)
        await _wait_until_idle(queue)

    anyio.run(main)

    assert sorted(inserter.inserted) == [0, 1, 2, 4, 5]
    assert inserter.calls.count(3) == 2
    for i in (0, 1, 2, 4, 5):
        assert inserter.calls.count(i) == 1


def test_transient_failure_recovers_on_retry():
    inserter = RecordingInserter(failures_before_success=2)
    queue = _queue(inserter)

    async def main():
        queue.enqueue({"title": "Heat"})
        await _wait_until_idle(queue)

    anyio.run(main)

    assert inserter.inserted == [{"title": "Heat"}]
    assert queue.dropped == 0


def test_batches_run_concurrently_but_never_exceed_batch_size():
    inserter = SlowInserter()
    queue = _queue(inserter, batch_size=4)

    async def main():
        for i in range(10):
            queue.enqueue(i)
        await _wait_until_idle(queue)

    anyio.run(main)

    assert inserter.max_active == 4
    assert sorted(inserter.inserted) == list(range(10))


def test_enqueue_while_draining_does_not_start_second_drain():
    inserter = SlowInserter()
    queue = _queue(inserter, batch_size=2)

    async def main():
        queue.enqueue(0)
        await asyncio.sleep(0)
        queue.enqueue(1)
        queue.enqueue(2)
        assert len(queue._tasks) == 1
        await _wait_until_idle(queue)

    anyio.run(main)

    assert sorted(inserter.inserted) == [0, 1, 2]


def test_queue_restarts_after_draining():
    inserter = RecordingInserter()
    queue = _queue(inserter)

    async def main():
        queue.enqueue("first")
        await _wait_until_idle(queue)
        assert queue.state is QueueState.IDLE
        queue.enqueue("second")
        await _wait_until_idle(queue)

    anyio.run(main)

    assert inserter.inserted == ["first", "second"]


def test_per_item_inserter_overrides_default():
    default = RecordingInserter()
    other = RecordingInserter()
    queue = _queue(default)

    async def main():
        queue.enqueue("a")
        queue.enqueue("b", inserter=other)
        await _wait_until_idle(queue)

    anyio.run(main)

    assert default.inserted == ["a"]
    assert other.inserted == ["b"]


def test_enqueue_without_inserter_raises():
    with pytest.raises(ValueError):
        BatchInsertQueue().enqueue({"title": "Heat"})


def test_clear_drops_pending_items():
    inserter = SlowInserter(delay=0.05)
    queue = _queue(inserter, batch_size=1)

    async def main():
        for i in range(5):
            queue.enqueue(i)
        await asyncio.sleep(0)
        queue.clear()
        assert queue.get_status()["queue_length"] == 0
        await _wait_until_idle(queue)

    anyio.run(main)

    assert inserter.inserted == [0]


def test_close_cancels_running_drain():
    inserter = SlowInserter(delay=1)
    queue = _queue(inserter, batch_size=1)

    async def main():
        queue.enqueue(0)
        await asyncio.sleep(0)
        await queue.close()

    anyio.run(main)

    assert queue.state is QueueState.IDLE
    assert inserter.inserted == []


def test_drain_error_reschedules_after_retry_interval(monkeypatch, caplog):
    inserter = RecordingInserter()
    queue = _queue(inserter, batch_size=1, retry_interval=0.05)
    failures = []

    async def failing_throttle():
        if not failures:
            failures.append(True)
            raise RuntimeError("throttle broke")

    monkeypatch.setattr(queue, "_throttle", failing_throttle)
    armed_in_state = []

    async def main():
        loop = asyncio.get_running_loop()
        call_later = loop.call_later

        def recording_call_later(delay, callback, *args):
            if callback == queue._start:
                armed_in_state.append((delay, queue.state))
            return call_later(delay, callback, *args)

        monkeypatch.setattr(loop, "call_later", recording_call_later)

        for i in range(3):
            queue.enqueue(i)

        with anyio.fail_after(2):
            while queue._timer is None:
                await asyncio.sleep(0.001)

        # first batch went through, the rest waits for the timer
        assert queue.state is QueueState.IDLE
        assert len(queue) == 2
        assert inserter.inserted == [0]

        await _wait_until_idle(queue)

    with caplog.at_level(logging.ERROR, logger="recommender.batch_queue"):
        anyio.run(main)

    assert armed_in_state[0] == (0.05, QueueState.DRAINING)
    assert inserter.inserted == [0, 1, 2]
    assert any("Error processing insert queue" in r.getMessage() for r in caplog.records)


def test_close_cancels_pending_retry_timer(monkeypatch):
    inserter = RecordingInserter()
    queue = _queue(inserter, batch_size=1, retry_interval=0.05)

    async def failing_throttle():
        raise RuntimeError("throttle broke")

    monkeypatch.setattr(queue, "_throttle", failing_throttle)

    async def main():
        queue.enqueue(0)
        queue.enqueue(1)
        with anyio.fail_after(2):
            while queue._timer is None:
                await asyncio.sleep(0.001)
        await queue.close()
        await asyncio.sleep(0.1)

    anyio.run(main)

    assert inserter.inserted == [0]
    assert len(queue) == 1
    assert queue.state is QueueState.IDLE
