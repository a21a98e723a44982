"""Tests for the debounced auto-saver."""

import asyncio

import pytest

from workflow_backend.autosave import DebouncedSaver
from workflow_core.models import Workflow

DELAY = 0.1


def snapshot(name: str) -> Workflow:
    return Workflow.create_default(name)


class Recorder:
    def __init__(self, fail: bool = False):
        self.saved: list[str] = []
        self.fail = fail

    def __call__(self, workflow: Workflow):
        if self.fail:
            raise OSError("disk full")
        self.saved.append(workflow.name)


def test_delay_must_be_positive():
    with pytest.raises(ValueError):
        DebouncedSaver(Recorder(), delay=0)


def test_schedule_needs_running_loop():
    saver = DebouncedSaver(Recorder(), delay=DELAY)
    with pytest.raises(RuntimeError):
        saver.schedule(snapshot("a"))


@pytest.mark.asyncio
async def test_burst_collapses_into_one_write_of_latest():
    recorder = Recorder()
    saver = DebouncedSaver(recorder, delay=DELAY)

    for name in ("v1", "v2", "v3"):
        saver.schedule(snapshot(name))
        await asyncio.sleep(DELAY / 10)

    assert recorder.saved == []
    await asyncio.sleep(DELAY * 3)
    await saver.wait_idle()
    assert recorder.saved == ["v3"]
    assert saver.has_pending is False


@pytest.mark.asyncio
async def test_cancel_drops_pending_write():
    recorder = Recorder()
    saver = DebouncedSaver(recorder, delay=DELAY)
    saver.schedule(snapshot("stale"))
    saver.cancel()

    await asyncio.sleep(DELAY * 3)
    assert recorder.saved == []
    assert saver.has_pending is False


@pytest.mark.asyncio
async def test_flush_writes_immediately():
    recorder = Recorder()
    saver = DebouncedSaver(recorder, delay=10)
    saver.schedule(snapshot("now"))

    await saver.flush()
    assert recorder.saved == ["now"]

    await saver.flush()
    assert recorder.saved == ["now"]


@pytest.mark.asyncio
async def test_async_save_callable():
    saved = []

    async def save(workflow):
        await asyncio.sleep(0)
        saved.append(workflow.name)

    saver = DebouncedSaver(save, delay=DELAY)
    saver.schedule(snapshot("async"))
    await asyncio.sleep(DELAY * 3)
    await saver.wait_idle()
    assert saved == ["async"]


@pytest.mark.asyncio
async def test_in_flight_write_survives_cancel():
    started = asyncio.Event()
    release = asyncio.Event()
    saved = []

    async def slow_save(workflow):
        started.set()
        await release.wait()
        saved.append(workflow.name)

    saver = DebouncedSaver(slow_save, delay=DELAY)
    saver.schedule(snapshot("first"))
    await asyncio.wait_for(started.wait(), timeout=1)
    assert saver.is_writing is True

    saver.cancel()
    release.set()
    await saver.wait_idle()
    assert saved == ["first"]


@pytest.mark.asyncio
async def test_failure_reported_not_retried():
    errors = []
    recorder = Recorder(fail=True)
    saver = DebouncedSaver(recorder, delay=DELAY, on_error=errors.append)

    saver.schedule(snapshot("doomed"))
    await asyncio.sleep(DELAY * 3)
    await saver.wait_idle()

    assert len(errors) == 1
    assert isinstance(errors[0], OSError)
    await asyncio.sleep(DELAY * 3)
    assert len(errors) == 1
