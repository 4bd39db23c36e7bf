import pytest
from pathlib import Path
from upmix.domain.errors import Busy
from upmix.domain.events import JobStatusChanged, QueueUpdated
from upmix.domain.models import FileStatus, ResourceToken
from upmix.pipeline.job_queue import JobQueue
from upmix.pipeline.status import StatusReporter


def token(name, bookmark="b"):
    return ResourceToken(original_path=Path("/music") / name, bookmark=bookmark)


@pytest.fixture
def status(event_bus):
    return StatusReporter(event_bus)


@pytest.fixture
def queue(status, event_bus):
    return JobQueue(status, event_bus)


def test_add_appends_pending_jobs_in_order(queue):
    queue.add(token("a.wav"))
    queue.add(token("b.wav"))

    assert [j.name for j in queue.snapshot()] == ["a.wav", "b.wav"]
    assert all(j.status == FileStatus.PENDING for j in queue.snapshot())


def test_add_same_path_twice_is_noop(queue):
    first = queue.add(token("a.wav", "one"))
    second = queue.add(token("a.wav", "two"))

    assert first is not None
    assert second is None
    assert len(queue) == 1


def test_add_publishes_queue_updated(queue, event_bus):
    updates = []
    event_bus.subscribe(QueueUpdated, updates.append)

    queue.add(token("a.wav"))
    queue.add(token("a.wav"))

    assert len(updates) == 1
    assert [j.name for j in updates[0].files] == ["a.wav"]


def test_clear_empties_queue_and_resets_status(queue, status):
    queue.add(token("a.wav"))
    status.report_error("old")

    queue.clear()

    assert len(queue) == 0
    assert status.error_message is None
    assert status.status == "Ready"


def test_clear_while_running_raises_busy(queue, status):
    queue.add(token("a.wav"))
    status.begin_run()

    with pytest.raises(Busy):
        queue.clear()

    assert len(queue) == 1


def test_add_while_running_raises_busy(queue, status):
    status.begin_run()
    with pytest.raises(Busy):
        queue.add(token("a.wav"))


def test_set_status_updates_job_and_message(queue, status, event_bus):
    changes = []
    event_bus.subscribe(JobStatusChanged, changes.append)
    queue.add(token("a.wav"))

    queue.set_status(0, FileStatus.PROCESSING, message="Upmixing a.wav...")

    assert queue[0].status == FileStatus.PROCESSING
    assert status.status == "Upmixing a.wav..."
    assert changes[0].index == 0
    assert changes[0].job.status == FileStatus.PROCESSING


def test_set_status_records_error_and_output(queue):
    queue.add(token("a.wav"))
    queue.set_status(0, FileStatus.FAILED, error_message="bad input")
    assert queue[0].error_message == "bad input"

    queue.set_status(0, FileStatus.UPMIXED, output_path=Path("/out/a_5.1.flac"))
    assert queue[0].output_path == Path("/out/a_5.1.flac")


def test_set_status_out_of_range_is_noop(queue, status):
    queue.add(token("a.wav"))

    queue.set_status(5, FileStatus.FAILED, message="ignored")
    queue.set_status(-1, FileStatus.FAILED)

    assert queue[0].status == FileStatus.PENDING
    assert status.status == "Ready"
