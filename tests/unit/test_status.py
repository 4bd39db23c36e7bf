from pathlib import Path
from upmix.domain.events import ErrorReported, ProgressUpdated, StatusMessageChanged
from upmix.domain.errors import ProcessFailed
from upmix.domain.models import ResourceToken
from upmix.pipeline.status import StatusReporter


def collect(bus, event_type):
    received = []
    bus.subscribe(event_type, received.append)
    return received


def test_status_initial_state(event_bus):
    status = StatusReporter(event_bus)
    assert status.is_running is False
    assert status.progress == 0.0
    assert status.status == "Ready"
    assert status.error_message is None
    assert status.output_directory is None


def test_progress_is_monotonic_and_clamped(event_bus):
    status = StatusReporter(event_bus)
    events = collect(event_bus, ProgressUpdated)

    status.set_progress(0.5)
    status.set_progress(0.25)
    status.set_progress(0.5)
    status.set_progress(7.0)

    assert status.progress == 1.0
    assert [e.progress for e in events] == [0.5, 1.0]


def test_report_error_sets_message_and_status(event_bus):
    status = StatusReporter(event_bus)
    errors = collect(event_bus, ErrorReported)

    status.report_error(ProcessFailed("boom"))

    assert status.error_message == "The upmix operation failed: boom"
    assert status.status == "An error occurred."
    assert [e.message for e in errors] == ["The upmix operation failed: boom"]


def test_begin_run_resets_state(event_bus):
    status = StatusReporter(event_bus)
    status.set_progress(1.0)
    status.report_error("old error")

    status.begin_run()

    assert status.is_running is True
    assert status.progress == 0.0
    assert status.error_message is None
    assert status.status == "Ready"

    status.end_run()
    assert status.is_running is False


def test_status_messages_published(event_bus):
    status = StatusReporter(event_bus)
    messages = collect(event_bus, StatusMessageChanged)

    status.set_status("Upmixing a.wav...")
    status.set_status("Upmixing complete.")

    assert [e.message for e in messages] == ["Upmixing a.wav...", "Upmixing complete."]


def test_snapshot(event_bus):
    status = StatusReporter(event_bus)
    status.set_output_directory(ResourceToken(original_path=Path("/out"), bookmark="x", writable=True))

    snap = status.snapshot()

    assert snap == {
        "is_running": False,
        "progress": 0.0,
        "status": "Ready",
        "error_message": None,
        "output_directory": Path("/out"),
    }
