import threading

from ocean_tracking.models import ErrorKind
from ocean_tracking.store.failure_history import FailureHistory


def test_counts_and_ages(clock):
    h = FailureHistory(clock=clock)
    h.record_failure("maersk", ErrorKind.TIMEOUT)
    clock.advance(30)
    h.record_failure("maersk", ErrorKind.NETWORK_ERROR)
    clock.advance(10)

    snap = h.snapshot()
    assert snap["maersk"].count == 2
    assert snap["maersk"].last_failure_age == 10
    assert "msc" not in snap
    assert h.count("msc") == 0


def test_old_failures_fall_out_of_the_window(clock):
    h = FailureHistory(window_seconds=100, clock=clock)
    h.record_failure("maersk", ErrorKind.TIMEOUT)
    clock.advance(101)
    assert h.count("maersk") == 0
    assert h.snapshot() == {}


def test_success_forgets_one_failure(clock):
    h = FailureHistory(clock=clock)
    for _ in range(3):
        h.record_failure("msc", ErrorKind.TIMEOUT)
    h.record_success("msc")
    assert h.count("msc") == 2
    h.record_success("never-failed")
    assert h.count("never-failed") == 0


def test_bounded_per_provider(clock):
    h = FailureHistory(max_entries=5, clock=clock)
    for _ in range(50):
        h.record_failure("zim", ErrorKind.INVALID_RESPONSE)
    assert h.count("zim") == 5
    h.clear()
    assert h.count("zim") == 0


def test_concurrent_recording_loses_nothing(clock):
    h = FailureHistory(max_entries=1000, clock=clock)

    def worker(provider):
        for _ in range(100):
            h.record_failure(provider, ErrorKind.TIMEOUT)

    threads = [threading.Thread(target=worker, args=(p,)) for p in ("a", "a", "b", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert h.count("a") == 200
    assert h.snapshot()["b"].count == 200
