"""
Tests for the thread helpers.
"""

import threading
import time

import pytest

from compliance_guard.utils.concurrency import DeadlineExceeded, SingleFlight, call_with_timeout


class TestCallWithTimeout:
    """Tests for bounded-time calls"""

    def test_returns_result(self):
        """Test a fast call returns its value"""
        assert call_with_timeout(lambda a, b: a + b, 1, 2, 3) == 5

    def test_deadline_exceeded(self):
        """Test a hung call raises DeadlineExceeded"""
        release = threading.Event()
        try:
            with pytest.raises(DeadlineExceeded) as exc_info:
                call_with_timeout(release.wait, 0.1, 5)
        finally:
            release.set()
        assert exc_info.value.timeout == 0.1

    def test_own_timeout_error_propagates(self):
        """Test a TimeoutError raised by the call is not mistaken for the deadline"""
        def fail():
            raise TimeoutError("socket read timed out")

        with pytest.raises(TimeoutError) as exc_info:
            call_with_timeout(fail, 5)

        assert not isinstance(exc_info.value, DeadlineExceeded)
        assert str(exc_info.value) == "socket read timed out"


class TestSingleFlight:
    """Tests for collapsing concurrent calls"""

    def test_concurrent_callers_share_one_call(self):
        """Test callers arriving during a call receive its result"""
        flight = SingleFlight()
        started = threading.Event()
        release = threading.Event()
        calls = []
        results = []

        def work():
            calls.append(1)
            started.set()
            release.wait(5)
            return "done"

        leader = threading.Thread(target=lambda: results.append(flight.do("key", work)))
        leader.start()
        assert started.wait(5)
        follower = threading.Thread(target=lambda: results.append(flight.do("key", work)))
        follower.start()
        time.sleep(0.2)
        release.set()
        leader.join(5)
        follower.join(5)

        assert results == ["done", "done"]
        assert len(calls) == 1

    def test_exception_reaches_caller(self):
        """Test an exception from the call is raised to the caller"""
        def fail():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            SingleFlight().do("key", fail)
