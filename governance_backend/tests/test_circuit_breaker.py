from governance_backend.app.reliability.circuit import CircuitBreaker, CircuitPolicy


class Clock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


def test_opens_after_threshold_and_reports_retry():
    clock = Clock()
    breaker = CircuitBreaker(CircuitPolicy(failure_threshold=2, window_seconds=60, open_seconds=30), clock=clock)
    breaker.record_failure("svc")
    assert breaker.is_open("svc") == (False, None)
    breaker.record_failure("svc")
    assert breaker.is_open("svc") == (True, 30)

    clock.now += 31
    assert breaker.is_open("svc") == (False, None)


def test_failures_outside_window_do_not_count():
    clock = Clock()
    breaker = CircuitBreaker(CircuitPolicy(failure_threshold=2, window_seconds=10, open_seconds=30), clock=clock)
    breaker.record_failure("svc")
    clock.now += 11
    breaker.record_failure("svc")
    assert breaker.is_open("svc")[0] is False


def test_success_closes_and_forgets():
    clock = Clock()
    breaker = CircuitBreaker(CircuitPolicy(failure_threshold=1, window_seconds=60, open_seconds=30), clock=clock)
    breaker.record_failure("svc")
    assert breaker.is_open("svc")[0] is True
    assert breaker.is_open("other")[0] is False
    breaker.record_success("svc")
    assert breaker.is_open("svc") == (False, None)


def test_zero_threshold_never_opens():
    breaker = CircuitBreaker(CircuitPolicy(failure_threshold=0), clock=Clock())
    for _ in range(10):
        breaker.record_failure("svc")
    assert breaker.is_open("svc")[0] is False
