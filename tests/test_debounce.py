from tollbooth import AdmissionController, DebounceGate, EndpointPolicyStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_no_interval_means_no_wait():
    store = EndpointPolicyStore(clock=FakeClock())
    gate = DebounceGate(store)
    AdmissionController(store, 10).admit("a")
    assert gate.must_wait("a") == 0.0


def test_never_requested_means_no_wait():
    store = EndpointPolicyStore(clock=FakeClock())
    store.set_min_interval("a", 1000)
    assert DebounceGate(store).must_wait("a") == 0.0


def test_wait_is_remaining_interval_since_last_start():
    clock = FakeClock()
    store = EndpointPolicyStore(clock=clock)
    store.set_min_interval("a", 1000)
    gate = DebounceGate(store)
    AdmissionController(store, 10).admit("a")
    clock.now += 0.25
    assert abs(gate.must_wait("a") - 0.75) < 1e-9  # noqa: PLR2004
    clock.now += 1.0
    assert gate.must_wait("a") == 0.0


def test_explicit_last_request_time_is_honoured():
    clock = FakeClock()
    store = EndpointPolicyStore(clock=clock)
    store.set_min_interval("a", 2000, last_request_time=clock.now - 0.5)
    assert abs(DebounceGate(store).must_wait("a") - 1.5) < 1e-9  # noqa: PLR2004


def test_try_admit_reports_interval_without_claiming():
    clock = FakeClock()
    store = EndpointPolicyStore(clock=clock)
    store.set_min_interval("a", 1000)
    ac = AdmissionController(store, 10)
    assert ac.try_admit("a") == (True, 0.0)
    clock.now += 0.4
    admitted, wait = ac.try_admit("a")
    assert not admitted
    assert abs(wait - 0.6) < 1e-9  # noqa: PLR2004
    assert store.active_count("a") == 1
    clock.now += 0.75
    assert ac.try_admit("a") == (True, 0.0)
    assert store.get("a").last_request_time == clock.now


def test_try_admit_full_ceiling_is_not_a_wait():
    store = EndpointPolicyStore(default_max_concurrent=1, clock=FakeClock())
    store.set_min_interval("a", 1000)
    ac = AdmissionController(store, 10)
    assert ac.admit("a")
    assert ac.try_admit("a") == (False, 0.0)
