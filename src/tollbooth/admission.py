from collections.abc import Hashable
from typing import Callable, Union

from .debounce import DebounceGate
from .state import EndpointPolicy
from .store import EndpointPolicyStore


class AdmissionController:
    """Per-endpoint and global concurrency ceilings over an EndpointPolicyStore.

    ``max_concurrent_requests`` may be an int or a zero-argument callable, so a
    configuration object can change the global ceiling after construction.
    """

    def __init__(
        self,
        store: EndpointPolicyStore,
        max_concurrent_requests: Union[int, Callable[[], int]],
        debounce: Union[DebounceGate, None] = None,
    ):
        self.store = store
        self._ceiling = max_concurrent_requests
        self.debounce = debounce or DebounceGate(store)

    @property
    def max_concurrent_requests(self) -> int:
        c = self._ceiling
        return c() if callable(c) else c

    def _allowed(self, policy: EndpointPolicy) -> bool:
        return (
            policy.active_count < self.store._max_for(policy)
            and self.store._total_active() < self.max_concurrent_requests
        )

    def _claim(self, policy: EndpointPolicy) -> None:
        policy.active_count += 1
        policy.last_request_time = self.store._now()

    def can_admit(self, endpoint: Hashable) -> bool:
        with self.store.lock:
            return self._allowed(self.store._policy(endpoint))

    def admit(self, endpoint: Hashable) -> bool:
        """Check and claim a slot in one step.

        On success the endpoint's in-flight count is incremented and its last request
        time moves to now. Pair every True with exactly one ``release``.
        """
        with self.store.lock:
            policy = self.store._policy(endpoint)
            if not self._allowed(policy):
                return False
            self._claim(policy)
            return True

    def try_admit(self, endpoint: Hashable) -> tuple[bool, float]:
        """Like admit, but also honour the endpoint's minimum interval.

        Returns ``(True, 0.0)`` when a slot was claimed, ``(False, 0.0)`` when a ceiling
        is full and ``(False, wait)`` when the ceilings allow it but the interval since
        the last start has ``wait`` seconds left. Nothing is claimed unless admitted.
        """
        with self.store.lock:
            policy = self.store._policy(endpoint)
            if not self._allowed(policy):
                return False, 0.0
            wait = self.debounce._remaining(policy)
            if wait > 0:
                return False, wait
            self._claim(policy)
            return True, 0.0

    def release(self, endpoint: Hashable) -> None:
        with self.store.lock:
            policy = self.store._policy(endpoint)
            if policy.active_count > 0:
                policy.active_count -= 1
