from collections.abc import Hashable

from .state import EndpointPolicy
from .store import EndpointPolicyStore


class DebounceGate:
    """Minimum spacing between request starts on the same endpoint."""

    def __init__(self, store: EndpointPolicyStore):
        self.store = store

    def _remaining(self, policy: EndpointPolicy) -> float:
        # caller holds store.lock
        return max(0.0, policy.next_start_at() - self.store._now())

    def must_wait(self, endpoint: Hashable) -> float:
        """Seconds left before the endpoint may start another request (0.0 if none)."""
        with self.store.lock:
            return self._remaining(self.store._policy(endpoint))
