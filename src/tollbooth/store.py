import copy
import logging
import threading
import time
from collections.abc import Hashable, Iterable
from enum import Enum
from typing import Callable, Union

from .state import EndpointPolicy

AUTHORIZATION = "Authorization"


class EndpointPolicyStore:
    """Per-endpoint limits, timestamps, in-flight counters and headers.

    Every read-modify-write happens under one ``threading.Lock``. Critical sections are
    short and never await, so the store is safe to share between coroutines on a loop
    and plain threads doing configuration.

    Methods prefixed with an underscore expect the caller to hold ``lock``.
    """

    def __init__(
        self,
        endpoints: Union[type[Enum], Iterable[Hashable], None] = None,
        default_max_concurrent: int = 2,
        clock: Union[Callable[[], float], None] = None,
    ):
        self._known: list[Hashable] = list(endpoints) if endpoints is not None else []
        self._policies: dict[Hashable, EndpointPolicy] = {}
        self._default_max = default_max_concurrent
        self._token: Union[str, None] = None
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._logger = logging.getLogger("tollbooth")

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def _now(self) -> float:
        return self._clock()

    # ---------- lock-held helpers ----------

    def _policy(self, endpoint: Hashable) -> EndpointPolicy:
        policy = self._policies.get(endpoint)
        if policy is None:
            policy = EndpointPolicy()
            if self._token is not None:
                policy.headers[AUTHORIZATION] = f"Bearer {self._token}"
            self._policies[endpoint] = policy
            if endpoint not in self._known:
                self._known.append(endpoint)
        return policy

    def _max_for(self, policy: EndpointPolicy) -> int:
        return self._default_max if policy.max_concurrent is None else policy.max_concurrent

    def _total_active(self) -> int:
        return sum(p.active_count for p in self._policies.values())

    # ---------- reads ----------

    def get(self, endpoint: Hashable) -> EndpointPolicy:
        """Return a snapshot of the endpoint's policy, creating it with defaults."""
        with self._lock:
            snap = copy.deepcopy(self._policy(endpoint))
            snap.max_concurrent = self._max_for(snap)
            return snap

    def known_endpoints(self) -> list[Hashable]:
        with self._lock:
            return list(self._known)

    def headers(self, endpoint: Hashable) -> dict[str, str]:
        with self._lock:
            return dict(self._policy(endpoint).headers)

    def active_count(self, endpoint: Hashable) -> int:
        with self._lock:
            policy = self._policies.get(endpoint)
            return policy.active_count if policy else 0

    def total_active(self) -> int:
        with self._lock:
            return self._total_active()

    @property
    def auth_token(self) -> Union[str, None]:
        return self._token

    @property
    def default_max_concurrent(self) -> int:
        return self._default_max

    # ---------- mutations ----------

    def set_default_max_concurrent(self, value: int) -> None:
        if value < 0:
            raise ValueError("max concurrent must be >= 0")
        with self._lock:
            self._default_max = value

    def set_max_concurrent(self, endpoint: Hashable, value: int) -> None:
        if value < 0:
            raise ValueError("max concurrent must be >= 0")
        with self._lock:
            self._policy(endpoint).max_concurrent = value

    def set_min_interval(
        self,
        endpoint: Hashable,
        delay_ms: int,
        last_request_time: Union[float, None] = None,
    ) -> None:
        """Set the minimum spacing between request starts.

        ``last_request_time`` is on the store's clock (``time.monotonic`` by default).
        When omitted, the timestamp already recorded for the endpoint is kept.
        """
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        with self._lock:
            policy = self._policy(endpoint)
            policy.min_interval_ms = delay_ms
            if last_request_time is not None:
                policy.last_request_time = last_request_time

    def set_header(self, endpoint: Hashable, name: str, value: str) -> None:
        with self._lock:
            self._policy(endpoint).headers[name] = value

    def set_auth_token(self, token: Union[str, None]) -> None:
        """Upsert ``Authorization: Bearer <token>`` on every known endpoint.

        Endpoints whose policy is created later inherit the header too. ``None`` removes
        the header everywhere. Requests already in flight keep the headers they were
        built with.
        """
        with self._lock:
            self._token = token
            for endpoint in self._known:
                headers = self._policy(endpoint).headers
                if token is None:
                    headers.pop(AUTHORIZATION, None)
                else:
                    headers[AUTHORIZATION] = f"Bearer {token}"
            count = len(self._known)
        action = "cleared" if token is None else "set"
        self._logger.debug(f"auth token {action} on {count} endpoints")
