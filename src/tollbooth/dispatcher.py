import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Hashable
from enum import Enum
from typing import Callable, TypeVar, Union

from ._utils import is_timeout_exception
from .admission import AdmissionController
from .debounce import DebounceGate
from .errors import RequestTimeoutError, TooManyRequestsError, TransientTransportError
from .policies import BackoffPolicy, coerce_backoff
from .retry import decide_retry
from .store import EndpointPolicyStore
from .types import Limits, Response

T = TypeVar("T")

# Seconds between repeated "delaying" notices for one endpoint
DELAY_NOTICE_INTERVAL = 5.0


def _label(endpoint: Hashable) -> str:
    return endpoint.name if isinstance(endpoint, Enum) else str(endpoint)


class Dispatcher:
    """Admission + debounce + retry around one logical endpoint call.

    Per attempt: check admission, then claim a slot once both ceilings have room and the
    endpoint's debounce interval has elapsed (sleeping out the remainder and checking
    again), await the operation, release the slot, then return, stop, or back off.
    """

    def __init__(
        self,
        store: EndpointPolicyStore,
        limits: Union[Limits, Callable[[], Limits], None] = None,
        backoff: Union[BackoffPolicy, str, Callable, None] = None,
        sleep: Union[Callable[[float], Awaitable[None]], None] = None,
        log_level: Union[int, None] = None,
    ):
        """Initialize a Dispatcher.

        Args:
            store (EndpointPolicyStore): shared per-endpoint state
            limits (Limits | Callable[[], Limits] | None): global limits, or a callable
                returning the current ones (so a configuration can swap them later)
            backoff (BackoffPolicy | str | Callable | None): see coerce_backoff
            sleep (Callable | None): coroutine function used for every wait
            log_level (int | None): level for the "tollbooth" logger
        """
        self.store = store
        self._limits = limits if limits is not None else Limits()
        self.debounce = DebounceGate(store)
        self.admission = AdmissionController(
            store, lambda: self.limits.max_concurrent_requests, self.debounce
        )
        self.backoff = coerce_backoff(backoff)
        self._sleep = sleep or asyncio.sleep
        self._logger = logging.getLogger("tollbooth")
        # Throttle delay logs per-endpoint
        self._delay_notice: dict[Hashable, float] = {}
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    @property
    def limits(self) -> Limits:
        lim = self._limits
        return lim() if callable(lim) else lim

    # ---------- public API ----------

    async def execute(
        self,
        endpoint: Hashable,
        operation: Callable[[], Awaitable[T]],
        timeout: Union[float, None] = None,
    ) -> T:
        """Run ``operation`` under the endpoint's limits, retrying transient failures.

        ``timeout`` is an optional per-attempt deadline in seconds.

        Raises:
            TooManyRequestsError: admission refused (not retried)
            RequestTimeoutError: the attempt timed out (not retried)
            Exception: the last error once attempts are exhausted, or any non-retryable
                error straight away
        """
        max_attempts = self.limits.max_attempts
        name = _label(endpoint)
        attempt = 0
        while attempt < max_attempts:
            attempt += 1
            self._logger.debug(
                f"requesting endpoint={name} attempt={attempt}/{max_attempts} "
                f"active={self.store.active_count(endpoint)}"
            )
            await self._acquire(endpoint)
            started = time.monotonic()
            try:
                result = await self._invoke(operation, timeout)
            except Exception as e:
                error = e
            else:
                self._logger.debug(
                    f"request complete endpoint={name} attempts={attempt} "
                    f"took={time.monotonic() - started:.3f}s"
                )
                return result
            finally:
                self.admission.release(endpoint)

            elapsed = time.monotonic() - started
            if is_timeout_exception(error):
                self._logger.warning(
                    f"request timed out endpoint={name} attempt={attempt} after {elapsed:.3f}s"
                )
                if isinstance(error, RequestTimeoutError):
                    raise error
                raise RequestTimeoutError(
                    f"request to endpoint={name} timed out", endpoint=endpoint
                ) from error

            decision = decide_retry(error, attempt, max_attempts, self.backoff)
            if not decision.retry:
                self._logger.error(
                    f"request failed endpoint={name} attempt={attempt}/{max_attempts} "
                    f"elapsed={elapsed:.3f}s: {error}"
                )
                raise error
            self._logger.warning(
                f"request error endpoint={name} attempt={attempt}/{max_attempts} "
                f"elapsed={elapsed:.3f}s: {error}; retrying in {decision.delay:.1f}s"
            )
            await self._sleep(decision.delay)
        raise RuntimeError("tollbooth: no attempts were made")

    async def try_execute(
        self,
        endpoint: Hashable,
        operation: Callable[[], Awaitable[Response[T]]],
        timeout: Union[float, None] = None,
    ) -> Response[T]:
        """Like execute, but admission refusals, timeouts and exhausted transport
        errors come back as an envelope with ``error`` set instead of being raised."""
        try:
            return await self.execute(endpoint, operation, timeout)
        except (TooManyRequestsError, RequestTimeoutError, TransientTransportError) as e:
            return Response(success=False, message=str(e), error=e)

    # ---------- internals ----------

    def _refuse(self, endpoint: Hashable):
        name = _label(endpoint)
        self._logger.info(
            f"admission refused endpoint={name} "
            f"active={self.store.active_count(endpoint)} total={self.store.total_active()}"
        )
        raise TooManyRequestsError(endpoint)

    async def _acquire(self, endpoint: Hashable) -> None:
        if not self.admission.can_admit(endpoint):
            self._refuse(endpoint)
        while True:
            # ceilings and interval are checked and claimed atomically
            admitted, delay = self.admission.try_admit(endpoint)
            if admitted:
                return
            if delay <= 0:
                self._refuse(endpoint)
            now = time.monotonic()
            if self._delay_notice.get(endpoint, 0.0) <= now:
                self._logger.info(f"endpoint={_label(endpoint)} debouncing; delaying ~{delay:.2f}s")
                self._delay_notice[endpoint] = now + DELAY_NOTICE_INTERVAL
            await self._sleep(delay)

    async def _invoke(self, operation: Callable[[], Awaitable[T]], timeout: Union[float, None]):
        if timeout is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout)
