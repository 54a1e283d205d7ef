import inspect
from typing import Callable, Union

# Defaults used when inspect.signature cannot determine argument counts
DEFAULT_BACKOFF_ARGC = 1  # delay_fn(attempt)

# Backoff callables receive the error at 2+ args
BACKOFF_WITH_ERROR_ARGC = 2


def _count_positional_args(fn, default: int) -> int:
    """Return count of positional params for fn; fall back to default on failure."""
    try:
        sig = inspect.signature(fn)
        return len(
            [
                p
                for p in sig.parameters.values()
                if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
            ]
        )
    except (TypeError, ValueError):
        return default


class BackoffPolicy:
    """Delay (seconds) to wait after failed attempt number ``attempt`` (1-based).

    The default reproduces the historical ``base * (attempt XOR 2)`` schedule:
    3s, 0s, 1s, 6s, 7s, ... for attempts 1, 2, 3, 4, 5. The sequence is not monotonic;
    ExponentialBackoffPolicy is available for callers who want a growing delay.
    """

    def __init__(self, base: float = 1.0):
        self.base = base

    def delay(self, attempt: int, error: Union[BaseException, None] = None) -> float:
        return self.base * (attempt ^ 2)


class XorBackoffPolicy(BackoffPolicy):
    pass


class ExponentialBackoffPolicy(BackoffPolicy):
    def __init__(self, base: float = 0.5, growth: float = 2.0, cap: float = 30.0):
        super().__init__(base)
        self.growth = growth
        self.cap = cap

    def delay(self, attempt: int, error: Union[BaseException, None] = None) -> float:
        return min(self.cap, self.base * (self.growth ** max(0, attempt - 1)))


class FunctionalBackoffPolicy(BackoffPolicy):
    """Wrap a user-supplied delay function.

    Accepted function signatures:
        - delay_fn(attempt) -> float
        - delay_fn(attempt, error) -> float
    """

    def __init__(self, delay_fn: Callable):
        super().__init__()
        self.delay_fn = delay_fn

    def delay(self, attempt, error=None):
        argc = _count_positional_args(self.delay_fn, DEFAULT_BACKOFF_ARGC)
        if argc >= BACKOFF_WITH_ERROR_ARGC:
            value = self.delay_fn(attempt, error)
        else:
            value = self.delay_fn(attempt)
        value = float(value)
        if value < 0:
            raise ValueError("Custom delay function returned a negative delay")
        return value


def coerce_backoff(policy: Union[object, None]) -> BackoffPolicy:
    """Turn None | str | BackoffPolicy | callable into a BackoffPolicy.

    Accepted inputs:
      - None           -> XorBackoffPolicy
      - "xor"          -> XorBackoffPolicy
      - "exponential"  -> ExponentialBackoffPolicy
      - BackoffPolicy instance (returned as-is)
      - callable: delay_fn(attempt[, error]); wrapped into FunctionalBackoffPolicy
    """
    if policy is None:
        return XorBackoffPolicy()
    if isinstance(policy, BackoffPolicy):
        return policy
    if isinstance(policy, str):
        name = policy.lower()
        if name == "xor":
            return XorBackoffPolicy()
        if name == "exponential":
            return ExponentialBackoffPolicy()
        raise ValueError(
            "Unknown backoff string. Use 'xor' or 'exponential', or pass a callable/BackoffPolicy."
        )
    if callable(policy):
        return FunctionalBackoffPolicy(policy)
    raise TypeError("backoff must be None, 'xor'|'exponential', BackoffPolicy, or a callable")
