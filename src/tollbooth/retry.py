from typing import Union

from ._utils import is_timeout_exception
from .errors import ConfigurationError, TooManyRequestsError
from .policies import BackoffPolicy, XorBackoffPolicy
from .types import RetryDecision

# Failures that end the attempt loop at once
HARD_STOP = (ConfigurationError, TooManyRequestsError)


def is_retryable(error: BaseException) -> bool:
    """Unclassified errors (bad JSON, a failing model callable) count as transient."""
    if not isinstance(error, Exception):
        return False
    if isinstance(error, HARD_STOP):
        return False
    return not is_timeout_exception(error)


def should_retry(error: BaseException, attempt: int, max_attempts: int) -> bool:
    """``attempt`` is the 1-based number of the attempt that just failed."""
    return attempt < max_attempts and is_retryable(error)


def decide_retry(
    error: BaseException,
    attempt: int,
    max_attempts: int,
    backoff: Union[BackoffPolicy, None] = None,
) -> RetryDecision:
    if not should_retry(error, attempt, max_attempts):
        return RetryDecision(retry=False)
    policy = backoff or XorBackoffPolicy()
    return RetryDecision(retry=True, delay=max(0.0, policy.delay(attempt, error)))
