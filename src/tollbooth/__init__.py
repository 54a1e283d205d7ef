from .adapters import AiohttpTransport, HttpxTransport, RequestsTransport, Transport
from .admission import AdmissionController
from .config import ApiConfiguration
from .debounce import DebounceGate
from .dispatcher import Dispatcher
from .env import load_environments_from_env, load_limits_from_env
from .errors import (
    ConfigurationError,
    RequestTimeoutError,
    TollboothError,
    TooManyRequestsError,
    TransientTransportError,
)
from .network import has_internet
from .policies import (
    BackoffPolicy,
    ExponentialBackoffPolicy,
    XorBackoffPolicy,
    coerce_backoff,
)
from .retry import decide_retry, is_retryable, should_retry
from .service import ApiService
from .state import EndpointPolicy
from .store import EndpointPolicyStore
from .types import Limits, Response, RetryDecision

__all__ = [
    "Limits",
    "Response",
    "RetryDecision",
    "EndpointPolicy",
    "EndpointPolicyStore",
    "AdmissionController",
    "DebounceGate",
    "BackoffPolicy",
    "XorBackoffPolicy",
    "ExponentialBackoffPolicy",
    "coerce_backoff",
    "decide_retry",
    "is_retryable",
    "should_retry",
    "Dispatcher",
    "ApiConfiguration",
    "ApiService",
    "Transport",
    "HttpxTransport",
    "AiohttpTransport",
    "RequestsTransport",
    "TollboothError",
    "ConfigurationError",
    "TooManyRequestsError",
    "RequestTimeoutError",
    "TransientTransportError",
    "has_internet",
    "load_environments_from_env",
    "load_limits_from_env",
]
