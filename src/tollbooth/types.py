from dataclasses import dataclass
from typing import Any, Callable, Generic, Mapping, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Limits:
    timeout_seconds: int = 60
    # 1 means no retries at all
    max_attempts: int = 1
    # ceiling summed across every endpoint
    max_concurrent_requests: int = 10
    # per-endpoint ceiling for endpoints never configured explicitly
    default_max_endpoint_requests: int = 2

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be >= 1")
        if self.default_max_endpoint_requests < 0:
            raise ValueError("default_max_endpoint_requests must be >= 0")


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0  # seconds


@dataclass
class Response(Generic[T]):
    """Uniform envelope returned by every call variant."""

    success: bool = False
    message: Union[str, None] = None
    data: Union[T, None] = None
    error: Union[BaseException, None] = None

    @classmethod
    def from_payload(cls, payload: Any, model: Union[Callable[[Any], Any], None] = None):
        """Build an envelope from a decoded JSON body.

        Keys are matched case-insensitively ("success", "Success", ...). A body that is
        not an object is treated as bare data of a successful call.
        """
        if not isinstance(payload, Mapping):
            data = model(payload) if (model is not None and payload is not None) else payload
            return cls(success=True, data=data)
        lowered = {str(k).lower(): v for k, v in payload.items()}
        data = lowered.get("data")
        if model is not None and data is not None:
            data = model(data)
        return cls(
            success=bool(lowered.get("success", False)),
            message=lowered.get("message"),
            data=data,
        )
