from dataclasses import dataclass, field
from typing import Union

# Sentinel for "no request has ever been started"
NEVER = float("-inf")


@dataclass
class EndpointPolicy:
    # None -> fall back to the store-wide default ceiling
    max_concurrent: Union[int, None] = None
    min_interval_ms: int = 0
    last_request_time: float = NEVER
    active_count: int = 0  # only the admit/release path touches this
    headers: dict[str, str] = field(default_factory=dict)

    def next_start_at(self) -> float:
        if self.min_interval_ms <= 0 or self.last_request_time == NEVER:
            return NEVER
        return self.last_request_time + self.min_interval_ms / 1000.0
