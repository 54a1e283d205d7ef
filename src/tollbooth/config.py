import os
from collections.abc import Hashable
from enum import Enum
from pathlib import Path
from typing import Union
from urllib.parse import quote

from .env import DEFAULT_PREFIX, env_map, load_environments_from_env, load_limits_from_env
from .errors import ConfigurationError
from .store import EndpointPolicyStore
from .types import Limits


def _default_download_root() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def endpoint_path(endpoint: Hashable) -> str:
    """Path segment for an endpoint: a string Enum value, else the lowercased name."""
    if isinstance(endpoint, Enum):
        return endpoint.value if isinstance(endpoint.value, str) else endpoint.name.lower()
    return str(endpoint)


def join_url(base: str, *segments: str) -> str:
    url = base.rstrip("/")
    for seg in segments:
        seg = seg.strip("/")
        if seg:
            url = f"{url}/{quote(seg, safe='/:@-._~')}"
    return url


class ApiConfiguration:
    """Process-wide settings shared by reference with the dispatcher.

    Subclass and override ``configure()`` to declare environments, headers and limits;
    it runs at the end of ``__init__``:

        class Config(ApiConfiguration):
            def configure(self):
                self.add_environment(Env.DEV, "https://dev.api.com")
                self.set_current_environment(Env.DEV)
                self.set_max_concurrent_requests(2)
                self.set_max_concurrent_requests(5, Endpoint.UPLOAD)
                self.set_minimum_interval(5000, Endpoint.LOGIN)

    Other keywords for kwargs:
    - clock: zero-arg callable returning seconds (defaults to time.monotonic)
    - download_root: base directory for relative download directories
    """

    def __init__(
        self,
        endpoints: type[Enum],
        limits: Union[Limits, None] = None,
        **kwargs,
    ):
        self.endpoints = endpoints
        self._limits = limits or Limits()
        self.store = EndpointPolicyStore(
            endpoints,
            default_max_concurrent=self._limits.default_max_endpoint_requests,
            clock=kwargs.get("clock"),
        )
        self.environment_urls: dict[Hashable, str] = {}
        self.current_environment: Union[Hashable, None] = None
        root = kwargs.get("download_root")
        self.download_root = Path(root) if root is not None else _default_download_root()
        self.configure()

    def configure(self) -> None:
        """Hook for subclasses; the base configuration declares nothing."""

    # ---------- limits ----------

    @property
    def limits(self) -> Limits:
        return self._limits

    @limits.setter
    def limits(self, value: Limits) -> None:
        self._limits = value
        self.store.set_default_max_concurrent(value.default_max_endpoint_requests)

    # ---------- environments ----------

    def add_environment(self, env: Hashable, base_url: str) -> None:
        if not base_url:
            raise ValueError("base_url must not be empty")
        self.environment_urls[env] = base_url

    def set_current_environment(self, env: Hashable) -> None:
        self.current_environment = env

    def base_url(self) -> str:
        if not self.environment_urls:
            raise ConfigurationError(
                "No environments configured. Did you call add_environment()?"
            )
        if self.current_environment is None:
            raise ConfigurationError(
                "No current environment set. Did you call set_current_environment()?"
            )
        try:
            return self.environment_urls[self.current_environment]
        except KeyError:
            raise ConfigurationError(
                f"Current environment {self.current_environment!r} has no base URL"
            ) from None

    def endpoint_url(self, endpoint: Hashable, *segments: str) -> str:
        return join_url(self.base_url(), endpoint_path(endpoint), *segments)

    # ---------- per-endpoint settings ----------

    def _targets(self, endpoint: Union[Hashable, None]) -> list[Hashable]:
        return list(self.endpoints) if endpoint is None else [endpoint]

    def set_max_concurrent_requests(self, value: int, endpoint: Union[Hashable, None] = None):
        """Per-endpoint ceiling; without ``endpoint`` it applies to every endpoint."""
        for ep in self._targets(endpoint):
            self.store.set_max_concurrent(ep, value)

    def set_minimum_interval(
        self,
        delay_ms: int,
        endpoint: Union[Hashable, None] = None,
        last_request_time: Union[float, None] = None,
    ):
        for ep in self._targets(endpoint):
            self.store.set_min_interval(ep, delay_ms, last_request_time)

    def add_header(self, name: str, value: str, endpoint: Union[Hashable, None] = None):
        for ep in self._targets(endpoint):
            self.store.set_header(ep, name, value)

    def headers_for(self, endpoint: Hashable) -> dict[str, str]:
        return self.store.headers(endpoint)

    # ---------- auth ----------

    @property
    def bearer_token(self) -> Union[str, None]:
        return self.store.auth_token

    def set_bearer_token(self, token: Union[str, None]) -> None:
        """Broadcast ``Authorization: Bearer <token>`` to every endpoint."""
        self.store.set_auth_token(token)

    # ---------- convenience: build from env ----------

    @classmethod
    def from_env(
        cls,
        endpoints: type[Enum],
        environments: Union[type[Enum], None] = None,
        prefix: str = DEFAULT_PREFIX,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Create a configuration from environment variables.

        Reads ``<prefix>ENV_<NAME>`` base URLs, ``<prefix>ENVIRONMENT`` (current
        environment name), ``<prefix>BEARER_TOKEN`` and the limits handled by
        load_limits_from_env. When ``environments`` is an Enum class, names are mapped
        onto its members (case-insensitive); unknown names raise ConfigurationError.
        """
        values = env_map(env_path)
        limits = load_limits_from_env(
            prefix=prefix, env_path=env_path, base=kwargs.pop("limits", None)
        )
        config = cls(endpoints, limits=limits, **kwargs)

        def _resolve(name: str):
            if environments is None:
                return name.lower()
            for member in environments:
                if member.name.lower() == name.lower():
                    return member
            raise ConfigurationError(f"Unknown environment {name!r} for {environments.__name__}")

        for name, url in load_environments_from_env(prefix=prefix, env_path=env_path).items():
            config.add_environment(_resolve(name), url)
        current = values.get(f"{prefix}ENVIRONMENT")
        if current:
            config.set_current_environment(_resolve(current.strip()))
        token = values.get(f"{prefix}BEARER_TOKEN")
        if token:
            config.set_bearer_token(token)
        return config
