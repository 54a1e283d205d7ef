import logging
import os
from collections.abc import Awaitable, Hashable
from pathlib import Path
from typing import Any, Callable, Union

from ._utils import to_fields, to_form_strings, to_valid_file_name
from .adapters import HttpxTransport, Transport
from .config import ApiConfiguration
from .dispatcher import Dispatcher
from .network import DEFAULT_PROBE_URL, has_internet
from .types import Response

Operation = Callable[[], Awaitable[Response]]


class ApiService:
    """Typed GET/POST/upload/download calls against named endpoints.

    Every call resolves its URL and headers per attempt (so a bearer token set between
    retries is picked up) and runs through the shared Dispatcher. Configuration problems
    raise ConfigurationError before any attempt.

    The ``try_`` variants return an envelope with ``error`` set for admission refusals,
    timeouts and exhausted transport errors instead of raising them.

    Other keywords for kwargs:
    - backoff: passed to the Dispatcher built when none is given
    - probe_url: URL used by is_network_available()
    """

    def __init__(
        self,
        configuration: ApiConfiguration,
        transport: Union[Transport, None] = None,
        dispatcher: Union[Dispatcher, None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        self.configuration = configuration
        self._own_transport = transport is None
        self.transport = transport if transport is not None else HttpxTransport()
        self.dispatcher = dispatcher or Dispatcher(
            configuration.store,
            limits=lambda: configuration.limits,
            backoff=kwargs.get("backoff"),
            log_level=log_level,
        )
        self.probe_url = kwargs.get("probe_url", DEFAULT_PROBE_URL)
        self._logger = logging.getLogger("tollbooth")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def aclose(self):
        if self._own_transport:
            await self.transport.aclose()

    @property
    def timeout(self) -> float:
        return float(self.configuration.limits.timeout_seconds)

    async def is_network_available(self) -> bool:
        return await has_internet(self.probe_url)

    def _target(self, endpoint: Hashable, *segments: str) -> tuple[str, dict[str, str]]:
        url = self.configuration.endpoint_url(endpoint, *segments)
        return url, self.configuration.headers_for(endpoint)

    # ---------- operation builders (validate eagerly, run lazily) ----------

    def _get_op(self, endpoint, model) -> Operation:
        self.configuration.base_url()

        async def op():
            url, headers = self._target(endpoint)
            payload = await self.transport.get_json(url, headers, self.timeout)
            return Response.from_payload(payload, model)

        return op

    def _post_op(self, endpoint, data, model, as_json) -> Operation:
        self.configuration.base_url()
        body = to_fields(data) if as_json else to_form_strings(data)

        async def op():
            url, headers = self._target(endpoint)
            payload = await self.transport.post(url, body, headers, self.timeout, as_json)
            if payload is None:
                return Response(success=True)
            return Response.from_payload(payload, model)

        return op

    def _upload_op(self, endpoint, file_path, form_data, file_field) -> Operation:
        self.configuration.base_url()
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"upload source not found: {path}")
        fields = to_form_strings(form_data)

        async def op():
            url, headers = self._target(endpoint)
            status = await self.transport.upload(
                url, path, fields, headers, self.timeout, file_field=file_field
            )
            self._logger.debug(f"uploaded {path.name} status={status}")
            return Response(success=True)

        return op

    def _download_op(self, endpoint, remote_path, directory, check_existing) -> Operation:
        self.configuration.base_url()
        file_name = to_valid_file_name(remote_path.rstrip("/").split("/")[-1])
        if not file_name:
            raise ValueError(f"cannot derive a file name from {remote_path!r}")
        target = self.configuration.download_root / directory / file_name

        async def op():
            if check_existing and target.exists():
                return Response(success=True, data=str(target))
            url, headers = self._target(endpoint)
            written = await self.transport.download(url, target, headers, self.timeout)
            return Response(success=True, data=str(written))

        return op

    # ---------- raising API ----------

    async def get(self, endpoint: Hashable, model: Union[Callable[[Any], Any], None] = None):
        return await self.dispatcher.execute(endpoint, self._get_op(endpoint, model))

    async def post(
        self,
        endpoint: Hashable,
        data: Any,
        model: Union[Callable[[Any], Any], None] = None,
        as_json: bool = False,
    ):
        op = self._post_op(endpoint, data, model, as_json)
        return await self.dispatcher.execute(endpoint, op)

    async def upload(
        self,
        endpoint: Hashable,
        file_path: Union[str, os.PathLike],
        form_data: Any = None,
        file_field: str = "file",
    ):
        op = self._upload_op(endpoint, file_path, form_data, file_field)
        return await self.dispatcher.execute(endpoint, op)

    async def download(
        self,
        endpoint: Hashable,
        remote_path: str,
        directory: Union[str, os.PathLike] = "",
        check_existing: bool = True,
    ):
        op = self._download_op(endpoint, remote_path, directory, check_existing)
        return await self.dispatcher.execute(endpoint, op)

    # ---------- non-raising API ----------

    async def try_get(self, endpoint: Hashable, model=None) -> Response:
        return await self.dispatcher.try_execute(endpoint, self._get_op(endpoint, model))

    async def try_post(self, endpoint: Hashable, data: Any, model=None, as_json=False) -> Response:
        op = self._post_op(endpoint, data, model, as_json)
        return await self.dispatcher.try_execute(endpoint, op)

    async def try_upload(
        self, endpoint: Hashable, file_path, form_data=None, file_field="file"
    ) -> Response:
        op = self._upload_op(endpoint, file_path, form_data, file_field)
        return await self.dispatcher.try_execute(endpoint, op)

    async def try_download(
        self, endpoint: Hashable, remote_path: str, directory="", check_existing=True
    ) -> Response:
        op = self._download_op(endpoint, remote_path, directory, check_existing)
        return await self.dispatcher.try_execute(endpoint, op)
