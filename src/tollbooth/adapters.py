import asyncio
import contextlib
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Union

from .errors import RequestTimeoutError, TransientTransportError

# Bytes per chunk when streaming downloads to disk
CHUNK_SIZE = 64 * 1024


def _prepare_target(dest: Path) -> Path:
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    return dest


@contextlib.contextmanager
def _staged(dest: Path):
    """Yield a sibling ``.part`` path that replaces ``dest`` only once the body completes.

    On any failure the partial file is removed and ``dest`` is left untouched.
    """
    dest = _prepare_target(dest)
    part = dest.with_name(dest.name + ".part")
    try:
        yield part
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            part.unlink()
        raise
    os.replace(part, dest)


class Transport(ABC):
    """One network attempt per call; no retries, no throttling.

    Implementations raise RequestTimeoutError for timeouts and TransientTransportError
    for every other transport failure, including non-2xx statuses.
    """

    @abstractmethod
    async def get_json(self, url: str, headers: dict[str, str], timeout: float) -> Any:
        """GET ``url`` and return the decoded JSON body."""

    @abstractmethod
    async def post(
        self,
        url: str,
        data: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
        as_json: bool = False,
    ) -> Any:
        """POST ``data`` (url-encoded form, or JSON when ``as_json``); return decoded JSON."""

    @abstractmethod
    async def upload(
        self,
        url: str,
        file_path: Union[str, os.PathLike],
        fields: dict[str, str],
        headers: dict[str, str],
        timeout: float,
        file_field: str = "file",
    ) -> int:
        """Multipart POST of ``fields`` plus one file part; return the status code."""

    @abstractmethod
    async def download(
        self, url: str, dest: Path, headers: dict[str, str], timeout: float
    ) -> Path:
        """Stream the body of a GET to ``dest``; return the written path.

        ``dest`` only ever holds a complete body: a failed transfer leaves it untouched.
        """

    async def aclose(self) -> None:
        return None


# ---------- httpx (async) ----------
class HttpxTransport(Transport):
    def __init__(self, client=None):
        self.client = client
        self._internal_client = None

    def _client(self):
        import httpx  # noqa: PLC0415

        client = self.client or self._internal_client
        if client is None:
            self._internal_client = client = httpx.AsyncClient()
        return client

    @contextlib.asynccontextmanager
    async def _errors(self, url: str):
        import httpx  # noqa: PLC0415

        try:
            yield
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"timeout requesting {url}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransientTransportError(f"HTTP {status} from {url}", status_code=status) from e
        except httpx.HTTPError as e:
            raise TransientTransportError(f"transport error requesting {url}: {e}") from e

    async def get_json(self, url, headers, timeout):
        async with self._errors(url):
            resp = await self._client().get(url, headers=headers, timeout=timeout)
            resp.raise_for_status()
            return resp.json()

    async def post(self, url, data, headers, timeout, as_json=False):
        body = {"json": data} if as_json else {"data": data}
        async with self._errors(url):
            resp = await self._client().post(url, headers=headers, timeout=timeout, **body)
            resp.raise_for_status()
            return resp.json() if resp.content else None

    async def upload(self, url, file_path, fields, headers, timeout, file_field="file"):
        path = Path(file_path)
        async with self._errors(url):
            with path.open("rb") as fh:
                resp = await self._client().post(
                    url,
                    headers=headers,
                    data=fields,
                    files={file_field: (path.name, fh)},
                    timeout=timeout,
                )
            resp.raise_for_status()
            return resp.status_code

    async def download(self, url, dest, headers, timeout):
        dest = Path(dest)
        async with self._errors(url):
            async with self._client().stream("GET", url, headers=headers, timeout=timeout) as resp:
                resp.raise_for_status()
                with _staged(dest) as part, part.open("wb") as fh:
                    async for chunk in resp.aiter_bytes(CHUNK_SIZE):
                        fh.write(chunk)
        return dest

    async def aclose(self):
        if self._internal_client is not None:
            with contextlib.suppress(Exception):
                await self._internal_client.aclose()
            self._internal_client = None


# ---------- aiohttp (async) ----------
class AiohttpTransport(Transport):
    def __init__(self, session=None):
        self.session = session
        self._own_session = False

    def _session(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession()
            self._own_session = True
        return self.session

    @staticmethod
    def _timeout(seconds: float):
        import aiohttp  # noqa: PLC0415

        return aiohttp.ClientTimeout(total=seconds)

    @contextlib.asynccontextmanager
    async def _errors(self, url: str):
        import aiohttp  # noqa: PLC0415

        try:
            yield
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"timeout requesting {url}") from e
        except aiohttp.ClientResponseError as e:
            raise TransientTransportError(
                f"HTTP {e.status} from {url}", status_code=e.status
            ) from e
        except aiohttp.ClientError as e:
            raise TransientTransportError(f"transport error requesting {url}: {e}") from e

    async def get_json(self, url, headers, timeout):
        async with self._errors(url):
            async with self._session().get(
                url, headers=headers, timeout=self._timeout(timeout)
            ) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)

    async def post(self, url, data, headers, timeout, as_json=False):
        body = {"json": data} if as_json else {"data": data}
        async with self._errors(url):
            async with self._session().post(
                url, headers=headers, timeout=self._timeout(timeout), **body
            ) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)

    async def upload(self, url, file_path, fields, headers, timeout, file_field="file"):
        import aiohttp  # noqa: PLC0415

        path = Path(file_path)
        async with self._errors(url):
            with path.open("rb") as fh:
                form = aiohttp.FormData()
                for name, value in fields.items():
                    form.add_field(name, value)
                form.add_field(file_field, fh, filename=path.name)
                async with self._session().post(
                    url, headers=headers, data=form, timeout=self._timeout(timeout)
                ) as resp:
                    resp.raise_for_status()
                    return resp.status

    async def download(self, url, dest, headers, timeout):
        dest = Path(dest)
        async with self._errors(url):
            async with self._session().get(
                url, headers=headers, timeout=self._timeout(timeout)
            ) as resp:
                resp.raise_for_status()
                with _staged(dest) as part, part.open("wb") as fh:
                    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                        fh.write(chunk)
        return dest

    async def aclose(self):
        if self._own_session and self.session is not None:
            await self.session.close()
            self.session = None
            self._own_session = False


# ---------- requests (sync, run in a worker thread) ----------
class RequestsTransport(Transport):
    def __init__(self, session=None):
        self.session = session
        self._own_session = False

    def _session(self):
        if self.session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
            self._own_session = True
        return self.session

    def _call(self, url: str, fn, *args, **kwargs):
        import requests  # noqa: PLC0415

        try:
            return fn(*args, **kwargs)
        except requests.Timeout as e:
            raise RequestTimeoutError(f"timeout requesting {url}") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise TransientTransportError(f"HTTP {status} from {url}", status_code=status) from e
        except requests.RequestException as e:
            raise TransientTransportError(f"transport error requesting {url}: {e}") from e

    async def _run(self, url: str, fn, *args, **kwargs):
        return await asyncio.to_thread(self._call, url, fn, *args, **kwargs)

    def _get_json(self, url, headers, timeout):
        resp = self._session().get(url, headers=headers, timeout=timeout)
        resp.raise_for_status()
        return resp.json()

    def _post(self, url, data, headers, timeout, as_json):
        body = {"json": data} if as_json else {"data": data}
        resp = self._session().post(url, headers=headers, timeout=timeout, **body)
        resp.raise_for_status()
        return resp.json() if resp.content else None

    def _upload(self, url, path: Path, fields, headers, timeout, file_field):
        with path.open("rb") as fh:
            resp = self._session().post(
                url,
                headers=headers,
                data=fields,
                files={file_field: (path.name, fh)},
                timeout=timeout,
            )
        resp.raise_for_status()
        return resp.status_code

    def _download(self, url, dest: Path, headers, timeout):
        with self._session().get(url, headers=headers, timeout=timeout, stream=True) as resp:
            resp.raise_for_status()
            with _staged(dest) as part, part.open("wb") as fh:
                for chunk in resp.iter_content(CHUNK_SIZE):
                    fh.write(chunk)
        return dest

    async def get_json(self, url, headers, timeout):
        return await self._run(url, self._get_json, url, headers, timeout)

    async def post(self, url, data, headers, timeout, as_json=False):
        return await self._run(url, self._post, url, data, headers, timeout, as_json)

    async def upload(self, url, file_path, fields, headers, timeout, file_field="file"):
        return await self._run(
            url, self._upload, url, Path(file_path), fields, headers, timeout, file_field
        )

    async def download(self, url, dest, headers, timeout):
        return await self._run(url, self._download, url, Path(dest), headers, timeout)

    async def aclose(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                self.session.close()
            self.session = None
            self._own_session = False
