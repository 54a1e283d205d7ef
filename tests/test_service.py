import dataclasses
import enum
from unittest.mock import AsyncMock, patch

import pytest

from tollbooth import (
    ApiConfiguration,
    ApiService,
    ConfigurationError,
    Limits,
    RequestTimeoutError,
    TooManyRequestsError,
    TransientTransportError,
)


class Endpoint(enum.Enum):
    LOGIN = 1
    FOO_MODEL = 2
    UPLOAD = 3
    DOWNLOAD = 4


class Env(enum.Enum):
    DEV = 1


class Config(ApiConfiguration):
    def configure(self):
        self.add_environment(Env.DEV, "https://dev.api.com")
        self.set_current_environment(Env.DEV)
        self.add_header("Accept", "application/json")


@dataclasses.dataclass
class LoginRequest:
    email: str
    password: str


@dataclasses.dataclass
class FooModel:
    foo: str


class FakeTransport:
    def __init__(self):
        self.calls = []
        self.get_json = AsyncMock(side_effect=self._record("get_json"))
        self.post = AsyncMock(side_effect=self._record("post"))
        self.upload = AsyncMock(side_effect=self._record("upload"))
        self.download = AsyncMock(side_effect=self._record("download"))
        self.results = {}

    def _record(self, name):
        async def _call(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            result = self.results.get(name)
            if isinstance(result, list):
                result = result.pop(0)
            if isinstance(result, BaseException):
                raise result
            return result

        return _call


def _service(tmp_path, limits=None, **kwargs):
    cfg = Config(Endpoint, limits=limits, download_root=tmp_path)
    transport = FakeTransport()
    return cfg, transport, ApiService(cfg, transport=transport, **kwargs)


@pytest.mark.asyncio
async def test_get_parses_envelope_with_model(tmp_path):
    _, transport, svc = _service(tmp_path)
    transport.results["get_json"] = {"Success": True, "Message": "hi", "Data": {"foo": "bar"}}

    resp = await svc.get(Endpoint.FOO_MODEL, model=lambda d: FooModel(**d))
    assert resp.success is True
    assert resp.message == "hi"
    assert resp.data == FooModel(foo="bar")
    _, args, _ = transport.calls[0]
    url, headers, timeout = args
    assert url == "https://dev.api.com/foo_model"
    assert headers["Accept"] == "application/json"
    assert timeout == 60.0  # noqa: PLR2004


@pytest.mark.asyncio
async def test_login_then_token_reaches_next_request(tmp_path):
    cfg, transport, svc = _service(tmp_path)
    transport.results["post"] = {"success": True, "data": {"token": "T0K"}}
    transport.results["get_json"] = {"success": True, "data": None}

    resp = await svc.post(Endpoint.LOGIN, LoginRequest("a@b.c", "pw"))
    _, args, _ = transport.calls[0]
    assert args[1] == {"email": "a@b.c", "password": "pw"}
    assert args[4] is False  # url-encoded form
    cfg.set_bearer_token(resp.data["token"])

    await svc.get(Endpoint.FOO_MODEL)
    _, args, _ = transport.calls[1]
    assert args[1]["Authorization"] == "Bearer T0K"


@pytest.mark.asyncio
async def test_post_json_and_empty_body(tmp_path):
    _, transport, svc = _service(tmp_path)
    transport.results["post"] = None
    resp = await svc.post(Endpoint.LOGIN, {"n": 1, "skip": None}, as_json=True)
    assert resp.success is True
    _, args, _ = transport.calls[0]
    assert args[1] == {"n": 1, "skip": None}
    assert args[4] is True


@pytest.mark.asyncio
async def test_configuration_error_raised_before_any_attempt(tmp_path):
    cfg = ApiConfiguration(Endpoint, download_root=tmp_path)
    transport = FakeTransport()
    svc = ApiService(cfg, transport=transport)
    with pytest.raises(ConfigurationError):
        await svc.get(Endpoint.FOO_MODEL)
    with pytest.raises(ConfigurationError):
        await svc.try_get(Endpoint.FOO_MODEL)
    assert transport.calls == []


@pytest.mark.asyncio
async def test_try_variants_wrap_timeouts_and_refusals(tmp_path):
    cfg, transport, svc = _service(tmp_path)
    transport.results["get_json"] = RequestTimeoutError()
    resp = await svc.try_get(Endpoint.FOO_MODEL)
    assert resp.success is False
    assert isinstance(resp.error, RequestTimeoutError)

    cfg.set_max_concurrent_requests(0, Endpoint.LOGIN)
    resp = await svc.try_post(Endpoint.LOGIN, {"a": 1})
    assert isinstance(resp.error, TooManyRequestsError)
    with pytest.raises(TooManyRequestsError):
        await svc.post(Endpoint.LOGIN, {"a": 1})


@pytest.mark.asyncio
async def test_retries_transport_errors_then_succeeds(tmp_path):
    sleeps = []

    async def fake_sleep(d):
        sleeps.append(d)

    cfg = Config(Endpoint, limits=Limits(max_attempts=3), download_root=tmp_path)
    transport = FakeTransport()
    transport.results["get_json"] = [
        TransientTransportError("502", status_code=502),
        TransientTransportError("503", status_code=503),
        {"success": True, "data": 1},
    ]
    from tollbooth import Dispatcher  # noqa: PLC0415

    dispatcher = Dispatcher(cfg.store, limits=lambda: cfg.limits, sleep=fake_sleep)
    svc = ApiService(cfg, transport=transport, dispatcher=dispatcher)
    resp = await svc.get(Endpoint.FOO_MODEL)
    assert resp.data == 1
    assert len(transport.calls) == 3  # noqa: PLR2004
    assert sleeps == [3.0, 0.0]


@pytest.mark.asyncio
async def test_upload_sends_form_fields_and_file(tmp_path):
    _, transport, svc = _service(tmp_path)
    transport.results["upload"] = 201
    src = tmp_path / "photo.jpg"
    src.write_bytes(b"\xff\xd8")

    resp = await svc.upload(Endpoint.UPLOAD, src, {"album": "x", "count": 2}, file_field="photo")
    assert resp.success is True
    _, args, kwargs = transport.calls[0]
    url, path, fields, headers, timeout = args
    assert url == "https://dev.api.com/upload"
    assert path == src
    assert fields == {"album": "x", "count": "2"}
    assert kwargs["file_field"] == "photo"


@pytest.mark.asyncio
async def test_upload_missing_file_fails_fast(tmp_path):
    _, transport, svc = _service(tmp_path)
    with pytest.raises(FileNotFoundError):
        await svc.try_upload(Endpoint.UPLOAD, tmp_path / "nope.bin")
    assert transport.calls == []


@pytest.mark.asyncio
async def test_download_writes_under_root_and_skips_existing(tmp_path):
    _, transport, svc = _service(tmp_path)
    expected = tmp_path / "media" / "re_port.pdf"
    transport.results["download"] = expected

    resp = await svc.download(Endpoint.DOWNLOAD, "files/2024/re:port.pdf", "media")
    assert resp.success is True
    assert resp.data == str(expected)
    _, args, _ = transport.calls[0]
    # remote_path only names the local file; the endpoint URL is fetched as is
    assert args[0] == "https://dev.api.com/download"
    assert args[1] == expected

    expected.parent.mkdir(parents=True)
    expected.write_bytes(b"pdf")
    resp = await svc.try_download(Endpoint.DOWNLOAD, "files/2024/re:port.pdf", "media")
    assert resp.data == str(expected)
    assert len(transport.calls) == 1

    await svc.download(Endpoint.DOWNLOAD, "files/2024/re:port.pdf", "media", check_existing=False)
    assert len(transport.calls) == 2  # noqa: PLR2004


@pytest.mark.asyncio
async def test_network_probe_delegates(tmp_path):
    _, _, svc = _service(tmp_path, probe_url="http://probe.local/204")
    with patch("tollbooth.service.has_internet", AsyncMock(return_value=False)) as probe:
        assert await svc.is_network_available() is False
    probe.assert_awaited_once_with("http://probe.local/204")


@pytest.mark.asyncio
async def test_context_manager_closes_owned_transport(tmp_path):
    cfg = Config(Endpoint, download_root=tmp_path)
    async with ApiService(cfg) as svc:
        svc.transport.aclose = AsyncMock()
        closer = svc.transport.aclose
    closer.assert_awaited_once()

    transport = FakeTransport()
    transport.aclose = AsyncMock()
    async with ApiService(cfg, transport=transport):
        pass
    transport.aclose.assert_not_awaited()
