import asyncio
import dataclasses
import re
from collections.abc import Mapping
from typing import Any

from .errors import RequestTimeoutError

# Characters no common file system accepts in a file name
_INVALID_FILE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def to_valid_file_name(name: str) -> str:
    """Replace characters that are invalid in file names with underscores."""
    return _INVALID_FILE_CHARS.sub("_", name)


def is_timeout_exception(exc: BaseException) -> bool:
    """True for our own timeout error and the stdlib/asyncio timeout types."""
    return isinstance(exc, (RequestTimeoutError, TimeoutError, asyncio.TimeoutError))


def to_fields(data: Any) -> dict[str, Any]:
    """Flatten a mapping, dataclass instance or plain object into form fields."""
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return dict(data)
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return dataclasses.asdict(data)
    if hasattr(data, "__dict__"):
        return {k: v for k, v in vars(data).items() if not k.startswith("_")}
    raise TypeError(f"cannot convert {type(data).__name__} to form fields")


def to_form_strings(data: Any) -> dict[str, str]:
    """Like to_fields, with None dropped and every value rendered as a string."""
    return {k: str(v) for k, v in to_fields(data).items() if v is not None}
