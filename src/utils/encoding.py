from __future__ import annotations
from typing import Union
import base64
import binascii
import re

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[\w.-]+)*;base64,", re.IGNORECASE)


def to_base64(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    if isinstance(data, bytes):
        return base64.b64encode(data).decode("utf-8")
    raise ValueError(f"Unsupported data type: {type(data)}")


def from_base64(data: str) -> bytes:
    """Decode a bare base64 string or a `data:<mime>;base64,` URI."""
    payload = _DATA_URI.sub("", data.strip(), count=1)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def to_data_uri(data: Union[str, bytes], mime_type: str) -> str:
    """Already-encoded strings are wrapped as-is."""
    encoded = data if isinstance(data, str) else to_base64(data)
    return f"data:{mime_type};base64,{encoded}"
