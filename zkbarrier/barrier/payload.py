"""
Payload Codec: Participant Values as Node Data

NUMERIC  -> decimal string, e.g. b"10", b"2.5"
ADDRESS  -> UTF-8 text, e.g. b"203.0.113.7"

Both directions are symmetric; integers are written without a
fractional part so other tools reading the node see "10", not "10.0".
"""

from __future__ import annotations

import math
from typing import Union

from zkbarrier.core.types import PayloadKind

PayloadValue = Union[float, str]


def encode_payload(value: Union[int, float, str], kind: PayloadKind) -> bytes:
    """Serialize a payload for the create call."""
    if kind is PayloadKind.NUMERIC:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"numeric payload must be a number, got {value!r}")
        try:
            finite = math.isfinite(value)
        except OverflowError:
            raise ValueError("numeric payload out of range") from None
        if not finite:
            raise ValueError(f"numeric payload must be finite, got {value!r}")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).encode("ascii")

    text = str(value).strip()
    if not text:
        raise ValueError("address payload must not be empty")
    return text.encode("utf-8")


def decode_payload(raw: bytes, kind: PayloadKind) -> PayloadValue:
    """
    Decode node data written by encode_payload.

    Raises:
        ValueError: empty data, invalid UTF-8, or a non-finite number
    """
    try:
        text = raw.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise ValueError(f"payload is not UTF-8: {e}") from e
    if not text:
        raise ValueError("node carries no payload")

    if kind is PayloadKind.NUMERIC:
        number = float(text)
        if not math.isfinite(number):
            raise ValueError(f"numeric payload must be finite, got {text!r}")
        return number
    return text
