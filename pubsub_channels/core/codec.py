"""
Payload codec: frames application values as canonical JSON bytes.

The wire form is compact JSON in UTF-8. A bare string is framed as a JSON
string literal, so ``"Hello World"`` goes out as ``b'"Hello World"'`` and is
distinguishable from an unframed transport payload.
"""

import json
import math
from typing import Any

from pubsub_channels.core.exceptions import MalformedPayload, UnencodableValue

ENCODING = "utf-8"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-canonical JSON constant: {name}")


def _parse_finite_float(literal: str) -> float:
    number = float(literal)
    if not math.isfinite(number):
        raise ValueError(f"number out of range: {literal}")
    return number


class PayloadCodec:
    """
    Serializes values to canonical JSON bytes and back.

    Representable values are strings, ints, floats, booleans, None, lists
    (tuples are accepted and come back as lists) and dicts with string keys.
    """

    def encode(self, value: Any) -> bytes:
        """
        Encode a value into its canonical wire bytes.

        Args:
            value: Any representable value

        Returns:
            Compact UTF-8 JSON bytes

        Raises:
            UnencodableValue: If the value falls outside the value model
        """
        try:
            text = json.dumps(
                value,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
            data = text.encode(ENCODING)
        except (TypeError, ValueError, RecursionError) as e:
            # UnicodeEncodeError (lone surrogates) is a ValueError
            raise UnencodableValue(f"Cannot encode value: {e}") from e

        # json.dumps coerces int/float/bool/None keys to strings, which would
        # break the round trip; the value is acyclic at this point.
        self._check_keys(value)
        return data

    def decode(self, data: bytes | bytearray | memoryview | str) -> Any:
        """
        Decode canonical wire bytes back into a value.

        Args:
            data: Encoded payload

        Returns:
            The decoded value

        Raises:
            MalformedPayload: If the payload is not valid canonical JSON
        """
        try:
            if isinstance(data, str):
                text = data
            else:
                text = bytes(data).decode(ENCODING)
            return json.loads(
                text,
                parse_constant=_reject_constant,
                parse_float=_parse_finite_float,
            )
        except (ValueError, TypeError, RecursionError) as e:
            raise MalformedPayload(f"Invalid payload: {e}") from e

    def _check_keys(self, value: Any) -> None:
        stack = [value]
        while stack:
            current = stack.pop()
            if isinstance(current, dict):
                for key, item in current.items():
                    if not isinstance(key, str):
                        raise UnencodableValue(
                            f"Mapping keys must be strings, got {type(key).__name__}"
                        )
                    stack.append(item)
            elif isinstance(current, (list, tuple)):
                stack.extend(current)


default_codec = PayloadCodec()


def encode(value: Any) -> bytes:
    """Encode a value with the default codec."""
    return default_codec.encode(value)


def decode(data: bytes | bytearray | memoryview | str) -> Any:
    """Decode a payload with the default codec."""
    return default_codec.decode(data)
