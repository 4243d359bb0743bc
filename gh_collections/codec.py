"""
Content codec for collection blobs.

A collection blob is a JSON array of records, UTF-8 encoded and then
base64-encoded. When the contents API hands the blob back, the base64
text is embedded in a JSON string field, which leaves two artifacts on the
raw field text:

1. Escaped newline sequences (the two characters ``\\n``) inserted every
   few dozen characters by the upstream line-wrapping.
2. One delimiter character (the JSON quote) at each end.

:func:`strip_upstream_framing` removes both before base64 decoding; it is
the only place that knows about them. :func:`wrap_content` applies the
same framing, so ``decode(wrap_content(encode(records))) == records``.

Example:
    >>> codec = RecordCodec()
    >>> encoded = codec.encode([{"id": 1}])
    >>> codec.decode(wrap_content(encoded))
    [{'id': 1}]
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import json
from collections.abc import Callable, Sequence
from typing import Any, Generic, TypeVar

from .exceptions import (
    ContentNotUtf8Error,
    DeserializeError,
    EncodingError,
    SerializationError,
    ValidationError,
)

T = TypeVar("T")

ESCAPED_NEWLINE = "\\n"

# The contents API wraps base64 content at 60 characters per line
DEFAULT_LINE_WIDTH = 60


def strip_upstream_framing(raw: str) -> str:
    """Remove escaped newlines, then one delimiter character from each end.

    Args:
        raw: Content field text as carried by the envelope (e.g. '"W10=\\\\n"')

    Returns:
        Bare base64 text

    Raises:
        EncodingError: If there is nothing left to strip
    """
    text = raw.replace(ESCAPED_NEWLINE, "")
    if len(text) < 2:
        raise EncodingError(f"wrapped content too short to unwrap ({len(text)} chars)")
    return text[1:-1]


def wrap_content(encoded: str) -> str:
    """Frame base64 text the way the upstream envelope does (as a JSON string token)."""
    return json.dumps(encoded)


def line_wrap(encoded: str, width: int = DEFAULT_LINE_WIDTH) -> str:
    """Break base64 text into newline-terminated lines, as the contents API stores it."""
    if width <= 0:
        return encoded
    return "\n".join(encoded[i : i + width] for i in range(0, len(encoded), width)) + "\n"


def _identity(value: Any) -> Any:
    return value


class RecordCodec(Generic[T]):
    """Converts record sequences to and from wrapped base64 JSON content.

    With no arguments, records are plain JSON values (dicts, lists,
    strings, numbers). Typed records supply converters, or use
    :meth:`for_type`.

    Args:
        to_json: Converts one record to a JSON-compatible value
        from_json: Builds one record from a decoded JSON value
    """

    def __init__(
        self,
        to_json: Callable[[T], Any] | None = None,
        from_json: Callable[[Any], T] | None = None,
    ):
        self._to_json = to_json or _identity
        self._from_json = from_json or _identity

    @classmethod
    def for_type(cls, record_type: type[T]) -> RecordCodec[T]:
        """Build a codec for a record class.

        Classes exposing ``to_dict()`` and a ``from_dict()`` classmethod use
        those; plain dataclasses use ``dataclasses.asdict`` and keyword
        construction.

        Raises:
            ValidationError: If the type offers neither convention
        """
        if hasattr(record_type, "from_dict") and hasattr(record_type, "to_dict"):
            return cls(
                to_json=lambda record: record.to_dict(),  # type: ignore[attr-defined]
                from_json=record_type.from_dict,  # type: ignore[attr-defined]
            )
        if dataclasses.is_dataclass(record_type):
            return cls(
                to_json=dataclasses.asdict,  # type: ignore[arg-type]
                from_json=lambda data: record_type(**data),
            )
        raise ValidationError(
            "record_type",
            "must be a dataclass or define to_dict()/from_dict()",
            getattr(record_type, "__name__", repr(record_type)),
        )

    def encode(self, records: Sequence[T]) -> str:
        """Serialize records to JSON and base64-encode the UTF-8 bytes.

        No framing is added; see :func:`wrap_content`.

        Raises:
            SerializationError: If any record cannot be serialized
        """
        try:
            values = [self._to_json(record) for record in records]
        except Exception as e:
            raise SerializationError("record conversion failed", e) from e

        try:
            text = json.dumps(values, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise SerializationError("value is not JSON serializable", e) from e

        return base64.b64encode(text.encode("utf-8")).decode("ascii")

    def decode(self, raw_wrapped: str) -> list[T]:
        """Decode wrapped content into records.

        Steps: strip framing, base64-decode, UTF-8 decode, parse a JSON
        array, convert each element.

        Raises:
            EncodingError: If the content is not valid base64
            ContentNotUtf8Error: If the decoded bytes are not UTF-8
            DeserializeError: If the text is not a JSON array of records, or a
                record converter raises
        """
        encoded = strip_upstream_framing(raw_wrapped)

        try:
            payload = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(str(e), e) from e

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ContentNotUtf8Error(e) from e

        try:
            values = json.loads(text)
        except json.JSONDecodeError as e:
            raise DeserializeError(f"invalid JSON: {e.msg}", e) from e

        if not isinstance(values, list):
            raise DeserializeError(f"expected a JSON array, got {type(values).__name__}")

        records: list[T] = []
        for index, value in enumerate(values):
            try:
                records.append(self._from_json(value))
            except Exception as e:
                raise DeserializeError(f"element {index} does not match the record type", e) from e
        return records


_default_codec: RecordCodec[Any] = RecordCodec()


def encode_records(records: Sequence[Any]) -> str:
    """Encode plain JSON records with the identity codec."""
    return _default_codec.encode(records)


def decode_records(raw_wrapped: str) -> list[Any]:
    """Decode wrapped content into plain JSON records."""
    return _default_codec.decode(raw_wrapped)
