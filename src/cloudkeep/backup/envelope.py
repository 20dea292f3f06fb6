"""Backup envelope codec.

Wire format (JSON object)::

    {"ts": <epoch ms>, "data": {<full settings record>}}

Unknown top-level keys are ignored on read. A missing or non-numeric ``ts``
decodes as the current time so older or foreign envelopes still load.
"""

from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass


class EnvelopeError(Exception):
    """Base error for envelope decoding."""


class MalformedEnvelopeError(EnvelopeError):
    """Text is not JSON, not an object, or has no ``data`` field."""


class EmptyPayloadError(EnvelopeError):
    """The ``data`` field is present but is not a non-null object."""


@dataclass(frozen=True)
class BackupEnvelope:
    """Decoded backup: capture time and the settings payload."""

    timestamp_ms: int
    payload: dict


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of try_decode(): either an envelope or the error that rejected it."""

    ok: bool
    envelope: BackupEnvelope | None = None
    error: EnvelopeError | None = None


def _now_ms() -> int:
    return int(time.time() * 1000)


def encode(payload: dict) -> str:
    """Wrap payload with the current timestamp and serialize to JSON.

    Raises:
        TypeError: The payload holds a value JSON cannot represent.
        ValueError: The payload is circular.
    """
    return json.dumps({"ts": _now_ms(), "data": payload}, ensure_ascii=False)


def _is_timestamp(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def decode(text: str | bytes) -> BackupEnvelope:
    """Parse and validate an envelope.

    Raises:
        MalformedEnvelopeError: Unparseable text, non-object top level, or no ``data``.
        EmptyPayloadError: ``data`` is null or not an object.
    """
    try:
        raw = json.loads(text)
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedEnvelopeError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(raw, dict) or "data" not in raw:
        raise MalformedEnvelopeError("Backup format is not recognized")

    payload = raw["data"]
    if not isinstance(payload, dict):
        raise EmptyPayloadError("Backup contains no settings data")

    ts = raw.get("ts")
    if not _is_timestamp(ts):
        ts = _now_ms()

    return BackupEnvelope(timestamp_ms=int(ts), payload=payload)


def try_decode(text: str | bytes) -> DecodeResult:
    """Like decode(), but returns a DecodeResult instead of raising."""
    try:
        return DecodeResult(ok=True, envelope=decode(text))
    except EnvelopeError as e:
        return DecodeResult(ok=False, error=e)
