"""
Commitment Hash Engine

Deterministic, content-addressed commitments over claim payloads.

Canonical form: JSON with sorted keys, compact separators, UTF-8, no NaN.
Logically identical payloads always produce byte-identical commitments,
whatever order their keys were inserted in.
Pure functions only; safe to call from any thread.
"""

import json
import math
from datetime import date, datetime
from hashlib import sha256
from typing import Any, Iterable, Mapping

from ..errors import InvalidPayload


COMMITMENT_LENGTH = 64  # hex chars of a SHA-256 digest


def _normalize(value: Any, path: str) -> Any:
    """Reduce a value to JSON primitives, rejecting anything ambiguous."""
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InvalidPayload(f"Non-finite number at '{path}'")
        return value
    # datetime is a date subclass; both serialize to ISO-8601
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        normalized = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidPayload(f"Non-string key {key!r} at '{path}'")
            normalized[key] = _normalize(item, f"{path}.{key}" if path else key)
        return normalized
    if isinstance(value, (list, tuple)):
        return [_normalize(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise InvalidPayload(f"Value of type {type(value).__name__} at '{path}' has no canonical form")


def canonical_json(payload: Mapping[str, Any]) -> str:
    """Canonical JSON text of a payload mapping."""
    if not isinstance(payload, Mapping):
        raise InvalidPayload(f"Commitment payload must be a mapping, got {type(payload).__name__}")
    if not payload:
        raise InvalidPayload("Commitment payload cannot be empty")
    normalized = _normalize(payload, "")
    return json.dumps(normalized, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def commitment_hash(payload: Mapping[str, Any], required_fields: Iterable[str] = ()) -> str:
    """
    Commit to a claim payload.

    Args:
        payload: Mapping of string keys to primitive or nested values
        required_fields: Top-level keys that must be present and non-null

    Returns:
        Hex-encoded SHA-256 of the canonical JSON (opaque to callers)

    Raises:
        InvalidPayload: missing required field or non-canonicalizable value
    """
    if isinstance(payload, Mapping):
        missing = [f for f in required_fields if payload.get(f) is None]
        if missing:
            raise InvalidPayload(f"Commitment payload is missing required fields: {', '.join(missing)}")
    return sha256(canonical_json(payload).encode("utf-8")).hexdigest()
