"""
Deterministic Cache Key Generation

Architecture:
    KeyGenerator
        ├── canonicalize()   (params → canonical JSON-compatible structure)
        ├── encode()         (canonical structure → sorted-key orjson bytes)
        └── generate_key()   (prefix:namespace:sha256(encoding))

Two parameter mappings that hold the same key/value pairs always produce the
same key, whatever order they were built in. Canonicalization rules:
    - None-valued mapping entries are omitted (recursively)
    - mapping keys must be strings and are sorted
    - integral floats and decimals are normalized to ints (2.0 and 2 share a key)
    - ints beyond 64 bits and decimals a float cannot hold exactly are kept
      as tagged strings, so distinct values never share a key
    - tuples become lists; sets become lists sorted by their encoding
    - enums contribute their value; dates and datetimes their ISO form

Author: System Architect
Date: 2026-01-14
"""

import hashlib
import math
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import orjson

from marketplace_cache.core.config.constants import KEY_PREFIX_DEFAULT
from marketplace_cache.core.exceptions import InvalidKeyInputError


class KeyGenerator:
    """
    Derives stable, collision-resistant cache keys from a namespace and a
    bag of filter parameters.

    Pure: no I/O, no shared state beyond the configured prefix.

    Usage:
        keys = KeyGenerator(key_prefix="mkt")
        key = keys.generate_key("marketplace:page", {"category": "tools", "page": 2})
        # "mkt:marketplace:page:6f1c..."
    """

    def __init__(self, key_prefix: str = KEY_PREFIX_DEFAULT):
        self.key_prefix = key_prefix

    def generate_key(self, namespace: str, params: Mapping[str, Any] | None = None) -> str:
        """
        Generate the cache key for ``params`` under ``namespace``.

        Args:
            namespace: Logical query shape (e.g. "marketplace:count")
            params: Filter parameters; None means no parameters

        Returns:
            str: "{prefix}:{namespace}:{sha256 hex}"

        Raises:
            InvalidKeyInputError: Empty namespace or non-serializable params
        """
        if not namespace:
            raise InvalidKeyInputError("Cache key namespace must be a non-empty string")

        params = params or {}
        if not isinstance(params, Mapping):
            raise InvalidKeyInputError(
                "Cache key params must be a mapping",
                details={"namespace": namespace, "params_type": type(params).__name__},
            )

        try:
            digest = hashlib.sha256(self.encode(params)).hexdigest()
        except InvalidKeyInputError as e:
            raise e.with_context(namespace=namespace)

        if self.key_prefix:
            return f"{self.key_prefix}:{namespace}:{digest}"
        return f"{namespace}:{digest}"

    def encode(self, params: Mapping[str, Any]) -> bytes:
        """Canonical byte encoding of ``params`` (sorted keys, compact JSON)."""
        canonical = self.canonicalize(params)
        try:
            return orjson.dumps(canonical, option=orjson.OPT_SORT_KEYS)
        except orjson.JSONEncodeError as e:
            raise InvalidKeyInputError.from_exception(e, message="Cache key params are not serializable") from e

    def canonicalize(self, value: Any) -> Any:
        """Return the canonical JSON-compatible form of ``value``."""
        return self._canonicalize(value, set())

    def _canonicalize(self, value: Any, path: set[int]) -> Any:
        # Order matters: bool is an int, str-based enums are str
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, Enum):
            return self._canonicalize(value.value, path)
        if isinstance(value, str):
            return value
        if isinstance(value, int):
            return self._canonical_int(int(value))
        if isinstance(value, (float, Decimal)):
            return self._canonical_number(value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()

        if isinstance(value, (Mapping, list, tuple, set, frozenset)):
            marker = id(value)
            if marker in path:
                raise InvalidKeyInputError(
                    "Cache key params contain a cyclic reference",
                    details={"container_type": type(value).__name__},
                )
            path.add(marker)
            try:
                return self._canonical_container(value, path)
            finally:
                path.discard(marker)

        raise InvalidKeyInputError(
            "Cache key params contain a non-serializable value",
            details={"value_type": type(value).__name__},
        )

    def _canonical_container(self, value: Any, path: set[int]) -> Any:
        if isinstance(value, Mapping):
            result = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise InvalidKeyInputError(
                        "Cache key params must use string keys",
                        details={"key_type": type(key).__name__},
                    )
                if item is None:
                    continue
                result[key] = self._canonicalize(item, path)
            return dict(sorted(result.items()))

        if isinstance(value, (set, frozenset)):
            members = [self._canonicalize(item, path) for item in value]
            return sorted(members, key=lambda m: orjson.dumps(m, option=orjson.OPT_SORT_KEYS))

        return [self._canonicalize(item, path) for item in value]

    @staticmethod
    def _canonical_int(value: int) -> int | dict[str, str]:
        # orjson only encodes ints that fit in 64 bits
        if -(2**63) <= value < 2**64:
            return value
        return {"$int": str(value)}

    @classmethod
    def _canonical_number(cls, value: float | Decimal) -> int | float | dict[str, str]:
        finite = value.is_finite() if isinstance(value, Decimal) else math.isfinite(value)
        if not finite:
            raise InvalidKeyInputError(
                "Cache key params contain a non-finite number",
                details={"value": str(value)},
            )

        if isinstance(value, float):
            return cls._canonical_int(int(value)) if value.is_integer() else value

        if value == value.to_integral_value():
            return cls._canonical_int(int(value))
        number = float(value)
        if Decimal(repr(number)) == value:
            return number
        # Would lose digits as a float; keep the exact decimal text
        return {"$decimal": str(value.normalize())}


def generate_key(namespace: str, params: Mapping[str, Any] | None = None, key_prefix: str = KEY_PREFIX_DEFAULT) -> str:
    """Convenience wrapper around ``KeyGenerator(key_prefix).generate_key``."""
    return KeyGenerator(key_prefix).generate_key(namespace, params)
