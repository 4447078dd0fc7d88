"""Value serializers used by the cache backends."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .base import CacheSerializationError


class Serializer(ABC):
    """Encodes cache payloads to bytes and back."""

    @abstractmethod
    def dumps(self, value: Any) -> bytes:
        """Encode ``value``.

        Raises:
            CacheSerializationError: If the value cannot be encoded
        """
        ...

    @abstractmethod
    def loads(self, data: bytes) -> Any:
        """Decode bytes produced by :meth:`dumps`.

        Raises:
            ValueError: If ``data`` is not a valid payload
        """
        ...

    def copy(self, value: Any) -> Any:
        """Round-trip ``value`` to get an independent deep copy."""
        return self.loads(self.dumps(value))


class JSONSerializer(Serializer):
    """UTF-8 JSON serializer.

    Only JSON-native types survive the round trip: tuples come back as lists
    and non-string dict keys become strings.
    """

    def __init__(self, default: Optional[Callable[[Any], Any]] = None, sort_keys: bool = False):
        self._default = default
        self._sort_keys = sort_keys

    def dumps(self, value: Any) -> bytes:
        try:
            text = json.dumps(
                value,
                default=self._default,
                sort_keys=self._sort_keys,
                allow_nan=False,
                separators=(",", ":"),
            )
        except (TypeError, ValueError, RecursionError) as e:
            raise CacheSerializationError(f"Cache value cannot be serialized: {e}") from e
        return text.encode("utf-8")

    def loads(self, data: bytes) -> Any:
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        return json.loads(data.decode("utf-8"))
