from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel


class Serializer(ABC):
    """Abstract base class for payload serialization."""

    content_type: str = "application/octet-stream"

    @abstractmethod
    def serialize(self, data: Any) -> bytes:
        """Serializes data into bytes."""
        pass

    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        """Deserializes bytes into data."""
        pass


class JsonSerializer(Serializer):
    """Serializer implementation using orjson for JSON serialization."""

    content_type = "application/json"

    def serialize(self, data: Any) -> bytes:
        """Serializes data to JSON bytes using orjson."""

        # Sets travel as sorted lists so equal sets encode identically
        def default(obj: Any) -> Any:
            if isinstance(obj, BaseModel):
                return obj.model_dump(mode="json")
            if isinstance(obj, frozenset | set):
                return sorted(obj, key=str)
            if isinstance(obj, Enum):
                return obj.value
            raise TypeError

        return orjson.dumps(data, default=default)

    def deserialize(self, data: bytes) -> Any:
        """Deserializes JSON bytes to data using orjson."""
        return orjson.loads(data)
