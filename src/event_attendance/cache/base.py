from __future__ import annotations

from typing import Any, Optional, Protocol


class CacheLayer(Protocol):
    """Key-value cache with TTL and glob-pattern invalidation.

    Implementations never raise for backend failures: reads degrade to a
    miss and writes report ``False`` / ``0``.
    """

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def clear_pattern(self, pattern: str) -> int:
        raise NotImplementedError
