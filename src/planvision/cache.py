"""
Result cache for repeated analyses of the same drawing.

The cache is owned by the caller (CLI session, API app) and handed to the
engine; nothing here is process-global.
"""
from collections import OrderedDict
from dataclasses import dataclass, asdict, replace
from typing import Any, Optional
import hashlib
import json
import logging
import threading

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Cache performance statistics."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


def content_key(image: np.ndarray, config: Any, prompt_context: Optional[str] = None) -> str:
    """SHA-256 over pixel bytes, shape, dtype, config fields and prompt context"""
    array = np.ascontiguousarray(image)
    digest = hashlib.sha256()
    digest.update(str(array.shape).encode())
    digest.update(str(array.dtype).encode())
    digest.update(array.tobytes())
    config_fields = asdict(config) if config is not None else {}
    digest.update(json.dumps(config_fields, sort_keys=True, default=str).encode())
    digest.update((prompt_context or "").encode())
    return digest.hexdigest()


class ResultCache:
    """LRU cache of AnalysisResult keyed by content hash."""

    def __init__(self, max_entries: int = 32):
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._stats = CacheStats(max_size=max_entries)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._entries:
                self._stats.misses += 1
                return None
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return self._entries[key]

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = value
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug(f"Evicted cached result {evicted[:12]}")
            self._stats.size = len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stats.size = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def stats(self) -> CacheStats:
        """Snapshot of the counters"""
        with self._lock:
            return replace(self._stats)
