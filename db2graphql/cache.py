# cache.py
"""
Caches used while resolving requests.

RelationLoadCache  - per traversal, table -> primary key -> row. Gives every
                     row one identity while relations are attached to it.
QueryCache         - per adapter, bounded by size and age, keyed by a hash of
                     the query shape. Saves repeated identical loads across
                     requests; bypassed with ``_cache: false``.
"""

import hashlib
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

from cachetools import TTLCache

DEFAULT_CACHE_SIZE = 500
DEFAULT_CACHE_TTL = 60 * 60 * 5


class RelationLoadCache:
    """Insert-only row cache scoped to one top-level resolver call."""

    def __init__(self):
        self._tables: Dict[str, Dict[Any, Dict[str, Any]]] = {}

    def get(self, tablename: str, key: Any) -> Optional[Dict[str, Any]]:
        return self._tables.get(tablename, {}).get(_normalize(key))

    def split(self, tablename: str, keys: Iterable[Any]) -> Tuple[List[Dict[str, Any]], List[Any]]:
        """Return (cached rows, keys still missing) for ``keys``."""
        found, missing = [], []
        table = self._tables.get(tablename, {})
        for key in keys:
            row = table.get(_normalize(key))
            if row is None:
                missing.append(key)
            else:
                found.append(row)
        return found, missing

    def add(self, tablename: str, key: Any, row: Dict[str, Any]) -> Dict[str, Any]:
        """Store ``row`` unless the key is already cached; return the cached instance."""
        table = self._tables.setdefault(tablename, {})
        return table.setdefault(_normalize(key), row)

    def __contains__(self, item: Tuple[str, Any]) -> bool:
        tablename, key = item
        return _normalize(key) in self._tables.get(tablename, {})

    def __len__(self) -> int:
        return sum(len(t) for t in self._tables.values())


class QueryCache:
    """Size and TTL bounded cache of query results (lists of row dicts)."""

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE, ttl: float = DEFAULT_CACHE_TTL):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    @staticmethod
    def key(tablename: str, kind: str, ids: Iterable[Any], args: Dict[str, Any] | None) -> str:
        args = args or {}
        signature = {
            "filter": args.get("filter"),
            "pagination": args.get("pagination"),
            "where": args.get("where"),
        }
        raw = tablename + kind + ",".join(str(i) for i in ids) + json.dumps(signature, sort_keys=True, default=str)
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[List[Dict[str, Any]]]:
        # TTLCache.get either returns the stored list or the default, never a half-evicted entry
        rows = self._cache.get(key)
        if rows is None:
            return None
        return [dict(r) for r in rows]

    def set(self, key: str, rows: List[Dict[str, Any]]) -> None:
        self._cache[key] = [dict(r) for r in rows]

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


def _normalize(key: Any) -> Any:
    # Keys arrive as ints from rows and as strings from filter values
    return str(key)
