"""
Persisted key-value store for caches

Entries are saved per namespace as a tagged, versioned JSON document:

    {"schema": "<namespace>", "version": 1, "entries": {...}}

A document whose schema tag or version does not match is discarded on load
rather than interpreted.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

STORE_VERSION = 1


def wrap_entries(namespace: str, entries: Dict[str, Any]) -> Dict[str, Any]:
    """Build the persisted document for a namespace"""
    return {"schema": namespace, "version": STORE_VERSION, "entries": entries}


def unwrap_entries(namespace: str, document: Any) -> Dict[str, Any]:
    """
    Extract entries from a persisted document

    Returns an empty dict (and logs a warning) when the document is not a
    tagged document for this namespace at the current version.
    """
    if not isinstance(document, dict):
        logger.warning(f"Discarding persisted {namespace}: not a JSON object")
        return {}
    if document.get("schema") != namespace or document.get("version") != STORE_VERSION:
        logger.warning(
            f"Discarding persisted {namespace}: schema={document.get('schema')!r} "
            f"version={document.get('version')!r}, expected {namespace!r} v{STORE_VERSION}"
        )
        return {}
    entries = document.get("entries")
    if not isinstance(entries, dict):
        logger.warning(f"Discarding persisted {namespace}: entries missing")
        return {}
    return entries


class CacheStore(ABC):
    """
    Storage backend for persisted caches

    Implementations may raise on I/O failure; callers treat persistence
    as best-effort and log instead of failing.
    """

    @abstractmethod
    def load(self, namespace: str) -> Dict[str, Any]:
        """Load entries for a namespace (empty dict when absent)"""
        ...

    @abstractmethod
    def save(self, namespace: str, entries: Dict[str, Any]) -> None:
        """Replace all entries for a namespace"""
        ...

    @abstractmethod
    def delete(self, namespace: str) -> None:
        """Remove a namespace"""
        ...


class MemoryStore(CacheStore):
    """In-process store, used in tests and when persistence is disabled"""

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}

    def load(self, namespace: str) -> Dict[str, Any]:
        document = self._documents.get(namespace)
        if document is None:
            return {}
        return dict(unwrap_entries(namespace, document))

    def save(self, namespace: str, entries: Dict[str, Any]) -> None:
        self._documents[namespace] = wrap_entries(namespace, dict(entries))

    def delete(self, namespace: str) -> None:
        self._documents.pop(namespace, None)

    def put_raw(self, namespace: str, document: Any) -> None:
        """Store an arbitrary document as-is"""
        self._documents[namespace] = document


class JsonFileStore(CacheStore):
    """
    One JSON file per namespace under a directory

    Usage:
        store = JsonFileStore("~/.cache/icp_wallet_core")
        store.save("pools", {"a|b|3000": {...}})
        store.load("pools")
    """

    def __init__(self, directory: str):
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, namespace: str) -> Path:
        return self._directory / f"{namespace}.json"

    def load(self, namespace: str) -> Dict[str, Any]:
        path = self._path(namespace)
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt cache file {path}: {e}")
            return {}
        return unwrap_entries(namespace, document)

    def save(self, namespace: str, entries: Dict[str, Any]) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path(namespace)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(wrap_entries(namespace, entries), f, indent=2, sort_keys=True)
        tmp_path.replace(path)
        logger.debug(f"Saved {len(entries)} {namespace} entries to {path}")

    def delete(self, namespace: str) -> None:
        path = self._path(namespace)
        if path.exists():
            path.unlink()


def create_store(directory: Optional[str], persist: bool = True) -> CacheStore:
    """File store when persistence is enabled and a directory is set, memory otherwise"""
    if persist and directory:
        return JsonFileStore(directory)
    return MemoryStore()
