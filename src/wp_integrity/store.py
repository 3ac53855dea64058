"""
Transient Store
Short-lived key/value storage for progress snapshots and scan results

Stores:
- MemoryTransientStore: in-process dict with per-key expiry
- JsonFileTransientStore: single JSON document on disk, shared with pollers
"""

import threading
import time
from pathlib import Path

from .config import DAY_IN_SECONDS
from .models import ScanResult
from .utils import save_json, load_json

RESULTS_KEY = 'wp_file_integrity_scan_results'


class TransientStore:
    """Interface: get(key) -> value or None, set(key, value, ttl)"""

    def get(self, key):
        raise NotImplementedError

    def set(self, key, value, ttl):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError


class MemoryTransientStore(TransientStore):
    """In-memory store with expiry. Safe to read from another thread."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key, value, ttl):
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)


class JsonFileTransientStore(TransientStore):
    """
    JSON file store. Each write replaces the whole document atomically so a
    separate process polling progress never sees a half-written file.

    Values must be JSON serializable.
    """

    def __init__(self, path, clock=time.time):
        self.path = Path(path)
        self._clock = clock
        self._lock = threading.Lock()

    def _load(self):
        if not self.path.exists():
            return {}
        try:
            data = load_json(self.path)
        except (OSError, ValueError) as e:
            print(f"[!] Transient store unreadable, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _is_expired(self, entry):
        expires_at = entry.get('expires_at')
        return expires_at is not None and self._clock() >= expires_at

    def get(self, key):
        with self._lock:
            entry = self._load().get(key)
        if not entry or self._is_expired(entry):
            return None
        return entry.get('value')

    def set(self, key, value, ttl):
        with self._lock:
            data = {k: v for k, v in self._load().items() if not self._is_expired(v)}
            data[key] = {
                'value': value,
                'cached_at': self._clock(),
                'expires_at': self._clock() + ttl if ttl else None,
            }
            save_json(data, self.path)

    def delete(self, key):
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                save_json(data, self.path)


def open_store(path=None):
    """File-backed store when a path is configured, memory otherwise."""
    if path:
        return JsonFileTransientStore(path)
    return MemoryTransientStore()


class ResultStore:
    """
    Keeps the most recent ScanResult under a fixed key, plus a bounded
    history (newest first) for operators who want to compare runs.
    """

    def __init__(self, store, key=RESULTS_KEY, ttl=DAY_IN_SECONDS, history_size=5):
        self.store = store
        self.key = key
        self.ttl = ttl
        self.history_size = max(0, history_size)

    @property
    def history_key(self):
        return f"{self.key}_history"

    def save(self, result):
        payload = result.to_dict()
        self.store.set(self.key, payload, self.ttl)

        if self.history_size:
            history = self.store.get(self.history_key) or []
            # A re-save of the same run (after verification) replaces its entry
            history = [h for h in history if h.get('timestamp') != payload['timestamp']]
            history.insert(0, payload)
            self.store.set(self.history_key, history[:self.history_size], self.ttl)

    def latest(self):
        payload = self.store.get(self.key)
        if not payload:
            return None
        return ScanResult.from_dict(payload)

    def history(self):
        return [ScanResult.from_dict(p) for p in (self.store.get(self.history_key) or [])]
