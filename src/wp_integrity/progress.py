"""
Progress Tracking
Shared counter and step label that every long-running pass reports into.

Snapshots are published to a transient store under a run-scoped id so a
separate status poller (web UI, another process) can read them while the
scan runs.
"""

import threading
import time
import uuid

from tqdm import tqdm

from .config import HOUR_IN_SECONDS
from .errors import ScanCancelledError


class CancellationToken:
    """Cooperative cancellation, checked at file/directory boundaries and before network calls."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise ScanCancelledError("Scan cancelled by user")


class ProgressTracker:
    """
    Progress state for one scan run.

    processed_units only ever grows and stays below total_units until
    complete() is called, so the percentage is monotonic and reads 100 only
    once the run is finished.
    """

    def __init__(self, store=None, progress_id=None, ttl=HOUR_IN_SECONDS, listener=None):
        self.store = store
        self.progress_id = progress_id or f"wp_file_integrity_progress_{uuid.uuid4().hex[:13]}"
        self.ttl = ttl
        self.listener = listener
        self._lock = threading.Lock()
        self._total = 0
        self._processed = 0
        self._step = ''
        self._percentage = 0
        self._active = False

    @property
    def active(self):
        return self._active

    def start(self, total_units, label='Starting scan...'):
        """Begin a new run (resets all counters)"""
        with self._lock:
            self._total = max(0, int(total_units))
            self._processed = 0
            self._percentage = 0
            self._step = label
            self._active = True
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

    def add_units(self, count):
        """Grow the total, e.g. when the verification stage is appended"""
        if count <= 0:
            return
        with self._lock:
            self._total += count
            self._refresh_percentage_locked()
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

    def advance(self, count=1, label=None):
        """Count processed units; publishes only when a label is given"""
        with self._lock:
            self._set_processed_locked(self._processed + count)
            if label is not None:
                self._step = label
            snapshot = self._snapshot_locked()
        self._notify(snapshot)
        if label is not None:
            self._store(snapshot)

    def report(self, processed_units, label):
        """Progress sink operation: absolute processed count plus step label"""
        with self._lock:
            self._set_processed_locked(processed_units)
            self._step = label
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

    def complete(self, label='Scan complete'):
        with self._lock:
            self._active = False
            self._processed = self._total
            self._step = label
            self._refresh_percentage_locked()
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

    def snapshot(self):
        with self._lock:
            return self._snapshot_locked()

    def _set_processed_locked(self, value):
        limit = max(self._total - 1, 0) if self._active else self._total
        self._processed = max(self._processed, min(int(value), limit))
        self._refresh_percentage_locked()

    def _refresh_percentage_locked(self):
        if self._total <= 0:
            pct = 0
        else:
            pct = round(self._processed / self._total * 100)
            pct = max(0, min(100, pct))
        if self._processed < self._total:
            pct = min(max(pct, self._percentage), 99)
        self._percentage = pct

    def _snapshot_locked(self):
        return {
            'total_files': self._total,
            'processed_files': self._processed,
            'current_step': self._step,
            'percentage': self._percentage,
            'timestamp': int(time.time()),
        }

    def _publish(self, snapshot):
        self._notify(snapshot)
        self._store(snapshot)

    def _notify(self, snapshot):
        if self.listener:
            self.listener(snapshot)

    def _store(self, snapshot):
        if self.store is not None:
            self.store.set(self.progress_id, snapshot, self.ttl)


def read_progress(store, progress_id):
    """Status-query helper: latest published snapshot for a run id"""
    data = store.get(progress_id) if store is not None else None
    if not data:
        return {
            'total_files': 0,
            'processed_files': 0,
            'current_step': 'Unknown',
            'percentage': 0,
            'timestamp': int(time.time()),
        }
    return data


class TqdmProgressListener:
    """Console progress bar fed by tracker snapshots"""

    def __init__(self, desc="Integrity scan", disable=False):
        self._bar = tqdm(total=0, desc=desc, unit="file", leave=True, disable=disable,
                         bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} ({percentage:3.0f}%)")

    def __call__(self, snapshot):
        total = snapshot['total_files']
        if self._bar.total != total:
            self._bar.total = total
        delta = snapshot['processed_files'] - self._bar.n
        if delta > 0:
            self._bar.update(delta)
        step = snapshot.get('current_step')
        if step:
            self._bar.set_postfix_str(step[:60], refresh=False)

    def close(self):
        self._bar.close()
