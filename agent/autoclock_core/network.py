"""
Network utilities — reachability probe and the offline action queue.

Reachability: plain HTTP GET against a few well-known endpoints, tried in
order. The first HTTP 200 wins; all failing (or timing out) means offline.

Offline queue: JSON-lines file, one OfflineAction per line in insertion
order. Records are only ever appended or flagged processed; clearing is
all-or-nothing.
"""

import json

import requests

from .config import log
from .constants import PROBE_URLS, PROBE_TIMEOUT
from .errors import QueueError
from .models import OfflineAction
from . import http_client


# ─── Reachability probe ──────────────────────────────────────────

class ReachabilityProbe:

    def __init__(self, urls=PROBE_URLS, timeout=PROBE_TIMEOUT, session=None):
        self._urls = tuple(urls)
        self._timeout = timeout
        self._session = session or http_client.create_session(retries=False)

    def is_reachable(self):
        log.debug("Checking internet connection...")
        for url in self._urls:
            try:
                resp = self._session.get(url, timeout=self._timeout)
            except requests.RequestException as e:
                log.debug("Failed to connect to %s: %s", url, e)
                continue
            if resp.status_code == 200:
                log.debug("Internet connection confirmed via %s", url)
                return True
            log.debug("Probe %s answered HTTP %d", url, resp.status_code)
        log.warning("No internet connection detected (%d endpoints tried)", len(self._urls))
        return False


# ─── Offline queue (local persistence) ───────────────────────────

class OfflineQueue:

    def __init__(self, path):
        self._path = path

    @property
    def path(self):
        return self._path

    def append(self, kind, occurred_at):
        """Persist a deferred clock action. Returns the stored OfflineAction."""
        records = self._read()
        seq = records[-1].seq + 1 if records else 1
        action = OfflineAction(kind=kind, occurred_at=occurred_at, seq=seq)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(action.to_record()) + "\n")
        except OSError as e:
            raise QueueError(f"Failed to save offline action: {e}") from e
        log.info("Saved offline action #%d: %s at %s", seq, action.kind.value, occurred_at.isoformat())
        return action

    def list_all(self):
        return self._read()

    def list_unprocessed(self):
        return [a for a in self._read() if not a.processed]

    def pending_count(self):
        return len(self.list_unprocessed())

    def mark_processed(self, action):
        records = self._read()
        found = False
        updated = []
        for record in records:
            if record.seq == action.seq:
                record = record.as_processed()
                found = True
            updated.append(record)
        if not found:
            raise QueueError(f"Offline action #{action.seq} not found")
        self._write(updated)

    def clear_all(self):
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise QueueError(f"Failed to clear offline actions: {e}") from e
        log.info("Cleared all offline actions")

    # ─── File I/O ────────────────────────────────────────────

    def _read(self):
        try:
            if not self._path.exists():
                return []
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise QueueError(f"Failed to load offline actions: {e}") from e

        actions = []
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                actions.append(OfflineAction.from_record(json.loads(line)))
            except (ValueError, KeyError, TypeError) as e:
                log.warning("Skipping corrupt offline record at %s:%d: %s", self._path, lineno, e)
        return actions

    def _write(self, actions):
        body = "".join(json.dumps(a.to_record()) + "\n" for a in actions)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            tmp.write_text(body, encoding="utf-8")
            tmp.replace(self._path)
        except OSError as e:
            raise QueueError(f"Failed to update offline actions: {e}") from e
