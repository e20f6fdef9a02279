"""
Background polling of the parts-issue list.

The poller fetches the list every ``interval`` seconds while the view is
visible and no mutation is in flight, projects each request and hands the
result to a callback. Failed polls are logged and skipped; consecutive
failures stretch the delay exponentially up to ``max_backoff``.
"""
import logging
import threading
from contextlib import contextmanager

from django.conf import settings

from .projection import project_payload

logger = logging.getLogger(__name__)


class PartsIssuePoller:
    def __init__(self, fetch, on_update, interval=None, max_backoff=None):
        """
        Args:
            fetch: callable returning a list of serialized parts issues
            on_update: callable receiving ``[{'issue': data, 'projection': {...}}]``
            interval: seconds between polls (PARTS_ISSUE_POLL_INTERVAL)
            max_backoff: longest delay after repeated failures (PARTS_ISSUE_POLL_MAX_BACKOFF)
        """
        self.fetch = fetch
        self.on_update = on_update
        self.interval = interval if interval is not None else settings.PARTS_ISSUE_POLL_INTERVAL
        self.max_backoff = max_backoff if max_backoff is not None else settings.PARTS_ISSUE_POLL_MAX_BACKOFF
        self.failures = 0
        self._visible = True
        self._mutations = 0
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread = None

    @property
    def visible(self):
        return self._visible

    def set_visible(self, visible):
        """Pause polling while hidden; becoming visible polls right away"""
        was_visible = self._visible
        self._visible = bool(visible)
        if self._visible and not was_visible:
            self.refresh_now()

    @property
    def mutation_in_flight(self):
        with self._lock:
            return self._mutations > 0

    @contextmanager
    def mutation(self):
        """Suspend polling around a write; a successful write triggers a refresh"""
        with self._lock:
            self._mutations += 1
        try:
            yield
        finally:
            with self._lock:
                self._mutations -= 1
        self.refresh_now()

    def refresh_now(self):
        self._wake.set()

    def next_delay(self):
        if not self.failures:
            return self.interval
        return min(self.interval * (2 ** self.failures), self.max_backoff)

    def poll_once(self):
        """Run one poll; returns False when skipped or failed"""
        if not self._visible or self.mutation_in_flight:
            return False
        try:
            issues = self.fetch()
            snapshot = [{'issue': issue, 'projection': project_payload(issue)} for issue in issues]
            self.on_update(snapshot)
        except Exception as e:
            self.failures += 1
            logger.warning(f"Parts issue poll failed ({self.failures} in a row), next try in {self.next_delay()}s: {e}")
            return False
        if self.failures:
            logger.info(f"Parts issue polling recovered after {self.failures} failures")
        self.failures = 0
        return True

    def run(self):
        while not self._stop.is_set():
            # Cleared before polling so a refresh requested mid-poll wakes the next wait
            self._wake.clear()
            self.poll_once()
            self._wake.wait(self.next_delay())

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name='parts-issue-poller')
        self._thread.daemon = True
        self._thread.start()
        logger.info(f"Parts issue poller started (every {self.interval}s)")

    def stop(self, timeout=None):
        self._stop.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout)
        logger.info("Parts issue poller stopped")
