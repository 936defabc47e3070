# Overview: Background snapshot saver: coalesced save-on-write, periodic autosave, flush on exit.

from __future__ import annotations

import atexit
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_SECONDS = 30.0
DEFAULT_EXIT_GRACE_SECONDS = 5.0


class PersistenceScheduler:
    """
    Runs `save_fn` on one worker thread, never more than one save at a time.

    - request_save() marks a save as pending and returns immediately. Any
      number of requests made while a save is running collapse into a
      single follow-up save.
    - Every `interval` seconds a save runs whether or not anything changed.
    - flush(timeout) waits until a save that started after the call has
      finished; used by shutdown paths.
    - Exceptions from save_fn are logged and swallowed: an in-memory write
      that already succeeded is never rolled back by a storage hiccup.
    """

    def __init__(
        self,
        save_fn: Callable[[], None],
        *,
        interval: float | None = DEFAULT_AUTOSAVE_SECONDS,
        exit_grace: float = DEFAULT_EXIT_GRACE_SECONDS,
        name: str = "snapshot-saver",
    ):
        self._save_fn = save_fn
        self.interval = interval
        self.exit_grace = exit_grace
        self._name = name

        self._cond = threading.Condition()
        self._pending = False
        self._stopping = False
        self._requested = 0  # bumped by each request
        self._completed = 0  # highest request number covered by a finished save
        self._thread: threading.Thread | None = None
        self._atexit_registered = False

        self.saves = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "PersistenceScheduler":
        with self._cond:
            if self.running:
                return self
            self._stopping = False
            self._thread = threading.Thread(target=self._worker, name=self._name, daemon=True)
            self._thread.start()
        if not self._atexit_registered:
            atexit.register(self._on_exit)
            self._atexit_registered = True
        return self

    def request_save(self) -> int:
        """Queue a save; returns the request ticket that flush() can wait on."""
        with self._cond:
            self._requested += 1
            self._pending = True
            self._cond.notify_all()
            return self._requested

    def flush(self, timeout: float | None = None) -> bool:
        """Request a save and wait for it. Returns False on timeout."""
        if not self.running:
            # No worker: save inline
            ticket = self.request_save()
            self._run_save(ticket)
            return True
        ticket = self.request_save()
        with self._cond:
            return self._cond.wait_for(lambda: self._completed >= ticket, timeout=timeout)

    def stop(self, timeout: float | None = None) -> bool:
        """Flush, then stop the worker. Returns whether the final save completed."""
        if not self.running:
            self._unregister()
            return True
        flushed = self.flush(timeout)
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        self._unregister()
        return flushed

    # ------------------------------------------------------------------

    def _unregister(self) -> None:
        if self._atexit_registered:
            atexit.unregister(self._on_exit)
            self._atexit_registered = False

    def _on_exit(self) -> None:
        if not self.flush(self.exit_grace):
            logger.warning("Final snapshot save did not finish within %.1fs", self.exit_grace)

    def _worker(self) -> None:
        while True:
            with self._cond:
                if not self._pending and not self._stopping:
                    self._cond.wait(timeout=self.interval)
                if self._stopping and not self._pending:
                    return
                if not self._pending:
                    if self.interval is None:
                        continue
                    # Autosave tick
                    self._requested += 1
                ticket = self._requested
                self._pending = False
            self._run_save(ticket)

    def _run_save(self, ticket: int) -> None:
        try:
            self._save_fn()
            self.saves += 1
        except Exception:
            self.failures += 1
            logger.exception("Snapshot save failed")
        finally:
            with self._cond:
                self._completed = max(self._completed, ticket)
                self._cond.notify_all()
