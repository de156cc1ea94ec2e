"""
Remote mirroring for the local store.

Local writes are mirrored to a per-user remote document store on a small
thread pool. Each mirror write returns a Future so the caller decides
whether to wait on it; failures are always logged and handed to the
configured error reporter.

Only the dispatch seam lives here:
- RemoteStore: interface a document-store adapter implements
- NullRemoteStore: records calls, talks to nothing (local-only mode and tests)
- SyncDispatcher: submits mirror writes and reports failures
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[str, BaseException], None]


class RemoteStore(ABC):
    """Per-user remote document store."""

    @abstractmethod
    def put(self, user_id: str, kind: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or replace one document."""
        pass

    @abstractmethod
    def delete(self, user_id: str, kind: str, doc_id: str) -> None:
        """Delete one document (no error if it does not exist)."""
        pass


class NullRemoteStore(RemoteStore):
    """
    Remote store that makes no network calls.

    Keeps the calls it received so tests can assert on them.
    """

    def __init__(self):
        self.calls: List[Tuple[str, str, str, str]] = []
        self._lock = threading.Lock()

    def put(self, user_id: str, kind: str, doc_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self.calls.append(("put", user_id, kind, doc_id))

    def delete(self, user_id: str, kind: str, doc_id: str) -> None:
        with self._lock:
            self.calls.append(("delete", user_id, kind, doc_id))


class SyncDispatcher:
    """Submits mirror writes to a remote store without blocking the caller."""

    def __init__(
        self,
        remote: RemoteStore,
        max_workers: int = 2,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            remote: Store that receives the mirrored writes
            max_workers: Thread pool size
            error_reporter: Called with (description, exception) when a
                mirror write fails
        """
        self.remote = remote
        self.error_reporter = error_reporter
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pantrypal-sync")
        logger.info(f"Sync dispatcher started ({type(remote).__name__}, workers={max_workers})")

    def mirror_put(self, user_id: str, kind: str, doc_id: str, data: Dict[str, Any]) -> Future:
        """Mirror a document write. Returns the pending Future."""
        description = f"put {kind}/{doc_id} for user {user_id}"
        future = self._executor.submit(self.remote.put, user_id, kind, doc_id, data)
        future.add_done_callback(lambda f: self._on_done(description, f))
        return future

    def mirror_delete(self, user_id: str, kind: str, doc_id: str) -> Future:
        """Mirror a document delete. Returns the pending Future."""
        description = f"delete {kind}/{doc_id} for user {user_id}"
        future = self._executor.submit(self.remote.delete, user_id, kind, doc_id)
        future.add_done_callback(lambda f: self._on_done(description, f))
        return future

    def _on_done(self, description: str, future: Future):
        if future.cancelled():
            logger.warning(f"[SYNC] Cancelled: {description}")
            return

        error = future.exception()
        if error is None:
            logger.debug(f"[SYNC] Mirrored: {description}")
            return

        logger.error(f"[SYNC] Failed to mirror {description}: {error}", exc_info=error)
        if self.error_reporter is not None:
            try:
                self.error_reporter(description, error)
            except Exception as e:
                logger.error(f"[SYNC] Error reporter raised: {e}", exc_info=True)

    def shutdown(self, wait: bool = True):
        """Stop accepting writes; optionally wait for pending ones."""
        self._executor.shutdown(wait=wait)
        logger.info("Sync dispatcher stopped")
