"""TransferOrchestrator — sequences backup list/save/restore/delete against the store.

At most one transfer is in flight at a time. A call made while another
transfer is running is rejected (returns False) rather than queued.
Failures never propagate out of this class: they are logged, recorded in
``last_error`` and reported through the ``on_notify`` callback.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable
from urllib.parse import unquote

from cloudkeep.backup.envelope import encode, try_decode
from cloudkeep.core.settings import SettingsWriteError
from cloudkeep.storage.client import RemoteItem, StorageError, in_flight_percent

log = logging.getLogger(__name__)

PARTIAL_RESTORE_NOTE = (
    "Restore is issued key-by-key; a partial failure may leave "
    "some settings restored and others not."
)


@dataclass(frozen=True)
class TransferProgress:
    """Progress of the current transfer as shown to the user."""

    percent: int = 0
    is_active: bool = False


@dataclass(frozen=True)
class BackupItem:
    """A stored backup as listed to the user (namespace prefix stripped)."""

    name: str
    size: int
    last_modified: int
    remote: RemoteItem


@dataclass(frozen=True)
class RestorePreview:
    """A decoded backup awaiting the user's confirmation."""

    source_name: str
    captured_at_ms: int
    entries: dict


class PartialWriteError(Exception):
    """One or more restored settings could not be written."""

    def __init__(self, failed_keys: list[str]) -> None:
        self.failed_keys = list(failed_keys)
        super().__init__(
            f"{len(self.failed_keys)} setting(s) not written: "
            f"{', '.join(self.failed_keys)}. {PARTIAL_RESTORE_NOTE}"
        )


def display_name(key: str, namespace: str) -> str:
    """Strip the namespace prefix and percent-decode a store key."""
    prefix = f"{namespace}/" if namespace else ""
    if prefix and key.startswith(prefix):
        key = key[len(prefix):]
    try:
        return unquote(key, errors="strict")
    except UnicodeDecodeError:
        return key


class TransferOrchestrator:
    """Owns the visible backup list, transfer progress and pending restore preview."""

    def __init__(
        self,
        client,
        settings,
        settle_delay: float = 0.6,
        on_notify: Callable[[str, str], None] | None = None,
        on_progress: Callable[[TransferProgress], None] | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self.settle_delay = settle_delay
        self._on_notify = on_notify
        self.on_progress = on_progress
        self._lock = threading.Lock()
        # Serializes progress publication between the caller and the reset timer
        self._publish_lock = threading.RLock()
        self._busy = False
        self._generation = 0
        self._reset_timer: threading.Timer | None = None

        self.items: list[BackupItem] = []
        self.progress = TransferProgress()
        self.preview: RestorePreview | None = None
        self.last_error: Exception | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    # --- single flight ---

    def _claim(self, op: str) -> bool:
        with self._lock:
            if self._busy:
                log.debug("Rejected %s: another transfer is in flight", op)
                return False
            self._busy = True
            self._generation += 1
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None
        self.last_error = None
        self._set_progress(TransferProgress(0, True))
        return True

    def _finish(self) -> None:
        with self._lock:
            self._busy = False
            generation = self._generation
            if self.settle_delay > 0:
                self._reset_timer = threading.Timer(
                    self.settle_delay, self._reset_progress, args=(generation,),
                )
                self._reset_timer.daemon = True
                self._reset_timer.start()
                return
        self._reset_progress(generation)

    def _reset_progress(self, generation: int) -> None:
        """Clear the bar unless an operation claimed the gate after ``generation`` ended."""
        with self._publish_lock:
            with self._lock:
                if self._busy or generation != self._generation:
                    return
                self._reset_timer = None
            self._set_progress(TransferProgress())

    def close(self) -> None:
        """Cancel a pending progress reset."""
        with self._lock:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None

    # --- observable state ---

    def _set_progress(self, progress: TransferProgress) -> None:
        with self._publish_lock:
            self.progress = progress
            if self.on_progress:
                self.on_progress(progress)

    def _report(self, percent: int) -> None:
        self._set_progress(TransferProgress(percent, True))

    def _notify(self, level: str, message: str) -> None:
        if self._on_notify:
            self._on_notify(level, message)

    def _fail(self, context: str, error: Exception) -> None:
        self.last_error = error
        log.warning("%s: %s", context, error)
        self._notify("error", f"{context}: {error}")

    def _load_items(self) -> bool:
        """Fetch the listing and replace items; on failure keep the old list."""
        try:
            remote = self._client.list()
        except StorageError as e:
            self._fail("Loading backups failed", e)
            return False

        remote = sorted(remote, key=lambda r: r.last_modified, reverse=True)
        namespace = self._client.namespace
        self.items = [
            BackupItem(
                name=display_name(r.key, namespace),
                size=r.size,
                last_modified=r.last_modified,
                remote=r,
            )
            for r in remote
        ]
        log.debug("Listed %d backups", len(self.items))
        return True

    # --- operations ---

    def refresh(self) -> bool:
        """Reload the backup list, most recent first."""
        if not self._claim("refresh"):
            return False
        try:
            if not self._load_items():
                return False
            self._report(100)
            return True
        finally:
            self._finish()

    def save(self, name: str) -> bool:
        """Upload the current settings snapshot as backup ``name``."""
        file_name = name.strip()
        if not file_name:
            return False
        if not self._claim("save"):
            return False
        try:
            try:
                text = encode(self._settings.get_all())
                self._client.put(file_name, text, self._report)
            except (StorageError, TypeError, ValueError) as e:
                self._fail("Saving backup failed", e)
                return False
            log.info("Saved backup %s", file_name)
            self._load_items()
        finally:
            self._finish()
        self._notify("success", f"Backup '{file_name}' saved")
        return True

    def begin_restore(self, name: str) -> bool:
        """Download and decode backup ``name`` into a pending RestorePreview."""
        if not self._claim("restore"):
            return False
        try:
            try:
                body = self._client.get(name, self._report)
            except StorageError as e:
                self._fail("Loading backup failed", e)
                return False

            result = try_decode(body)
            if not result.ok:
                self._fail("Loading backup failed", result.error)
                return False

            envelope = result.envelope
            self.preview = RestorePreview(
                source_name=name,
                captured_at_ms=envelope.timestamp_ms,
                entries=envelope.payload,
            )
            log.info("Loaded backup %s (%d keys)", name, len(envelope.payload))
            return True
        finally:
            self._finish()

    def cancel_restore(self) -> None:
        """Discard the pending preview without writing anything."""
        self.preview = None

    def commit_restore(self, preview: RestorePreview | None = None) -> bool:
        """Write every previewed entry into the settings store, one key at a time.

        Best effort: a failed key does not stop the remaining writes and
        nothing already written is rolled back. The preview is always
        discarded afterwards.
        """
        preview = preview or self.preview
        if preview is None:
            return False
        if not self._claim("commit restore"):
            return False

        failed: list[str] = []
        try:
            total = len(preview.entries)
            for index, (key, value) in enumerate(preview.entries.items(), 1):
                try:
                    self._settings.set(key, value)
                except SettingsWriteError as e:
                    log.warning("Restoring %s failed: %s", key, e)
                    failed.append(key)
                self._report(in_flight_percent(index, total))

            if failed:
                self._fail("Restore incomplete", PartialWriteError(failed))
                return False

            self._report(100)
            log.info("Restored %d settings from %s", total, preview.source_name)
        finally:
            self.preview = None
            self._finish()
        self._notify("success", "Restore complete, settings written")
        return True

    def remove(self, name: str) -> bool:
        """Delete backup ``name`` and reload the list."""
        if not self._claim("delete"):
            return False
        try:
            try:
                self._client.delete(name)
            except StorageError as e:
                self._fail("Deleting backup failed", e)
                return False
            self._report(100)
            self._load_items()
        finally:
            self._finish()
        self._notify("success", f"Backup '{name}' deleted")
        return True

