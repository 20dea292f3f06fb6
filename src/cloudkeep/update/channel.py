"""In-process update delivery channel.

Carries the three inbound lifecycle signals from the host updater to
subscribers, and forwards the two outbound commands back to the host.
"""

from __future__ import annotations

import logging
from typing import Callable

from cloudkeep.core.signals import Disposer, SignalBus
from cloudkeep.update.models import DownloadStats, UpdateDescriptor

log = logging.getLogger(__name__)

UPDATE_AVAILABLE = "autoUpdater/update-available"
DOWNLOAD_PROGRESS = "autoUpdater/download-progress"
UPDATE_DOWNLOADED = "autoUpdater/update-downloaded"

DOWNLOAD_UPDATE = "autoUpdater/downloadUpdate"
QUIT_AND_INSTALL = "autoUpdater/quitAndInstall"


class UpdateChannel:
    """Signal bus between the host updater and the lifecycle controller."""

    def __init__(
        self,
        on_download: Callable[[], None] | None = None,
        on_install: Callable[[], None] | None = None,
    ) -> None:
        self._bus = SignalBus()
        self._on_download = on_download
        self._on_install = on_install

    def on(self, signal: str, handler: Callable) -> Disposer:
        """Subscribe to an inbound signal. Returns a disposer."""
        return self._bus.on(signal, handler)

    def handler_count(self, signal: str) -> int:
        return self._bus.handler_count(signal)

    # --- outbound commands ---

    def request_download(self) -> None:
        log.info("Sending %s", DOWNLOAD_UPDATE)
        if self._on_download:
            self._on_download()

    def request_install(self) -> None:
        log.info("Sending %s", QUIT_AND_INSTALL)
        if self._on_install:
            self._on_install()

    # --- inbound signals, raised by host glue ---

    def emit_update_available(self, payload: dict | UpdateDescriptor) -> None:
        if isinstance(payload, dict):
            payload = UpdateDescriptor.from_payload(payload)
        self._bus.emit(UPDATE_AVAILABLE, payload)

    def emit_download_progress(self, payload: dict | DownloadStats) -> None:
        if isinstance(payload, dict):
            payload = DownloadStats.from_payload(payload)
        self._bus.emit(DOWNLOAD_PROGRESS, payload)

    def emit_update_downloaded(self) -> None:
        self._bus.emit(UPDATE_DOWNLOADED)
