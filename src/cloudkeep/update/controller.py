"""UpdateLifecycleController — drives the self-update state machine from updater signals.

    IDLE --update-available--> AVAILABLE --(auto or confirm)--> DOWNLOADING
    AVAILABLE --defer--> IDLE
    DOWNLOADING --download-progress--> DOWNLOADING (stats replaced)
    DOWNLOADING --update-downloaded--> IDLE (auto, passive notice) | READY (manual)
    READY --request_install--> INSTALLING (terminal)

A new update-available signal restarts the cycle at AVAILABLE from any
state except INSTALLING. The auto-download preference is read on start()
and re-read whenever the settings store reports it changed.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol, runtime_checkable

from cloudkeep.core.signals import Disposer
from cloudkeep.core.units import format_size, format_speed
from cloudkeep.update.channel import DOWNLOAD_PROGRESS, UPDATE_AVAILABLE, UPDATE_DOWNLOADED
from cloudkeep.update.models import DownloadStats, UpdateDescriptor, UpdateState

log = logging.getLogger(__name__)

AUTO_DOWNLOAD_KEY = "upgrade.autoDownloadUpdate"


@runtime_checkable
class UpdateDelivery(Protocol):
    """Contract for the host updater bridge."""

    def on(self, signal: str, handler: Callable) -> Disposer:
        """Subscribe to an inbound lifecycle signal."""
        ...

    def request_download(self) -> None:
        ...

    def request_install(self) -> None:
        ...


class UpdateLifecycleController:
    """Owns UpdateState and download stats; the UI only observes them."""

    def __init__(
        self,
        settings,
        delivery: UpdateDelivery,
        on_notify: Callable[[str, str], None] | None = None,
        on_prompt: Callable[[str, UpdateDescriptor | None], None] | None = None,
    ) -> None:
        self._settings = settings
        self._delivery = delivery
        self._on_notify = on_notify
        self._on_prompt = on_prompt  # kind: "download" | "install"
        self._lock = threading.RLock()
        self._disposers: list[Disposer] = []
        self._running = False

        self.state = UpdateState.IDLE
        self.descriptor: UpdateDescriptor | None = None
        self.stats = DownloadStats()
        self.auto_download = True

    # --- lifecycle ---

    def start(self) -> None:
        """Read the preference and subscribe to settings and updater signals."""
        with self._lock:
            if self._running:
                return
            self._load_preference()
            self._disposers = [
                self._settings.subscribe(self._on_setting_changed),
                self._delivery.on(UPDATE_AVAILABLE, self.handle_update_available),
                self._delivery.on(DOWNLOAD_PROGRESS, self.handle_download_progress),
                self._delivery.on(UPDATE_DOWNLOADED, self.handle_update_downloaded),
            ]
            self._running = True
        log.debug("Update controller started (auto_download=%s)", self.auto_download)

    def stop(self) -> None:
        """Dispose every subscription taken in start()."""
        with self._lock:
            if not self._running:
                return
            disposers, self._disposers = self._disposers, []
            self._running = False
        for dispose in disposers:
            dispose()
        log.debug("Update controller stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> UpdateLifecycleController:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def _load_preference(self) -> None:
        value = self._settings.get(AUTO_DOWNLOAD_KEY, True)
        self.auto_download = value if isinstance(value, bool) else True

    def _on_setting_changed(self, name: str) -> None:
        if name == AUTO_DOWNLOAD_KEY or AUTO_DOWNLOAD_KEY.startswith(f"{name}."):
            self._load_preference()
            log.debug("Auto-download preference now %s", self.auto_download)

    # --- inbound signals ---

    def handle_update_available(self, descriptor: UpdateDescriptor) -> None:
        with self._lock:
            if self.state is UpdateState.INSTALLING:
                log.debug("Ignoring update-available while installing")
                return
            self.descriptor = descriptor
            self.stats = DownloadStats()
            self._transition(UpdateState.AVAILABLE)

            if self.auto_download:
                self._begin_download()
                self._notify(
                    "info",
                    f"New version {descriptor.version} found, downloading in background",
                )
                return

        self._prompt("download")

    def handle_download_progress(self, stats: DownloadStats) -> None:
        with self._lock:
            if self.state is UpdateState.INSTALLING:
                return
            self.stats = stats
            if self.state is not UpdateState.DOWNLOADING:
                self._transition(UpdateState.DOWNLOADING)
        log.debug("Update download at %.1f%%", stats.percent)

    def handle_update_downloaded(self) -> None:
        with self._lock:
            if self.state is UpdateState.INSTALLING:
                return
            self.stats = DownloadStats()
            if self.auto_download:
                self._transition(UpdateState.IDLE)
                self._notify("success", "Update downloaded, restart to install")
                return
            self._transition(UpdateState.READY)

        self._prompt("install")

    # --- user actions ---

    def confirm_download(self) -> bool:
        """User accepted the download prompt."""
        with self._lock:
            if self.state is not UpdateState.AVAILABLE:
                return False
            self._begin_download()
            return True

    def defer(self) -> bool:
        """User dismissed the download prompt."""
        with self._lock:
            if self.state is not UpdateState.AVAILABLE:
                return False
            self._transition(UpdateState.IDLE)
            return True

    def request_install(self) -> bool:
        """User asked to restart and install a downloaded update."""
        with self._lock:
            if self.state is not UpdateState.READY:
                return False
            self._transition(UpdateState.INSTALLING)
            self._delivery.request_install()
            return True

    def prompt_message(self) -> str:
        """Text for the prompt matching the current state."""
        if self.state is UpdateState.AVAILABLE and self.descriptor is not None:
            return (
                f"New version {self.descriptor.version} is available. "
                f"Download and install now? ({format_size(self.descriptor.download_size)})"
            )
        if self.state is UpdateState.DOWNLOADING:
            s = self.stats
            return (
                f"{s.percent:.1f}%  {format_speed(s.bytes_per_second)}  "
                f"downloaded {format_size(s.transferred_bytes)} / {format_size(s.total_bytes)}"
            )
        if self.state is UpdateState.READY:
            return "The new version has been downloaded. Restart and install now?"
        return ""

    # --- internals ---

    def _begin_download(self) -> None:
        self._transition(UpdateState.DOWNLOADING)
        self._delivery.request_download()

    def _transition(self, new_state: UpdateState) -> None:
        if new_state is not self.state:
            log.info("Update state %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def _notify(self, level: str, message: str) -> None:
        if self._on_notify:
            self._on_notify(level, message)

    def _prompt(self, kind: str) -> None:
        if self._on_prompt:
            self._on_prompt(kind, self.descriptor)
