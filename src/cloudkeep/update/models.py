"""Data models for the update lifecycle."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum


class UpdateState(str, Enum):
    IDLE = "idle"
    AVAILABLE = "available"
    DOWNLOADING = "downloading"
    READY = "ready"
    INSTALLING = "installing"


def _number(value: object) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        try:
            float(value)
        except OverflowError:
            return 0
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return 0


@dataclass(frozen=True)
class UpdateFile:
    """One downloadable artifact of an update."""

    url: str
    size: int
    checksum: str


@dataclass(frozen=True)
class UpdateDescriptor:
    """A detected update: version and its artifacts in updater order."""

    version: str
    files: tuple[UpdateFile, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, data: dict) -> UpdateDescriptor:
        """Build from the updater's loosely typed payload.

        The updater reports the checksum as ``sha512``; ``checksum`` is
        accepted as well.
        """
        files = []
        for entry in data.get("files") or []:
            if not isinstance(entry, dict):
                continue
            files.append(UpdateFile(
                url=str(entry.get("url", "")),
                size=int(_number(entry.get("size"))),
                checksum=str(entry.get("sha512") or entry.get("checksum") or ""),
            ))
        return cls(version=str(data.get("version", "")), files=tuple(files))

    @property
    def download_size(self) -> int:
        """Size of the primary artifact, 0 when unknown."""
        return self.files[0].size if self.files else 0


@dataclass(frozen=True)
class DownloadStats:
    """Download progress as last reported by the updater."""

    percent: float = 0.0
    bytes_per_second: float = 0.0
    total_bytes: int = 0
    transferred_bytes: int = 0

    @classmethod
    def from_payload(cls, data: dict) -> DownloadStats:
        return cls(
            percent=float(_number(data.get("percent"))),
            bytes_per_second=_number(data.get("bytesPerSecond")),
            total_bytes=int(_number(data.get("total"))),
            transferred_bytes=int(_number(data.get("transferred"))),
        )
