"""
Process Resource Snapshots.

The audio cache keeps artifacts in process memory with no expiry, so the
cache statistics report the process footprint alongside the entry count.

Usage:
    from voice_proxy.core.resources import memory_snapshot

    snapshot = memory_snapshot()
    print(snapshot.to_dict())
    # {"rss_mb": 81.2, "vms_mb": 412.9, "system_available_mb": 5120.0, "percent": 1.0}
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import psutil


@dataclass
class MemorySnapshot:
    """
    Memory usage at a point in time.

    Attributes:
        rss_mb: Process resident set size in megabytes.
        vms_mb: Process virtual memory size in megabytes.
        system_available_mb: System-wide available RAM in megabytes.
        percent: Process RSS as a percentage of total system memory.
    """
    rss_mb: float = 0.0
    vms_mb: float = 0.0
    system_available_mb: float = 0.0
    percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rss_mb": round(self.rss_mb, 1),
            "vms_mb": round(self.vms_mb, 1),
            "system_available_mb": round(self.system_available_mb, 1),
            "percent": round(self.percent, 2),
        }


_MB = 1024 * 1024
_process: Optional[psutil.Process] = None
_process_lock = threading.Lock()


def _get_process() -> psutil.Process:
    global _process
    if _process is None:
        with _process_lock:
            if _process is None:
                _process = psutil.Process()
    return _process


def memory_snapshot() -> MemorySnapshot:
    """
    Sample current process memory.

    psutil errors (process gone, access denied inside some sandboxes)
    produce a zeroed snapshot; statistics must never fail a request.
    """
    try:
        proc = _get_process()
        mem = proc.memory_info()
        return MemorySnapshot(
            rss_mb=mem.rss / _MB,
            vms_mb=mem.vms / _MB,
            system_available_mb=psutil.virtual_memory().available / _MB,
            percent=proc.memory_percent(),
        )
    except psutil.Error:
        return MemorySnapshot()
