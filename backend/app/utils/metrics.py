"""
Best-effort StatsD/Datadog counters over UDP.

Calendar sync swallows provider failures so publication writes never block;
these counters are how operators still see them:

  incr('calendar_sync.failure', tags={'provider': 'google', 'error': 'ProviderError'})
  timing_ms('calendar_sync.full_sync.ms', 812.0, tags={'provider': 'outlook'})

Env:
  METRICS_STATSD_ADDR = "host:port" (e.g., "127.0.0.1:8125"); unset disables sending
  METRICS_TAGS = "1" enables Datadog-style tag suffix (|#key:val,...)
"""

from __future__ import annotations

import logging
import os
import socket
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_ADDR = os.getenv("METRICS_STATSD_ADDR", "").strip()
_USE_TAGS = os.getenv("METRICS_TAGS", "1") not in ("0", "false", "False")
_SOCK: Optional[socket.socket] = None


def _get_sock() -> Optional[socket.socket]:
    global _SOCK
    if not _ADDR:
        return None
    if _SOCK is None:
        host, _, port = _ADDR.partition(":")
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.connect((host, int(port)))
        except (OSError, ValueError) as exc:
            logger.debug("StatsD sink %s unavailable: %s", _ADDR, exc)
            return None
        _SOCK = sock
    return _SOCK


def _format_tags(tags: Optional[Dict[str, object]]) -> str:
    if not tags or not _USE_TAGS:
        return ""
    parts = [
        f"{str(k).replace(',', '_')}:{str(v).replace(',', '_')}"
        for k, v in tags.items()
        if k is not None
    ]
    return "|#" + ",".join(parts) if parts else ""


def _send(line: str) -> None:
    sock = _get_sock()
    if sock is None:
        return
    try:
        sock.send(line.encode("utf-8"))
    except OSError as exc:
        logger.debug("StatsD send failed: %s", exc)


def incr(name: str, value: int = 1, tags: Optional[Dict[str, object]] = None) -> None:
    _send(f"{name}:{int(value)}|c{_format_tags(tags)}")


def timing_ms(name: str, ms: float, tags: Optional[Dict[str, object]] = None) -> None:
    _send(f"{name}:{float(ms):.2f}|ms{_format_tags(tags)}")
