"""Per-IP connection admission."""
from __future__ import annotations


class ConnectionLimiter:
    """Counts open connections per source IP and refuses those over the cap."""

    def __init__(self, max_per_ip: int):
        self._max_per_ip = max_per_ip
        self._counts: dict[str, int] = {}

    def try_acquire(self, ip: str) -> bool:
        count = self._counts.get(ip, 0)
        if count >= self._max_per_ip:
            return False
        self._counts[ip] = count + 1
        return True

    def release(self, ip: str):
        count = self._counts.get(ip, 0)
        if count <= 1:
            self._counts.pop(ip, None)
            return
        self._counts[ip] = count - 1

    def count(self, ip: str) -> int:
        return self._counts.get(ip, 0)

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)
