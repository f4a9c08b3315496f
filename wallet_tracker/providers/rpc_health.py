from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ProbeAttempt:
    chain: str
    url: str
    ok: bool
    latency: float = 0.0  # seconds
    error: Optional[str] = None
    ts: float = field(default_factory=time.time)

    def as_dict(self) -> Dict[str, object]:
        return {
            "url": self.url,
            "ok": self.ok,
            "latencyMs": round(self.latency * 1000.0, 1),
            "error": self.error,
            "ts": self.ts,
        }


class RpcHealthLedger:
    """
    Records every liveness probe made during provider selection so the shell
    can show which endpoints were tried, in what order, and why they failed.
    Selection happens once per process, so the ledger only ever grows by the
    number of configured candidates.
    """

    def __init__(self) -> None:
        self._attempts: Dict[str, List[ProbeAttempt]] = {}

    def record_success(self, chain: str, url: str, latency: float) -> ProbeAttempt:
        attempt = ProbeAttempt(chain=chain, url=url, ok=True, latency=max(0.0, float(latency)))
        self._attempts.setdefault(chain, []).append(attempt)
        return attempt

    def record_failure(self, chain: str, url: str, error: str, latency: float = 0.0) -> ProbeAttempt:
        attempt = ProbeAttempt(chain=chain, url=url, ok=False, latency=max(0.0, float(latency)), error=error)
        self._attempts.setdefault(chain, []).append(attempt)
        return attempt

    def attempts(self, chain: str) -> List[ProbeAttempt]:
        return list(self._attempts.get(chain, []))

    def failed_urls(self, chain: str) -> List[str]:
        return [a.url for a in self._attempts.get(chain, []) if not a.ok]

    def snapshot(self) -> Dict[str, List[Dict[str, object]]]:
        """Expose probe history for /health."""
        return {chain: [a.as_dict() for a in rows] for chain, rows in self._attempts.items()}


__all__ = ["ProbeAttempt", "RpcHealthLedger"]
