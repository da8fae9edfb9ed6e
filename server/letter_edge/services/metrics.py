# ─────────────────────────────────────────────────────────────────────────────
# Edge Metrics — thread-safe counters for routing and admission control
# ─────────────────────────────────────────────────────────────────────────────
# Tracks geo redirects (per country and per decision source), pass-throughs,
# rate-limit admissions/rejections and security rejections.
# Exposed via GET /metrics (JSON) and GET /metrics/prometheus.
#
# Thread-safe: sync dependencies run in the threadpool, so all mutations
# take a threading.Lock.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any


@dataclass
class EdgeMetrics:
    """Thread-safe edge counters."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    redirects_total: int = 0
    passthrough_total: int = 0
    admissions_allowed: int = 0
    admissions_rejected: int = 0
    duplicates_rejected: int = 0
    letters_composed: int = 0

    _redirects_by_country: Counter[str] = field(default_factory=Counter, repr=False)
    _redirects_by_source: Counter[str] = field(default_factory=Counter, repr=False)
    _security_rejections: Counter[str] = field(default_factory=Counter, repr=False)

    _start_time: float = field(default_factory=time.time, repr=False)

    def record_redirect(self, country: str, source: str) -> None:
        with self._lock:
            self.redirects_total += 1
            self._redirects_by_country[country] += 1
            self._redirects_by_source[source] += 1

    def record_passthrough(self) -> None:
        with self._lock:
            self.passthrough_total += 1

    def record_admission(self, allowed: bool) -> None:
        with self._lock:
            if allowed:
                self.admissions_allowed += 1
            else:
                self.admissions_rejected += 1

    def record_security_rejection(self, reason: str) -> None:
        with self._lock:
            self._security_rejections[reason] += 1

    def record_duplicate_rejected(self) -> None:
        with self._lock:
            self.duplicates_rejected += 1

    def record_letter(self) -> None:
        with self._lock:
            self.letters_composed += 1

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics for the /metrics endpoint."""
        with self._lock:
            admissions = self.admissions_allowed + self.admissions_rejected
            return {
                "redirects_total": self.redirects_total,
                "redirects_by_country": dict(self._redirects_by_country),
                "redirects_by_source": dict(self._redirects_by_source),
                "passthrough_total": self.passthrough_total,
                "admissions_allowed": self.admissions_allowed,
                "admissions_rejected": self.admissions_rejected,
                "rejection_rate": round(self.admissions_rejected / max(admissions, 1), 3),
                "security_rejections": dict(self._security_rejections),
                "duplicates_rejected": self.duplicates_rejected,
                "letters_composed": self.letters_composed,
                "uptime_seconds": int(time.time() - self._start_time),
            }
