"""
One-time passcode store.

Keyed by user, five-minute expiry by default. A code may be bound to a
scope (the resource whose step-up verdict it answers) and then verifies
only for that scope. Keys hash onto a fixed set of shards, each with its
own lock, so issue, verify and expiry for one user never interleave while
most other users proceed independently. A code is deleted the moment it
verifies or is found expired, whichever comes first.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_SHARDS = 16
CODE_DIGITS = 6


@dataclass(frozen=True)
class PendingCode:
    code: str
    issued_at: float
    expires_at: float
    scope: str | None = None

    def expired(self, now: float) -> bool:
        return now > self.expires_at


def generate_code(digits: int = CODE_DIGITS) -> str:
    """Random numeric code without a leading zero."""
    low = 10 ** (digits - 1)
    return str(low + secrets.randbelow(9 * low))


class _Shard:
    def __init__(self):
        self.lock = threading.Lock()
        self.entries: dict[str, PendingCode] = {}


class OTPStore:
    """Thread-safe keyed passcode store with expiry."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        code_factory: Callable[[], str] = generate_code,
        shards: int = DEFAULT_SHARDS,
    ):
        self.ttl = ttl
        self._clock = clock
        self._code_factory = code_factory
        self._shards = [_Shard() for _ in range(max(1, shards))]

    def _shard(self, user_id: str) -> _Shard:
        return self._shards[hash(user_id) % len(self._shards)]

    def issue(self, user_id: str, scope: str | None = None) -> PendingCode:
        """Issue a fresh code, replacing any outstanding one."""
        shard = self._shard(user_id)
        with shard.lock:
            now = self._clock()
            pending = PendingCode(
                code=self._code_factory(), issued_at=now,
                expires_at=now + self.ttl, scope=scope,
            )
            shard.entries[user_id] = pending
        logger.info("Issued step-up code for %s (expires in %.0fs)", user_id, self.ttl)
        return pending

    def verify(self, user_id: str, code: str, scope: str | None = None) -> bool:
        """
        Check a code. Valid codes are consumed; expired ones are removed.

        A code issued for a scope never verifies for another scope, and a
        mismatched attempt leaves it outstanding.
        """
        shard = self._shard(user_id)
        with shard.lock:
            pending = shard.entries.get(user_id)
            if pending is None:
                return False
            if pending.expired(self._clock()):
                del shard.entries[user_id]
                logger.info("Step-up code for %s expired", user_id)
                return False
            if pending.scope != scope:
                logger.warning(
                    "Step-up code for %s presented for %s, issued for %s",
                    user_id, scope, pending.scope,
                )
                return False
            if not hmac.compare_digest(pending.code, str(code).strip()):
                return False
            del shard.entries[user_id]
        logger.info("Step-up code for %s verified", user_id)
        return True

    def revoke(self, user_id: str) -> bool:
        shard = self._shard(user_id)
        with shard.lock:
            return shard.entries.pop(user_id, None) is not None

    def pending(self, user_id: str) -> bool:
        """True if an unexpired code is outstanding for the user."""
        shard = self._shard(user_id)
        with shard.lock:
            pending = shard.entries.get(user_id)
            return pending is not None and not pending.expired(self._clock())

    def sweep(self) -> int:
        """Remove every expired code. Returns how many were removed."""
        removed = 0
        for shard in self._shards:
            with shard.lock:
                now = self._clock()
                expired = [k for k, p in shard.entries.items() if p.expired(now)]
                for user_id in expired:
                    del shard.entries[user_id]
            removed += len(expired)
        if removed:
            logger.debug("Swept %d expired step-up codes", removed)
        return removed

    def __len__(self) -> int:
        return sum(len(shard.entries) for shard in self._shards)


class Sweeper:
    """Background thread that sweeps a store at a fixed interval."""

    def __init__(self, store: OTPStore, interval: float = 60.0):
        self.store = store
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="otp-sweeper", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.store.sweep()
