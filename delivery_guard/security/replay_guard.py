"""Replay protection: timestamp window, single-use nonces, content signatures. No FastAPI."""

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.security.exceptions import (
    DuplicateRequestError,
    HeaderRequiredError,
    NonceReusedError,
    ReplayStaleError,
)

logger = logging.getLogger(__name__)

TIMESTAMP_HEADER = "X-Timestamp"
NONCE_HEADER = "X-Nonce"
NONCE_PREFIX = "nonce:"
SIGNATURE_PREFIX = "req:"
DEFAULT_WINDOW_SECONDS = 300
DEFAULT_STRICT_WINDOW_SECONDS = 120
MAX_NONCE_LENGTH = 128

# Idempotent by construction; never replay-checked.
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


class ReplayWindowStore(Protocol):
    """Ephemeral key store with per-key TTL. Injected; no global state."""

    async def add_if_absent(self, key: str, ttl_seconds: int) -> bool:
        """Record key for ttl_seconds. Returns False if key is already present."""
        ...


def normalize_body(body: Any) -> str:
    """Canonical JSON: sorted keys, no whitespace."""
    return json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)


def request_signature(
    *,
    method: str,
    path: str,
    body: Any,
    actor_id: Optional[str],
    bucket: int,
) -> str:
    """sha256 over (method, path, normalized body, actor, time bucket in whole seconds)."""
    material = normalize_body(
        {
            "method": method.upper(),
            "path": path,
            "body": body,
            "actor": actor_id,
            "bucket": bucket,
        }
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ReplayCheck:
    """Outcome of a passed replay check."""

    client_timestamp: int
    window_seconds: int
    nonce: Optional[str] = None
    signature: Optional[str] = None


class ReplayGuard:
    """
    Rejects stale/future-skewed timestamps (ReplayStale), reused nonces in strict
    mode (NonceReused), and identical content signatures within the window
    (DuplicateRequest). Every rejection emits REPLAY_ATTACK_ATTEMPT.
    """

    def __init__(
        self,
        store: ReplayWindowStore,
        audit_logger: AuditLogger,
        *,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        strict_window_seconds: int = DEFAULT_STRICT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._audit = audit_logger
        self._window = window_seconds
        self._strict_window = strict_window_seconds
        self._clock = clock

    async def check(
        self,
        *,
        method: str,
        path: str,
        body: Any,
        actor_id: Optional[str],
        timestamp_header: Optional[str],
        nonce_header: Optional[str] = None,
        strict: bool = False,
        check_signature: bool = True,
        correlation_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[ReplayCheck]:
        """Run the checks for a mutating request. Returns None for safe methods."""
        if method.upper() in SAFE_METHODS:
            return None

        window = self._strict_window if strict else self._window
        context = {
            "actor_id": actor_id,
            "correlation_id": correlation_id,
            "ip_address": ip_address,
            "user_agent": user_agent,
        }

        # Step 1: timestamp window
        if timestamp_header is None or not timestamp_header.strip():
            await self._reject(
                Severity.LOW, "Replay-protection timestamp missing", {"path": path}, **context
            )
            raise HeaderRequiredError(TIMESTAMP_HEADER)
        try:
            client_time = int(timestamp_header.strip())
        except ValueError:
            await self._reject(
                Severity.HIGH,
                "Request with unparsable timestamp detected",
                {"path": path, "timestamp": timestamp_header[:32]},
                **context,
            )
            raise ReplayStaleError("Request timestamp invalid")
        skew = abs(self._clock() - client_time)
        if skew > window:
            await self._reject(
                Severity.HIGH,
                "Request with invalid timestamp detected",
                {"path": path, "timestamp": client_time, "skew_seconds": round(skew, 3), "window_seconds": window},
                **context,
            )
            raise ReplayStaleError("Request timestamp invalid")

        # Step 2: single-use nonce (strict operations only)
        nonce: Optional[str] = None
        if strict:
            if nonce_header is None or not nonce_header.strip():
                await self._reject(
                    Severity.LOW, "Replay-protection nonce missing", {"path": path}, **context
                )
                raise HeaderRequiredError(NONCE_HEADER)
            nonce = nonce_header.strip()[:MAX_NONCE_LENGTH]
            if not await self._store.add_if_absent(f"{NONCE_PREFIX}{actor_id}:{nonce}", window):
                await self._reject(
                    Severity.CRITICAL, "Duplicate nonce detected", {"path": path, "nonce": nonce}, **context
                )
                raise NonceReusedError("Nonce already used")

        # Step 3: content signature
        signature: Optional[str] = None
        if check_signature:
            signature = request_signature(
                method=method, path=path, body=body, actor_id=actor_id, bucket=client_time
            )
            if not await self._store.add_if_absent(f"{SIGNATURE_PREFIX}{signature}", window):
                await self._reject(
                    Severity.HIGH,
                    "Duplicate request detected",
                    {"path": path, "signature": signature},
                    **context,
                )
                raise DuplicateRequestError("Duplicate request")

        return ReplayCheck(
            client_timestamp=client_time,
            window_seconds=window,
            nonce=nonce,
            signature=signature,
        )

    async def _reject(
        self,
        severity: Severity,
        description: str,
        metadata: Dict[str, Any],
        *,
        actor_id: Optional[str],
        correlation_id: Optional[str],
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> None:
        logger.info("replay_rejected", extra={"reason": description})
        await self._audit.log_security_event(
            event_type=SecurityEventType.REPLAY_ATTACK_ATTEMPT,
            severity=severity,
            description=description,
            actor_id=actor_id,
            correlation_id=correlation_id,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata=metadata,
        )
