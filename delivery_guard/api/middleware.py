"""API middleware: correlation ID, honeypot, actor context, audit trigger."""

import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from delivery_guard.core.context import actor_id_ctx, correlation_id_ctx
from delivery_guard.domain.models.resource import Role
from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.risk.models import FlagType
from delivery_guard.security.actor import Actor

logger = logging.getLogger(__name__)

ACTOR_ID_HEADER = "X-Actor-ID"
ACTOR_ROLE_HEADER = "X-Actor-Role"
CORRELATION_HEADER = "X-Correlation-ID"

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def client_ip(request: Request) -> str | None:
    """Socket peer address. Forwarding headers are a risk signal, not an identity."""
    return request.client.host if request.client else None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Generate or preserve correlation ID; attach to request.state, response header, and logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class ActorContextMiddleware(BaseHTTPMiddleware):
    """
    Read the verified identity forwarded by the auth layer (X-Actor-ID, X-Actor-Role).
    Mutating requests without it get 401; safe requests proceed with actor None.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        actor_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip()
        raw_role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip().lower()
        actor = None
        if actor_id and raw_role:
            try:
                role = Role(raw_role)
            except ValueError:
                role = None
            if role is not None:
                actor = Actor(
                    actor_id=actor_id,
                    role=role,
                    ip_address=client_ip(request),
                    user_agent=request.headers.get("user-agent"),
                )
        if actor is None and request.method.upper() not in SAFE_METHODS:
            return JSONResponse(
                status_code=401,
                content={"detail": "Authentication required"},
            )
        request.state.actor = actor
        actor_id_ctx.set(actor.actor_id if actor else None)
        return await call_next(request)


class AuditTriggerMiddleware(BaseHTTPMiddleware):
    """After response: log structured audit event (correlation_id, actor_id, path, method, status_code, latency)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - request_start) * 1000
        container = getattr(request.app.state, "container", None)
        if container is not None:
            container.metrics.observe_latency("request_latency_ms", latency_ms)
        actor = getattr(request.state, "actor", None)
        audit_event = {
            "event": "request_audit",
            "correlation_id": getattr(request.state, "correlation_id", None),
            "actor_id": actor.actor_id if actor else None,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "latency_ms": round(latency_ms, 3),
        }
        logger.info(json.dumps(audit_event))
        return response


HONEYPOT_PATHS = frozenset({"/wp-admin", "/.env", "/phpmyadmin", "/admin.php", "/.git/config"})


class HoneypotMiddleware(BaseHTTPMiddleware):
    """Decoy paths: flag the caller (HONEYPOT_ACCESS) and answer a plain 404 before any other check."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path.rstrip("/") or "/"
        if path not in HONEYPOT_PATHS:
            return await call_next(request)

        container = request.app.state.container
        ip_address = client_ip(request)
        identifier = (request.headers.get(ACTOR_ID_HEADER) or "").strip() or ip_address or "unknown"
        user_agent = request.headers.get("user-agent")
        container.risk_scorer.flag(identifier, FlagType.HONEYPOT_ACCESS, {"path": path})
        container.metrics.increment("honeypot_hits")
        await container.audit_logger.log_security_event(
            event_type=SecurityEventType.HONEYPOT_ACCESS,
            severity=Severity.HIGH,
            description=f"Honeypot accessed: {path}",
            actor_id=identifier,
            correlation_id=getattr(request.state, "correlation_id", None),
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"path": path, "method": request.method},
        )
        return JSONResponse(status_code=404, content={"detail": "Not found"})
