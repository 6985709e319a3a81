# delivery_guard/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from delivery_guard.api.middleware import (
    ActorContextMiddleware,
    AuditTriggerMiddleware,
    CorrelationIdMiddleware,
    HoneypotMiddleware,
)
from delivery_guard.api.routers import deliveries, health, payments, security
from delivery_guard.application.exceptions import (
    ApplicationError,
    StoreUnavailableError,
    TransitionConflictError,
)
from delivery_guard.config.logging import configure_logging
from delivery_guard.config.settings import get_settings
from delivery_guard.core.container import build_container
from delivery_guard.domain.exceptions import (
    AmountMismatchError,
    DomainError,
    DomainValidationError,
    InvalidTransitionError,
    PaymentPreconditionError,
    ResourceNotFoundError,
    UnauthorizedTransitionError,
)
from delivery_guard.security.exceptions import (
    AuthenticationRequiredError,
    AuthorizationError,
    HeaderRequiredError,
    RateLimitExceededError,
    ReplayRejectedError,
    RiskBlockedError,
    SecurityError,
)

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests may install their own container before startup.
    if getattr(app.state, "container", None) is None:
        app.state.container = build_container(settings)
    container = app.state.container
    container.risk_sweeper.start()
    logger.info("guard_started", extra={"environment": settings.environment})
    yield
    await container.aclose()
    logger.info("guard_stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Middleware order: last added runs first (outermost).
# Request flow: CorrelationId -> Honeypot -> ActorContext -> AuditTrigger.
app.add_middleware(AuditTriggerMiddleware)
app.add_middleware(ActorContextMiddleware)
app.add_middleware(HoneypotMiddleware)
app.add_middleware(CorrelationIdMiddleware)


# Bodies stay generic; the security event carries the detail.
@app.exception_handler(AuthenticationRequiredError)
async def authentication_required_handler(request, exc: AuthenticationRequiredError):
    return JSONResponse(status_code=401, content={"detail": "Authentication required"})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": "Access denied"})


@app.exception_handler(UnauthorizedTransitionError)
async def unauthorized_transition_handler(request, exc: UnauthorizedTransitionError):
    return JSONResponse(status_code=403, content={"detail": "Access denied"})


@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request, exc: ResourceNotFoundError):
    return JSONResponse(status_code=404, content={"detail": "Not found"})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request, exc: InvalidTransitionError):
    return JSONResponse(status_code=400, content={"detail": "Invalid state transition"})


@app.exception_handler(AmountMismatchError)
async def amount_mismatch_handler(request, exc: AmountMismatchError):
    return JSONResponse(status_code=400, content={"detail": "Payment verification failed"})


@app.exception_handler(PaymentPreconditionError)
async def payment_precondition_handler(request, exc: PaymentPreconditionError):
    return JSONResponse(status_code=400, content={"detail": "Payment not allowed"})


@app.exception_handler(DomainValidationError)
async def domain_validation_error_handler(request, exc: DomainValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return JSONResponse(status_code=400, content={"detail": "Invalid request"})


@app.exception_handler(HeaderRequiredError)
async def header_required_handler(request, exc: HeaderRequiredError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(ReplayRejectedError)
async def replay_rejected_handler(request, exc: ReplayRejectedError):
    return JSONResponse(status_code=409, content={"detail": "Request rejected"})


@app.exception_handler(RiskBlockedError)
async def risk_blocked_handler(request, exc: RiskBlockedError):
    return JSONResponse(
        status_code=429,
        content={"detail": "Access temporarily restricted due to suspicious activity"},
    )


@app.exception_handler(RateLimitExceededError)
async def rate_limit_handler(request, exc: RateLimitExceededError):
    return JSONResponse(status_code=429, content={"detail": "Too many requests"})


@app.exception_handler(SecurityError)
async def security_error_handler(request, exc: SecurityError):
    return JSONResponse(status_code=400, content={"detail": "Request rejected"})


@app.exception_handler(TransitionConflictError)
async def transition_conflict_handler(request, exc: TransitionConflictError):
    return JSONResponse(status_code=409, content={"detail": "Request rejected"})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request, exc: StoreUnavailableError):
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable"})


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Routers: /health, /deliveries, /payments, /security, /metrics
app.include_router(health.router)
app.include_router(deliveries.router, prefix="/deliveries")
app.include_router(payments.router, prefix="/payments")
app.include_router(security.router)
