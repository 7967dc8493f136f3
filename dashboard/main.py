import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from dashboard.config import settings
from dashboard.core.exceptions import (
    DashboardException,
    UnauthorizedException,
    NotFoundException,
    ForbiddenException,
    ValidationException,
    DuplicateSlugException,
    LastOwnerRevocationRejected,
    ResolutionUnavailable,
    InvitationNotFound,
    InvitationAlreadyUsed,
    InvitationExpired,
)
from dashboard.core.logging import configure_logging
from dashboard.database import SessionLocal
from dashboard.models import registry  # noqa: F401  (registers every mapper)
from dashboard.routes import (
    grant_routes,
    identity_routes,
    invitation_routes,
    metric_routes,
    tenant_routes,
)
from dashboard.services.grant_service import GrantService

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.BOOTSTRAP_OWNER_AUTH_ID:
        db = SessionLocal()
        try:
            GrantService(db).bootstrap_owner(
                settings.BOOTSTRAP_OWNER_AUTH_ID, settings.BOOTSTRAP_OWNER_EMAIL
            )
        finally:
            db.close()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,  # Disable in production
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS middleware
cors_origins = settings.cors_origins_list
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _error(status_code: int, exc: DashboardException, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "reason": exc.reason},
        headers=headers,
    )


# Exception handlers (most specific types are matched first by FastAPI)
@app.exception_handler(UnauthorizedException)
async def unauthorized_exception_handler(request: Request, exc: UnauthorizedException):
    return _error(status.HTTP_401_UNAUTHORIZED, exc, headers={"WWW-Authenticate": "Bearer"})


@app.exception_handler(NotFoundException)
async def not_found_exception_handler(request: Request, exc: NotFoundException):
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(ForbiddenException)
async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    return _error(status.HTTP_403_FORBIDDEN, exc)


@app.exception_handler(ValidationException)
async def validation_exception_handler(request: Request, exc: ValidationException):
    return _error(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(DuplicateSlugException)
async def duplicate_slug_exception_handler(request: Request, exc: DuplicateSlugException):
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(LastOwnerRevocationRejected)
async def last_owner_exception_handler(request: Request, exc: LastOwnerRevocationRejected):
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(ResolutionUnavailable)
async def resolution_unavailable_handler(request: Request, exc: ResolutionUnavailable):
    logger.error("Denying request to %s: %s", request.url.path, exc)
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


@app.exception_handler(InvitationNotFound)
async def invitation_not_found_handler(request: Request, exc: InvitationNotFound):
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(InvitationAlreadyUsed)
async def invitation_used_handler(request: Request, exc: InvitationAlreadyUsed):
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(InvitationExpired)
async def invitation_expired_handler(request: Request, exc: InvitationExpired):
    return _error(status.HTTP_410_GONE, exc)


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "Tenant Metrics Dashboard API",
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }


# Include routers
app.include_router(identity_routes.router, prefix="/api", tags=["Identity"])
app.include_router(tenant_routes.router, prefix="/api/tenants", tags=["Tenants"])
app.include_router(metric_routes.router, prefix="/api/tenants", tags=["Metrics"])
app.include_router(grant_routes.tenant_router, prefix="/api/tenants", tags=["Grants"])
app.include_router(grant_routes.global_router, prefix="/api/grants", tags=["Grants"])
app.include_router(invitation_routes.router, prefix="/api/invitations", tags=["Invitations"])
