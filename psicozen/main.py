"""PsicoZen: Main FastAPI Application.

Organizational wellbeing backend: tenants, scoped roles, daily emotional
check-ins and manager alerts.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .core import PsicoZenError, close_db, get_settings, init_db
from .core.exceptions import DomainValidationError
from .schemas import ErrorDetail, ErrorResponse

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    # Tables already exist in production (managed by migrations)
    if settings.environment != "production":
        try:
            await init_db()
        except Exception as e:
            logger.warning(f"Could not initialize database: {e}")
    yield
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## PsicoZen API

    Multi-tenant wellbeing platform.

    ### Key Features

    - **Organizations**: company, department and team hierarchy with per-tenant settings.
    - **Scoped Roles**: super_admin, admin, gestor and colaborador, granted globally or per organization.
    - **Emociograma**: daily emotional check-ins with comment moderation and anonymity.
    - **Alerts**: check-ins above the organization threshold alert its managers by email.
    - **Export**: CSV, Excel and JSON downloads.

    ### Authentication

    All endpoints require a valid JWT token in the `Authorization: Bearer <token>` header.

    For organization-scoped operations, include the `X-Organization-ID` header.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
    max_age=86400,
)


@app.exception_handler(PsicoZenError)
async def domain_exception_handler(request: Request, exc: PsicoZenError):
    """Translate domain errors (NotFound, Conflict, ...) to HTTP responses."""
    details = []
    if isinstance(exc, DomainValidationError):
        details = [
            ErrorDetail(field=e.get("field"), message=e.get("message", ""), code="invalid")
            for e in exc.errors
        ]

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": str(exc),
            **ErrorResponse(
                error=type(exc).__name__,
                message=str(exc),
                details=details,
            ).model_dump(),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

    message = "An unexpected error occurred"
    if settings.debug:
        message = f"{message}: {str(exc)[:200]}"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=message,
            details=[],
        ).model_dump(),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "psicozen.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
