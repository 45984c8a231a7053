"""API routes for PsicoZen."""

from fastapi import APIRouter

from .alerts import router as alerts_router
from .audit import router as audit_router
from .emociograma import router as emociograma_router
from .organizations import router as organizations_router
from .roles import router as roles_router
from .users import router as users_router

# Main API router
api_router = APIRouter()

api_router.include_router(organizations_router)
api_router.include_router(roles_router)
api_router.include_router(emociograma_router)
api_router.include_router(alerts_router)
api_router.include_router(audit_router)
api_router.include_router(users_router)

__all__ = ["api_router"]
