"""Authentication router package: login, refresh, logout and identity endpoints."""

from fastapi import APIRouter

from .routes import login as login_route
from .routes import logout as logout_route
from .routes import me as me_route
from .routes import refresh as refresh_route

router = APIRouter(prefix="/auth", tags=["auth"])

router.include_router(login_route.router, prefix="/login")
router.include_router(refresh_route.router, prefix="/refresh")
router.include_router(logout_route.router, prefix="/logout")
router.include_router(me_route.router, prefix="/me")

__all__ = ["router"]
