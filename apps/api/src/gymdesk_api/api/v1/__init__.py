from fastapi import APIRouter

from .endpoints import (
    attendances,
    health,
    members,
    memberships,
    notifications,
    organizations,
)

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["Health"])
router.include_router(attendances.router)
router.include_router(memberships.router)
router.include_router(members.router)
router.include_router(notifications.router)
router.include_router(organizations.router)
