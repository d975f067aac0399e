from fastapi import APIRouter

from violation_service.api.v1.routers import appeals, violations

router = APIRouter()

router.include_router(violations.router)
router.include_router(appeals.router)
