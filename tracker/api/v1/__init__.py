"""
API v1 routes.
"""

from fastapi import APIRouter

from tracker.api.v1 import activity, agent_keys, auth, items, projects

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(agent_keys.router, prefix="/projects", tags=["Agent Keys"])
router.include_router(items.router, prefix="/items", tags=["Items"])
router.include_router(activity.router, prefix="/activity", tags=["Activity"])
