from fastapi import APIRouter

from gymbook.api.api_v1.endpoints import courses, memberships

api_router = APIRouter()
api_router.include_router(courses.router, prefix="/courses", tags=["courses"])
api_router.include_router(memberships.router, prefix="/memberships", tags=["memberships"])
