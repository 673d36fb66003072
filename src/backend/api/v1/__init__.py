"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.issues import router as issues_router
from api.v1.surveys import router as surveys_router

router = APIRouter()

router.include_router(issues_router, prefix="/issues", tags=["Issues"])
router.include_router(surveys_router, prefix="/surveys", tags=["Surveys"])
