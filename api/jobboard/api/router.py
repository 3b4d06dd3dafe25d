from fastapi import APIRouter

from jobboard.api.routes import (
    admin,
    admin_scraped_jobs,
    employer,
    health,
    internal,
    job_matcher,
    jobs,
    me,
    scraped_jobs,
)

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(scraped_jobs.router, prefix="/scraped-jobs", tags=["pipeline"])
api_router.include_router(internal.router, prefix="/internal", tags=["workflow"])
api_router.include_router(admin_scraped_jobs.router, prefix="/admin/scraped-jobs", tags=["admin"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["public"])
api_router.include_router(employer.router, prefix="/employer", tags=["employer"])
api_router.include_router(me.router, prefix="/me", tags=["seeker"])
api_router.include_router(job_matcher.router, prefix="/job-matcher", tags=["seeker"])
