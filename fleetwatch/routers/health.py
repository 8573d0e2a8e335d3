from fastapi import APIRouter, Depends

from fleetwatch.deps import get_job_manager
from fleetwatch.workers.job_manager import JobManager

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(jobs: JobManager = Depends(get_job_manager)):
    return {"status": "ok", "jobs": jobs.status()}
