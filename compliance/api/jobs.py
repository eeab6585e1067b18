"""
Manual triggers for the scheduled jobs.

The worker runs these on its own timetable; superadmins can also fire one
on demand, e.g. after a deploy or to replay a missed window.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db.models.base import now_utc
from compliance.api.deps import get_current_user_context
from compliance.workers.scheduler import JOBS_BY_NAME


router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("/")
def list_jobs(user_context = Depends(get_current_user_context)):
    _, current_user = user_context
    if not current_user.get("is_superadmin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return [
        {"name": job.name, "every_minutes": job.every_minutes, "daily_hour": job.daily_hour}
        for job in JOBS_BY_NAME.values()
    ]


@router.post("/{job_name}/run")
def run_job(
    job_name: str,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    if not current_user.get("is_superadmin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    job = JOBS_BY_NAME.get(job_name)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    result = job.run(db, now_utc())
    return {"job": job.name, "result": result}
