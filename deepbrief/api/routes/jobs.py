from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from deepbrief.api.deps import get_extractor, get_launcher, get_reconciler, get_store
from deepbrief.models.schemas import (
    JobListResponse,
    JobResponse,
    PollJobResponse,
    StartJobRequest,
    StartJobResponse,
    StructureJobResponse,
)
from deepbrief.research.launcher import JobLauncher
from deepbrief.research.reconciler import StatusReconciler
from deepbrief.research.structuring import ResultExtractor
from deepbrief.services.job_store import JobStore

router = APIRouter(prefix="/api/research/jobs", tags=["research-jobs"])


@router.post("", response_model=StartJobResponse)
async def start_job(request: StartJobRequest, launcher: JobLauncher = Depends(get_launcher)):
    """Launch a background research task for a session."""
    capabilities = [c.value for c in request.capabilities] if request.capabilities is not None else None
    job = await launcher.launch(
        request.session_id,
        request.template,
        capabilities=capabilities,
        focus_areas=request.focus_areas,
    )
    return StartJobResponse(
        job_id=job.id,
        status=job.status,
        external_task_ref=job.external_task_ref,
        capabilities=job.capabilities,
    )


@router.get("", response_model=JobListResponse)
async def list_jobs(session_id: str = Query(..., min_length=1), store: JobStore = Depends(get_store)):
    jobs = await store.list_jobs(session_id)
    return JobListResponse(jobs=[JobResponse.from_job(j) for j in jobs])


@router.get("/{job_id}", response_model=PollJobResponse)
async def poll_job(job_id: str, reconciler: StatusReconciler = Depends(get_reconciler)):
    """Reconcile the job with the provider once and return the stored record."""
    job = await reconciler.reconcile(job_id)
    return PollJobResponse(job=JobResponse.from_job(job))


@router.post("/{job_id}/structure", response_model=StructureJobResponse)
async def structure_job(job_id: str, extractor: ResultExtractor = Depends(get_extractor)):
    """Run Phase 2 structuring on a completed job."""
    structured = await extractor.structure(job_id)
    return StructureJobResponse(job_id=job_id, structured_result=structured)
