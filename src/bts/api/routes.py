# src/bts/api/routes.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse

from bts.config import Settings
from bts.domain.errors import BTSBaseError, ConflictError, NotFoundError
from bts.domain.models import (
    ChallengeInfo,
    ClaimEligibility,
    ClearResponse,
    EnqueueResponse,
    ErrorResponse,
    MediaBlob,
    RewardGenerationRequest,
    TaskListResponse,
    TaskView,
)
from bts.domain.states import TaskType
from bts.engine import Scheduler
from bts.logging import get_logger
from bts.verification import claim_eligibility

from .deps import get_scheduler, get_settings

_LOG = get_logger(__name__)
router = APIRouter()

# Routes touching the scheduler are `async def` so they run on the
# scheduler's event loop, not in the threadpool.


def _error_response(err: BTSBaseError, http_status: int) -> JSONResponse:
    payload = ErrorResponse(
        error=err.message,
        code=err.code,
        details=err.details or {},
    ).model_dump()
    return JSONResponse(status_code=http_status, content=payload)


def _status_for(err: BTSBaseError) -> int:
    if isinstance(err, NotFoundError):
        return 404
    if isinstance(err, ConflictError):
        return 409
    return 400


def _split_ids(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


async def _read_upload(upload: Optional[UploadFile]) -> Optional[MediaBlob]:
    if upload is None:
        return None
    content = await upload.read()
    return MediaBlob(content=content, content_type=upload.content_type or "")


@router.get("/healthz")
def healthz() -> dict:
    return {"ok": True}


@router.post("/tasks/reward-generation", response_model=EnqueueResponse, status_code=201)
async def submit_reward_generation(
    payload: RewardGenerationRequest,
    scheduler: Scheduler = Depends(get_scheduler),
):
    try:
        task_id = scheduler.start_reward_generation(
            payload.user_id,
            payload.challenge,
            payload.persistent,
            dependencies=payload.dependencies,
        )
        return EnqueueResponse(id=task_id)
    except BTSBaseError as e:
        return _error_response(e, _status_for(e))


@router.post("/tasks/model-preload", response_model=EnqueueResponse, status_code=201)
async def submit_model_preload(scheduler: Scheduler = Depends(get_scheduler)):
    try:
        return EnqueueResponse(id=scheduler.start_model_preload())
    except BTSBaseError as e:
        return _error_response(e, _status_for(e))


@router.post("/tasks/verification", response_model=EnqueueResponse, status_code=201)
async def submit_verification(
    video: UploadFile = File(...),
    photo: Optional[UploadFile] = File(None),
    title: str = Form("Challenge"),
    description: str = Form("Complete this challenge"),
    dependencies: str = Form(""),
    scheduler: Scheduler = Depends(get_scheduler),
):
    """
    Submit media for background verification.

    Notes:
    - `photo` may be omitted; the run is then partial at best.
    - `dependencies` is a comma-separated list of task ids.
    """
    video_blob = await _read_upload(video)
    photo_blob = await _read_upload(photo)
    try:
        task_id = scheduler.start_verification(
            video_blob,
            photo_blob,
            ChallengeInfo(title=title, description=description),
            dependencies=_split_ids(dependencies),
        )
        return EnqueueResponse(id=task_id)
    except BTSBaseError as e:
        return _error_response(e, _status_for(e))


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    task_type: Optional[TaskType] = Query(default=None, alias="type"),
    scheduler: Scheduler = Depends(get_scheduler),
):
    tasks = scheduler.get_tasks_by_type(task_type) if task_type else scheduler.list_tasks()
    return TaskListResponse(
        tasks=[TaskView.from_task(t) for t in tasks],
        total=len(tasks),
        overall_progress=scheduler.overall_progress,
        is_processing=scheduler.is_processing,
    )


@router.delete("/tasks", response_model=ClearResponse)
async def clear_tasks(scheduler: Scheduler = Depends(get_scheduler)):
    removed, retained = scheduler.clear_all_tasks()
    return ClearResponse(removed=removed, retained=retained)


@router.get("/tasks/{task_id}", response_model=TaskView)
async def get_task_status(
    task_id: str,
    scheduler: Scheduler = Depends(get_scheduler),
):
    try:
        return TaskView.from_task(scheduler.require_task(task_id))
    except NotFoundError as e:
        return _error_response(e, 404)


@router.post("/tasks/{task_id}/cancel", response_model=TaskView)
async def cancel_task(
    task_id: str,
    scheduler: Scheduler = Depends(get_scheduler),
):
    """
    Cancel a task. Persistent tasks and finished tasks are returned unchanged.
    """
    task = scheduler.cancel_task(task_id)
    if task is None:
        return _error_response(NotFoundError(f"Task not found: {task_id}", details={"id": task_id}), 404)
    return TaskView.from_task(task)


@router.get("/tasks/{task_id}/claim-eligibility", response_model=ClaimEligibility)
async def get_claim_eligibility(
    task_id: str,
    scheduler: Scheduler = Depends(get_scheduler),
    settings: Settings = Depends(get_settings),
):
    try:
        task = scheduler.require_task(task_id)
    except NotFoundError as e:
        return _error_response(e, 404)
    return claim_eligibility(task, allow_partial=settings.allow_partial_claim)
