#=================================================================
# catalog_sync/jobs.py
# In-memory background job store for long price reconciliations.
# Jobs live only as long as the process; finished ones expire after TTL.
#=================================================================
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from catalog_sync.errors import CatalogSyncError

logger = logging.getLogger("uvicorn.error")

_JOBS: Dict[str, Dict[str, Any]] = {}
_JOBS_LOCK = asyncio.Lock()
_CANCEL: Dict[str, asyncio.Event] = {}
_TASKS: Dict[str, asyncio.Task] = {}
_JOBS_TTL_SECONDS = 60 * 60  # keep finished jobs 1 hour

# runner(cancel_event, on_progress) -> result dict
JobRunner = Callable[[asyncio.Event, Callable[[Dict[str, Any]], Awaitable[None]]], Awaitable[Dict[str, Any]]]

FINISHED = ("done", "error", "cancelled")


def _now_ts() -> int:
    return int(time.time())


async def _cleanup_jobs_now():
    """Remove finished jobs older than TTL."""
    cutoff = _now_ts() - _JOBS_TTL_SECONDS
    async with _JOBS_LOCK:
        to_del = [jid for jid, rec in _JOBS.items()
                  if rec.get("finished") and rec.get("finished") < cutoff]
        for jid in to_del:
            _JOBS.pop(jid, None)
            _CANCEL.pop(jid, None)


async def _run_job(job_id: str, runner: JobRunner):
    logger.info(f"[JOB][RUN] Job {job_id} starting")
    cancel_event = _CANCEL[job_id]
    async with _JOBS_LOCK:
        _JOBS[job_id].update({"status": "running", "started": _now_ts()})

    async def on_progress(snapshot: Dict[str, Any]):
        async with _JOBS_LOCK:
            _JOBS[job_id]["progress"] = {
                k: snapshot.get(k) for k in ("total", "processed", "updated", "skipped", "not_found", "failed")
            }

    try:
        result = await runner(cancel_event, on_progress)
        status = "cancelled" if result.get("cancelled") else "done"
        async with _JOBS_LOCK:
            _JOBS[job_id].update({"status": status, "finished": _now_ts(), "result": result})
        logger.info(f"[JOB][COMPLETE] Job {job_id} finished ({status})")
    except CatalogSyncError as e:
        async with _JOBS_LOCK:
            _JOBS[job_id].update({"status": "error", "finished": _now_ts(), "error": e.to_dict()})
        logger.error(f"[JOB][ERROR] Job {job_id} failed: {e}")
    except Exception as e:
        async with _JOBS_LOCK:
            _JOBS[job_id].update({"status": "error", "finished": _now_ts(), "error": {"ok": False, "error": str(e)}})
        logger.error(f"[JOB][ERROR] Job {job_id} crashed", exc_info=e)
    finally:
        _TASKS.pop(job_id, None)

    await _cleanup_jobs_now()


async def submit_job(kind: str, request: Dict[str, Any], runner: JobRunner) -> str:
    """Register a job and start it in the background; returns the job id."""
    job_id = uuid.uuid4().hex
    async with _JOBS_LOCK:
        _JOBS[job_id] = {
            "id": job_id,
            "kind": kind,
            "status": "queued",
            "started": None,
            "finished": None,
            "request": request,
            "progress": None,
        }
        _CANCEL[job_id] = asyncio.Event()
    logger.info(f"[JOB][REGISTER] {kind} job {job_id}")
    _TASKS[job_id] = asyncio.create_task(_run_job(job_id, runner))
    return job_id


async def get_job(job_id: str) -> Optional[Dict[str, Any]]:
    async with _JOBS_LOCK:
        rec = _JOBS.get(job_id)
        return dict(rec) if rec else None


async def list_jobs() -> List[Dict[str, Any]]:
    async with _JOBS_LOCK:
        jobs = [dict(j) for j in _JOBS.values()]
    jobs.sort(key=lambda j: j.get("started") or 0, reverse=True)
    return jobs


async def cancel_job(job_id: str) -> Optional[str]:
    """
    Ask a running job to stop. Rows already in flight finish; no new rows start.
    Returns the job status, or None if the job is unknown.
    """
    async with _JOBS_LOCK:
        rec = _JOBS.get(job_id)
        if not rec:
            return None
        if rec.get("status") not in FINISHED:
            _CANCEL[job_id].set()
            logger.info(f"[JOB][CANCEL] Job {job_id} cancellation requested")
        return rec.get("status")


async def wait_for_job(job_id: str):
    task = _TASKS.get(job_id)
    if task is not None:
        await task
