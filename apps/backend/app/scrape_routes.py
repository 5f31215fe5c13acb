"""
Trigger API for the scraping pipeline.

Long-running scrapes are handed to the background task queue; the request
returns the job id immediately and callers poll the job row.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from app.rate_limit import limiter, RATE_LIMIT_SCRAPE, RATE_LIMIT_READ
from core.task_queue import BackgroundTaskQueue, get_task_queue
from crawler.source_configs import get_all_source_configs, get_source_config
from orchestrator import ScrapeOrchestrator, get_orchestrator, SCRAPING_JOBS, BULK_SCRAPING_JOBS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scrape", tags=["scrape"])

ACTIONS = ("test", "update_descriptions")
SOURCE_TYPES = ("specific", "all_specific")


class ScrapeRequest(BaseModel):
    source_id: Optional[str] = None
    source_type: Optional[str] = None
    action: Optional[str] = None
    manual_trigger: bool = False
    update_all: bool = False
    limit: Optional[int] = None
    config_id: Optional[str] = None


def orchestrator_dependency() -> ScrapeOrchestrator:
    return get_orchestrator()


def task_queue_dependency() -> BackgroundTaskQueue:
    return get_task_queue()


@router.post("")
@limiter.limit(RATE_LIMIT_SCRAPE)
async def trigger_scrape(
    request: Request,
    body: ScrapeRequest,
    orchestrator: ScrapeOrchestrator = Depends(orchestrator_dependency),
    queue: BackgroundTaskQueue = Depends(task_queue_dependency)
):
    """Start a scrape, run a maintenance action, or echo a test request"""
    if body.action and body.action not in ACTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")
    if body.source_type and body.source_type not in SOURCE_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown source_type: {body.source_type}")

    if body.action == "test":
        return {"message": "Function is working!", "received": body.model_dump()}

    if body.action == "update_descriptions":
        logger.info("[api/scrape] Updating existing opportunity descriptions")
        return await orchestrator.refresh_descriptions(update_all=body.update_all, limit=body.limit)

    if body.source_type == "specific":
        if not body.source_id:
            raise HTTPException(status_code=400, detail="source_id is required for specific scraping")
        config = get_source_config(body.source_id)
        if not config:
            raise HTTPException(status_code=400, detail=f"Unknown source: {body.source_id}")

        job_id = orchestrator.create_specific_job(config)
        queue.submit(
            f"specific:{config.id}",
            lambda: orchestrator.run_specific_source(config, job_id=job_id)
        )
        return {
            "message": f"Started scraping {config.name}",
            "job_id": job_id,
            "status": "running",
        }

    if body.source_type == "all_specific":
        queue.submit("all_specific", lambda: orchestrator.run_all_specific())
        return {
            "message": "Started scraping all specific sources",
            "status": "running",
        }

    if body.config_id:
        config = orchestrator.store.get_bulk_config(body.config_id)
        if not config:
            raise HTTPException(status_code=404, detail="Bulk scraping config not found")

        job_id = orchestrator.create_bulk_job(body.config_id)
        queue.submit(
            f"bulk:{body.config_id}",
            lambda: orchestrator.run_bulk_config(config, job_id)
        )
        return {
            "message": f"Started bulk scraping for {config.get('name')}",
            "job_id": job_id,
            "status": "running",
        }

    source_id = body.source_id
    manual_trigger = body.manual_trigger
    queue.submit(
        f"dynamic:{source_id or 'due'}",
        lambda: orchestrator.run_dynamic_sources(source_id=source_id, manual_trigger=manual_trigger)
    )
    return {
        "message": "Started scraping configured sources",
        "status": "running",
    }


@router.get("/jobs/{job_id}")
@limiter.limit(RATE_LIMIT_READ)
async def get_job_status(
    request: Request,
    job_id: str,
    kind: str = "scraping",
    orchestrator: ScrapeOrchestrator = Depends(orchestrator_dependency)
):
    """Poll a scraping or bulk scraping job"""
    table = BULK_SCRAPING_JOBS if kind == "bulk" else SCRAPING_JOBS
    job = orchestrator.store.get_job(table, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/sources")
async def list_specific_sources():
    """Curated sources available for source_type=specific"""
    return {
        "sources": [
            {
                "id": config.id,
                "name": config.name,
                "url": config.listing_url,
                "pagination": config.pagination.type,
                "max_pages": config.max_pages,
            }
            for config in get_all_source_configs()
        ]
    }
