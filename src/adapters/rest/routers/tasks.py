"""Scheduled-task endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from adapters.rest.dependencies import get_factory, get_scheduler
from adapters.rest.schemas import AddTaskResponse, SchedulerStatusOut, TaskBody
from application.services.scheduler import TaskScheduler
from domain.exceptions import ScheduleParseError, TaskNotFoundError
from factory import ServiceFactory

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


@router.get("", response_model=SchedulerStatusOut)
async def scheduler_status(scheduler: TaskScheduler = Depends(get_scheduler)):
    return await scheduler.status()


@router.post("", response_model=AddTaskResponse)
async def add_task(
    body: TaskBody,
    scheduler: TaskScheduler = Depends(get_scheduler),
    factory: ServiceFactory = Depends(get_factory),
):
    """Add-task request: {name, schedule_text, tool, input, context?}.

    An unparsable schedule or an unknown tool is rejected with
    {success: false, error} and HTTP 400.
    """
    if not factory.create_registry().has(body.tool):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": f"Tool '{body.tool}' not found"},
        )
    try:
        task = await scheduler.add_task(
            body.name,
            body.schedule_text,
            body.tool,
            body.input,
            body.context,
        )
    except ScheduleParseError as e:
        logger.info("Rejected task %r: %s", body.name, e)
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    return AddTaskResponse(success=True, task=task.to_dict())


@router.post("/{task_id}/enable")
async def enable_task(task_id: str, scheduler: TaskScheduler = Depends(get_scheduler)):
    try:
        task = await scheduler.enable_task(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "task": task.to_dict()}


@router.post("/{task_id}/disable")
async def disable_task(task_id: str, scheduler: TaskScheduler = Depends(get_scheduler)):
    try:
        task = await scheduler.disable_task(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "task": task.to_dict()}


@router.delete("/{task_id}")
async def remove_task(task_id: str, scheduler: TaskScheduler = Depends(get_scheduler)):
    try:
        task = await scheduler.remove_task(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "removed": task.to_dict()}
